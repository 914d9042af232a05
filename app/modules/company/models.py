from app.database.database import Base
from sqlalchemy import Column, String, Boolean, Numeric, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.dialects.postgresql import UUID
from app.common.mixins import TimestampMixin
import uuid

class Company(Base, TimestampMixin):
    """
    Tenant boundary. Every table, inventory item, order, expense and report
    belongs to exactly one company.

    Business hours come in two shapes selected by `use_individual_hours`:
    - general: business_hours_start/end ("HH:MM") + operating_days (["MON", ...])
    - per weekday: individual_day_hours {"MON": {"enabled": true, "start": "10:00", "end": "02:00"}, ...}
    """
    __tablename__ = "companies"

    id = Column(UUID(as_uuid=True), primary_key=True, index=True, default=uuid.uuid4)
    name = Column(String, unique=True, index=True, nullable=False)
    address = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    default_hourly_rate = Column(Numeric(12, 2), nullable=True)

    business_hours_start = Column(String(5), nullable=True)
    business_hours_end = Column(String(5), nullable=True)
    timezone = Column(String(64), nullable=True)
    operating_days = Column(JSON, nullable=True)
    individual_day_hours = Column(JSON, nullable=True)
    use_individual_hours = Column(Boolean, default=False, nullable=False)

    users = relationship("User", back_populates="company")
    tables = relationship("Table", back_populates="company")
