from sqlalchemy import Column, String, Boolean, ForeignKey, DateTime, Enum
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from uuid import uuid4
import enum

from app.database.database import Base
from app.common.mixins import TimestampMixin


class UserRole(str, enum.Enum):
    """Role hierarchy: SELLER < ADMIN < SUPERADMIN"""
    SELLER = "SELLER"
    ADMIN = "ADMIN"
    SUPERADMIN = "SUPERADMIN"


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    email = Column(String, unique=True, nullable=False, index=True)
    password = Column(String, nullable=False)
    first_name = Column(String, nullable=True)
    last_name = Column(String, nullable=True)
    role = Column(Enum(UserRole), nullable=False, default=UserRole.SELLER)
    # Null only for SUPERADMIN accounts that are not attached to a company
    company_id = Column(UUID(as_uuid=True), ForeignKey("companies.id"), nullable=True, index=True)
    is_active = Column(Boolean, default=True, nullable=False)
    last_login = Column(DateTime, nullable=True)

    company = relationship("Company", back_populates="users")

    @property
    def full_name(self):
        return " ".join(part for part in (self.first_name, self.last_name) if part) or self.email
