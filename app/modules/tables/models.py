from app.database.database import Base
from sqlalchemy import Column, String, DateTime, ForeignKey, Numeric, Enum, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.dialects.postgresql import UUID
from uuid import uuid4
from app.common.mixins import CompanyMixin, TimestampMixin, utcnow
import enum


class TableStatus(str, enum.Enum):
    AVAILABLE = "AVAILABLE"
    OCCUPIED = "OCCUPIED"        # Owned by the session engine
    RESERVED = "RESERVED"
    MAINTENANCE = "MAINTENANCE"


class Table(Base, CompanyMixin, TimestampMixin):
    __tablename__ = "tables"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    name = Column(String(100), nullable=False)
    hourly_rate = Column(Numeric(12, 2), nullable=True)  # Null: company default
    status = Column(Enum(TableStatus), nullable=False, default=TableStatus.AVAILABLE)

    # Relationships
    company = relationship("Company", back_populates="tables")
    activity = relationship("TableActivityLog", back_populates="table", order_by="TableActivityLog.created_at")
    maintenances = relationship("TableMaintenance", back_populates="table")

    __table_args__ = (
        UniqueConstraint("company_id", "name", name="uq_table_company_name"),
    )


class TableActivityLog(Base, TimestampMixin):
    """One row per table status transition."""
    __tablename__ = "table_activity_logs"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    table_id = Column(UUID(as_uuid=True), ForeignKey("tables.id"), nullable=False, index=True)
    previous_status = Column(Enum(TableStatus), nullable=True)
    new_status = Column(Enum(TableStatus), nullable=False)
    notes = Column(String(255), nullable=True)
    changed_by_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True)

    table = relationship("Table", back_populates="activity")


class TableMaintenance(Base, CompanyMixin, TimestampMixin):
    __tablename__ = "table_maintenances"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    table_id = Column(UUID(as_uuid=True), ForeignKey("tables.id"), nullable=False, index=True)
    description = Column(String(255), nullable=False)
    cost = Column(Numeric(12, 2), nullable=False, default=0)
    maintenance_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    created_by = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True)

    table = relationship("Table", back_populates="maintenances")
