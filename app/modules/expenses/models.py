from app.database.database import Base
from sqlalchemy import Column, String, DateTime, ForeignKey, Numeric, Enum, Text
from sqlalchemy.dialects.postgresql import UUID
from uuid import uuid4
from app.common.mixins import CompanyMixin, TimestampMixin
import enum


class ExpenseCategory(str, enum.Enum):
    STAFF = "STAFF"
    UTILITIES = "UTILITIES"
    MAINTENANCE = "MAINTENANCE"
    SUPPLIES = "SUPPLIES"
    RENT = "RENT"
    INSURANCE = "INSURANCE"
    MARKETING = "MARKETING"
    OTHER = "OTHER"


class Expense(Base, CompanyMixin, TimestampMixin):
    """Manual operating cost entry."""
    __tablename__ = "expenses"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    category = Column(Enum(ExpenseCategory), nullable=False, index=True)
    description = Column(String(255), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    expense_date = Column(DateTime, nullable=False, index=True)
    notes = Column(Text, nullable=True)
    created_by = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True)
