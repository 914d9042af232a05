from pydantic import BaseModel, Field, field_validator
from typing import Optional
from uuid import UUID
from datetime import datetime
from decimal import Decimal

from app.common.mixins import to_naive_utc
from app.modules.expenses.models import ExpenseCategory


class ExpenseCreate(BaseModel):
    category: ExpenseCategory
    description: str = Field(..., min_length=1, max_length=255)
    amount: Decimal = Field(..., gt=0)
    expense_date: datetime
    notes: Optional[str] = None
    company_id: Optional[UUID] = Field(None, description="Required for SUPERADMIN")

    @field_validator("expense_date")
    @classmethod
    def normalize_date(cls, v):
        return to_naive_utc(v)


class ExpenseUpdate(BaseModel):
    category: Optional[ExpenseCategory] = None
    description: Optional[str] = Field(None, min_length=1, max_length=255)
    amount: Optional[Decimal] = Field(None, gt=0)
    expense_date: Optional[datetime] = None
    notes: Optional[str] = None

    @field_validator("expense_date")
    @classmethod
    def normalize_date(cls, v):
        return to_naive_utc(v) if v is not None else v


class ExpenseOut(BaseModel):
    id: UUID
    company_id: UUID
    category: ExpenseCategory
    description: str
    amount: Decimal
    expense_date: datetime
    notes: Optional[str]
    created_by: Optional[UUID]
    created_at: datetime

    class Config:
        from_attributes = True
