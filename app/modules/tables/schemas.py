from pydantic import BaseModel, Field, field_validator
from typing import Optional
from uuid import UUID
from datetime import datetime
from decimal import Decimal

from app.common.mixins import to_naive_utc
from app.modules.tables.models import TableStatus


class TableCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    hourly_rate: Optional[Decimal] = Field(None, ge=0, description="Null falls back to the company default")
    company_id: Optional[UUID] = Field(None, description="Required for SUPERADMIN")


class TableUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    hourly_rate: Optional[Decimal] = Field(None, ge=0)


class TableStatusUpdate(BaseModel):
    status: TableStatus
    notes: Optional[str] = Field(None, max_length=255)


class TableOut(BaseModel):
    id: UUID
    company_id: UUID
    name: str
    hourly_rate: Optional[Decimal]
    status: TableStatus
    created_at: datetime

    class Config:
        from_attributes = True


class TableActivityOut(BaseModel):
    id: UUID
    table_id: UUID
    previous_status: Optional[TableStatus]
    new_status: TableStatus
    notes: Optional[str]
    changed_by_id: Optional[UUID]
    created_at: datetime

    class Config:
        from_attributes = True


class TableMaintenanceCreate(BaseModel):
    description: str = Field(..., min_length=1, max_length=255)
    cost: Decimal = Field(Decimal("0"), ge=0)
    maintenance_at: Optional[datetime] = None

    @field_validator("maintenance_at")
    @classmethod
    def normalize_date(cls, v):
        return to_naive_utc(v) if v is not None else v


class TableMaintenanceOut(BaseModel):
    id: UUID
    table_id: UUID
    company_id: UUID
    description: str
    cost: Decimal
    maintenance_at: datetime
    created_by: Optional[UUID]
    created_at: datetime

    class Config:
        from_attributes = True
