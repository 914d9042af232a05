from pydantic import BaseModel, Field, field_validator
from typing import List, Optional
from uuid import UUID
from datetime import datetime
from decimal import Decimal

from app.common.mixins import to_naive_utc
from app.modules.sessions.models import SessionStatus


class TableSessionCreate(BaseModel):
    table_id: UUID
    staff_id: Optional[UUID] = None
    started_at: Optional[datetime] = Field(None, description="Defaults to now; may be backdated, never in the future")
    staff_notes: Optional[str] = Field(None, max_length=500)

    @field_validator("started_at")
    @classmethod
    def normalize_started_at(cls, v):
        return to_naive_utc(v) if v is not None else v


class TableSessionMove(BaseModel):
    target_table_id: UUID


class TableSessionOut(BaseModel):
    id: UUID
    company_id: UUID
    table_id: UUID
    staff_id: Optional[UUID]
    started_at: datetime
    ended_at: Optional[datetime]
    status: SessionStatus
    total_cost: Optional[Decimal]
    staff_notes: Optional[str]
    hourly_rate: Optional[Decimal] = None
    running_cost: Optional[Decimal] = Field(None, description="Cost so far for ACTIVE sessions, not persisted")

    class Config:
        from_attributes = True


# Tracked items
class TrackedItemIn(BaseModel):
    item_id: UUID
    quantity: int = Field(..., gt=0)
    unit_price: Decimal = Field(..., ge=0)


class TrackItemsRequest(BaseModel):
    items: List[TrackedItemIn] = Field(..., min_length=1)


class TrackedItemUpdate(BaseModel):
    quantity: int = Field(..., description="New total quantity; use DELETE to remove")


class TrackedItemOut(BaseModel):
    id: UUID
    table_session_id: UUID
    item_id: UUID
    item_name: Optional[str] = None
    quantity: int
    unit_price: Decimal
    order_id: Optional[UUID]
    is_settled: bool
    created_at: datetime

    class Config:
        from_attributes = True


class ItemAvailabilityOut(BaseModel):
    item_id: UUID
    on_hand: int
    tracked_quantity: int
    effective_available: int
