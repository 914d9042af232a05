"""
Schemas Pydantic para órdenes POS.

An order line is one of two shapes, told apart by `kind`:
- "tracked": settles a session tracked item; its stock was deducted when it was tracked
- "new": an item picked at checkout; stock is deducted when the order is created
"""
from pydantic import BaseModel, Field, field_validator
from typing import Annotated, List, Literal, Optional, Union
from uuid import UUID
from datetime import datetime
from decimal import Decimal

from app.common.mixins import to_naive_utc
from app.modules.pos.models import PaymentMethod, PaymentStatus


class TrackedOrderLine(BaseModel):
    kind: Literal["tracked"]
    tracked_item_id: UUID
    quantity: int = Field(..., gt=0, description="Must equal the tracked quantity")
    unit_price: Decimal = Field(..., ge=0)


class NewOrderLine(BaseModel):
    kind: Literal["new"]
    item_id: UUID
    quantity: int = Field(..., gt=0)
    unit_price: Decimal = Field(..., ge=0)


OrderLine = Annotated[Union[TrackedOrderLine, NewOrderLine], Field(discriminator="kind")]


class PosOrderCreate(BaseModel):
    company_id: Optional[UUID] = Field(None, description="Required for SUPERADMIN")
    table_session_id: Optional[UUID] = None
    payment_method: PaymentMethod
    payment_status: PaymentStatus
    items: List[OrderLine] = Field(default_factory=list)


class PosOrderUpdate(BaseModel):
    """Only payment data is editable once an order exists."""
    payment_method: Optional[PaymentMethod] = None
    payment_status: Optional[PaymentStatus] = None


class PosOrderItemOut(BaseModel):
    id: UUID
    item_id: UUID
    item_name: Optional[str] = None
    quantity: int
    unit_price: Decimal
    subtotal: Decimal
    tracked_item_id: Optional[UUID]
    is_tracked_item: bool

    class Config:
        from_attributes = True


class PosOrderOut(BaseModel):
    id: UUID
    company_id: UUID
    table_session_id: Optional[UUID]
    staff_id: Optional[UUID]
    amount: Decimal
    session_cost: Optional[Decimal] = Field(None, description="Linked session's total cost, not included in amount")
    payment_method: PaymentMethod
    payment_status: PaymentStatus
    created_at: datetime
    items: List[PosOrderItemOut] = []

    class Config:
        from_attributes = True


class PosOrderFilters(BaseModel):
    table_session_id: Optional[UUID] = None
    payment_status: Optional[PaymentStatus] = None
    start: Optional[datetime] = None
    end: Optional[datetime] = None

    @field_validator("start", "end")
    @classmethod
    def normalize_bounds(cls, v):
        return to_naive_utc(v) if v is not None else v
