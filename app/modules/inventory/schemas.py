from pydantic import BaseModel, Field
from typing import List, Optional
from uuid import UUID
from datetime import datetime
from decimal import Decimal

from app.modules.inventory.models import ItemType, MovementType


# Category schemas
class InventoryCategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=255)
    company_id: Optional[UUID] = Field(None, description="Required for SUPERADMIN")


class InventoryCategoryOut(BaseModel):
    id: UUID
    company_id: UUID
    name: str
    description: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


# Item schemas
class InventoryItemCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    sku: Optional[str] = Field(None, max_length=50)
    category_id: Optional[UUID] = None
    price: Decimal = Field(Decimal("0"), ge=0)
    critical_threshold: int = Field(0, ge=0)
    item_type: ItemType = ItemType.SALE
    initial_quantity: int = Field(0, ge=0, description="Recorded as an 'Initial stock' ADJUSTMENT")
    cost_price: Optional[Decimal] = Field(None, ge=0)
    company_id: Optional[UUID] = Field(None, description="Required for SUPERADMIN")


class InventoryItemUpdate(BaseModel):
    """Quantity is not editable here; use stock movements."""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    sku: Optional[str] = Field(None, max_length=50)
    category_id: Optional[UUID] = None
    price: Optional[Decimal] = Field(None, ge=0)
    critical_threshold: Optional[int] = Field(None, ge=0)
    item_type: Optional[ItemType] = None
    is_active: Optional[bool] = None


class InventoryItemOut(BaseModel):
    id: UUID
    company_id: UUID
    category_id: Optional[UUID]
    name: str
    sku: Optional[str]
    quantity: int
    critical_threshold: int
    price: Decimal
    is_active: bool
    item_type: ItemType
    is_low_stock: bool
    last_stock_update: Optional[datetime]
    created_at: datetime

    class Config:
        from_attributes = True


# Movement schemas
class StockMovementCreate(BaseModel):
    item_id: UUID
    movement_type: MovementType
    quantity: int = Field(..., description="Positive units; ADJUSTMENT takes a signed delta")
    cost_price: Optional[Decimal] = Field(None, ge=0, description="Unit cost for PURCHASE movements")
    reason: Optional[str] = Field(None, max_length=255)
    reference: Optional[str] = Field(None, max_length=100)


class StockMovementOut(BaseModel):
    id: UUID
    item_id: UUID
    company_id: UUID
    movement_type: MovementType
    quantity: int
    signed_quantity: int
    cost_price: Optional[Decimal]
    reason: Optional[str]
    reference: Optional[str]
    created_by: Optional[UUID]
    created_at: datetime

    class Config:
        from_attributes = True


class InventoryOverview(BaseModel):
    categories_count: int
    items_count: int
    low_stock_items_count: int
    stock_value: Decimal = Field(..., description="Sale price x on-hand quantity over active items")
    recent_movements: List[StockMovementOut]
