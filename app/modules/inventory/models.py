from app.database.database import Base
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Numeric, Enum, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.dialects.postgresql import UUID
from uuid import uuid4
from app.common.mixins import CompanyMixin, TimestampMixin
import enum


class ItemType(str, enum.Enum):
    SALE = "SALE"                  # Sold to customers
    INTERNAL_USE = "INTERNAL_USE"  # Chalk, cleaning supplies, ...


class MovementType(str, enum.Enum):
    PURCHASE = "PURCHASE"
    SALE = "SALE"
    ADJUSTMENT = "ADJUSTMENT"
    RETURN = "RETURN"
    TRANSFER = "TRANSFER"


INBOUND_MOVEMENTS = (MovementType.PURCHASE, MovementType.RETURN)
OUTBOUND_MOVEMENTS = (MovementType.SALE, MovementType.TRANSFER)


class InventoryCategory(Base, CompanyMixin, TimestampMixin):
    __tablename__ = "inventory_categories"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    name = Column(String(100), nullable=False)
    description = Column(String(255), nullable=True)

    items = relationship("InventoryItem", back_populates="category")

    __table_args__ = (
        UniqueConstraint("company_id", "name", name="uq_inventory_category_company_name"),
    )


class InventoryItem(Base, CompanyMixin, TimestampMixin):
    """
    A stocked good. `quantity` is a materialized cache of the movement
    ledger and is only ever changed by applying a StockMovement.
    """
    __tablename__ = "inventory_items"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    category_id = Column(UUID(as_uuid=True), ForeignKey("inventory_categories.id"), nullable=True)
    name = Column(String(100), nullable=False)
    sku = Column(String(50), nullable=True)
    quantity = Column(Integer, nullable=False, default=0)
    critical_threshold = Column(Integer, nullable=False, default=0)
    price = Column(Numeric(12, 2), nullable=False, default=0)  # Precio de venta
    is_active = Column(Boolean, default=True, nullable=False)
    item_type = Column(Enum(ItemType), nullable=False, default=ItemType.SALE)
    last_stock_update = Column(DateTime, nullable=True)

    # Relationships
    category = relationship("InventoryCategory", back_populates="items")
    movements = relationship("StockMovement", back_populates="item", order_by="StockMovement.created_at")

    __table_args__ = (
        UniqueConstraint("company_id", "sku", name="uq_inventory_item_company_sku"),
    )

    @property
    def is_low_stock(self) -> bool:
        return self.quantity <= self.critical_threshold


class StockMovement(Base, CompanyMixin, TimestampMixin):
    """
    Append-only ledger entry.

    `quantity` is a positive magnitude for every type except ADJUSTMENT,
    which stores the signed delta. `signed_quantity` is the effect on stock.
    """
    __tablename__ = "stock_movements"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    item_id = Column(UUID(as_uuid=True), ForeignKey("inventory_items.id"), nullable=False, index=True)
    movement_type = Column(Enum(MovementType), nullable=False, index=True)
    quantity = Column(Integer, nullable=False)
    cost_price = Column(Numeric(12, 2), nullable=True)  # Unit cost, PURCHASE movements
    reason = Column(String(255), nullable=True)
    reference = Column(String(100), nullable=True)  # Session, order, etc.

    created_by = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True)

    # Relationships
    item = relationship("InventoryItem", back_populates="movements")

    @property
    def signed_quantity(self) -> int:
        return signed_effect(self.movement_type, self.quantity)


def signed_effect(movement_type: MovementType, quantity: int) -> int:
    """Effect of a movement on on-hand stock."""
    if movement_type in INBOUND_MOVEMENTS:
        return quantity
    if movement_type in OUTBOUND_MOVEMENTS:
        return -quantity
    return quantity  # ADJUSTMENT: already signed
