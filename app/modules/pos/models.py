"""
Modelos SQLAlchemy para el módulo POS (Point of Sale)

- PosOrder: una transacción de venta finalizada, opcionalmente ligada a una
  sesión de mesa. `amount` suma las líneas; el costo de la sesión se factura
  en la propia sesión y solo se reporta junto a la orden.
- PosOrderItem: línea de la orden con precio congelado.

Integración con inventario:
- Líneas nuevas -> descuentan stock (movimiento SALE) al crear la orden
- Líneas que liquidan un tracked item -> no descuentan (ya se descontó)
"""

from app.database.database import Base
from sqlalchemy import Column, Integer, ForeignKey, Numeric, Enum
from sqlalchemy.orm import relationship
from sqlalchemy.dialects.postgresql import UUID
from uuid import uuid4
from app.common.mixins import CompanyMixin, TimestampMixin
import enum


# ===== ENUMS =====

class PaymentMethod(str, enum.Enum):
    CASH = "CASH"
    QR = "QR"
    CREDIT_CARD = "CREDIT_CARD"


class PaymentStatus(str, enum.Enum):
    PAID = "PAID"
    UNPAID = "UNPAID"


# ===== MODELOS =====

class PosOrder(Base, CompanyMixin, TimestampMixin):
    __tablename__ = "pos_orders"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    table_session_id = Column(UUID(as_uuid=True), ForeignKey("table_sessions.id"), nullable=True, index=True)
    staff_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True)
    amount = Column(Numeric(12, 2), nullable=False, default=0)
    payment_method = Column(Enum(PaymentMethod), nullable=False)
    payment_status = Column(Enum(PaymentStatus), nullable=False, index=True)

    # Relationships
    session = relationship("TableSession")
    items = relationship("PosOrderItem", back_populates="order", cascade="all, delete-orphan")

    @property
    def session_cost(self):
        return self.session.total_cost if self.session is not None else None


class PosOrderItem(Base, TimestampMixin):
    __tablename__ = "pos_order_items"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    order_id = Column(UUID(as_uuid=True), ForeignKey("pos_orders.id"), nullable=False, index=True)
    item_id = Column(UUID(as_uuid=True), ForeignKey("inventory_items.id"), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(12, 2), nullable=False)
    subtotal = Column(Numeric(12, 2), nullable=False)
    # Set when the line settles a session tracked item (stock already deducted)
    tracked_item_id = Column(UUID(as_uuid=True), nullable=True)

    # Relationships
    order = relationship("PosOrder", back_populates="items")
    item = relationship("InventoryItem")

    @property
    def is_tracked_item(self) -> bool:
        return self.tracked_item_id is not None

    @property
    def item_name(self):
        return self.item.name if self.item else None
