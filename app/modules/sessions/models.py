from app.database.database import Base
from sqlalchemy import Column, String, DateTime, ForeignKey, Numeric, Enum, Integer, Index, text
from sqlalchemy.orm import relationship
from sqlalchemy.dialects.postgresql import UUID
from uuid import uuid4
from app.common.mixins import CompanyMixin, TimestampMixin, utcnow
import enum


class SessionStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class TableSession(Base, CompanyMixin, TimestampMixin):
    """
    One rental occupancy of a table. total_cost is set when the session is
    ended and stays null for cancelled sessions.
    """
    __tablename__ = "table_sessions"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    table_id = Column(UUID(as_uuid=True), ForeignKey("tables.id"), nullable=False, index=True)
    staff_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True)
    started_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    ended_at = Column(DateTime, nullable=True)
    status = Column(Enum(SessionStatus), nullable=False, default=SessionStatus.ACTIVE, index=True)
    total_cost = Column(Numeric(12, 2), nullable=True)
    staff_notes = Column(String(500), nullable=True)

    # Relationships
    table = relationship("Table")
    staff = relationship("User")
    tracked_items = relationship(
        "SessionTrackedItem", back_populates="session", order_by="SessionTrackedItem.created_at"
    )

    __table_args__ = (
        # At most one ACTIVE session per table
        Index(
            "uq_table_sessions_active_table",
            "table_id",
            unique=True,
            postgresql_where=text("status = 'ACTIVE'"),
            sqlite_where=text("status = 'ACTIVE'"),
        ),
    )


class SessionTrackedItem(Base, TimestampMixin):
    """
    Inventory consumed during a session before checkout. Stock is deducted
    when the record is created; order_id is set once an order settles it.
    """
    __tablename__ = "session_tracked_items"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    table_session_id = Column(UUID(as_uuid=True), ForeignKey("table_sessions.id"), nullable=False, index=True)
    item_id = Column(UUID(as_uuid=True), ForeignKey("inventory_items.id"), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(12, 2), nullable=False)  # Snapshot at tracking time
    order_id = Column(UUID(as_uuid=True), ForeignKey("pos_orders.id"), nullable=True, index=True)

    # Relationships
    session = relationship("TableSession", back_populates="tracked_items")
    item = relationship("InventoryItem")

    @property
    def is_settled(self) -> bool:
        return self.order_id is not None

    @property
    def item_name(self):
        return self.item.name if self.item else None
