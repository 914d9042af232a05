"""
Servicios de negocio para órdenes POS (order assembly)
"""
import logging
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import and_
from sqlalchemy.orm import Session

from app.common.exceptions import ConflictError, NotFoundError, ValidationError
from app.common.validators import to_money
from app.database.database import retry_read
from app.modules.auth.dependencies import ensure_company_access, resolve_company_id
from app.modules.auth.schemas import AuthContext
from app.modules.inventory.models import MovementType
from app.modules.inventory.service import InventoryService
from app.modules.pos.models import PaymentStatus, PosOrder, PosOrderItem
from app.modules.pos.schemas import (
    NewOrderLine, PosOrderCreate, PosOrderFilters, PosOrderUpdate, TrackedOrderLine
)
from app.modules.sessions.models import SessionStatus, SessionTrackedItem
from app.modules.sessions.service import SessionService

logger = logging.getLogger(__name__)


class PosOrderService:
    """
    Builds one order from a session's tracked items plus items picked at
    checkout. Tracked lines settle existing reservations without touching
    stock; new lines are sold through the ledger. Everything commits
    together or not at all.
    """

    def __init__(self, db: Session):
        self.db = db
        self.inventory = InventoryService(db)
        self.sessions = SessionService(db)

    def create_order(self, order_data: PosOrderCreate, auth: AuthContext) -> PosOrder:
        company_id = resolve_company_id(auth, order_data.company_id)

        tracked_lines = [line for line in order_data.items if isinstance(line, TrackedOrderLine)]
        new_lines = [line for line in order_data.items if isinstance(line, NewOrderLine)]

        tracked_ids = [line.tracked_item_id for line in tracked_lines]
        if len(set(tracked_ids)) != len(tracked_ids):
            raise ValidationError("A tracked item can appear only once per order")
        if tracked_lines and order_data.table_session_id is None:
            raise ValidationError("Tracked items can only be charged on an order linked to a session")

        try:
            session = None
            if order_data.table_session_id is not None:
                session = self.sessions.lock_session(order_data.table_session_id)
                if session.company_id != company_id:
                    raise NotFoundError("Table session not found")
                if session.status == SessionStatus.CANCELLED:
                    raise ConflictError("Cannot charge a cancelled session")

            if not order_data.items and not (session is not None and session.total_cost and session.total_cost > 0):
                raise ValidationError("Nothing to charge: the order has no items and no session cost")

            order = PosOrder(
                company_id=company_id,
                table_session_id=session.id if session is not None else None,
                staff_id=auth.user_id,
                payment_method=order_data.payment_method,
                payment_status=order_data.payment_status,
                amount=Decimal("0")
            )
            self.db.add(order)
            self.db.flush()

            amount = Decimal("0")

            for line in tracked_lines:
                tracked = self.db.query(SessionTrackedItem).filter(
                    and_(
                        SessionTrackedItem.id == line.tracked_item_id,
                        SessionTrackedItem.table_session_id == session.id
                    )
                ).with_for_update().populate_existing().first()
                if not tracked:
                    raise NotFoundError(f"Tracked item {line.tracked_item_id} not found on this session")
                if tracked.is_settled:
                    raise ConflictError(f"Tracked item {tracked.id} is already settled by another order")
                if line.quantity != tracked.quantity:
                    raise ValidationError(
                        f"Tracked item {tracked.id} holds {tracked.quantity} unit(s); "
                        f"the order line must charge exactly that"
                    )

                tracked.order_id = order.id
                subtotal = to_money(line.unit_price * line.quantity)
                self.db.add(PosOrderItem(
                    order_id=order.id,
                    item_id=tracked.item_id,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                    subtotal=subtotal,
                    tracked_item_id=tracked.id
                ))
                amount += subtotal

            # Stable lock order across concurrent checkouts
            for line in sorted(new_lines, key=lambda l: str(l.item_id)):
                item = self.inventory.lock_item(line.item_id, company_id)
                self.inventory.apply_movement(
                    item,
                    MovementType.SALE,
                    line.quantity,
                    reason="POS sale",
                    reference=f"order:{order.id}",
                    created_by=auth.user_id
                )
                subtotal = to_money(line.unit_price * line.quantity)
                self.db.add(PosOrderItem(
                    order_id=order.id,
                    item_id=item.id,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                    subtotal=subtotal
                ))
                amount += subtotal

            order.amount = to_money(amount)
            self.db.commit()
            self.db.refresh(order)

        except HTTPException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error creating POS order: {e}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Error creating order: {str(e)}"
            )

        logger.info(
            f"POS order {order.id} created: amount {order.amount}, {len(tracked_lines)} tracked line(s), "
            f"{len(new_lines)} new line(s), session {order.table_session_id}"
        )
        return order

    def get_order(self, order_id: UUID, auth: AuthContext) -> PosOrder:
        order = retry_read(self.db, lambda: self.db.query(PosOrder).filter(PosOrder.id == order_id).first())
        if not order:
            raise NotFoundError("Order not found")
        ensure_company_access(auth, order.company_id, "Order")
        return order

    def list_orders(
        self,
        company_id: UUID,
        filters: Optional[PosOrderFilters] = None,
        limit: int = 100,
        offset: int = 0
    ) -> List[PosOrder]:
        query = self.db.query(PosOrder).filter(PosOrder.company_id == company_id)
        if filters:
            if filters.table_session_id:
                query = query.filter(PosOrder.table_session_id == filters.table_session_id)
            if filters.payment_status:
                query = query.filter(PosOrder.payment_status == filters.payment_status)
            if filters.start:
                query = query.filter(PosOrder.created_at >= filters.start)
            if filters.end:
                query = query.filter(PosOrder.created_at < filters.end)

        query = query.order_by(PosOrder.created_at.desc()).offset(offset).limit(limit)
        return retry_read(self.db, query.all)

    def update_order(self, order_id: UUID, order_data: PosOrderUpdate, auth: AuthContext) -> PosOrder:
        update_data = order_data.model_dump(exclude_unset=True, exclude_none=True)
        if not update_data:
            raise ValidationError("Nothing to update: provide payment_status and/or payment_method")

        order = self.get_order(order_id, auth)
        for field, value in update_data.items():
            setattr(order, field, value)
        self.db.commit()
        self.db.refresh(order)

        logger.info(f"POS order {order.id} payment updated: {order.payment_status.value}/{order.payment_method.value}")
        return order

    def delete_order(self, order_id: UUID, auth: AuthContext) -> None:
        """
        Void an UNPAID order. New lines go back to stock; tracked lines go
        back to their session as unsettled tracked items.
        """
        try:
            self.db.flush()
            order = self.db.query(PosOrder).filter(
                PosOrder.id == order_id
            ).with_for_update().populate_existing().first()
            if not order:
                raise NotFoundError("Order not found")
            ensure_company_access(auth, order.company_id, "Order")

            if order.payment_status == PaymentStatus.PAID:
                raise ConflictError("Paid orders cannot be deleted")

            released = 0
            for line in sorted(order.items, key=lambda l: str(l.item_id)):
                if line.is_tracked_item:
                    tracked = self.db.query(SessionTrackedItem).filter(
                        SessionTrackedItem.id == line.tracked_item_id
                    ).with_for_update().first()
                    if tracked is not None:
                        tracked.order_id = None
                        released += 1
                    continue

                item = self.inventory.lock_item(line.item_id)
                self.inventory.apply_movement(
                    item,
                    MovementType.RETURN,
                    line.quantity,
                    reason="POS order deleted",
                    reference=f"order:{order.id}",
                    created_by=auth.user_id
                )

            self.db.flush()
            self.db.delete(order)
            self.db.commit()

        except HTTPException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error deleting POS order {order_id}: {e}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Error deleting order: {str(e)}"
            )

        logger.info(f"POS order {order_id} deleted, {released} tracked item(s) released")
