"""
Tracked-item reservation.

Stock is deducted the moment an item is tracked. Later edits move stock by
the difference only: raising a tracked quantity by N sells N more, lowering
it by N returns N. Availability for a session is therefore the on-hand
quantity plus what that session already holds unsettled.
"""
import logging
from decimal import Decimal
from typing import Dict, List
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import and_, func
from sqlalchemy.orm import Session

from app.common.exceptions import ConflictError, NotFoundError, ValidationError
from app.common.validators import to_money
from app.database.database import retry_read
from app.modules.auth.dependencies import ensure_company_access
from app.modules.auth.schemas import AuthContext
from app.modules.inventory.models import InventoryItem, MovementType
from app.modules.inventory.service import InventoryService
from app.modules.sessions.models import SessionStatus, SessionTrackedItem
from app.modules.sessions.schemas import ItemAvailabilityOut, TrackItemsRequest
from app.modules.sessions.service import SessionService

logger = logging.getLogger(__name__)


class TrackedItemService:

    def __init__(self, db: Session):
        self.db = db
        self.sessions = SessionService(db)
        self.inventory = InventoryService(db)

    def _unsettled_at_price(self, session_id: UUID, item_id: UUID, unit_price: Decimal):
        return self.db.query(SessionTrackedItem).filter(
            and_(
                SessionTrackedItem.table_session_id == session_id,
                SessionTrackedItem.item_id == item_id,
                SessionTrackedItem.unit_price == unit_price,
                SessionTrackedItem.order_id.is_(None)
            )
        ).first()

    def track_items(self, session_id: UUID, request: TrackItemsRequest, auth: AuthContext) -> List[SessionTrackedItem]:
        """
        Deduct and record a batch of items against an ACTIVE session.
        All-or-nothing: one unavailable item rejects the whole batch.
        """
        # Availability is checked on the batch total per item; quantities are
        # only merged between lines captured at the same price
        requested: Dict[UUID, Dict[Decimal, int]] = {}
        for line in request.items:
            by_price = requested.setdefault(line.item_id, {})
            price = to_money(line.unit_price)
            by_price[price] = by_price.get(price, 0) + line.quantity

        try:
            session = self.sessions.lock_session(session_id)
            ensure_company_access(auth, session.company_id, "Table session")
            if session.status != SessionStatus.ACTIVE:
                raise ConflictError(f"Items can only be tracked on an active session (status {session.status.value})")

            results = []
            # Lock items in a stable order so concurrent batches cannot deadlock
            for item_id in sorted(requested, key=str):
                by_price = requested[item_id]
                item = self.inventory.lock_item(item_id)
                if item.company_id != session.company_id:
                    raise NotFoundError("Inventory item not found")
                if not item.is_active:
                    raise ValidationError(f"Item '{item.name}' is inactive")

                self.inventory.apply_movement(
                    item,
                    MovementType.SALE,
                    sum(by_price.values()),
                    reason="Tracked during session",
                    reference=f"session:{session.id}",
                    created_by=auth.user_id
                )

                for unit_price, quantity in by_price.items():
                    tracked = self._unsettled_at_price(session.id, item.id, unit_price)
                    if tracked:
                        tracked.quantity += quantity
                    else:
                        tracked = SessionTrackedItem(
                            table_session_id=session.id,
                            item_id=item.id,
                            quantity=quantity,
                            unit_price=unit_price
                        )
                        self.db.add(tracked)
                    results.append(tracked)

            self.db.commit()
            for tracked in results:
                self.db.refresh(tracked)

        except HTTPException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error tracking items on session {session_id}: {e}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Error tracking items: {str(e)}"
            )

        logger.info(f"Tracked {len(results)} item(s) on session {session_id}")
        return results

    def list_tracked_items(self, session_id: UUID, auth: AuthContext) -> List[SessionTrackedItem]:
        session = self.sessions.get_session(session_id, auth)
        query = self.db.query(SessionTrackedItem).filter(
            SessionTrackedItem.table_session_id == session.id
        ).order_by(SessionTrackedItem.created_at.desc())
        return retry_read(self.db, query.all)

    def _lock_editable(self, session_id: UUID, tracked_id: UUID, auth: AuthContext):
        session = self.sessions.lock_session(session_id)
        ensure_company_access(auth, session.company_id, "Table session")
        if session.status == SessionStatus.CANCELLED:
            raise ConflictError("Session is cancelled")

        tracked = self.db.query(SessionTrackedItem).filter(
            and_(
                SessionTrackedItem.id == tracked_id,
                SessionTrackedItem.table_session_id == session.id
            )
        ).with_for_update().populate_existing().first()
        if not tracked:
            raise NotFoundError("Tracked item not found")
        if tracked.is_settled:
            raise ConflictError("Tracked item is already settled by an order")
        return session, tracked

    def update_quantity(self, session_id: UUID, tracked_id: UUID, quantity: int, auth: AuthContext) -> SessionTrackedItem:
        """Set a new total quantity, moving only the difference through the ledger."""
        if quantity <= 0:
            raise ValidationError("Quantity must be positive; delete the tracked item to remove it")

        try:
            session, tracked = self._lock_editable(session_id, tracked_id, auth)
            delta = quantity - tracked.quantity
            if delta != 0:
                item = self.inventory.lock_item(tracked.item_id)
                self.inventory.apply_movement(
                    item,
                    MovementType.SALE if delta > 0 else MovementType.RETURN,
                    abs(delta),
                    reason="Tracked quantity changed",
                    reference=f"session:{session.id}",
                    created_by=auth.user_id
                )
                tracked.quantity = quantity

            self.db.commit()
            self.db.refresh(tracked)

        except HTTPException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error updating tracked item {tracked_id}: {e}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Error updating tracked item: {str(e)}"
            )

        logger.info(f"Tracked item {tracked.id} quantity changed by {delta:+d} to {tracked.quantity}")
        return tracked

    def remove(self, session_id: UUID, tracked_id: UUID, auth: AuthContext) -> None:
        """Return the full tracked quantity to stock and drop the record."""
        try:
            session, tracked = self._lock_editable(session_id, tracked_id, auth)
            item = self.inventory.lock_item(tracked.item_id)
            self.inventory.apply_movement(
                item,
                MovementType.RETURN,
                tracked.quantity,
                reason="Tracked item removed",
                reference=f"session:{session.id}",
                created_by=auth.user_id
            )
            self.db.delete(tracked)
            self.db.commit()

        except HTTPException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error removing tracked item {tracked_id}: {e}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Error removing tracked item: {str(e)}"
            )

        logger.info(f"Tracked item {tracked_id} removed from session {session_id}")

    def effective_availability(self, session_id: UUID, item_id: UUID, auth: AuthContext) -> ItemAvailabilityOut:
        """On-hand stock plus what this session already holds unsettled."""
        session = self.sessions.get_session(session_id, auth)
        item = self.db.query(InventoryItem).filter(
            and_(InventoryItem.id == item_id, InventoryItem.company_id == session.company_id)
        ).first()
        if not item:
            raise NotFoundError("Inventory item not found")

        tracked_quantity = self.db.query(func.coalesce(func.sum(SessionTrackedItem.quantity), 0)).filter(
            and_(
                SessionTrackedItem.table_session_id == session.id,
                SessionTrackedItem.item_id == item.id,
                SessionTrackedItem.order_id.is_(None)
            )
        ).scalar()

        return ItemAvailabilityOut(
            item_id=item.id,
            on_hand=item.quantity,
            tracked_quantity=int(tracked_quantity),
            effective_available=item.quantity + int(tracked_quantity)
        )
