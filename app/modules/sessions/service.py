import logging
from typing import List, Optional
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import and_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.common.exceptions import ConflictError, NotFoundError, ValidationError
from app.common.mixins import utcnow
from app.database.database import retry_read
from app.modules.auth.dependencies import ensure_company_access
from app.modules.auth.models import User
from app.modules.auth.schemas import AuthContext
from app.modules.inventory.models import MovementType
from app.modules.inventory.service import InventoryService
from app.modules.sessions.models import SessionStatus, SessionTrackedItem, TableSession
from app.modules.sessions.schemas import TableSessionCreate, TableSessionOut
from app.modules.sessions.utils import compute_session_cost, resolve_hourly_rate
from app.modules.tables.models import TableStatus
from app.modules.tables.service import TableService

logger = logging.getLogger(__name__)


class SessionService:
    """
    Session lifecycle: ACTIVE -> COMPLETED | CANCELLED.

    Every transition locks the session row first, so of two concurrent
    end/cancel calls only the first finds it ACTIVE.
    """

    def __init__(self, db: Session):
        self.db = db
        self.tables = TableService(db)

    def lock_session(self, session_id: UUID) -> TableSession:
        self.db.flush()
        session = self.db.query(TableSession).filter(
            TableSession.id == session_id
        ).with_for_update().populate_existing().first()
        if not session:
            raise NotFoundError("Table session not found")
        return session

    def get_session(self, session_id: UUID, auth: AuthContext) -> TableSession:
        session = retry_read(
            self.db,
            lambda: self.db.query(TableSession).filter(TableSession.id == session_id).first()
        )
        if not session:
            raise NotFoundError("Table session not found")
        ensure_company_access(auth, session.company_id, "Table session")
        return session

    def to_out(self, session: TableSession) -> TableSessionOut:
        """Response model, with the running cost of ACTIVE sessions."""
        out = TableSessionOut.model_validate(session)
        out.hourly_rate = resolve_hourly_rate(session.table)
        if session.status == SessionStatus.ACTIVE:
            out.running_cost = compute_session_cost(session.started_at, utcnow(), out.hourly_rate)
        return out

    def start_session(self, session_data: TableSessionCreate, auth: AuthContext) -> TableSession:
        now = utcnow()
        started_at = session_data.started_at or now
        if started_at > now:
            raise ValidationError("Session start time cannot be in the future")

        try:
            table = self.tables.lock_table(session_data.table_id)
            ensure_company_access(auth, table.company_id, "Table")

            if table.status != TableStatus.AVAILABLE:
                logger.warning(f"Start rejected on table {table.id}: status {table.status.value}")
                raise ConflictError(f"Table is not available (status {table.status.value})")

            staff_id = session_data.staff_id or auth.user_id
            if session_data.staff_id is not None:
                staff = self.db.query(User).filter(User.id == session_data.staff_id).first()
                if not staff or staff.company_id != table.company_id:
                    raise NotFoundError("Staff member not found")

            session = TableSession(
                company_id=table.company_id,
                table_id=table.id,
                staff_id=staff_id,
                started_at=started_at,
                status=SessionStatus.ACTIVE,
                staff_notes=session_data.staff_notes
            )
            self.db.add(session)
            self.tables.set_status(table, TableStatus.OCCUPIED, auth.user_id, "Session started")
            self.db.commit()
            self.db.refresh(session)

        except HTTPException:
            self.db.rollback()
            raise
        except IntegrityError:
            self.db.rollback()
            raise ConflictError("Table already has an active session")
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error starting session on table {session_data.table_id}: {e}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Error starting session: {str(e)}"
            )

        logger.info(f"Session {session.id} started on table {session.table_id} at {session.started_at}")
        return session

    def _lock_active(self, session_id: UUID, auth: AuthContext, action: str) -> TableSession:
        session = self.lock_session(session_id)
        ensure_company_access(auth, session.company_id, "Table session")
        if session.status != SessionStatus.ACTIVE:
            logger.warning(f"{action} rejected on session {session.id}: status {session.status.value}")
            raise ConflictError(f"Session is not active (status {session.status.value})")
        return session

    def end_session(self, session_id: UUID, auth: AuthContext) -> TableSession:
        """Bill elapsed time, close the session and free the table."""
        try:
            session = self._lock_active(session_id, auth, "End")
            table = self.tables.lock_table(session.table_id)

            ended_at = utcnow()
            session.ended_at = ended_at
            session.total_cost = compute_session_cost(session.started_at, ended_at, resolve_hourly_rate(table))
            session.status = SessionStatus.COMPLETED
            self.tables.set_status(table, TableStatus.AVAILABLE, auth.user_id, "Session ended")

            self.db.commit()
            self.db.refresh(session)

        except HTTPException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error ending session {session_id}: {e}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Error ending session: {str(e)}"
            )

        logger.info(f"Session {session.id} completed, total cost {session.total_cost}")
        return session

    def cancel_session(self, session_id: UUID, auth: AuthContext) -> TableSession:
        """
        No charge. Unsettled tracked items go back to stock since nothing
        will bill them.
        """
        try:
            session = self._lock_active(session_id, auth, "Cancel")
            table = self.tables.lock_table(session.table_id)
            inventory = InventoryService(self.db)

            unsettled = self.db.query(SessionTrackedItem).filter(
                and_(
                    SessionTrackedItem.table_session_id == session.id,
                    SessionTrackedItem.order_id.is_(None)
                )
            ).all()
            for tracked in sorted(unsettled, key=lambda t: str(t.item_id)):
                item = inventory.lock_item(tracked.item_id)
                inventory.apply_movement(
                    item,
                    MovementType.RETURN,
                    tracked.quantity,
                    reason="Session cancelled",
                    reference=f"session:{session.id}",
                    created_by=auth.user_id
                )
                self.db.delete(tracked)

            session.ended_at = utcnow()
            session.total_cost = None
            session.status = SessionStatus.CANCELLED
            self.tables.set_status(table, TableStatus.AVAILABLE, auth.user_id, "Session cancelled")

            self.db.commit()
            self.db.refresh(session)

        except HTTPException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error cancelling session {session_id}: {e}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Error cancelling session: {str(e)}"
            )

        logger.info(f"Session {session.id} cancelled, {len(unsettled)} tracked item(s) returned to stock")
        return session

    def move_session(self, session_id: UUID, target_table_id: UUID, auth: AuthContext) -> TableSession:
        """Re-point an ACTIVE session to another AVAILABLE table of the same company."""
        try:
            session = self._lock_active(session_id, auth, "Move")
            if session.table_id == target_table_id:
                raise ValidationError("Session is already on that table")

            # Lock both tables in a stable order
            first, second = sorted([session.table_id, target_table_id], key=str)
            locked = {first: self.tables.lock_table(first), second: self.tables.lock_table(second)}
            source, target = locked[session.table_id], locked[target_table_id]

            if target.company_id != session.company_id:
                raise NotFoundError("Table not found")
            if target.status != TableStatus.AVAILABLE:
                raise ConflictError(f"Target table is not available (status {target.status.value})")

            session.table_id = target.id
            self.tables.set_status(source, TableStatus.AVAILABLE, auth.user_id, f"Session moved to {target.name}")
            self.tables.set_status(target, TableStatus.OCCUPIED, auth.user_id, f"Session moved from {source.name}")

            self.db.commit()
            self.db.refresh(session)

        except HTTPException:
            self.db.rollback()
            raise
        except IntegrityError:
            self.db.rollback()
            raise ConflictError("Target table already has an active session")
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error moving session {session_id}: {e}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Error moving session: {str(e)}"
            )

        logger.info(f"Session {session.id} moved to table {target_table_id}")
        return session

    def list_sessions(
        self,
        company_id: UUID,
        table_id: Optional[UUID] = None,
        session_status: Optional[SessionStatus] = None,
        limit: int = 100,
        offset: int = 0
    ) -> List[TableSession]:
        query = self.db.query(TableSession).filter(TableSession.company_id == company_id)
        if table_id:
            query = query.filter(TableSession.table_id == table_id)
        if session_status:
            query = query.filter(TableSession.status == session_status)

        query = query.order_by(TableSession.started_at.desc()).offset(offset).limit(limit)
        return retry_read(self.db, query.all)
