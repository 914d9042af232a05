from fastapi import APIRouter, Depends, Query, status
from typing import List, Optional
from uuid import UUID
from sqlalchemy.orm import Session

from app.core.config import settings
from app.dependencies.dbDependecies import get_db
from app.modules.auth.dependencies import AuthDependencies, resolve_company_id
from app.modules.auth.schemas import AuthContext
from app.modules.pos.schemas import PosOrderFilters, PosOrderOut
from app.modules.pos.services import PosOrderService
from app.modules.sessions.models import SessionStatus
from app.modules.sessions.schemas import (
    ItemAvailabilityOut, TableSessionCreate, TableSessionMove, TableSessionOut,
    TrackedItemOut, TrackedItemUpdate, TrackItemsRequest
)
from app.modules.sessions.service import SessionService
from app.modules.sessions.tracked_items import TrackedItemService

sessions_router = APIRouter(prefix="/table-sessions", tags=["Table Sessions"])

@sessions_router.post("/", response_model=TableSessionOut, status_code=status.HTTP_201_CREATED)
def start_session(
    session_data: TableSessionCreate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_any_role())
):
    """Start a session on an AVAILABLE table (optionally backdated)."""
    service = SessionService(db)
    return service.to_out(service.start_session(session_data, auth_context))

@sessions_router.get("/", response_model=List[TableSessionOut])
def list_sessions(
    company_id: Optional[UUID] = Query(None),
    table_id: Optional[UUID] = Query(None),
    session_status: Optional[SessionStatus] = Query(None, alias="status"),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_any_role())
):
    service = SessionService(db)
    sessions = service.list_sessions(
        resolve_company_id(auth_context, company_id), table_id, session_status, limit, offset
    )
    return [service.to_out(session) for session in sessions]

@sessions_router.get("/{session_id}", response_model=TableSessionOut)
def get_session(
    session_id: UUID,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_any_role())
):
    """Session detail; ACTIVE sessions include the running cost."""
    service = SessionService(db)
    return service.to_out(service.get_session(session_id, auth_context))

@sessions_router.patch("/{session_id}/end", response_model=TableSessionOut)
def end_session(
    session_id: UUID,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_any_role())
):
    service = SessionService(db)
    return service.to_out(service.end_session(session_id, auth_context))

@sessions_router.patch("/{session_id}/cancel", response_model=TableSessionOut)
def cancel_session(
    session_id: UUID,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_any_role())
):
    service = SessionService(db)
    return service.to_out(service.cancel_session(session_id, auth_context))

@sessions_router.post("/{session_id}/move", response_model=TableSessionOut)
def move_session(
    session_id: UUID,
    move_data: TableSessionMove,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_any_role())
):
    """Move an ACTIVE session to another AVAILABLE table."""
    service = SessionService(db)
    return service.to_out(service.move_session(session_id, move_data.target_table_id, auth_context))

@sessions_router.get("/{session_id}/orders", response_model=List[PosOrderOut])
def list_session_orders(
    session_id: UUID,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_any_role())
):
    session = SessionService(db).get_session(session_id, auth_context)
    return PosOrderService(db).list_orders(
        session.company_id, PosOrderFilters(table_session_id=session.id), limit=settings.MAX_PAGE_SIZE
    )

# Tracked items

@sessions_router.get("/{session_id}/tracked-items", response_model=List[TrackedItemOut])
def list_tracked_items(
    session_id: UUID,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_any_role())
):
    return TrackedItemService(db).list_tracked_items(session_id, auth_context)

@sessions_router.post("/{session_id}/tracked-items", response_model=List[TrackedItemOut], status_code=status.HTTP_201_CREATED)
def track_items(
    session_id: UUID,
    request: TrackItemsRequest,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_any_role())
):
    """Deduct items from stock now and add them to the session's tab."""
    return TrackedItemService(db).track_items(session_id, request, auth_context)

@sessions_router.get("/{session_id}/tracked-items/availability/{item_id}", response_model=ItemAvailabilityOut)
def get_item_availability(
    session_id: UUID,
    item_id: UUID,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_any_role())
):
    """On-hand stock plus what this session already tracks for the item."""
    return TrackedItemService(db).effective_availability(session_id, item_id, auth_context)

@sessions_router.patch("/{session_id}/tracked-items/{tracked_item_id}", response_model=TrackedItemOut)
def update_tracked_item(
    session_id: UUID,
    tracked_item_id: UUID,
    update: TrackedItemUpdate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_any_role())
):
    return TrackedItemService(db).update_quantity(session_id, tracked_item_id, update.quantity, auth_context)

@sessions_router.delete("/{session_id}/tracked-items/{tracked_item_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_tracked_item(
    session_id: UUID,
    tracked_item_id: UUID,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_any_role())
):
    TrackedItemService(db).remove(session_id, tracked_item_id, auth_context)
