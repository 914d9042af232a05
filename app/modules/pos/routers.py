"""
Routers FastAPI para órdenes POS
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional
from uuid import UUID
from datetime import datetime

from app.core.config import settings
from app.dependencies.dbDependecies import get_db
from app.modules.auth.dependencies import AuthDependencies, resolve_company_id
from app.modules.auth.schemas import AuthContext
from app.modules.pos.models import PaymentStatus
from app.modules.pos.services import PosOrderService
from app.modules.pos.schemas import PosOrderCreate, PosOrderFilters, PosOrderOut, PosOrderUpdate

pos_orders_router = APIRouter(prefix="/pos-orders", tags=["POS Orders"])


@pos_orders_router.post("/", response_model=PosOrderOut, status_code=status.HTTP_201_CREATED)
def create_pos_order(
    order_data: PosOrderCreate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_any_role())
):
    """
    Crear una orden POS.

    Lines with `kind="tracked"` settle items already tracked on the session
    (no new stock deduction). Lines with `kind="new"` are deducted now.
    """
    return PosOrderService(db).create_order(order_data, auth_context)


@pos_orders_router.get("/", response_model=List[PosOrderOut])
def list_pos_orders(
    company_id: Optional[UUID] = Query(None),
    table_session_id: Optional[UUID] = Query(None),
    payment_status: Optional[PaymentStatus] = Query(None),
    start: Optional[datetime] = Query(None, description="Created at or after (inclusive)"),
    end: Optional[datetime] = Query(None, description="Created before (exclusive)"),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_any_role())
):
    filters = PosOrderFilters(
        table_session_id=table_session_id,
        payment_status=payment_status,
        start=start,
        end=end
    )
    return PosOrderService(db).list_orders(
        resolve_company_id(auth_context, company_id), filters, limit, offset
    )


@pos_orders_router.get("/{order_id}", response_model=PosOrderOut)
def get_pos_order(
    order_id: UUID,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_any_role())
):
    return PosOrderService(db).get_order(order_id, auth_context)


@pos_orders_router.patch("/{order_id}", response_model=PosOrderOut)
def update_pos_order(
    order_id: UUID,
    order_data: PosOrderUpdate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_any_role())
):
    """Update payment status and/or method. Items and amounts are immutable."""
    return PosOrderService(db).update_order(order_id, order_data, auth_context)


@pos_orders_router.delete("/{order_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_pos_order(
    order_id: UUID,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_any_role())
):
    """Delete an UNPAID order, reversing its inventory effects."""
    PosOrderService(db).delete_order(order_id, auth_context)
