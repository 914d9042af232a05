from fastapi import APIRouter, Depends, Query, status
from typing import List, Optional
from uuid import UUID
from sqlalchemy.orm import Session

from app.core.config import settings
from app.dependencies.dbDependecies import get_db
from app.modules.auth.dependencies import AuthDependencies, resolve_company_id
from app.modules.auth.schemas import AuthContext
from app.modules.inventory.models import ItemType, MovementType
from app.modules.inventory.service import InventoryService
from app.modules.inventory.schemas import (
    InventoryCategoryCreate, InventoryCategoryOut, InventoryItemCreate, InventoryItemOut,
    InventoryItemUpdate, InventoryOverview, StockMovementCreate, StockMovementOut
)

categories_router = APIRouter(prefix="/inventory-categories", tags=["Inventory"])

@categories_router.post("/", response_model=InventoryCategoryOut, status_code=status.HTTP_201_CREATED)
def create_category(
    category_data: InventoryCategoryCreate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_admin())
):
    company_id = resolve_company_id(auth_context, category_data.company_id)
    return InventoryService(db).create_category(company_id, category_data)

@categories_router.get("/", response_model=List[InventoryCategoryOut])
def list_categories(
    company_id: Optional[UUID] = Query(None),
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_any_role())
):
    return InventoryService(db).list_categories(resolve_company_id(auth_context, company_id))


items_router = APIRouter(prefix="/inventory-items", tags=["Inventory"])

@items_router.post("/", response_model=InventoryItemOut, status_code=status.HTTP_201_CREATED)
def create_item(
    item_data: InventoryItemCreate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_admin())
):
    """Create an inventory item (admin only)."""
    company_id = resolve_company_id(auth_context, item_data.company_id)
    return InventoryService(db).create_item(company_id, item_data, auth_context)

@items_router.get("/", response_model=List[InventoryItemOut])
def list_items(
    company_id: Optional[UUID] = Query(None),
    category_id: Optional[UUID] = Query(None),
    is_active: Optional[bool] = Query(None),
    item_type: Optional[ItemType] = Query(None),
    search: Optional[str] = Query(None, description="Match on name or SKU"),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_any_role())
):
    return InventoryService(db).list_items(
        resolve_company_id(auth_context, company_id),
        category_id=category_id,
        is_active=is_active,
        item_type=item_type,
        search=search,
        limit=limit,
        offset=offset
    )

@items_router.get("/low-stock", response_model=List[InventoryItemOut])
def get_low_stock_items(
    company_id: Optional[UUID] = Query(None),
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_any_role())
):
    """Active items with quantity at or below their critical threshold."""
    return InventoryService(db).get_low_stock_items(resolve_company_id(auth_context, company_id))

@items_router.get("/overview", response_model=InventoryOverview)
def get_inventory_overview(
    company_id: Optional[UUID] = Query(None),
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_any_role())
):
    return InventoryService(db).get_overview(resolve_company_id(auth_context, company_id))

@items_router.get("/{item_id}", response_model=InventoryItemOut)
def get_item(
    item_id: UUID,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_any_role())
):
    return InventoryService(db).get_item(item_id, auth_context)

@items_router.patch("/{item_id}", response_model=InventoryItemOut)
def update_item(
    item_id: UUID,
    item_data: InventoryItemUpdate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_admin())
):
    """Update item data. Stock is changed only through movements."""
    return InventoryService(db).update_item(item_id, item_data, auth_context)

@items_router.post("/{item_id}/toggle-active", response_model=InventoryItemOut)
def toggle_item_active(
    item_id: UUID,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_admin())
):
    return InventoryService(db).toggle_active(item_id, auth_context)


movements_router = APIRouter(prefix="/stock-movements", tags=["Inventory Movements"])

@movements_router.post("/", response_model=StockMovementOut, status_code=status.HTTP_201_CREATED)
def create_movement(
    movement_data: StockMovementCreate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_admin())
):
    """Record a stock movement and update the item's on-hand quantity."""
    return InventoryService(db).record_movement(movement_data, auth_context)

@movements_router.get("/", response_model=List[StockMovementOut])
def list_movements(
    company_id: Optional[UUID] = Query(None),
    item_id: Optional[UUID] = Query(None),
    movement_type: Optional[MovementType] = Query(None, alias="type"),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_any_role())
):
    return InventoryService(db).list_movements(
        resolve_company_id(auth_context, company_id),
        item_id=item_id,
        movement_type=movement_type,
        limit=limit,
        offset=offset
    )
