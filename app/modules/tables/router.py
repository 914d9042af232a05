from fastapi import APIRouter, Depends, Query, status
from typing import List, Optional
from uuid import UUID
from sqlalchemy.orm import Session

from app.dependencies.dbDependecies import get_db
from app.modules.auth.dependencies import AuthDependencies, resolve_company_id
from app.modules.auth.schemas import AuthContext
from app.modules.tables.models import TableStatus
from app.modules.tables.service import TableService
from app.modules.tables.schemas import (
    TableActivityOut, TableCreate, TableMaintenanceCreate, TableMaintenanceOut,
    TableOut, TableStatusUpdate, TableUpdate
)

tables_router = APIRouter(prefix="/tables", tags=["Tables"])

@tables_router.post("/", response_model=TableOut, status_code=status.HTTP_201_CREATED)
def create_table(
    table_data: TableCreate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_admin())
):
    company_id = resolve_company_id(auth_context, table_data.company_id)
    return TableService(db).create_table(company_id, table_data, auth_context)

@tables_router.get("/", response_model=List[TableOut])
def list_tables(
    company_id: Optional[UUID] = Query(None),
    table_status: Optional[TableStatus] = Query(None, alias="status"),
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_any_role())
):
    return TableService(db).list_tables(resolve_company_id(auth_context, company_id), table_status)

@tables_router.get("/{table_id}", response_model=TableOut)
def get_table(
    table_id: UUID,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_any_role())
):
    return TableService(db).get_table(table_id, auth_context)

@tables_router.patch("/{table_id}", response_model=TableOut)
def update_table(
    table_id: UUID,
    table_data: TableUpdate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_admin())
):
    return TableService(db).update_table(table_id, table_data, auth_context)

@tables_router.patch("/{table_id}/status", response_model=TableOut)
def change_table_status(
    table_id: UUID,
    status_data: TableStatusUpdate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_any_role())
):
    """Mark a table AVAILABLE, RESERVED or MAINTENANCE."""
    return TableService(db).change_status(table_id, status_data, auth_context)

@tables_router.get("/{table_id}/activity", response_model=List[TableActivityOut])
def list_table_activity(
    table_id: UUID,
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_any_role())
):
    return TableService(db).list_activity(table_id, auth_context, limit)

@tables_router.post("/{table_id}/maintenance", response_model=TableMaintenanceOut, status_code=status.HTTP_201_CREATED)
def add_table_maintenance(
    table_id: UUID,
    data: TableMaintenanceCreate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_admin())
):
    """Record a maintenance event; its cost counts as maintenance expense."""
    return TableService(db).add_maintenance(table_id, data, auth_context)

@tables_router.get("/{table_id}/maintenance", response_model=List[TableMaintenanceOut])
def list_table_maintenance(
    table_id: UUID,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_any_role())
):
    return TableService(db).list_maintenance(table_id, auth_context)
