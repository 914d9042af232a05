from fastapi import APIRouter, Depends, Query, status
from typing import List, Optional
from uuid import UUID
from datetime import datetime

from app.common.mixins import to_naive_utc
from app.core.config import settings
from app.dependencies.dbDependecies import db_dependency
from app.modules.auth.dependencies import AuthDependencies, resolve_company_id
from app.modules.auth.schemas import AuthContext
from app.modules.expenses import service
from app.modules.expenses.models import ExpenseCategory
from app.modules.expenses.schemas import ExpenseCreate, ExpenseOut, ExpenseUpdate

expenses_router = APIRouter()

@expenses_router.post("/", response_model=ExpenseOut, status_code=status.HTTP_201_CREATED)
def create_expense(
    expense: ExpenseCreate,
    db: db_dependency,
    auth_context: AuthContext = Depends(AuthDependencies.require_any_role())
):
    company_id = resolve_company_id(auth_context, expense.company_id)
    return service.create_expense(db, company_id, expense, auth_context)

@expenses_router.get("/", response_model=List[ExpenseOut])
def list_expenses(
    db: db_dependency,
    company_id: Optional[UUID] = Query(None),
    category: Optional[ExpenseCategory] = Query(None),
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
    auth_context: AuthContext = Depends(AuthDependencies.require_any_role())
):
    return service.list_expenses(
        db,
        resolve_company_id(auth_context, company_id),
        category=category,
        start=to_naive_utc(start) if start else None,
        end=to_naive_utc(end) if end else None,
        limit=limit,
        offset=offset
    )

@expenses_router.get("/{expense_id}", response_model=ExpenseOut)
def get_expense(
    expense_id: UUID,
    db: db_dependency,
    auth_context: AuthContext = Depends(AuthDependencies.require_any_role())
):
    return service.get_expense(db, expense_id, auth_context)

@expenses_router.patch("/{expense_id}", response_model=ExpenseOut)
def update_expense(
    expense_id: UUID,
    expense: ExpenseUpdate,
    db: db_dependency,
    auth_context: AuthContext = Depends(AuthDependencies.require_admin())
):
    return service.update_expense(db, expense_id, expense, auth_context)

@expenses_router.delete("/{expense_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_expense(
    expense_id: UUID,
    db: db_dependency,
    auth_context: AuthContext = Depends(AuthDependencies.require_admin())
):
    service.delete_expense(db, expense_id, auth_context)
