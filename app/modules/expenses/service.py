import logging
from datetime import datetime
from typing import List, Optional
from uuid import UUID
from sqlalchemy.orm import Session

from app.common.exceptions import NotFoundError, ValidationError
from app.database.database import retry_read
from app.modules.auth.dependencies import ensure_company_access
from app.modules.auth.schemas import AuthContext
from app.modules.expenses.models import Expense, ExpenseCategory
from app.modules.expenses.schemas import ExpenseCreate, ExpenseUpdate

logger = logging.getLogger(__name__)


def create_expense(db: Session, company_id: UUID, expense_data: ExpenseCreate, auth: AuthContext) -> Expense:
    expense = Expense(
        company_id=company_id,
        category=expense_data.category,
        description=expense_data.description,
        amount=expense_data.amount,
        expense_date=expense_data.expense_date,
        notes=expense_data.notes,
        created_by=auth.user_id
    )
    db.add(expense)
    db.commit()
    db.refresh(expense)
    logger.info(f"Expense {expense.id} ({expense.category.value} {expense.amount}) created in company {company_id}")
    return expense


def get_expense(db: Session, expense_id: UUID, auth: AuthContext) -> Expense:
    expense = retry_read(db, lambda: db.query(Expense).filter(Expense.id == expense_id).first())
    if not expense:
        raise NotFoundError("Expense not found")
    ensure_company_access(auth, expense.company_id, "Expense")
    return expense


def list_expenses(
    db: Session,
    company_id: UUID,
    category: Optional[ExpenseCategory] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    limit: int = 100,
    offset: int = 0
) -> List[Expense]:
    query = db.query(Expense).filter(Expense.company_id == company_id)
    if category:
        query = query.filter(Expense.category == category)
    if start:
        query = query.filter(Expense.expense_date >= start)
    if end:
        query = query.filter(Expense.expense_date < end)

    query = query.order_by(Expense.expense_date.desc()).offset(offset).limit(limit)
    return retry_read(db, query.all)


def update_expense(db: Session, expense_id: UUID, expense_data: ExpenseUpdate, auth: AuthContext) -> Expense:
    update_data = expense_data.model_dump(exclude_unset=True)
    if not update_data:
        raise ValidationError("No fields to update")

    expense = get_expense(db, expense_id, auth)
    for field, value in update_data.items():
        setattr(expense, field, value)
    db.commit()
    db.refresh(expense)
    logger.info(f"Expense {expense.id} updated")
    return expense


def delete_expense(db: Session, expense_id: UUID, auth: AuthContext) -> None:
    expense = get_expense(db, expense_id, auth)
    db.delete(expense)
    db.commit()
    logger.info(f"Expense {expense_id} deleted")
