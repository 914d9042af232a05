"""
Base service class for Reports module

Provides the company lookup plus the decimal sums and counts that every
report query relies on.
"""

from datetime import datetime
from decimal import Decimal
from typing import Tuple
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.common.exceptions import NotFoundError
from app.common.validators import to_money
from app.database.database import retry_read
from app.modules.company.models import Company

Window = Tuple[datetime, datetime]


class BaseReportService:
    """Base service class for all report services"""

    def __init__(self, db: Session, company_id: UUID):
        self.db = db
        self.company_id = company_id
        self._company = None

    @property
    def company(self) -> Company:
        if self._company is None:
            company = retry_read(
                self.db,
                lambda: self.db.query(Company).filter(Company.id == self.company_id).first()
            )
            if not company:
                raise NotFoundError("Company not found")
            self._company = company
        return self._company

    def _sum(self, expression, *criteria) -> Decimal:
        """Sum of a numeric expression as a cent-rounded Decimal (0 when no rows)"""
        query = self.db.query(func.coalesce(func.sum(expression), 0)).filter(*criteria)
        value = retry_read(self.db, query.scalar)
        return to_money(value)

    def _count(self, column, *criteria) -> int:
        query = self.db.query(func.count(column)).filter(*criteria)
        return int(retry_read(self.db, query.scalar) or 0)
