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
from app.modules.auth.schemas import AuthContext
from app.modules.company.models import Company
from app.modules.sessions.models import SessionStatus, TableSession
from app.modules.tables.models import Table, TableActivityLog, TableMaintenance, TableStatus
from app.modules.tables.schemas import (
    TableCreate, TableMaintenanceCreate, TableStatusUpdate, TableUpdate
)

logger = logging.getLogger(__name__)


class TableService:
    """Tables, their status history and maintenance events."""

    def __init__(self, db: Session):
        self.db = db

    def lock_table(self, table_id: UUID) -> Table:
        self.db.flush()
        table = self.db.query(Table).filter(Table.id == table_id).with_for_update().populate_existing().first()
        if not table:
            raise NotFoundError("Table not found")
        return table

    def set_status(
        self,
        table: Table,
        new_status: TableStatus,
        changed_by: Optional[UUID] = None,
        notes: Optional[str] = None
    ) -> TableActivityLog:
        """Change a table's status and append the activity log entry. Does not commit."""
        entry = TableActivityLog(
            table_id=table.id,
            previous_status=table.status,
            new_status=new_status,
            notes=notes,
            changed_by_id=changed_by,
            created_at=utcnow()
        )
        table.status = new_status
        self.db.add(entry)
        logger.info(f"Table {table.id} status {entry.previous_status.value if entry.previous_status else None} -> {new_status.value}")
        return entry

    def create_table(self, company_id: UUID, table_data: TableCreate, auth: AuthContext) -> Table:
        company = self.db.query(Company).filter(Company.id == company_id).first()
        if not company:
            raise NotFoundError("Company not found")

        try:
            table = Table(
                company_id=company_id,
                name=table_data.name,
                hourly_rate=table_data.hourly_rate,
                status=TableStatus.AVAILABLE
            )
            self.db.add(table)
            self.db.flush()
            self.db.add(TableActivityLog(
                table_id=table.id,
                previous_status=None,
                new_status=TableStatus.AVAILABLE,
                notes="Table created",
                changed_by_id=auth.user_id
            ))
            self.db.commit()
            self.db.refresh(table)
        except IntegrityError:
            self.db.rollback()
            raise ConflictError(f"A table named '{table_data.name}' already exists")

        logger.info(f"Table {table.id} '{table.name}' created in company {company_id}")
        return table

    def get_table(self, table_id: UUID, auth: AuthContext) -> Table:
        table = retry_read(self.db, lambda: self.db.query(Table).filter(Table.id == table_id).first())
        if not table:
            raise NotFoundError("Table not found")
        ensure_company_access(auth, table.company_id, "Table")
        return table

    def list_tables(self, company_id: UUID, table_status: Optional[TableStatus] = None) -> List[Table]:
        query = self.db.query(Table).filter(Table.company_id == company_id)
        if table_status:
            query = query.filter(Table.status == table_status)
        return retry_read(self.db, query.order_by(Table.name).all)

    def update_table(self, table_id: UUID, table_data: TableUpdate, auth: AuthContext) -> Table:
        table = self.get_table(table_id, auth)
        try:
            for field, value in table_data.model_dump(exclude_unset=True).items():
                setattr(table, field, value)
            self.db.commit()
            self.db.refresh(table)
        except IntegrityError:
            self.db.rollback()
            raise ConflictError(f"A table named '{table_data.name}' already exists")
        return table

    def change_status(self, table_id: UUID, status_data: TableStatusUpdate, auth: AuthContext) -> Table:
        """
        Manual status change. OCCUPIED belongs to the session engine: it can
        not be set here, and a table with an ACTIVE session cannot leave it.
        """
        if status_data.status == TableStatus.OCCUPIED:
            raise ConflictError("OCCUPIED is set by starting a session")

        try:
            table = self.lock_table(table_id)
            ensure_company_access(auth, table.company_id, "Table")

            active = self.db.query(TableSession).filter(
                and_(TableSession.table_id == table.id, TableSession.status == SessionStatus.ACTIVE)
            ).first()
            if active:
                raise ConflictError("Table has an active session; end or cancel it first")

            if table.status == status_data.status:
                raise ValidationError(f"Table is already {table.status.value}")

            self.set_status(table, status_data.status, auth.user_id, status_data.notes)
            self.db.commit()
            self.db.refresh(table)
            return table

        except HTTPException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error changing status of table {table_id}: {e}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Error changing table status: {str(e)}"
            )

    def list_activity(self, table_id: UUID, auth: AuthContext, limit: int = 100) -> List[TableActivityLog]:
        table = self.get_table(table_id, auth)
        query = self.db.query(TableActivityLog).filter(
            TableActivityLog.table_id == table.id
        ).order_by(TableActivityLog.created_at.desc()).limit(limit)
        return retry_read(self.db, query.all)

    def add_maintenance(self, table_id: UUID, data: TableMaintenanceCreate, auth: AuthContext) -> TableMaintenance:
        table = self.get_table(table_id, auth)
        maintenance = TableMaintenance(
            company_id=table.company_id,
            table_id=table.id,
            description=data.description,
            cost=data.cost,
            maintenance_at=data.maintenance_at or utcnow(),
            created_by=auth.user_id
        )
        self.db.add(maintenance)
        self.db.commit()
        self.db.refresh(maintenance)
        logger.info(f"Maintenance {maintenance.id} recorded on table {table.id} (cost {maintenance.cost})")
        return maintenance

    def list_maintenance(self, table_id: UUID, auth: AuthContext) -> List[TableMaintenance]:
        table = self.get_table(table_id, auth)
        query = self.db.query(TableMaintenance).filter(
            TableMaintenance.table_id == table.id
        ).order_by(TableMaintenance.maintenance_at.desc())
        return retry_read(self.db, query.all)
