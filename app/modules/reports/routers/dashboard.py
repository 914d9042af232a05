"""
Dashboard Router

Landing-page figures. Open to every role of the company.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.dependencies.dbDependecies import get_db
from app.modules.auth.dependencies import AuthDependencies, resolve_company_id
from app.modules.auth.schemas import AuthContext
from ..schemas import DashboardStats
from ..services.dashboard import DashboardService


router = APIRouter(prefix="/dashboard", tags=["Dashboard"])


@router.get("/stats", response_model=DashboardStats)
def get_dashboard_stats(
    company_id: Optional[UUID] = Query(None, description="Required for SUPERADMIN"),
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_any_role())
):
    return DashboardService(db, resolve_company_id(auth_context, company_id)).get_stats()
