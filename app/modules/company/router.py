from datetime import date
from uuid import UUID
from fastapi import APIRouter, Depends, Query, status

from app.dependencies.dbDependecies import db_dependency
from app.modules.auth.dependencies import AuthDependencies
from app.modules.auth.schemas import AuthContext
from app.modules.company import service
from app.modules.company.schemas import BusinessDayOut, CompanyCreate, CompanyOut, CompanyUpdate

company_router = APIRouter()

@company_router.post("/", response_model=CompanyOut, status_code=status.HTTP_201_CREATED)
def create_company(
    company: CompanyCreate,
    db: db_dependency,
    auth_context: AuthContext = Depends(AuthDependencies.require_superadmin())
):
    """Create a company (tenant)."""
    return service.create_company(db, company)

@company_router.get("/{company_id}", response_model=CompanyOut)
def get_company(
    company_id: UUID,
    db: db_dependency,
    auth_context: AuthContext = Depends(AuthDependencies.require_any_role())
):
    return service.get_company(db, company_id, auth_context)

@company_router.patch("/{company_id}", response_model=CompanyOut)
def update_company(
    company_id: UUID,
    company: CompanyUpdate,
    db: db_dependency,
    auth_context: AuthContext = Depends(AuthDependencies.require_admin())
):
    """Update company data, hourly-rate default and business hours."""
    return service.update_company(db, company_id, company, auth_context)

@company_router.get("/{company_id}/business-day", response_model=BusinessDayOut)
def get_business_day(
    company_id: UUID,
    db: db_dependency,
    day: date = Query(..., alias="date", description="Calendar date to compute the business day for"),
    auth_context: AuthContext = Depends(AuthDependencies.require_admin())
):
    """Show the income window the financial reports use for a date."""
    return service.describe_business_day(db, company_id, day, auth_context)
