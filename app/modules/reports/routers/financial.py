"""
Financial Reports Router

Live and saved income vs expense reports. Not available to SELLER users.
"""

from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

import pydantic
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.common.exceptions import ValidationError
from app.dependencies.dbDependecies import get_db
from app.modules.auth.dependencies import AuthDependencies, resolve_company_id
from app.modules.auth.schemas import AuthContext
from ..models import ReportType
from ..schemas import FinancialReportOut, FinancialReportRequest, FinancialSummary
from ..services.financial import FinancialReportService
from ..utils import CSV_HEADERS, create_csv_response, prepare_financial_report_csv


router = APIRouter(prefix="/financial-reports", tags=["Reports"])


def _build_request(**params) -> FinancialReportRequest:
    try:
        return FinancialReportRequest(**params)
    except pydantic.ValidationError as e:
        raise ValidationError(e.errors()[0]["msg"])


@router.get("/data", response_model=None)
def get_financial_data(
    report_type: ReportType = Query(ReportType.DAILY),
    start_date: date = Query(..., description="First day of the period"),
    end_date: Optional[date] = Query(None, description="Last day of the period (ignored for DAILY)"),
    start_at: Optional[datetime] = Query(None, description="CUSTOM only: exact start instant"),
    end_at: Optional[datetime] = Query(None, description="CUSTOM only: exact end instant"),
    company_id: Optional[UUID] = Query(None),
    export: Optional[str] = Query(None, pattern="^(csv)$", description="Export format: csv"),
    auth_context: AuthContext = Depends(AuthDependencies.require_admin()),
    db: Session = Depends(get_db)
):
    """Compute a report on the fly without saving it."""
    request = _build_request(
        company_id=resolve_company_id(auth_context, company_id),
        report_type=report_type,
        start_date=start_date,
        end_date=end_date,
        start_at=start_at,
        end_at=end_at
    )
    summary = FinancialReportService(db, request.company_id).calculate(request)

    if export == "csv":
        csv_data = prepare_financial_report_csv(summary.model_dump())
        filename = f"financial_report_{summary.start_date}_{summary.end_date}.csv"
        return create_csv_response(csv_data, filename, CSV_HEADERS["financial_report"])

    return summary


@router.post("/generate", response_model=FinancialReportOut, status_code=status.HTTP_201_CREATED)
def generate_financial_report(
    request: FinancialReportRequest,
    auth_context: AuthContext = Depends(AuthDependencies.require_admin()),
    db: Session = Depends(get_db)
):
    """Compute the same figures as /data and save them as a named report."""
    company_id = resolve_company_id(auth_context, request.company_id)
    return FinancialReportService(db, company_id).generate(request, auth_context)


@router.get("/", response_model=List[FinancialReportOut])
def list_financial_reports(
    company_id: Optional[UUID] = Query(None),
    report_type: Optional[ReportType] = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    auth_context: AuthContext = Depends(AuthDependencies.require_admin()),
    db: Session = Depends(get_db)
):
    service = FinancialReportService(db, resolve_company_id(auth_context, company_id))
    return service.list_reports(report_type, limit, offset)


@router.get("/{report_id}", response_model=FinancialReportOut)
def get_financial_report(
    report_id: UUID,
    auth_context: AuthContext = Depends(AuthDependencies.require_admin()),
    db: Session = Depends(get_db)
):
    return FinancialReportService.get_report(db, report_id, auth_context)


@router.delete("/{report_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_financial_report(
    report_id: UUID,
    auth_context: AuthContext = Depends(AuthDependencies.require_admin()),
    db: Session = Depends(get_db)
):
    FinancialReportService.delete_report(db, report_id, auth_context)
