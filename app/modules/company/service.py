import logging
from datetime import date
from uuid import UUID
from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.common.exceptions import ConflictError, NotFoundError, ValidationError
from app.database.database import retry_read
from app.modules.auth.dependencies import ensure_company_access
from app.modules.auth.schemas import AuthContext
from app.modules.company.models import Company
from app.modules.company.schemas import BusinessDayOut, CompanyCreate, CompanyUpdate
from app.modules.company.utils import business_hours_from_company, get_business_day_window

logger = logging.getLogger(__name__)


def _check_business_hours_consistency(company: Company) -> None:
    if bool(company.business_hours_start) != bool(company.business_hours_end):
        raise ValidationError("business_hours_start and business_hours_end must be set together")
    if company.use_individual_hours and not company.individual_day_hours:
        raise ValidationError("individual_day_hours is required when use_individual_hours is enabled")


def _dump_hours(data: dict) -> dict:
    if data.get("individual_day_hours") is not None:
        data["individual_day_hours"] = {
            day: hours if isinstance(hours, dict) else hours.model_dump()
            for day, hours in data["individual_day_hours"].items()
        }
    return data


def create_company(db: Session, company_data: CompanyCreate) -> Company:
    """Create a company (SUPERADMIN only, enforced by the router)."""
    existing = db.query(Company).filter(Company.name == company_data.name).first()
    if existing:
        raise ConflictError(f"A company named '{company_data.name}' already exists")

    data = _dump_hours(company_data.model_dump(exclude_none=True))
    company = Company(**data)
    _check_business_hours_consistency(company)

    try:
        db.add(company)
        db.commit()
        db.refresh(company)
    except IntegrityError:
        db.rollback()
        raise ConflictError("Integrity error while creating the company")

    logger.info(f"Company {company.id} created: {company.name}")
    return company


def get_company(db: Session, company_id: UUID, auth: AuthContext) -> Company:
    company = retry_read(db, lambda: db.query(Company).filter(Company.id == company_id).first())
    if not company:
        raise NotFoundError("Company not found")
    ensure_company_access(auth, company.id, "Company")
    return company


def update_company(db: Session, company_id: UUID, company_data: CompanyUpdate, auth: AuthContext) -> Company:
    company = get_company(db, company_id, auth)

    update_data = _dump_hours(company_data.model_dump(exclude_unset=True))
    try:
        for field, value in update_data.items():
            setattr(company, field, value)
        _check_business_hours_consistency(company)
        db.commit()
        db.refresh(company)
    except HTTPException:
        db.rollback()
        raise
    except IntegrityError:
        db.rollback()
        raise ConflictError("Integrity error while updating the company")
    except Exception as e:
        db.rollback()
        logger.error(f"Error updating company {company_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Internal server error: {str(e)}"
        )

    logger.info(f"Company {company.id} updated fields: {', '.join(update_data) or 'none'}")
    return company


def describe_business_day(db: Session, company_id: UUID, day: date, auth: AuthContext) -> BusinessDayOut:
    """Diagnostic view of the income window used for `day`."""
    company = get_company(db, company_id, auth)
    config = business_hours_from_company(company)
    start, end = get_business_day_window(day, config)

    return BusinessDayOut(
        date=day,
        has_business_hours=config is not None,
        use_individual_hours=bool(config and config.use_individual_hours),
        start=start,
        end=end,
        duration_hours=(end - start).total_seconds() / 3600,
        spans_multiple_days=end.date() != start.date() and end.time().isoformat() != "00:00:00",
    )
