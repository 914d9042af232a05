from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Dict, List, Optional
from uuid import UUID
from datetime import date, datetime
from decimal import Decimal

from app.common.validators import (
    WEEKDAY_CODES, normalize_weekdays, validate_time_of_day, validate_timezone
)


class DayHours(BaseModel):
    enabled: bool
    start: Optional[str] = None
    end: Optional[str] = None

    @model_validator(mode="after")
    def validate_times(self):
        for value in (self.start, self.end):
            if value is not None and not validate_time_of_day(value):
                raise ValueError(f"Invalid time format '{value}'. Use HH:MM")
        return self


class BusinessHoursFields(BaseModel):
    business_hours_start: Optional[str] = Field(None, description="Opening time HH:MM (24h)")
    business_hours_end: Optional[str] = Field(None, description="Closing time HH:MM; earlier than start means next day")
    timezone: Optional[str] = Field(None, description="IANA timezone, e.g. America/Bogota")
    operating_days: Optional[List[str]] = None
    individual_day_hours: Optional[Dict[str, DayHours]] = None
    use_individual_hours: Optional[bool] = None

    @field_validator("business_hours_start", "business_hours_end")
    @classmethod
    def validate_hours(cls, v):
        if v is not None and not validate_time_of_day(v):
            raise ValueError("Invalid time format. Use HH:MM")
        return v

    @field_validator("timezone")
    @classmethod
    def validate_tz(cls, v):
        if v is not None and not validate_timezone(v):
            raise ValueError(f"Unknown timezone '{v}'")
        return v

    @field_validator("operating_days")
    @classmethod
    def validate_operating_days(cls, v):
        if v is None:
            return v
        return normalize_weekdays(v)

    @field_validator("individual_day_hours")
    @classmethod
    def validate_individual_days(cls, v):
        if v is None:
            return v
        unknown = [day for day in v if day not in WEEKDAY_CODES]
        if unknown:
            raise ValueError(f"Invalid day: {unknown[0]}")
        return v


class CompanyCreate(BusinessHoursFields):
    name: str = Field(..., min_length=1, max_length=120)
    address: Optional[str] = None
    phone: Optional[str] = None
    default_hourly_rate: Optional[Decimal] = Field(None, ge=0)


class CompanyUpdate(BusinessHoursFields):
    name: Optional[str] = Field(None, min_length=1, max_length=120)
    address: Optional[str] = None
    phone: Optional[str] = None
    default_hourly_rate: Optional[Decimal] = Field(None, ge=0)


class CompanyOut(BaseModel):
    id: UUID
    name: str
    address: Optional[str]
    phone: Optional[str]
    is_active: bool
    default_hourly_rate: Optional[Decimal]
    business_hours_start: Optional[str]
    business_hours_end: Optional[str]
    timezone: Optional[str]
    operating_days: Optional[List[str]]
    individual_day_hours: Optional[Dict[str, DayHours]]
    use_individual_hours: bool
    created_at: datetime

    class Config:
        from_attributes = True


class BusinessDayOut(BaseModel):
    date: date
    has_business_hours: bool
    use_individual_hours: bool
    start: datetime
    end: datetime
    duration_hours: float
    spans_multiple_days: bool
