"""
Tests para compañías y ventanas de día hábil
"""

import pytest
from datetime import date, datetime
from sqlalchemy.orm import Session

from app.common.validators import normalize_weekdays, validate_time_of_day, to_money
from app.modules.company.utils import (
    BusinessHoursConfig, DayHours, GeneralHours, get_business_day_window,
    get_calendar_day_window, get_calendar_range_window
)

MONDAY = date(2025, 3, 10)


class TestValidators:

    @pytest.mark.parametrize("value,expected", [
        ("08:00", True), ("8:00", True), ("23:59", True), ("24:00", False), ("7:5", False), ("", False)
    ])
    def test_time_of_day(self, value, expected):
        assert validate_time_of_day(value) is expected

    def test_weekdays_are_normalized(self):
        assert normalize_weekdays(["sun", "MON", " mon "]) == ["MON", "SUN"]
        with pytest.raises(ValueError):
            normalize_weekdays(["FUNDAY"])

    def test_money_rounds_half_up(self):
        assert str(to_money(2.675)) == "2.68"
        assert str(to_money(None)) == "0.00"


class TestBusinessDayWindows:

    def test_calendar_windows(self):
        assert get_calendar_day_window(MONDAY) == (datetime(2025, 3, 10), datetime(2025, 3, 11))
        assert get_calendar_range_window(MONDAY, date(2025, 3, 12), "America/Bogota") == (
            datetime(2025, 3, 10, 5), datetime(2025, 3, 13, 5)
        )

    def test_same_day_hours(self):
        config = BusinessHoursConfig(use_individual_hours=False, general_hours=GeneralHours("08:00", "23:00"))
        assert get_business_day_window(MONDAY, config) == (datetime(2025, 3, 10, 8), datetime(2025, 3, 10, 23))

    def test_closing_after_midnight(self):
        config = BusinessHoursConfig(use_individual_hours=False, general_hours=GeneralHours("18:00", "02:00"))
        assert get_business_day_window(MONDAY, config) == (datetime(2025, 3, 10, 18), datetime(2025, 3, 11, 2))

    def test_non_operating_day_uses_calendar_day(self):
        config = BusinessHoursConfig(
            use_individual_hours=False,
            general_hours=GeneralHours("08:00", "23:00", operating_days=["FRI", "SAT"])
        )
        assert get_business_day_window(MONDAY, config) == (datetime(2025, 3, 10), datetime(2025, 3, 11))

    def test_individual_hours(self):
        config = BusinessHoursConfig(
            use_individual_hours=True,
            timezone="America/Bogota",
            individual_hours={
                "MON": DayHours(enabled=False),
                "TUE": DayHours(enabled=True, start="10:00", end="02:00"),
            }
        )
        assert get_business_day_window(MONDAY, config) == (datetime(2025, 3, 10, 5), datetime(2025, 3, 11, 5))
        assert get_business_day_window(date(2025, 3, 11), config) == (
            datetime(2025, 3, 11, 15), datetime(2025, 3, 12, 7)
        )


class TestCompanyEndpoints:

    def test_superadmin_creates_company(self, client, superadmin_headers):
        response = client.post(
            "/companies/",
            json={"name": "Billares Nuevo", "default_hourly_rate": "9.50", "timezone": "America/Bogota"},
            headers=superadmin_headers
        )
        assert response.status_code == 201
        assert response.json()["timezone"] == "America/Bogota"

        duplicate = client.post("/companies/", json={"name": "Billares Nuevo"}, headers=superadmin_headers)
        assert duplicate.status_code == 409

    def test_admin_cannot_create_company(self, client, auth_headers):
        assert client.post("/companies/", json={"name": "Otra"}, headers=auth_headers).status_code == 403

    def test_update_business_hours(self, client, auth_headers, sample_company):
        response = client.patch(
            f"/companies/{sample_company.id}",
            json={"business_hours_start": "18:00", "business_hours_end": "02:00", "timezone": "UTC"},
            headers=auth_headers
        )
        assert response.status_code == 200
        assert response.json()["business_hours_end"] == "02:00"

        day = client.get(f"/companies/{sample_company.id}/business-day?date=2025-03-10", headers=auth_headers)
        assert day.status_code == 200
        data = day.json()
        assert data["has_business_hours"] is True
        assert data["duration_hours"] == 8
        assert data["spans_multiple_days"] is True

    def test_half_configured_hours_are_rejected(self, client, auth_headers, sample_company):
        response = client.patch(
            f"/companies/{sample_company.id}", json={"business_hours_start": "18:00"}, headers=auth_headers
        )
        assert response.status_code == 400

    @pytest.mark.parametrize("payload", [
        {"business_hours_start": "25:00"},
        {"timezone": "Mars/Olympus"},
        {"operating_days": ["FUNDAY"]},
    ])
    def test_invalid_hours_payload(self, client, auth_headers, sample_company, payload):
        response = client.patch(f"/companies/{sample_company.id}", json=payload, headers=auth_headers)
        assert response.status_code == 422

    def test_other_company_is_hidden(self, client, auth_headers, other_company):
        assert client.get(f"/companies/{other_company.id}", headers=auth_headers).status_code == 404
