"""
Utilities for Reports module

CSV export of report data.
"""

import csv
import io
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List

from fastapi import Response

from app.core.config import settings


def create_csv_response(
    data: List[Dict[str, Any]],
    filename: str,
    headers: Dict[str, str] = None
) -> Response:
    """
    Create a CSV response from a list of dictionaries.

    Args:
        data: List of dictionaries with report data
        filename: Name for the CSV file
        headers: Optional mapping of field names to CSV headers

    Returns:
        FastAPI Response with CSV content
    """
    output = io.StringIO()
    fieldnames = list(headers.keys()) if headers else (list(data[0].keys()) if data else [])
    csv_headers = list(headers.values()) if headers else fieldnames

    writer = csv.DictWriter(output, fieldnames=fieldnames, extrasaction="ignore")
    writer.writerow(dict(zip(fieldnames, csv_headers)))
    for row in data:
        writer.writerow({key: format_csv_value(value) for key, value in row.items()})

    csv_content = output.getvalue()
    output.close()

    return Response(
        content=csv_content,
        media_type="text/csv",
        headers={
            "Content-Disposition": f"attachment; filename={filename}",
            "Content-Type": "text/csv; charset=utf-8"
        }
    )


def format_csv_value(value: Any) -> str:
    """Format a value for CSV export."""
    if value is None:
        return ""
    elif isinstance(value, Decimal):
        return str(value)
    elif isinstance(value, (date, datetime)):
        return value.isoformat()
    elif isinstance(value, bool):
        return "Yes" if value else "No"
    elif hasattr(value, "value"):
        return str(value.value)
    else:
        return str(value)


def prepare_financial_report_csv(report_data: Dict[str, Any]) -> List[Dict[str, Any]]:
    """One row per report. Amounts are in the configured CURRENCY."""
    row = {field: report_data.get(field) for field in CSV_HEADERS["financial_report"]}
    row["currency"] = settings.CURRENCY
    return [row]


CSV_HEADERS = {
    "financial_report": {
        "name": "Report",
        "report_type": "Type",
        "start_date": "Start Date",
        "end_date": "End Date",
        "currency": "Currency",
        "sales_income": "Sales Income",
        "table_rent_income": "Table Rent Income",
        "other_income": "Other Income",
        "total_income": "Total Income",
        "inventory_cost": "Inventory Cost",
        "maintenance_cost": "Maintenance Cost",
        "staff_cost": "Staff Cost",
        "utility_cost": "Utility Cost",
        "other_expenses": "Other Expenses",
        "total_expense": "Total Expense",
        "net_profit": "Net Profit",
    }
}
