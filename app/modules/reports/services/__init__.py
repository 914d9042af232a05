"""
Services package for Reports module
"""

from .dashboard import DashboardService
from .financial import FinancialReportService

__all__ = [
    "DashboardService",
    "FinancialReportService",
]
