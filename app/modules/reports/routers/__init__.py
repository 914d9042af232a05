"""
Routers package for Reports module
"""

from .dashboard import router as dashboard_router
from .financial import router as financial_router

__all__ = [
    "dashboard_router",
    "financial_router",
]
