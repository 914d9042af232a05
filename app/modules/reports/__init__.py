"""
Reports module

Financial reports (income vs expense) over the records of the other
modules, computed live or saved as FinancialReport rows.

Architecture Pattern: Service Layer
- routers/ -> FastAPI endpoints
- services/ -> aggregation queries
- schemas/ -> request and response models
- utils/ -> CSV export
"""
