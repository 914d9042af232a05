from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
import logging

# Import database components
from app.database.database import sync_engine, Base

# Import middleware
from app.common.middleware import RequestLoggingMiddleware, SecurityHeadersMiddleware

# Import routers
from app.modules.auth.router import auth_router
from app.modules.company.router import company_router
from app.modules.tables.router import tables_router
from app.modules.sessions.router import sessions_router
from app.modules.inventory.router import categories_router, items_router, movements_router
from app.modules.pos.routers import pos_orders_router
from app.modules.expenses.router import expenses_router
from app.modules.reports.routers import dashboard_router, financial_router as financial_reports_router

# Import models for table creation
import app.modules.auth.models
import app.modules.company.models
import app.modules.tables.models
import app.modules.sessions.models
import app.modules.inventory.models
import app.modules.pos.models
import app.modules.expenses.models
import app.modules.reports.models

from app.core.config import settings

# Configure logging
logging.basicConfig(
    level=logging.INFO if settings.ENVIRONMENT == "production" else logging.DEBUG,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# FastAPI app
app = FastAPI(
    title="CueHall API",
    description="Multi-tenant billiard hall POS: tables, sessions, inventory, orders and financial reports",
    version="1.0.0",
    docs_url="/docs" if settings.ENVIRONMENT != "production" else None,
    redoc_url="/redoc" if settings.ENVIRONMENT != "production" else None
)

# Add middleware (order matters!)
app.add_middleware(GZipMiddleware, minimum_size=1000)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestLoggingMiddleware)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Add your frontend URLs
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(auth_router, prefix="/auth", tags=["Auth"])
app.include_router(company_router, prefix="/companies", tags=["Companies"])
app.include_router(tables_router)
app.include_router(sessions_router)
app.include_router(categories_router)
app.include_router(items_router)
app.include_router(movements_router)
app.include_router(pos_orders_router)
app.include_router(expenses_router, prefix="/expenses", tags=["Expenses"])
app.include_router(financial_reports_router)
app.include_router(dashboard_router)

@app.get("/")
async def read_root():
    return {
        "message": "CueHall API is running",
        "version": "1.0.0",
        "environment": settings.ENVIRONMENT
    }

@app.get("/health")
async def health_check():
    return {"status": "healthy", "environment": settings.ENVIRONMENT}

@app.on_event("startup")
async def startup_event():
    logger.info("CueHall API starting up...")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Debug mode: {settings.DEBUG}")

    # Create database tables (only for development - no migrations in this service)
    if settings.ENVIRONMENT == "development":
        Base.metadata.create_all(bind=sync_engine)

@app.on_event("shutdown")
async def shutdown_event():
    logger.info("CueHall API shutting down...")
