from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool
from app.core.config import settings
import logging
import time

logger = logging.getLogger(__name__)


def _engine_options() -> dict:
    if settings.is_sqlite:
        # Single shared connection so in-memory databases survive across threads (TestClient)
        return {
            "connect_args": {"check_same_thread": False},
            "poolclass": StaticPool,
            "echo": False,
        }
    return {
        "pool_pre_ping": True,
        "pool_size": 10,
        "max_overflow": 20,
        "echo": settings.DEBUG and settings.ENVIRONMENT == "development",
    }


sync_engine = create_engine(settings.database_url, **_engine_options())

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=sync_engine)

Base = declarative_base()


def get_db():
    """Genera una sesión de base de datos por request."""
    db = SessionLocal()
    try:
        yield db
    except Exception as e:
        logger.error(f"Database error: {e}")
        db.rollback()
        raise
    finally:
        db.close()


def retry_read(db, operation, retries: int = None, delay: float = 0.05):
    """
    Run an idempotent read against the session, retrying transient
    OperationalError (dropped connection, deadlock victim) a bounded number
    of times. Never use this for mutations.
    """
    attempts = retries if retries is not None else settings.DB_READ_RETRIES
    for attempt in range(1, attempts + 1):
        try:
            return operation()
        except OperationalError as e:
            db.rollback()
            if attempt == attempts:
                logger.error(f"Read failed after {attempts} attempts: {e}")
                raise
            logger.warning(f"Transient read failure (attempt {attempt}/{attempts}): {e}")
            time.sleep(delay * attempt)
