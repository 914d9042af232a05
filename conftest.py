"""
Fixtures compartidos para los tests de todos los módulos.

The app is pointed at an in-memory SQLite database (single shared
connection) before anything under `app` is imported.
"""
import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENVIRONMENT"] = "test"
os.environ["DEBUG"] = "false"

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from app.main import app
from app.database.database import Base, SessionLocal, sync_engine
from app.common.mixins import utcnow
from app.modules.auth.models import User, UserRole
from app.modules.auth.schemas import AuthContext
from app.modules.auth.utils import create_access_token, hash_password
from app.modules.company.models import Company
from app.modules.inventory.models import InventoryItem, ItemType, MovementType, StockMovement
from app.modules.tables.models import Table, TableStatus


@pytest.fixture
def db_session():
    """Fresh schema per test."""
    Base.metadata.create_all(bind=sync_engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=sync_engine)


@pytest.fixture
def isolated_sessions(tmp_path):
    """
    Session factory whose sessions hold separate connections, for racing
    two transactions. LOCKING_TEST_DATABASE_URL (a throwaway Postgres)
    exercises row locks; otherwise a SQLite file whose transactions take
    the database write lock on BEGIN.
    """
    url = os.environ.get("LOCKING_TEST_DATABASE_URL")
    if url:
        engine = create_engine(url, pool_size=4)
    else:
        engine = create_engine(
            f"sqlite:///{tmp_path / 'locking.db'}",
            connect_args={"check_same_thread": False, "timeout": 15}
        )

        @event.listens_for(engine, "connect")
        def _disable_driver_begin(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None

        @event.listens_for(engine, "begin")
        def _begin_immediate(conn):
            conn.exec_driver_sql("BEGIN IMMEDIATE")

    Base.metadata.create_all(bind=engine)
    try:
        yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def client(db_session):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def sample_company(db_session):
    company = Company(name="Billares El Taco", default_hourly_rate=Decimal("8.00"))
    db_session.add(company)
    db_session.commit()
    db_session.refresh(company)
    return company


@pytest.fixture
def other_company(db_session):
    company = Company(name="Billares La Bola 8")
    db_session.add(company)
    db_session.commit()
    db_session.refresh(company)
    return company


def _make_user(db_session, email, role, company_id):
    user = User(
        email=email,
        password=hash_password("secret-pass-123"),
        first_name=role.value.title(),
        role=role,
        company_id=company_id,
        is_active=True
    )
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def sample_user(db_session, sample_company):
    """ADMIN of sample_company."""
    return _make_user(db_session, "admin@eltaco.com", UserRole.ADMIN, sample_company.id)


@pytest.fixture
def seller_user(db_session, sample_company):
    return _make_user(db_session, "seller@eltaco.com", UserRole.SELLER, sample_company.id)


@pytest.fixture
def superadmin_user(db_session):
    return _make_user(db_session, "root@cuehall.com", UserRole.SUPERADMIN, None)


@pytest.fixture
def other_admin(db_session, other_company):
    return _make_user(db_session, "admin@labola8.com", UserRole.ADMIN, other_company.id)


def _headers(user):
    token = create_access_token({"sub": str(user.id), "role": user.role.value})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers(sample_user):
    return _headers(sample_user)


@pytest.fixture
def seller_headers(seller_user):
    return _headers(seller_user)


@pytest.fixture
def superadmin_headers(superadmin_user):
    return _headers(superadmin_user)


@pytest.fixture
def other_admin_headers(other_admin):
    return _headers(other_admin)


@pytest.fixture
def admin_auth(sample_user):
    return AuthContext(user_id=sample_user.id, role=sample_user.role, company_id=sample_user.company_id)


@pytest.fixture
def seller_auth(seller_user):
    return AuthContext(user_id=seller_user.id, role=seller_user.role, company_id=seller_user.company_id)


@pytest.fixture
def other_auth(other_admin):
    return AuthContext(user_id=other_admin.id, role=other_admin.role, company_id=other_admin.company_id)


@pytest.fixture
def sample_table(db_session, sample_company):
    table = Table(company_id=sample_company.id, name="Mesa 1", hourly_rate=Decimal("10.00"), status=TableStatus.AVAILABLE)
    db_session.add(table)
    db_session.commit()
    db_session.refresh(table)
    return table


@pytest.fixture
def second_table(db_session, sample_company):
    table = Table(company_id=sample_company.id, name="Mesa 2", hourly_rate=Decimal("12.00"), status=TableStatus.AVAILABLE)
    db_session.add(table)
    db_session.commit()
    db_session.refresh(table)
    return table


@pytest.fixture
def make_item(db_session, sample_company):
    """Factory for stocked items; initial stock enters as an ADJUSTMENT."""
    def _make(name="Cerveza", quantity=10, price="3.00", item_type=ItemType.SALE, company=None, threshold=2):
        company_id = (company or sample_company).id
        item = InventoryItem(
            company_id=company_id,
            name=name,
            quantity=quantity,
            price=Decimal(price),
            item_type=item_type,
            critical_threshold=threshold,
            is_active=True,
            last_stock_update=utcnow()
        )
        db_session.add(item)
        db_session.flush()
        if quantity:
            db_session.add(StockMovement(
                company_id=company_id,
                item_id=item.id,
                movement_type=MovementType.ADJUSTMENT,
                quantity=quantity,
                reason="Initial stock"
            ))
        db_session.commit()
        db_session.refresh(item)
        return item
    return _make
