"""
Tests para sesiones de mesa y consumo registrado

- Cost engine: fractional hours, rounding, rate fallback
- Lifecycle: start, end, cancel, move over the API
- Tracked items: stock deducted at tracking time, difference-only edits
- Concurrent writes: racing transactions on separate connections
"""

import threading

import pytest
from datetime import datetime, timedelta
from decimal import Decimal
from sqlalchemy.orm import Session

from app.common.exceptions import ConflictError, InsufficientStockError
from app.common.mixins import utcnow
from app.modules.auth.models import User, UserRole
from app.modules.auth.schemas import AuthContext
from app.modules.company.models import Company
from app.modules.inventory.models import InventoryItem, ItemType, MovementType, StockMovement
from app.modules.sessions.models import SessionStatus, SessionTrackedItem, TableSession
from app.modules.sessions.schemas import TrackedItemIn, TrackItemsRequest
from app.modules.sessions.service import SessionService
from app.modules.sessions.tracked_items import TrackedItemService
from app.modules.sessions.utils import (
    compute_session_cost, elapsed_hours, elapsed_milliseconds, resolve_hourly_rate
)
from app.modules.tables.models import Table, TableStatus


def start_session(client, headers, table, minutes_ago=0):
    payload = {"table_id": str(table.id)}
    if minutes_ago:
        payload["started_at"] = (utcnow() - timedelta(minutes=minutes_ago)).isoformat()
    response = client.post("/table-sessions/", json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


def track(client, headers, session_id, *lines):
    return client.post(
        f"/table-sessions/{session_id}/tracked-items",
        json={"items": [
            {"item_id": str(item.id), "quantity": quantity, "unit_price": str(item.price)}
            for item, quantity in lines
        ]},
        headers=headers
    )


def stock_of(db: Session, item) -> int:
    db.expire_all()
    return db.query(InventoryItem).filter(InventoryItem.id == item.id).one().quantity


class TestCostEngine:

    def test_ninety_minutes_at_ten(self):
        started = datetime(2025, 1, 10, 20, 0)
        assert compute_session_cost(started, started + timedelta(minutes=90), Decimal("10.00")) == Decimal("15.00")

    def test_fractional_hours_are_not_rounded_up(self):
        started = datetime(2025, 1, 10, 20, 0)
        assert elapsed_hours(started, started + timedelta(minutes=20)) == Decimal(1) / Decimal(3)
        assert compute_session_cost(started, started + timedelta(minutes=20), Decimal("9.00")) == Decimal("3.00")
        assert compute_session_cost(started, started + timedelta(minutes=1), Decimal("10.00")) == Decimal("0.17")

    def test_milliseconds_and_negative_spans(self):
        started = datetime(2025, 1, 10, 20, 0)
        assert elapsed_milliseconds(started, started + timedelta(seconds=1, microseconds=500_000)) == 1500
        assert elapsed_milliseconds(started, started - timedelta(minutes=5)) == 0

    def test_no_rate_means_no_charge(self):
        started = datetime(2025, 1, 10, 20, 0)
        assert compute_session_cost(started, started + timedelta(hours=2), None) == Decimal("0.00")

    def test_rate_falls_back_to_company_default(self, db_session: Session, sample_company):
        table = Table(company_id=sample_company.id, name="Mesa sin tarifa", status=TableStatus.AVAILABLE)
        db_session.add(table)
        db_session.commit()
        db_session.refresh(table)

        assert resolve_hourly_rate(table) == Decimal("8.00")


class TestSessionLifecycle:

    def test_end_bills_elapsed_time(self, client, auth_headers, sample_table, db_session: Session):
        session = start_session(client, auth_headers, sample_table, minutes_ago=90)
        assert session["status"] == "ACTIVE"

        response = client.patch(f"/table-sessions/{session['id']}/end", headers=auth_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "COMPLETED"
        assert Decimal(data["total_cost"]) == Decimal("15.00")
        assert data["ended_at"] is not None

        db_session.expire_all()
        assert db_session.get(Table, sample_table.id).status == TableStatus.AVAILABLE

    def test_seller_can_run_sessions(self, client, seller_headers, sample_table):
        session = start_session(client, seller_headers, sample_table, minutes_ago=30)
        response = client.get(f"/table-sessions/{session['id']}", headers=seller_headers)
        assert response.status_code == 200
        assert Decimal(response.json()["running_cost"]) >= Decimal("5.00")
        assert response.json()["total_cost"] is None

    def test_occupied_table_rejects_second_session(self, client, auth_headers, sample_table, db_session: Session):
        start_session(client, auth_headers, sample_table)

        response = client.post("/table-sessions/", json={"table_id": str(sample_table.id)}, headers=auth_headers)
        assert response.status_code == 409

        db_session.expire_all()
        active = db_session.query(TableSession).filter(
            TableSession.table_id == sample_table.id,
            TableSession.status == SessionStatus.ACTIVE
        ).count()
        assert active == 1

    def test_table_in_maintenance_cannot_start(self, client, auth_headers, sample_table, db_session: Session):
        sample_table.status = TableStatus.MAINTENANCE
        db_session.commit()

        response = client.post("/table-sessions/", json={"table_id": str(sample_table.id)}, headers=auth_headers)
        assert response.status_code == 409

    def test_future_start_is_rejected(self, client, auth_headers, sample_table):
        response = client.post(
            "/table-sessions/",
            json={"table_id": str(sample_table.id), "started_at": (utcnow() + timedelta(hours=1)).isoformat()},
            headers=auth_headers
        )
        assert response.status_code == 400

    def test_end_twice_conflicts(self, client, auth_headers, sample_table):
        session = start_session(client, auth_headers, sample_table, minutes_ago=10)
        assert client.patch(f"/table-sessions/{session['id']}/end", headers=auth_headers).status_code == 200

        response = client.patch(f"/table-sessions/{session['id']}/end", headers=auth_headers)
        assert response.status_code == 409

    def test_cancel_returns_unsettled_items(self, client, auth_headers, sample_table, make_item, db_session: Session):
        beer = make_item(name="Cerveza", quantity=10)
        session = start_session(client, auth_headers, sample_table, minutes_ago=15)
        assert track(client, auth_headers, session["id"], (beer, 3)).status_code == 201
        assert stock_of(db_session, beer) == 7

        response = client.patch(f"/table-sessions/{session['id']}/cancel", headers=auth_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "CANCELLED"
        assert data["total_cost"] is None
        assert data["ended_at"] is not None

        assert stock_of(db_session, beer) == 10
        assert db_session.query(SessionTrackedItem).count() == 0
        assert db_session.get(Table, sample_table.id).status == TableStatus.AVAILABLE

    def test_move_changes_table_and_rate(self, client, auth_headers, sample_table, second_table, db_session: Session):
        session = start_session(client, auth_headers, sample_table, minutes_ago=60)

        response = client.post(
            f"/table-sessions/{session['id']}/move",
            json={"target_table_id": str(second_table.id)},
            headers=auth_headers
        )
        assert response.status_code == 200
        assert response.json()["table_id"] == str(second_table.id)

        db_session.expire_all()
        assert db_session.get(Table, sample_table.id).status == TableStatus.AVAILABLE
        assert db_session.get(Table, second_table.id).status == TableStatus.OCCUPIED

        ended = client.patch(f"/table-sessions/{session['id']}/end", headers=auth_headers).json()
        assert Decimal(ended["total_cost"]) == Decimal("12.00")

    def test_move_to_occupied_table_conflicts(self, client, auth_headers, sample_table, second_table):
        session = start_session(client, auth_headers, sample_table)
        start_session(client, auth_headers, second_table)

        response = client.post(
            f"/table-sessions/{session['id']}/move",
            json={"target_table_id": str(second_table.id)},
            headers=auth_headers
        )
        assert response.status_code == 409

    def test_sessions_are_company_scoped(self, client, auth_headers, other_admin_headers, sample_table):
        session = start_session(client, auth_headers, sample_table)

        assert client.get(f"/table-sessions/{session['id']}", headers=other_admin_headers).status_code == 404
        assert client.patch(f"/table-sessions/{session['id']}/end", headers=other_admin_headers).status_code == 404
        assert client.post(
            "/table-sessions/", json={"table_id": str(sample_table.id)}, headers=other_admin_headers
        ).status_code == 404

    def test_list_filters_by_status(self, client, auth_headers, sample_table, second_table):
        first = start_session(client, auth_headers, sample_table)
        start_session(client, auth_headers, second_table)
        client.patch(f"/table-sessions/{first['id']}/end", headers=auth_headers)

        response = client.get("/table-sessions/?status=ACTIVE", headers=auth_headers)
        assert response.status_code == 200
        assert [s["table_id"] for s in response.json()] == [str(second_table.id)]


class TestTrackedItems:

    def test_stock_is_deducted_when_tracked(self, client, auth_headers, sample_table, make_item, db_session: Session):
        beer = make_item(name="Cerveza", quantity=5)
        session = start_session(client, auth_headers, sample_table)

        response = track(client, auth_headers, session["id"], (beer, 5))
        assert response.status_code == 201
        assert response.json()[0]["is_settled"] is False
        assert stock_of(db_session, beer) == 0

        response = track(client, auth_headers, session["id"], (beer, 1))
        assert response.status_code == 409
        assert "0 available" in response.json()["detail"]
        assert stock_of(db_session, beer) == 0

    def test_batch_is_all_or_nothing(self, client, auth_headers, sample_table, make_item, db_session: Session):
        beer = make_item(name="Cerveza", quantity=5)
        chips = make_item(name="Papas", quantity=1, price="1.50")
        session = start_session(client, auth_headers, sample_table)

        response = track(client, auth_headers, session["id"], (beer, 2), (chips, 3))
        assert response.status_code == 409

        assert stock_of(db_session, beer) == 5
        assert stock_of(db_session, chips) == 1
        assert db_session.query(SessionTrackedItem).count() == 0

    def test_repeated_lines_are_checked_together(self, client, auth_headers, sample_table, make_item, db_session: Session):
        beer = make_item(name="Cerveza", quantity=3)
        session = start_session(client, auth_headers, sample_table)

        response = track(client, auth_headers, session["id"], (beer, 2), (beer, 2))
        assert response.status_code == 409
        assert stock_of(db_session, beer) == 3

    def test_tracking_same_item_at_same_price_merges(self, client, auth_headers, sample_table, make_item, db_session: Session):
        beer = make_item(name="Cerveza", quantity=10)
        session = start_session(client, auth_headers, sample_table)

        track(client, auth_headers, session["id"], (beer, 2))
        track(client, auth_headers, session["id"], (beer, 1))

        tracked = client.get(f"/table-sessions/{session['id']}/tracked-items", headers=auth_headers).json()
        assert len(tracked) == 1
        assert tracked[0]["quantity"] == 3
        assert Decimal(tracked[0]["unit_price"]) == Decimal("3.00")
        assert tracked[0]["item_name"] == "Cerveza"
        assert stock_of(db_session, beer) == 7

    def test_new_price_is_tracked_separately(self, client, auth_headers, sample_table, make_item, db_session: Session):
        beer = make_item(name="Cerveza", quantity=10)
        session = start_session(client, auth_headers, sample_table)
        url = f"/table-sessions/{session['id']}/tracked-items"

        track(client, auth_headers, session["id"], (beer, 2))
        response = client.post(
            url,
            json={"items": [{"item_id": str(beer.id), "quantity": 1, "unit_price": "4.00"}]},
            headers=auth_headers
        )
        assert response.status_code == 201, response.text

        tracked = client.get(url, headers=auth_headers).json()
        lines = sorted((t["quantity"], Decimal(t["unit_price"])) for t in tracked)
        assert lines == [(1, Decimal("4.00")), (2, Decimal("3.00"))]
        assert sum(q * p for q, p in lines) == Decimal("10.00")
        assert stock_of(db_session, beer) == 7

    def test_batch_keeps_each_price(self, client, auth_headers, sample_table, make_item, db_session: Session):
        beer = make_item(name="Cerveza", quantity=10)
        session = start_session(client, auth_headers, sample_table)

        response = client.post(
            f"/table-sessions/{session['id']}/tracked-items",
            json={"items": [
                {"item_id": str(beer.id), "quantity": 2, "unit_price": "3.00"},
                {"item_id": str(beer.id), "quantity": 1, "unit_price": "3.50"},
                {"item_id": str(beer.id), "quantity": 1, "unit_price": "3.00"},
            ]},
            headers=auth_headers
        )
        assert response.status_code == 201, response.text

        lines = sorted((t["quantity"], Decimal(t["unit_price"])) for t in response.json())
        assert lines == [(1, Decimal("3.50")), (3, Decimal("3.00"))]
        assert stock_of(db_session, beer) == 6
        sales = db_session.query(StockMovement).filter(StockMovement.reason == "Tracked during session").all()
        assert [m.quantity for m in sales] == [4]

    def test_update_moves_only_the_difference(self, client, auth_headers, sample_table, make_item, db_session: Session):
        beer = make_item(name="Cerveza", quantity=10)
        session = start_session(client, auth_headers, sample_table)
        tracked_id = track(client, auth_headers, session["id"], (beer, 2)).json()[0]["id"]
        url = f"/table-sessions/{session['id']}/tracked-items/{tracked_id}"

        assert client.patch(url, json={"quantity": 5}, headers=auth_headers).status_code == 200
        assert stock_of(db_session, beer) == 5

        assert client.patch(url, json={"quantity": 1}, headers=auth_headers).json()["quantity"] == 1
        assert stock_of(db_session, beer) == 9

        assert client.patch(url, json={"quantity": 0}, headers=auth_headers).status_code == 400
        assert client.patch(url, json={"quantity": 11}, headers=auth_headers).status_code == 409
        assert stock_of(db_session, beer) == 9

        movements = db_session.query(StockMovement).filter(StockMovement.item_id == beer.id).all()
        assert sum(m.signed_quantity for m in movements) == 9

    def test_delete_returns_stock(self, client, auth_headers, sample_table, make_item, db_session: Session):
        beer = make_item(name="Cerveza", quantity=4)
        session = start_session(client, auth_headers, sample_table)
        tracked_id = track(client, auth_headers, session["id"], (beer, 4)).json()[0]["id"]

        response = client.delete(f"/table-sessions/{session['id']}/tracked-items/{tracked_id}", headers=auth_headers)
        assert response.status_code == 204
        assert stock_of(db_session, beer) == 4
        assert db_session.query(SessionTrackedItem).count() == 0

    def test_availability_includes_own_tracked(self, client, auth_headers, sample_table, make_item):
        beer = make_item(name="Cerveza", quantity=5)
        session = start_session(client, auth_headers, sample_table)
        track(client, auth_headers, session["id"], (beer, 5))

        response = client.get(
            f"/table-sessions/{session['id']}/tracked-items/availability/{beer.id}", headers=auth_headers
        )
        assert response.status_code == 200
        assert response.json() == {
            "item_id": str(beer.id), "on_hand": 0, "tracked_quantity": 5, "effective_available": 5
        }

    def test_cannot_track_on_ended_session(self, client, auth_headers, sample_table, make_item):
        beer = make_item(name="Cerveza", quantity=5)
        session = start_session(client, auth_headers, sample_table)
        client.patch(f"/table-sessions/{session['id']}/end", headers=auth_headers)

        assert track(client, auth_headers, session["id"], (beer, 1)).status_code == 409

    def test_other_company_item_cannot_be_tracked(self, client, auth_headers, sample_table, make_item, other_company):
        foreign = make_item(name="Cerveza ajena", quantity=5, company=other_company)
        session = start_session(client, auth_headers, sample_table)

        assert track(client, auth_headers, session["id"], (foreign, 1)).status_code == 404

    def test_inactive_item_cannot_be_tracked(self, client, auth_headers, sample_table, make_item, db_session: Session):
        beer = make_item(name="Cerveza", quantity=5)
        beer.is_active = False
        db_session.commit()
        session = start_session(client, auth_headers, sample_table)

        assert track(client, auth_headers, session["id"], (beer, 1)).status_code == 400


def seed_floor(db: Session, stock=5, tables=2):
    """Company, admin, `tables` occupied tables each with an ACTIVE session, one stocked item."""
    company = Company(name="Billares Concurrentes", default_hourly_rate=Decimal("8.00"))
    db.add(company)
    db.flush()
    admin = User(email="race@cuehall.com", password="x", role=UserRole.ADMIN, company_id=company.id, is_active=True)
    item = InventoryItem(
        company_id=company.id, name="Cerveza", quantity=stock, price=Decimal("3.00"),
        item_type=ItemType.SALE, critical_threshold=1, is_active=True, last_stock_update=utcnow()
    )
    db.add_all([admin, item])
    db.flush()
    db.add(StockMovement(
        company_id=company.id, item_id=item.id, movement_type=MovementType.ADJUSTMENT,
        quantity=stock, reason="Initial stock"
    ))

    sessions = []
    for number in range(1, tables + 1):
        table = Table(company_id=company.id, name=f"Mesa {number}", hourly_rate=Decimal("10.00"), status=TableStatus.OCCUPIED)
        db.add(table)
        db.flush()
        session = TableSession(
            company_id=company.id, table_id=table.id, status=SessionStatus.ACTIVE,
            started_at=utcnow() - timedelta(minutes=30)
        )
        db.add(session)
        db.flush()
        sessions.append(session.id)

    db.commit()
    auth = AuthContext(user_id=admin.id, role=admin.role, company_id=company.id)
    return auth, item.id, sessions


def race(factory, *calls):
    """Run each call in its own thread and session, released together. Returns results or raised errors."""
    barrier = threading.Barrier(len(calls))
    outcomes = [None] * len(calls)

    def run(index, call):
        db = factory()
        try:
            barrier.wait()
            outcomes[index] = call(db)
        except Exception as e:
            outcomes[index] = e
        finally:
            db.close()

    threads = [threading.Thread(target=run, args=(index, call)) for index, call in enumerate(calls)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=60)
    return outcomes


class TestConcurrentWrites:
    """Two transactions racing on the same rows through separate connections."""

    def test_tracking_cannot_oversell(self, isolated_sessions):
        with isolated_sessions() as db:
            auth, item_id, (first, second) = seed_floor(db, stock=5)

        request = TrackItemsRequest(items=[TrackedItemIn(item_id=item_id, quantity=3, unit_price=Decimal("3.00"))])
        outcomes = race(
            isolated_sessions,
            lambda db: TrackedItemService(db).track_items(first, request, auth),
            lambda db: TrackedItemService(db).track_items(second, request, auth),
        )

        errors = [outcome for outcome in outcomes if isinstance(outcome, Exception)]
        assert len(errors) == 1
        assert isinstance(errors[0], InsufficientStockError)
        assert "2 available" in errors[0].detail

        with isolated_sessions() as db:
            assert db.query(InventoryItem).filter(InventoryItem.id == item_id).one().quantity == 2
            movements = db.query(StockMovement).filter(StockMovement.item_id == item_id).all()
            assert sum(m.signed_quantity for m in movements) == 2
            assert sum(t.quantity for t in db.query(SessionTrackedItem).all()) == 3

    def test_end_and_cancel_serialize(self, isolated_sessions):
        with isolated_sessions() as db:
            auth, item_id, (session_id,) = seed_floor(db, stock=5, tables=1)
        request = TrackItemsRequest(items=[TrackedItemIn(item_id=item_id, quantity=2, unit_price=Decimal("3.00"))])
        with isolated_sessions() as db:
            TrackedItemService(db).track_items(session_id, request, auth)

        outcomes = race(
            isolated_sessions,
            lambda db: SessionService(db).end_session(session_id, auth).status,
            lambda db: SessionService(db).cancel_session(session_id, auth).status,
        )

        errors = [outcome for outcome in outcomes if isinstance(outcome, Exception)]
        assert len(errors) == 1
        assert isinstance(errors[0], ConflictError)
        winner = next(outcome for outcome in outcomes if not isinstance(outcome, Exception))

        with isolated_sessions() as db:
            session = db.query(TableSession).filter(TableSession.id == session_id).one()
            stock = db.query(InventoryItem).filter(InventoryItem.id == item_id).one().quantity
            assert session.status == winner
            assert session.ended_at is not None
            assert db.query(Table).filter(Table.id == session.table_id).one().status == TableStatus.AVAILABLE
            if winner == SessionStatus.COMPLETED:
                assert Decimal("5.00") <= session.total_cost < Decimal("5.10")
                assert stock == 3
                assert db.query(SessionTrackedItem).count() == 1
            else:
                assert session.total_cost is None
                assert stock == 5
                assert db.query(SessionTrackedItem).count() == 0
