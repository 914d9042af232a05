"""
Tests para órdenes POS

Checkout combines tracked items (stock already deducted) with items
picked at checkout (deducted now). Deleting an unpaid order undoes both.
"""

import pytest
from datetime import timedelta
from decimal import Decimal
from uuid import UUID
from sqlalchemy.orm import Session

from app.common.mixins import utcnow
from app.modules.inventory.models import InventoryItem, MovementType, StockMovement
from app.modules.pos.models import PosOrder
from app.modules.sessions.models import SessionTrackedItem


def open_session(client, headers, table, minutes_ago=0):
    payload = {"table_id": str(table.id)}
    if minutes_ago:
        payload["started_at"] = (utcnow() - timedelta(minutes=minutes_ago)).isoformat()
    response = client.post("/table-sessions/", json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["id"]


def track(client, headers, session_id, item, quantity):
    response = client.post(
        f"/table-sessions/{session_id}/tracked-items",
        json={"items": [{"item_id": str(item.id), "quantity": quantity, "unit_price": str(item.price)}]},
        headers=headers
    )
    assert response.status_code == 201, response.text
    return response.json()[0]


def tracked_id_of(tracked):
    return UUID(tracked["id"])


def tracked_line(tracked):
    return {
        "kind": "tracked",
        "tracked_item_id": tracked["id"],
        "quantity": tracked["quantity"],
        "unit_price": tracked["unit_price"]
    }


def new_line(item, quantity):
    return {"kind": "new", "item_id": str(item.id), "quantity": quantity, "unit_price": str(item.price)}


def create_order(client, headers, items, session_id=None, payment_status="UNPAID"):
    payload = {"payment_method": "CASH", "payment_status": payment_status, "items": items}
    if session_id:
        payload["table_session_id"] = session_id
    return client.post("/pos-orders/", json=payload, headers=headers)


def stock_of(db: Session, item) -> int:
    db.expire_all()
    return db.query(InventoryItem).filter(InventoryItem.id == item.id).one().quantity


class TestOrderAssembly:

    def test_checkout_with_tracked_and_new_items(self, client, auth_headers, sample_table, make_item, db_session: Session):
        beer = make_item(name="Cerveza", quantity=10, price="3.00")
        snack = make_item(name="Maní", quantity=4, price="5.00")
        session_id = open_session(client, auth_headers, sample_table)
        tracked = track(client, auth_headers, session_id, beer, 2)
        assert stock_of(db_session, beer) == 8

        response = create_order(
            client, auth_headers, [tracked_line(tracked), new_line(snack, 1)], session_id=session_id
        )
        assert response.status_code == 201, response.text
        order = response.json()
        assert Decimal(order["amount"]) == Decimal("11.00")
        assert sorted(line["is_tracked_item"] for line in order["items"]) == [False, True]

        # tracked stock is not deducted a second time
        assert stock_of(db_session, beer) == 8
        assert stock_of(db_session, snack) == 3

        settled = db_session.get(SessionTrackedItem, tracked_id_of(tracked))
        assert str(settled.order_id) == order["id"]

    def test_tracked_item_settles_only_once(self, client, auth_headers, sample_table, make_item):
        beer = make_item(name="Cerveza", quantity=10)
        session_id = open_session(client, auth_headers, sample_table)
        tracked = track(client, auth_headers, session_id, beer, 2)

        assert create_order(client, auth_headers, [tracked_line(tracked)], session_id=session_id).status_code == 201
        response = create_order(client, auth_headers, [tracked_line(tracked)], session_id=session_id)
        assert response.status_code == 409

    def test_settled_tracked_item_is_frozen(self, client, auth_headers, sample_table, make_item):
        beer = make_item(name="Cerveza", quantity=10)
        session_id = open_session(client, auth_headers, sample_table)
        tracked = track(client, auth_headers, session_id, beer, 2)
        create_order(client, auth_headers, [tracked_line(tracked)], session_id=session_id)

        url = f"/table-sessions/{session_id}/tracked-items/{tracked['id']}"
        assert client.patch(url, json={"quantity": 3}, headers=auth_headers).status_code == 409
        assert client.delete(url, headers=auth_headers).status_code == 409

    def test_tracked_quantity_must_match(self, client, auth_headers, sample_table, make_item):
        beer = make_item(name="Cerveza", quantity=10)
        session_id = open_session(client, auth_headers, sample_table)
        tracked = track(client, auth_headers, session_id, beer, 2)

        line = tracked_line(tracked)
        line["quantity"] = 1
        response = create_order(client, auth_headers, [line], session_id=session_id)
        assert response.status_code == 400

    def test_tracked_line_needs_a_session(self, client, auth_headers, sample_table, make_item):
        beer = make_item(name="Cerveza", quantity=10)
        session_id = open_session(client, auth_headers, sample_table)
        tracked = track(client, auth_headers, session_id, beer, 2)

        assert create_order(client, auth_headers, [tracked_line(tracked)]).status_code == 400

    def test_line_kind_is_required(self, client, auth_headers, make_item):
        beer = make_item(name="Cerveza", quantity=10)
        line = new_line(beer, 1)
        del line["kind"]
        assert create_order(client, auth_headers, [line]).status_code == 422

    def test_walk_in_sale(self, client, auth_headers, make_item, db_session: Session):
        beer = make_item(name="Cerveza", quantity=10, price="3.00")

        response = create_order(client, auth_headers, [new_line(beer, 3)], payment_status="PAID")
        assert response.status_code == 201
        assert Decimal(response.json()["amount"]) == Decimal("9.00")
        assert response.json()["table_session_id"] is None
        assert stock_of(db_session, beer) == 7

    def test_empty_order_needs_session_cost(self, client, auth_headers, sample_table):
        assert create_order(client, auth_headers, []).status_code == 400

        session_id = open_session(client, auth_headers, sample_table, minutes_ago=90)
        assert create_order(client, auth_headers, [], session_id=session_id).status_code == 400

        client.patch(f"/table-sessions/{session_id}/end", headers=auth_headers)
        response = create_order(client, auth_headers, [], session_id=session_id)
        assert response.status_code == 201
        assert Decimal(response.json()["amount"]) == Decimal("0.00")
        assert Decimal(response.json()["session_cost"]) == Decimal("15.00")

    def test_cancelled_session_cannot_be_charged(self, client, auth_headers, sample_table, make_item):
        beer = make_item(name="Cerveza", quantity=10)
        session_id = open_session(client, auth_headers, sample_table)
        client.patch(f"/table-sessions/{session_id}/cancel", headers=auth_headers)

        response = create_order(client, auth_headers, [new_line(beer, 1)], session_id=session_id)
        assert response.status_code == 409

    def test_failed_line_rolls_back_whole_order(self, client, auth_headers, sample_table, make_item, db_session: Session):
        beer = make_item(name="Cerveza", quantity=10)
        snack = make_item(name="Maní", quantity=1, price="5.00")
        session_id = open_session(client, auth_headers, sample_table)
        tracked = track(client, auth_headers, session_id, beer, 2)

        response = create_order(
            client, auth_headers, [tracked_line(tracked), new_line(snack, 2)], session_id=session_id
        )
        assert response.status_code == 409

        db_session.expire_all()
        assert db_session.query(PosOrder).count() == 0
        assert db_session.get(SessionTrackedItem, tracked_id_of(tracked)).order_id is None
        assert stock_of(db_session, snack) == 1

    def test_orders_are_company_scoped(self, client, auth_headers, other_admin_headers, make_item, other_company):
        beer = make_item(name="Cerveza", quantity=10)
        order = create_order(client, auth_headers, [new_line(beer, 1)]).json()

        assert client.get(f"/pos-orders/{order['id']}", headers=other_admin_headers).status_code == 404
        assert client.get("/pos-orders/", headers=other_admin_headers).json() == []

        foreign = make_item(name="Cerveza ajena", quantity=5, company=other_company)
        assert create_order(client, auth_headers, [new_line(foreign, 1)]).status_code == 404

    def test_session_orders_listing(self, client, auth_headers, sample_table, make_item):
        beer = make_item(name="Cerveza", quantity=10)
        session_id = open_session(client, auth_headers, sample_table)
        create_order(client, auth_headers, [new_line(beer, 1)], session_id=session_id)
        create_order(client, auth_headers, [new_line(beer, 2)], session_id=session_id)
        create_order(client, auth_headers, [new_line(beer, 1)])

        response = client.get(f"/table-sessions/{session_id}/orders", headers=auth_headers)
        assert response.status_code == 200
        assert len(response.json()) == 2


class TestOrderPaymentAndDeletion:

    def test_update_payment(self, client, auth_headers, make_item):
        beer = make_item(name="Cerveza", quantity=10)
        order = create_order(client, auth_headers, [new_line(beer, 1)]).json()

        response = client.patch(
            f"/pos-orders/{order['id']}",
            json={"payment_status": "PAID", "payment_method": "QR"},
            headers=auth_headers
        )
        assert response.status_code == 200
        assert response.json()["payment_status"] == "PAID"
        assert response.json()["payment_method"] == "QR"

        assert client.patch(f"/pos-orders/{order['id']}", json={}, headers=auth_headers).status_code == 400

    def test_delete_restores_new_lines_and_releases_tracked(
        self, client, auth_headers, sample_table, make_item, db_session: Session
    ):
        beer = make_item(name="Cerveza", quantity=10, price="3.00")
        snack = make_item(name="Maní", quantity=4, price="5.00")
        session_id = open_session(client, auth_headers, sample_table)
        tracked = track(client, auth_headers, session_id, beer, 2)
        order = create_order(
            client, auth_headers, [tracked_line(tracked), new_line(snack, 3)], session_id=session_id
        ).json()
        assert stock_of(db_session, snack) == 1

        response = client.delete(f"/pos-orders/{order['id']}", headers=auth_headers)
        assert response.status_code == 204

        assert stock_of(db_session, snack) == 4
        # still on the session's tab, so not returned
        assert stock_of(db_session, beer) == 8
        assert db_session.get(SessionTrackedItem, tracked_id_of(tracked)).order_id is None
        assert db_session.query(PosOrder).count() == 0

        returns = db_session.query(StockMovement).filter(
            StockMovement.item_id == snack.id, StockMovement.movement_type == MovementType.RETURN
        ).all()
        assert [movement.quantity for movement in returns] == [3]

        # released tracked item can be charged again
        again = create_order(client, auth_headers, [tracked_line(tracked)], session_id=session_id)
        assert again.status_code == 201

    def test_paid_order_cannot_be_deleted(self, client, auth_headers, make_item, db_session: Session):
        beer = make_item(name="Cerveza", quantity=10)
        order = create_order(client, auth_headers, [new_line(beer, 2)], payment_status="PAID").json()

        response = client.delete(f"/pos-orders/{order['id']}", headers=auth_headers)
        assert response.status_code == 409
        assert stock_of(db_session, beer) == 8
