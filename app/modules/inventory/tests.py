"""
Tests para el módulo de Inventario

- Ledger: signed effects, no negative stock, ledger == cached quantity
- Items: initial stock through the ledger, low-stock listing, overview
- Endpoints: roles and company isolation
"""

import pytest
from decimal import Decimal
from sqlalchemy.orm import Session

from app.common.exceptions import InsufficientStockError, NotFoundError, ValidationError
from app.modules.inventory.models import (
    InventoryCategory, InventoryItem, ItemType, MovementType, StockMovement, signed_effect
)
from app.modules.inventory.schemas import InventoryItemCreate, StockMovementCreate
from app.modules.inventory.service import InventoryService


def ledger_total(db: Session, item_id) -> int:
    movements = db.query(StockMovement).filter(StockMovement.item_id == item_id).all()
    return sum(movement.signed_quantity for movement in movements)


class TestSignedEffect:

    def test_inbound_and_outbound(self):
        assert signed_effect(MovementType.PURCHASE, 4) == 4
        assert signed_effect(MovementType.RETURN, 4) == 4
        assert signed_effect(MovementType.SALE, 4) == -4
        assert signed_effect(MovementType.TRANSFER, 4) == -4

    def test_adjustment_keeps_sign(self):
        assert signed_effect(MovementType.ADJUSTMENT, 3) == 3
        assert signed_effect(MovementType.ADJUSTMENT, -3) == -3


class TestInventoryLedger:

    def test_purchase_increases_stock(self, db_session: Session, make_item, admin_auth):
        item = make_item(quantity=5)
        movement = InventoryService(db_session).record_movement(
            StockMovementCreate(
                item_id=item.id, movement_type=MovementType.PURCHASE, quantity=7, cost_price=Decimal("1.50")
            ),
            admin_auth
        )

        db_session.refresh(item)
        assert item.quantity == 12
        assert movement.signed_quantity == 7
        assert movement.created_by == admin_auth.user_id
        assert item.last_stock_update is not None
        assert ledger_total(db_session, item.id) == item.quantity

    def test_sale_beyond_stock_is_rejected_atomically(self, db_session: Session, make_item, admin_auth):
        item = make_item(quantity=3)
        before = db_session.query(StockMovement).count()

        with pytest.raises(InsufficientStockError) as exc:
            InventoryService(db_session).record_movement(
                StockMovementCreate(item_id=item.id, movement_type=MovementType.SALE, quantity=4),
                admin_auth
            )

        assert exc.value.status_code == 409
        assert exc.value.available == 3
        assert "3 available" in exc.value.detail
        db_session.refresh(item)
        assert item.quantity == 3
        assert db_session.query(StockMovement).count() == before

    def test_transfer_decreases_stock(self, db_session: Session, make_item, admin_auth):
        item = make_item(quantity=6)
        InventoryService(db_session).record_movement(
            StockMovementCreate(item_id=item.id, movement_type=MovementType.TRANSFER, quantity=2),
            admin_auth
        )
        db_session.refresh(item)
        assert item.quantity == 4
        assert ledger_total(db_session, item.id) == 4

    @pytest.mark.parametrize("quantity", [0, -2])
    def test_non_positive_quantity_is_invalid(self, db_session: Session, make_item, admin_auth, quantity):
        item = make_item(quantity=5)
        with pytest.raises(ValidationError):
            InventoryService(db_session).record_movement(
                StockMovementCreate(item_id=item.id, movement_type=MovementType.PURCHASE, quantity=quantity),
                admin_auth
            )

    def test_adjustment_is_a_signed_delta(self, db_session: Session, make_item, admin_auth):
        item = make_item(quantity=5)
        service = InventoryService(db_session)

        service.record_movement(
            StockMovementCreate(item_id=item.id, movement_type=MovementType.ADJUSTMENT, quantity=-2, reason="Rotas"),
            admin_auth
        )
        db_session.refresh(item)
        assert item.quantity == 3

        with pytest.raises(InsufficientStockError):
            service.record_movement(
                StockMovementCreate(item_id=item.id, movement_type=MovementType.ADJUSTMENT, quantity=-4),
                admin_auth
            )
        db_session.refresh(item)
        assert item.quantity == 3
        assert ledger_total(db_session, item.id) == 3

    def test_inactive_item_cannot_be_sold(self, db_session: Session, make_item, admin_auth):
        item = make_item(quantity=5)
        item.is_active = False
        db_session.commit()

        with pytest.raises(ValidationError):
            InventoryService(db_session).record_movement(
                StockMovementCreate(item_id=item.id, movement_type=MovementType.SALE, quantity=1),
                admin_auth
            )

    def test_other_company_item_is_not_found(self, db_session: Session, make_item, other_auth):
        item = make_item(quantity=5)
        with pytest.raises(NotFoundError):
            InventoryService(db_session).record_movement(
                StockMovementCreate(item_id=item.id, movement_type=MovementType.PURCHASE, quantity=1),
                other_auth
            )


class TestInventoryItems:

    def test_initial_quantity_goes_through_ledger(self, db_session: Session, sample_company, admin_auth):
        item = InventoryService(db_session).create_item(
            sample_company.id,
            InventoryItemCreate(name="Tiza azul", price=Decimal("0.50"), initial_quantity=20,
                                item_type=ItemType.INTERNAL_USE),
            admin_auth
        )

        assert item.quantity == 20
        movements = db_session.query(StockMovement).filter(StockMovement.item_id == item.id).all()
        assert len(movements) == 1
        assert movements[0].movement_type == MovementType.ADJUSTMENT
        assert movements[0].reason == "Initial stock"

    def test_item_without_initial_quantity_has_no_movements(self, db_session: Session, sample_company, admin_auth):
        item = InventoryService(db_session).create_item(
            sample_company.id, InventoryItemCreate(name="Agua"), admin_auth
        )
        assert item.quantity == 0
        assert db_session.query(StockMovement).filter(StockMovement.item_id == item.id).count() == 0

    def test_low_stock_uses_critical_threshold(self, db_session: Session, sample_company, make_item):
        make_item(name="Cerveza", quantity=2, threshold=2)
        make_item(name="Gaseosa", quantity=10, threshold=2)
        inactive = make_item(name="Vino", quantity=0, threshold=1)
        inactive.is_active = False
        db_session.commit()

        low = InventoryService(db_session).get_low_stock_items(sample_company.id)
        assert [item.name for item in low] == ["Cerveza"]

    def test_overview_counts_and_stock_value(self, db_session: Session, sample_company, make_item, other_company):
        db_session.add(InventoryCategory(company_id=sample_company.id, name="Bebidas"))
        make_item(name="Cerveza", quantity=10, price="3.00")
        make_item(name="Papas", quantity=1, price="1.50")
        retired = make_item(name="Gaseosa", quantity=4, price="5.00")
        retired.is_active = False
        db_session.commit()
        make_item(name="Otra cerveza", quantity=50, company=other_company)

        overview = InventoryService(db_session).get_overview(sample_company.id, recent=2)

        assert overview.categories_count == 1
        assert overview.items_count == 3
        assert overview.low_stock_items_count == 1
        assert overview.stock_value == Decimal("31.50")
        assert len(overview.recent_movements) == 2
        assert all(m.company_id == sample_company.id for m in overview.recent_movements)


class TestInventoryEndpoints:

    def test_create_item_endpoint(self, client, auth_headers):
        response = client.post(
            "/inventory-items/",
            json={"name": "Cerveza", "price": "3.00", "initial_quantity": 12, "critical_threshold": 3},
            headers=auth_headers
        )
        assert response.status_code == 201
        data = response.json()
        assert data["quantity"] == 12
        assert data["is_low_stock"] is False

    def test_seller_cannot_record_movements(self, client, seller_headers, make_item):
        item = make_item(quantity=5)
        response = client.post(
            "/stock-movements/",
            json={"item_id": str(item.id), "movement_type": "PURCHASE", "quantity": 3},
            headers=seller_headers
        )
        assert response.status_code == 403

    def test_insufficient_stock_endpoint(self, client, auth_headers, make_item):
        item = make_item(quantity=1)
        response = client.post(
            "/stock-movements/",
            json={"item_id": str(item.id), "movement_type": "SALE", "quantity": 2},
            headers=auth_headers
        )
        assert response.status_code == 409
        assert "1 available" in response.json()["detail"]

    def test_list_movements_filtered_by_type(self, client, auth_headers, make_item):
        item = make_item(quantity=5)
        client.post(
            "/stock-movements/",
            json={"item_id": str(item.id), "movement_type": "PURCHASE", "quantity": 3, "cost_price": "2.00"},
            headers=auth_headers
        )

        response = client.get(f"/stock-movements/?item_id={item.id}&type=PURCHASE", headers=auth_headers)
        assert response.status_code == 200
        movements = response.json()
        assert len(movements) == 1
        assert movements[0]["signed_quantity"] == 3

    def test_items_are_company_scoped(self, client, other_admin_headers, make_item):
        item = make_item(quantity=5)
        assert client.get(f"/inventory-items/{item.id}", headers=other_admin_headers).status_code == 404
        assert client.get("/inventory-items/", headers=other_admin_headers).json() == []

    def test_superadmin_must_name_company(self, client, superadmin_headers, sample_company, make_item):
        make_item(quantity=5)
        assert client.get("/inventory-items/", headers=superadmin_headers).status_code == 400

        response = client.get(f"/inventory-items/?company_id={sample_company.id}", headers=superadmin_headers)
        assert response.status_code == 200
        assert len(response.json()) == 1

    def test_overview_endpoint(self, client, seller_headers, make_item):
        make_item(name="Cerveza", quantity=2, price="3.00", threshold=2)

        response = client.get("/inventory-items/overview", headers=seller_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["items_count"] == 1
        assert data["low_stock_items_count"] == 1
        assert Decimal(data["stock_value"]) == Decimal("6.00")
        assert data["recent_movements"][0]["movement_type"] == "ADJUSTMENT"
