"""
Tests para gastos manuales
"""

import pytest


def expense_payload(**overrides):
    payload = {
        "category": "UTILITIES",
        "description": "Factura de luz",
        "amount": "120.00",
        "expense_date": "2025-03-10T12:00:00"
    }
    payload.update(overrides)
    return payload


class TestExpenses:

    def test_create_and_get(self, client, seller_headers):
        response = client.post("/expenses/", json=expense_payload(), headers=seller_headers)
        assert response.status_code == 201
        expense = response.json()
        assert expense["category"] == "UTILITIES"

        assert client.get(f"/expenses/{expense['id']}", headers=seller_headers).status_code == 200

    def test_amount_must_be_positive(self, client, auth_headers):
        response = client.post("/expenses/", json=expense_payload(amount="0"), headers=auth_headers)
        assert response.status_code == 422

    def test_list_filters(self, client, auth_headers):
        client.post("/expenses/", json=expense_payload(), headers=auth_headers)
        client.post(
            "/expenses/",
            json=expense_payload(category="STAFF", expense_date="2025-03-12T12:00:00"),
            headers=auth_headers
        )

        by_category = client.get("/expenses/?category=STAFF", headers=auth_headers).json()
        assert [e["category"] for e in by_category] == ["STAFF"]

        by_range = client.get(
            "/expenses/?start=2025-03-10T00:00:00&end=2025-03-11T00:00:00", headers=auth_headers
        ).json()
        assert [e["category"] for e in by_range] == ["UTILITIES"]

    def test_update_and_delete_are_admin_only(self, client, auth_headers, seller_headers):
        expense = client.post("/expenses/", json=expense_payload(), headers=seller_headers).json()
        url = f"/expenses/{expense['id']}"

        assert client.patch(url, json={"amount": "99.00"}, headers=seller_headers).status_code == 403
        assert client.delete(url, headers=seller_headers).status_code == 403

        response = client.patch(url, json={"amount": "99.00"}, headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["amount"] == "99.00"

        assert client.patch(url, json={}, headers=auth_headers).status_code == 400
        assert client.delete(url, headers=auth_headers).status_code == 204
        assert client.get(url, headers=auth_headers).status_code == 404

    def test_expenses_are_company_scoped(self, client, auth_headers, other_admin_headers):
        expense = client.post("/expenses/", json=expense_payload(), headers=auth_headers).json()
        assert client.get(f"/expenses/{expense['id']}", headers=other_admin_headers).status_code == 404
        assert client.get("/expenses/", headers=other_admin_headers).json() == []
