"""
Tests para mesas: alta, estados manuales y mantenimiento
"""

import pytest
from datetime import datetime

from app.modules.tables.models import TableActivityLog


class TestTables:

    def test_create_table_logs_activity(self, client, auth_headers, db_session):
        response = client.post("/tables/", json={"name": "Mesa 3", "hourly_rate": "11.00"}, headers=auth_headers)
        assert response.status_code == 201
        table = response.json()
        assert table["status"] == "AVAILABLE"

        activity = client.get(f"/tables/{table['id']}/activity", headers=auth_headers).json()
        assert [entry["notes"] for entry in activity] == ["Table created"]

    def test_duplicate_name_conflicts(self, client, auth_headers, sample_table):
        response = client.post("/tables/", json={"name": "Mesa 1"}, headers=auth_headers)
        assert response.status_code == 409

    def test_seller_cannot_create_tables(self, client, seller_headers):
        assert client.post("/tables/", json={"name": "Mesa 9"}, headers=seller_headers).status_code == 403

    def test_list_by_status(self, client, auth_headers, sample_table, second_table):
        client.patch(f"/tables/{second_table.id}/status", json={"status": "MAINTENANCE"}, headers=auth_headers)

        response = client.get("/tables/?status=AVAILABLE", headers=auth_headers)
        assert [table["name"] for table in response.json()] == ["Mesa 1"]


class TestTableStatus:

    def test_manual_status_change(self, client, auth_headers, sample_table):
        response = client.patch(
            f"/tables/{sample_table.id}/status", json={"status": "RESERVED", "notes": "Torneo"}, headers=auth_headers
        )
        assert response.status_code == 200
        assert response.json()["status"] == "RESERVED"

        activity = client.get(f"/tables/{sample_table.id}/activity", headers=auth_headers).json()
        assert activity[0]["previous_status"] == "AVAILABLE"
        assert activity[0]["new_status"] == "RESERVED"

    def test_occupied_cannot_be_set_manually(self, client, auth_headers, sample_table):
        response = client.patch(f"/tables/{sample_table.id}/status", json={"status": "OCCUPIED"}, headers=auth_headers)
        assert response.status_code == 409

    def test_active_session_blocks_status_change(self, client, auth_headers, sample_table):
        client.post("/table-sessions/", json={"table_id": str(sample_table.id)}, headers=auth_headers)
        response = client.patch(
            f"/tables/{sample_table.id}/status", json={"status": "MAINTENANCE"}, headers=auth_headers
        )
        assert response.status_code == 409

    def test_same_status_is_invalid(self, client, auth_headers, sample_table):
        response = client.patch(f"/tables/{sample_table.id}/status", json={"status": "AVAILABLE"}, headers=auth_headers)
        assert response.status_code == 400


class TestTableMaintenance:

    def test_record_maintenance(self, client, auth_headers, sample_table):
        response = client.post(
            f"/tables/{sample_table.id}/maintenance",
            json={"description": "Cambio de paño", "cost": "45.00", "maintenance_at": "2025-03-10T15:00:00"},
            headers=auth_headers
        )
        assert response.status_code == 201
        assert response.json()["maintenance_at"] == "2025-03-10T15:00:00"

        listed = client.get(f"/tables/{sample_table.id}/maintenance", headers=auth_headers).json()
        assert len(listed) == 1

    def test_other_company_table_is_hidden(self, client, other_admin_headers, sample_table):
        assert client.get(f"/tables/{sample_table.id}", headers=other_admin_headers).status_code == 404
        response = client.post(
            f"/tables/{sample_table.id}/maintenance", json={"description": "x"}, headers=other_admin_headers
        )
        assert response.status_code == 404
