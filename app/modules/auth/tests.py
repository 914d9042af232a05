"""
Tests para autenticación y aislamiento por empresa
"""

import pytest
from datetime import timedelta
from uuid import uuid4

from app.common.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from app.modules.auth.dependencies import ensure_company_access, resolve_company_id
from app.modules.auth.models import UserRole
from app.modules.auth.schemas import AuthContext
from app.modules.auth.utils import create_access_token, hash_password, verify_password


class TestPasswordAndTokens:

    def test_password_hashing(self):
        hashed = hash_password("secret-pass-123")
        assert hashed != "secret-pass-123"
        assert verify_password("secret-pass-123", hashed)
        assert not verify_password("wrong-pass", hashed)
        assert not verify_password("secret-pass-123", None)

    def test_expired_token_is_rejected(self, client, sample_user):
        token = create_access_token({"sub": str(sample_user.id)}, expires_delta=timedelta(minutes=-1))
        response = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401

    def test_garbage_token_is_rejected(self, client):
        response = client.get("/auth/me", headers={"Authorization": "Bearer not-a-token"})
        assert response.status_code == 401


class TestLogin:

    def test_login_and_me(self, client, sample_user):
        response = client.post("/auth/login", json={"email": "admin@eltaco.com", "password": "secret-pass-123"})
        assert response.status_code == 200
        data = response.json()
        assert data["token_type"] == "bearer"
        assert data["user"]["role"] == "ADMIN"

        me = client.get("/auth/me", headers={"Authorization": f"Bearer {data['access_token']}"})
        assert me.status_code == 200
        assert me.json()["email"] == "admin@eltaco.com"
        assert me.json()["last_login"] is not None

    def test_wrong_password(self, client, sample_user):
        response = client.post("/auth/login", json={"email": "admin@eltaco.com", "password": "nope-nope"})
        assert response.status_code == 401

    def test_inactive_user_cannot_login(self, client, db_session, sample_user):
        sample_user.is_active = False
        db_session.commit()
        response = client.post("/auth/login", json={"email": "admin@eltaco.com", "password": "secret-pass-123"})
        assert response.status_code == 403


class TestUserCreation:

    def test_admin_creates_seller_in_own_company(self, client, auth_headers, sample_company):
        response = client.post(
            "/auth/users",
            json={"email": "nuevo@eltaco.com", "password": "password-123", "role": "SELLER"},
            headers=auth_headers
        )
        assert response.status_code == 201
        assert response.json()["company_id"] == str(sample_company.id)

    def test_admin_cannot_create_superadmin(self, client, auth_headers):
        response = client.post(
            "/auth/users",
            json={"email": "root2@eltaco.com", "password": "password-123", "role": "SUPERADMIN"},
            headers=auth_headers
        )
        assert response.status_code == 403

    def test_admin_cannot_target_other_company(self, client, auth_headers, other_company):
        response = client.post(
            "/auth/users",
            json={"email": "x@labola8.com", "password": "password-123", "company_id": str(other_company.id)},
            headers=auth_headers
        )
        assert response.status_code == 403

    def test_seller_cannot_create_users(self, client, seller_headers):
        response = client.post(
            "/auth/users", json={"email": "y@eltaco.com", "password": "password-123"}, headers=seller_headers
        )
        assert response.status_code == 403

    def test_duplicate_email(self, client, auth_headers, sample_user):
        response = client.post(
            "/auth/users", json={"email": "admin@eltaco.com", "password": "password-123"}, headers=auth_headers
        )
        assert response.status_code == 409


class TestCompanyScope:

    def test_resolve_company_for_members(self, admin_auth, other_company):
        assert resolve_company_id(admin_auth) == admin_auth.company_id
        assert resolve_company_id(admin_auth, admin_auth.company_id) == admin_auth.company_id
        with pytest.raises(PermissionDeniedError):
            resolve_company_id(admin_auth, other_company.id)

    def test_resolve_company_for_superadmin(self):
        auth = AuthContext(user_id=uuid4(), role=UserRole.SUPERADMIN)
        target = uuid4()
        assert resolve_company_id(auth, target) == target
        with pytest.raises(ValidationError):
            resolve_company_id(auth)

    def test_entity_access(self, admin_auth, other_company):
        ensure_company_access(admin_auth, admin_auth.company_id)
        with pytest.raises(NotFoundError):
            ensure_company_access(admin_auth, other_company.id, "Table")

        superadmin = AuthContext(user_id=uuid4(), role=UserRole.SUPERADMIN)
        ensure_company_access(superadmin, other_company.id)

    def test_user_without_company_is_refused(self, client, db_session, sample_user):
        sample_user.company_id = None
        db_session.commit()
        token = create_access_token({"sub": str(sample_user.id)})
        response = client.get("/tables/", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 403
