# Overview: Pytest coverage for registration, login, sessions and role enforcement.

"""
Authentication & Authorization Tests

- registration creates a restaurant with its first admin
- login issues an opaque bearer token; logout revokes it
- 401 without/with a bad token, 403 for the wrong role
"""

from datetime import timedelta

import pytest

from resto.models import Restaurant, User, SessionToken
from resto.services.session_service import hash_token, validate_session


REGISTRATION = {
    "name": "Ana Gomez",
    "email": "Ana@LaEsquina.com",
    "password": "Password123!",
    "restaurant_name": "La Esquina",
    "restaurant_address": {
        "street": "Cra 7 # 12-34",
        "city": "Medellin",
        "state": "Antioquia",
        "zip_code": "050001",
        "country": "Colombia",
    },
    "restaurant_contact": {"phone": "+57 300 111 2233", "email": "hola@laesquina.com"},
}


class TestRegister:

    def test_register_creates_restaurant_and_admin(self, client, db_session):
        resp = client.post("/api/auth/register", json=REGISTRATION)
        assert resp.status_code == 201
        data = resp.json["data"]
        assert data["token"]
        assert data["user"]["role"] == "admin"
        assert data["user"]["email"] == "ana@laesquina.com"
        assert data["user"]["restaurant"]["name"] == "La Esquina"
        assert "password_hash" not in data["user"]

        assert db_session.query(Restaurant).count() == 1
        restaurant = db_session.query(Restaurant).one()
        assert restaurant.currency == "COP"
        assert restaurant.business_hours["monday"] == {"open": "08:00", "close": "22:00", "is_open": True}

    def test_token_works_immediately(self, client, db_session):
        token = client.post("/api/auth/register", json=REGISTRATION).json["data"]["token"]
        resp = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 200
        assert resp.json["data"]["user"]["name"] == "Ana Gomez"

    def test_duplicate_email(self, client, db_session, admin_a):
        resp = client.post("/api/auth/register", json=dict(REGISTRATION, email="admin@a.com"))
        assert resp.status_code == 400
        assert resp.json["message"] == "A user with this email already exists"

    def test_all_problems_reported(self, client, db_session):
        payload = dict(REGISTRATION, name="A", password="weak", restaurant_address={})
        resp = client.post("/api/auth/register", json=payload)
        assert resp.status_code == 400
        fields = {e["field"] for e in resp.json["errors"]}
        assert {"name", "password", "restaurant_address.street", "restaurant_address.country"} <= fields
        assert db_session.query(Restaurant).count() == 0

    @pytest.mark.parametrize("password", ["short1!", "alllowercase1!", "ALLUPPERCASE1!", "NoDigits!!", "NoSpecial123"])
    def test_weak_passwords_rejected(self, client, db_session, password):
        resp = client.post("/api/auth/register", json=dict(REGISTRATION, password=password))
        assert resp.status_code == 400


class TestLogin:

    def test_login_success(self, client, admin_a, reload):
        resp = client.post("/api/auth/login", json={"email": "ADMIN@a.com", "password": "Password123!"})
        assert resp.status_code == 200
        assert resp.json["data"]["token"]
        assert resp.json["data"]["expires_at"].endswith("Z")
        assert reload(admin_a).last_login_at is not None

    def test_wrong_password(self, client, admin_a):
        resp = client.post("/api/auth/login", json={"email": "admin@a.com", "password": "Wrong123!"})
        assert resp.status_code == 401
        assert resp.json["message"] == "Invalid credentials"

    def test_unknown_email_same_message(self, client, db_session):
        resp = client.post("/api/auth/login", json={"email": "ghost@a.com", "password": "Password123!"})
        assert resp.status_code == 401
        assert resp.json["message"] == "Invalid credentials"

    def test_inactive_user(self, client, db_session, admin_a):
        admin_a.is_active = False
        db_session.commit()
        resp = client.post("/api/auth/login", json={"email": "admin@a.com", "password": "Password123!"})
        assert resp.status_code == 401

    def test_missing_fields(self, client, db_session):
        resp = client.post("/api/auth/login", json={})
        assert resp.status_code == 400


class TestSessions:

    def test_no_token(self, client, db_session):
        resp = client.get("/api/auth/me")
        assert resp.status_code == 401
        assert resp.json["status"] == "error"

    def test_garbage_token(self, client, db_session):
        resp = client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-token"})
        assert resp.status_code == 401

    def test_logout_revokes(self, client, admin_headers):
        assert client.post("/api/auth/logout", headers=admin_headers).status_code == 200
        assert client.get("/api/auth/me", headers=admin_headers).status_code == 401

    def test_token_stored_as_hash(self, client, db_session, admin_headers):
        token = admin_headers["Authorization"].split(" ", 1)[1]
        session = db_session.query(SessionToken).one()
        assert session.token_hash == hash_token(token)
        assert session.token_hash != token

    def test_idle_session_revoked(self, db_session, admin_headers):
        token = admin_headers["Authorization"].split(" ", 1)[1]
        session = db_session.query(SessionToken).one()
        session.last_used_at = session.last_used_at - timedelta(hours=48)
        db_session.commit()

        assert validate_session(token) is None
        db_session.refresh(session)
        assert session.is_revoked is True
        assert session.revoked_reason == "Idle timeout"

    def test_deactivated_user_loses_session(self, client, db_session, admin_a, admin_headers):
        admin_a.is_active = False
        db_session.commit()
        assert client.get("/api/auth/me", headers=admin_headers).status_code == 401


class TestAccountSelfService:

    def test_preferences_merge(self, client, employee_headers):
        resp = client.put("/api/auth/preferences", json={"dark_mode": True, "language": "en"}, headers=employee_headers)
        assert resp.status_code == 200
        prefs = resp.json["data"]["user"]["preferences"]
        assert prefs["dark_mode"] is True
        assert prefs["language"] == "en"
        assert prefs["notifications"] is True

    def test_preferences_rejects_unknown_language(self, client, employee_headers):
        resp = client.put("/api/auth/preferences", json={"language": "fr"}, headers=employee_headers)
        assert resp.status_code == 400

    def test_change_password_keeps_current_session_only(self, client, db_session, employee_a, employee_headers):
        other = client.post("/api/auth/login", json={"email": "employee@a.com", "password": "Password123!"})
        other_headers = {"Authorization": f"Bearer {other.json['data']['token']}"}

        resp = client.post(
            "/api/auth/change-password",
            json={"current_password": "Password123!", "new_password": "NewPassword456!"},
            headers=employee_headers,
        )
        assert resp.status_code == 200
        assert client.get("/api/auth/me", headers=employee_headers).status_code == 200
        assert client.get("/api/auth/me", headers=other_headers).status_code == 401

    def test_change_password_wrong_current(self, client, employee_headers):
        resp = client.post(
            "/api/auth/change-password",
            json={"current_password": "Nope123!", "new_password": "NewPassword456!"},
            headers=employee_headers,
        )
        assert resp.status_code == 400
        assert resp.json["errors"][0]["field"] == "current_password"


class TestRoleEnforcement:

    @pytest.mark.parametrize("method,path", [
        ("GET", "/api/inventory"),
        ("GET", "/api/orders"),
        ("GET", "/api/cash-close"),
        ("GET", "/api/analytics/dashboard"),
        ("GET", "/api/users"),
        ("GET", "/api/restaurant"),
        ("POST", "/api/day/end"),
        ("GET", "/api/realtime/stream"),
    ])
    def test_requires_auth(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"

    @pytest.mark.parametrize("method,path", [
        ("POST", "/api/inventory"),
        ("DELETE", "/api/orders/1"),
        ("PUT", "/api/cash-close/1/verify"),
        ("GET", "/api/users"),
        ("POST", "/api/users"),
        ("PUT", "/api/restaurant/settings"),
        ("POST", "/api/day/end"),
    ])
    def test_employee_forbidden(self, client, employee_headers, method, path):
        resp = getattr(client, method.lower())(path, json={}, headers=employee_headers)
        assert resp.status_code == 403, f"{method} {path} returned {resp.status_code}"

    def test_manager_cannot_change_settings(self, client, manager_headers):
        resp = client.put("/api/restaurant/settings", json={"name": "Nuevo"}, headers=manager_headers)
        assert resp.status_code == 403

    def test_unknown_route_is_json_404(self, client, db_session):
        resp = client.get("/api/nothing-here")
        assert resp.status_code == 404
        assert resp.json == {"status": "error", "message": "Route not found"}

    def test_health(self, client, db_session):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json["data"]["database"]["status"] == "healthy"
