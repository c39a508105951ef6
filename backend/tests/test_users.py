# Overview: Pytest coverage for user management endpoints.

"""
User Management Tests

- admins and managers list/create users of their own restaurant
- employees only see and edit themselves and cannot change role or status
- deactivation revokes sessions and cannot target oneself
"""


NEW_USER = {"name": "Carlos Ruiz", "email": "carlos@a.com", "password": "Password123!", "role": "employee"}


class TestCreateAndList:

    def test_manager_creates_user(self, client, manager_headers, restaurant_a):
        resp = client.post("/api/users", json=NEW_USER, headers=manager_headers)
        assert resp.status_code == 201
        user = resp.json["data"]["user"]
        assert user["restaurant_id"] == restaurant_a.id
        assert user["role"] == "employee"
        assert user["preferences"]["language"] == "es"

    def test_duplicate_email_across_restaurants(self, client, admin_headers, admin_b):
        resp = client.post("/api/users", json=dict(NEW_USER, email="admin@b.com"), headers=admin_headers)
        assert resp.status_code == 400

    def test_invalid_role(self, client, admin_headers):
        resp = client.post("/api/users", json=dict(NEW_USER, role="owner"), headers=admin_headers)
        assert resp.status_code == 400

    def test_list_filters(self, client, admin_headers, manager_a, employee_a):
        resp = client.get("/api/users?role=employee", headers=admin_headers)
        assert [u["email"] for u in resp.json["data"]["users"]] == ["employee@a.com"]
        resp = client.get("/api/users", headers=admin_headers)
        assert resp.json["data"]["pagination"]["total"] == 3


class TestVisibility:

    def test_employee_sees_only_self(self, client, employee_headers, employee_a, admin_a):
        resp = client.get(f"/api/users/{admin_a.id}", headers=employee_headers)
        assert resp.status_code == 200
        assert resp.json["data"]["user"]["id"] == employee_a.id

    def test_employee_cannot_change_role(self, client, employee_headers, employee_a):
        resp = client.put(f"/api/users/{employee_a.id}", json={"role": "admin"}, headers=employee_headers)
        assert resp.status_code == 403

    def test_employee_updates_own_name(self, client, employee_headers, employee_a):
        resp = client.put(f"/api/users/{employee_a.id}", json={"name": "Empleado Uno"}, headers=employee_headers)
        assert resp.status_code == 200
        assert resp.json["data"]["user"]["name"] == "Empleado Uno"

    def test_admin_promotes(self, client, admin_headers, employee_a):
        resp = client.put(f"/api/users/{employee_a.id}", json={"role": "manager"}, headers=admin_headers)
        assert resp.json["data"]["user"]["role"] == "manager"


class TestDeactivation:

    def test_delete_deactivates_and_revokes(self, client, admin_headers, employee_a, employee_headers, reload):
        resp = client.delete(f"/api/users/{employee_a.id}", headers=admin_headers)
        assert resp.status_code == 200
        assert reload(employee_a).is_active is False
        assert client.get("/api/auth/me", headers=employee_headers).status_code == 401

    def test_cannot_delete_self(self, client, admin_headers, admin_a):
        resp = client.delete(f"/api/users/{admin_a.id}", headers=admin_headers)
        assert resp.status_code == 400

    def test_toggle_status(self, client, manager_headers, employee_a):
        resp = client.put(f"/api/users/{employee_a.id}/toggle-status", headers=manager_headers)
        assert resp.json["data"]["user"]["is_active"] is False
        resp = client.put(f"/api/users/{employee_a.id}/toggle-status", headers=manager_headers)
        assert resp.json["data"]["user"]["is_active"] is True


class TestPasswords:

    def test_admin_resets_other_password(self, client, admin_headers, employee_a):
        resp = client.put(
            f"/api/users/{employee_a.id}/change-password",
            json={"new_password": "Reset1234!"},
            headers=admin_headers,
        )
        assert resp.status_code == 200
        resp = client.post("/api/auth/login", json={"email": "employee@a.com", "password": "Reset1234!"})
        assert resp.status_code == 200

    def test_manager_cannot_reset_other_password(self, client, manager_headers, employee_a):
        resp = client.put(
            f"/api/users/{employee_a.id}/change-password",
            json={"new_password": "Reset1234!"},
            headers=manager_headers,
        )
        assert resp.status_code == 403

    def test_weak_reset_rejected(self, client, admin_headers, employee_a):
        resp = client.put(
            f"/api/users/{employee_a.id}/change-password",
            json={"new_password": "weak"},
            headers=admin_headers,
        )
        assert resp.status_code == 400
        assert resp.json["errors"][0]["field"] == "new_password"
