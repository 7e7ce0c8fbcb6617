"""
API tests: signup bootstrap, login, role-restricted registration
"""


def signup(client, email="owner@example.com", password="password123"):
    return client.post("/api/auth/signup", json={"email": email, "name": "Owner", "password": password})


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


class TestAuthAPI:

    def test_first_signup_is_admin_then_closed(self, anonymous_client):
        response = signup(anonymous_client)
        assert response.status_code == 200, response.text
        assert response.json()["user"]["role"] == "Admin"

        assert signup(anonymous_client, email="second@example.com").status_code == 403

    def test_login_and_me(self, anonymous_client):
        signup(anonymous_client)

        response = anonymous_client.post(
            "/api/auth/login",
            data={"username": "OWNER@example.com", "password": "password123"},
        )
        assert response.status_code == 200
        token = response.json()["access_token"]

        me = anonymous_client.get("/api/auth/me", headers=bearer(token))
        assert me.json()["email"] == "owner@example.com"

    def test_bad_password(self, anonymous_client):
        signup(anonymous_client)
        response = anonymous_client.post("/api/auth/login", data={"username": "owner@example.com", "password": "wrong-pass"})
        assert response.status_code == 401

    def test_protected_routes_need_token(self, anonymous_client):
        assert anonymous_client.get("/api/aircraft").status_code == 401
        assert anonymous_client.get("/api/aircraft", headers=bearer("garbage")).status_code == 401

    def test_admin_registers_viewer_who_cannot_write(self, anonymous_client):
        admin_token = signup(anonymous_client).json()["access_token"]

        response = anonymous_client.post(
            "/api/auth/register",
            json={"email": "viewer@example.com", "name": "Viewer", "password": "password123", "role": "Viewer"},
            headers=bearer(admin_token),
        )
        assert response.status_code == 201
        assert response.json()["role"] == "Viewer"

        viewer_token = anonymous_client.post(
            "/api/auth/login",
            data={"username": "viewer@example.com", "password": "password123"},
        ).json()["access_token"]

        assert anonymous_client.get("/api/aircraft", headers=bearer(viewer_token)).status_code == 200
        write = anonymous_client.post("/api/budget/plans", headers=bearer(viewer_token), json={
            "fiscal_year": 2025, "clause_id": 1, "clause_description": "x", "aircraft_group": "A340", "planned_amount": 1,
        })
        assert write.status_code == 403

        denied = anonymous_client.post(
            "/api/auth/register",
            json={"email": "other@example.com", "name": "Other", "password": "password123"},
            headers=bearer(viewer_token),
        )
        assert denied.status_code == 403
