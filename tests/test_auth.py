"""Tests for registration, login and password reset."""

import auth


def register(client, role="buyer", email="weaver@textileshop.com", password="secret123"):
    return client.post(
        "/api/auth/register",
        json={"name": "Wendy Weaver", "email": email, "password": password, "role": role},
    )


class TestRegisterAndLogin:
    def test_register_buyer_returns_token(self, client, db):
        response = register(client)
        assert response.status_code == 201
        data = response.json()["data"]
        assert data["role"] == "buyer"
        assert data["token"]
        assert "password_hash" not in data
        stored = db["user"].find_one({"email": "weaver@textileshop.com"})
        assert stored["password_hash"] != "secret123"

    def test_register_delivery(self, client):
        assert register(client, role="delivery").json()["data"]["role"] == "delivery"

    def test_cannot_self_register_admin(self, client, db):
        response = register(client, role="admin")
        assert response.status_code == 400
        assert db["user"].count_documents({}) == 0

    def test_duplicate_email(self, client):
        register(client)
        response = register(client)
        assert response.status_code == 400
        assert response.json()["detail"] == "User already exists"

    def test_login(self, client):
        register(client)
        response = client.post("/api/auth/login", json={"email": "weaver@textileshop.com", "password": "secret123"})
        assert response.status_code == 200
        token = response.json()["data"]["token"]

        me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert me.status_code == 200
        assert me.json()["email"] == "weaver@textileshop.com"

    def test_login_wrong_password(self, client):
        register(client)
        response = client.post("/api/auth/login", json={"email": "weaver@textileshop.com", "password": "nope"})
        assert response.status_code == 401

    def test_form_token_login(self, client):
        register(client)
        response = client.post("/api/auth/token", data={"username": "weaver@textileshop.com", "password": "secret123"})
        assert response.status_code == 200
        body = response.json()
        assert body["token_type"] == "bearer"

        me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {body['access_token']}"})
        assert me.status_code == 200
        assert me.json()["email"] == "weaver@textileshop.com"

    def test_form_token_wrong_password(self, client):
        register(client)
        response = client.post("/api/auth/token", data={"username": "weaver@textileshop.com", "password": "nope"})
        assert response.status_code == 401

    def test_bearer_scheme_points_at_form_endpoint(self, client):
        schema = client.get("/openapi.json").json()
        flows = schema["components"]["securitySchemes"]["OAuth2PasswordBearer"]["flows"]
        assert flows["password"]["tokenUrl"] == "/api/auth/token"


class TestAccessGate:
    def test_missing_token(self, client):
        response = client.get("/api/auth/me")
        assert response.status_code == 401
        assert response.json()["detail"] == "Not authorized, no token"

    def test_invalid_token(self, client):
        response = client.get("/api/auth/me", headers={"Authorization": "Bearer not.a.jwt"})
        assert response.status_code == 401
        assert response.json()["detail"] == "Not authorized, token failed"

    def test_token_for_deleted_user(self, client, db, buyer):
        user_id, headers = buyer
        db["user"].delete_many({})
        assert client.get("/api/auth/me", headers=headers).status_code == 401

    def test_role_mismatch_is_forbidden(self, client, buyer):
        response = client.get("/api/users", headers=buyer[1])
        assert response.status_code == 403
        assert response.json()["detail"] == "Not authorized as admin"


class TestPasswordReset:
    def test_email_required(self, client):
        assert client.post("/api/auth/forgot-password", json={}).status_code == 400

    def test_unknown_email_gets_generic_answer(self, client):
        response = client.post("/api/auth/forgot-password", json={"email": "ghost@textileshop.com"})
        assert response.status_code == 200
        assert "if account exists" in response.json()["message"]

    def test_full_reset_flow(self, client, db, monkeypatch):
        register(client)
        monkeypatch.setattr(auth.secrets, "token_hex", lambda n: "resettoken")
        monkeypatch.setattr(auth, "email_configured", lambda: False)

        response = client.post("/api/auth/forgot-password", json={"email": "weaver@textileshop.com"})
        assert response.status_code == 200
        stored = db["user"].find_one({"email": "weaver@textileshop.com"})
        assert stored["reset_password_token"] == auth.hash_reset_token("resettoken")

        assert client.get("/api/auth/reset-password/resettoken/verify").status_code == 200
        assert client.get("/api/auth/reset-password/wrong/verify").status_code == 400

        assert client.post("/api/auth/reset-password/resettoken", json={}).status_code == 400
        response = client.post("/api/auth/reset-password/resettoken", json={"password": "newsecret1"})
        assert response.status_code == 200

        stored = db["user"].find_one({"email": "weaver@textileshop.com"})
        assert "reset_password_token" not in stored
        login = client.post("/api/auth/login", json={"email": "weaver@textileshop.com", "password": "newsecret1"})
        assert login.status_code == 200
        assert client.get("/api/auth/reset-password/resettoken/verify").status_code == 400

    def test_expired_token(self, client, db, monkeypatch):
        from datetime import timedelta

        from database import now

        register(client)
        monkeypatch.setattr(auth.secrets, "token_hex", lambda n: "oldtoken")
        monkeypatch.setattr(auth, "email_configured", lambda: False)
        client.post("/api/auth/forgot-password", json={"email": "weaver@textileshop.com"})
        db["user"].update_one(
            {"email": "weaver@textileshop.com"},
            {"$set": {"reset_password_expire": now() - timedelta(minutes=1)}},
        )
        assert client.get("/api/auth/reset-password/oldtoken/verify").status_code == 400

    def test_send_failure_clears_token(self, client, db, monkeypatch):
        register(client)
        sent = []

        def failing_send(to_address, reset_url):
            sent.append(reset_url)
            raise OSError("smtp down")

        monkeypatch.setattr(auth, "email_configured", lambda: True)
        monkeypatch.setattr(auth, "send_password_reset", failing_send)

        response = client.post("/api/auth/forgot-password", json={"email": "weaver@textileshop.com"})
        assert response.status_code == 500
        assert response.json()["detail"] == "Error sending reset email"
        assert sent and sent[0].startswith("http://localhost:3000/reset-password/")
        stored = db["user"].find_one({"email": "weaver@textileshop.com"})
        assert "reset_password_token" not in stored
        assert "reset_password_expire" not in stored

    def test_send_success(self, client, monkeypatch):
        register(client)
        sent = []
        monkeypatch.setattr(auth, "email_configured", lambda: True)
        monkeypatch.setattr(auth, "send_password_reset", lambda to, url: sent.append(to))

        response = client.post("/api/auth/forgot-password", json={"email": "weaver@textileshop.com"})
        assert response.status_code == 200
        assert sent == ["weaver@textileshop.com"]
