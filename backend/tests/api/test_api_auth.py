"""
认证 API 测试
"""
import pytest


class TestLogin:

    def test_login_success(self, client, resident_user):
        response = client.post("/auth/login", json={"username": "johnsmith101", "password": "123456"})

        assert response.status_code == 200
        body = response.json()
        assert body["token_type"] == "bearer"
        assert body["user"]["room_number"] == "101"
        assert "password_hash" not in body["user"]

    def test_login_wrong_password(self, client, resident_user):
        response = client.post("/auth/login", json={"username": "johnsmith101", "password": "wrong"})
        assert response.status_code == 401

    def test_me(self, client, resident_headers):
        response = client.get("/auth/me", headers=resident_headers)
        assert response.status_code == 200
        assert response.json()["username"] == "johnsmith101"

    @pytest.mark.parametrize("headers", [
        {},
        {"Authorization": "Bearer not-a-token"},
        {"Authorization": "Basic abc"},
    ])
    def test_me_requires_valid_token(self, client, headers):
        assert client.get("/auth/me", headers=headers).status_code == 401

    def test_disabled_account_token_rejected(self, client, db_session, resident_user, resident_headers):
        resident_user.active = False
        db_session.commit()
        assert client.get("/auth/me", headers=resident_headers).status_code == 401


class TestRegister:

    def test_admin_registers_resident(self, client, admin_headers):
        response = client.post("/auth/register", headers=admin_headers, json={
            "type": "resident",
            "name": "Omar Farouk",
            "room_number": "204",
            "contact_number": "0501234567",
            "days": 30,
        })

        assert response.status_code == 201
        assert response.json()["username"] == "omarfarouk204"

        login = client.post("/auth/login", json={"username": "omarfarouk204", "password": "password123"})
        assert login.status_code == 200

    def test_resident_missing_days(self, client, admin_headers):
        response = client.post("/auth/register", headers=admin_headers, json={
            "type": "resident", "name": "Omar", "room_number": "204", "contact_number": "1",
        })
        assert response.status_code == 422

    def test_duplicate(self, client, admin_headers, resident_user):
        response = client.post("/auth/register", headers=admin_headers, json={
            "type": "worker", "name": "John Smith", "room_number": "101", "contact_number": "1",
        })
        assert response.status_code == 422
        assert response.json()["error"] == "ValidationError"

    def test_non_admin_forbidden(self, client, resident_headers):
        response = client.post("/auth/register", headers=resident_headers, json={
            "type": "admin", "name": "Me", "username": "takeover", "password": "secret123",
        })
        assert response.status_code == 403


def test_push_token(client, resident_headers, db_session, resident_user):
    response = client.put("/auth/push-token", headers=resident_headers, json={"push_token": "device-abc"})

    assert response.status_code == 200
    db_session.refresh(resident_user)
    assert resident_user.push_token == "device-abc"


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy"}
