"""
Tests for authentication endpoints.
"""
from datetime import timedelta

from fastapi.testclient import TestClient

from app.core.security import create_access_token


class TestLogin:
    """Test the OAuth2 password login."""

    def test_login_success(self, client: TestClient, admin_user, test_password):
        response = client.post(
            "/auth/token",
            data={"username": "admin@test.com", "password": test_password},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["token_type"] == "bearer"
        assert data["role"] == "admin"
        assert data["access_token"]

    def test_login_wrong_password(self, client: TestClient, admin_user):
        response = client.post(
            "/auth/token",
            data={"username": "admin@test.com", "password": "WrongPassword123!"},
        )
        assert response.status_code == 401
        assert response.json()["error"] == "unauthorized"
        assert response.headers["www-authenticate"] == "Bearer"

    def test_login_unknown_user(self, client: TestClient, test_password):
        response = client.post(
            "/auth/token",
            data={"username": "nobody@test.com", "password": test_password},
        )
        assert response.status_code == 401

    def test_login_inactive_user(self, client: TestClient, db, make_user, test_password):
        user = make_user("inactive@test.com")
        user.is_active = False
        db.commit()
        response = client.post(
            "/auth/token",
            data={"username": "inactive@test.com", "password": test_password},
        )
        assert response.status_code == 401

    def test_login_is_rate_limited(self, client: TestClient, admin_user):
        for _ in range(5):
            client.post("/auth/token", data={"username": "admin@test.com", "password": "wrong"})
        response = client.post("/auth/token", data={"username": "admin@test.com", "password": "wrong"})
        assert response.status_code == 429


class TestCurrentUser:
    """Test token-protected access."""

    def test_me(self, client: TestClient, creator_user, headers):
        response = client.get("/auth/me", headers=headers(creator_user))
        assert response.status_code == 200
        data = response.json()
        assert data["email"] == "creator@test.com"
        assert "password_hash" not in data

    def test_token_from_login_works(self, client: TestClient, admin_user, test_password):
        token = client.post(
            "/auth/token",
            data={"username": "admin@test.com", "password": test_password},
        ).json()["access_token"]
        response = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert response.json()["id"] == admin_user.id

    def test_missing_token(self, client: TestClient):
        assert client.get("/auth/me").status_code == 401

    def test_invalid_token(self, client: TestClient):
        response = client.get("/auth/me", headers={"Authorization": "Bearer not-a-token"})
        assert response.status_code == 401

    def test_expired_token(self, client: TestClient, admin_user):
        token = create_access_token({"sub": str(admin_user.id)}, expires_delta=timedelta(minutes=-1))
        response = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401
