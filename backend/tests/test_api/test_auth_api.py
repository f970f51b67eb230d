"""Integration tests for the auth router and bearer-token dependencies."""

import uuid

import pytest
from httpx import AsyncClient

from marketplace.auth.security import create_refresh_token
from marketplace.models.user import User

pytestmark = pytest.mark.asyncio


def _unique_email() -> str:
    return f"user-{uuid.uuid4().hex[:8]}@test.com"


class TestRegister:
    async def test_register_creates_individual(self, client: AsyncClient) -> None:
        email = _unique_email()
        response = await client.post(
            "/api/v1/auth/register",
            json={"email": email, "password": "password123", "name": "New Seller"},
        )
        assert response.status_code == 201
        data = response.json()
        assert data["user"]["email"] == email
        assert data["user"]["role"] == "individual"
        assert data["tokens"]["token_type"] == "bearer"

    async def test_register_duplicate_email(self, client: AsyncClient, test_user: User) -> None:
        response = await client.post(
            "/api/v1/auth/register",
            json={"email": test_user.email, "password": "password123", "name": "Again"},
        )
        assert response.status_code == 409
        assert response.json() == {"success": False, "message": "Email already registered", "code": "CONFLICT"}

    async def test_register_invalid_body_uses_envelope(self, client: AsyncClient) -> None:
        response = await client.post("/api/v1/auth/register", json={"email": "not-an-email"})
        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["code"] == "VALIDATION_ERROR"


class TestLogin:
    async def test_login_success(self, client: AsyncClient, test_user: User) -> None:
        response = await client.post(
            "/api/v1/auth/login",
            json={"email": test_user.email, "password": "testpass123"},
        )
        assert response.status_code == 200
        assert response.json()["user"]["id"] == str(test_user.id)

    async def test_login_wrong_password(self, client: AsyncClient, test_user: User) -> None:
        response = await client.post(
            "/api/v1/auth/login",
            json={"email": test_user.email, "password": "nope-nope"},
        )
        assert response.status_code == 401
        assert response.json()["code"] == "UNAUTHENTICATED"


class TestRefreshAndMe:
    async def test_refresh_returns_new_pair(self, client: AsyncClient, test_user: User) -> None:
        token = create_refresh_token({"sub": str(test_user.id)})
        response = await client.post("/api/v1/auth/refresh", json={"refresh_token": token})
        assert response.status_code == 200
        assert response.json()["access_token"]

    async def test_refresh_rejects_access_token(self, client: AsyncClient, auth_headers: dict) -> None:
        access = auth_headers["Authorization"].split(" ", 1)[1]
        response = await client.post("/api/v1/auth/refresh", json={"refresh_token": access})
        assert response.status_code == 401

    async def test_me(self, client: AsyncClient, auth_headers: dict, test_user: User) -> None:
        response = await client.get("/api/v1/auth/me", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["email"] == test_user.email
        assert response.json()["gold_cards"] == 1

    async def test_me_without_token(self, client: AsyncClient) -> None:
        response = await client.get("/api/v1/auth/me")
        assert response.status_code == 401
        assert response.json()["message"] == "Not authenticated"

    async def test_me_rejects_refresh_token(self, client: AsyncClient, test_user: User) -> None:
        token = create_refresh_token({"sub": str(test_user.id)})
        response = await client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401
