"""
Tests for authentication endpoints: registration and login.
"""

import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_register_user(client: AsyncClient):
    """Successful registration returns user data."""
    response = await client.post("/api/v1/auth/register", json={
        "email": "new@example.com",
        "name": "New Member",
        "password": "securepassword123",
    })
    assert response.status_code == 201
    data = response.json()
    assert data["email"] == "new@example.com"
    assert data["role"] == "member"
    assert "hashed_password" not in data  # Never expose password hash


@pytest.mark.asyncio
async def test_register_coach(client: AsyncClient):
    response = await client.post("/api/v1/auth/register", json={
        "email": "coach2@example.com",
        "password": "securepassword123",
        "role": "coach",
    })
    assert response.status_code == 201
    assert response.json()["role"] == "coach"


@pytest.mark.asyncio
async def test_register_owner_not_allowed(client: AsyncClient):
    """Owners are not self-service."""
    response = await client.post("/api/v1/auth/register", json={
        "email": "boss@example.com",
        "password": "securepassword123",
        "role": "owner",
    })
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_register_duplicate_email(client: AsyncClient, member):
    """Duplicate email returns 409 with the error envelope."""
    response = await client.post("/api/v1/auth/register", json={
        "email": "member@example.com",
        "password": "securepassword123",
    })
    assert response.status_code == 409
    assert response.json() == {
        "success": False,
        "error": "Email already registered",
        "code": "email_exists",
    }


@pytest.mark.asyncio
async def test_register_weak_password(client: AsyncClient):
    """Password under 8 chars returns 422."""
    response = await client.post("/api/v1/auth/register", json={
        "email": "weak@example.com",
        "password": "short",
    })
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_login_success(client: AsyncClient, member):
    """Valid credentials return JWT token."""
    response = await client.post("/api/v1/auth/login", json={
        "email": "member@example.com",
        "password": "testpassword123",
    })
    assert response.status_code == 200
    data = response.json()
    assert "access_token" in data
    assert data["token_type"] == "bearer"

    me = await client.get(
        "/api/v1/auth/me", headers={"Authorization": f"Bearer {data['access_token']}"}
    )
    assert me.status_code == 200
    assert me.json()["id"] == member.id


@pytest.mark.asyncio
async def test_login_wrong_password(client: AsyncClient, member):
    """Wrong password returns 401."""
    response = await client.post("/api/v1/auth/login", json={
        "email": "member@example.com",
        "password": "wrongpassword",
    })
    assert response.status_code == 401
    assert response.json()["code"] == "invalid_credentials"


@pytest.mark.asyncio
async def test_login_nonexistent_email(client: AsyncClient):
    """Non-existent email returns 401."""
    response = await client.post("/api/v1/auth/login", json={
        "email": "nobody@example.com",
        "password": "anypassword123",
    })
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_me_requires_token(client: AsyncClient):
    response = await client.get("/api/v1/auth/me")
    assert response.status_code == 401
    assert response.json()["success"] is False


@pytest.mark.asyncio
async def test_garbage_token_rejected(client: AsyncClient):
    response = await client.get("/api/v1/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401
    assert response.json()["code"] == "invalid_token"
