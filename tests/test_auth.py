"""Tests for registration, login and tokens."""

import pytest
from httpx import AsyncClient

from tests.factories import PASSWORD

REGISTRATION = {
    "email": "Carol@Mail.com",
    "password": "hunter22",
    "confirm_password": "hunter22",
    "name": "Carol Patient",
    "contact_number": "+15550100",
}


@pytest.mark.asyncio
async def test_register_patient_then_login(client: AsyncClient) -> None:
    registered = await client.post("/api/v1/auth/register", json=REGISTRATION)

    assert registered.status_code == 201
    user = registered.json()
    assert user["email"] == "carol@mail.com"
    assert user["role"] == "Patient"
    assert "password_hash" not in user

    login = await client.post(
        "/api/v1/auth/login", json={"email": "carol@mail.com", "password": "hunter22"}
    )
    assert login.status_code == 200
    tokens = login.json()
    assert tokens["token_type"] == "bearer"
    assert tokens["user"]["id"] == user["id"]

    me = await client.get(
        "/api/v1/auth/me", headers={"Authorization": f"Bearer {tokens['access_token']}"}
    )
    assert me.status_code == 200
    assert me.json()["profile_id"] is not None

    profile = await client.get(
        "/api/v1/patients/me", headers={"Authorization": f"Bearer {tokens['access_token']}"}
    )
    assert profile.json()["phone"] == "+15550100"


@pytest.mark.asyncio
async def test_register_doctor_gets_default_profile(client: AsyncClient) -> None:
    payload = {**REGISTRATION, "email": "dr.grey@mail.com", "name": "Dr. Grey", "role": "Doctor"}
    registered = await client.post("/api/v1/auth/register", json=payload)
    assert registered.status_code == 201

    doctors = await client.get("/api/v1/doctors/")
    assert doctors.json()[0]["name"] == "Dr. Grey"
    assert doctors.json()[0]["specialty"] == "General Medicine"
    assert doctors.json()[0]["consultation_fee"] == 0.0


@pytest.mark.asyncio
async def test_password_mismatch(client: AsyncClient) -> None:
    payload = {**REGISTRATION, "confirm_password": "different"}
    response = await client.post("/api/v1/auth/register", json=payload)

    assert response.status_code == 422
    assert response.json()["message"] == "Passwords do not match."


@pytest.mark.asyncio
async def test_admin_cannot_self_register(client: AsyncClient) -> None:
    payload = {**REGISTRATION, "role": "Admin"}
    response = await client.post("/api/v1/auth/register", json=payload)
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_duplicate_email(client: AsyncClient, patient: dict) -> None:
    payload = {**REGISTRATION, "email": "ALICE@mail.com"}
    response = await client.post("/api/v1/auth/register", json=payload)
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_wrong_password(client: AsyncClient, patient: dict) -> None:
    response = await client.post(
        "/api/v1/auth/login", json={"email": "alice@mail.com", "password": "nope-nope"}
    )
    assert response.status_code == 401
    assert response.json()["error"] == "UnauthorizedException"


@pytest.mark.asyncio
async def test_deactivated_account_cannot_login(
    client: AsyncClient, admin: dict, patient: dict
) -> None:
    await client.delete(f"/api/v1/patients/{patient['profile']['id']}", headers=admin["headers"])

    response = await client.post(
        "/api/v1/auth/login", json={"email": "alice@mail.com", "password": PASSWORD}
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_refresh(client: AsyncClient, patient: dict) -> None:
    login = await client.post(
        "/api/v1/auth/login", json={"email": "alice@mail.com", "password": PASSWORD}
    )
    tokens = login.json()

    refreshed = await client.post(
        "/api/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]}
    )
    assert refreshed.status_code == 200
    assert refreshed.json()["access_token"]

    # An access token is not accepted as a refresh token
    wrong_type = await client.post(
        "/api/v1/auth/refresh", json={"refresh_token": tokens["access_token"]}
    )
    assert wrong_type.status_code == 401


@pytest.mark.asyncio
async def test_invalid_bearer_token(client: AsyncClient) -> None:
    response = await client.get("/api/v1/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401
