"""Integration tests for portal-backed authentication"""

from unittest.mock import AsyncMock

from app.core.messages import get_message
from app.services import portal_client
from factories import make_token


async def test_verify_without_token(client):
    response = await client.get("/auth/verify")
    assert response.status_code == 401
    body = response.json()
    assert body["success"] is False
    assert body["error"] == "UNAUTHORIZED"
    assert body["message"] == get_message("UNAUTHORIZED")


async def test_verify_expired_token(client):
    token = make_token(expires_in=-60)
    response = await client.get("/auth/verify", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401
    assert response.json()["message"] == get_message("TOKEN_EXPIRED")


async def test_verify_garbage_token(client):
    response = await client.get("/auth/verify", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


async def test_verify_valid_token(client, auth_headers):
    response = await client.get("/auth/verify", headers=auth_headers)
    assert response.status_code == 200
    user = response.json()["data"]["user"]
    assert user["userid"] == "42"
    assert user["username"] == "admin"


async def test_login_passes_portal_token_through(client, monkeypatch):
    token = make_token()
    login = AsyncMock(return_value={"token": token, "user": {"userid": "42", "username": "admin"}})
    monkeypatch.setattr(portal_client, "login", login)

    response = await client.post("/auth/login", json={"username": "admin", "password": "pw"})
    assert response.status_code == 200
    assert response.json()["data"]["token"] == token
    login.assert_awaited_once_with("admin", "pw")


async def test_login_rejected_by_portal(client, monkeypatch):
    monkeypatch.setattr(
        portal_client, "login", AsyncMock(side_effect=portal_client.PortalAuthError(message_key="LOGIN_FAILED"))
    )
    response = await client.post("/auth/login", json={"username": "admin", "password": "bad"})
    assert response.status_code == 401
    assert response.json()["error"] == "UNAUTHORIZED"


async def test_login_requires_fields(client):
    response = await client.post("/auth/login", json={"username": "admin"})
    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "VALIDATION_ERROR"
    assert body["details"]["fields"] == ["password"]


async def test_customer_list(client, auth_headers, monkeypatch):
    sites = [{"customer_id": "01", "customer_name": "Niti Tower", "site_name": "Tower", "site_code": "T1"}]
    monkeypatch.setattr(portal_client, "customer_list", AsyncMock(return_value=sites))
    response = await client.get("/auth/customer_list", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["data"] == {"customers": sites, "total": 1}
