"""Integration tests for the health and root endpoints"""

from app.config import settings


async def test_health(client):
    response = await client.get("http://test/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["app_name"] == settings.APP_NAME
    assert response.headers["X-Request-ID"]


async def test_unknown_route_uses_error_envelope(client, auth_headers):
    response = await client.get("/nothing-here", headers=auth_headers)
    assert response.status_code == 404
    body = response.json()
    assert body["success"] is False
    assert body["error"] == "NOT_FOUND"
