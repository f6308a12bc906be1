"""Integration tests for upload keys and file uploads"""

from app.config import settings
from factories import CUSTOMER_ID


async def test_upload_key(client, auth_headers):
    response = await client.post("/attachments/upload_key", headers=auth_headers)
    assert response.status_code == 200
    key = response.json()["data"]["upload_key"]
    assert len(key) == 32 and key.isalnum()


async def test_upload_files(client, auth_headers, tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "UPLOAD_DIR", str(tmp_path))
    response = await client.post(
        "/attachments/upload",
        data={"customer_id": CUSTOMER_ID, "upload_key": "k-123", "menu": "payment"},
        files=[("files", ("slip.png", b"\x89PNG", "image/png"))],
        headers=auth_headers,
    )
    assert response.status_code == 200, response.text
    data = response.json()["data"]
    assert data["upload_key"] == "k-123"
    stored = data["files"][0]
    assert stored["file_ext"] == "png"
    assert (tmp_path / stored["file_path"]).read_bytes() == b"\x89PNG"


async def test_upload_rejects_type(client, auth_headers, tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "UPLOAD_DIR", str(tmp_path))
    response = await client.post(
        "/attachments/upload",
        data={"customer_id": CUSTOMER_ID, "upload_key": "k-1", "menu": "payment"},
        files=[("files", ("tool.exe", b"MZ", "application/octet-stream"))],
        headers=auth_headers,
    )
    assert response.status_code == 400
    assert response.json()["details"]["file_extension"] == "exe"
