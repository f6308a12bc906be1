"""Unit tests for attachment upload limits"""

import pytest
from sqlalchemy import select

from app.config import settings
from app.core.errors import ValidationError
from app.models.attachment import Attachment
from app.models.system import AppConfig
from app.services import storage_service
from app.services.attachment_service import AttachmentService, serialize_attachment
from factories import CUSTOMER_ID, seed_slip


@pytest.fixture(autouse=True)
def local_storage(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "UPLOAD_BACKEND", "project")
    monkeypatch.setattr(settings, "UPLOAD_DIR", str(tmp_path))
    return tmp_path


async def test_upload_stores_files(db, local_storage):
    stored = await AttachmentService.upload(
        db, CUSTOMER_ID, "key-1", "payment", [("slip.JPG", b"jpeg-bytes", "image/jpeg")], "resident"
    )
    assert len(stored) == 1
    attachment = stored[0]
    assert attachment.file_ext == "jpg"
    assert attachment.file_path.startswith("payment/key-1/")
    assert (local_storage / attachment.file_path).read_bytes() == b"jpeg-bytes"
    assert await storage_service.read(attachment.file_path) == b"jpeg-bytes"
    assert await AttachmentService.has_valid(db, "key-1")
    assert serialize_attachment(attachment)["file_url"].endswith(attachment.file_path)


async def test_upload_rejects_unknown_menu(db):
    with pytest.raises(ValidationError) as exc_info:
        await AttachmentService.upload(db, CUSTOMER_ID, "k", "parcel", [("a.jpg", b"x", None)], "resident")
    assert exc_info.value.details["fields"] == ["menu"]


async def test_upload_rejects_disallowed_type(db):
    with pytest.raises(ValidationError) as exc_info:
        await AttachmentService.upload(db, CUSTOMER_ID, "k", "payment", [("run.exe", b"x", None)], "resident")
    assert exc_info.value.message_key == "FILE_TYPE_NOT_ALLOWED"
    assert (await db.execute(select(Attachment))).first() is None


async def test_upload_respects_configured_size(db):
    db.add(AppConfig(config_key="max_file_size", config_value="1", data_type="number", is_active=True, status=1))
    await db.flush()
    with pytest.raises(ValidationError) as exc_info:
        await AttachmentService.upload(
            db, CUSTOMER_ID, "k", "payment", [("big.pdf", b"0" * (1024 * 1024 + 1), None)], "resident"
        )
    assert exc_info.value.message_key == "FILE_TOO_LARGE"


async def test_upload_counts_existing_files(db):
    for _ in range(4):
        await seed_slip(db, upload_key="shared")
    with pytest.raises(ValidationError) as exc_info:
        await AttachmentService.upload(
            db, CUSTOMER_ID, "shared", "payment", [("a.jpg", b"x", None), ("b.jpg", b"y", None)], "resident"
        )
    assert exc_info.value.message_key == "FILE_COUNT_EXCEEDED"
    assert exc_info.value.details["existing_files"] == 4


async def test_read_missing_file(local_storage):
    from app.core.errors import NotFoundError

    with pytest.raises(NotFoundError):
        await storage_service.read("payment/none/missing.jpg")
