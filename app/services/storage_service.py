"""
File storage for attachments.

"project" keeps files under UPLOAD_DIR on local disk. "firebase" keeps them in
the Firebase Storage bucket, reached through its S3-compatible interoperability
endpoint with HMAC keys. Blocking I/O runs in a worker thread.
"""
import asyncio
from io import BytesIO
from pathlib import Path
from typing import Optional
from uuid import uuid4

import boto3
from botocore.exceptions import ClientError

from app.config import settings
from app.core.errors import ExternalServiceError, NotFoundError
from app.core.logging import get_logger

logger = get_logger(__name__)


def _bucket_client():
    if not (
        settings.FIREBASE_STORAGE_BUCKET
        and settings.FIREBASE_HMAC_ACCESS_KEY
        and settings.FIREBASE_HMAC_SECRET
    ):
        raise RuntimeError(
            "Firebase storage not configured: set FIREBASE_STORAGE_BUCKET, "
            "FIREBASE_HMAC_ACCESS_KEY, FIREBASE_HMAC_SECRET"
        )
    return boto3.client(
        service_name="s3",
        endpoint_url=settings.FIREBASE_STORAGE_ENDPOINT,
        aws_access_key_id=settings.FIREBASE_HMAC_ACCESS_KEY,
        aws_secret_access_key=settings.FIREBASE_HMAC_SECRET,
        region_name="auto",
        config=boto3.session.Config(
            signature_version="s3v4",
            s3={"addressing_style": "path"},
        ),
    )


def _local_path(file_path: str) -> Path:
    path = Path(file_path)
    return path if path.is_absolute() else Path(settings.UPLOAD_DIR) / path


def public_url(file_path: str) -> str:
    """URL a client can fetch the stored object from"""
    key = file_path.lstrip("/")
    if settings.UPLOAD_BACKEND == "firebase":
        return f"{settings.FIREBASE_STORAGE_ENDPOINT.rstrip('/')}/{settings.FIREBASE_STORAGE_BUCKET}/{key}"
    return f"{settings.BASE_URL.rstrip('/')}/{settings.UPLOAD_DIR.strip('/')}/{key}"


def object_name(menu: str, upload_key: str, filename: str) -> str:
    ext = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
    name = uuid4().hex
    return f"{menu}/{upload_key}/{name}.{ext}" if ext else f"{menu}/{upload_key}/{name}"


async def save(
    file_path: str,
    content: bytes,
    content_type: Optional[str] = None,
) -> str:
    """Store bytes at ``file_path`` (relative key) and return the key"""
    if settings.UPLOAD_BACKEND == "firebase":
        client = _bucket_client()
        extra = {"ContentType": content_type} if content_type else {}

        def _put():
            try:
                client.upload_fileobj(
                    BytesIO(content),
                    settings.FIREBASE_STORAGE_BUCKET,
                    file_path,
                    ExtraArgs=extra,
                )
            except ClientError as e:
                raise ExternalServiceError("storage", reason=str(e)) from e

        await asyncio.to_thread(_put)
    else:
        target = _local_path(file_path)

        def _write():
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(content)

        await asyncio.to_thread(_write)
    logger.info("Stored file", extra={"file_path": file_path, "size": len(content)})
    return file_path


async def read(file_path: str) -> bytes:
    """
    Fetch a stored object.

    Raises:
        NotFoundError: object is missing
        ExternalServiceError: bucket unreachable
    """
    if settings.UPLOAD_BACKEND == "firebase":
        client = _bucket_client()

        def _get() -> bytes:
            buffer = BytesIO()
            try:
                client.download_fileobj(settings.FIREBASE_STORAGE_BUCKET, file_path, buffer)
            except ClientError as e:
                code = e.response.get("Error", {}).get("Code")
                if code in ("404", "NoSuchKey", "NotFound"):
                    raise NotFoundError("file", file_path, message_key="FILE_NOT_FOUND") from e
                raise ExternalServiceError("storage", reason=str(e)) from e
            return buffer.getvalue()

        return await asyncio.to_thread(_get)

    path = _local_path(file_path)

    def _read() -> bytes:
        if not path.is_file():
            raise NotFoundError("file", file_path, message_key="FILE_NOT_FOUND")
        return path.read_bytes()

    return await asyncio.to_thread(_read)
