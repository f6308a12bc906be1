"""Attachment Service - slips and bill sheets grouped by upload key"""

from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import ValidationError
from app.core.logging import get_logger
from app.models.attachment import Attachment
from app.models.enums import AttachmentMenu, AttachmentStatus
from app.services import storage_service
from app.services.config_service import ConfigService

logger = get_logger(__name__)

MB = 1024 * 1024


def _ext(filename: str) -> str:
    return filename.rsplit(".", 1)[-1].lower() if "." in filename else ""


def serialize_attachment(attachment: Attachment) -> Dict[str, Any]:
    return {
        "id": attachment.id,
        "upload_key": attachment.upload_key,
        "menu": attachment.menu,
        "file_name": attachment.file_name,
        "file_size": attachment.file_size,
        "file_ext": attachment.file_ext,
        "file_path": attachment.file_path,
        "file_url": storage_service.public_url(attachment.file_path),
        "create_date": attachment.create_date,
    }


class AttachmentService:
    @staticmethod
    async def has_valid(db: AsyncSession, upload_key: str) -> bool:
        """True when at least one validated upload exists for the key"""
        count = await db.scalar(
            select(func.count())
            .select_from(Attachment)
            .where(
                Attachment.upload_key == upload_key,
                Attachment.status == AttachmentStatus.VALID,
            )
        )
        return bool(count)

    @staticmethod
    async def list_for_keys(
        db: AsyncSession, upload_keys: List[str]
    ) -> Dict[str, List[Attachment]]:
        keys = [k for k in set(upload_keys) if k]
        if not keys:
            return {}
        result = await db.execute(
            select(Attachment)
            .where(Attachment.upload_key.in_(keys), Attachment.status != 2)
            .order_by(Attachment.id)
        )
        grouped: Dict[str, List[Attachment]] = {}
        for attachment in result.scalars().all():
            grouped.setdefault(attachment.upload_key, []).append(attachment)
        return grouped

    @staticmethod
    async def latest_valid(
        db: AsyncSession, upload_key: str, menu: Optional[str] = None
    ) -> Optional[Attachment]:
        stmt = select(Attachment).where(
            Attachment.upload_key == upload_key,
            Attachment.status == AttachmentStatus.VALID,
        )
        if menu:
            stmt = stmt.where(Attachment.menu == menu)
        result = await db.execute(stmt.order_by(Attachment.id.desc()).limit(1))
        return result.scalar_one_or_none()

    @staticmethod
    async def upload(
        db: AsyncSession,
        customer_id: str,
        upload_key: str,
        menu: str,
        files: List[Tuple[str, bytes, Optional[str]]],
        actor: str,
    ) -> List[Attachment]:
        """
        Validate against the runtime limits and store each file.
        ``files`` holds (filename, content, content_type).
        """
        if menu not in {m.value for m in AttachmentMenu}:
            raise ValidationError(fields=["menu"])
        if not files:
            raise ValidationError(fields=["files"])

        cache: Dict[str, Any] = {}
        max_count = await ConfigService.get(db, "max_file_count", cache=cache)
        max_size_mb = await ConfigService.get(db, "max_file_size", cache=cache)
        allowed = [t.lower() for t in await ConfigService.get(db, "allowed_file_types", cache=cache)]

        existing = await db.scalar(
            select(func.count())
            .select_from(Attachment)
            .where(Attachment.upload_key == upload_key, Attachment.status != 2)
        ) or 0
        if existing + len(files) > max_count:
            raise ValidationError(
                message_key="FILE_COUNT_EXCEEDED",
                details={"existing_files": existing, "new_files": len(files), "max_allowed": max_count},
            )

        for filename, content, _ in files:
            if len(content) > max_size_mb * MB:
                raise ValidationError(
                    message_key="FILE_TOO_LARGE",
                    details={"filename": filename, "file_size": len(content), "max_size_mb": max_size_mb},
                )
            if _ext(filename) not in allowed:
                raise ValidationError(
                    message_key="FILE_TYPE_NOT_ALLOWED",
                    details={"filename": filename, "file_extension": _ext(filename), "allowed_types": allowed},
                )

        stored: List[Attachment] = []
        for filename, content, content_type in files:
            key = storage_service.object_name(menu, upload_key, filename)
            await storage_service.save(key, content, content_type)
            attachment = Attachment(
                customer_id=customer_id,
                upload_key=upload_key,
                menu=menu,
                file_name=filename,
                file_size=len(content),
                file_ext=_ext(filename),
                file_path=key,
                status=AttachmentStatus.VALID,
                create_by=actor,
            )
            db.add(attachment)
            stored.append(attachment)
        await db.flush()

        logger.info(
            "Attachments uploaded",
            extra={"upload_key": upload_key, "menu": menu, "count": len(stored), "customer_id": customer_id},
        )
        return stored
