from typing import Any, List

from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.security import PortalUser, generate_upload_key
from app.schemas.responses import SuccessResponse
from app.services.attachment_service import AttachmentService, serialize_attachment

router = APIRouter()


@router.post("/upload_key", response_model=SuccessResponse)
async def create_upload_key(
    current_user: PortalUser = Depends(deps.get_current_user),
) -> Any:
    """
    Mint a fresh key that groups the files of one slip or sheet.
    """
    return SuccessResponse(data={"upload_key": generate_upload_key()})


@router.post("/upload", response_model=SuccessResponse)
async def upload_files(
    customer_id: str = Form(...),
    upload_key: str = Form(...),
    menu: str = Form(...),
    files: List[UploadFile] = File(...),
    current_user: PortalUser = Depends(deps.get_current_user),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    """
    Store files under an upload key, within the configured size, count and type limits.
    """
    payload = [(f.filename or "file", await f.read(), f.content_type) for f in files]
    stored = await AttachmentService.upload(db, customer_id, upload_key, menu, payload, current_user.actor)
    return SuccessResponse(
        data={"upload_key": upload_key, "files": [serialize_attachment(a) for a in stored]},
        message="อัปโหลดไฟล์สำเร็จ",
    )
