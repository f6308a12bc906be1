from typing import Any, List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.errors import ValidationError
from app.core.security import PortalUser
from app.models.enums import BillStatus
from app.schemas.billing import (
    BillAction,
    BillCreate,
    BillNotifyRequest,
    BillResponse,
    BillSheetCommit,
    BillSheetPreview,
    BillUpdate,
    ReferenceItem,
)
from app.schemas.responses import PaginatedResponse, PaginationMeta, SuccessResponse
from app.services.bill_line_service import BillLineService
from app.services.bill_service import BillService
from app.services.notification_service import NotificationService
from app.services.sheet_import_service import SheetImportService
from app.utils.parsing import parse_id_list

router = APIRouter()


@router.get("", response_model=PaginatedResponse[dict])
async def list_bills(
    customer_id: str = Depends(deps.get_customer_id),
    page: int = Query(1, ge=1),
    per_page: int = Query(10, ge=1, le=100),
    status: Optional[int] = Query(None),
    keyword: Optional[str] = Query(None),
    bill_type_id: Optional[int] = Query(None),
    current_user: PortalUser = Depends(deps.get_current_user),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    """
    List bills of a customer, newest first, with room count and total amount.
    """
    items, total = await BillService.list_bills(
        db, customer_id, page=page, per_page=per_page, status=status, keyword=keyword, bill_type_id=bill_type_id
    )
    return PaginatedResponse(data=items, pagination=PaginationMeta.build(page, per_page, total))


@router.get("/types", response_model=SuccessResponse[List[ReferenceItem]])
async def list_bill_types(
    current_user: PortalUser = Depends(deps.get_current_user),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    types = await BillService.list_types(db)
    return SuccessResponse(data=types)


@router.post("", response_model=SuccessResponse[BillResponse])
async def create_bill(
    bill_in: BillCreate,
    current_user: PortalUser = Depends(deps.get_current_user),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    """
    Create a bill header. Lines are added through bill_lines or a sheet import.
    """
    bill = await BillService.create_bill(db, bill_in, current_user.actor)
    return SuccessResponse(data=bill, message="สร้างบิลสำเร็จ")


@router.post("/sheet/preview", response_model=SuccessResponse)
async def preview_sheet(
    preview_in: BillSheetPreview,
    current_user: PortalUser = Depends(deps.get_current_user),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    """
    Parse an uploaded sheet and report row-level validation. Writes nothing.
    """
    preview = await SheetImportService.preview(db, preview_in.upload_key)
    return SuccessResponse(data=preview)


@router.post("/sheet/commit", response_model=SuccessResponse)
async def commit_sheet(
    commit_in: BillSheetCommit,
    background_tasks: BackgroundTasks,
    current_user: PortalUser = Depends(deps.get_current_user),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    """
    Create one bill with a line per selected valid row, all or nothing.
    """
    outcome = await SheetImportService.commit(db, commit_in, current_user.actor)
    if outcome["notifications"] and outcome["status"] == BillStatus.SENT:
        background_tasks.add_task(NotificationService.dispatch_in_background, commit_in.customer_id)
    return SuccessResponse(data=outcome, message="นำเข้าข้อมูลบิลสำเร็จ")


@router.get("/{bill_id}", response_model=SuccessResponse)
async def get_bill(
    bill_id: int,
    customer_id: str = Depends(deps.get_customer_id),
    current_user: PortalUser = Depends(deps.get_current_user),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    detail = await BillService.get_detail(db, customer_id, bill_id)
    return SuccessResponse(data=detail)


@router.put("/{bill_id}", response_model=SuccessResponse[BillResponse])
async def update_bill(
    bill_id: int,
    bill_in: BillUpdate,
    background_tasks: BackgroundTasks,
    current_user: PortalUser = Depends(deps.get_current_user),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    """
    Update bill fields. Moving the bill to "sent" notifies its residents.
    """
    bill, notified = await BillService.update_bill(db, bill_id, bill_in, current_user.actor)
    if notified:
        background_tasks.add_task(NotificationService.dispatch_in_background, bill_in.customer_id)
    return SuccessResponse(data=bill, message="แก้ไขบิลสำเร็จ")


@router.post("/{bill_id}/send", response_model=SuccessResponse[BillResponse])
async def send_bill(
    bill_id: int,
    action_in: BillAction,
    background_tasks: BackgroundTasks,
    current_user: PortalUser = Depends(deps.get_current_user),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    """
    Publish a draft or canceled bill to residents.
    """
    bill, notified = await BillService.send_bill(db, action_in.customer_id, bill_id, current_user.actor)
    if notified:
        background_tasks.add_task(NotificationService.dispatch_in_background, action_in.customer_id)
    return SuccessResponse(data=bill, message="ส่งบิลสำเร็จ")


@router.post("/{bill_id}/cancel_send", response_model=SuccessResponse[BillResponse])
async def cancel_send_bill(
    bill_id: int,
    action_in: BillAction,
    current_user: PortalUser = Depends(deps.get_current_user),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    bill = await BillService.cancel_send(db, action_in.customer_id, bill_id, current_user.actor)
    return SuccessResponse(data=bill, message="ยกเลิกการส่งบิลสำเร็จ")


@router.post("/{bill_id}/notify", response_model=SuccessResponse)
async def notify_bill(
    bill_id: int,
    notify_in: BillNotifyRequest,
    background_tasks: BackgroundTasks,
    current_user: PortalUser = Depends(deps.get_current_user),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    """
    Re-send notifications for some or all lines of a sent bill.
    """
    try:
        line_ids = parse_id_list(notify_in.bill_room_ids)
    except ValueError:
        raise ValidationError(fields=["bill_room_ids"])
    notified = await BillService.notify_lines(db, notify_in.customer_id, bill_id, current_user.actor, line_ids)
    if notified:
        background_tasks.add_task(NotificationService.dispatch_in_background, notify_in.customer_id)
    return SuccessResponse(data={"notifications": notified}, message="ส่งการแจ้งเตือนสำเร็จ")


@router.delete("/{bill_id}", response_model=SuccessResponse)
async def delete_bill(
    bill_id: int,
    customer_id: str = Depends(deps.get_customer_id),
    current_user: PortalUser = Depends(deps.get_current_user),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    bill = await BillService.delete_bill(db, customer_id, bill_id, current_user.actor)
    return SuccessResponse(data={"id": bill.id, "status": bill.status}, message="ลบบิลสำเร็จ")


@router.get("/{bill_id}/lines", response_model=SuccessResponse)
async def list_bill_lines(
    bill_id: int,
    customer_id: str = Depends(deps.get_customer_id),
    current_user: PortalUser = Depends(deps.get_current_user),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    """
    All live lines of one bill.
    """
    lines = await BillLineService.lines_for_bill(db, customer_id, bill_id)
    return SuccessResponse(data=lines)
