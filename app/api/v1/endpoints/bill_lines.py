from typing import Any, Optional
from urllib.parse import quote

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.messages import get_message
from app.core.security import PortalUser
from app.schemas.billing import BillLineCreate, BillLineResponse
from app.schemas.responses import PaginatedResponse, PaginationMeta, SuccessResponse
from app.services import pdf_service
from app.services.bill_line_service import BillLineService
from app.services.notification_service import NotificationService

router = APIRouter()


@router.get("", response_model=PaginatedResponse[dict])
async def list_lines(
    customer_id: str = Depends(deps.get_customer_id),
    page: int = Query(1, ge=1),
    per_page: int = Query(10, ge=1, le=100),
    status: Optional[int] = Query(None),
    keyword: Optional[str] = Query(None),
    bill_id: Optional[int] = Query(None),
    current_user: PortalUser = Depends(deps.get_current_user),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    """
    Admin list of unit invoices.
    """
    items, total = await BillLineService.list_lines(
        db, customer_id, page=page, per_page=per_page, status=status, keyword=keyword, bill_id=bill_id
    )
    return PaginatedResponse(data=items, pagination=PaginationMeta.build(page, per_page, total))


@router.get("/app", response_model=PaginatedResponse[dict])
async def list_lines_for_app(
    customer_id: str = Depends(deps.get_customer_id),
    page: int = Query(1, ge=1),
    per_page: int = Query(10, ge=1, le=100),
    status: Optional[str] = Query(None, description='One status or a list such as "1,5"'),
    house_no: Optional[str] = Query(None),
    keyword: Optional[str] = Query(None),
    current_user: PortalUser = Depends(deps.get_current_user),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    """
    Resident list: lines of sent bills only, with derived overdue status.
    """
    items, total = await BillLineService.list_app(
        db, customer_id, page=page, per_page=per_page, status=status, house_no=house_no, keyword=keyword
    )
    return PaginatedResponse(data=items, pagination=PaginationMeta.build(page, per_page, total))


@router.post("", response_model=SuccessResponse[BillLineResponse])
async def create_line(
    line_in: BillLineCreate,
    background_tasks: BackgroundTasks,
    current_user: PortalUser = Depends(deps.get_current_user),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    line, notified = await BillLineService.create_line(db, line_in, current_user.actor)
    if notified:
        background_tasks.add_task(NotificationService.dispatch_in_background, line_in.customer_id)
    return SuccessResponse(data=line, message="เพิ่มรายการบิลสำเร็จ")


@router.get("/current", response_model=SuccessResponse)
async def current_bill(
    house_no: str = Query(...),
    customer_id: str = Depends(deps.get_customer_id),
    current_user: PortalUser = Depends(deps.get_current_user),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    """
    Latest sent line of a unit with its payment state.
    """
    current = await BillLineService.current_for_unit(db, customer_id, house_no)
    if current is None:
        return SuccessResponse(data=None, message=get_message("CURRENT_BILL_NOT_FOUND"))
    return SuccessResponse(data=current)


@router.get("/history", response_model=SuccessResponse)
async def bill_history(
    house_no: str = Query(...),
    customer_id: str = Depends(deps.get_customer_id),
    current_user: PortalUser = Depends(deps.get_current_user),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    history = await BillLineService.history_for_unit(db, customer_id, house_no)
    return SuccessResponse(data=history)


@router.get("/arrears", response_model=SuccessResponse)
async def bill_arrears(
    house_no: str = Query(...),
    customer_id: str = Depends(deps.get_customer_id),
    current_user: PortalUser = Depends(deps.get_current_user),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    """
    Unpaid, outstanding and under-review totals for a unit.
    """
    arrears = await BillLineService.arrears(db, customer_id, house_no)
    return SuccessResponse(data=arrears)


@router.get("/unit", response_model=SuccessResponse)
async def lines_for_unit(
    house_no: str = Query(...),
    customer_id: str = Depends(deps.get_customer_id),
    current_user: PortalUser = Depends(deps.get_current_user),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    lines = await BillLineService.lines_for_unit(db, customer_id, house_no)
    return SuccessResponse(data=lines)


@router.get("/{line_id}", response_model=SuccessResponse)
async def get_line(
    line_id: int,
    customer_id: str = Depends(deps.get_customer_id),
    current_user: PortalUser = Depends(deps.get_current_user),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    """
    Line detail with ledger transactions, payment notifications and balance.
    """
    detail = await BillLineService.detail(db, customer_id, line_id)
    return SuccessResponse(data=detail)


@router.get("/{line_id}/pdf")
async def get_line_pdf(
    line_id: int,
    customer_id: str = Depends(deps.get_customer_id),
    current_user: PortalUser = Depends(deps.get_current_user),
    db: AsyncSession = Depends(deps.get_db),
) -> Response:
    rendered = await pdf_service.render_invoice(db, customer_id, line_id)
    return Response(
        content=rendered["content"],
        media_type="application/pdf",
        headers={"Content-Disposition": f"attachment; filename*=UTF-8''{quote(rendered['filename'])}"},
    )
