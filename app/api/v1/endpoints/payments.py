from typing import Any, List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.security import PortalUser
from app.schemas.billing import ReferenceItem
from app.schemas.payment import PaymentCreate, PaymentResponse, PaymentReview
from app.schemas.responses import PaginatedResponse, PaginationMeta, SuccessResponse
from app.services.payment_service import PaymentService

router = APIRouter()


@router.get("", response_model=PaginatedResponse[dict])
async def list_payments(
    customer_id: str = Depends(deps.get_customer_id),
    page: int = Query(1, ge=1),
    per_page: int = Query(10, ge=1, le=100),
    status: Optional[int] = Query(None),
    keyword: Optional[str] = Query(None),
    amount_range: Optional[int] = Query(None, ge=1, le=4),
    date_range: Optional[int] = Query(None, ge=1, le=4),
    current_user: PortalUser = Depends(deps.get_current_user),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    """
    List payment notifications.

    amount_range: 1 any / 2 under 1,000 / 3 1,000-3,000 / 4 over 3,000
    date_range: 1 any time / 2 today / 3 last 7 days / 4 this month
    """
    items, total = await PaymentService.list_payments(
        db,
        customer_id,
        page=page,
        per_page=per_page,
        status=status,
        keyword=keyword,
        amount_range=amount_range,
        date_range=date_range,
    )
    return PaginatedResponse(data=items, pagination=PaginationMeta.build(page, per_page, total))


@router.get("/summary", response_model=SuccessResponse)
async def payment_summary(
    customer_id: str = Depends(deps.get_customer_id),
    current_user: PortalUser = Depends(deps.get_current_user),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    summary = await PaymentService.summary(db, customer_id)
    return SuccessResponse(data=summary)


@router.get("/types", response_model=SuccessResponse[List[ReferenceItem]])
async def list_payment_types(
    current_user: PortalUser = Depends(deps.get_current_user),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    types = await PaymentService.list_types(db)
    return SuccessResponse(data=types)


@router.put("/review", response_model=SuccessResponse)
async def review_payments(
    review_in: PaymentReview,
    current_user: PortalUser = Depends(deps.get_current_user),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    """
    Approve (1) or reject (3) awaiting payments. Each id succeeds or fails
    on its own; approvals settle into the ledger.
    """
    outcome = await PaymentService.review(db, review_in, current_user.actor)
    return SuccessResponse(
        data=outcome,
        message=f"ตรวจสอบสำเร็จ {outcome['success_count']} รายการ ไม่สำเร็จ {outcome['failed_count']} รายการ",
    )


@router.get("/{payment_id}", response_model=SuccessResponse)
async def get_payment(
    payment_id: int,
    customer_id: str = Depends(deps.get_customer_id),
    current_user: PortalUser = Depends(deps.get_current_user),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    detail = await PaymentService.detail(db, customer_id, payment_id)
    return SuccessResponse(data=detail)


@router.post("", response_model=SuccessResponse[PaymentResponse])
async def create_payment(
    payment_in: PaymentCreate,
    current_user: PortalUser = Depends(deps.get_current_user),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    """
    Resident payment notification. Requires a slip uploaded under upload_key.
    """
    payment = await PaymentService.create_payment(db, payment_in, current_user.actor)
    return SuccessResponse(data=payment, message="แจ้งชำระเงินสำเร็จ")
