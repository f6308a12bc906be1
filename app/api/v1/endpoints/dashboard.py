from typing import Any

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.security import PortalUser
from app.schemas.responses import SuccessResponse
from app.services.dashboard_service import DashboardService

router = APIRouter()


@router.get("/summary", response_model=SuccessResponse)
async def dashboard_summary(
    customer_id: str = Depends(deps.get_customer_id),
    current_user: PortalUser = Depends(deps.get_current_user),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    """
    Headline cards: revenue this month, outstanding, overdue, residents.
    """
    summary = await DashboardService.summary(db, customer_id)
    return SuccessResponse(data=summary)


@router.get("/billing_revenue", response_model=SuccessResponse)
async def billing_revenue(
    month_duration: str = Query("6"),
    customer_id: str = Depends(deps.get_customer_id),
    current_user: PortalUser = Depends(deps.get_current_user),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    revenue = await DashboardService.billing_revenue(db, customer_id, month_duration)
    return SuccessResponse(data=revenue)


@router.get("/bill_status", response_model=SuccessResponse)
async def bill_status(
    customer_id: str = Depends(deps.get_customer_id),
    current_user: PortalUser = Depends(deps.get_current_user),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    distribution = await DashboardService.bill_status(db, customer_id)
    return SuccessResponse(data=distribution)


@router.get("/payment_efficiency", response_model=SuccessResponse)
async def payment_efficiency(
    customer_id: str = Depends(deps.get_customer_id),
    current_user: PortalUser = Depends(deps.get_current_user),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    """
    Paid share of this month's sent lines against the 90% target.
    """
    efficiency = await DashboardService.payment_efficiency(db, customer_id)
    return SuccessResponse(data=efficiency)


@router.get("/action_items", response_model=SuccessResponse)
async def action_items(
    customer_id: str = Depends(deps.get_customer_id),
    current_user: PortalUser = Depends(deps.get_current_user),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    items = await DashboardService.action_items(db, customer_id)
    return SuccessResponse(data=items)
