from typing import Any, List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.security import PortalUser
from app.schemas.billing import ReferenceItem
from app.schemas.payment import TransactionCreate, TransactionResponse
from app.schemas.responses import SuccessResponse
from app.services.settlement_service import SettlementService

router = APIRouter()


@router.post("", response_model=SuccessResponse[TransactionResponse])
async def create_transaction(
    transaction_in: TransactionCreate,
    current_user: PortalUser = Depends(deps.get_current_user),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    """
    Record a payment taken by the office. The line status follows the new balance.
    """
    transaction = await SettlementService.record_manual(db, transaction_in, current_user.actor)
    return SuccessResponse(data=transaction, message="บันทึกการชำระเงินสำเร็จ")


@router.get("/types", response_model=SuccessResponse[List[ReferenceItem]])
async def list_transaction_types(
    current_user: PortalUser = Depends(deps.get_current_user),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    types = await SettlementService.list_types(db)
    return SuccessResponse(data=types)


@router.get("/{transaction_id}", response_model=SuccessResponse[TransactionResponse])
async def get_transaction(
    transaction_id: int,
    customer_id: str = Depends(deps.get_customer_id),
    current_user: PortalUser = Depends(deps.get_current_user),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    transaction = await SettlementService.get_transaction(db, customer_id, transaction_id)
    return SuccessResponse(data=transaction)
