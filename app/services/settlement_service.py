"""Settlement Service - posts transactions against bill lines

A line's paid-to-date is the sum of its live transactions. Each posting
derives ``full``/``partial`` from the running total and moves the line to
paid (1) or partially paid (4).
"""

import json
from datetime import datetime
from decimal import Decimal
from typing import Any, List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import NotFoundError, ValidationError
from app.core.logging import get_logger
from app.models.billing import Bill, BillLine
from app.models.enums import BillLineStatus, BillStatus, TransactionType
from app.models.payment import BillTransactionType, Transaction
from app.schemas.payment import TransactionCreate
from app.utils.formatting import to_money
from app.utils.time import get_utc_now

logger = get_logger(__name__)


def normalize_transaction_json(value: Any) -> Optional[str]:
    """
    Accept a JSON object/array or a string holding JSON; return canonical text.

    Raises:
        ValidationError: string is not valid JSON
    """
    if value is None or value == "":
        return None
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError:
            raise ValidationError(message_key="TRANSACTION_JSON_INVALID", fields=["transaction_type_json"])
    return json.dumps(value, ensure_ascii=False)


def derive_transaction_type(paid_to_date: Decimal, amount: Decimal, total_price: Decimal) -> TransactionType:
    return TransactionType.FULL if paid_to_date + amount >= total_price else TransactionType.PARTIAL


class SettlementService:
    @staticmethod
    async def lock_line(db: AsyncSession, customer_id: str, bill_room_id: int) -> BillLine:
        result = await db.execute(
            select(BillLine)
            .join(Bill, Bill.id == BillLine.bill_id)
            .where(
                BillLine.id == bill_room_id,
                BillLine.customer_id == customer_id,
                BillLine.status != BillLineStatus.DELETED,
                Bill.status != BillStatus.DELETED,
            )
            .with_for_update(of=BillLine)
        )
        line = result.scalar_one_or_none()
        if line is None:
            raise NotFoundError("bill_room", bill_room_id, message_key="BILL_LINE_NOT_FOUND")
        return line

    @staticmethod
    async def paid_to_date(db: AsyncSession, bill_room_id: int) -> Decimal:
        total = await db.scalar(
            select(func.coalesce(func.sum(Transaction.transaction_amount), 0)).where(
                Transaction.bill_room_id == bill_room_id,
                Transaction.status != 2,
            )
        )
        return to_money(total)

    @staticmethod
    async def settle(
        db: AsyncSession,
        *,
        bill_room_id: int,
        amount: Decimal,
        customer_id: str,
        actor: str,
        payment_id: Optional[int] = None,
        bill_transaction_type_id: Optional[int] = None,
        pay_date: Optional[datetime] = None,
        transaction_type_json: Any = None,
        remark: Optional[str] = None,
    ) -> Transaction:
        """
        Post ``amount`` against a bill line. Exactly one of ``payment_id``
        and ``bill_transaction_type_id`` identifies where the money came from.

        Raises:
            ValidationError: non-positive amount or ambiguous source
            NotFoundError: line absent or deleted
        """
        if (payment_id is None) == (bill_transaction_type_id is None):
            raise ValidationError(fields=["payment_id", "bill_transaction_type_id"])
        amount = to_money(amount)
        if amount <= 0:
            raise ValidationError(message_key="TRANSACTION_AMOUNT_INVALID", fields=["transaction_amount"])
        json_text = normalize_transaction_json(transaction_type_json)

        line = await SettlementService.lock_line(db, customer_id, bill_room_id)
        paid = await SettlementService.paid_to_date(db, line.id)
        total_price = to_money(line.total_price)
        transaction_type = derive_transaction_type(paid, amount, total_price)

        now = get_utc_now()
        transaction = Transaction(
            customer_id=customer_id,
            bill_room_id=line.id,
            payment_id=payment_id,
            bill_transaction_type_id=bill_transaction_type_id,
            transaction_amount=amount,
            transaction_type=transaction_type.value,
            transaction_type_json=json_text,
            pay_date=pay_date or now,
            transaction_date=now,
            remark=remark,
            status=1,
            create_by=actor,
            create_date=now,
        )
        db.add(transaction)

        line.status = (
            BillLineStatus.PAID if transaction_type == TransactionType.FULL else BillLineStatus.PARTIALLY_PAID
        )
        line.touch(actor)
        await db.flush()

        logger.info(
            "Transaction posted",
            extra={
                "transaction_id": transaction.id,
                "bill_room_id": line.id,
                "payment_id": payment_id,
                "amount": str(amount),
                "paid_to_date": str(paid + amount),
                "total_price": str(total_price),
                "transaction_type": transaction_type.value,
                "customer_id": customer_id,
            },
        )
        return transaction

    @staticmethod
    async def record_manual(db: AsyncSession, data: TransactionCreate, actor: str) -> Transaction:
        """Admin-entered payment (no resident slip)"""
        exists = await db.scalar(
            select(func.count())
            .select_from(BillTransactionType)
            .where(
                BillTransactionType.id == data.bill_transaction_type_id,
                BillTransactionType.status != 2,
            )
        )
        if not exists:
            raise NotFoundError(
                "bill_transaction_type", data.bill_transaction_type_id, message_key="TRANSACTION_TYPE_NOT_FOUND"
            )
        return await SettlementService.settle(
            db,
            bill_room_id=data.bill_room_id,
            amount=data.transaction_amount,
            customer_id=data.customer_id,
            actor=actor,
            bill_transaction_type_id=data.bill_transaction_type_id,
            pay_date=data.pay_date,
            transaction_type_json=data.transaction_type_json,
            remark=data.remark,
        )

    @staticmethod
    async def get_transaction(db: AsyncSession, customer_id: str, transaction_id: int) -> Transaction:
        result = await db.execute(
            select(Transaction).where(
                Transaction.id == transaction_id,
                Transaction.customer_id == customer_id,
                Transaction.status != 2,
            )
        )
        transaction = result.scalar_one_or_none()
        if transaction is None:
            raise NotFoundError("transaction", transaction_id, message_key="TRANSACTION_NOT_FOUND")
        return transaction

    @staticmethod
    async def list_for_line(db: AsyncSession, bill_room_id: int) -> List[Transaction]:
        result = await db.execute(
            select(Transaction)
            .where(Transaction.bill_room_id == bill_room_id, Transaction.status != 2)
            .order_by(Transaction.transaction_date, Transaction.id)
        )
        return list(result.scalars().all())

    @staticmethod
    async def list_types(db: AsyncSession) -> List[BillTransactionType]:
        result = await db.execute(
            select(BillTransactionType)
            .where(BillTransactionType.status != 2)
            .order_by(BillTransactionType.id)
        )
        return list(result.scalars().all())
