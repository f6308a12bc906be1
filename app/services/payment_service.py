"""Payment Service - resident payment intake, admin review and payment views

Intake never touches the payable; only an approval moves money, through the
settlement engine. Review is partial-success: each id runs in its own
savepoint and failures are reported per id.
"""

from datetime import timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple, Type

from sqlalchemy import and_, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import DomainError, NotFoundError, SlipRequiredError, ValidationError
from app.core.logging import get_logger
from app.models.billing import Bill, BillLine, BillType
from app.models.enums import (
    OVERDUE_ELIGIBLE_STATUSES,
    BillLineStatus,
    BillStatus,
    PayableType,
    PaymentStatus,
)
from app.models.payment import Payment, PaymentType, Transaction
from app.schemas.payment import PaymentCreate, PaymentReview
from app.services import document_store
from app.services.attachment_service import AttachmentService, serialize_attachment
from app.services.settlement_service import SettlementService
from app.utils.formatting import format_price, format_thai_date, format_thai_datetime, to_money
from app.utils.parsing import parse_id_list
from app.utils.time import day_bounds_utc, get_utc_now, local_today, month_bounds_utc

logger = get_logger(__name__)

# Payable tag -> model it points at
PAYABLE_MODELS: Dict[str, Type[Any]] = {
    PayableType.BILL_LINE.value: BillLine,
}

REVIEW_STATUSES = (PaymentStatus.APPROVED, PaymentStatus.REJECTED)

# amount_range filter codes (1 = any)
AMOUNT_RANGE_UNDER_1000 = 2
AMOUNT_RANGE_1000_3000 = 3
AMOUNT_RANGE_OVER_3000 = 4

# date_range filter codes (1 = any)
DATE_RANGE_TODAY = 2
DATE_RANGE_LAST_7_DAYS = 3
DATE_RANGE_THIS_MONTH = 4


def serialize_payment(payment: Payment) -> Dict[str, Any]:
    return {
        "id": payment.id,
        "upload_key": payment.upload_key,
        "payable_type": payment.payable_type,
        "payable_id": payment.payable_id,
        "payment_amount": to_money(payment.payment_amount),
        "payment_amount_formatted": format_price(payment.payment_amount),
        "payment_type_id": payment.payment_type_id,
        "bank_id": payment.bank_id,
        "member_id": payment.member_id,
        "payment_date": payment.payment_date,
        "remark": payment.remark,
        "member_remark": payment.member_remark,
        "customer_id": payment.customer_id,
        "status": payment.status,
        "create_date": payment.create_date,
        "create_date_formatted": format_thai_datetime(payment.create_date),
        "create_by": payment.create_by,
        "update_date": payment.update_date,
        "update_date_formatted": format_thai_datetime(payment.update_date),
        "update_by": payment.update_by,
    }


def _line_join():
    return and_(
        Payment.payable_type == PayableType.BILL_LINE.value,
        Payment.payable_id == BillLine.id,
    )


def _amount_condition(amount_range: Optional[int]):
    if amount_range == AMOUNT_RANGE_UNDER_1000:
        return Payment.payment_amount < 1000
    if amount_range == AMOUNT_RANGE_1000_3000:
        return and_(Payment.payment_amount >= 1000, Payment.payment_amount <= 3000)
    if amount_range == AMOUNT_RANGE_OVER_3000:
        return Payment.payment_amount > 3000
    return None


def _date_condition(date_range: Optional[int]):
    if date_range == DATE_RANGE_TODAY:
        start, end = day_bounds_utc(local_today())
    elif date_range == DATE_RANGE_LAST_7_DAYS:
        return Payment.create_date >= get_utc_now() - timedelta(days=7)
    elif date_range == DATE_RANGE_THIS_MONTH:
        start, end = month_bounds_utc(local_today())
    else:
        return None
    return and_(Payment.create_date >= start, Payment.create_date < end)


class PaymentService:
    @staticmethod
    async def get_payable(db: AsyncSession, customer_id: str, payable_type: str, payable_id: int) -> Any:
        """
        Resolve a payable tag and id to its live row.

        Raises:
            ValidationError: unknown payable tag
            NotFoundError: payable absent, deleted or owned by another customer
        """
        model = PAYABLE_MODELS.get(payable_type)
        if model is None:
            raise ValidationError(message_key="PAYABLE_TYPE_INVALID", fields=["payable_type"])
        query = select(model).where(
            model.id == payable_id,
            model.customer_id == customer_id,
            model.status != 2,
        )
        if model is BillLine:
            # a line of a deleted bill is not payable
            query = query.join(Bill, Bill.id == BillLine.bill_id).where(Bill.status != BillStatus.DELETED)
        payable = (await db.execute(query)).scalar_one_or_none()
        if payable is None:
            raise NotFoundError(payable_type, payable_id, message_key="BILL_LINE_NOT_FOUND")
        return payable

    @staticmethod
    async def create_payment(db: AsyncSession, data: PaymentCreate, actor: str) -> Payment:
        """
        Record a resident's payment notification for review.

        Raises:
            SlipRequiredError: no validated attachment under ``upload_key``
            ValidationError: non-positive amount or unknown payable tag
            NotFoundError: payable or payment type missing
        """
        upload_key = data.upload_key.strip()
        if not await AttachmentService.has_valid(db, upload_key):
            raise SlipRequiredError(details={"upload_key": upload_key})

        amount = to_money(data.payment_amount)
        if amount <= 0:
            raise ValidationError(message_key="PAYMENT_AMOUNT_INVALID", fields=["payment_amount"])

        await PaymentService.get_payable(db, data.customer_id, data.payable_type, data.payable_id)

        if data.payment_type_id is not None:
            exists = await db.scalar(
                select(func.count())
                .select_from(PaymentType)
                .where(PaymentType.id == data.payment_type_id, PaymentType.status != 2)
            )
            if not exists:
                raise NotFoundError("payment_type", data.payment_type_id, message_key="PAYMENT_TYPE_NOT_FOUND")

        payment = Payment(
            customer_id=data.customer_id,
            upload_key=upload_key,
            payable_type=data.payable_type,
            payable_id=data.payable_id,
            payment_amount=amount,
            payment_type_id=data.payment_type_id,
            bank_id=data.bank_id,
            member_id=data.member_id,
            payment_date=data.payment_date,
            remark=data.remark,
            member_remark=data.member_remark,
            status=PaymentStatus.AWAITING_REVIEW,
            create_by=actor,
            create_date=get_utc_now(),
        )
        db.add(payment)
        await db.flush()

        logger.info(
            "Payment submitted",
            extra={
                "payment_id": payment.id,
                "payable_type": payment.payable_type,
                "payable_id": payment.payable_id,
                "amount": str(amount),
                "customer_id": data.customer_id,
            },
        )
        return payment

    @staticmethod
    def _validate_review(data: PaymentReview) -> Tuple[List[int], int, Optional[str]]:
        try:
            ids = parse_id_list(data.ids)
        except ValueError:
            raise ValidationError(message_key="REVIEW_IDS_REQUIRED", fields=["ids"])
        if not ids:
            raise ValidationError(message_key="REVIEW_IDS_REQUIRED", fields=["ids"])
        if data.status not in REVIEW_STATUSES:
            raise ValidationError(message_key="REVIEW_STATUS_INVALID", fields=["status"])
        remark = data.remark.strip() if data.remark else None
        if data.status == PaymentStatus.REJECTED and not remark:
            raise ValidationError(message_key="REVIEW_REMARK_REQUIRED", fields=["remark"])
        return ids, int(data.status), remark

    @staticmethod
    async def _settle_approved(db: AsyncSession, payment: Payment, actor: str) -> Dict[str, Any]:
        """Post the approved amount; a failure rolls back only the settlement savepoint"""
        try:
            async with db.begin_nested():
                transaction = await SettlementService.settle(
                    db,
                    bill_room_id=payment.payable_id,
                    amount=payment.payment_amount,
                    customer_id=payment.customer_id,
                    actor=actor,
                    payment_id=payment.id,
                    pay_date=payment.payment_date,
                )
            return {"settled": True, "transaction_id": transaction.id}
        except (DomainError, SQLAlchemyError) as e:
            logger.error(
                "Settlement after approval failed",
                extra={
                    "payment_id": payment.id,
                    "bill_room_id": payment.payable_id,
                    "customer_id": payment.customer_id,
                    "error": str(e),
                },
            )
            reason = e.code if isinstance(e, DomainError) else "INTERNAL_ERROR"
            return {"settled": False, "transaction_id": None, "settlement_error": reason}

    @staticmethod
    async def review(db: AsyncSession, data: PaymentReview, actor: str) -> Dict[str, Any]:
        """
        Approve or reject a batch of payments awaiting review.

        The envelope (ids, status, remark) is validated before anything is
        written. After that, per-id problems are collected, not raised.
        """
        ids, status, remark = PaymentService._validate_review(data)

        success_items: List[Dict[str, Any]] = []
        failed_items: List[Dict[str, Any]] = []

        for payment_id in ids:
            try:
                async with db.begin_nested():
                    result = await db.execute(
                        select(Payment)
                        .where(
                            Payment.id == payment_id,
                            Payment.customer_id == data.customer_id,
                            Payment.status != PaymentStatus.DELETED,
                        )
                        .with_for_update()
                    )
                    payment = result.scalar_one_or_none()
                    if payment is None:
                        failed_items.append({"id": payment_id, "reason": "NOT_FOUND", "message": "ไม่พบข้อมูลการแจ้งชำระ"})
                        continue
                    if payment.status != PaymentStatus.AWAITING_REVIEW:
                        failed_items.append(
                            {
                                "id": payment_id,
                                "reason": "ALREADY_PROCESSED",
                                "message": "รายการนี้ถูกดำเนินการไปแล้ว",
                                "current_status": payment.status,
                            }
                        )
                        continue

                    payment.status = status
                    payment.remark = remark
                    payment.touch(actor)
                    await db.flush()

                    outcome: Dict[str, Any] = {"settled": False, "transaction_id": None}
                    if status == PaymentStatus.APPROVED and payment.payable_type == PayableType.BILL_LINE.value:
                        outcome = await PaymentService._settle_approved(db, payment, actor)

                    success_items.append({"id": payment_id, "status": status, "remark": remark, **outcome})
            except SQLAlchemyError as e:
                logger.exception("Payment review failed", extra={"payment_id": payment_id})
                failed_items.append({"id": payment_id, "reason": "INTERNAL_ERROR", "message": str(e)})

        logger.info(
            "Payments reviewed",
            extra={
                "customer_id": data.customer_id,
                "status": status,
                "total": len(ids),
                "success_count": len(success_items),
                "failed_count": len(failed_items),
                "update_by": actor,
            },
        )
        return {
            "total": len(ids),
            "success_count": len(success_items),
            "failed_count": len(failed_items),
            "success_items": success_items,
            "failed_items": failed_items,
            "update_by": actor,
        }

    @staticmethod
    async def list_payments(
        db: AsyncSession,
        customer_id: str,
        page: int = 1,
        per_page: int = 10,
        status: Optional[int] = None,
        keyword: Optional[str] = None,
        amount_range: Optional[int] = None,
        date_range: Optional[int] = None,
    ) -> Tuple[List[Dict[str, Any]], int]:
        conditions = [Payment.customer_id == customer_id, Payment.status != PaymentStatus.DELETED]
        if status is not None:
            conditions.append(Payment.status == status)
        amount_condition = _amount_condition(amount_range)
        if amount_condition is not None:
            conditions.append(amount_condition)
        date_condition = _date_condition(date_range)
        if date_condition is not None:
            conditions.append(date_condition)
        if keyword and keyword.strip():
            like = f"%{keyword.strip()}%"
            conditions.append(
                or_(
                    BillLine.bill_no.like(like),
                    BillLine.house_no.like(like),
                    BillLine.member_name.like(like),
                    Bill.title.like(like),
                )
            )

        base = (
            select(Payment, BillLine, Bill.title, PaymentType.title)
            .outerjoin(BillLine, _line_join())
            .outerjoin(Bill, Bill.id == BillLine.bill_id)
            .outerjoin(PaymentType, PaymentType.id == Payment.payment_type_id)
            .where(*conditions)
        )
        total = await db.scalar(select(func.count()).select_from(base.subquery())) or 0
        result = await db.execute(
            base.order_by(Payment.create_date.desc(), Payment.id.desc())
            .offset((page - 1) * per_page)
            .limit(per_page)
        )

        items = []
        for payment, line, bill_title, payment_type_title in result.all():
            item = serialize_payment(payment)
            item.update(
                {
                    "bill_no": line.bill_no if line else None,
                    "house_no": line.house_no if line else None,
                    "member_name": line.member_name if line else None,
                    "bill_total_price": format_price(line.total_price) if line else None,
                    "bill_title": bill_title,
                    "payment_type_title": payment_type_title,
                }
            )
            items.append(item)
        return items, total

    @staticmethod
    async def summary(db: AsyncSession, customer_id: str) -> Dict[str, Any]:
        """Tab counts and headline cards for the payment screen"""
        sent_line = [
            BillLine.customer_id == customer_id,
            Bill.status == BillStatus.SENT,
        ]
        unpaid = await db.scalar(
            select(func.count(BillLine.id))
            .join(Bill, Bill.id == BillLine.bill_id)
            .where(*sent_line, BillLine.status == BillLineStatus.UNPAID)
        ) or 0

        overdue = await db.scalar(
            select(func.count(BillLine.id))
            .join(Bill, Bill.id == BillLine.bill_id)
            .where(
                *sent_line,
                BillLine.status.in_(OVERDUE_ELIGIBLE_STATUSES),
                Bill.expire_date < local_today(),
            )
        ) or 0

        counts = dict(
            (
                await db.execute(
                    select(Payment.status, func.count(Payment.id))
                    .where(Payment.customer_id == customer_id, Payment.status != PaymentStatus.DELETED)
                    .group_by(Payment.status)
                )
            ).all()
        )

        paid = (
            select(
                Transaction.bill_room_id.label("bill_room_id"),
                func.sum(Transaction.transaction_amount).label("paid"),
            )
            .where(Transaction.customer_id == customer_id, Transaction.status != 2)
            .group_by(Transaction.bill_room_id)
            .subquery()
        )
        rows = await db.execute(
            select(BillLine.total_price, func.coalesce(paid.c.paid, 0))
            .join(Bill, Bill.id == BillLine.bill_id)
            .outerjoin(paid, paid.c.bill_room_id == BillLine.id)
            .where(
                *sent_line,
                BillLine.status.in_((BillLineStatus.UNPAID, BillLineStatus.PARTIALLY_PAID)),
            )
        )
        outstanding = Decimal("0.00")
        for total_price, paid_amount in rows.all():
            remaining = to_money(total_price) - to_money(paid_amount)
            if remaining > 0:
                outstanding += remaining

        return {
            "tab1": unpaid,
            "tab2": counts.get(PaymentStatus.AWAITING_REVIEW, 0),
            "tab3": counts.get(PaymentStatus.APPROVED, 0),
            "tab4": counts.get(PaymentStatus.REJECTED, 0),
            "card1": unpaid,
            "card2": overdue,
            "card3": format_price(outstanding),
            "outstanding_amount": to_money(outstanding),
        }

    @staticmethod
    async def get_payment(db: AsyncSession, customer_id: str, payment_id: int) -> Payment:
        result = await db.execute(
            select(Payment).where(
                Payment.id == payment_id,
                Payment.customer_id == customer_id,
                Payment.status != PaymentStatus.DELETED,
            )
        )
        payment = result.scalar_one_or_none()
        if payment is None:
            raise NotFoundError("payment", payment_id, message_key="PAYMENT_NOT_FOUND")
        return payment

    @staticmethod
    async def detail(db: AsyncSession, customer_id: str, payment_id: int) -> Dict[str, Any]:
        payment = await PaymentService.get_payment(db, customer_id, payment_id)
        data = serialize_payment(payment)

        if payment.payment_type_id is not None:
            data["payment_type_title"] = await db.scalar(
                select(PaymentType.title).where(PaymentType.id == payment.payment_type_id)
            )
        else:
            data["payment_type_title"] = None

        data["bill_line"] = None
        if payment.payable_type == PayableType.BILL_LINE.value:
            row = (
                await db.execute(
                    select(BillLine, Bill, BillType.title)
                    .join(Bill, Bill.id == BillLine.bill_id)
                    .outerjoin(BillType, BillType.id == Bill.bill_type_id)
                    .where(BillLine.id == payment.payable_id, BillLine.status != 2)
                )
            ).first()
            if row is not None:
                line, bill, bill_type_title = row
                data["bill_line"] = {
                    "id": line.id,
                    "bill_no": line.bill_no,
                    "house_no": line.house_no,
                    "member_name": line.member_name,
                    "total_price": to_money(line.total_price),
                    "total_price_formatted": format_price(line.total_price),
                    "status": line.status,
                    "bill_id": bill.id,
                    "bill_title": bill.title,
                    "bill_detail": bill.detail,
                    "bill_type_title": bill_type_title,
                    "expire_date": bill.expire_date,
                    "expire_date_formatted": format_thai_date(bill.expire_date),
                    "send_date": bill.send_date,
                }

        attachments = (await AttachmentService.list_for_keys(db, [payment.upload_key])).get(payment.upload_key, [])
        data["attachments"] = [serialize_attachment(a) for a in attachments]
        data["attachment"] = data["attachments"][-1] if data["attachments"] else None

        # Bank enrichment runs after all DB reads
        data["bank"] = None
        if payment.bank_id:
            data["bank"] = (await document_store.banks_by_id()).get(str(payment.bank_id))
        return data

    @staticmethod
    async def list_types(db: AsyncSession) -> List[PaymentType]:
        result = await db.execute(
            select(PaymentType).where(PaymentType.status != 2).order_by(PaymentType.id)
        )
        return list(result.scalars().all())
