"""Bill Line Service - per-unit invoices and the ledger views built on them

Overdue is never stored. A line presents as overdue when its status is
unpaid or awaiting review and the local "today" is past the parent bill's
expire_date.
"""

import json
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import NotFoundError, ValidationError
from app.core.logging import get_logger
from app.models.billing import Bill, BillLine, BillType
from app.models.enums import (
    OVERDUE_ELIGIBLE_STATUSES,
    BillLineStatus,
    BillStatus,
    PayableType,
    PaymentStatus,
)
from app.models.payment import BillTransactionType, Payment, PaymentType, Transaction
from app.schemas.billing import BillLineCreate
from app.services import document_store
from app.services.attachment_service import AttachmentService, serialize_attachment
from app.services.bill_service import BillService
from app.services.identifier_service import LINE_PREFIX, IdentifierService
from app.services.notification_service import NotificationService
from app.utils.formatting import (
    format_ddmmyyyy,
    format_price,
    format_thai_date,
    format_thai_datetime,
    remain_date_text,
    status_badge,
    to_money,
)
from app.utils.parsing import parse_int_set
from app.utils.time import get_utc_now, local_today, to_local

logger = get_logger(__name__)

UNPAID_STATUSES = (BillLineStatus.UNPAID, BillLineStatus.PARTIALLY_PAID)
SETTLED_OR_REVIEW_STATUSES = (BillLineStatus.PAID, BillLineStatus.AWAITING_REVIEW)


def normalize_house_no(house_no: Optional[str]) -> str:
    """Units arrive as ``100-10`` in URLs and are stored as ``100/10``"""
    if not house_no or not house_no.strip():
        raise ValidationError(fields=["house_no"])
    return house_no.strip().replace("-", "/")


def is_overdue(status: int, expire_date: Optional[date], today: date) -> bool:
    if expire_date is None:
        return False
    return status in OVERDUE_ELIGIBLE_STATUSES and today > expire_date


def _local_date(value):
    local = to_local(value)
    return local.date() if local else None


def serialize_line(line: BillLine, bill: Optional[Bill] = None, today: Optional[date] = None) -> Dict[str, Any]:
    today = today or local_today()
    expire_date = bill.expire_date if bill is not None else None
    overdue = is_overdue(line.status, expire_date, today)
    data = {
        "id": line.id,
        "bill_id": line.bill_id,
        "bill_no": line.bill_no,
        "house_no": line.house_no,
        "member_name": line.member_name,
        "total_price": to_money(line.total_price),
        "total_price_formatted": format_price(line.total_price),
        "remark": line.remark,
        "customer_id": line.customer_id,
        "status": line.status,
        "overdue": overdue,
        "status_formatted": status_badge(line.status, overdue),
        "create_date": line.create_date,
        "create_date_formatted": format_thai_datetime(line.create_date),
        "create_by": line.create_by,
        "update_date": line.update_date,
        "update_date_formatted": format_thai_datetime(line.update_date),
        "update_by": line.update_by,
    }
    if bill is not None:
        data.update(
            {
                "bill_title": bill.title,
                "bill_detail": bill.detail,
                "bill_status": bill.status,
                "expire_date": expire_date,
                "expire_date_formatted": format_thai_date(expire_date),
                "expire_date_app_formatted": format_thai_date(expire_date, short=True),
                "remain_date": remain_date_text(expire_date, today),
            }
        )
    return data


def serialize_transaction(transaction: Transaction, type_title: Optional[str] = None) -> Dict[str, Any]:
    parsed = None
    if transaction.transaction_type_json:
        try:
            parsed = json.loads(transaction.transaction_type_json)
        except json.JSONDecodeError:
            logger.warning("Stored transaction_type_json is not JSON", extra={"transaction_id": transaction.id})
    return {
        "id": transaction.id,
        "bill_room_id": transaction.bill_room_id,
        "payment_id": transaction.payment_id,
        "bill_transaction_type_id": transaction.bill_transaction_type_id,
        "transaction_type_title": type_title,
        "transaction_amount": to_money(transaction.transaction_amount),
        "transaction_amount_formatted": format_price(transaction.transaction_amount),
        "transaction_type": transaction.transaction_type,
        "transaction_type_json": transaction.transaction_type_json,
        "transaction_type_json_parsed": parsed,
        "pay_date": transaction.pay_date,
        "pay_date_formatted": format_thai_datetime(transaction.pay_date),
        "transaction_date": transaction.transaction_date,
        "transaction_date_formatted": format_thai_datetime(transaction.transaction_date),
        "remark": transaction.remark,
        "status": transaction.status,
        "create_by": transaction.create_by,
    }


class BillLineService:
    @staticmethod
    async def create_line(db: AsyncSession, data: BillLineCreate, actor: str) -> Tuple[BillLine, int]:
        """
        Add a single unit invoice to an existing bill. Lines added to a bill
        that is already sent are notified right away.
        """
        bill = await BillService.get_bill(db, data.customer_id, data.bill_id, for_update=True)

        async def _insert(resync: bool) -> BillLine:
            bill_no = await IdentifierService.allocate(db, LINE_PREFIX, data.customer_id, resync=resync)
            line = BillLine(
                customer_id=data.customer_id,
                bill_id=bill.id,
                bill_no=bill_no,
                house_no=data.house_no.strip(),
                member_name=data.member_name,
                total_price=to_money(data.total_price),
                remark=data.remark,
                status=BillLineStatus.UNPAID,
                create_by=actor,
                create_date=get_utc_now(),
            )
            db.add(line)
            await db.flush()
            return line

        line = await IdentifierService.with_retry(db, _insert, "bill line")
        notified = 0
        if bill.status == BillStatus.SENT:
            notified = await NotificationService.record_for_lines(db, bill, [line], actor)
        logger.info(
            "Bill line created",
            extra={"bill_room_id": line.id, "bill_no": line.bill_no, "bill_id": bill.id, "customer_id": data.customer_id},
        )
        return line, notified

    @staticmethod
    async def get_line(db: AsyncSession, customer_id: str, line_id: int) -> Tuple[BillLine, Bill, Optional[str]]:
        row = (
            await db.execute(
                select(BillLine, Bill, BillType.title)
                .join(Bill, Bill.id == BillLine.bill_id)
                .outerjoin(BillType, BillType.id == Bill.bill_type_id)
                .where(
                    BillLine.id == line_id,
                    BillLine.customer_id == customer_id,
                    BillLine.status != BillLineStatus.DELETED,
                    Bill.status != BillStatus.DELETED,
                )
            )
        ).first()
        if row is None:
            raise NotFoundError("bill_room", line_id, message_key="BILL_LINE_NOT_FOUND")
        return row[0], row[1], row[2]

    @staticmethod
    async def list_lines(
        db: AsyncSession,
        customer_id: str,
        page: int = 1,
        per_page: int = 10,
        status: Optional[int] = None,
        keyword: Optional[str] = None,
        bill_id: Optional[int] = None,
    ) -> Tuple[List[Dict[str, Any]], int]:
        """Admin view: every live line of live bills"""
        conditions = [
            BillLine.customer_id == customer_id,
            BillLine.status != BillLineStatus.DELETED,
            Bill.status != BillStatus.DELETED,
        ]
        if status is not None:
            conditions.append(BillLine.status == status)
        if bill_id:
            conditions.append(BillLine.bill_id == bill_id)
        if keyword and keyword.strip():
            like = f"%{keyword.strip()}%"
            conditions.append(
                or_(BillLine.bill_no.like(like), BillLine.house_no.like(like), BillLine.member_name.like(like))
            )
        return await BillLineService._page(db, conditions, page, per_page, BillLine.id.asc())

    @staticmethod
    async def list_app(
        db: AsyncSession,
        customer_id: str,
        page: int = 1,
        per_page: int = 10,
        status: Any = None,
        house_no: Optional[str] = None,
        keyword: Optional[str] = None,
    ) -> Tuple[List[Dict[str, Any]], int]:
        """Resident view: only lines of sent bills; ``status`` may be ``"1,5"``"""
        conditions = [
            BillLine.customer_id == customer_id,
            BillLine.status != BillLineStatus.DELETED,
            Bill.status == BillStatus.SENT,
        ]
        try:
            statuses = parse_int_set(status)
        except ValueError:
            raise ValidationError(fields=["status"])
        if statuses:
            conditions.append(BillLine.status.in_(statuses))
        if house_no and house_no.strip():
            conditions.append(BillLine.house_no == normalize_house_no(house_no))
        if keyword and keyword.strip():
            like = f"%{keyword.strip()}%"
            conditions.append(
                or_(BillLine.bill_no.like(like), BillLine.house_no.like(like), BillLine.member_name.like(like))
            )
        return await BillLineService._page(db, conditions, page, per_page, BillLine.create_date.desc())

    @staticmethod
    async def _page(db: AsyncSession, conditions, page: int, per_page: int, order) -> Tuple[List[Dict[str, Any]], int]:
        total = await db.scalar(
            select(func.count(BillLine.id)).join(Bill, Bill.id == BillLine.bill_id).where(*conditions)
        ) or 0
        result = await db.execute(
            select(BillLine, Bill)
            .join(Bill, Bill.id == BillLine.bill_id)
            .where(*conditions)
            .order_by(order, BillLine.id.desc())
            .offset((page - 1) * per_page)
            .limit(per_page)
        )
        today = local_today()
        return [serialize_line(line, bill, today) for line, bill in result.all()], total

    @staticmethod
    async def lines_for_bill(db: AsyncSession, customer_id: str, bill_id: int) -> List[Dict[str, Any]]:
        bill = await BillService.get_bill(db, customer_id, bill_id)
        result = await db.execute(
            select(BillLine)
            .where(BillLine.bill_id == bill.id, BillLine.status != BillLineStatus.DELETED)
            .order_by(BillLine.id)
        )
        today = local_today()
        return [serialize_line(line, bill, today) for line in result.scalars().all()]

    @staticmethod
    async def lines_for_unit(db: AsyncSession, customer_id: str, house_no: str) -> List[Dict[str, Any]]:
        """Every sent line for a unit, newest first"""
        house_no = normalize_house_no(house_no)
        result = await db.execute(
            select(BillLine, Bill)
            .join(Bill, Bill.id == BillLine.bill_id)
            .where(
                BillLine.customer_id == customer_id,
                BillLine.house_no == house_no,
                BillLine.status != BillLineStatus.DELETED,
                Bill.status == BillStatus.SENT,
            )
            .order_by(Bill.expire_date.desc(), BillLine.id.desc())
        )
        today = local_today()
        return [serialize_line(line, bill, today) for line, bill in result.all()]

    @staticmethod
    async def _payments_for_line(db: AsyncSession, line_id: int) -> List[Dict[str, Any]]:
        result = await db.execute(
            select(Payment, PaymentType.title, PaymentType.detail)
            .outerjoin(PaymentType, PaymentType.id == Payment.payment_type_id)
            .where(
                Payment.payable_type == PayableType.BILL_LINE.value,
                Payment.payable_id == line_id,
                Payment.status != PaymentStatus.DELETED,
            )
            .order_by(func.coalesce(Payment.update_date, Payment.create_date).desc(), Payment.id.desc())
        )
        rows = result.all()
        attachments = await AttachmentService.list_for_keys(db, [p.upload_key for p, _, _ in rows])
        payments = []
        for payment, type_title, type_detail in rows:
            payments.append(
                {
                    "id": payment.id,
                    "member_id": payment.member_id,
                    "status": payment.status,
                    "payment_amount": to_money(payment.payment_amount),
                    "payment_amount_formatted": format_price(payment.payment_amount),
                    "payment_date": payment.payment_date,
                    "payment_date_formatted": format_thai_datetime(payment.payment_date),
                    "payment_type_id": payment.payment_type_id,
                    "payment_type_data": {"title": type_title, "detail": type_detail},
                    "bank_id": payment.bank_id,
                    "bank_data": None,
                    "remark": payment.remark,
                    "member_remark": payment.member_remark,
                    "create_date": payment.create_date,
                    "create_date_formatted": format_thai_datetime(payment.create_date),
                    "update_date": payment.update_date,
                    "update_date_formatted": format_thai_datetime(payment.update_date),
                    "attachment": [serialize_attachment(a) for a in attachments.get(payment.upload_key, [])],
                }
            )
        return payments

    @staticmethod
    async def detail(db: AsyncSession, customer_id: str, line_id: int) -> Dict[str, Any]:
        """Line with its ledger, the payments filed against it and a running summary"""
        line, bill, bill_type_title = await BillLineService.get_line(db, customer_id, line_id)
        data = serialize_line(line, bill)
        data["bill_type_id"] = bill.bill_type_id
        data["bill_type"] = bill_type_title

        result = await db.execute(
            select(Transaction, BillTransactionType.title)
            .outerjoin(BillTransactionType, BillTransactionType.id == Transaction.bill_transaction_type_id)
            .where(Transaction.bill_room_id == line.id, Transaction.status != 2)
            .order_by(Transaction.transaction_date, Transaction.id)
        )
        transactions = result.all()
        total_paid = sum((to_money(t.transaction_amount) for t, _ in transactions), Decimal("0.00"))
        total_price = to_money(line.total_price)
        remaining = total_price - total_paid

        data["transactions"] = [serialize_transaction(t, title) for t, title in transactions]
        data["payment_list"] = await BillLineService._payments_for_line(db, line.id)
        data["summary"] = {
            "total_price": total_price,
            "total_paid": total_paid,
            "remaining_amount": remaining,
            "remaining_amount_formatted": format_price(max(remaining, Decimal("0.00"))),
            "transaction_count": len(transactions),
            "is_fully_paid": remaining <= 0,
        }

        # Bank enrichment runs after all DB reads
        if any(p["bank_id"] for p in data["payment_list"]):
            banks = await document_store.banks_by_id()
            for payment in data["payment_list"]:
                bank = banks.get(str(payment["bank_id"])) if payment["bank_id"] else None
                if payment["bank_id"]:
                    payment["bank_data"] = {
                        "bank_id": payment["bank_id"],
                        "bank_name": bank.get("name") if bank else None,
                        "bank_icon": bank.get("icon") if bank else None,
                    }
        return data

    @staticmethod
    async def current_for_unit(db: AsyncSession, customer_id: str, house_no: str) -> Optional[Dict[str, Any]]:
        """
        The unit's oldest-due unpaid line of a sent bill, or None.
        Carries the latest rejection so the app can show why a slip bounced.
        """
        house_no = normalize_house_no(house_no)
        row = (
            await db.execute(
                select(BillLine, Bill, BillType.title)
                .join(Bill, Bill.id == BillLine.bill_id)
                .outerjoin(BillType, BillType.id == Bill.bill_type_id)
                .where(
                    BillLine.customer_id == customer_id,
                    BillLine.house_no == house_no,
                    BillLine.status == BillLineStatus.UNPAID,
                    Bill.status == BillStatus.SENT,
                )
                .order_by(Bill.expire_date.asc(), BillLine.id.asc())
                .limit(1)
            )
        ).first()
        if row is None:
            return None
        line, bill, bill_type_title = row
        data = serialize_line(line, bill)
        data["bill_type_id"] = bill.bill_type_id
        data["bill_type"] = bill_type_title

        history = await BillLineService.history_for_unit(db, customer_id, house_no)
        data["last_bill_price"] = history["last_paid_price"]
        data["last_bill_price_formatted"] = history["last_paid_price_formatted"]
        data["total_bill_count"] = history["total_bill_count"]

        payments = (
            await db.execute(
                select(Payment)
                .where(
                    Payment.payable_type == PayableType.BILL_LINE.value,
                    Payment.payable_id == line.id,
                    Payment.status != PaymentStatus.DELETED,
                )
                .order_by(func.coalesce(Payment.update_date, Payment.create_date).desc(), Payment.id.desc())
            )
        ).scalars().all()
        latest = payments[0] if payments else None
        data["payment_data"] = None
        if latest is not None:
            data["payment_data"] = {
                "id": latest.id,
                "status": latest.status,
                "remark": latest.remark,
                "update_date": latest.update_date,
                "update_date_formatted": format_ddmmyyyy(_local_date(latest.update_date)),
            }
        data["rejected_remark"] = None
        data["rejected_update_date"] = None
        if latest is not None and latest.status == PaymentStatus.REJECTED:
            data["rejected_remark"] = latest.remark
            data["rejected_update_date"] = latest.update_date
            data["payment_update_date_formatted"] = format_ddmmyyyy(_local_date(latest.update_date))
        return data

    @staticmethod
    async def history_for_unit(db: AsyncSession, customer_id: str, house_no: str) -> Dict[str, Any]:
        house_no = normalize_house_no(house_no)
        unit = [
            BillLine.customer_id == customer_id,
            BillLine.house_no == house_no,
            BillLine.status != BillLineStatus.DELETED,
            Bill.status != BillStatus.DELETED,
        ]
        total = (
            await db.scalar(select(func.count(BillLine.id)).join(Bill, Bill.id == BillLine.bill_id).where(*unit))
            or 0
        )
        last_paid = (
            await db.execute(
                select(BillLine)
                .join(Bill, Bill.id == BillLine.bill_id)
                .where(*unit, BillLine.status == BillLineStatus.PAID)
                .order_by(func.coalesce(BillLine.update_date, BillLine.create_date).desc(), BillLine.id.desc())
                .limit(1)
            )
        ).scalar_one_or_none()
        price = to_money(last_paid.total_price) if last_paid else Decimal("0.00")
        return {
            "house_no": house_no,
            "total_bill_count": total,
            "last_paid_price": price,
            "last_paid_price_formatted": format_price(price),
            "last_paid_bill_no": last_paid.bill_no if last_paid else None,
            "last_paid_date": last_paid.update_date if last_paid else None,
        }

    @staticmethod
    async def arrears(db: AsyncSession, customer_id: str, house_no: str) -> Dict[str, Any]:
        """What a unit still owes, over lines of sent bills"""
        house_no = normalize_house_no(house_no)
        result = await db.execute(
            select(BillLine.id, BillLine.status, BillLine.total_price)
            .join(Bill, Bill.id == BillLine.bill_id)
            .where(
                BillLine.customer_id == customer_id,
                BillLine.house_no == house_no,
                BillLine.status != BillLineStatus.DELETED,
                Bill.status == BillStatus.SENT,
            )
        )
        lines = result.all()
        unpaid_ids = [line_id for line_id, status, _ in lines if status in UNPAID_STATUSES]
        paid_by_line: Dict[int, Decimal] = {}
        if unpaid_ids:
            paid_rows = await db.execute(
                select(Transaction.bill_room_id, func.sum(Transaction.transaction_amount))
                .where(Transaction.bill_room_id.in_(unpaid_ids), Transaction.status != 2)
                .group_by(Transaction.bill_room_id)
            )
            paid_by_line = {line_id: to_money(amount) for line_id, amount in paid_rows.all()}

        unpaid_amount = Decimal("0.00")
        outstanding = Decimal("0.00")
        settled_or_review = Decimal("0.00")
        for line_id, status, total_price in lines:
            price = to_money(total_price)
            if status in UNPAID_STATUSES:
                unpaid_amount += price
                outstanding += max(price - paid_by_line.get(line_id, Decimal("0.00")), Decimal("0.00"))
            elif status in SETTLED_OR_REVIEW_STATUSES:
                settled_or_review += price

        return {
            "house_no": house_no,
            "unpaid_amount": unpaid_amount,
            "unpaid_amount_formatted": format_price(unpaid_amount),
            "outstanding_amount": outstanding,
            "outstanding_amount_formatted": format_price(outstanding),
            "paid_or_review_amount": settled_or_review,
            "paid_or_review_amount_formatted": format_price(settled_or_review),
            "unpaid_count": len(unpaid_ids),
        }
