"""Bill Service - bill lifecycle (draft, sent, canceled, deleted)"""

from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import NotFoundError, StatePreconditionError
from app.core.logging import get_logger
from app.models.billing import Bill, BillAudit, BillLine, BillType
from app.models.enums import BillStatus
from app.schemas.billing import BillCreate, BillUpdate
from app.services.identifier_service import BILL_PREFIX, IdentifierService
from app.services.notification_service import NotificationService
from app.utils.formatting import format_price, format_thai_date, format_thai_datetime, to_money
from app.utils.time import get_utc_now

logger = get_logger(__name__)

# Statuses each transition may start from
SENDABLE = (BillStatus.DRAFT, BillStatus.CANCELED)
EDITABLE = (BillStatus.DRAFT, BillStatus.SENT, BillStatus.CANCELED)


def serialize_bill(bill: Bill, bill_type_title: Optional[str] = None) -> Dict[str, Any]:
    return {
        "id": bill.id,
        "bill_no": bill.bill_no,
        "upload_key": bill.upload_key,
        "title": bill.title,
        "detail": bill.detail,
        "bill_type_id": bill.bill_type_id,
        "bill_type_title": bill_type_title,
        "expire_date": bill.expire_date,
        "expire_date_formatted": format_thai_date(bill.expire_date),
        "send_date": bill.send_date,
        "send_date_formatted": format_thai_datetime(bill.send_date),
        "remark": bill.remark,
        "customer_id": bill.customer_id,
        "status": bill.status,
        "create_date": bill.create_date,
        "create_date_formatted": format_thai_datetime(bill.create_date),
        "create_by": bill.create_by,
        "update_date": bill.update_date,
        "update_by": bill.update_by,
    }


class BillService:
    @staticmethod
    async def append_audit(db: AsyncSession, bill: Bill, actor: str) -> None:
        db.add(BillAudit(bill_id=bill.id, status=bill.status, create_by=actor, create_date=get_utc_now()))

    @staticmethod
    async def ensure_bill_type(db: AsyncSession, bill_type_id: Optional[int]) -> None:
        if bill_type_id is None:
            return
        exists = await db.scalar(
            select(func.count())
            .select_from(BillType)
            .where(BillType.id == bill_type_id, BillType.status != 2)
        )
        if not exists:
            raise NotFoundError("bill_type", bill_type_id, message_key="BILL_TYPE_NOT_FOUND")

    @staticmethod
    async def get_bill(
        db: AsyncSession,
        customer_id: str,
        bill_id: int,
        for_update: bool = False,
    ) -> Bill:
        stmt = select(Bill).where(
            Bill.id == bill_id,
            Bill.customer_id == customer_id,
            Bill.status != BillStatus.DELETED,
        )
        if for_update:
            stmt = stmt.with_for_update()
        bill = (await db.execute(stmt)).scalar_one_or_none()
        if bill is None:
            raise NotFoundError("bill", bill_id, message_key="BILL_NOT_FOUND")
        return bill

    @staticmethod
    async def insert_bill(
        db: AsyncSession,
        data: BillCreate,
        actor: str,
        resync: bool = False,
    ) -> Bill:
        """Allocate a number and insert; the caller owns audit and notification"""
        bill_no = await IdentifierService.allocate(db, BILL_PREFIX, data.customer_id, resync=resync)
        now = get_utc_now()
        bill = Bill(
            customer_id=data.customer_id,
            bill_no=bill_no,
            upload_key=data.upload_key,
            title=data.title.strip(),
            detail=data.detail.strip() if data.detail else data.detail,
            bill_type_id=data.bill_type_id,
            expire_date=data.expire_date,
            send_date=now if data.status == BillStatus.SENT else None,
            remark=data.remark,
            status=int(data.status),
            create_by=actor,
            create_date=now,
        )
        db.add(bill)
        await db.flush()
        return bill

    @staticmethod
    async def create_bill(db: AsyncSession, data: BillCreate, actor: str) -> Bill:
        await BillService.ensure_bill_type(db, data.bill_type_id)

        async def _insert(resync: bool) -> Bill:
            return await BillService.insert_bill(db, data, actor, resync=resync)

        bill = await IdentifierService.with_retry(db, _insert, "bill")
        await BillService.append_audit(db, bill, actor)
        await db.flush()
        logger.info(
            "Bill created",
            extra={"bill_id": bill.id, "bill_no": bill.bill_no, "customer_id": bill.customer_id, "status": bill.status},
        )
        return bill

    @staticmethod
    async def update_bill(
        db: AsyncSession, bill_id: int, data: BillUpdate, actor: str
    ) -> Tuple[Bill, int]:
        """
        Update fields and optionally status. Returns the bill and the number
        of notifications recorded (non-zero only when entering "sent").
        """
        bill = await BillService.get_bill(db, data.customer_id, bill_id, for_update=True)
        if bill.status not in EDITABLE:
            raise StatePreconditionError(bill.status, message_key="BILL_STATUS_INVALID")

        fields = data.model_dump(exclude_unset=True, exclude={"customer_id", "status"})
        if "bill_type_id" in fields:
            await BillService.ensure_bill_type(db, fields["bill_type_id"])
        for name, value in fields.items():
            if name in ("title", "expire_date") and value is None:
                continue
            setattr(bill, name, value)

        previous = bill.status
        notified = 0
        if data.status is not None and data.status != previous:
            bill.status = int(data.status)
            if bill.status == BillStatus.SENT and bill.send_date is None:
                bill.send_date = get_utc_now()
        bill.touch(actor)
        await db.flush()

        if bill.status != previous:
            await BillService.append_audit(db, bill, actor)
            if bill.status == BillStatus.SENT:
                notified = await NotificationService.record_for_bill(db, bill, actor)
            logger.info(
                "Bill status changed",
                extra={"bill_id": bill.id, "from_status": previous, "to_status": bill.status},
            )
        await db.flush()
        return bill, notified

    @staticmethod
    async def send_bill(db: AsyncSession, customer_id: str, bill_id: int, actor: str) -> Tuple[Bill, int]:
        bill = await BillService.get_bill(db, customer_id, bill_id, for_update=True)
        if bill.status not in SENDABLE:
            raise StatePreconditionError(bill.status, message_key="BILL_NOT_DRAFT")
        bill.status = BillStatus.SENT
        bill.send_date = get_utc_now()
        bill.touch(actor)
        await BillService.append_audit(db, bill, actor)
        await db.flush()
        notified = await NotificationService.record_for_bill(db, bill, actor)
        logger.info("Bill sent", extra={"bill_id": bill.id, "customer_id": customer_id, "notifications": notified})
        return bill, notified

    @staticmethod
    async def cancel_send(db: AsyncSession, customer_id: str, bill_id: int, actor: str) -> Bill:
        bill = await BillService.get_bill(db, customer_id, bill_id, for_update=True)
        if bill.status != BillStatus.SENT:
            raise StatePreconditionError(bill.status, message_key="BILL_NOT_SENT")
        bill.status = BillStatus.CANCELED
        bill.send_date = None
        bill.touch(actor)
        await BillService.append_audit(db, bill, actor)
        await db.flush()
        logger.info("Bill send canceled", extra={"bill_id": bill.id, "customer_id": customer_id})
        return bill

    @staticmethod
    async def delete_bill(db: AsyncSession, customer_id: str, bill_id: int, actor: str) -> Bill:
        bill = await BillService.get_bill(db, customer_id, bill_id, for_update=True)
        bill.soft_delete(actor)
        await BillService.append_audit(db, bill, actor)
        await db.flush()
        logger.info("Bill deleted", extra={"bill_id": bill.id, "customer_id": customer_id})
        return bill

    @staticmethod
    async def notify_lines(
        db: AsyncSession,
        customer_id: str,
        bill_id: int,
        actor: str,
        line_ids: Optional[List[int]] = None,
    ) -> int:
        """Re-emit notifications for selected (default: all) lines of a sent bill"""
        bill = await BillService.get_bill(db, customer_id, bill_id)
        if bill.status != BillStatus.SENT:
            raise StatePreconditionError(bill.status, message_key="BILL_NOT_SENT")
        return await NotificationService.record_for_bill(db, bill, actor, line_ids=line_ids or None)

    @staticmethod
    async def list_bills(
        db: AsyncSession,
        customer_id: str,
        page: int = 1,
        per_page: int = 10,
        status: Optional[int] = None,
        keyword: Optional[str] = None,
        bill_type_id: Optional[int] = None,
    ) -> Tuple[List[Dict[str, Any]], int]:
        conditions = [Bill.customer_id == customer_id, Bill.status != BillStatus.DELETED]
        if status is not None:
            conditions.append(Bill.status == status)
        if bill_type_id is not None:
            conditions.append(Bill.bill_type_id == bill_type_id)
        if keyword:
            like = f"%{keyword.strip()}%"
            conditions.append(or_(Bill.title.like(like), Bill.detail.like(like), Bill.bill_no.like(like)))

        total = await db.scalar(select(func.count()).select_from(Bill).where(*conditions)) or 0

        line_count = (
            select(func.count(BillLine.id))
            .where(BillLine.bill_id == Bill.id, BillLine.status != 2)
            .correlate(Bill)
            .scalar_subquery()
        )
        line_total = (
            select(func.coalesce(func.sum(BillLine.total_price), 0))
            .where(BillLine.bill_id == Bill.id, BillLine.status != 2)
            .correlate(Bill)
            .scalar_subquery()
        )
        result = await db.execute(
            select(Bill, BillType.title, line_count, line_total)
            .outerjoin(BillType, BillType.id == Bill.bill_type_id)
            .where(*conditions)
            .order_by(Bill.create_date.desc(), Bill.id.desc())
            .offset((page - 1) * per_page)
            .limit(per_page)
        )
        items = []
        for bill, type_title, count, amount in result.all():
            item = serialize_bill(bill, type_title)
            item["room_count"] = count or 0
            item["total_amount"] = to_money(amount)
            item["total_amount_formatted"] = format_price(amount)
            items.append(item)
        return items, total

    @staticmethod
    async def get_detail(db: AsyncSession, customer_id: str, bill_id: int) -> Dict[str, Any]:
        bill = await BillService.get_bill(db, customer_id, bill_id)
        type_title = None
        if bill.bill_type_id is not None:
            type_title = await db.scalar(select(BillType.title).where(BillType.id == bill.bill_type_id))
        stats = (
            await db.execute(
                select(
                    func.count(BillLine.id),
                    func.coalesce(func.sum(BillLine.total_price), 0),
                ).where(BillLine.bill_id == bill.id, BillLine.status != 2)
            )
        ).one()
        data = serialize_bill(bill, type_title)
        data["room_count"] = stats[0] or 0
        data["total_amount"] = to_money(stats[1])
        data["total_amount_formatted"] = format_price(stats[1])
        audits = await db.execute(
            select(BillAudit).where(BillAudit.bill_id == bill.id).order_by(BillAudit.id)
        )
        data["audit"] = [
            {"status": a.status, "create_date": a.create_date, "create_by": a.create_by}
            for a in audits.scalars().all()
        ]
        return data

    @staticmethod
    async def list_types(db: AsyncSession) -> List[BillType]:
        result = await db.execute(
            select(BillType).where(BillType.status != 2).order_by(BillType.id)
        )
        return list(result.scalars().all())
