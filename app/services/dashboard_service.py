"""Dashboard Service - admin rollups over sent bills, payments and the ledger

Month and day windows are civil periods in the configured zone; stored
timestamps are compared against their UTC bounds.
"""

import math
from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import ValidationError
from app.core.logging import get_logger
from app.models.billing import Bill, BillLine
from app.models.enums import (
    OUTSTANDING_LINE_STATUSES,
    OVERDUE_ELIGIBLE_STATUSES,
    BillLineStatus,
    BillStatus,
    MemberStatus,
    PaymentStatus,
)
from app.models.master import Member, Room
from app.models.payment import Payment, Transaction
from app.utils.formatting import format_price, thai_month_label, to_money, THAI_MONTHS_SHORT
from app.utils.time import add_months, local_today, month_bounds_utc, month_start

logger = get_logger(__name__)

MONTH_DURATIONS = (3, 6, 12)
TARGET_PAYMENT_RATE = 90


def _percent(part: int, whole: int, places: str = "1") -> Decimal:
    """Half-up percentage; ``places`` is the quantum ("1" or "0.1")"""
    if not whole:
        return Decimal(0).quantize(Decimal(places))
    return (Decimal(part) * 100 / Decimal(whole)).quantize(Decimal(places), rounding=ROUND_HALF_UP)


def _signed(value: Decimal, suffix: str = "") -> str:
    return f"{'+' if value >= 0 else ''}{value}{suffix}"


def _day_label(day: date) -> str:
    return f"{day:%d/%m}"


class DashboardService:
    @staticmethod
    def _sent_lines(customer_id: str) -> List[Any]:
        return [
            BillLine.customer_id == customer_id,
            BillLine.status != BillLineStatus.DELETED,
            Bill.status == BillStatus.SENT,
        ]

    @staticmethod
    async def _count_lines(db: AsyncSession, *conditions) -> int:
        return await db.scalar(
            select(func.count(BillLine.id)).join(Bill, Bill.id == BillLine.bill_id).where(*conditions)
        ) or 0

    @staticmethod
    async def _revenue(db: AsyncSession, customer_id: str, month: date) -> Decimal:
        start, end = month_bounds_utc(month)
        total = await db.scalar(
            select(func.coalesce(func.sum(Transaction.transaction_amount), 0)).where(
                Transaction.customer_id == customer_id,
                Transaction.status != 2,
                Transaction.pay_date >= start,
                Transaction.pay_date < end,
            )
        )
        return to_money(total)

    @staticmethod
    async def summary(db: AsyncSession, customer_id: str, today: Optional[date] = None) -> Dict[str, Any]:
        today = today or local_today()
        this_month = month_start(today)
        month_from, month_to = month_bounds_utc(this_month)
        sent = DashboardService._sent_lines(customer_id)

        total_rooms = await db.scalar(
            select(func.count(Room.id)).where(Room.customer_id == customer_id, Room.status != 2)
        ) or 0
        active_members = await db.scalar(
            select(func.count(Member.id)).where(
                Member.customer_id == customer_id, Member.status == MemberStatus.ACTIVE
            )
        ) or 0
        new_members = await db.scalar(
            select(func.count(Member.id)).where(
                Member.customer_id == customer_id,
                Member.status == MemberStatus.ACTIVE,
                Member.create_date >= month_from,
                Member.create_date < month_to,
            )
        ) or 0
        pending_members = await db.scalar(
            select(func.count(Member.id)).where(
                Member.customer_id == customer_id, Member.status == MemberStatus.PENDING
            )
        ) or 0

        unpaid_rooms = await db.scalar(
            select(func.count(func.distinct(BillLine.house_no)))
            .join(Bill, Bill.id == BillLine.bill_id)
            .where(*sent, BillLine.status.in_(OUTSTANDING_LINE_STATUSES))
        ) or 0
        overdue_count = await DashboardService._count_lines(
            db, *sent, BillLine.status.in_(OVERDUE_ELIGIBLE_STATUSES), Bill.expire_date < today
        )

        revenue_this_month = await DashboardService._revenue(db, customer_id, this_month)
        revenue_last_month = await DashboardService._revenue(db, customer_id, add_months(this_month, -1))
        revenue_diff = revenue_this_month - revenue_last_month
        revenue_percent = (
            (revenue_diff * 100 / revenue_last_month).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)
            if revenue_last_month > 0
            else Decimal("0.0")
        )

        paid = (
            select(
                Transaction.bill_room_id.label("bill_room_id"),
                func.sum(Transaction.transaction_amount).label("paid"),
            )
            .where(Transaction.status != 2)
            .group_by(Transaction.bill_room_id)
            .subquery()
        )
        outstanding_rows = await db.execute(
            select(BillLine.total_price, func.coalesce(paid.c.paid, 0))
            .join(Bill, Bill.id == BillLine.bill_id)
            .outerjoin(paid, paid.c.bill_room_id == BillLine.id)
            .where(*sent, BillLine.status.in_(OUTSTANDING_LINE_STATUSES))
        )
        unpaid_amount = Decimal("0.00")
        unpaid_count = 0
        for total_price, paid_amount in outstanding_rows.all():
            unpaid_count += 1
            unpaid_amount += max(to_money(total_price) - to_money(paid_amount), Decimal("0.00"))

        paid_count = await DashboardService._count_lines(db, *sent, BillLine.status == BillLineStatus.PAID)
        paid_this_month = await db.scalar(
            select(func.count(func.distinct(Transaction.bill_room_id))).where(
                Transaction.customer_id == customer_id,
                Transaction.status != 2,
                Transaction.pay_date >= month_from,
                Transaction.pay_date < month_to,
            )
        ) or 0
        pending_payment = await db.scalar(
            select(func.count(Payment.id)).where(
                Payment.customer_id == customer_id, Payment.status == PaymentStatus.AWAITING_REVIEW
            )
        ) or 0
        total_bills = await db.scalar(
            select(func.count(Bill.id)).where(Bill.customer_id == customer_id, Bill.status == BillStatus.SENT)
        ) or 0
        bills_this_month = await db.scalar(
            select(func.count(Bill.id)).where(
                Bill.customer_id == customer_id,
                Bill.status != BillStatus.DELETED,
                Bill.create_date >= month_from,
                Bill.create_date < month_to,
            )
        ) or 0

        return {
            "total_rooms": {"value": total_rooms, "label": "จำนวนห้องทั้งหมด", "change": "ไม่เปลี่ยนแปลง"},
            "active_members": {
                "value": active_members,
                "label": "ลูกบ้านที่ใช้งาน",
                "change": f"+{new_members} เดือนนี้",
                "trend": "up",
            },
            "new_members": {"value": new_members, "label": "ลูกบ้านใหม่", "change": "เดือนนี้", "trend": "up"},
            "pending_members": {"value": pending_members, "label": "บัญชีรออนุมัติ", "change": "รอดำเนินการ"},
            "unpaid_rooms": {
                "value": unpaid_rooms,
                "label": "ห้องค้างชำระ",
                "change": f"{overdue_count} เกินกำหนด",
                "trend": "down",
            },
            "revenue_this_month": {
                "value": format_price(revenue_this_month),
                "value_raw": revenue_this_month,
                "last_month_raw": revenue_last_month,
                "diff_raw": revenue_diff,
                "percent": revenue_percent,
                "label": "รายได้เดือนนี้",
                "change": f"{'+' if revenue_diff >= 0 else '-'}{format_price(abs(revenue_diff))} ({revenue_percent}%)",
                "trend": "up" if revenue_diff >= 0 else "down",
            },
            "unpaid_amount": {
                "value": format_price(unpaid_amount),
                "value_raw": unpaid_amount,
                "label": "ค้างชำระ",
                "change": f"{unpaid_count} รายการ",
                "trend": "down",
            },
            "paid_count": {
                "value": paid_count,
                "label": "ชำระแล้ว",
                "change": f"+{paid_this_month} รายการ",
                "trend": "up",
            },
            "pending_payment": {"value": pending_payment, "label": "รอตรวจสอบ", "change": "ต้องดำเนินการ"},
            "total_bills": {
                "value": total_bills,
                "label": "บิลในระบบ",
                "change": f"+{bills_this_month} เดือนนี้",
                "trend": "up",
            },
        }

    @staticmethod
    async def billing_revenue(
        db: AsyncSession, customer_id: str, month_duration: Any = 6, today: Optional[date] = None
    ) -> Dict[str, Any]:
        """Billed vs collected per month, oldest month first"""
        try:
            duration = int(month_duration)
        except (TypeError, ValueError):
            duration = 0
        if duration not in MONTH_DURATIONS:
            raise ValidationError(message_key="MONTH_DURATION_INVALID", fields=["month_duration"])

        first = month_start(today or local_today())
        chart = []
        for offset in range(duration - 1, -1, -1):
            month = add_months(first, -offset)
            start, end = month_bounds_utc(month)
            billed = await db.scalar(
                select(func.coalesce(func.sum(BillLine.total_price), 0))
                .join(Bill, Bill.id == BillLine.bill_id)
                .where(
                    *DashboardService._sent_lines(customer_id),
                    Bill.create_date >= start,
                    Bill.create_date < end,
                )
            )
            billed = to_money(billed)
            revenue = await DashboardService._revenue(db, customer_id, month)
            chart.append(
                {
                    "month": THAI_MONTHS_SHORT[month.month - 1],
                    "month_label": thai_month_label(month),
                    "month_number": month.month,
                    "year": month.year,
                    "billed": billed,
                    "billed_formatted": format_price(billed),
                    "revenue": revenue,
                    "revenue_formatted": format_price(revenue),
                }
            )
        return {"month_duration": duration, "chart_data": chart}

    @staticmethod
    async def _upcoming(db: AsyncSession, customer_id: str, first: date, last: date) -> Dict[str, Any]:
        count, amount = (
            await db.execute(
                select(func.count(BillLine.id), func.coalesce(func.sum(BillLine.total_price), 0))
                .join(Bill, Bill.id == BillLine.bill_id)
                .where(
                    *DashboardService._sent_lines(customer_id),
                    BillLine.status.in_(OUTSTANDING_LINE_STATUSES),
                    Bill.expire_date >= first,
                    Bill.expire_date <= last,
                )
            )
        ).one()
        amount = to_money(amount)
        return {"count": count or 0, "total_amount": amount, "total_amount_formatted": format_price(amount)}

    @staticmethod
    async def bill_status(db: AsyncSession, customer_id: str, today: Optional[date] = None) -> Dict[str, Any]:
        """Paid / pending / overdue split of sent lines, and what falls due this week"""
        today = today or local_today()
        sent = DashboardService._sent_lines(customer_id)

        total = await DashboardService._count_lines(db, *sent)
        paid = await DashboardService._count_lines(db, *sent, BillLine.status == BillLineStatus.PAID)
        overdue = await DashboardService._count_lines(
            db, *sent, BillLine.status.in_(OVERDUE_ELIGIBLE_STATUSES), Bill.expire_date < today
        )
        outstanding = await DashboardService._count_lines(db, *sent, BillLine.status.in_(OUTSTANDING_LINE_STATUSES))
        pending = outstanding - overdue

        upcoming = []
        labels = ["วันพรุ่งนี้", "2 วันข้างหน้า", "3 วันข้างหน้า"]
        for days_ahead, label in enumerate(labels, start=1):
            day = today + timedelta(days=days_ahead)
            bucket = await DashboardService._upcoming(db, customer_id, day, day)
            upcoming.append({"label": f"{label} ({_day_label(day)})", "date": _day_label(day), **bucket})
        bucket = await DashboardService._upcoming(db, customer_id, today + timedelta(days=4), today + timedelta(days=7))
        upcoming.append({"label": "4-7 วันข้างหน้า", "date": None, **bucket})

        return {
            "bill_status": {
                "total_bills": total,
                "paid": {"count": paid, "percent": int(_percent(paid, total))},
                "pending": {"count": pending, "percent": int(_percent(pending, total))},
                "overdue": {"count": overdue, "percent": int(_percent(overdue, total))},
            },
            "upcoming_bills": upcoming,
        }

    @staticmethod
    async def _sent_in_month(db: AsyncSession, customer_id: str, month: date) -> Dict[str, int]:
        start, end = month_bounds_utc(month)
        window = [*DashboardService._sent_lines(customer_id), Bill.send_date >= start, Bill.send_date < end]
        total = await DashboardService._count_lines(db, *window)
        paid = await DashboardService._count_lines(db, *window, BillLine.status == BillLineStatus.PAID)
        return {"total": total, "paid": paid}

    @staticmethod
    async def payment_efficiency(db: AsyncSession, customer_id: str, today: Optional[date] = None) -> Dict[str, Any]:
        """Share of this month's sent lines already paid, against last month and a 90% target"""
        this_month = month_start(today or local_today())
        current = await DashboardService._sent_in_month(db, customer_id, this_month)
        previous = await DashboardService._sent_in_month(db, customer_id, add_months(this_month, -1))

        rate = _percent(current["paid"], current["total"], "0.1")
        last_rate = _percent(previous["paid"], previous["total"], "0.1")
        change = rate - last_rate

        needed = 0
        if rate < TARGET_PAYMENT_RATE and current["total"] > 0:
            target_paid = math.ceil(TARGET_PAYMENT_RATE * current["total"] / 100)
            needed = max(0, target_paid - current["paid"])

        return {
            "payment_rate": rate,
            "payment_rate_formatted": f"{rate}%",
            "payment_rate_last_month": last_rate,
            "rate_change": change,
            "rate_change_formatted": _signed(change, "%"),
            "trend": "up" if change >= 0 else "down",
            "target_rate": TARGET_PAYMENT_RATE,
            "needed_payments": needed,
            "stats": {
                "total_bills": current["total"],
                "paid_bills": current["paid"],
                "unpaid_bills": current["total"] - current["paid"],
            },
        }

    @staticmethod
    async def action_items(db: AsyncSession, customer_id: str, today: Optional[date] = None) -> Dict[str, Any]:
        today = today or local_today()
        sent = DashboardService._sent_lines(customer_id)
        items = []

        pending_payments = await db.scalar(
            select(func.count(Payment.id)).where(
                Payment.customer_id == customer_id, Payment.status == PaymentStatus.AWAITING_REVIEW
            )
        ) or 0
        if pending_payments:
            items.append(
                {
                    "id": "pending_payment",
                    "title": f"{pending_payments} รายการรอตรวจสอบและอนุมัติการชำระเงิน",
                    "description": "ต้องดำเนินการภายใน 24 ชั่วโมง",
                    "count": pending_payments,
                    "router": "payment?tab=1",
                    "priority": 1,
                }
            )

        unpaid = await DashboardService._count_lines(db, *sent, BillLine.status.in_(OUTSTANDING_LINE_STATUSES))
        overdue = await DashboardService._count_lines(
            db, *sent, BillLine.status.in_(OVERDUE_ELIGIBLE_STATUSES), Bill.expire_date < today
        )
        if unpaid:
            suffix = f" ({overdue} รายการเกินกำหนด)" if overdue else ""
            items.append(
                {
                    "id": "unpaid_bills",
                    "title": f"{unpaid} บิลรอการชำระเงิน{suffix}",
                    "description": "บางรายการควรติดตามเร่งด่วน",
                    "count": unpaid,
                    "overdue_count": overdue,
                    "router": "payment?tab=0",
                    "priority": 2,
                }
            )
        return {"total_items": len(items), "items": items}
