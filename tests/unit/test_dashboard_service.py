"""Unit tests for the admin dashboard rollups"""

from datetime import timedelta
from decimal import Decimal

import pytest

from app.core.errors import ValidationError
from app.models.enums import BillLineStatus, PaymentStatus
from app.models.master import Member, Room
from app.services.dashboard_service import DashboardService, _percent
from app.services.settlement_service import SettlementService
from app.utils.time import local_today
from factories import CUSTOMER_ID, seed_bill, seed_line, seed_payment, seed_reference_data


def test_percent_rounds_half_up():
    assert _percent(1, 3) == Decimal("33")
    assert _percent(1, 8, "0.1") == Decimal("12.5")
    assert _percent(2, 3, "0.1") == Decimal("66.7")
    assert _percent(5, 0) == Decimal("0")


@pytest.mark.parametrize("duration", ["5", "abc", None, 24])
async def test_billing_revenue_rejects_duration(db, duration):
    with pytest.raises(ValidationError) as exc_info:
        await DashboardService.billing_revenue(db, CUSTOMER_ID, duration)
    assert exc_info.value.message_key == "MONTH_DURATION_INVALID"


async def test_billing_revenue_months(db):
    await seed_reference_data(db)
    bill = await seed_bill(db)
    line = await seed_line(db, bill, total_price="1500.00")
    await SettlementService.settle(
        db, bill_room_id=line.id, amount=Decimal("400.00"), customer_id=CUSTOMER_ID, actor="42",
        bill_transaction_type_id=1,
    )

    revenue = await DashboardService.billing_revenue(db, CUSTOMER_ID, "3")
    chart = revenue["chart_data"]
    assert revenue["month_duration"] == 3
    assert len(chart) == 3
    assert chart[-1]["month_number"] == local_today().month
    assert chart[-1]["billed"] == Decimal("1500.00")
    assert chart[-1]["revenue"] == Decimal("400.00")
    assert chart[0]["billed"] == Decimal("0.00")


async def test_bill_status_split(db):
    overdue_bill = await seed_bill(db, expire_date=local_today() - timedelta(days=1))
    await seed_line(db, overdue_bill, house_no="1/1")
    due_bill = await seed_bill(db, expire_date=local_today() + timedelta(days=2))
    await seed_line(db, due_bill, house_no="1/2", total_price="800.00")
    await seed_line(db, due_bill, house_no="1/3", status=BillLineStatus.PAID)
    await seed_line(db, due_bill, house_no="1/4", status=BillLineStatus.PAID)

    data = await DashboardService.bill_status(db, CUSTOMER_ID)
    status = data["bill_status"]
    assert status["total_bills"] == 4
    assert status["paid"] == {"count": 2, "percent": 50}
    assert status["pending"] == {"count": 1, "percent": 25}
    assert status["overdue"] == {"count": 1, "percent": 25}

    upcoming = data["upcoming_bills"]
    assert len(upcoming) == 4
    assert upcoming[1]["count"] == 1
    assert upcoming[1]["total_amount"] == Decimal("800.00")
    assert upcoming[0]["count"] == 0


async def test_payment_efficiency(db):
    bill = await seed_bill(db)
    await seed_line(db, bill, house_no="2/1", status=BillLineStatus.PAID)
    await seed_line(db, bill, house_no="2/2")
    await seed_line(db, bill, house_no="2/3")

    data = await DashboardService.payment_efficiency(db, CUSTOMER_ID)
    assert data["payment_rate"] == Decimal("33.3")
    assert data["payment_rate_last_month"] == Decimal("0.0")
    assert data["rate_change_formatted"] == "+33.3%"
    assert data["needed_payments"] == 2
    assert data["stats"] == {"total_bills": 3, "paid_bills": 1, "unpaid_bills": 2}


async def test_action_items(db):
    assert await DashboardService.action_items(db, CUSTOMER_ID) == {"total_items": 0, "items": []}

    bill = await seed_bill(db, expire_date=local_today() - timedelta(days=3))
    line = await seed_line(db, bill)
    await seed_line(db, bill, house_no="99/2")
    await seed_payment(db, line, "1500.00")

    data = await DashboardService.action_items(db, CUSTOMER_ID)
    assert [item["id"] for item in data["items"]] == ["pending_payment", "unpaid_bills"]
    assert data["items"][1]["overdue_count"] == 2
    assert data["items"][1]["title"] == "2 บิลรอการชำระเงิน (2 รายการเกินกำหนด)"


async def test_summary_cards(db):
    db.add_all(
        [
            Room(customer_id=CUSTOMER_ID, house_no="1/1", status=1),
            Room(customer_id=CUSTOMER_ID, house_no="1/2", status=1),
            Member(customer_id=CUSTOMER_ID, house_no="1/1", status=1),
            Member(customer_id=CUSTOMER_ID, house_no="1/2", status=0),
        ]
    )
    bill = await seed_bill(db)
    await seed_line(db, bill, house_no="1/1", total_price="1000.00")
    await seed_line(db, bill, house_no="1/2", total_price="500.00", status=BillLineStatus.PAID)
    await seed_payment(db, (await seed_line(db, bill, house_no="1/1", total_price="200.00")), "200.00",
                       status=PaymentStatus.AWAITING_REVIEW)

    summary = await DashboardService.summary(db, CUSTOMER_ID)
    assert summary["total_rooms"]["value"] == 2
    assert summary["active_members"]["value"] == 1
    assert summary["pending_members"]["value"] == 1
    assert summary["unpaid_rooms"]["value"] == 1
    assert summary["unpaid_amount"]["value_raw"] == Decimal("1200.00")
    assert summary["paid_count"]["value"] == 1
    assert summary["pending_payment"]["value"] == 1
    assert summary["total_bills"]["value"] == 1
    assert summary["revenue_this_month"]["percent"] == Decimal("0.0")
