"""Unit tests for transaction posting and line settlement"""

from datetime import date, datetime
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from app.core.errors import NotFoundError, ValidationError
from app.models.enums import BillLineStatus, BillStatus, TransactionType
from app.models.payment import Transaction
from app.schemas.payment import TransactionCreate
from app.services.dashboard_service import DashboardService
from app.services.settlement_service import (
    SettlementService,
    derive_transaction_type,
    normalize_transaction_json,
)
from factories import CUSTOMER_ID, seed_bill, seed_line, seed_payment, seed_reference_data


def test_derive_transaction_type():
    assert derive_transaction_type(Decimal("0"), Decimal("1500"), Decimal("1500")) == TransactionType.FULL
    assert derive_transaction_type(Decimal("0"), Decimal("500"), Decimal("1500")) == TransactionType.PARTIAL
    assert derive_transaction_type(Decimal("500"), Decimal("1000"), Decimal("1500")) == TransactionType.FULL
    # overpayment still settles the line
    assert derive_transaction_type(Decimal("0"), Decimal("2000"), Decimal("1500")) == TransactionType.FULL


def test_normalize_transaction_json():
    assert normalize_transaction_json(None) is None
    assert normalize_transaction_json("") is None
    assert normalize_transaction_json({"bank": "กสิกร"}) == '{"bank": "กสิกร"}'
    assert normalize_transaction_json('[1, 2]') == "[1, 2]"
    with pytest.raises(ValidationError):
        normalize_transaction_json("{not json")


async def test_full_settlement_from_payment(db):
    bill = await seed_bill(db)
    line = await seed_line(db, bill, total_price="1500.00")
    payment = await seed_payment(db, line, "1500.00")

    transaction = await SettlementService.settle(
        db,
        bill_room_id=line.id,
        amount=Decimal("1500.00"),
        customer_id=CUSTOMER_ID,
        actor="42",
        payment_id=payment.id,
    )
    assert transaction.transaction_type == "full"
    assert transaction.payment_id == payment.id
    assert transaction.bill_transaction_type_id is None
    assert line.status == BillLineStatus.PAID
    assert await SettlementService.paid_to_date(db, line.id) == Decimal("1500.00")


async def test_partial_then_final(db):
    await seed_reference_data(db)
    bill = await seed_bill(db)
    line = await seed_line(db, bill, total_price="1500.00")

    manual = await SettlementService.record_manual(
        db,
        TransactionCreate(
            customer_id=CUSTOMER_ID,
            bill_room_id=line.id,
            bill_transaction_type_id=2,
            transaction_amount=Decimal("500.00"),
            transaction_type_json={"ref": "TX-1"},
        ),
        "42",
    )
    assert manual.transaction_type == "partial"
    assert manual.transaction_type_json == '{"ref": "TX-1"}'
    assert line.status == BillLineStatus.PARTIALLY_PAID

    payment = await seed_payment(db, line, "1000.00")
    final = await SettlementService.settle(
        db,
        bill_room_id=line.id,
        amount=Decimal("1000.00"),
        customer_id=CUSTOMER_ID,
        actor="42",
        payment_id=payment.id,
    )
    assert final.transaction_type == "full"
    assert line.status == BillLineStatus.PAID
    assert [t.id for t in await SettlementService.list_for_line(db, line.id)] == [manual.id, final.id]


async def test_manual_pay_date_is_stored_as_utc(db):
    await seed_reference_data(db)
    bill = await seed_bill(db)
    line = await seed_line(db, bill, total_price="1500.00")

    transaction = await SettlementService.record_manual(
        db,
        TransactionCreate(
            customer_id=CUSTOMER_ID,
            bill_room_id=line.id,
            bill_transaction_type_id=1,
            transaction_amount=Decimal("500.00"),
            pay_date="2025-07-31T23:00:00+07:00",
        ),
        "42",
    )
    assert transaction.pay_date == datetime(2025, 7, 31, 16, 0)
    # a late-evening local payment still counts toward its local month
    assert await DashboardService._revenue(db, CUSTOMER_ID, date(2025, 7, 1)) == Decimal("500.00")
    assert await DashboardService._revenue(db, CUSTOMER_ID, date(2025, 8, 1)) == Decimal("0.00")


@pytest.mark.parametrize(
    "sources",
    [
        {},
        {"payment_id": 1, "bill_transaction_type_id": 1},
    ],
)
async def test_settle_requires_exactly_one_source(db, sources):
    bill = await seed_bill(db)
    line = await seed_line(db, bill)
    with pytest.raises(ValidationError):
        await SettlementService.settle(
            db, bill_room_id=line.id, amount=Decimal("100"), customer_id=CUSTOMER_ID, actor="42", **sources
        )
    assert await db.scalar(select(func.count(Transaction.id))) == 0


async def test_settle_rejects_non_positive_amount(db):
    bill = await seed_bill(db)
    line = await seed_line(db, bill)
    with pytest.raises(ValidationError) as exc_info:
        await SettlementService.settle(
            db, bill_room_id=line.id, amount=Decimal("0"), customer_id=CUSTOMER_ID, actor="42",
            bill_transaction_type_id=1,
        )
    assert exc_info.value.message_key == "TRANSACTION_AMOUNT_INVALID"


async def test_settle_deleted_line(db):
    bill = await seed_bill(db)
    line = await seed_line(db, bill, status=BillLineStatus.DELETED)
    with pytest.raises(NotFoundError):
        await SettlementService.settle(
            db, bill_room_id=line.id, amount=Decimal("10"), customer_id=CUSTOMER_ID, actor="42",
            bill_transaction_type_id=1,
        )


async def test_settle_line_of_deleted_bill(db):
    bill = await seed_bill(db, status=BillStatus.DELETED)
    line = await seed_line(db, bill)
    with pytest.raises(NotFoundError):
        await SettlementService.settle(
            db, bill_room_id=line.id, amount=Decimal("10"), customer_id=CUSTOMER_ID, actor="42",
            bill_transaction_type_id=1,
        )
    assert line.status == BillLineStatus.UNPAID


async def test_record_manual_unknown_type(db):
    bill = await seed_bill(db)
    line = await seed_line(db, bill)
    data = TransactionCreate(
        customer_id=CUSTOMER_ID, bill_room_id=line.id, bill_transaction_type_id=9, transaction_amount=Decimal("10")
    )
    with pytest.raises(NotFoundError):
        await SettlementService.record_manual(db, data, "42")


async def test_get_transaction_scoped_to_customer(db):
    await seed_reference_data(db)
    bill = await seed_bill(db)
    line = await seed_line(db, bill)
    transaction = await SettlementService.settle(
        db, bill_room_id=line.id, amount=Decimal("10"), customer_id=CUSTOMER_ID, actor="42",
        bill_transaction_type_id=1,
    )
    assert (await SettlementService.get_transaction(db, CUSTOMER_ID, transaction.id)).id == transaction.id
    with pytest.raises(NotFoundError):
        await SettlementService.get_transaction(db, "02", transaction.id)
