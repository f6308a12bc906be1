"""Unit tests for per-day document numbering."""

import asyncio
import os
from datetime import date

import pytest
from sqlalchemy import event, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.database import Base
from app.models.system import DocumentSequence
from app.services.identifier_service import (
    BILL_PREFIX,
    LINE_PREFIX,
    IdentifierService,
    format_identifier,
    parse_sequence,
)
from factories import CUSTOMER_ID, seed_bill

DAY = date(2025, 6, 15)


def test_format_identifier():
    assert format_identifier("BILL", DAY, 7) == "BILL-2025-0615-007"
    assert format_identifier("INV", DAY, 1000) == "INV-2025-0615-000"


def test_parse_sequence():
    assert parse_sequence("BILL-2025-0615-042") == 42
    assert parse_sequence("not-a-number") is None
    assert parse_sequence(None) is None


async def test_first_allocation_of_the_day_is_000(db):
    assert await IdentifierService.allocate(db, BILL_PREFIX, CUSTOMER_ID, day=DAY) == "BILL-2025-0615-000"


async def test_allocations_are_consecutive(db):
    first = await IdentifierService.allocate(db, BILL_PREFIX, CUSTOMER_ID, day=DAY)
    batch = await IdentifierService.allocate_many(db, LINE_PREFIX, CUSTOMER_ID, 3, day=DAY)
    second = await IdentifierService.allocate(db, BILL_PREFIX, CUSTOMER_ID, day=DAY)
    assert first == "BILL-2025-0615-000"
    assert second == "BILL-2025-0615-001"
    assert batch == ["INV-2025-0615-000", "INV-2025-0615-001", "INV-2025-0615-002"]


async def test_counter_resets_on_the_next_day(db):
    issued = await IdentifierService.allocate_many(db, BILL_PREFIX, CUSTOMER_ID, 3, day=DAY)
    assert issued == ["BILL-2025-0615-000", "BILL-2025-0615-001", "BILL-2025-0615-002"]
    next_day = await IdentifierService.allocate(db, BILL_PREFIX, CUSTOMER_ID, day=date(2025, 6, 16))
    assert next_day == "BILL-2025-0616-000"


async def test_counters_are_scoped_per_customer(db):
    await IdentifierService.allocate_many(db, BILL_PREFIX, CUSTOMER_ID, 2, day=DAY)
    assert await IdentifierService.allocate(db, BILL_PREFIX, "02", day=DAY) == "BILL-2025-0615-000"


async def test_sequence_row_holds_next_value(db):
    await IdentifierService.allocate_many(db, BILL_PREFIX, CUSTOMER_ID, 4, day=DAY)
    sequence = (
        await db.execute(
            select(DocumentSequence).where(
                DocumentSequence.prefix == BILL_PREFIX,
                DocumentSequence.customer_id == CUSTOMER_ID,
                DocumentSequence.seq_date == DAY,
            )
        )
    ).scalar_one()
    assert sequence.next_value == 4


async def test_new_counter_seeds_past_existing_documents(db):
    await seed_bill(db, bill_no="BILL-2025-0615-004")
    assert await IdentifierService.allocate(db, BILL_PREFIX, CUSTOMER_ID, day=DAY) == "BILL-2025-0615-005"


async def test_resync_skips_numbers_issued_outside_the_counter(db):
    assert await IdentifierService.allocate(db, BILL_PREFIX, CUSTOMER_ID, day=DAY) == "BILL-2025-0615-000"
    await seed_bill(db, bill_no="BILL-2025-0615-003")
    resynced = await IdentifierService.allocate(db, BILL_PREFIX, CUSTOMER_ID, day=DAY, resync=True)
    assert resynced == "BILL-2025-0615-004"


async def test_with_retry_recovers_from_a_collision(db):
    await IdentifierService.allocate(db, BILL_PREFIX, CUSTOMER_ID, day=DAY)
    # Someone else takes the next number behind the counter's back
    await seed_bill(db, bill_no="BILL-2025-0615-001")
    attempts = []

    async def insert(resync: bool):
        attempts.append(resync)
        bill_no = await IdentifierService.allocate(db, BILL_PREFIX, CUSTOMER_ID, day=DAY, resync=resync)
        return await seed_bill(db, bill_no=bill_no)

    bill = await IdentifierService.with_retry(db, insert, "bill")
    assert attempts == [False, True]
    assert bill.bill_no == "BILL-2025-0615-002"


CONCURRENT_ALLOCATORS = 100


async def _allocate_in_parallel(engine) -> list:
    """One allocation per session, all transactions in flight together"""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async def allocate_one() -> str:
        async with factory() as session:
            async with session.begin():
                return await IdentifierService.allocate(session, BILL_PREFIX, CUSTOMER_ID, day=DAY)

    return await asyncio.gather(*(allocate_one() for _ in range(CONCURRENT_ALLOCATORS)))


def _expected_numbers() -> list:
    return [format_identifier(BILL_PREFIX, DAY, n) for n in range(CONCURRENT_ALLOCATORS)]


async def test_concurrent_sessions_never_share_a_number(tmp_path):
    # SQLite has no row locks; BEGIN IMMEDIATE takes the database write lock
    # up front, which serializes the allocators the way FOR UPDATE does
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'sequence.db'}",
        connect_args={"timeout": 30},
    )

    @event.listens_for(engine.sync_engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    try:
        issued = await _allocate_in_parallel(engine)
    finally:
        await engine.dispose()

    assert len(set(issued)) == CONCURRENT_ALLOCATORS
    assert sorted(issued) == _expected_numbers()


@pytest.mark.skipif(
    not os.getenv("POSTGRES_TEST_URL"),
    reason="row-lock contention needs a real Postgres; set POSTGRES_TEST_URL",
)
async def test_concurrent_sessions_on_postgres():
    engine = create_async_engine(os.environ["POSTGRES_TEST_URL"])
    try:
        issued = await _allocate_in_parallel(engine)
        assert len(set(issued)) == CONCURRENT_ALLOCATORS
        assert sorted(issued) == _expected_numbers()
    finally:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        await engine.dispose()
