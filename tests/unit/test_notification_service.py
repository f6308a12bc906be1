"""Unit tests for notification audit and push dispatch"""

from datetime import datetime
from unittest.mock import AsyncMock

import httpx
import pytest
from sqlalchemy import select

from app.config import settings
from app.models.enums import PushStatus
from app.models.notification import NotificationAudit
from app.services import push_client
from app.services.notification_service import NotificationService
from factories import CUSTOMER_ID, seed_bill, seed_line


async def _record(db, lines=2):
    bill = await seed_bill(db)
    seeded = [await seed_line(db, bill, house_no=f"9/{i}") for i in range(lines)]
    await NotificationService.record_for_lines(db, bill, seeded, "42")
    return bill


async def _statuses(db):
    result = await db.execute(select(NotificationAudit).order_by(NotificationAudit.id))
    return [(a.push_status, a.push_attempts) for a in result.scalars().all()]


def test_backoff_delay():
    assert [push_client.backoff_delay(n) for n in (1, 2, 3, 4, 5)] == [1.0, 2.0, 4.0, 5.0, 5.0]


def test_chunked():
    assert push_client.chunked([1, 2, 3, 4, 5], 2) == [[1, 2], [3, 4], [5]]
    assert push_client.chunked([1, 2], 0) == [[1], [2]]


def test_build_document():
    audit = NotificationAudit(
        table_name="bill_room_information",
        rows_id=7,
        title="ค่าส่วนกลาง",
        detail="ครบกำหนด",
        topic="billing",
        type="billing",
        receiver="u-1",
        create_date=datetime(2025, 10, 8, 12, 0),
    )
    document = push_client.build_document(audit, "Niti Tower")
    assert document["docID"] == ["bill_room_information/7"]
    assert document["userID"] == ["u-1"]
    assert document["customerName"] == "Niti Tower"
    assert len(document["customerNameMD5"]) == 32
    assert document["nameRouter"] == "paymentHomePage"


async def test_dispatch_skips_without_backend(db):
    await _record(db)
    outcome = await NotificationService.dispatch_pending(db, CUSTOMER_ID)
    assert outcome == {"sent": 0, "failed": 0, "skipped": 2}
    assert await _statuses(db) == [(PushStatus.PENDING, 0), (PushStatus.PENDING, 0)]


async def test_dispatch_marks_sent(db, monkeypatch):
    await _record(db, lines=3)
    monkeypatch.setattr(settings, "PUSH_API_URL", "http://push.test/notify")
    monkeypatch.setattr(settings, "NOTIFICATION_BATCH_SIZE", 2)
    send = AsyncMock(return_value=1)
    monkeypatch.setattr(push_client, "send_with_retry", send)

    outcome = await NotificationService.dispatch_pending(db, CUSTOMER_ID)
    assert outcome == {"sent": 3, "failed": 0, "skipped": 0}
    assert send.await_count == 2
    assert await _statuses(db) == [(PushStatus.SENT, 1)] * 3

    # nothing left to push
    assert await NotificationService.dispatch_pending(db, CUSTOMER_ID) == {"sent": 0, "failed": 0, "skipped": 0}


async def test_dispatch_failure_recorded_and_retried(db, monkeypatch):
    await _record(db, lines=1)
    monkeypatch.setattr(settings, "PUSH_API_URL", "http://push.test/notify")
    monkeypatch.setattr(settings, "NOTIFICATION_MAX_RETRIES", 3)
    monkeypatch.setattr(push_client, "send_with_retry", AsyncMock(side_effect=push_client.PushError("down")))

    outcome = await NotificationService.dispatch_pending(db)
    assert outcome["failed"] == 1
    assert await _statuses(db) == [(PushStatus.FAILED, 3)]

    assert (await NotificationService.dispatch_pending(db))["failed"] == 0
    monkeypatch.setattr(push_client, "send_with_retry", AsyncMock(return_value=2))
    outcome = await NotificationService.dispatch_pending(db, include_failed=True)
    assert outcome["sent"] == 1
    assert await _statuses(db) == [(PushStatus.SENT, 5)]


async def test_send_with_retry_backs_off(monkeypatch):
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(503) if len(calls) < 3 else httpx.Response(200, json={"ok": True})

    sleep = AsyncMock()
    monkeypatch.setattr(push_client.asyncio, "sleep", sleep)
    monkeypatch.setattr(settings, "PUSH_API_URL", "http://push.test/notify")

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        used = await push_client.send_with_retry(client, [{"title": "x"}], max_retries=5)

    assert used == 3
    assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0]


async def test_send_with_retry_gives_up(monkeypatch):
    monkeypatch.setattr(push_client.asyncio, "sleep", AsyncMock())
    monkeypatch.setattr(settings, "PUSH_API_URL", "http://push.test/notify")
    transport = httpx.MockTransport(lambda request: httpx.Response(500))

    async with httpx.AsyncClient(transport=transport) as client:
        with pytest.raises(push_client.PushError):
            await push_client.send_with_retry(client, [{"title": "x"}], max_retries=2)
