"""Notification Service - resident notifications for sent bills

Two stages. ``record_*`` writes NotificationAudit rows inside the caller's
transaction, so every sent line is audited iff the business write commits.
``dispatch_pending`` later pushes those rows to the push backend from its
own session; delivery failures are recorded on the row and never propagate.
"""

from collections import defaultdict
from typing import Dict, Iterable, List, Optional

import httpx
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.logging import get_logger
from app.models.billing import Bill, BillLine
from app.models.enums import PushStatus
from app.models.master import Member
from app.models.notification import NotificationAudit
from app.services import document_store, push_client
from app.utils.formatting import format_thai_date
from app.utils.time import get_utc_now

logger = get_logger(__name__)

NOTIFICATION_TOPIC = "billing"
NOTIFICATION_TYPE = "billing"


def bill_notification_detail(bill: Bill) -> str:
    due = format_thai_date(bill.expire_date)
    prefix = (bill.detail or "").strip()
    return f"{prefix} ครบกำหนด: {due}".strip()


class NotificationService:
    @staticmethod
    async def _receivers_by_house(
        db: AsyncSession, customer_id: str, house_nos: Iterable[str]
    ) -> Dict[str, List[Optional[str]]]:
        houses = {h for h in house_nos if h}
        if not houses:
            return {}
        result = await db.execute(
            select(Member)
            .where(
                Member.customer_id == customer_id,
                Member.house_no.in_(houses),
                Member.status != 2,
            )
            .order_by(Member.id)
        )
        receivers: Dict[str, List[Optional[str]]] = defaultdict(list)
        for member in result.scalars().all():
            uid = member.receiver_uid
            if uid not in receivers[member.house_no]:
                receivers[member.house_no].append(uid)
        return receivers

    @staticmethod
    async def record_for_lines(
        db: AsyncSession,
        bill: Bill,
        lines: List[BillLine],
        actor: str,
        remark: Optional[str] = None,
    ) -> int:
        """
        One audit row per (line, matching member). A line with no matching
        member still gets a single row with no receiver.
        """
        if not lines:
            return 0
        receivers = await NotificationService._receivers_by_house(
            db, bill.customer_id, (line.house_no for line in lines)
        )
        detail = bill_notification_detail(bill)
        rows = []
        for line in lines:
            for receiver in receivers.get(line.house_no) or [None]:
                rows.append(
                    NotificationAudit(
                        customer_id=bill.customer_id,
                        table_name=BillLine.__tablename__,
                        rows_id=line.id,
                        title=bill.title,
                        detail=detail,
                        topic=NOTIFICATION_TOPIC,
                        type=NOTIFICATION_TYPE,
                        receiver=receiver,
                        remark=remark,
                        status=1,
                        push_status=PushStatus.PENDING,
                        push_attempts=0,
                        create_by=actor,
                    )
                )
        db.add_all(rows)
        await db.flush()
        logger.info(
            "Notification audit recorded",
            extra={"bill_id": bill.id, "customer_id": bill.customer_id, "lines": len(lines), "rows": len(rows)},
        )
        return len(rows)

    @staticmethod
    async def record_for_bill(
        db: AsyncSession,
        bill: Bill,
        actor: str,
        line_ids: Optional[List[int]] = None,
    ) -> int:
        stmt = select(BillLine).where(
            BillLine.bill_id == bill.id,
            BillLine.customer_id == bill.customer_id,
            BillLine.status != 2,
        )
        if line_ids:
            stmt = stmt.where(BillLine.id.in_(line_ids))
        result = await db.execute(stmt.order_by(BillLine.id))
        return await NotificationService.record_for_lines(db, bill, list(result.scalars().all()), actor)

    @staticmethod
    async def dispatch_pending(
        db: AsyncSession,
        customer_id: Optional[str] = None,
        include_failed: bool = False,
        limit: Optional[int] = None,
    ) -> Dict[str, int]:
        """
        Push undelivered audit rows, grouped per customer and batched.
        Returns counts of sent, failed and skipped rows.
        """
        outcome = {"sent": 0, "failed": 0, "skipped": 0}
        states = [PushStatus.PENDING] + ([PushStatus.FAILED] if include_failed else [])
        stmt = select(NotificationAudit).where(
            NotificationAudit.push_status.in_(states),
            NotificationAudit.status != 2,
        )
        if customer_id:
            stmt = stmt.where(NotificationAudit.customer_id == customer_id)
        stmt = stmt.order_by(NotificationAudit.id)
        if limit:
            stmt = stmt.limit(limit)
        pending = list((await db.execute(stmt)).scalars().all())
        if not pending:
            return outcome

        if not settings.PUSH_API_URL:
            logger.info("Push backend not configured; notifications left pending", extra={"count": len(pending)})
            outcome["skipped"] = len(pending)
            return outcome

        by_customer: Dict[str, List[NotificationAudit]] = defaultdict(list)
        for audit in pending:
            by_customer[audit.customer_id].append(audit)

        max_retries = max(1, settings.NOTIFICATION_MAX_RETRIES)
        async with httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT_SECONDS) as client:
            for cid, audits in by_customer.items():
                customer_name = await document_store.get_customer_name(cid)
                if not customer_name:
                    logger.warning("Customer name unavailable; using customer id", extra={"customer_id": cid})
                    customer_name = cid
                for batch in push_client.chunked(audits, settings.NOTIFICATION_BATCH_SIZE):
                    documents = [push_client.build_document(a, customer_name) for a in batch]
                    try:
                        used = await push_client.send_with_retry(client, documents, max_retries)
                    except push_client.PushError:
                        for audit in batch:
                            audit.push_status = PushStatus.FAILED
                            audit.push_attempts = (audit.push_attempts or 0) + max_retries
                        outcome["failed"] += len(batch)
                        continue
                    now = get_utc_now()
                    for audit in batch:
                        audit.push_status = PushStatus.SENT
                        audit.push_attempts = (audit.push_attempts or 0) + used
                        audit.pushed_date = now
                    outcome["sent"] += len(batch)
        await db.flush()

        logger.info("Notification dispatch finished", extra={"customer_id": customer_id, **outcome})
        return outcome

    @staticmethod
    async def dispatch_in_background(customer_id: str) -> None:
        """Entry point for BackgroundTasks: own session, errors logged only"""
        from app.database import AsyncSessionLocal

        try:
            async with AsyncSessionLocal() as session:
                await NotificationService.dispatch_pending(session, customer_id)
                await session.commit()
        except Exception:
            logger.exception("Background notification dispatch failed", extra={"customer_id": customer_id})
