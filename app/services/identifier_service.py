"""Identifier Service - human-readable document numbers

Numbers look like ``BILL-2025-1008-001``: prefix, civil year, month+day,
then a three-digit counter scoped to (prefix, customer, civil day).
"""

from datetime import date
from typing import Awaitable, Callable, List, Optional, TypeVar

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.errors import ConflictRetryableError
from app.core.logging import get_logger
from app.models.billing import Bill, BillLine
from app.models.system import DocumentSequence
from app.utils.time import local_today

logger = get_logger(__name__)

BILL_PREFIX = "BILL"
LINE_PREFIX = "INV"

SEQUENCE_MODULUS = 1000

# Table whose bill_no column holds each prefix's numbers
_PREFIX_SOURCES = {
    BILL_PREFIX: Bill,
    LINE_PREFIX: BillLine,
}

T = TypeVar("T")


def format_identifier(prefix: str, day: date, value: int) -> str:
    return f"{prefix}-{day:%Y}-{day:%m%d}-{value % SEQUENCE_MODULUS:03d}"


def identifier_pattern(prefix: str, day: date) -> str:
    return f"{prefix}-{day:%Y}-{day:%m%d}-"


def parse_sequence(identifier: Optional[str]) -> Optional[int]:
    """Trailing counter of an identifier, or None if it isn't one"""
    if not identifier:
        return None
    tail = identifier.rsplit("-", 1)[-1]
    return int(tail) if tail.isdigit() else None


class IdentifierService:
    @staticmethod
    async def _latest_existing(
        db: AsyncSession, prefix: str, customer_id: str, day: date
    ) -> Optional[int]:
        """Highest counter already issued today, from the documents themselves"""
        model = _PREFIX_SOURCES.get(prefix)
        if model is None:
            return None
        result = await db.execute(
            select(model.bill_no)
            .where(
                model.customer_id == customer_id,
                model.bill_no.like(f"{identifier_pattern(prefix, day)}%"),
            )
            .order_by(model.bill_no.desc())
            .limit(1)
        )
        return parse_sequence(result.scalar_one_or_none())

    @staticmethod
    async def _lock_sequence(
        db: AsyncSession, prefix: str, customer_id: str, day: date
    ) -> DocumentSequence:
        """Return the day's counter row, holding a write lock on it"""
        stmt = (
            select(DocumentSequence)
            .where(
                DocumentSequence.prefix == prefix,
                DocumentSequence.customer_id == customer_id,
                DocumentSequence.seq_date == day,
            )
            .with_for_update()
        )
        sequence = (await db.execute(stmt)).scalar_one_or_none()
        if sequence is not None:
            return sequence

        latest = await IdentifierService._latest_existing(db, prefix, customer_id, day)
        seed = 0 if latest is None else (latest + 1) % SEQUENCE_MODULUS
        try:
            async with db.begin_nested():
                sequence = DocumentSequence(
                    prefix=prefix, customer_id=customer_id, seq_date=day, next_value=seed
                )
                db.add(sequence)
                await db.flush()
            return sequence
        except IntegrityError:
            # Another transaction seeded the row first; wait on its lock
            logger.debug(
                "Sequence row created concurrently",
                extra={"prefix": prefix, "customer_id": customer_id, "seq_date": str(day)},
            )
            return (await db.execute(stmt)).scalar_one()

    @staticmethod
    async def allocate_many(
        db: AsyncSession,
        prefix: str,
        customer_id: str,
        count: int,
        day: Optional[date] = None,
        resync: bool = False,
    ) -> List[str]:
        """
        Reserve ``count`` consecutive identifiers for today.

        The counter row stays locked until the caller's transaction ends,
        so concurrent allocators for the same day serialize. ``resync``
        advances the counter past numbers issued outside it.
        """
        if count <= 0:
            return []
        day = day or local_today()
        sequence = await IdentifierService._lock_sequence(db, prefix, customer_id, day)
        if resync:
            latest = await IdentifierService._latest_existing(db, prefix, customer_id, day)
            if latest is not None:
                sequence.next_value = max(sequence.next_value, (latest + 1) % SEQUENCE_MODULUS)
        start = sequence.next_value
        identifiers = [
            format_identifier(prefix, day, (start + offset) % SEQUENCE_MODULUS)
            for offset in range(count)
        ]
        sequence.next_value = (start + count) % SEQUENCE_MODULUS
        await db.flush()
        return identifiers

    @staticmethod
    async def allocate(
        db: AsyncSession,
        prefix: str,
        customer_id: str,
        day: Optional[date] = None,
        resync: bool = False,
    ) -> str:
        identifiers = await IdentifierService.allocate_many(
            db, prefix, customer_id, 1, day, resync=resync
        )
        return identifiers[0]

    @staticmethod
    async def with_retry(
        db: AsyncSession,
        operation: Callable[[bool], Awaitable[T]],
        what: str,
    ) -> T:
        """
        Run ``operation`` inside a savepoint, retrying when an allocated
        identifier collides with an existing row. The operation receives
        ``resync=True`` on every attempt after the first.

        Raises:
            ConflictRetryableError: attempts exhausted
        """
        attempts = max(1, settings.ID_ALLOCATION_MAX_RETRIES)
        for attempt in range(1, attempts + 1):
            try:
                async with db.begin_nested():
                    return await operation(attempt > 1)
            except IntegrityError as exc:
                logger.warning(
                    f"Identifier conflict while creating {what}",
                    extra={"attempt": attempt, "max_attempts": attempts, "error": str(exc.orig)},
                )
        raise ConflictRetryableError(details={"operation": what, "attempts": attempts})
