"""Push backend client: batched writes with bounded exponential backoff"""

import asyncio
import hashlib
from typing import Any, Dict, List, Sequence

import httpx

from app.config import settings
from app.core.logging import get_logger
from app.models.notification import NotificationAudit

logger = get_logger(__name__)

BACKOFF_BASE_SECONDS = 1.0
BACKOFF_CAP_SECONDS = 5.0
NAME_ROUTER = "paymentHomePage"


def backoff_delay(attempt: int) -> float:
    """Wait before retry number ``attempt`` (1-based): 1s, 2s, 4s, capped at 5s"""
    return min(BACKOFF_BASE_SECONDS * (2 ** (attempt - 1)), BACKOFF_CAP_SECONDS)


def build_document(audit: NotificationAudit, customer_name: str) -> Dict[str, Any]:
    name_md5 = hashlib.md5(customer_name.encode("utf-8")).hexdigest()
    return {
        "create_date": audit.create_date.isoformat() if audit.create_date else None,
        "detail": audit.detail or "",
        "title": audit.title or "",
        "topic": audit.topic or "",
        "type": audit.type or "",
        "userID": [audit.receiver] if audit.receiver else [],
        "docID": [f"{audit.table_name}/{audit.rows_id}"],
        "customerName": customer_name,
        "customerNameMD5": name_md5,
        "siteName": customer_name,
        "siteNameMD5": name_md5,
        "isResident": True,
        "is_delete": False,
        "is_detail": False,
        "nameRouter": NAME_ROUTER,
        "no_page": False,
        "sendNoti": True,
        "status": 1,
    }


def chunked(items: Sequence[Any], size: int) -> List[Sequence[Any]]:
    size = max(1, size)
    return [items[i:i + size] for i in range(0, len(items), size)]


class PushError(Exception):
    pass


async def send_batch(client: httpx.AsyncClient, documents: List[Dict[str, Any]]) -> None:
    headers = {"Content-Type": "application/json"}
    if settings.PUSH_API_KEY:
        headers["Authorization"] = f"Bearer {settings.PUSH_API_KEY}"
    try:
        response = await client.post(settings.PUSH_API_URL, json={"documents": documents}, headers=headers)
        response.raise_for_status()
    except httpx.HTTPError as e:
        raise PushError(str(e)) from e


async def send_with_retry(
    client: httpx.AsyncClient,
    documents: List[Dict[str, Any]],
    max_retries: int,
) -> int:
    """
    Deliver one batch. Returns the number of attempts used.

    Raises:
        PushError: every attempt failed
    """
    for attempt in range(1, max_retries + 1):
        try:
            await send_batch(client, documents)
            return attempt
        except PushError as e:
            logger.warning(
                "Push batch failed",
                extra={"attempt": attempt, "max_retries": max_retries, "size": len(documents), "error": str(e)},
            )
            if attempt >= max_retries:
                raise
            await asyncio.sleep(backoff_delay(attempt))
    raise PushError("no attempts made")
