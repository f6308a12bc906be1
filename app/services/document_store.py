"""Client for the external document store (customer profiles, bank list)

Reads are best-effort: callers get ``None`` / ``[]`` when the store is
unconfigured or unreachable, and the failure is logged.
"""

from typing import Any, Dict, List, Optional

import httpx

from app.config import settings
from app.core.logging import get_logger

logger = get_logger(__name__)


def _headers() -> Dict[str, str]:
    headers = {"Accept": "application/json"}
    if settings.DOCUMENT_STORE_API_KEY:
        headers["Authorization"] = f"Bearer {settings.DOCUMENT_STORE_API_KEY}"
    return headers


async def _get(path: str, params: Optional[Dict[str, Any]] = None) -> Optional[Any]:
    if not settings.DOCUMENT_STORE_URL:
        logger.debug("Document store not configured", extra={"path": path})
        return None
    url = f"{settings.DOCUMENT_STORE_URL.rstrip('/')}/{path.lstrip('/')}"
    try:
        async with httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT_SECONDS) as client:
            response = await client.get(url, params=params, headers=_headers())
            response.raise_for_status()
            return response.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.warning("Document store request failed", extra={"path": path, "error": str(e)})
        return None


async def get_customer_name(customer_id: str) -> Optional[str]:
    """Display name of the customer whose customer_code is ``customer_id``"""
    payload = await _get("customer", {"customer_code": customer_id})
    if not payload:
        return None
    records = payload.get("data", payload) if isinstance(payload, dict) else payload
    if isinstance(records, dict):
        records = [records]
    for record in records or []:
        name = record.get("name") if isinstance(record, dict) else None
        if name:
            return name
    logger.warning("Customer name not found", extra={"customer_id": customer_id})
    return None


async def find_customer_code(customer_name: str) -> Optional[str]:
    """Reverse lookup: customer_code of the customer displayed as ``customer_name``"""
    payload = await _get("customer", {"name": customer_name})
    if not payload:
        return None
    records = payload.get("data", payload) if isinstance(payload, dict) else payload
    if isinstance(records, dict):
        records = [records]
    for record in records or []:
        if isinstance(record, dict) and record.get("customer_code"):
            return str(record["customer_code"])
    return None


async def list_banks() -> List[Dict[str, Any]]:
    payload = await _get("bank")
    if not payload:
        return []
    records = payload.get("data", []) if isinstance(payload, dict) else payload
    return [r for r in records if isinstance(r, dict)]


async def banks_by_id() -> Dict[str, Dict[str, Any]]:
    return {str(bank.get("id")): bank for bank in await list_banks() if bank.get("id") is not None}
