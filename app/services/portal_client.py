"""Client for the external user portal (login and site permissions)"""

from typing import Any, Dict, List, Optional

import httpx

from app.config import settings
from app.core.errors import DomainError, ExternalServiceError
from app.core.logging import get_logger
from app.core.security import PortalUser, TokenError, decode_portal_token
from app.services import document_store

logger = get_logger(__name__)

# Lifetime the portal is asked for, in seconds (30 days)
TOKEN_EXPIRE_SECONDS = "2592000"


class PortalAuthError(DomainError):
    """Portal rejected the credentials or the token"""

    code = "UNAUTHORIZED"
    status_code = 401


def _url(path: str) -> str:
    return f"{settings.PORTAL_API_URL.rstrip('/')}/{path.lstrip('/')}"


def _text(value: Any) -> Optional[str]:
    return None if value in (None, "") else str(value)


def _extract_token(payload: Dict[str, Any]) -> Optional[str]:
    data = payload.get("data") if isinstance(payload.get("data"), dict) else {}
    return (
        payload.get("JWT")
        or data.get("token")
        or payload.get("token")
        or data.get("access_token")
        or payload.get("access_token")
    )


async def login(username: str, password: str) -> Dict[str, Any]:
    """
    Exchange credentials for a portal token.

    Raises:
        PortalAuthError: portal refused the credentials
        ExternalServiceError: portal unreachable or returned no token
    """
    form = {
        "username": username,
        "password": password,
        "securitycode": "",
        "expire": TOKEN_EXPIRE_SECONDS,
        "permission": "",
    }
    try:
        async with httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT_SECONDS) as client:
            response = await client.post(_url("/api/login"), data=form, headers={"Accept": "*/*"})
    except httpx.HTTPError as e:
        logger.error("Portal login request failed", extra={"error": str(e)})
        raise ExternalServiceError("portal", message_key="PORTAL_UNAVAILABLE", reason=str(e))

    try:
        payload = response.json()
    except ValueError:
        payload = {}
    if not isinstance(payload, dict):
        payload = {}

    if response.is_client_error:
        logger.warning("Portal login rejected", extra={"username": username, "status_code": response.status_code})
        raise PortalAuthError(payload.get("message") or None, message_key="LOGIN_FAILED")
    if response.is_error:
        logger.error("Portal login error", extra={"status_code": response.status_code})
        raise ExternalServiceError("portal", message_key="PORTAL_UNAVAILABLE", reason=f"HTTP {response.status_code}")

    token = _extract_token(payload)
    if not token:
        logger.error("Portal returned no token", extra={"username": username})
        raise ExternalServiceError("portal", message_key="PORTAL_UNAVAILABLE", reason="missing token")

    try:
        values = decode_portal_token(token)["values"]
    except TokenError as e:
        logger.error("Portal returned an unusable token", extra={"reason": e.reason})
        raise ExternalServiceError("portal", message_key="PORTAL_UNAVAILABLE", reason=e.reason)

    logger.info("Portal login succeeded", extra={"username": username, "userid": values.get("userid")})
    return {
        "token": token,
        "user": {
            "userid": _text(values.get("userid")),
            "username": _text(values.get("username")) or username,
            "userlevel": _text(values.get("userlevel")),
            "userprimarykey": _text(values.get("userprimarykey")),
            "parentuserid": _text(values.get("parentuserid")),
            "permission": values.get("permission") or False,
        },
    }


async def allowed_sites(user: PortalUser) -> List[Dict[str, Any]]:
    """
    Sites the user may manage, as raw portal records.

    Raises:
        PortalAuthError: portal says the token is no longer valid
        ExternalServiceError: portal unreachable or failing
    """
    url = _url(f"/api/user/{user.userid}/{user.userlevel}/allow_sites")
    try:
        async with httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT_SECONDS) as client:
            response = await client.get(url, headers={"Authorization": f"Bearer {user.token}"})
    except httpx.HTTPError as e:
        logger.error("Portal allow_sites request failed", extra={"error": str(e)})
        raise ExternalServiceError("portal", message_key="PORTAL_UNAVAILABLE", reason=str(e))

    if response.status_code in (401, 403):
        raise PortalAuthError(message_key="TOKEN_EXPIRED")
    if response.is_error:
        raise ExternalServiceError("portal", message_key="PORTAL_UNAVAILABLE", reason=f"HTTP {response.status_code}")

    try:
        payload = response.json()
    except ValueError:
        raise ExternalServiceError("portal", message_key="PORTAL_UNAVAILABLE", reason="invalid JSON")
    data = payload.get("data") if isinstance(payload, dict) else None
    sites = data.get("sites") if isinstance(data, dict) else None
    return [s for s in sites or [] if isinstance(s, dict)]


async def customer_list(user: PortalUser) -> List[Dict[str, Any]]:
    """Allowed sites mapped to customer codes; sites without a code are dropped"""
    customers = []
    for site in await allowed_sites(user):
        name = site.get("k_product_customer_name")
        if not name:
            continue
        code = await document_store.find_customer_code(name)
        if not code:
            logger.warning("No customer code for site", extra={"customer_name": name})
            continue
        customers.append(
            {
                "customer_id": code,
                "customer_name": name,
                "site_name": site.get("site_name"),
                "site_code": site.get("site_code"),
            }
        )
    logger.info("Customer list resolved", extra={"userid": user.userid, "count": len(customers)})
    return customers
