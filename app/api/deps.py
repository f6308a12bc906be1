"""API Dependencies"""

from typing import Optional

from fastapi import Depends, HTTPException, Query, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.core.errors import ValidationError
from app.core.messages import get_message
from app.core.security import PortalUser, TokenError, portal_user_from_token
from app.database import get_db  # noqa: F401  re-exported for endpoints

# Security scheme for bearer token
security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> PortalUser:
    """
    Identity from the portal-issued bearer token.

    Raises:
        HTTPException: 401 when the token is missing, malformed or expired
    """
    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=get_message("UNAUTHORIZED"),
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        return portal_user_from_token(credentials.credentials)
    except TokenError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=get_message(e.reason),
            headers={"WWW-Authenticate": "Bearer"},
        )


async def get_customer_id(customer_id: Optional[str] = Query(None)) -> str:
    """Customer scope of a read or action request, from the query string"""
    if not customer_id or not customer_id.strip():
        raise ValidationError(message_key="CUSTOMER_REQUIRED", fields=["customer_id"])
    return customer_id.strip()
