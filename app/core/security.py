"""Security and Authentication Utilities"""

import secrets
import string
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

from jose import JWTError, jwt

from app.config import settings

UPLOAD_KEY_ALPHABET = string.ascii_uppercase + string.ascii_lowercase + string.digits


@dataclass
class PortalUser:
    """Identity carried by a portal-issued token"""

    userid: Optional[str]
    userlevel: Optional[str]
    username: Optional[str]
    userprimarykey: Optional[str]
    token: str

    @property
    def actor(self) -> str:
        """Value recorded in create_by / update_by columns"""
        return str(self.userid or self.username or "system")


class TokenError(Exception):
    """Raised when a portal token is unusable; ``reason`` is a message key"""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)


def decode_portal_token(token: str) -> Dict[str, Any]:
    """
    Decode a portal JWT.

    The portal signs its own tokens. When PORTAL_JWT_SECRET is configured
    the signature is verified; otherwise the claims are read as issued.
    Expiry is always checked here.

    Raises:
        TokenError: structure invalid or token expired
    """
    try:
        if settings.PORTAL_JWT_SECRET:
            claims = jwt.decode(
                token,
                settings.PORTAL_JWT_SECRET,
                algorithms=[settings.PORTAL_JWT_ALGORITHM],
                options={"verify_exp": False, "verify_aud": False},
            )
        else:
            claims = jwt.get_unverified_claims(token)
    except JWTError:
        raise TokenError("TOKEN_INVALID")

    if not isinstance(claims, dict) or not isinstance(claims.get("values"), dict):
        raise TokenError("TOKEN_INVALID")

    exp = claims.get("exp")
    if exp is not None:
        try:
            expires_at = float(exp)
        except (TypeError, ValueError):
            raise TokenError("TOKEN_INVALID")
        if expires_at < time.time():
            raise TokenError("TOKEN_EXPIRED")
    return claims


def portal_user_from_token(token: str) -> PortalUser:
    values = decode_portal_token(token)["values"]
    return PortalUser(
        userid=_str_or_none(values.get("userid")),
        userlevel=_str_or_none(values.get("userlevel")),
        username=_str_or_none(values.get("username")),
        userprimarykey=_str_or_none(values.get("userprimarykey")),
        token=token,
    )


def _str_or_none(value: Any) -> Optional[str]:
    return None if value in (None, "") else str(value)


def generate_upload_key(length: int = 32) -> str:
    """
    Generate a random upload key that groups attachments.

    Args:
        length: Length of the key (default: 32)

    Returns:
        Random key over [A-Za-z0-9]
    """
    return "".join(secrets.choice(UPLOAD_KEY_ALPHABET) for _ in range(length))
