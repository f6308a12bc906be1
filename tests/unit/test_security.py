"""Unit tests for portal token decoding and upload keys."""

import pytest
from jose import jwt

from app.config import settings
from app.core.security import (
    UPLOAD_KEY_ALPHABET,
    TokenError,
    decode_portal_token,
    generate_upload_key,
    portal_user_from_token,
)
from factories import make_token


def test_portal_user_from_token():
    user = portal_user_from_token(make_token(userid=7, username="manager"))
    assert user.userid == "7"
    assert user.username == "manager"
    assert user.userlevel == "1"
    assert user.actor == "7"


def test_actor_falls_back_to_username():
    token = jwt.encode(
        {"values": {"username": "night-shift"}},
        settings.PORTAL_JWT_SECRET,
        algorithm=settings.PORTAL_JWT_ALGORITHM,
    )
    assert portal_user_from_token(token).actor == "night-shift"


def test_expired_token_is_rejected():
    with pytest.raises(TokenError) as exc_info:
        decode_portal_token(make_token(expires_in=-60))
    assert exc_info.value.reason == "TOKEN_EXPIRED"


def test_wrong_signature_is_rejected():
    token = jwt.encode({"values": {"userid": "1"}}, "another-secret", algorithm="HS256")
    with pytest.raises(TokenError) as exc_info:
        decode_portal_token(token)
    assert exc_info.value.reason == "TOKEN_INVALID"


def test_token_without_values_claim_is_rejected():
    token = jwt.encode({"sub": "1"}, settings.PORTAL_JWT_SECRET, algorithm="HS256")
    with pytest.raises(TokenError):
        decode_portal_token(token)


def test_garbage_token_is_rejected():
    with pytest.raises(TokenError):
        decode_portal_token("not-a-jwt")


def test_unverified_claims_when_no_secret(monkeypatch):
    monkeypatch.setattr(settings, "PORTAL_JWT_SECRET", "")
    token = jwt.encode({"values": {"userid": "5"}}, "portal-private-key", algorithm="HS256")
    assert decode_portal_token(token)["values"]["userid"] == "5"


def test_generate_upload_key_shape():
    key = generate_upload_key()
    assert len(key) == 32
    assert set(key) <= set(UPLOAD_KEY_ALPHABET)
    assert generate_upload_key() != key


def test_non_numeric_expiry_is_invalid():
    token = jwt.encode(
        {"values": {"userid": "1"}, "exp": "tomorrow"},
        settings.PORTAL_JWT_SECRET,
        algorithm=settings.PORTAL_JWT_ALGORITHM,
    )
    with pytest.raises(TokenError) as exc_info:
        decode_portal_token(token)
    assert exc_info.value.reason == "TOKEN_INVALID"
