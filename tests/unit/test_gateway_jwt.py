"""Unit tests for JWT handler."""

from datetime import timedelta
from unittest.mock import patch

import pytest
from jose import jwt

from config.settings import settings
from src.fm_common.errors import InvalidCredentialsError
from src.fm_gateway.auth.jwt_handler import create_access_token, decode_access_token


def test_access_token_contains_correct_claims() -> None:
    token = create_access_token("user-123", "freelancer")
    # Decode without verification to inspect claims
    payload = jwt.get_unverified_claims(token)
    assert payload["sub"] == "user-123"
    assert payload["role"] == "freelancer"
    assert payload["type"] == "access"


def test_decode_valid_access_token() -> None:
    token = create_access_token("user-abc", "client")
    payload = decode_access_token(token)
    assert payload["sub"] == "user-abc"


def test_expired_access_token_raises_credentials_error() -> None:
    """Expired access token must raise InvalidCredentialsError."""
    with patch(
        "src.fm_gateway.auth.jwt_handler._ACCESS_EXPIRE",
        timedelta(seconds=-1),
    ):
        token = create_access_token("user-abc", "client")
    with pytest.raises(InvalidCredentialsError):
        decode_access_token(token)


def test_non_access_token_rejected() -> None:
    """A token signed with the right key but another type must fail."""
    token = jwt.encode(
        {"sub": "user-abc", "type": "refresh"},
        settings.JWT_SECRET,
        algorithm=settings.JWT_ALGORITHM,
    )
    with pytest.raises(InvalidCredentialsError):
        decode_access_token(token)


def test_tampered_token_raises_error() -> None:
    """Tampered token signature must be rejected."""
    token = create_access_token("user-abc", "admin")
    tampered = token[:-4] + "xxxx"
    with pytest.raises(InvalidCredentialsError):
        decode_access_token(tampered)


def test_foreign_secret_rejected() -> None:
    token = jwt.encode(
        {"sub": "user-abc", "type": "access"}, "some-other-secret", algorithm="HS256"
    )
    with pytest.raises(InvalidCredentialsError):
        decode_access_token(token)
