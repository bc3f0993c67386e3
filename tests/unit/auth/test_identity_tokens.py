"""Unit tests for IdentityTokenService."""

from datetime import timedelta

import jwt
import pytest

from gatehouse.infrastructure.auth import (
    IdentityTokenService,
    InvalidTokenError,
    TokenExpiredError,
)

SECRET = "unit-test-secret"


@pytest.fixture
def tokens() -> IdentityTokenService:
    return IdentityTokenService(SECRET)


def test_issue_and_decode(tokens):
    token = tokens.issue("idp-1", "jane@example.com", timedelta(minutes=5))

    payload = tokens.decode(token)

    assert payload["sub"] == "idp-1"
    assert payload["email"] == "jane@example.com"
    assert payload["iss"] == "gatehouse"


def test_expired_token(tokens):
    token = tokens.issue("idp-1", "jane@example.com", timedelta(seconds=-5))

    with pytest.raises(TokenExpiredError):
        tokens.decode(token)


def test_wrong_secret(tokens):
    token = IdentityTokenService("other-secret").issue("idp-1", "jane@example.com")

    with pytest.raises(InvalidTokenError):
        tokens.decode(token)


def test_garbage(tokens):
    with pytest.raises(InvalidTokenError):
        tokens.decode("not-a-token")


def test_missing_email_claim(tokens):
    token = jwt.encode({"iss": "gatehouse", "sub": "idp-1"}, SECRET, algorithm="HS256")

    with pytest.raises(InvalidTokenError, match="identity claims"):
        tokens.decode(token)


def test_wrong_issuer(tokens):
    token = jwt.encode(
        {"iss": "someone-else", "sub": "idp-1", "email": "jane@example.com"},
        SECRET,
        algorithm="HS256",
    )

    with pytest.raises(InvalidTokenError):
        tokens.decode(token)
