"""Identity token codec.

The identity provider vouches for a caller with an HS256-signed token
carrying the provider uid (``sub``) and email. Gatehouse only decodes
these tokens; ``issue`` exists for development and tests.
"""

from datetime import datetime, timedelta, timezone
from typing import Any

import jwt

from gatehouse.core.config import get_settings


class IdentityTokenError(Exception):
    """Base exception for identity token errors."""

    pass


class TokenExpiredError(IdentityTokenError):
    """Raised when a token has expired."""

    pass


class InvalidTokenError(IdentityTokenError):
    """Raised when a token is malformed, badly signed or missing claims."""

    pass


class IdentityTokenService:
    """Encodes and decodes identity tokens."""

    ALGORITHM = "HS256"
    ISSUER = "gatehouse"

    def __init__(self, secret_key: str | None = None) -> None:
        """Initialize the service.

        Args:
            secret_key: Signing key. Defaults to the configured secret key.
        """
        self._secret_key = secret_key

    @property
    def secret_key(self) -> str:
        if self._secret_key:
            return self._secret_key
        return get_settings().secret_key

    def issue(self, uid: str, email: str, expires_delta: timedelta | None = None) -> str:
        """Create a signed identity token.

        Args:
            uid: Identity-provider uid.
            email: Identity email.
            expires_delta: Lifetime. Defaults to the configured expiry.
        """
        if expires_delta is None:
            expires_delta = timedelta(minutes=get_settings().access_token_expire_minutes)
        now = datetime.now(timezone.utc)
        payload = {
            "iss": self.ISSUER,
            "sub": uid,
            "email": email,
            "iat": now,
            "exp": now + expires_delta,
        }
        return jwt.encode(payload, self.secret_key, algorithm=self.ALGORITHM)

    def decode(self, token: str) -> dict[str, Any]:
        """Decode and validate a token.

        Returns:
            Payload with at least ``sub`` and ``email``.

        Raises:
            TokenExpiredError: If the token has expired.
            InvalidTokenError: If the token is invalid.
        """
        try:
            payload = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.ALGORITHM],
                issuer=self.ISSUER,
            )
        except jwt.ExpiredSignatureError as e:
            raise TokenExpiredError("Token has expired") from e
        except jwt.InvalidTokenError as e:
            raise InvalidTokenError("Invalid token") from e

        if not payload.get("sub") or not payload.get("email"):
            raise InvalidTokenError("Token is missing identity claims")
        return payload
