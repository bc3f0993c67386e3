"""Identity token handling."""

from gatehouse.infrastructure.auth.identity_tokens import (
    IdentityTokenError,
    IdentityTokenService,
    InvalidTokenError,
    TokenExpiredError,
)

__all__ = [
    "IdentityTokenError",
    "IdentityTokenService",
    "InvalidTokenError",
    "TokenExpiredError",
]
