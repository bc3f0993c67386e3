"""HTTP surface for the authorization core."""

from gatehouse.infrastructure.api.app import bootstrap, create_app

__all__ = ["bootstrap", "create_app"]
