"""Domain exceptions for Gatehouse.

Registries raise these before (validation, invariants) or instead of
(persistence failures) completing a write. The HTTP layer translates
them into status codes; nothing in the domain layer knows about HTTP.

Hierarchy:
    GatehouseError
    ├── ValidationError
    │   └── DuplicateValueError
    ├── InvariantViolationError
    ├── NotFoundError
    └── PersistenceError
        └── ConcurrencyConflictError
"""


class GatehouseError(Exception):
    """Base class for all Gatehouse domain errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ValidationError(GatehouseError):
    """Raised when input fails structural rules.

    Attributes:
        errors: One human-readable reason per violated rule.
    """

    def __init__(self, errors: list[str] | str, message: str | None = None) -> None:
        if isinstance(errors, str):
            errors = [errors]
        self.errors = errors
        super().__init__(message or f"Invalid data: {', '.join(errors)}")


class DuplicateValueError(ValidationError):
    """Raised when a unique identifier (role value, module value, email) is taken."""

    def __init__(self, message: str) -> None:
        super().__init__([message], message=message)


class InvariantViolationError(GatehouseError):
    """Raised when a write would break a system rule."""


class NotFoundError(GatehouseError):
    """Raised when a target id or email has no matching record."""


class PersistenceError(GatehouseError):
    """Raised when the underlying document store call fails.

    The original driver exception is attached as ``__cause__``.
    """


class ConcurrencyConflictError(PersistenceError):
    """Raised when an optimistic version check fails inside a write or batch."""
