"""Structural validation for role, module and user payloads.

Validators return a list of human-readable reasons (empty when valid);
registries raise ``ValidationError`` with that list before any write.
"""

import re

from gatehouse.domain.entities.permission import is_known_permission
from gatehouse.domain.entities.system_module import ModuleData
from gatehouse.domain.entities.user import UserData

ROLE_VALUE_PATTERN = re.compile(r"^[a-z0-9_]+$")
MODULE_VALUE_PATTERN = re.compile(r"^[a-z0-9-_]+$", re.IGNORECASE)
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def normalize_slug(value: str) -> str:
    """Trim and lowercase an identifier."""
    return value.strip().lower()


def normalize_email(email: str) -> str:
    """Trim and lowercase an email address."""
    return (email or "").strip().lower()


def format_display_name(name: str) -> str:
    """Capitalize each word of a display name."""
    return " ".join(word.capitalize() for word in (name or "").strip().split())


def unknown_permissions(permissions: list[str]) -> list[str]:
    """Return the permission values that are not in the catalog."""
    return [p for p in permissions if not is_known_permission(p)]


class RoleValidator:
    """Validator for role payloads."""

    @classmethod
    def validate_value(cls, value: str | None) -> list[str]:
        errors = []
        if not value or not value.strip():
            errors.append("Role identifier is required")
        elif not ROLE_VALUE_PATTERN.match(normalize_slug(value)):
            errors.append(
                "Role identifier may only contain letters, numbers and underscores"
            )
        return errors

    @classmethod
    def validate(
        cls,
        value: str | None,
        label: str | None,
        permissions: list[str] | None,
    ) -> list[str]:
        """Validate a complete role payload."""
        errors = cls.validate_value(value)
        if not label or not label.strip():
            errors.append("Role label is required")
        errors.extend(cls.validate_permissions(permissions or []))
        return errors

    @classmethod
    def validate_permissions(cls, permissions: list[str]) -> list[str]:
        unknown = unknown_permissions(permissions)
        if unknown:
            return [f"Unknown permissions: {', '.join(unknown)}"]
        return []


class ModuleValidator:
    """Validator for module payloads."""

    MIN_VALUE_LENGTH = 2
    MIN_LABEL_LENGTH = 3
    MIN_DESCRIPTION_LENGTH = 5
    MIN_ICON_LENGTH = 2

    @classmethod
    def validate(cls, data: ModuleData) -> list[str]:
        """Validate a complete module payload (creation)."""
        errors = []
        value = (data.value or "").strip()
        if len(value) < cls.MIN_VALUE_LENGTH:
            errors.append(
                f"Identifier must be at least {cls.MIN_VALUE_LENGTH} characters"
            )
        if len((data.label or "").strip()) < cls.MIN_LABEL_LENGTH:
            errors.append(f"Name must be at least {cls.MIN_LABEL_LENGTH} characters")
        if len((data.description or "").strip()) < cls.MIN_DESCRIPTION_LENGTH:
            errors.append(
                f"Description must be at least {cls.MIN_DESCRIPTION_LENGTH} characters"
            )
        if len((data.icon or "").strip()) < cls.MIN_ICON_LENGTH:
            errors.append("A valid icon is required")
        if not MODULE_VALUE_PATTERN.match(value):
            errors.append(
                "Identifier may only contain letters, numbers, hyphens and underscores"
            )
        return errors

    @classmethod
    def validate_partial(cls, data: ModuleData) -> list[str]:
        """Validate only the fields present in a partial update."""
        errors = []
        if data.value is not None:
            value = data.value.strip()
            if len(value) < cls.MIN_VALUE_LENGTH or not MODULE_VALUE_PATTERN.match(value):
                errors.append(
                    "Identifier must be at least 2 characters of letters, numbers, "
                    "hyphens and underscores"
                )
        if data.label is not None and len(data.label.strip()) < cls.MIN_LABEL_LENGTH:
            errors.append(f"Name must be at least {cls.MIN_LABEL_LENGTH} characters")
        if (
            data.description is not None
            and len(data.description.strip()) < cls.MIN_DESCRIPTION_LENGTH
        ):
            errors.append(
                f"Description must be at least {cls.MIN_DESCRIPTION_LENGTH} characters"
            )
        if data.icon is not None and len(data.icon.strip()) < cls.MIN_ICON_LENGTH:
            errors.append("A valid icon is required")
        return errors


class UserValidator:
    """Validator for user provisioning payloads."""

    MIN_DISPLAY_NAME_LENGTH = 2

    @classmethod
    def validate(cls, data: UserData, modules_required: bool) -> list[str]:
        """Validate a provisioning payload.

        Args:
            data: Payload to validate.
            modules_required: Whether at least one module must be assigned.
        """
        errors = []
        email = normalize_email(data.email)
        if not email:
            errors.append("Email is required")
        elif not EMAIL_PATTERN.match(email):
            errors.append("Email is not a valid address")
        if len((data.display_name or "").strip()) < cls.MIN_DISPLAY_NAME_LENGTH:
            errors.append(
                f"Display name must be at least {cls.MIN_DISPLAY_NAME_LENGTH} characters"
            )
        errors.extend(RoleValidator.validate_value(data.role))
        errors.extend(cls.validate_permissions(data.permissions))
        if modules_required and not data.modules:
            errors.append("At least one module is required")
        return errors

    @classmethod
    def validate_permissions(cls, permissions: list[str] | None) -> list[str]:
        if not permissions:
            return ["At least one permission is required"]
        return RoleValidator.validate_permissions(permissions)
