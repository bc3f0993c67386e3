"""Authorization evaluator.

Pure capability checks over an already loaded user record. No I/O and
no side effects; every guard and every UI affordance check goes through
these three predicates.
"""

from collections.abc import Iterable

from gatehouse.domain.entities.role import ADMIN_ROLE
from gatehouse.domain.entities.user import AuthorizedUser


def has_permission(user: AuthorizedUser | None, permission: str) -> bool:
    """Check a permission. Admins hold every permission; inactive users none."""
    if user is None or not user.is_active:
        return False
    return user.role == ADMIN_ROLE or permission in user.permissions


def has_module_access(user: AuthorizedUser | None, module_value: str) -> bool:
    """Check module access. Admins reach every module without assignment."""
    if user is None or not user.is_active:
        return False
    return user.role == ADMIN_ROLE or module_value in user.modules


def has_role(user: AuthorizedUser | None, allowed_roles: Iterable[str]) -> bool:
    """Check role membership. Inactive users belong to no role."""
    if user is None or not user.is_active:
        return False
    return user.role in set(allowed_roles)
