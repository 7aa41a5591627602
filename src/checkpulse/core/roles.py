"""Organization roles.

Roles form a closed set. Every decision that depends on a role goes
through a ``match`` statement ending in ``assert_never`` so that adding a
member to ``Role`` is flagged by the type checker at each switch point.
"""

from __future__ import annotations

from enum import Enum
from typing import assert_never


class Role(str, Enum):
    """User roles within an organization."""

    ADMIN = "admin"
    MANAGER = "manager"
    MEMBER = "member"


def can_review_checkins(role: Role) -> bool:
    """Whether users with this role may mark check-ins as reviewed."""
    match role:
        case Role.ADMIN | Role.MANAGER:
            return True
        case Role.MEMBER:
            return False
        case _:
            assert_never(role)


def can_reconcile_roster(role: Role) -> bool:
    """Whether users with this role may trigger a roster reconciliation."""
    match role:
        case Role.ADMIN:
            return True
        case Role.MANAGER | Role.MEMBER:
            return False
        case _:
            assert_never(role)


def parse_role(value: str | Role) -> Role:
    """Parse a stored role string.

    Raises:
        ValueError: If the value is not a known role.
    """
    if isinstance(value, Role):
        return value
    return Role(value.strip().lower())
