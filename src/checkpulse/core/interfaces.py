"""Protocol definitions for all external collaborators.

The engine only depends on these protocols, never on concrete
implementations. Production code wires the PostgreSQL stores and the
Slack directory; tests wire the in-memory stores, which honour the same
contracts.

All collaborator calls are awaited under a caller-supplied timeout by the
engine, so implementations do not need their own deadline handling.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from typing import Protocol, runtime_checkable
from uuid import UUID

from .domain_types import (
    CheckinExemption,
    CheckinRecord,
    DirectoryMember,
    Organization,
    Period,
    User,
    VacationEntry,
)
from .roles import Role


@runtime_checkable
class UserStore(Protocol):
    """Persistence for organization members."""

    async def list_active_users(self, organization_id: UUID) -> Sequence[User]:
        """List users with ``is_active = True``."""
        ...

    async def list_inactive_users(self, organization_id: UUID) -> Sequence[User]:
        """List deactivated users."""
        ...

    async def create_user(
        self,
        organization_id: UUID,
        identity: str,
        *,
        display_name: str,
        role: Role = Role.MEMBER,
    ) -> User:
        """Create an active user keyed by its normalized identity."""
        ...

    async def set_active(self, user_id: UUID, active: bool) -> None:
        """Flip a user's active flag. Never deletes."""
        ...

    async def set_display_name(self, user_id: UUID, display_name: str) -> None:
        """Refresh a user's display name from the directory."""
        ...

    async def get_user(self, user_id: UUID) -> User | None:
        """Get a user by ID, active or not."""
        ...


@runtime_checkable
class CheckinStore(Protocol):
    """Persistence for check-in records."""

    async def find_by_user_and_period(
        self, user_id: UUID, period: Period
    ) -> CheckinRecord | None:
        """Get the user's record for a period.

        Raises:
            DataIntegrityError: If more than one record exists.
        """
        ...

    async def list_by_org_and_period(
        self, organization_id: UUID, period: Period
    ) -> Sequence[CheckinRecord]:
        """List every record of the organization for a period.

        Duplicates are returned as stored so callers can detect them.
        """
        ...

    async def get(self, checkin_id: UUID) -> CheckinRecord | None:
        """Get a record by ID."""
        ...

    async def create(
        self, user: User, period: Period, submitted_at: datetime
    ) -> CheckinRecord:
        """Create an unreviewed record for the user and period."""
        ...

    async def mark_reviewed(
        self,
        checkin_id: UUID,
        reviewer_id: UUID,
        reviewed_at: datetime,
        comments: str | None = None,
    ) -> CheckinRecord:
        """Flip ``reviewed`` and attach reviewer metadata."""
        ...


@runtime_checkable
class VacationStore(Protocol):
    """Read access to vacation entries owned by the scheduling collaborator."""

    async def list_overlapping(self, user_id: UUID, period: Period) -> Sequence[VacationEntry]:
        """List the user's entries touching any day of the period."""
        ...


@runtime_checkable
class ExemptionStore(Protocol):
    """Read access to per-period check-in exemptions."""

    async def list_by_org_and_period(
        self, organization_id: UUID, period: Period
    ) -> Sequence[CheckinExemption]:
        """List the organization's exemptions for a period."""
        ...


@runtime_checkable
class OrganizationStore(Protocol):
    """Read access to organizations and their schedule settings."""

    async def get(self, organization_id: UUID) -> Organization | None:
        """Get an organization by ID."""
        ...

    async def list_active(self) -> Sequence[Organization]:
        """List active organizations."""
        ...


@runtime_checkable
class DirectoryProvider(Protocol):
    """External directory that defines roster membership."""

    async def fetch_members(self, channel_ref: str) -> Sequence[DirectoryMember]:
        """Fetch the current members of a channel or group.

        Raises:
            DirectoryProviderError: On authentication or network failure.
        """
        ...
