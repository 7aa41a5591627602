"""In-memory stores for tests and local development.

These stores satisfy the same protocols as the PostgreSQL adapters, so
every engine scenario runs without a database or a directory service.

Two hooks make failure paths testable:
- ``fail_on`` makes a named operation raise the given exception.
- ``delay_seconds`` makes every call sleep first, for timeout tests.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable, Sequence
from datetime import UTC, date, datetime
from uuid import UUID, uuid4

from checkpulse.core.domain_types import (
    CheckinExemption,
    CheckinRecord,
    DirectoryMember,
    Organization,
    Period,
    User,
    VacationEntry,
)
from checkpulse.core.exceptions import CheckinStateError, DataIntegrityError
from checkpulse.core.roles import Role


class _FaultInjection:
    """Shared failure/latency hooks."""

    def __init__(self) -> None:
        self.fail_on: dict[str, BaseException] = {}
        self.delay_seconds: float = 0.0
        self.calls: list[str] = []

    async def _enter(self, operation: str) -> None:
        self.calls.append(operation)
        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)
        error = self.fail_on.get(operation)
        if error is not None:
            raise error


class InMemoryOrganizationStore(_FaultInjection):
    """Organizations held in a dict."""

    def __init__(self, organizations: Iterable[Organization] = ()) -> None:
        super().__init__()
        self.organizations: dict[UUID, Organization] = {o.id: o for o in organizations}

    def add(self, organization: Organization) -> Organization:
        self.organizations[organization.id] = organization
        return organization

    async def get(self, organization_id: UUID) -> Organization | None:
        await self._enter("get")
        return self.organizations.get(organization_id)

    async def list_active(self) -> Sequence[Organization]:
        await self._enter("list_active")
        return [o for o in self.organizations.values() if o.is_active]


class InMemoryUserStore(_FaultInjection):
    """Users held in a dict keyed by ID."""

    def __init__(self, users: Iterable[User] = ()) -> None:
        super().__init__()
        self.users: dict[UUID, User] = {u.id: u for u in users}
        self.fail_identities: dict[str, BaseException] = {}

    def add(
        self,
        organization_id: UUID,
        identity: str,
        *,
        display_name: str | None = None,
        role: Role = Role.MEMBER,
        is_active: bool = True,
        created_at: datetime | None = None,
    ) -> User:
        """Seed a user directly, bypassing the async API."""
        user = User(
            id=uuid4(),
            organization_id=organization_id,
            identity=identity,
            display_name=display_name or identity.split("@", 1)[0],
            role=role,
            is_active=is_active,
            created_at=created_at or datetime(2020, 1, 1, tzinfo=UTC),
        )
        self.users[user.id] = user
        return user

    def by_identity(self, organization_id: UUID, identity: str) -> User | None:
        for user in self.users.values():
            if user.organization_id == organization_id and user.identity == identity:
                return user
        return None

    async def list_active_users(self, organization_id: UUID) -> Sequence[User]:
        await self._enter("list_active_users")
        return [
            u for u in self.users.values() if u.organization_id == organization_id and u.is_active
        ]

    async def list_inactive_users(self, organization_id: UUID) -> Sequence[User]:
        await self._enter("list_inactive_users")
        return [
            u
            for u in self.users.values()
            if u.organization_id == organization_id and not u.is_active
        ]

    async def create_user(
        self,
        organization_id: UUID,
        identity: str,
        *,
        display_name: str,
        role: Role = Role.MEMBER,
    ) -> User:
        await self._enter("create_user")
        error = self.fail_identities.get(identity)
        if error is not None:
            raise error
        if self.by_identity(organization_id, identity) is not None:
            raise ValueError(f"User {identity} already exists")
        return self.add(
            organization_id,
            identity,
            display_name=display_name,
            role=role,
            created_at=datetime.now(UTC),
        )

    async def set_active(self, user_id: UUID, active: bool) -> None:
        await self._enter("set_active")
        user = self.users.get(user_id)
        if user is None:
            raise KeyError(f"Unknown user {user_id}")
        error = self.fail_identities.get(user.identity)
        if error is not None:
            raise error
        self.users[user_id] = user.model_copy(update={"is_active": active})

    async def set_display_name(self, user_id: UUID, display_name: str) -> None:
        await self._enter("set_display_name")
        user = self.users.get(user_id)
        if user is None:
            raise KeyError(f"Unknown user {user_id}")
        error = self.fail_identities.get(user.identity)
        if error is not None:
            raise error
        self.users[user_id] = user.model_copy(update={"display_name": display_name})

    async def get_user(self, user_id: UUID) -> User | None:
        await self._enter("get_user")
        return self.users.get(user_id)


class InMemoryCheckinStore(_FaultInjection):
    """Check-in records held in a list.

    Duplicates may be seeded with ``add(..., allow_duplicate=True)`` to
    exercise the uniqueness-violation path.
    """

    def __init__(self) -> None:
        super().__init__()
        self.records: list[CheckinRecord] = []

    def add(
        self,
        user: User,
        period: Period,
        *,
        submitted_at: datetime | None = None,
        reviewed: bool = False,
        reviewed_by: UUID | None = None,
        reviewed_at: datetime | None = None,
        allow_duplicate: bool = False,
    ) -> CheckinRecord:
        """Seed a record directly, bypassing the async API."""
        if not allow_duplicate and self._matching(user.id, period):
            raise CheckinStateError(f"User {user.id} already checked in for this period")
        submitted_at = submitted_at or period.start
        record = CheckinRecord(
            id=uuid4(),
            user_id=user.id,
            organization_id=user.organization_id,
            week_of=period.start,
            submitted_at=submitted_at,
            reviewed=reviewed,
            reviewed_by=reviewed_by,
            reviewed_at=(reviewed_at or submitted_at) if reviewed else None,
        )
        self.records.append(record)
        return record

    def _matching(self, user_id: UUID, period: Period) -> list[CheckinRecord]:
        return [r for r in self.records if r.user_id == user_id and r.week_of == period.start]

    async def find_by_user_and_period(
        self, user_id: UUID, period: Period
    ) -> CheckinRecord | None:
        await self._enter("find_by_user_and_period")
        matches = self._matching(user_id, period)
        if len(matches) > 1:
            raise DataIntegrityError(
                f"{len(matches)} check-ins for user {user_id} in period {period.start.isoformat()}"
            )
        return matches[0] if matches else None

    async def list_by_org_and_period(
        self, organization_id: UUID, period: Period
    ) -> Sequence[CheckinRecord]:
        await self._enter("list_by_org_and_period")
        return [
            r
            for r in self.records
            if r.organization_id == organization_id and r.week_of == period.start
        ]

    async def get(self, checkin_id: UUID) -> CheckinRecord | None:
        await self._enter("get")
        return next((r for r in self.records if r.id == checkin_id), None)

    async def create(self, user: User, period: Period, submitted_at: datetime) -> CheckinRecord:
        await self._enter("create")
        return self.add(user, period, submitted_at=submitted_at)

    async def mark_reviewed(
        self,
        checkin_id: UUID,
        reviewer_id: UUID,
        reviewed_at: datetime,
        comments: str | None = None,
    ) -> CheckinRecord:
        await self._enter("mark_reviewed")
        for index, record in enumerate(self.records):
            if record.id == checkin_id:
                updated = record.model_copy(
                    update={
                        "reviewed": True,
                        "reviewed_by": reviewer_id,
                        "reviewed_at": reviewed_at,
                        "review_comments": comments,
                    }
                )
                self.records[index] = updated
                return updated
        raise CheckinStateError(f"Unknown check-in {checkin_id}")


class InMemoryVacationStore(_FaultInjection):
    """Vacation entries held in a list."""

    def __init__(self) -> None:
        super().__init__()
        self.entries: list[VacationEntry] = []

    def add(
        self, user_id: UUID, starts_on: date, ends_on: date | None = None, note: str | None = None
    ) -> VacationEntry:
        entry = VacationEntry(
            id=uuid4(),
            user_id=user_id,
            starts_on=starts_on,
            ends_on=ends_on or starts_on,
            note=note,
        )
        self.entries.append(entry)
        return entry

    async def list_overlapping(self, user_id: UUID, period: Period) -> Sequence[VacationEntry]:
        await self._enter("list_overlapping")
        return [e for e in self.entries if e.user_id == user_id and e.overlaps(period)]


class InMemoryExemptionStore(_FaultInjection):
    """Check-in exemptions held in a list."""

    def __init__(self) -> None:
        super().__init__()
        self.exemptions: list[CheckinExemption] = []

    def add(self, user: User, week_of: date, reason: str | None = None) -> CheckinExemption:
        exemption = CheckinExemption(
            id=uuid4(),
            user_id=user.id,
            organization_id=user.organization_id,
            week_of=week_of,
            reason=reason,
        )
        self.exemptions.append(exemption)
        return exemption

    async def list_by_org_and_period(
        self, organization_id: UUID, period: Period
    ) -> Sequence[CheckinExemption]:
        await self._enter("list_by_org_and_period")
        return [
            e
            for e in self.exemptions
            if e.organization_id == organization_id and e.applies_to(period)
        ]


class StaticDirectory(_FaultInjection):
    """Directory provider returning fixed memberships per channel."""

    def __init__(self, channels: dict[str, Iterable[str | DirectoryMember]] | None = None) -> None:
        super().__init__()
        self.channels: dict[str, list[DirectoryMember]] = {}
        for channel, members in (channels or {}).items():
            self.set_members(channel, members)

    def set_members(self, channel: str, members: Iterable[str | DirectoryMember]) -> None:
        self.channels[channel] = [
            m if isinstance(m, DirectoryMember) else DirectoryMember(identity=m) for m in members
        ]

    async def fetch_members(self, channel_ref: str) -> Sequence[DirectoryMember]:
        await self._enter("fetch_members")
        return list(self.channels.get(channel_ref, []))
