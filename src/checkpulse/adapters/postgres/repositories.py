"""PostgreSQL stores for organizations, users, check-ins, vacations and exemptions."""

import logging
from collections.abc import Sequence
from datetime import datetime
from typing import Any
from uuid import UUID

import asyncpg

from checkpulse.adapters.postgres.app_db import AppDatabase
from checkpulse.core.domain_types import (
    CheckinExemption,
    CheckinRecord,
    Organization,
    Period,
    User,
    VacationEntry,
    Weekday,
)
from checkpulse.core.exceptions import CheckinStateError, DataIntegrityError
from checkpulse.core.roles import Role, parse_role

logger = logging.getLogger(__name__)

ORGANIZATION_COLUMNS = """
    id, name, timezone, week_start, checkin_due_day, checkin_due_time,
    reminder_day, reminder_time, directory_channel, is_active
"""
USER_COLUMNS = "id, organization_id, identity, display_name, role, is_active, created_at"
CHECKIN_COLUMNS = """
    id, user_id, organization_id, week_of, submitted_at,
    reviewed, reviewed_by, reviewed_at, review_comments
"""


class PostgresOrganizationStore:
    """Repository for organization settings."""

    def __init__(self, db: AppDatabase) -> None:
        """Initialize the repository."""
        self._db = db

    async def get(self, organization_id: UUID) -> Organization | None:
        """Get organization by ID."""
        row = await self._db.fetch_one(
            f"SELECT {ORGANIZATION_COLUMNS} FROM organizations WHERE id = $1",
            organization_id,
        )
        if not row:
            return None
        return self._row_to_organization(row)

    async def list_active(self) -> Sequence[Organization]:
        """List active organizations."""
        rows = await self._db.fetch_all(
            f"SELECT {ORGANIZATION_COLUMNS} FROM organizations WHERE is_active ORDER BY name"
        )
        return [self._row_to_organization(row) for row in rows]

    def _row_to_organization(self, row: dict[str, Any]) -> Organization:
        reminder_day = row["reminder_day"]
        return Organization(
            id=row["id"],
            name=row["name"],
            timezone=row["timezone"],
            week_start=Weekday(row["week_start"]),
            checkin_due_day=Weekday(row["checkin_due_day"]),
            checkin_due_time=row["checkin_due_time"],
            reminder_day=Weekday(reminder_day) if reminder_day is not None else None,
            reminder_time=row["reminder_time"],
            directory_channel=row["directory_channel"],
            is_active=row["is_active"],
        )


class PostgresUserStore:
    """Repository for users."""

    def __init__(self, db: AppDatabase) -> None:
        """Initialize the repository."""
        self._db = db

    async def list_active_users(self, organization_id: UUID) -> Sequence[User]:
        """List active users in an organization."""
        return await self._list(organization_id, active=True)

    async def list_inactive_users(self, organization_id: UUID) -> Sequence[User]:
        """List deactivated users in an organization."""
        return await self._list(organization_id, active=False)

    async def _list(self, organization_id: UUID, *, active: bool) -> list[User]:
        rows = await self._db.fetch_all(
            f"""
            SELECT {USER_COLUMNS} FROM users
            WHERE organization_id = $1 AND is_active = $2
            ORDER BY display_name
            """,
            organization_id,
            active,
        )
        return [self._row_to_user(row) for row in rows]

    async def create_user(
        self,
        organization_id: UUID,
        identity: str,
        *,
        display_name: str,
        role: Role = Role.MEMBER,
    ) -> User:
        """Create a new active user."""
        row = await self._db.execute_returning(
            f"""
            INSERT INTO users (organization_id, identity, display_name, role)
            VALUES ($1, $2, $3, $4)
            RETURNING {USER_COLUMNS}
            """,
            organization_id,
            identity,
            display_name,
            role.value,
        )
        if not row:
            raise RuntimeError(f"Failed to create user {identity}")
        return self._row_to_user(row)

    async def set_active(self, user_id: UUID, active: bool) -> None:
        """Activate or deactivate a user, keeping its ID."""
        result = await self._db.execute(
            "UPDATE users SET is_active = $2, updated_at = NOW() WHERE id = $1",
            user_id,
            active,
        )
        if result != "UPDATE 1":
            raise KeyError(f"Unknown user {user_id}")
        logger.debug(f"Set user {user_id} active={active}")

    async def set_display_name(self, user_id: UUID, display_name: str) -> None:
        """Update a user's display name."""
        result = await self._db.execute(
            "UPDATE users SET display_name = $2, updated_at = NOW() WHERE id = $1",
            user_id,
            display_name,
        )
        if result != "UPDATE 1":
            raise KeyError(f"Unknown user {user_id}")

    async def get_user(self, user_id: UUID) -> User | None:
        """Get user by ID."""
        row = await self._db.fetch_one(f"SELECT {USER_COLUMNS} FROM users WHERE id = $1", user_id)
        if not row:
            return None
        return self._row_to_user(row)

    def _row_to_user(self, row: dict[str, Any]) -> User:
        return User(
            id=row["id"],
            organization_id=row["organization_id"],
            identity=row["identity"],
            display_name=row["display_name"],
            role=parse_role(row["role"]),
            is_active=row["is_active"],
            created_at=row["created_at"],
        )


class PostgresCheckinStore:
    """Repository for check-in records.

    Records are keyed by the period's start instant (``week_of``); the table
    carries a unique constraint on (user_id, week_of).
    """

    def __init__(self, db: AppDatabase) -> None:
        """Initialize the repository."""
        self._db = db

    async def find_by_user_and_period(
        self, user_id: UUID, period: Period
    ) -> CheckinRecord | None:
        """Get the user's check-in for a period."""
        rows = await self._db.fetch_all(
            f"SELECT {CHECKIN_COLUMNS} FROM checkins WHERE user_id = $1 AND week_of = $2",
            user_id,
            period.start,
        )
        if len(rows) > 1:
            raise DataIntegrityError(
                f"{len(rows)} check-ins for user {user_id} in period {period.start.isoformat()}"
            )
        return self._row_to_checkin(rows[0]) if rows else None

    async def list_by_org_and_period(
        self, organization_id: UUID, period: Period
    ) -> Sequence[CheckinRecord]:
        """List every check-in submitted for a period."""
        rows = await self._db.fetch_all(
            f"""
            SELECT {CHECKIN_COLUMNS} FROM checkins
            WHERE organization_id = $1 AND week_of = $2
            ORDER BY submitted_at
            """,
            organization_id,
            period.start,
        )
        return [self._row_to_checkin(row) for row in rows]

    async def get(self, checkin_id: UUID) -> CheckinRecord | None:
        """Get check-in by ID."""
        row = await self._db.fetch_one(
            f"SELECT {CHECKIN_COLUMNS} FROM checkins WHERE id = $1",
            checkin_id,
        )
        if not row:
            return None
        return self._row_to_checkin(row)

    async def create(self, user: User, period: Period, submitted_at: datetime) -> CheckinRecord:
        """Record a submission for the period."""
        try:
            row = await self._db.execute_returning(
                f"""
                INSERT INTO checkins (user_id, organization_id, week_of, submitted_at)
                VALUES ($1, $2, $3, $4)
                RETURNING {CHECKIN_COLUMNS}
                """,
                user.id,
                user.organization_id,
                period.start,
                submitted_at,
            )
        except asyncpg.UniqueViolationError as e:
            raise CheckinStateError(
                f"User {user.id} already checked in for period {period.start.isoformat()}"
            ) from e
        if not row:
            raise RuntimeError(f"Failed to create check-in for user {user.id}")
        return self._row_to_checkin(row)

    async def mark_reviewed(
        self,
        checkin_id: UUID,
        reviewer_id: UUID,
        reviewed_at: datetime,
        comments: str | None = None,
    ) -> CheckinRecord:
        """Mark an unreviewed check-in as reviewed."""
        row = await self._db.execute_returning(
            f"""
            UPDATE checkins
            SET reviewed = true, reviewed_by = $2, reviewed_at = $3, review_comments = $4
            WHERE id = $1 AND NOT reviewed
            RETURNING {CHECKIN_COLUMNS}
            """,
            checkin_id,
            reviewer_id,
            reviewed_at,
            comments,
        )
        if not row:
            raise CheckinStateError(f"Check-in {checkin_id} is unknown or already reviewed")
        return self._row_to_checkin(row)

    def _row_to_checkin(self, row: dict[str, Any]) -> CheckinRecord:
        return CheckinRecord(
            id=row["id"],
            user_id=row["user_id"],
            organization_id=row["organization_id"],
            week_of=row["week_of"],
            submitted_at=row["submitted_at"],
            reviewed=row["reviewed"],
            reviewed_by=row.get("reviewed_by"),
            reviewed_at=row.get("reviewed_at"),
            review_comments=row.get("review_comments"),
        )


class PostgresVacationStore:
    """Repository for vacation entries."""

    def __init__(self, db: AppDatabase) -> None:
        """Initialize the repository."""
        self._db = db

    async def list_overlapping(self, user_id: UUID, period: Period) -> Sequence[VacationEntry]:
        """List the user's vacation entries touching any day of the period."""
        rows = await self._db.fetch_all(
            """
            SELECT id, user_id, starts_on, ends_on, note FROM vacations
            WHERE user_id = $1 AND starts_on <= $3 AND ends_on >= $2
            ORDER BY starts_on
            """,
            user_id,
            period.first_day,
            period.last_day,
        )
        return [
            VacationEntry(
                id=row["id"],
                user_id=row["user_id"],
                starts_on=row["starts_on"],
                ends_on=row["ends_on"],
                note=row.get("note"),
            )
            for row in rows
        ]


class PostgresExemptionStore:
    """Repository for per-week check-in exemptions."""

    def __init__(self, db: AppDatabase) -> None:
        """Initialize the repository."""
        self._db = db

    async def list_by_org_and_period(
        self, organization_id: UUID, period: Period
    ) -> Sequence[CheckinExemption]:
        """List exemptions whose week falls inside the period."""
        rows = await self._db.fetch_all(
            """
            SELECT id, user_id, organization_id, week_of, reason FROM checkin_exemptions
            WHERE organization_id = $1 AND week_of BETWEEN $2 AND $3
            ORDER BY week_of
            """,
            organization_id,
            period.first_day,
            period.last_day,
        )
        return [
            CheckinExemption(
                id=row["id"],
                user_id=row["user_id"],
                organization_id=row["organization_id"],
                week_of=row["week_of"],
                reason=row.get("reason"),
            )
            for row in rows
        ]
