"""Check-in service - submission and review.

These are the only operations that mutate check-in records. A review is a
one-way terminal state: a reviewed check-in cannot be reviewed again.
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import UUID

import structlog

from checkpulse.core.calendar import (
    checkin_due_at,
    is_submitted_on_time,
    period_for_organization,
    week_ending_label,
)
from checkpulse.core.deadlines import with_deadline
from checkpulse.core.domain_types import CheckinRecord, Organization, Period, User
from checkpulse.core.exceptions import CheckinStateError, ConfigurationError, PermissionDenied
from checkpulse.core.interfaces import CheckinStore, OrganizationStore, UserStore
from checkpulse.core.roles import can_review_checkins

logger = structlog.get_logger()


@dataclass
class SubmissionResult:
    """Result of a check-in submission."""

    record: CheckinRecord
    period: Period
    due_at: datetime
    on_time: bool

    @property
    def label(self) -> str:
        return week_ending_label(self.period)


class CheckinService:
    """Service for submitting and reviewing check-ins."""

    def __init__(
        self,
        organizations: OrganizationStore,
        checkins: CheckinStore,
        timeout_seconds: float = 10.0,
        *,
        users: UserStore | None = None,
    ):
        self.organizations = organizations
        self.checkins = checkins
        self.timeout_seconds = timeout_seconds
        self.users = users

    async def submit_for(
        self, organization_id: UUID, user_id: UUID, submitted_at: datetime | None = None
    ) -> SubmissionResult:
        """Submit on behalf of a user identified by ID.

        Raises:
            PermissionDenied: If the user is unknown or not in the organization.
        """
        user = await self._get_member(organization_id, user_id)
        return await self.submit(user, submitted_at)

    async def review_by(
        self,
        organization_id: UUID,
        checkin_id: UUID,
        reviewer_id: UUID,
        comments: str | None = None,
    ) -> CheckinRecord:
        """Review a check-in as the reviewer identified by ID.

        Raises:
            PermissionDenied: If the reviewer is unknown or not in the organization.
        """
        reviewer = await self._get_member(organization_id, reviewer_id)
        return await self.review(checkin_id, reviewer, comments)

    async def submit(self, user: User, submitted_at: datetime | None = None) -> SubmissionResult:
        """Record the user's check-in for the period containing ``submitted_at``.

        Raises:
            CheckinStateError: If the user is inactive or already submitted.
            ConfigurationError: If the user's organization is unknown.
        """
        submitted_at = submitted_at or datetime.now(UTC)
        if not user.is_active:
            raise CheckinStateError(f"User {user.id} is not active")

        organization = await self._get_organization(user.organization_id)
        period = period_for_organization(submitted_at, organization)

        existing = await with_deadline(
            self.checkins.find_by_user_and_period(user.id, period),
            self.timeout_seconds,
            "checkin_store",
        )
        if existing is not None:
            raise CheckinStateError(
                f"User {user.id} already checked in for {week_ending_label(period)}"
            )

        record = await with_deadline(
            self.checkins.create(user, period, submitted_at),
            self.timeout_seconds,
            "checkin_store",
        )
        due_at = checkin_due_at(period, organization)
        on_time = is_submitted_on_time(submitted_at, due_at)

        logger.info(
            "checkin_submitted",
            checkin_id=str(record.id),
            user_id=str(user.id),
            week_of=period.start.isoformat(),
            on_time=on_time,
        )
        return SubmissionResult(record=record, period=period, due_at=due_at, on_time=on_time)

    async def review(
        self,
        checkin_id: UUID,
        reviewer: User,
        comments: str | None = None,
        *,
        reviewed_at: datetime | None = None,
    ) -> CheckinRecord:
        """Mark a check-in as reviewed.

        Raises:
            PermissionDenied: If the reviewer's role may not review, or the
                check-in belongs to another organization.
            CheckinStateError: If the check-in is unknown or already reviewed.
        """
        if not reviewer.is_active or not can_review_checkins(reviewer.role):
            raise PermissionDenied(f"User {reviewer.id} may not review check-ins")

        record = await with_deadline(
            self.checkins.get(checkin_id), self.timeout_seconds, "checkin_store"
        )
        if record is None:
            raise CheckinStateError(f"Unknown check-in {checkin_id}")
        if record.organization_id != reviewer.organization_id:
            raise PermissionDenied(f"User {reviewer.id} may not review check-in {checkin_id}")
        if record.reviewed:
            raise CheckinStateError(f"Check-in {checkin_id} is already reviewed")

        updated = await with_deadline(
            self.checkins.mark_reviewed(
                checkin_id, reviewer.id, reviewed_at or datetime.now(UTC), comments
            ),
            self.timeout_seconds,
            "checkin_store",
        )
        logger.info("checkin_reviewed", checkin_id=str(checkin_id), reviewer_id=str(reviewer.id))
        return updated

    async def _get_organization(self, organization_id: UUID) -> Organization:
        organization = await with_deadline(
            self.organizations.get(organization_id), self.timeout_seconds, "organization_store"
        )
        if organization is None:
            raise ConfigurationError(f"Unknown organization: {organization_id}")
        return organization

    async def _get_member(self, organization_id: UUID, user_id: UUID) -> User:
        if self.users is None:
            raise ConfigurationError("CheckinService has no user store")
        user = await with_deadline(
            self.users.get_user(user_id), self.timeout_seconds, "user_store"
        )
        if user is None or user.organization_id != organization_id:
            raise PermissionDenied(f"User {user_id} is not a member of {organization_id}")
        return user
