"""Check-in Classifier - per-period compliance buckets.

For an organization and a period, every active user lands in exactly one
of the buckets pending, reviewed, missing, on_vacation, exempt and
indeterminate. While the period is still running, users with nothing to
show are listed in ``not_yet_due`` instead.

Named rules:
- No proration within a period: a user created mid-period is classified
  for that period unless on vacation or exempted for that week.
- Membership starts at the hire period: users created after a period
  ended are not subjects of that period.
- Status is always derived fresh from the stores, never cached, so a late
  submission moves a user out of ``missing`` on the next classification.
"""

from __future__ import annotations

import asyncio
from collections import defaultdict
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import UUID

import structlog

from .calendar import (
    checkin_due_at,
    has_elapsed,
    is_submitted_on_time,
    period_for_organization,
    period_offset_by,
    periods_between,
    review_due_at,
)
from .deadlines import with_deadline
from .domain_types import (
    CheckinRecord,
    CheckinRef,
    Classification,
    ComplianceMetrics,
    IndeterminateRef,
    OnTimeCounts,
    Organization,
    Period,
    User,
    UserRef,
)
from .exceptions import (
    ConfigurationError,
    DataIntegrityError,
    OperationCancelled,
    ProviderUnavailable,
)
from .interfaces import CheckinStore, ExemptionStore, OrganizationStore, UserStore
from .vacation import VacationLedger

logger = structlog.get_logger()

REASON_DATA_INTEGRITY = "data_integrity"
REASON_VACATION_LOOKUP_FAILED = "vacation_lookup_failed"
REASON_EXEMPTION_LOOKUP_FAILED = "exemption_lookup_failed"


@dataclass(frozen=True)
class ClassifierConfig:
    """Configuration for classification passes.

    Attributes:
        store_timeout_seconds: Default timeout for each store call.
        outstanding_lookback_weeks: How many periods back
            ``classify_all_outstanding`` may reach.
    """

    store_timeout_seconds: float = 10.0
    outstanding_lookback_weeks: int = 52


class CheckinClassifier:
    """Partitions an organization's active users for a period.

    Each pass reads a consistent snapshot: the active-user list and the
    period's records are loaded once, then classified without re-reads,
    so a reconciliation running concurrently cannot produce a torn view.
    """

    def __init__(
        self,
        organizations: OrganizationStore,
        users: UserStore,
        checkins: CheckinStore,
        vacations: VacationLedger,
        config: ClassifierConfig | None = None,
        *,
        exemptions: ExemptionStore | None = None,
    ) -> None:
        """Initialize the classifier.

        Args:
            organizations: Organization store.
            users: User store.
            checkins: Check-in store.
            vacations: Vacation lookup.
            config: Timeouts and lookback. Uses defaults if not provided.
            exemptions: Per-week check-in exemptions. None means no user is
                ever exempt.
        """
        self._organizations = organizations
        self._users = users
        self._checkins = checkins
        self._vacations = vacations
        self._exemptions = exemptions
        self.config = config or ClassifierConfig()

    async def get_organization(
        self, organization_id: UUID, *, timeout: float | None = None
    ) -> Organization:
        """Load an organization.

        Raises:
            ConfigurationError: If the organization does not exist.
        """
        organization = await with_deadline(
            self._organizations.get(organization_id),
            self._timeout(timeout),
            "organization_store",
        )
        if organization is None:
            raise ConfigurationError(f"Unknown organization: {organization_id}")
        return organization

    async def classify(
        self,
        organization_id: UUID,
        period: Period | None = None,
        *,
        now: datetime | None = None,
        timeout: float | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> Classification:
        """Classify every active user for one period.

        Args:
            organization_id: Organization to classify.
            period: Target period. Defaults to the period containing ``now``.
            now: Reference instant. Defaults to the current time.
            timeout: Per-call store timeout override.
            cancel_event: When set, the pass stops with OperationCancelled.

        Returns:
            The classification for the period.

        Raises:
            ConfigurationError: If the organization does not exist.
            ProviderUnavailable: If the user or check-in snapshot cannot be read.
            OperationCancelled: If ``cancel_event`` is set mid-pass.
        """
        now = now or datetime.now(UTC)
        organization = await self.get_organization(organization_id, timeout=timeout)
        period = period or period_for_organization(now, organization)

        users = await self._load_active_users(organization_id, timeout)
        return await self._classify_period(
            organization, period, users, now=now, timeout=timeout, cancel_event=cancel_event
        )

    async def classify_all_outstanding(
        self,
        organization_id: UUID,
        *,
        now: datetime | None = None,
        timeout: float | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> list[Classification]:
        """Classify every completed period since the earliest hire period.

        Each period only classifies users hired at or before it. The range
        ends at the most recently completed period and reaches back at most
        ``outstanding_lookback_weeks`` periods.

        Returns:
            One classification per period, oldest first.
        """
        now = now or datetime.now(UTC)
        organization = await self.get_organization(organization_id, timeout=timeout)
        users = await self._load_active_users(organization_id, timeout)
        if not users:
            return []

        current = period_for_organization(now, organization)
        last = period_offset_by(current, -1)
        floor = period_offset_by(current, -self.config.outstanding_lookback_weeks)
        earliest = min(
            (period_for_organization(user.created_at, organization) for user in users),
            key=lambda p: p.start,
        )
        first = earliest if earliest.start > floor.start else floor
        if first.start > last.start:
            return []

        results = []
        for period in periods_between(first, last):
            results.append(
                await self._classify_period(
                    organization,
                    period,
                    users,
                    now=now,
                    timeout=timeout,
                    cancel_event=cancel_event,
                )
            )
        return results

    async def list_past_due(
        self,
        organization_id: UUID,
        *,
        now: datetime | None = None,
        timeout: float | None = None,
    ) -> list[UserRef]:
        """Users who have not submitted for the current period after its due instant.

        Users on vacation or with an indeterminate status are never past due.

        Returns:
            Past-due users sorted by display name; empty before the due instant.
        """
        now = now or datetime.now(UTC)
        organization = await self.get_organization(organization_id, timeout=timeout)
        period = period_for_organization(now, organization)
        if now <= checkin_due_at(period, organization):
            return []

        users = await self._load_active_users(organization_id, timeout)
        classification = await self._classify_period(
            organization, period, users, now=now, timeout=timeout
        )
        past_due = classification.not_yet_due + classification.missing
        return sorted(past_due, key=lambda ref: ref.display_name.lower())

    async def compliance_metrics(
        self,
        organization_id: UUID,
        period: Period | None = None,
        *,
        now: datetime | None = None,
        timeout: float | None = None,
    ) -> ComplianceMetrics:
        """Count on-time submissions and reviews for one period.

        Every check-in recorded for the period counts toward the submission
        total; it is on time when submitted by the check-in due instant.
        Only reviewed check-ins count toward the review total; a review is
        on time when made by the review due instant.

        Args:
            organization_id: Organization to measure.
            period: Target period. Defaults to the period containing ``now``.
            now: Reference instant. Defaults to the current time.
            timeout: Per-call store timeout override.

        Raises:
            ConfigurationError: If the organization does not exist.
            ProviderUnavailable: If the check-in store cannot be read.
        """
        now = now or datetime.now(UTC)
        organization = await self.get_organization(organization_id, timeout=timeout)
        period = period or period_for_organization(now, organization)

        records = await with_deadline(
            self._checkins.list_by_org_and_period(organization_id, period),
            self._timeout(timeout),
            "checkin_store",
        )
        submit_due = checkin_due_at(period, organization)
        review_due = review_due_at(period, organization)
        reviewed = [record for record in records if record.reviewed]

        metrics = ComplianceMetrics(
            organization_id=organization_id,
            period=period,
            checkins=OnTimeCounts(
                total=len(records),
                on_time=sum(is_submitted_on_time(r.submitted_at, submit_due) for r in records),
            ),
            reviews=OnTimeCounts(
                total=len(reviewed),
                on_time=sum(is_submitted_on_time(r.reviewed_at, review_due) for r in reviewed),
            ),
        )
        logger.info(
            "compliance_metrics_computed",
            organization_id=str(organization_id),
            period_start=period.start.isoformat(),
            checkins=metrics.checkins.total,
            reviews=metrics.reviews.total,
        )
        return metrics

    async def _load_active_users(
        self, organization_id: UUID, timeout: float | None
    ) -> Sequence[User]:
        users = await with_deadline(
            self._users.list_active_users(organization_id),
            self._timeout(timeout),
            "user_store",
        )
        return [user for user in users if user.is_active]

    async def _classify_period(
        self,
        organization: Organization,
        period: Period,
        users: Sequence[User],
        *,
        now: datetime,
        timeout: float | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> Classification:
        records = await with_deadline(
            self._checkins.list_by_org_and_period(organization.id, period),
            self._timeout(timeout),
            "checkin_store",
        )
        records_by_user: dict[UUID, list[CheckinRecord]] = defaultdict(list)
        for record in records:
            records_by_user[record.user_id].append(record)
        exempt_user_ids = await self._load_exempt_user_ids(organization.id, period, timeout)

        result = Classification(organization_id=organization.id, period=period)
        elapsed = has_elapsed(period, now)

        for user in users:
            if cancel_event is not None and cancel_event.is_set():
                logger.info(
                    "classification_cancelled",
                    organization_id=str(organization.id),
                    period_start=period.start.isoformat(),
                )
                raise OperationCancelled("Classification cancelled")

            if user.created_at >= period.end:
                continue

            user_records = records_by_user.get(user.id, [])
            if len(user_records) > 1:
                error = DataIntegrityError(
                    f"{len(user_records)} check-ins for user {user.id} "
                    f"in period starting {period.start.isoformat()}"
                )
                logger.error(
                    "checkin_uniqueness_violated",
                    organization_id=str(organization.id),
                    user_id=str(user.id),
                    checkin_ids=[str(r.id) for r in user_records],
                    error=str(error),
                )
                result.indeterminate.append(_indeterminate(user, REASON_DATA_INTEGRITY))
                continue

            if user_records:
                record = user_records[0]
                ref = CheckinRef(
                    id=record.id,
                    user_id=user.id,
                    display_name=user.display_name,
                    submitted_at=record.submitted_at,
                    reviewed_at=record.reviewed_at,
                )
                if record.reviewed:
                    result.reviewed.append(ref)
                else:
                    result.pending.append(ref)
                continue

            if exempt_user_ids is None:
                result.indeterminate.append(_indeterminate(user, REASON_EXEMPTION_LOOKUP_FAILED))
                continue
            if user.id in exempt_user_ids:
                result.exempt.append(UserRef.of(user))
                continue

            try:
                on_vacation = await self._vacations.is_on_vacation(
                    user.id, period, timeout=timeout
                )
            except ProviderUnavailable:
                result.indeterminate.append(_indeterminate(user, REASON_VACATION_LOOKUP_FAILED))
                continue

            if on_vacation:
                result.on_vacation.append(UserRef.of(user))
            elif not elapsed:
                result.not_yet_due.append(UserRef.of(user))
            else:
                result.missing.append(UserRef.of(user))

        result.sort()
        logger.info(
            "checkins_classified",
            organization_id=str(organization.id),
            period_start=period.start.isoformat(),
            pending=len(result.pending),
            reviewed=len(result.reviewed),
            missing=len(result.missing),
            on_vacation=len(result.on_vacation),
            exempt=len(result.exempt),
            indeterminate=len(result.indeterminate),
        )
        return result

    async def _load_exempt_user_ids(
        self, organization_id: UUID, period: Period, timeout: float | None
    ) -> set[UUID] | None:
        """Users exempted for the period, or None when the lookup failed."""
        if self._exemptions is None:
            return set()
        try:
            exemptions = await with_deadline(
                self._exemptions.list_by_org_and_period(organization_id, period),
                self._timeout(timeout),
                "exemption_store",
            )
        except ProviderUnavailable as e:
            logger.warning(
                "exemption_lookup_failed",
                organization_id=str(organization_id),
                period_start=period.start.isoformat(),
                error=str(e),
            )
            return None
        return {exemption.user_id for exemption in exemptions}

    def _timeout(self, override: float | None) -> float | None:
        return override if override is not None else self.config.store_timeout_seconds


def _indeterminate(user: User, reason: str) -> IndeterminateRef:
    return IndeterminateRef(id=user.id, display_name=user.display_name, reason=reason)
