"""Tests for the check-in classifier."""

import asyncio
from datetime import date, datetime, timedelta
from uuid import UUID, uuid4
from zoneinfo import ZoneInfo

import pytest
from checkpulse.adapters.memory import (
    InMemoryCheckinStore,
    InMemoryExemptionStore,
    InMemoryOrganizationStore,
    InMemoryUserStore,
    InMemoryVacationStore,
)
from checkpulse.core.classifier import (
    REASON_DATA_INTEGRITY,
    REASON_EXEMPTION_LOOKUP_FAILED,
    REASON_VACATION_LOOKUP_FAILED,
    CheckinClassifier,
)
from checkpulse.core.domain_types import Classification, Period
from checkpulse.core.exceptions import (
    ConfigurationError,
    OperationCancelled,
    ProviderUnavailable,
)
from checkpulse.core.roles import Role
from checkpulse.core.vacation import VacationLedger
from structlog.testing import capture_logs

CHICAGO = ZoneInfo("America/Chicago")


def chicago(year: int, month: int, day: int, hour: int = 0, minute: int = 0) -> datetime:
    return datetime(year, month, day, hour, minute, tzinfo=CHICAGO)


# Saturday Nov 8 through Friday Nov 14, 2025
PERIOD = Period(start=chicago(2025, 11, 8), end=chicago(2025, 11, 15))
# Monday after PERIOD has elapsed
AFTER = chicago(2025, 11, 17, 10)
# Wednesday inside PERIOD
DURING = chicago(2025, 11, 12, 10)


def bucket_ids(classification: Classification) -> dict[str, set[UUID]]:
    return {
        "pending": {ref.user_id for ref in classification.pending},
        "reviewed": {ref.user_id for ref in classification.reviewed},
        "missing": {ref.id for ref in classification.missing},
        "on_vacation": {ref.id for ref in classification.on_vacation},
        "exempt": {ref.id for ref in classification.exempt},
        "indeterminate": {ref.id for ref in classification.indeterminate},
    }


class TestClassify:
    """Tests for classify on an elapsed period."""

    async def test_nobody_submitted(
        self, classifier: CheckinClassifier, users: InMemoryUserStore, org_id: UUID
    ) -> None:
        """Five active users, no submissions, no vacation: all five are missing."""
        for name in ["erin", "alice", "dave", "carol", "bob"]:
            users.add(org_id, f"{name}@example.com")

        result = await classifier.classify(org_id, PERIOD, now=AFTER)

        assert [ref.display_name for ref in result.missing] == [
            "alice",
            "bob",
            "carol",
            "dave",
            "erin",
        ]
        assert result.pending == []
        assert result.reviewed == []
        assert result.on_vacation == []
        assert result.indeterminate == []

    async def test_partition_is_disjoint_and_complete(
        self,
        classifier: CheckinClassifier,
        users: InMemoryUserStore,
        checkins: InMemoryCheckinStore,
        vacations: InMemoryVacationStore,
        exemptions: InMemoryExemptionStore,
        org_id: UUID,
    ) -> None:
        """Every active user lands in exactly one bucket."""
        reviewed = users.add(org_id, "reviewed@example.com")
        pending = users.add(org_id, "pending@example.com")
        away = users.add(org_id, "away@example.com")
        absent = users.add(org_id, "absent@example.com")
        duplicated = users.add(org_id, "duplicated@example.com")
        excused = users.add(org_id, "excused@example.com")
        checkins.add(reviewed, PERIOD, reviewed=True, reviewed_by=uuid4())
        checkins.add(pending, PERIOD)
        vacations.add(away.id, date(2025, 11, 10))
        checkins.add(duplicated, PERIOD)
        checkins.add(duplicated, PERIOD, allow_duplicate=True)
        exemptions.add(excused, date(2025, 11, 11))

        result = await classifier.classify(org_id, PERIOD, now=AFTER)

        buckets = bucket_ids(result)
        assert buckets == {
            "pending": {pending.id},
            "reviewed": {reviewed.id},
            "missing": {absent.id},
            "on_vacation": {away.id},
            "exempt": {excused.id},
            "indeterminate": {duplicated.id},
        }
        all_ids = [uid for ids in buckets.values() for uid in ids]
        assert len(all_ids) == len(set(all_ids))
        assert result.classified_user_ids() == {u.id for u in users.users.values()}

    async def test_vacation_suppresses_missing(
        self,
        classifier: CheckinClassifier,
        users: InMemoryUserStore,
        vacations: InMemoryVacationStore,
        org_id: UUID,
    ) -> None:
        """A single vacation day in the period keeps the user out of missing."""
        user = users.add(org_id, "away@example.com")
        vacations.add(user.id, date(2025, 11, 14))

        result = await classifier.classify(org_id, PERIOD, now=AFTER)

        assert [ref.id for ref in result.on_vacation] == [user.id]
        assert result.missing == []

    async def test_submission_wins_over_vacation(
        self,
        classifier: CheckinClassifier,
        users: InMemoryUserStore,
        checkins: InMemoryCheckinStore,
        vacations: InMemoryVacationStore,
        org_id: UUID,
    ) -> None:
        """A user who submitted while on vacation is classified by the submission."""
        user = users.add(org_id, "keen@example.com")
        vacations.add(user.id, date(2025, 11, 10))
        checkins.add(user, PERIOD)

        result = await classifier.classify(org_id, PERIOD, now=AFTER)

        assert [ref.user_id for ref in result.pending] == [user.id]
        assert result.on_vacation == []

    async def test_inactive_users_ignored(
        self, classifier: CheckinClassifier, users: InMemoryUserStore, org_id: UUID
    ) -> None:
        users.add(org_id, "gone@example.com", is_active=False)

        result = await classifier.classify(org_id, PERIOD, now=AFTER)

        assert result.classified_user_ids() == set()

    async def test_other_organizations_ignored(
        self, classifier: CheckinClassifier, users: InMemoryUserStore, org_id: UUID
    ) -> None:
        users.add(uuid4(), "elsewhere@example.com")
        mine = users.add(org_id, "mine@example.com")

        result = await classifier.classify(org_id, PERIOD, now=AFTER)

        assert result.classified_user_ids() == {mine.id}

    async def test_every_role_is_classified(
        self, classifier: CheckinClassifier, users: InMemoryUserStore, org_id: UUID
    ) -> None:
        admin = users.add(org_id, "admin@example.com", role=Role.ADMIN)
        manager = users.add(org_id, "manager@example.com", role=Role.MANAGER)

        result = await classifier.classify(org_id, PERIOD, now=AFTER)

        assert {ref.id for ref in result.missing} == {admin.id, manager.id}

    async def test_unknown_organization(self, classifier: CheckinClassifier) -> None:
        with pytest.raises(ConfigurationError, match="Unknown organization"):
            await classifier.classify(uuid4(), PERIOD, now=AFTER)

    async def test_default_period_contains_now(
        self, classifier: CheckinClassifier, org_id: UUID
    ) -> None:
        result = await classifier.classify(org_id, now=DURING)

        assert result.period == PERIOD


class TestMembershipStart:
    """Users are subjects from their hire period on."""

    async def test_hired_after_period(
        self, classifier: CheckinClassifier, users: InMemoryUserStore, org_id: UUID
    ) -> None:
        """A user created after the period ended is not classified for it."""
        users.add(org_id, "new@example.com", created_at=chicago(2025, 11, 20))

        result = await classifier.classify(org_id, PERIOD, now=AFTER)

        assert result.classified_user_ids() == set()

    async def test_hired_mid_period_not_prorated(
        self, classifier: CheckinClassifier, users: InMemoryUserStore, org_id: UUID
    ) -> None:
        """A user created mid-period owes a check-in for that period."""
        user = users.add(org_id, "midweek@example.com", created_at=chicago(2025, 11, 12))

        result = await classifier.classify(org_id, PERIOD, now=AFTER)

        assert [ref.id for ref in result.missing] == [user.id]


class TestCurrentPeriod:
    """Classification of a period that has not elapsed."""

    async def test_no_submission_is_not_yet_due(
        self, classifier: CheckinClassifier, users: InMemoryUserStore, org_id: UUID
    ) -> None:
        """Users without a record are in no bucket until the period elapses."""
        user = users.add(org_id, "later@example.com")

        result = await classifier.classify(org_id, PERIOD, now=DURING)

        assert result.missing == []
        assert [ref.id for ref in result.not_yet_due] == [user.id]
        assert "not_yet_due" not in result.to_dict()

    async def test_submission_during_period_is_pending(
        self,
        classifier: CheckinClassifier,
        users: InMemoryUserStore,
        checkins: InMemoryCheckinStore,
        org_id: UUID,
    ) -> None:
        user = users.add(org_id, "early@example.com")
        checkins.add(user, PERIOD, submitted_at=DURING)

        result = await classifier.classify(org_id, PERIOD, now=DURING)

        assert [ref.user_id for ref in result.pending] == [user.id]


class TestStatusIsDerivedFresh:
    """Nothing is cached between classifications."""

    async def test_late_submission_leaves_missing(
        self,
        classifier: CheckinClassifier,
        users: InMemoryUserStore,
        checkins: InMemoryCheckinStore,
        org_id: UUID,
    ) -> None:
        user = users.add(org_id, "late@example.com")
        before = await classifier.classify(org_id, PERIOD, now=AFTER)
        assert [ref.id for ref in before.missing] == [user.id]

        checkins.add(user, PERIOD, submitted_at=AFTER)
        after = await classifier.classify(org_id, PERIOD, now=AFTER + timedelta(hours=1))

        assert after.missing == []
        assert [ref.user_id for ref in after.pending] == [user.id]


class TestIndeterminate:
    """Users whose status cannot be determined."""

    async def test_vacation_lookup_failure(
        self,
        classifier: CheckinClassifier,
        users: InMemoryUserStore,
        vacations: InMemoryVacationStore,
        org_id: UUID,
    ) -> None:
        """A failing vacation store marks users indeterminate, never missing."""
        user = users.add(org_id, "unknown@example.com")
        vacations.fail_on["list_overlapping"] = ProviderUnavailable("down", "vacation_store")

        result = await classifier.classify(org_id, PERIOD, now=AFTER)

        assert result.missing == []
        assert [(ref.id, ref.reason) for ref in result.indeterminate] == [
            (user.id, REASON_VACATION_LOOKUP_FAILED)
        ]

    async def test_vacation_lookup_timeout(
        self,
        classifier: CheckinClassifier,
        users: InMemoryUserStore,
        vacations: InMemoryVacationStore,
        org_id: UUID,
    ) -> None:
        user = users.add(org_id, "slow@example.com")
        vacations.delay_seconds = 1.0

        result = await classifier.classify(org_id, PERIOD, now=AFTER)

        assert [ref.id for ref in result.indeterminate] == [user.id]

    async def test_duplicate_checkins_logged(
        self,
        classifier: CheckinClassifier,
        users: InMemoryUserStore,
        checkins: InMemoryCheckinStore,
        org_id: UUID,
    ) -> None:
        """Duplicate records are surfaced as indeterminate and logged at error."""
        user = users.add(org_id, "twice@example.com")
        checkins.add(user, PERIOD)
        checkins.add(user, PERIOD, allow_duplicate=True)

        with capture_logs() as logs:
            result = await classifier.classify(org_id, PERIOD, now=AFTER)

        assert [(ref.id, ref.reason) for ref in result.indeterminate] == [
            (user.id, REASON_DATA_INTEGRITY)
        ]
        violations = [e for e in logs if e["event"] == "checkin_uniqueness_violated"]
        assert len(violations) == 1
        assert violations[0]["log_level"] == "error"

    async def test_user_store_failure_propagates(
        self, classifier: CheckinClassifier, users: InMemoryUserStore, org_id: UUID
    ) -> None:
        """Without a user snapshot there is nothing to classify."""
        users.fail_on["list_active_users"] = ProviderUnavailable("down", "user_store")

        with pytest.raises(ProviderUnavailable):
            await classifier.classify(org_id, PERIOD, now=AFTER)


class TestExemptions:
    """Per-week check-in exemptions."""

    async def test_exempt_user_is_not_missing(
        self,
        classifier: CheckinClassifier,
        users: InMemoryUserStore,
        exemptions: InMemoryExemptionStore,
        org_id: UUID,
    ) -> None:
        """An exemption dated anywhere in the week excuses the user."""
        user = users.add(org_id, "excused@example.com")
        exemptions.add(user, date(2025, 11, 14), reason="conference")

        result = await classifier.classify(org_id, PERIOD, now=AFTER)

        assert [ref.id for ref in result.exempt] == [user.id]
        assert result.missing == []

    async def test_exemption_for_other_week_ignored(
        self,
        classifier: CheckinClassifier,
        users: InMemoryUserStore,
        exemptions: InMemoryExemptionStore,
        org_id: UUID,
    ) -> None:
        user = users.add(org_id, "nextweek@example.com")
        exemptions.add(user, date(2025, 11, 15))

        result = await classifier.classify(org_id, PERIOD, now=AFTER)

        assert [ref.id for ref in result.missing] == [user.id]
        assert result.exempt == []

    async def test_submission_wins_over_exemption(
        self,
        classifier: CheckinClassifier,
        users: InMemoryUserStore,
        checkins: InMemoryCheckinStore,
        exemptions: InMemoryExemptionStore,
        org_id: UUID,
    ) -> None:
        user = users.add(org_id, "keen@example.com")
        exemptions.add(user, date(2025, 11, 10))
        checkins.add(user, PERIOD)

        result = await classifier.classify(org_id, PERIOD, now=AFTER)

        assert [ref.user_id for ref in result.pending] == [user.id]
        assert result.exempt == []

    async def test_exemption_checked_before_vacation(
        self,
        classifier: CheckinClassifier,
        users: InMemoryUserStore,
        vacations: InMemoryVacationStore,
        exemptions: InMemoryExemptionStore,
        org_id: UUID,
    ) -> None:
        """An exempt user is never looked up in the vacation store."""
        user = users.add(org_id, "both@example.com")
        exemptions.add(user, date(2025, 11, 10))
        vacations.add(user.id, date(2025, 11, 10))

        result = await classifier.classify(org_id, PERIOD, now=AFTER)

        assert [ref.id for ref in result.exempt] == [user.id]
        assert result.on_vacation == []
        assert vacations.calls == []

    async def test_exempt_during_current_period(
        self,
        classifier: CheckinClassifier,
        users: InMemoryUserStore,
        exemptions: InMemoryExemptionStore,
        org_id: UUID,
    ) -> None:
        user = users.add(org_id, "early@example.com")
        exemptions.add(user, date(2025, 11, 12))

        result = await classifier.classify(org_id, PERIOD, now=DURING)

        assert [ref.id for ref in result.exempt] == [user.id]
        assert result.not_yet_due == []

    async def test_exemption_lookup_failure(
        self,
        classifier: CheckinClassifier,
        users: InMemoryUserStore,
        checkins: InMemoryCheckinStore,
        exemptions: InMemoryExemptionStore,
        org_id: UUID,
    ) -> None:
        """Without the exemption list, users without a record are indeterminate."""
        submitted = users.add(org_id, "submitted@example.com")
        unknown = users.add(org_id, "unknown@example.com")
        checkins.add(submitted, PERIOD)
        exemptions.fail_on["list_by_org_and_period"] = ProviderUnavailable(
            "down", "exemption_store"
        )

        with capture_logs() as logs:
            result = await classifier.classify(org_id, PERIOD, now=AFTER)

        assert [ref.user_id for ref in result.pending] == [submitted.id]
        assert [(ref.id, ref.reason) for ref in result.indeterminate] == [
            (unknown.id, REASON_EXEMPTION_LOOKUP_FAILED)
        ]
        assert result.missing == []
        assert any(e["event"] == "exemption_lookup_failed" for e in logs)

    async def test_without_exemption_store(
        self,
        organizations: InMemoryOrganizationStore,
        users: InMemoryUserStore,
        checkins: InMemoryCheckinStore,
        vacations: InMemoryVacationStore,
        org_id: UUID,
    ) -> None:
        user = users.add(org_id, "plain@example.com")
        classifier = CheckinClassifier(organizations, users, checkins, VacationLedger(vacations))

        result = await classifier.classify(org_id, PERIOD, now=AFTER)

        assert [ref.id for ref in result.missing] == [user.id]


class TestCancellation:
    """Tests for cancel_event."""

    async def test_cancelled_pass_raises(
        self, classifier: CheckinClassifier, users: InMemoryUserStore, org_id: UUID
    ) -> None:
        users.add(org_id, "someone@example.com")
        cancel = asyncio.Event()
        cancel.set()

        with pytest.raises(OperationCancelled):
            await classifier.classify(org_id, PERIOD, now=AFTER, cancel_event=cancel)


class TestClassifyAllOutstanding:
    """Tests for classify_all_outstanding."""

    async def test_from_hire_period_through_last_completed(
        self, classifier: CheckinClassifier, users: InMemoryUserStore, org_id: UUID
    ) -> None:
        """Periods run from the earliest hire period to the last completed one."""
        users.add(org_id, "recent@example.com", created_at=chicago(2025, 10, 29))

        results = await classifier.classify_all_outstanding(org_id, now=AFTER)

        assert [r.period.first_day for r in results] == [
            date(2025, 10, 25),
            date(2025, 11, 1),
            date(2025, 11, 8),
        ]
        assert all(len(r.missing) == 1 for r in results)

    async def test_later_hires_only_in_their_periods(
        self, classifier: CheckinClassifier, users: InMemoryUserStore, org_id: UUID
    ) -> None:
        early = users.add(org_id, "early@example.com", created_at=chicago(2025, 10, 29))
        late = users.add(org_id, "late@example.com", created_at=chicago(2025, 11, 10))

        results = await classifier.classify_all_outstanding(org_id, now=AFTER)

        assert [r.classified_user_ids() for r in results] == [
            {early.id},
            {early.id},
            {early.id, late.id},
        ]

    async def test_capped_by_lookback(
        self, classifier: CheckinClassifier, users: InMemoryUserStore, org_id: UUID
    ) -> None:
        """Long-standing users are classified at most lookback periods back."""
        users.add(org_id, "veteran@example.com")

        results = await classifier.classify_all_outstanding(org_id, now=AFTER)

        assert len(results) == classifier.config.outstanding_lookback_weeks
        assert results[-1].period == PERIOD

    async def test_no_completed_periods(
        self, classifier: CheckinClassifier, users: InMemoryUserStore, org_id: UUID
    ) -> None:
        users.add(org_id, "brand-new@example.com", created_at=chicago(2025, 11, 16))

        assert await classifier.classify_all_outstanding(org_id, now=AFTER) == []

    async def test_no_users(self, classifier: CheckinClassifier, org_id: UUID) -> None:
        assert await classifier.classify_all_outstanding(org_id, now=AFTER) == []


class TestListPastDue:
    """Tests for list_past_due."""

    async def test_empty_before_due(
        self, classifier: CheckinClassifier, users: InMemoryUserStore, org_id: UUID
    ) -> None:
        users.add(org_id, "someone@example.com")

        assert await classifier.list_past_due(org_id, now=chicago(2025, 11, 14, 16)) == []

    async def test_after_due(
        self,
        classifier: CheckinClassifier,
        users: InMemoryUserStore,
        checkins: InMemoryCheckinStore,
        vacations: InMemoryVacationStore,
        org_id: UUID,
    ) -> None:
        """After the due instant, users without a submission or vacation are past due."""
        submitted = users.add(org_id, "submitted@example.com")
        away = users.add(org_id, "away@example.com")
        users.add(org_id, "zed@example.com")
        users.add(org_id, "bea@example.com")
        checkins.add(submitted, PERIOD)
        vacations.add(away.id, date(2025, 11, 14))

        past_due = await classifier.list_past_due(org_id, now=chicago(2025, 11, 14, 18))

        assert [ref.display_name for ref in past_due] == ["bea", "zed"]


class TestComplianceMetrics:
    """Tests for compliance_metrics."""

    async def test_counts_on_time_submissions_and_reviews(
        self,
        classifier: CheckinClassifier,
        users: InMemoryUserStore,
        checkins: InMemoryCheckinStore,
        org_id: UUID,
    ) -> None:
        """Submissions and reviews are measured against their own due instants."""
        early = users.add(org_id, "early@example.com")
        late = users.add(org_id, "late@example.com")
        unreviewed = users.add(org_id, "unreviewed@example.com")
        users.add(org_id, "absent@example.com")
        due = chicago(2025, 11, 14, 17)
        checkins.add(
            early,
            PERIOD,
            submitted_at=due - timedelta(hours=2),
            reviewed=True,
            reviewed_by=uuid4(),
            reviewed_at=due,
        )
        checkins.add(
            late,
            PERIOD,
            submitted_at=due + timedelta(minutes=1),
            reviewed=True,
            reviewed_by=uuid4(),
            reviewed_at=due + timedelta(days=1),
        )
        checkins.add(unreviewed, PERIOD, submitted_at=due)

        metrics = await classifier.compliance_metrics(org_id, PERIOD, now=AFTER)

        assert metrics.period == PERIOD
        assert (metrics.checkins.total, metrics.checkins.on_time) == (3, 2)
        assert (metrics.reviews.total, metrics.reviews.on_time) == (2, 1)
        assert metrics.checkins.on_time_percentage == 66.67
        assert metrics.to_dict()["reviews"] == {
            "total_count": 2,
            "on_time_count": 1,
            "on_time_percentage": 50.0,
        }

    async def test_empty_period(self, classifier: CheckinClassifier, org_id: UUID) -> None:
        metrics = await classifier.compliance_metrics(org_id, PERIOD, now=AFTER)

        assert metrics.checkins.total == 0
        assert metrics.reviews.on_time_percentage == 0.0

    async def test_defaults_to_current_period(
        self, classifier: CheckinClassifier, org_id: UUID
    ) -> None:
        metrics = await classifier.compliance_metrics(org_id, now=DURING)

        assert metrics.period == PERIOD

    async def test_store_failure_propagates(
        self, classifier: CheckinClassifier, checkins: InMemoryCheckinStore, org_id: UUID
    ) -> None:
        checkins.fail_on["list_by_org_and_period"] = ProviderUnavailable("down", "checkin_store")

        with pytest.raises(ProviderUnavailable):
            await classifier.compliance_metrics(org_id, PERIOD, now=AFTER)
