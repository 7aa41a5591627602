"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from uuid import UUID, uuid4

import pytest
from checkpulse.adapters.memory import (
    InMemoryCheckinStore,
    InMemoryExemptionStore,
    InMemoryOrganizationStore,
    InMemoryUserStore,
    InMemoryVacationStore,
    StaticDirectory,
)
from checkpulse.core.classifier import CheckinClassifier, ClassifierConfig
from checkpulse.core.domain_types import Organization, Weekday
from checkpulse.core.reconciler import ReconcilerConfig, RosterReconciler
from checkpulse.core.vacation import VacationLedger

ROSTER_CHANNEL = "C0ROSTER"


@pytest.fixture
def org_id() -> UUID:
    """Organization ID used across a test."""
    return uuid4()


@pytest.fixture
def organization(org_id: UUID) -> Organization:
    """Organization with Saturday weeks, due Friday 17:00 Chicago time."""
    return Organization(
        id=org_id,
        name="Acme",
        timezone="America/Chicago",
        week_start=Weekday.SATURDAY,
        checkin_due_day=Weekday.FRIDAY,
        directory_channel=ROSTER_CHANNEL,
    )


@pytest.fixture
def organizations(organization: Organization) -> InMemoryOrganizationStore:
    return InMemoryOrganizationStore([organization])


@pytest.fixture
def users() -> InMemoryUserStore:
    return InMemoryUserStore()


@pytest.fixture
def checkins() -> InMemoryCheckinStore:
    return InMemoryCheckinStore()


@pytest.fixture
def vacations() -> InMemoryVacationStore:
    return InMemoryVacationStore()


@pytest.fixture
def exemptions() -> InMemoryExemptionStore:
    return InMemoryExemptionStore()


@pytest.fixture
def directory() -> StaticDirectory:
    return StaticDirectory()


@pytest.fixture
def classifier(
    organizations: InMemoryOrganizationStore,
    users: InMemoryUserStore,
    checkins: InMemoryCheckinStore,
    vacations: InMemoryVacationStore,
    exemptions: InMemoryExemptionStore,
) -> CheckinClassifier:
    """Classifier over the in-memory stores with short timeouts."""
    return CheckinClassifier(
        organizations,
        users,
        checkins,
        VacationLedger(vacations, timeout_seconds=0.2),
        ClassifierConfig(store_timeout_seconds=0.2, outstanding_lookback_weeks=8),
        exemptions=exemptions,
    )


@pytest.fixture
def reconciler(
    organizations: InMemoryOrganizationStore,
    users: InMemoryUserStore,
    directory: StaticDirectory,
) -> RosterReconciler:
    """Reconciler over the in-memory stores with short timeouts."""
    return RosterReconciler(
        users,
        organizations,
        directory,
        ReconcilerConfig(store_timeout_seconds=0.2, directory_timeout_seconds=0.2),
    )
