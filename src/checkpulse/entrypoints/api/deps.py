"""Dependency injection and application lifespan management."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import Request

from checkpulse.adapters.directory import SlackDirectory, SlackDirectoryConfig
from checkpulse.adapters.postgres import (
    AppDatabase,
    PostgresCheckinStore,
    PostgresExemptionStore,
    PostgresOrganizationStore,
    PostgresUserStore,
    PostgresVacationStore,
)
from checkpulse.config import Settings
from checkpulse.core.classifier import CheckinClassifier
from checkpulse.core.reconciler import RosterReconciler
from checkpulse.core.vacation import VacationLedger
from checkpulse.services import CheckinService, ComplianceService

if TYPE_CHECKING:
    from fastapi import FastAPI

logger = logging.getLogger(__name__)


def build_services(
    db: AppDatabase, settings: Settings
) -> tuple[ComplianceService, CheckinService]:
    """Wire the PostgreSQL stores and the directory into the services."""
    organizations = PostgresOrganizationStore(db)
    users = PostgresUserStore(db)
    checkins = PostgresCheckinStore(db)
    vacations = VacationLedger(
        PostgresVacationStore(db), timeout_seconds=settings.store_timeout_seconds
    )

    directory = None
    if settings.slack_enabled:
        directory = SlackDirectory(
            SlackDirectoryConfig(
                bot_token=settings.slack_bot_token,
                timeout_seconds=settings.directory_timeout_seconds,
            )
        )
    else:
        logger.warning("SLACK_BOT_TOKEN not set; roster reconciliation is disabled")

    classifier = CheckinClassifier(
        organizations,
        users,
        checkins,
        vacations,
        settings.classifier_config(),
        exemptions=PostgresExemptionStore(db),
    )
    reconciler = RosterReconciler(users, organizations, directory, settings.reconciler_config())
    compliance = ComplianceService(classifier, reconciler)
    checkin_service = CheckinService(
        organizations, checkins, timeout_seconds=settings.store_timeout_seconds, users=users
    )
    return compliance, checkin_service


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan - connect the database and build the services."""
    settings: Settings = app.state.settings
    app_db = AppDatabase(settings.database_url)
    await app_db.connect()

    compliance, checkin_service = build_services(app_db, settings)
    app.state.app_db = app_db
    app.state.compliance_service = compliance
    app.state.checkin_service = checkin_service

    yield

    await app_db.close()


def get_compliance_service(request: Request) -> ComplianceService:
    """Get the compliance service from app state."""
    service: ComplianceService = request.app.state.compliance_service
    return service


def get_checkin_service(request: Request) -> CheckinService:
    """Get the check-in service from app state."""
    service: CheckinService = request.app.state.checkin_service
    return service
