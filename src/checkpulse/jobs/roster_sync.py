"""Roster sync job.

Reconciles every active organization that has a directory channel.
Retry policy belongs to the scheduler running this job; a failed
organization is reported and picked up by the next run.

Run via: python -m checkpulse.jobs.roster_sync
"""

import asyncio
import sys
from uuid import UUID

import structlog

from checkpulse.adapters.postgres import AppDatabase, PostgresOrganizationStore
from checkpulse.config import Settings
from checkpulse.core.domain_types import ReconciliationResult
from checkpulse.core.exceptions import CheckpulseError
from checkpulse.core.interfaces import OrganizationStore
from checkpulse.core.reconciler import RosterReconciler
from checkpulse.entrypoints.api.deps import build_services
from checkpulse.logging import configure_logging

logger = structlog.get_logger()


async def sync_all(
    organizations: OrganizationStore,
    reconciler: RosterReconciler,
    cancel_event: asyncio.Event | None = None,
) -> dict[UUID, ReconciliationResult | CheckpulseError]:
    """Reconcile each active organization with a directory channel.

    One organization's failure never stops the others.

    Returns:
        The result, or the error raised, per organization.
    """
    outcomes: dict[UUID, ReconciliationResult | CheckpulseError] = {}
    for organization in await organizations.list_active():
        if not organization.directory_channel:
            continue
        if cancel_event is not None and cancel_event.is_set():
            logger.info("roster_sync_cancelled")
            break
        try:
            result = await reconciler.reconcile_from_directory(
                organization.id, cancel_event=cancel_event
            )
        except CheckpulseError as e:
            logger.error(
                "roster_sync_failed",
                organization_id=str(organization.id),
                error_type=type(e).__name__,
                error=str(e),
            )
            outcomes[organization.id] = e
            continue
        outcomes[organization.id] = result
    return outcomes


async def main() -> int:
    """Run roster sync for every organization. Returns the process exit code."""
    settings = Settings()
    configure_logging(settings.log_level, settings.log_json)
    if not settings.slack_enabled:
        logger.error("SLACK_BOT_TOKEN not set")
        return 1

    db = AppDatabase(settings.database_url)
    await db.connect()
    try:
        compliance, _ = build_services(db, settings)
        outcomes = await sync_all(PostgresOrganizationStore(db), compliance.reconciler)
    finally:
        await db.close()

    failed = [
        org_id
        for org_id, outcome in outcomes.items()
        if isinstance(outcome, CheckpulseError) or outcome.errors
    ]
    logger.info("roster_sync_completed", organizations=len(outcomes), failed=len(failed))
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
