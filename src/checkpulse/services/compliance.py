"""Compliance service - caller-facing views over the engine."""

import asyncio
from datetime import date, datetime
from typing import Any
from uuid import UUID

import structlog

from checkpulse.core.calendar import local_midnight, period_for_organization, resolve_timezone
from checkpulse.core.classifier import CheckinClassifier
from checkpulse.core.domain_types import Period, User
from checkpulse.core.exceptions import PermissionDenied
from checkpulse.core.reconciler import RosterReconciler
from checkpulse.core.roles import can_reconcile_roster

logger = structlog.get_logger()


class ComplianceService:
    """Produces the JSON-shaped values returned to callers.

    Wraps the classifier and the reconciler; all outputs are plain dicts and
    lists ready for serialization.
    """

    def __init__(self, classifier: CheckinClassifier, reconciler: RosterReconciler):
        self.classifier = classifier
        self.reconciler = reconciler

    async def resolve_period(
        self, organization_id: UUID, week_of: date | None = None
    ) -> Period | None:
        """Period containing ``week_of`` in the organization's timezone.

        Returns None when no date is given, meaning the current period.
        """
        if week_of is None:
            return None
        organization = await self.classifier.get_organization(organization_id)
        tz = resolve_timezone(organization.timezone)
        return period_for_organization(local_midnight(week_of, tz), organization)

    async def status(
        self,
        organization_id: UUID,
        week_of: date | None = None,
        *,
        now: datetime | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> dict[str, Any]:
        """Classification of one period, ``{period, pending, reviewed, ...}``."""
        period = await self.resolve_period(organization_id, week_of)
        classification = await self.classifier.classify(
            organization_id, period, now=now, cancel_event=cancel_event
        )
        return classification.to_dict()

    async def outstanding(
        self,
        organization_id: UUID,
        *,
        now: datetime | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> list[dict[str, Any]]:
        """Classification of every completed period, oldest first."""
        classifications = await self.classifier.classify_all_outstanding(
            organization_id, now=now, cancel_event=cancel_event
        )
        return [c.to_dict() for c in classifications]

    async def past_due(
        self, organization_id: UUID, *, now: datetime | None = None
    ) -> dict[str, Any]:
        """Users past the current period's due instant without a submission."""
        users = await self.classifier.list_past_due(organization_id, now=now)
        return {"users": [ref.model_dump(mode="json") for ref in users]}

    async def metrics(
        self,
        organization_id: UUID,
        week_of: date | None = None,
        *,
        now: datetime | None = None,
    ) -> dict[str, Any]:
        """On-time submission and review counts, ``{period, checkins, reviews}``."""
        period = await self.resolve_period(organization_id, week_of)
        metrics = await self.classifier.compliance_metrics(organization_id, period, now=now)
        return metrics.to_dict()

    async def reconcile(
        self,
        organization_id: UUID,
        *,
        requested_by: User | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> dict[str, Any]:
        """Reconcile the roster against the organization's directory channel.

        Raises:
            PermissionDenied: If ``requested_by`` may not reconcile this roster.
        """
        if requested_by is not None and (
            requested_by.organization_id != organization_id
            or not can_reconcile_roster(requested_by.role)
        ):
            raise PermissionDenied(
                f"User {requested_by.id} may not reconcile organization {organization_id}"
            )

        result = await self.reconciler.reconcile_from_directory(
            organization_id, cancel_event=cancel_event
        )
        logger.info(
            "roster_reconcile_requested",
            organization_id=str(organization_id),
            requested_by=str(requested_by.id) if requested_by else None,
            changed=result.changed,
            errors=len(result.errors),
        )
        return result.to_dict()
