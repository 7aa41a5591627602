"""Roster reconciliation API routes."""

from __future__ import annotations

import logging
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from checkpulse.entrypoints.api.deps import get_compliance_service
from checkpulse.services import ComplianceService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/organizations/{organization_id}/roster", tags=["roster"])

ComplianceDep = Annotated[ComplianceService, Depends(get_compliance_service)]


class ReconcileErrorResponse(BaseModel):
    """A per-entity reconciliation failure."""

    identity: str | None
    reason: str


class ReconcileResponse(BaseModel):
    """Counts of applied roster transitions."""

    created: int
    reactivated: int
    deactivated: int
    renamed: int = 0
    errors: list[ReconcileErrorResponse]
    cancelled: bool


@router.post("/reconcile", response_model=ReconcileResponse)
async def reconcile_roster(
    organization_id: UUID,
    service: ComplianceDep,
) -> ReconcileResponse:
    """Reconcile the roster against the organization's directory channel."""
    result = await service.reconcile(organization_id)
    if result["errors"]:
        logger.warning(
            f"Roster reconciliation for {organization_id} finished with "
            f"{len(result['errors'])} errors"
        )
    return ReconcileResponse.model_validate(result)
