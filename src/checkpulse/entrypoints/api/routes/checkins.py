"""Check-in compliance API routes."""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, ConfigDict, Field

from checkpulse.core.domain_types import CheckinRef, IndeterminateRef, UserRef
from checkpulse.entrypoints.api.deps import get_checkin_service, get_compliance_service
from checkpulse.services import CheckinService, ComplianceService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/organizations/{organization_id}/checkins", tags=["checkins"])

ComplianceDep = Annotated[ComplianceService, Depends(get_compliance_service)]
CheckinDep = Annotated[CheckinService, Depends(get_checkin_service)]


class PeriodResponse(BaseModel):
    """Reporting period bounds, start inclusive, end exclusive."""

    start: datetime
    end: datetime


class ClassificationResponse(BaseModel):
    """Per-period compliance buckets."""

    model_config = ConfigDict(populate_by_name=True)

    period: PeriodResponse
    pending: list[CheckinRef]
    reviewed: list[CheckinRef]
    missing: list[UserRef]
    on_vacation: list[UserRef] = Field(alias="onVacation")
    exempt: list[UserRef]
    indeterminate: list[IndeterminateRef]


class PastDueResponse(BaseModel):
    """Users past the due instant without a submission."""

    users: list[UserRef]


@router.get("/status", response_model=ClassificationResponse, response_model_by_alias=True)
async def get_status(
    organization_id: UUID,
    service: ComplianceDep,
    week_of: Annotated[date | None, Query(description="Any date inside the period")] = None,
) -> ClassificationResponse:
    """Classify the organization's active users for one period."""
    result = await service.status(organization_id, week_of)
    return ClassificationResponse.model_validate(result)


@router.get(
    "/outstanding", response_model=list[ClassificationResponse], response_model_by_alias=True
)
async def get_outstanding(
    organization_id: UUID,
    service: ComplianceDep,
) -> list[ClassificationResponse]:
    """Classify every completed period, oldest first."""
    results = await service.outstanding(organization_id)
    return [ClassificationResponse.model_validate(r) for r in results]


@router.get("/past-due", response_model=PastDueResponse)
async def get_past_due(
    organization_id: UUID,
    service: ComplianceDep,
) -> PastDueResponse:
    """List users who are past due for the current period."""
    result = await service.past_due(organization_id)
    return PastDueResponse.model_validate(result)


class OnTimeCountsResponse(BaseModel):
    """On-time counts for submissions or reviews."""

    total_count: int
    on_time_count: int
    on_time_percentage: float


class MetricsResponse(BaseModel):
    """On-time submission and review counts for one period."""

    period: PeriodResponse
    checkins: OnTimeCountsResponse
    reviews: OnTimeCountsResponse


@router.get("/metrics", response_model=MetricsResponse)
async def get_metrics(
    organization_id: UUID,
    service: ComplianceDep,
    week_of: Annotated[date | None, Query(description="Any date inside the period")] = None,
) -> MetricsResponse:
    """Count on-time submissions and reviews for one period."""
    result = await service.metrics(organization_id, week_of)
    return MetricsResponse.model_validate(result)


class CheckinSubmit(BaseModel):
    """Check-in submission request."""

    user_id: UUID


class CheckinReview(BaseModel):
    """Check-in review request."""

    reviewer_id: UUID
    comments: str | None = None


class SubmissionResponse(BaseModel):
    """A recorded submission."""

    id: UUID
    user_id: UUID
    week_of: datetime
    submitted_at: datetime
    due_at: datetime
    on_time: bool
    label: str


class CheckinResponse(BaseModel):
    """A check-in record."""

    id: UUID
    user_id: UUID
    week_of: datetime
    submitted_at: datetime
    reviewed: bool
    reviewed_by: UUID | None
    reviewed_at: datetime | None
    review_comments: str | None


@router.post("/", response_model=SubmissionResponse, status_code=status.HTTP_201_CREATED)
async def submit_checkin(
    organization_id: UUID,
    body: CheckinSubmit,
    service: CheckinDep,
) -> SubmissionResponse:
    """Record a check-in for the current period."""
    result = await service.submit_for(organization_id, body.user_id)
    return SubmissionResponse(
        id=result.record.id,
        user_id=result.record.user_id,
        week_of=result.record.week_of,
        submitted_at=result.record.submitted_at,
        due_at=result.due_at,
        on_time=result.on_time,
        label=result.label,
    )


@router.post("/{checkin_id}/review", response_model=CheckinResponse)
async def review_checkin(
    organization_id: UUID,
    checkin_id: UUID,
    body: CheckinReview,
    service: CheckinDep,
) -> CheckinResponse:
    """Mark a check-in as reviewed."""
    record = await service.review_by(organization_id, checkin_id, body.reviewer_id, body.comments)
    logger.info(f"Check-in {checkin_id} reviewed by {body.reviewer_id}")
    return CheckinResponse.model_validate(record.model_dump())
