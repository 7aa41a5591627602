"""Application services."""

from checkpulse.services.checkins import CheckinService, SubmissionResult
from checkpulse.services.compliance import ComplianceService

__all__ = [
    "CheckinService",
    "ComplianceService",
    "SubmissionResult",
]
