"""Domain-specific exceptions.

All exceptions in the checkpulse system inherit from CheckpulseError,
making it easy to catch all engine errors while still being able
to handle specific error types.
"""

from __future__ import annotations


class CheckpulseError(Exception):
    """Base exception for all checkpulse errors."""

    pass


class ConfigurationError(CheckpulseError):
    """Invalid or missing configuration.

    Raised for an unknown boundary weekday, an invalid timezone or time
    of day, an unknown organization, or an organization without a
    directory channel reference. This is FATAL for the call and is
    never retried automatically.
    """

    pass


class ProviderUnavailable(CheckpulseError):
    """A storage or directory collaborator could not answer.

    This is a recoverable condition. Reconciliation reports zero changes
    with an explicit error instead of guessing, and classification marks
    the affected users as indeterminate instead of failing the request.

    Attributes:
        provider: Name of the collaborator that failed.
    """

    def __init__(self, message: str, provider: str = "unknown") -> None:
        """Initialize ProviderUnavailable.

        Args:
            message: Error description.
            provider: Name of the collaborator that failed.
        """
        super().__init__(message)
        self.provider = provider


class ProviderTimeout(ProviderUnavailable):
    """A collaborator call exceeded its caller-supplied timeout."""

    pass


class DirectoryProviderError(ProviderUnavailable):
    """The external directory rejected or failed the membership fetch.

    Covers authentication failures, missing scopes and network errors.
    """

    def __init__(self, message: str, provider: str = "directory") -> None:
        super().__init__(message, provider)


class ConflictError(CheckpulseError):
    """A reconciliation is already running for the organization.

    Callers should treat this as a "try later" signal.

    Attributes:
        organization_id: The organization that is busy.
    """

    def __init__(self, message: str, organization_id: object = None) -> None:
        """Initialize ConflictError.

        Args:
            message: Error description.
            organization_id: The organization that is busy.
        """
        super().__init__(message)
        self.organization_id = organization_id


class DataIntegrityError(CheckpulseError):
    """More than one check-in record exists for a (user, period) pair.

    This indicates an upstream invariant violation, not a normal runtime
    condition. It is logged and surfaced, never silently resolved.
    """

    pass


class OperationCancelled(CheckpulseError):
    """The caller cancelled the operation before it completed."""

    pass


class PermissionDenied(CheckpulseError):
    """The acting user's role does not allow the operation."""

    pass


class CheckinStateError(CheckpulseError):
    """A check-in mutation is not allowed in the record's current state.

    Raised when submitting twice for the same period, reviewing a record
    that is already reviewed, or referencing an unknown record.
    """

    pass
