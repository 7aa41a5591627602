"""Core domain - the check-in compliance engine.

Depends only on the protocols in ``interfaces``; adapters supply storage
and directory access.
"""

from .calendar import (
    checkin_due_at,
    has_elapsed,
    is_same_or_before_now,
    is_submitted_on_time,
    parse_weekday,
    period_containing,
    period_for_organization,
    period_offset_by,
    periods_between,
    reminder_at,
    should_send_reminders,
    week_ending_label,
)
from .classifier import CheckinClassifier, ClassifierConfig
from .domain_types import (
    CheckinRecord,
    CheckinRef,
    Classification,
    DirectoryMember,
    IndeterminateRef,
    Organization,
    Period,
    ReconciliationError,
    ReconciliationResult,
    User,
    UserRef,
    VacationEntry,
    Weekday,
)
from .exceptions import (
    CheckinStateError,
    CheckpulseError,
    ConfigurationError,
    ConflictError,
    DataIntegrityError,
    DirectoryProviderError,
    OperationCancelled,
    PermissionDenied,
    ProviderTimeout,
    ProviderUnavailable,
)
from .interfaces import (
    CheckinStore,
    DirectoryProvider,
    OrganizationStore,
    UserStore,
    VacationStore,
)
from .reconciler import ReconcilerConfig, RosterReconciler, compute_diff, normalize_identity
from .roles import Role
from .vacation import VacationLedger

__all__ = [
    # Calendar
    "checkin_due_at",
    "has_elapsed",
    "is_same_or_before_now",
    "is_submitted_on_time",
    "parse_weekday",
    "period_containing",
    "period_for_organization",
    "period_offset_by",
    "periods_between",
    "reminder_at",
    "should_send_reminders",
    "week_ending_label",
    # Domain types
    "CheckinRecord",
    "CheckinRef",
    "Classification",
    "DirectoryMember",
    "IndeterminateRef",
    "Organization",
    "Period",
    "ReconciliationError",
    "ReconciliationResult",
    "Role",
    "User",
    "UserRef",
    "VacationEntry",
    "Weekday",
    # Exceptions
    "CheckpulseError",
    "CheckinStateError",
    "ConfigurationError",
    "ConflictError",
    "DataIntegrityError",
    "DirectoryProviderError",
    "OperationCancelled",
    "PermissionDenied",
    "ProviderTimeout",
    "ProviderUnavailable",
    # Interfaces
    "CheckinStore",
    "DirectoryProvider",
    "OrganizationStore",
    "UserStore",
    "VacationStore",
    # Engine
    "CheckinClassifier",
    "ClassifierConfig",
    "ReconcilerConfig",
    "RosterReconciler",
    "VacationLedger",
    "compute_diff",
    "normalize_identity",
]
