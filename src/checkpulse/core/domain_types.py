"""Domain types - Immutable models defining core compliance objects.

Entities read from the stores are frozen Pydantic models. Values the
engine computes (periods, classifications, reconciliation results) are
dataclasses, since they carry timezone-aware datetimes verbatim and are
assembled incrementally during a pass.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from enum import IntEnum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from .roles import Role

PERIOD_DAYS = 7


class Weekday(IntEnum):
    """Day of week, numbered like ``date.weekday()``."""

    MONDAY = 0
    TUESDAY = 1
    WEDNESDAY = 2
    THURSDAY = 3
    FRIDAY = 4
    SATURDAY = 5
    SUNDAY = 6


@dataclass(frozen=True)
class Period:
    """A half-open reporting week ``[start, end)``.

    Both bounds are timezone-aware local midnights, exactly seven
    calendar days apart. Periods are derived, never stored.

    Attributes:
        start: First instant of the period.
        end: First instant of the following period.
    """

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.start.tzinfo is None or self.end.tzinfo is None:
            raise ValueError("Period bounds must be timezone-aware")
        if (self.end.date() - self.start.date()).days != PERIOD_DAYS:
            raise ValueError("Period must span exactly seven calendar days")

    @property
    def first_day(self) -> date:
        """Local calendar date the period starts on."""
        return self.start.date()

    @property
    def last_day(self) -> date:
        """Local calendar date of the final day inside the period."""
        return self.end.date() - timedelta(days=1)

    def contains(self, instant: datetime) -> bool:
        """Check whether an aware instant falls inside the period."""
        return self.start <= instant < self.end

    def overlaps_dates(self, starts_on: date, ends_on: date) -> bool:
        """Check whether an inclusive date range touches any day of the period."""
        return starts_on <= self.last_day and ends_on >= self.first_day

    def to_dict(self) -> dict[str, str]:
        """Serialize for boundary layers."""
        return {"start": self.start.isoformat(), "end": self.end.isoformat()}


class Organization(BaseModel):
    """A tenant with its check-in schedule and roster policy.

    Attributes:
        id: Organization ID.
        name: Display name.
        timezone: IANA timezone the weekly schedule is expressed in.
        week_start: Weekday each reporting period begins on.
        checkin_due_day: Weekday check-ins are due.
        checkin_due_time: Local time of day check-ins are due.
        reminder_day: Weekday reminders go out (defaults to the due day).
        reminder_time: Local time of day reminders go out.
        directory_channel: Directory channel/group whose members form the roster.
        is_active: Whether the organization is active.
    """

    model_config = ConfigDict(frozen=True)

    id: UUID
    name: str
    timezone: str = "America/Chicago"
    week_start: Weekday = Weekday.SATURDAY
    checkin_due_day: Weekday = Weekday.FRIDAY
    checkin_due_time: time = time(17, 0)
    reminder_day: Weekday | None = None
    reminder_time: time = time(9, 0)
    directory_channel: str | None = None
    is_active: bool = True


class User(BaseModel):
    """A member of an organization.

    Users are never hard-deleted; reconciliation only toggles ``is_active``
    so historical check-in records stay valid.
    """

    model_config = ConfigDict(frozen=True)

    id: UUID
    organization_id: UUID
    identity: str
    display_name: str
    role: Role = Role.MEMBER
    is_active: bool = True
    created_at: datetime


class CheckinRecord(BaseModel):
    """A user's submission for one period.

    At most one record exists per (user, period).
    """

    model_config = ConfigDict(frozen=True)

    id: UUID
    user_id: UUID
    organization_id: UUID
    week_of: datetime
    submitted_at: datetime
    reviewed: bool = False
    reviewed_by: UUID | None = None
    reviewed_at: datetime | None = None
    review_comments: str | None = None


class VacationEntry(BaseModel):
    """A vacation date range (inclusive) owned by the scheduling collaborator."""

    model_config = ConfigDict(frozen=True)

    id: UUID
    user_id: UUID
    starts_on: date
    ends_on: date
    note: str | None = None

    def overlaps(self, period: Period) -> bool:
        """Any single day inside the period counts as overlap."""
        return period.overlaps_dates(self.starts_on, self.ends_on)


class CheckinExemption(BaseModel):
    """A user excused from checking in for one period.

    Exemptions are granted by an administrator for a single week, keyed by
    any date inside it. They are owned by the scheduling collaborator.
    """

    model_config = ConfigDict(frozen=True)

    id: UUID
    user_id: UUID
    organization_id: UUID
    week_of: date
    reason: str | None = None

    def applies_to(self, period: Period) -> bool:
        """Whether the exempted week is this period."""
        return period.first_day <= self.week_of <= period.last_day


class DirectoryMember(BaseModel):
    """A member as reported by the external directory."""

    model_config = ConfigDict(frozen=True)

    identity: str
    display_name: str | None = None
    external_id: str | None = None


class UserRef(BaseModel):
    """Lightweight user reference for classification output."""

    model_config = ConfigDict(frozen=True)

    id: UUID
    display_name: str
    identity: str

    @classmethod
    def of(cls, user: User) -> UserRef:
        """Build a reference from a full user."""
        return cls(id=user.id, display_name=user.display_name, identity=user.identity)


class CheckinRef(BaseModel):
    """Lightweight check-in reference for classification output."""

    model_config = ConfigDict(frozen=True)

    id: UUID
    user_id: UUID
    display_name: str
    submitted_at: datetime
    reviewed_at: datetime | None = None


class IndeterminateRef(BaseModel):
    """A user whose status could not be determined, and why."""

    model_config = ConfigDict(frozen=True)

    id: UUID
    display_name: str
    reason: str


@dataclass
class Classification:
    """Partition of an organization's active users for one period.

    Buckets are pairwise disjoint. Users without a record or vacation in a
    period that has not yet elapsed are in no bucket; they are listed in
    ``not_yet_due`` so a reminder collaborator can act on them.
    """

    organization_id: UUID
    period: Period
    pending: list[CheckinRef] = field(default_factory=list)
    reviewed: list[CheckinRef] = field(default_factory=list)
    missing: list[UserRef] = field(default_factory=list)
    on_vacation: list[UserRef] = field(default_factory=list)
    exempt: list[UserRef] = field(default_factory=list)
    indeterminate: list[IndeterminateRef] = field(default_factory=list)
    not_yet_due: list[UserRef] = field(default_factory=list)

    def classified_user_ids(self) -> set[UUID]:
        """IDs of every user placed in a bucket."""
        ids = {ref.user_id for ref in self.pending}
        ids.update(ref.user_id for ref in self.reviewed)
        ids.update(ref.id for ref in self.missing)
        ids.update(ref.id for ref in self.on_vacation)
        ids.update(ref.id for ref in self.exempt)
        ids.update(ref.id for ref in self.indeterminate)
        return ids

    def sort(self) -> None:
        """Order every bucket by display name for presentation."""
        self.pending.sort(key=lambda ref: ref.display_name.lower())
        self.reviewed.sort(key=lambda ref: ref.display_name.lower())
        self.missing.sort(key=lambda ref: ref.display_name.lower())
        self.on_vacation.sort(key=lambda ref: ref.display_name.lower())
        self.exempt.sort(key=lambda ref: ref.display_name.lower())
        self.indeterminate.sort(key=lambda ref: ref.display_name.lower())
        self.not_yet_due.sort(key=lambda ref: ref.display_name.lower())

    def to_dict(self) -> dict[str, Any]:
        """JSON-shaped view for the HTTP layer."""
        return {
            "period": self.period.to_dict(),
            "pending": [ref.model_dump(mode="json") for ref in self.pending],
            "reviewed": [ref.model_dump(mode="json") for ref in self.reviewed],
            "missing": [ref.model_dump(mode="json") for ref in self.missing],
            "onVacation": [ref.model_dump(mode="json") for ref in self.on_vacation],
            "exempt": [ref.model_dump(mode="json") for ref in self.exempt],
            "indeterminate": [ref.model_dump(mode="json") for ref in self.indeterminate],
        }


@dataclass(frozen=True)
class ReconciliationError:
    """A per-entity failure collected during reconciliation."""

    identity: str | None
    reason: str


@dataclass
class ReconciliationResult:
    """Summary of one reconciliation run. Never persisted."""

    organization_id: UUID
    created: int = 0
    reactivated: int = 0
    deactivated: int = 0
    renamed: int = 0
    errors: list[ReconciliationError] = field(default_factory=list)
    cancelled: bool = False

    @property
    def changed(self) -> int:
        """Total number of applied transitions. Renames are not transitions."""
        return self.created + self.reactivated + self.deactivated

    @property
    def is_noop(self) -> bool:
        """True when nothing was applied and nothing failed."""
        return self.changed == 0 and self.renamed == 0 and not self.errors

    def add_error(self, identity: str | None, reason: str) -> None:
        """Record a per-entity failure."""
        self.errors.append(ReconciliationError(identity=identity, reason=reason))

    def to_dict(self) -> dict[str, Any]:
        """JSON-shaped view for the HTTP layer."""
        return {
            "created": self.created,
            "reactivated": self.reactivated,
            "deactivated": self.deactivated,
            "renamed": self.renamed,
            "errors": [{"identity": e.identity, "reason": e.reason} for e in self.errors],
            "cancelled": self.cancelled,
        }


@dataclass(frozen=True)
class OnTimeCounts:
    """How many of a period's submissions or reviews met their due instant."""

    total: int = 0
    on_time: int = 0

    @property
    def on_time_percentage(self) -> float:
        """Share on time, in percent rounded to two places; 0 when there is nothing to count."""
        if self.total == 0:
            return 0.0
        return round(self.on_time / self.total * 100, 2)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_count": self.total,
            "on_time_count": self.on_time,
            "on_time_percentage": self.on_time_percentage,
        }


@dataclass(frozen=True)
class ComplianceMetrics:
    """On-time submission and review counts for one period."""

    organization_id: UUID
    period: Period
    checkins: OnTimeCounts
    reviews: OnTimeCounts

    def to_dict(self) -> dict[str, Any]:
        """JSON-shaped view for the HTTP layer."""
        return {
            "period": self.period.to_dict(),
            "checkins": self.checkins.to_dict(),
            "reviews": self.reviews.to_dict(),
        }
