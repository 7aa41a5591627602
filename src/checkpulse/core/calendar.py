"""Week Calendar - custom, non-ISO reporting weeks.

A period starts at local midnight on the organization's boundary weekday
and ends at local midnight seven calendar days later. All arithmetic is
done on calendar dates and re-anchored to the timezone afterwards, so
boundaries stay at local midnight across daylight-saving changes (a
period spanning a DST switch is 167 or 169 hours long, never shifted).

Everything in this module is a pure function of its arguments.
"""

from __future__ import annotations

from datetime import UTC, date, datetime, time, timedelta, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .domain_types import PERIOD_DAYS, Organization, Period, Weekday
from .exceptions import ConfigurationError

DEFAULT_TIMEZONE = "America/Chicago"


def parse_weekday(value: str | int | Weekday) -> Weekday:
    """Parse a boundary weekday from configuration.

    Accepts a ``Weekday``, its integer value (Monday=0), or a day name
    such as ``"saturday"`` (case-insensitive).

    Raises:
        ConfigurationError: If the value does not name a weekday.
    """
    if isinstance(value, Weekday):
        return value
    if isinstance(value, int) and not isinstance(value, bool):
        try:
            return Weekday(value)
        except ValueError:
            raise ConfigurationError(f"Invalid weekday number: {value}") from None
    if isinstance(value, str):
        name = value.strip().upper()
        if name in Weekday.__members__:
            return Weekday[name]
    raise ConfigurationError(f"Invalid weekday: {value!r}")


def resolve_timezone(name: str) -> ZoneInfo:
    """Load an IANA timezone.

    Raises:
        ConfigurationError: If the timezone is unknown.
    """
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ConfigurationError(f"Unknown timezone: {name!r}") from e


def parse_time_of_day(value: str) -> time:
    """Parse ``HH:MM`` into a time.

    Raises:
        ConfigurationError: If the string is not a valid time of day.
    """
    try:
        hours, minutes = (int(part) for part in value.strip().split(":"))
        return time(hours, minutes)
    except ValueError as e:
        raise ConfigurationError(f"Invalid time of day: {value!r}") from e


def local_midnight(day: date, tz: tzinfo) -> datetime:
    """Midnight at the start of ``day`` in ``tz``."""
    return datetime.combine(day, time.min, tzinfo=tz)


def _as_aware(instant: datetime) -> datetime:
    # Naive instants are taken to be UTC.
    if instant.tzinfo is None:
        return instant.replace(tzinfo=UTC)
    return instant


def period_starting_on(day: date, tz: tzinfo) -> Period:
    """The period whose first local day is ``day``."""
    return Period(
        start=local_midnight(day, tz),
        end=local_midnight(day + timedelta(days=PERIOD_DAYS), tz),
    )


def period_containing(
    instant: datetime,
    week_start: Weekday = Weekday.SATURDAY,
    tz: tzinfo | str = DEFAULT_TIMEZONE,
) -> Period:
    """Return the period containing ``instant``.

    The start is the most recent ``week_start`` local midnight at or
    before the instant (inclusive).

    Args:
        instant: Any instant. Naive values are interpreted as UTC.
        week_start: Boundary weekday.
        tz: Timezone, or IANA name, the week is anchored in.

    Returns:
        The unique period with ``start <= instant < end``.
    """
    zone = resolve_timezone(tz) if isinstance(tz, str) else tz
    boundary = parse_weekday(week_start)
    local_day = _as_aware(instant).astimezone(zone).date()
    days_back = (local_day.weekday() - boundary) % PERIOD_DAYS
    return period_starting_on(local_day - timedelta(days=days_back), zone)


def period_for_organization(instant: datetime, organization: Organization) -> Period:
    """Period containing ``instant`` under the organization's schedule."""
    return period_containing(instant, organization.week_start, organization.timezone)


def period_offset_by(period: Period, n: int) -> Period:
    """Walk ``n`` periods forward (or back, when negative)."""
    tz = period.start.tzinfo
    assert tz is not None
    return period_starting_on(period.first_day + timedelta(days=PERIOD_DAYS * n), tz)


def periods_between(first: Period, last: Period) -> list[Period]:
    """All periods from ``first`` through ``last`` inclusive, oldest first."""
    periods: list[Period] = []
    current = first
    while current.start <= last.start:
        periods.append(current)
        current = period_offset_by(current, 1)
    return periods


def is_same_or_before_now(period: Period, now: datetime | None = None) -> bool:
    """True for the current period and every earlier one."""
    now = _as_aware(now) if now is not None else datetime.now(UTC)
    return period.start <= now


def has_elapsed(period: Period, now: datetime | None = None) -> bool:
    """True once the period is fully over."""
    now = _as_aware(now) if now is not None else datetime.now(UTC)
    return now >= period.end


def _day_in_period(period: Period, weekday: Weekday) -> date:
    offset = (weekday - period.first_day.weekday()) % PERIOD_DAYS
    return period.first_day + timedelta(days=offset)


def checkin_due_at(period: Period, organization: Organization) -> datetime:
    """Instant check-ins for ``period`` are due.

    The due day is the organization's ``checkin_due_day`` falling inside
    the period, at ``checkin_due_time`` local time.
    """
    tz = period.start.tzinfo
    due_day = _day_in_period(period, organization.checkin_due_day)
    return datetime.combine(due_day, organization.checkin_due_time, tzinfo=tz)


def review_due_at(period: Period, organization: Organization) -> datetime:
    """Reviews are due at the same time as check-ins."""
    return checkin_due_at(period, organization)


def reminder_at(period: Period, organization: Organization) -> datetime:
    """Instant reminders for ``period`` should be sent."""
    tz = period.start.tzinfo
    weekday = organization.reminder_day
    if weekday is None:
        weekday = organization.checkin_due_day
    reminder_day = _day_in_period(period, weekday)
    return datetime.combine(reminder_day, organization.reminder_time, tzinfo=tz)


def is_submitted_on_time(submitted_at: datetime | None, due_at: datetime) -> bool:
    """A submission is on time when made at or before the due instant."""
    if submitted_at is None:
        return False
    return _as_aware(submitted_at) <= due_at


def should_send_reminders(organization: Organization, now: datetime | None = None) -> bool:
    """True during the hour that starts at this period's reminder instant."""
    now = _as_aware(now) if now is not None else datetime.now(UTC)
    reminder = reminder_at(period_for_organization(now, organization), organization)
    return reminder <= now < reminder + timedelta(hours=1)


def week_ending_label(period: Period) -> str:
    """Human label such as ``"Week ending Nov 14, 2025"``."""
    last = period.last_day
    return f"Week ending {last.strftime('%b')} {last.day}, {last.year}"
