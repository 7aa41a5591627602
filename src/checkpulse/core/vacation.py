"""Vacation Ledger Lookup - read-only vacation checks for the classifier."""

from __future__ import annotations

from uuid import UUID

import structlog

from .deadlines import with_deadline
from .domain_types import Period
from .exceptions import ProviderUnavailable
from .interfaces import VacationStore

logger = structlog.get_logger()


class VacationLedger:
    """Answers "is user U on vacation during period P?".

    A single vacation day inside the period exempts the whole week. The
    lookup never guesses: when the store cannot answer, the caller gets
    ``ProviderUnavailable`` rather than a silent ``False``.
    """

    def __init__(self, store: VacationStore, timeout_seconds: float | None = 10.0) -> None:
        """Initialize the ledger.

        Args:
            store: Backing vacation store.
            timeout_seconds: Default per-lookup timeout.
        """
        self._store = store
        self._timeout = timeout_seconds

    async def is_on_vacation(
        self,
        user_id: UUID,
        period: Period,
        *,
        timeout: float | None = None,
    ) -> bool:
        """Check for any vacation entry intersecting the period.

        Args:
            user_id: User to check.
            period: Target period.
            timeout: Overrides the ledger's default timeout.

        Returns:
            True if at least one entry overlaps ``[start, end)``.

        Raises:
            ProviderUnavailable: If the store is unreachable or times out.
        """
        try:
            entries = await with_deadline(
                self._store.list_overlapping(user_id, period),
                timeout if timeout is not None else self._timeout,
                "vacation_store",
            )
        except ProviderUnavailable as e:
            logger.warning(
                "vacation_lookup_failed",
                user_id=str(user_id),
                period_start=period.start.isoformat(),
                error=str(e),
            )
            raise

        return any(entry.overlaps(period) for entry in entries)
