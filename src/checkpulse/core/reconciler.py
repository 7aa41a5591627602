"""Roster Reconciler - keep local users in step with the external directory.

A reconciliation computes one three-way diff between the directory
snapshot and the organization's local users, then applies it as a batch:

- create:     in the directory, unknown locally
- reactivate: in the directory, known locally but inactive
- deactivate: active locally, absent from the directory

Matched users whose directory display name changed are renamed in the
same run. A rename is not a state transition and is counted separately.

Per-entity failures are collected in the result and never abort sibling
entities. Already-applied transitions are not rolled back. The reconciler
never retries; the scheduling collaborator owns retry policy.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from dataclasses import dataclass, field
from uuid import UUID

import structlog

from .deadlines import with_deadline
from .domain_types import DirectoryMember, Organization, ReconciliationResult, User
from .exceptions import ConfigurationError, ConflictError, ProviderUnavailable
from .interfaces import DirectoryProvider, OrganizationStore, UserStore
from .roles import Role

logger = structlog.get_logger()

EMPTY_SNAPSHOT_REASON = "directory returned no members; refusing to deactivate the whole roster"


def normalize_identity(identity: str) -> str:
    """Normalize an identity for case-insensitive exact matching."""
    return identity.strip().casefold()


def default_display_name(member: DirectoryMember) -> str:
    """Display name for a newly created user."""
    if member.display_name and member.display_name.strip():
        return member.display_name.strip()
    return member.identity.split("@", 1)[0]


@dataclass(frozen=True)
class ReconcilerConfig:
    """Configuration for reconciliation runs.

    Attributes:
        store_timeout_seconds: Default timeout for each user-store call.
        directory_timeout_seconds: Default timeout for the directory fetch.
        allow_empty_snapshot: Apply an empty directory snapshot (deactivating
            everyone) instead of treating it as a suspect fetch.
    """

    store_timeout_seconds: float = 10.0
    directory_timeout_seconds: float = 30.0
    allow_empty_snapshot: bool = False


@dataclass(frozen=True)
class RosterDiff:
    """The planned transitions for one reconciliation."""

    to_create: list[DirectoryMember]
    to_reactivate: list[User]
    to_deactivate: list[User]
    to_rename: list[tuple[User, str]] = field(default_factory=list)


def compute_diff(
    members: Iterable[DirectoryMember],
    active: Iterable[User],
    inactive: Iterable[User],
) -> RosterDiff:
    """Compute the three-way diff between a directory snapshot and local users.

    Users present on both sides with the right state are left untouched,
    apart from a rename when the directory carries a different display name.
    Duplicate identities in the snapshot collapse to the first member.
    """
    external: dict[str, DirectoryMember] = {}
    for member in members:
        key = normalize_identity(member.identity)
        if key and key not in external:
            external[key] = member

    active_by_identity = {normalize_identity(u.identity): u for u in active}
    inactive_by_identity = {
        normalize_identity(u.identity): u
        for u in inactive
        if normalize_identity(u.identity) not in active_by_identity
    }

    to_create = [
        member
        for key, member in external.items()
        if key not in active_by_identity and key not in inactive_by_identity
    ]
    to_reactivate = [user for key, user in inactive_by_identity.items() if key in external]
    to_deactivate = [user for key, user in active_by_identity.items() if key not in external]
    to_rename: list[tuple[User, str]] = []
    for key, user in [*active_by_identity.items(), *inactive_by_identity.items()]:
        member = external.get(key)
        if member is None or not member.display_name or not member.display_name.strip():
            continue
        name = member.display_name.strip()
        if name != user.display_name:
            to_rename.append((user, name))
    return RosterDiff(
        to_create=to_create,
        to_reactivate=to_reactivate,
        to_deactivate=to_deactivate,
        to_rename=to_rename,
    )


class RosterReconciler:
    """Applies directory membership to an organization's users.

    At most one reconciliation runs per organization at a time; a second
    concurrent request fails fast with ConflictError.

    Usage:
        reconciler = RosterReconciler(users, organizations, directory)
        result = await reconciler.reconcile(org_id, members)
    """

    def __init__(
        self,
        users: UserStore,
        organizations: OrganizationStore | None = None,
        directory: DirectoryProvider | None = None,
        config: ReconcilerConfig | None = None,
    ) -> None:
        """Initialize the reconciler.

        Args:
            users: User store to read and mutate.
            organizations: Organization store, needed for directory-driven runs.
            directory: Directory provider, needed for directory-driven runs.
            config: Timeouts and snapshot policy. Uses defaults if not provided.
        """
        self._users = users
        self._organizations = organizations
        self._directory = directory
        self.config = config or ReconcilerConfig()
        self._locks: dict[UUID, asyncio.Lock] = {}

    def is_running(self, organization_id: UUID) -> bool:
        """Whether a reconciliation is in flight for the organization."""
        lock = self._locks.get(organization_id)
        return lock is not None and lock.locked()

    async def reconcile(
        self,
        organization_id: UUID,
        members: Iterable[DirectoryMember],
        *,
        timeout: float | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> ReconciliationResult:
        """Reconcile local users against a directory snapshot.

        Args:
            organization_id: Organization to reconcile.
            members: Directory snapshot.
            timeout: Per-call user-store timeout override.
            cancel_event: When set, no further mutations are attempted.

        Returns:
            Counts of applied transitions plus per-entity errors.

        Raises:
            ConflictError: If a reconciliation is already running for the organization.
        """
        lock = self._locks.setdefault(organization_id, asyncio.Lock())
        if lock.locked():
            logger.warning("reconciliation_conflict", organization_id=str(organization_id))
            raise ConflictError(
                f"Reconciliation already running for organization {organization_id}",
                organization_id=organization_id,
            )

        async with lock:
            return await self._reconcile_locked(
                organization_id, list(members), timeout=timeout, cancel_event=cancel_event
            )

    async def reconcile_from_directory(
        self,
        organization_id: UUID,
        *,
        timeout: float | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> ReconciliationResult:
        """Fetch the organization's directory channel and reconcile against it.

        A directory failure or timeout yields a zero-change result carrying
        the error; no user is mutated.

        Args:
            organization_id: Organization to reconcile.
            timeout: Directory fetch timeout override.
            cancel_event: When set, no further mutations are attempted.

        Raises:
            ConfigurationError: If the organization is unknown or has no
                directory channel, or no directory provider is configured.
            ConflictError: If a reconciliation is already running.
        """
        organization = await self._get_organization(organization_id)
        if not organization.directory_channel:
            raise ConfigurationError(
                f"Organization {organization_id} has no directory channel configured"
            )
        if self._directory is None:
            raise ConfigurationError("No directory provider configured")
        if self.is_running(organization_id):
            raise ConflictError(
                f"Reconciliation already running for organization {organization_id}",
                organization_id=organization_id,
            )

        try:
            members = await with_deadline(
                self._directory.fetch_members(organization.directory_channel),
                timeout if timeout is not None else self.config.directory_timeout_seconds,
                "directory",
            )
        except ProviderUnavailable as e:
            logger.error(
                "directory_fetch_failed",
                organization_id=str(organization_id),
                channel=organization.directory_channel,
                error=str(e),
            )
            result = ReconciliationResult(organization_id=organization_id)
            result.add_error(None, f"directory unavailable: {e}")
            return result

        return await self.reconcile(organization_id, members, cancel_event=cancel_event)

    async def _get_organization(self, organization_id: UUID) -> Organization:
        if self._organizations is None:
            raise ConfigurationError("No organization store configured")
        organization = await with_deadline(
            self._organizations.get(organization_id),
            self.config.store_timeout_seconds,
            "organization_store",
        )
        if organization is None:
            raise ConfigurationError(f"Unknown organization: {organization_id}")
        return organization

    async def _reconcile_locked(
        self,
        organization_id: UUID,
        members: list[DirectoryMember],
        *,
        timeout: float | None,
        cancel_event: asyncio.Event | None,
    ) -> ReconciliationResult:
        result = ReconciliationResult(organization_id=organization_id)
        store_timeout = timeout if timeout is not None else self.config.store_timeout_seconds

        has_members = any(normalize_identity(m.identity) for m in members)
        if not has_members and not self.config.allow_empty_snapshot:
            logger.warning("empty_directory_snapshot", organization_id=str(organization_id))
            result.add_error(None, EMPTY_SNAPSHOT_REASON)
            return result

        try:
            active = await with_deadline(
                self._users.list_active_users(organization_id), store_timeout, "user_store"
            )
            inactive = await with_deadline(
                self._users.list_inactive_users(organization_id), store_timeout, "user_store"
            )
        except ProviderUnavailable as e:
            logger.error(
                "roster_snapshot_failed", organization_id=str(organization_id), error=str(e)
            )
            result.add_error(None, f"user store unavailable: {e}")
            return result

        diff = compute_diff(members, active, inactive)
        logger.info(
            "reconciliation_planned",
            organization_id=str(organization_id),
            to_create=len(diff.to_create),
            to_reactivate=len(diff.to_reactivate),
            to_deactivate=len(diff.to_deactivate),
            to_rename=len(diff.to_rename),
        )

        def cancelled() -> bool:
            if cancel_event is not None and cancel_event.is_set():
                result.cancelled = True
                return True
            return False

        for member in diff.to_create:
            if cancelled():
                break
            identity = normalize_identity(member.identity)
            try:
                await with_deadline(
                    self._users.create_user(
                        organization_id,
                        identity,
                        display_name=default_display_name(member),
                        role=Role.MEMBER,
                    ),
                    store_timeout,
                    "user_store",
                )
            except Exception as e:
                logger.error("user_create_failed", identity=identity, error=str(e))
                result.add_error(identity, f"create failed: {e}")
                continue
            result.created += 1
            logger.info("user_created", organization_id=str(organization_id), identity=identity)

        for user in diff.to_reactivate:
            if cancelled():
                break
            if await self._set_active(user, True, store_timeout, result):
                result.reactivated += 1

        for user, display_name in diff.to_rename:
            if cancelled():
                break
            try:
                await with_deadline(
                    self._users.set_display_name(user.id, display_name), store_timeout, "user_store"
                )
            except Exception as e:
                logger.error("user_rename_failed", user_id=str(user.id), error=str(e))
                result.add_error(user.identity, f"rename failed: {e}")
                continue
            result.renamed += 1
            logger.info("user_renamed", user_id=str(user.id), display_name=display_name)

        for user in diff.to_deactivate:
            if cancelled():
                break
            if await self._set_active(user, False, store_timeout, result):
                result.deactivated += 1

        logger.info(
            "reconciliation_completed",
            organization_id=str(organization_id),
            created=result.created,
            reactivated=result.reactivated,
            deactivated=result.deactivated,
            renamed=result.renamed,
            errors=len(result.errors),
            cancelled=result.cancelled,
        )
        return result

    async def _set_active(
        self,
        user: User,
        active: bool,
        timeout: float | None,
        result: ReconciliationResult,
    ) -> bool:
        action = "reactivate" if active else "deactivate"
        try:
            await with_deadline(self._users.set_active(user.id, active), timeout, "user_store")
        except Exception as e:
            logger.error(f"user_{action}_failed", user_id=str(user.id), error=str(e))
            result.add_error(user.identity, f"{action} failed: {e}")
            return False
        logger.info(f"user_{action}d", user_id=str(user.id), identity=user.identity)
        return True
