"""Slack channel directory provider.

Membership of one Slack channel is the organization roster. Members are
listed with ``conversations.members`` and resolved to people with
``users.info``; bots and deleted accounts are not members.
"""

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

import httpx

from checkpulse.core.domain_types import DirectoryMember
from checkpulse.core.exceptions import DirectoryProviderError

logger = logging.getLogger(__name__)

SLACK_API_URL = "https://slack.com/api"
FALLBACK_EMAIL_DOMAIN = "slack.local"


@dataclass
class SlackDirectoryConfig:
    """Slack Web API configuration."""

    bot_token: str
    base_url: str = SLACK_API_URL
    timeout_seconds: float = 30.0
    page_size: int = 200
    max_concurrent_lookups: int = 8


class SlackDirectory:
    """Directory provider backed by a Slack channel.

    A lookup failure for any single member fails the whole fetch. A partial
    snapshot would read as those members having left the channel.
    """

    def __init__(
        self,
        config: SlackDirectoryConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.config.base_url,
            headers={"Authorization": f"Bearer {self.config.bot_token}"},
            timeout=self.config.timeout_seconds,
            transport=self._transport,
        )

    async def fetch_members(self, channel_ref: str) -> Sequence[DirectoryMember]:
        """Fetch the people currently in a channel.

        Raises:
            DirectoryProviderError: On transport failure or a Slack API error.
        """
        async with self._client() as client:
            member_ids = await self._list_member_ids(client, channel_ref)
            semaphore = asyncio.Semaphore(self.config.max_concurrent_lookups)

            async def lookup(member_id: str) -> DirectoryMember | None:
                async with semaphore:
                    return await self._lookup_member(client, member_id)

            resolved = await asyncio.gather(*(lookup(m) for m in member_ids))

        members = [m for m in resolved if m is not None]
        logger.info(
            f"Fetched {len(members)} members from Slack channel {channel_ref} "
            f"({len(member_ids) - len(members)} bots or deleted accounts skipped)"
        )
        return members

    async def _list_member_ids(self, client: httpx.AsyncClient, channel: str) -> list[str]:
        member_ids: list[str] = []
        cursor: str | None = None
        while True:
            params: dict[str, Any] = {"channel": channel, "limit": self.config.page_size}
            if cursor:
                params["cursor"] = cursor
            data = await self._call(client, "conversations.members", params)
            member_ids.extend(data.get("members") or [])
            cursor = (data.get("response_metadata") or {}).get("next_cursor")
            if not cursor:
                return member_ids

    async def _lookup_member(
        self, client: httpx.AsyncClient, member_id: str
    ) -> DirectoryMember | None:
        data = await self._call(client, "users.info", {"user": member_id})
        user = data.get("user") or {}
        if user.get("deleted") or user.get("is_bot"):
            return None

        profile = user.get("profile") or {}
        email = profile.get("email")
        if not email:
            # Accounts without a visible email still need a stable identity
            email = f"{member_id}@{FALLBACK_EMAIL_DOMAIN}"
        display_name = (
            profile.get("display_name") or user.get("real_name") or user.get("name") or None
        )
        return DirectoryMember(identity=email, display_name=display_name, external_id=member_id)

    async def _call(
        self, client: httpx.AsyncClient, method: str, params: dict[str, Any]
    ) -> dict[str, Any]:
        try:
            response = await client.get(f"/{method}", params=params)
        except httpx.TimeoutException as e:
            raise DirectoryProviderError(f"Slack {method} timed out") from e
        except httpx.RequestError as e:
            raise DirectoryProviderError(f"Slack {method} request failed: {e}") from e

        if response.status_code == 429:
            retry_after = response.headers.get("Retry-After", "unknown")
            raise DirectoryProviderError(f"Slack {method} rate limited (retry after {retry_after}s)")
        if response.status_code != 200:
            raise DirectoryProviderError(f"Slack {method} returned HTTP {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            raise DirectoryProviderError(f"Slack {method} returned a non-JSON body") from e
        if not isinstance(data, dict):
            raise DirectoryProviderError(f"Slack {method} returned an unexpected payload")
        if not data.get("ok"):
            error = data.get("error", "unknown_error")
            if error == "missing_scope":
                logger.error(
                    f"Slack app is missing scopes for {method}; needed: {data.get('needed')}"
                )
            raise DirectoryProviderError(f"Slack {method} failed: {error}")
        return data
