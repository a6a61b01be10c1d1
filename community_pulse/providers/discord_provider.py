"""
Discord REST provider.

Uses the bot REST API:
- ``GET /invites/{code}`` to resolve invite links to guild ids
- ``GET /guilds/{id}?with_counts=true`` for member/presence counts,
  boost tier and features
- ``GET /guilds/{id}/channels`` for channel and voice channel counts
- ``GET /guilds/{id}/widget.json`` for voice occupancy

The REST API has no voice state endpoint, so occupancy comes from the
server widget: its member list carries ``channel_id`` for everyone sitting
in a voice channel visible to @everyone. Widget member ids are widget-scoped
and the list is capped at 100 online members. When the widget is disabled
the snapshot carries ``voice_channels=None`` and occupancy is tracked from
inbound voice events alone.
"""

import logging
from datetime import datetime, timezone
from typing import Any

from community_pulse.config.settings import Settings, get_settings
from community_pulse.providers.base import BaseProvider
from community_pulse.providers.http_client import HTTPClient, HTTPClientError, RetryConfig
from community_pulse.providers.schemas import RawSnapshot, VoiceChannelSnapshot, VoiceOccupant

logger = logging.getLogger(__name__)

DISCORD_EPOCH_MS = 1420070400000
CDN_BASE = "https://cdn.discordapp.com"

# Channel types that count as voice (GUILD_VOICE, GUILD_STAGE_VOICE)
VOICE_CHANNEL_TYPES = frozenset({2, 13})


def invite_code(reference: str) -> str:
    """Reduce an invite URL to its code.

    ``https://discord.gg/abc`` and ``discord.com/invite/abc`` both give ``abc``.
    """
    return reference.rstrip("/").rsplit("/", 1)[-1]


def snowflake_timestamp(snowflake: str) -> datetime:
    """Creation time encoded in a Discord snowflake id."""
    ms = (int(snowflake) >> 22) + DISCORD_EPOCH_MS
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc)


def voice_occupancy(
    channels: list[dict[str, Any]],
    widget: dict[str, Any],
) -> tuple[VoiceChannelSnapshot, ...]:
    """Voice channels with their occupants, from the guild widget.

    Every guild voice channel is listed, empty ones included. A channel
    only the widget knows about is named from the widget.
    """
    names = {
        str(c["id"]): c.get("name", "")
        for c in channels
        if c.get("type") in VOICE_CHANNEL_TYPES
    }
    for c in widget.get("channels", ()):
        names.setdefault(str(c["id"]), c.get("name", ""))

    seated: dict[str, list[VoiceOccupant]] = {}
    for member in widget.get("members", ()):
        channel_id = member.get("channel_id")
        if not channel_id:
            continue
        seated.setdefault(str(channel_id), []).append(
            VoiceOccupant(
                user_id=str(member["id"]),
                username=member.get("username", ""),
                avatar_url=member.get("avatar_url"),
            )
        )

    return tuple(
        VoiceChannelSnapshot(
            channel_id=channel_id,
            name=names.get(channel_id, ""),
            occupants=tuple(seated.get(channel_id, ())),
        )
        for channel_id in {**names, **dict.fromkeys(seated)}
    )


class DiscordProvider(BaseProvider):
    """Fetches guild snapshots from the Discord REST API."""

    def __init__(
        self,
        token: str | None = None,
        api_base: str | None = None,
        http_client: HTTPClient | None = None,
        settings: Settings | None = None,
    ):
        settings = settings or get_settings()
        super().__init__(
            failure_threshold=settings.upstream_failure_threshold,
            recovery_timeout=settings.upstream_recovery_timeout,
        )
        self._token = token if token is not None else settings.discord_bot_token
        self._api_base = (api_base or settings.discord_api_base).rstrip("/")
        self._http = http_client or HTTPClient(
            retry_config=RetryConfig(
                max_retries=settings.max_http_retries,
                max_backoff_seconds=settings.max_backoff_seconds,
            ),
            timeout=settings.fetch_timeout_seconds,
            headers={"Authorization": f"Bot {self._token}"} if self._token else None,
        )

    @property
    def name(self) -> str:
        return "discord"

    @property
    def configured(self) -> bool:
        return bool(self._token)

    async def start(self) -> None:
        await self._http.open()

    async def close(self) -> None:
        await self._http.close()

    async def _resolve_reference(self, token: str) -> str:
        code = invite_code(token)
        response = await self._http.get(f"{self._api_base}/invites/{code}")
        guild = response.json().get("guild") or {}
        guild_id = guild.get("id")
        if not guild_id:
            raise ValueError(f"Invite {code!r} does not point at a guild")
        return str(guild_id)

    async def _fetch_snapshot(self, provider_id: str) -> RawSnapshot:
        guild_resp = await self._http.get(
            f"{self._api_base}/guilds/{provider_id}",
            params={"with_counts": "true"},
        )
        channels_resp = await self._http.get(
            f"{self._api_base}/guilds/{provider_id}/channels",
        )
        widget = await self._fetch_widget(provider_id)
        return self._transform(guild_resp.json(), channels_resp.json(), widget)

    async def _fetch_widget(self, provider_id: str) -> dict[str, Any] | None:
        """Widget payload, or None when the guild has its widget disabled."""
        try:
            response = await self._http.get(f"{self._api_base}/guilds/{provider_id}/widget.json")
        except HTTPClientError as e:
            if not e.is_client_error:
                raise
            logger.debug("Widget unavailable for guild %s: %s", provider_id, e)
            return None
        return response.json()

    def _transform(
        self,
        guild: dict[str, Any],
        channels: list[dict[str, Any]],
        widget: dict[str, Any] | None = None,
    ) -> RawSnapshot:
        """Convert Discord payloads to a RawSnapshot."""
        guild_id = str(guild["id"])
        icon_hash = guild.get("icon")
        icon_url = None
        if icon_hash:
            ext = "gif" if icon_hash.startswith("a_") else "png"
            icon_url = f"{CDN_BASE}/icons/{guild_id}/{icon_hash}.{ext}?size=256"

        voice_count = sum(1 for c in channels if c.get("type") in VOICE_CHANNEL_TYPES)

        return RawSnapshot(
            provider_id=guild_id,
            name=guild.get("name", ""),
            member_count=guild["approximate_member_count"],
            online_count=guild["approximate_presence_count"],
            channel_count=len(channels),
            voice_channel_count=voice_count,
            voice_channels=voice_occupancy(channels, widget) if widget is not None else None,
            boost_level=guild.get("premium_tier") or 0,
            boost_count=guild.get("premium_subscription_count") or 0,
            created_at=snowflake_timestamp(guild_id),
            features=tuple(guild.get("features", ())),
            icon_url=icon_url,
        )
