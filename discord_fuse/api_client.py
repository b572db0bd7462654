"""HTTP API client for the Discord REST API."""

import logging
from datetime import datetime
from typing import Optional

import httpx

from .models import Channel, Community, Message

log = logging.getLogger(__name__)

DEFAULT_API_URL = "https://discord.com/api/v10"

# Channel type 0 is GUILD_TEXT; voice, category, forum etc. have no readable history
TEXT_CHANNEL_TYPES = frozenset({0})

# Service-side bounds
MAX_MESSAGES_PER_PAGE = 100
MAX_GUILDS_PER_PAGE = 200
MAX_MESSAGE_CHARS = 2000


class RemoteUnavailable(Exception):
    """Network, auth, or server failure talking to the remote service."""


class RateLimited(RemoteUnavailable):
    """The service throttled us (HTTP 429). Transient."""

    def __init__(self, message: str, retry_after: float = 0.0):
        super().__init__(message)
        self.retry_after = retry_after


class DiscordClient:
    """Async HTTP client for the Discord API with bot-token auth."""

    def __init__(self, token: str, api_url: str = DEFAULT_API_URL, timeout: float = 30.0,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self._token = token
        self._transport = transport

        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.api_url,
                timeout=self.timeout,
                transport=self._transport,
                headers={
                    "Authorization": f"Bot {self._token}",
                    "User-Agent": "DiscordBot (discord-fuse, 0.1)",
                },
            )
        return self._client

    async def _request(self, method: str, path: str, **kwargs):
        """Make an authenticated request, translating failures to RemoteUnavailable."""
        client = await self._get_client()
        try:
            response = await client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise RemoteUnavailable(f"{method} {path} failed: {e}") from e

        if response.status_code == 429:
            retry_after = _retry_after(response)
            log.warning(f"Rate limited on {method} {path}, retry after {retry_after}s")
            raise RateLimited(f"{method} {path} rate limited", retry_after=retry_after)

        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise RemoteUnavailable(f"{method} {path} returned {response.status_code}") from e

        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    async def get(self, path: str, params: Optional[dict] = None):
        """Make authenticated GET request to API."""
        return await self._request("GET", path, params=params)

    async def post(self, path: str, json: dict = None):
        """Make authenticated POST request to API."""
        return await self._request("POST", path, json=json)

    # ── Remote data source ──────────────────────────────────────────────

    async def list_communities(self) -> list[Community]:
        """List every guild the bot is a member of."""
        communities: list[Community] = []
        after = 0
        while True:
            page = await self.get(
                "/users/@me/guilds",
                params={"after": str(after), "limit": MAX_GUILDS_PER_PAGE},
            ) or []
            for guild in page:
                communities.append(Community(id=int(guild["id"]), name=guild.get("name", "")))
            if len(page) < MAX_GUILDS_PER_PAGE:
                break
            after = int(page[-1]["id"])
        log.debug(f"Listed {len(communities)} guilds")
        return communities

    async def list_channels(self, community_id: int) -> list[Channel]:
        """List text channels of a guild in sidebar order."""
        data = await self.get(f"/guilds/{community_id}/channels") or []
        channels = [
            Channel(
                id=int(ch["id"]),
                name=ch.get("name", ""),
                community_id=community_id,
                position=ch.get("position", 0),
            )
            for ch in data
            if ch.get("type") in TEXT_CHANNEL_TYPES
        ]
        channels.sort(key=lambda ch: (ch.position, ch.id))
        return channels

    async def fetch_messages(self, channel_id: int, before: Optional[int] = None,
                             limit: int = MAX_MESSAGES_PER_PAGE) -> list[Message]:
        """Fetch one page of history, newest first, strictly older than `before`."""
        params = {"limit": max(1, min(limit, MAX_MESSAGES_PER_PAGE))}
        if before is not None:
            params["before"] = str(before)
        data = await self.get(f"/channels/{channel_id}/messages", params=params) or []
        return [_parse_message(m) for m in data]

    async def send_message(self, channel_id: int, text: str) -> None:
        """Post a message to a channel."""
        await self.post(f"/channels/{channel_id}/messages", json={"content": text})
        log.debug(f"Sent {len(text)} chars to channel {channel_id}")

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None


def _retry_after(response: httpx.Response) -> float:
    """Extract retry delay from a 429 response body or header."""
    try:
        return float(response.json().get("retry_after", 0.0))
    except (ValueError, AttributeError):
        pass
    try:
        return float(response.headers.get("Retry-After", 0.0))
    except ValueError:
        return 0.0


def _format_author(author: dict) -> str:
    name = author.get("username") or "unknown"
    discriminator = author.get("discriminator")
    # Migrated accounts report discriminator "0"
    if discriminator and discriminator != "0":
        return f"{name}#{discriminator}"
    return name


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        log.debug(f"Unparseable timestamp: {value!r}")
        return None


def _parse_message(data: dict) -> Message:
    return Message(
        id=int(data["id"]),
        author=_format_author(data.get("author", {})),
        timestamp=_parse_timestamp(data.get("timestamp")),
        body=data.get("content", ""),
        attachments=tuple(a["url"] for a in data.get("attachments", []) if a.get("url")),
    )
