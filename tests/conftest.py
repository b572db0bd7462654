"""
Pytest fixtures for discord-fuse tests.

Provides:
- anyio backend pinned to trio (pyfuse3 runs on trio)
- FakeDiscord: in-memory remote data source with call counters
- Builders for a DiscordFS over the "Home/general" fixture
"""

from datetime import datetime, timezone
from typing import Optional
from unittest.mock import MagicMock

import pyfuse3
import pytest
import trio

from discord_fuse.api_client import RemoteUnavailable
from discord_fuse.config import FuseConfig
from discord_fuse.filesystem import DiscordFS
from discord_fuse.models import Channel, Community, Message
from discord_fuse.namespace import NamespaceTree

HOME_ID = 1000
GENERAL_ID = 2000


@pytest.fixture
def anyio_backend():
    return "trio"


class FakeDiscord:
    """Remote data source double.

    Messages are stored oldest first; fetch_messages serves them newest
    first like the real API. Set `gate` to a trio.Event to hold fetches
    until it is set, or `fail_fetch`/`fail_send` to simulate outages.
    """

    def __init__(self):
        self.communities: list[Community] = []
        self.channels: dict[int, list[Channel]] = {}
        self.messages: dict[int, list[Message]] = {}
        self.fetch_calls = 0
        self.sent: list[tuple[int, str]] = []
        self.gate: Optional[trio.Event] = None
        self.fail_fetch = False
        self.fail_send = False
        self.closed = False
        self._next_id = 1

    def add_community(self, community_id: int, name: str) -> None:
        self.communities.append(Community(id=community_id, name=name))
        self.channels.setdefault(community_id, [])

    def add_channel(self, community_id: int, channel_id: int, name: str) -> None:
        self.channels[community_id].append(Channel(id=channel_id, name=name, community_id=community_id))
        self.messages.setdefault(channel_id, [])

    def post(self, channel_id: int, author: str, body: str) -> Message:
        message = Message(
            id=self._next_id,
            author=author,
            timestamp=datetime(2024, 1, 1, 12, self._next_id % 60, tzinfo=timezone.utc),
            body=body,
        )
        self._next_id += 1
        self.messages[channel_id].append(message)
        return message

    async def list_communities(self):
        return list(self.communities)

    async def list_channels(self, community_id):
        return list(self.channels.get(community_id, []))

    async def fetch_messages(self, channel_id, before=None, limit=100):
        self.fetch_calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_fetch:
            raise RemoteUnavailable("fetch failed")
        history = [m for m in self.messages.get(channel_id, []) if before is None or m.id < before]
        return list(reversed(history))[:limit]

    async def send_message(self, channel_id, text):
        if self.fail_send:
            raise RemoteUnavailable("send failed")
        self.sent.append((channel_id, text))
        self.post(channel_id, "bot", text)

    async def close(self):
        self.closed = True


def make_home_fixture() -> FakeDiscord:
    """One guild "Home" with one channel "general" holding two messages."""
    fake = FakeDiscord()
    fake.add_community(HOME_ID, "Home")
    fake.add_channel(HOME_ID, GENERAL_ID, "general")
    fake.post(GENERAL_ID, "alice", "hi")
    fake.post(GENERAL_ID, "bob", "hello")
    return fake


def make_fs(fake: FakeDiscord, config: FuseConfig = None) -> DiscordFS:
    """Build a DiscordFS over `fake` without mounting anything."""
    tree = NamespaceTree.build(fake.communities, fake.channels)
    return DiscordFS(tree, fake, config or FuseConfig(token="test-token"))


def mock_ctx():
    """Create a mock pyfuse3.RequestContext."""
    ctx = MagicMock(spec=pyfuse3.RequestContext)
    ctx.uid = 1000
    ctx.gid = 1000
    ctx.pid = 12345
    return ctx


@pytest.fixture
def fake():
    return make_home_fixture()


@pytest.fixture
def fs(fake):
    return make_fs(fake)
