"""
Namespace tree: the static inode table for one mount session.

Built once from the guild/channel listing at mount time and never
mutated afterwards, so protocol calls read it without locking.

Layout:
- /                    - inode 1, one directory per guild
- /{guild}/            - one regular file per text channel
- /{guild}/{channel}   - channel history (read) / post (write)

Inodes are assigned by a sequential counter in listing order, keyed by
remote id: a remote entity keeps its inode for the session even if two
entities share a display name.
"""

import logging
from typing import Iterable, Mapping, Optional

import pyfuse3

from .models import Channel, Community, Entry

log = logging.getLogger(__name__)

ROOT_INODE = pyfuse3.ROOT_INODE  # 1
FIRST_DYNAMIC_INODE = ROOT_INODE + 1


def sanitize_name(name: str) -> str:
    """Make a remote display name usable as a single path segment."""
    safe = name.replace("/", "-").replace("\x00", "")
    if safe in (".", ".."):
        safe = safe.replace(".", "_")
    # Limit length to what most filesystems accept (bytes, not chars)
    while len(safe.encode("utf-8")) > 255:
        safe = safe[:-1]
    return safe or "unnamed"


def unique_name(base: str, known_names: set[str]) -> str:
    """Disambiguate a duplicate name as `base (1)`, `base (2)`, ..."""
    if base not in known_names:
        return base
    i = 1
    while f"{base} ({i})" in known_names:
        i += 1
    return f"{base} ({i})"


class NamespaceTree:
    """Bidirectional inode <-> (parent, name) mapping for guilds and channels."""

    def __init__(self):
        self._entries: dict[int, Entry] = {
            ROOT_INODE: Entry(inode=ROOT_INODE, name="", entry_type="root", parent=None),
        }
        self._by_name: dict[tuple[int, str], int] = {}
        self._children: dict[int, list[int]] = {ROOT_INODE: []}
        self._by_remote: dict[tuple[str, int], int] = {}
        self._next_inode = FIRST_DYNAMIC_INODE

    @classmethod
    def build(cls, communities: Iterable[Community],
              channels: Mapping[int, Iterable[Channel]]) -> "NamespaceTree":
        """Construct the tree from a full listing.

        `channels` maps guild id to that guild's text channels. Guilds
        missing from the mapping become empty directories.
        """
        tree = cls()
        for community in communities:
            guild_inode = tree._add("community", community.id, community.name, ROOT_INODE)
            for channel in channels.get(community.id, ()):
                tree._add("channel", channel.id, channel.name, guild_inode)
        log.info(f"Namespace built: {len(tree) - 1} entries")
        return tree

    @classmethod
    async def fetch(cls, client) -> "NamespaceTree":
        """List guilds and channels through `client` and build the tree.

        Any remote failure propagates: a mount without a listing is fatal.
        """
        communities = await client.list_communities()
        channels = {}
        for community in communities:
            channels[community.id] = await client.list_channels(community.id)
            log.debug(f"Guild {community.name!r}: {len(channels[community.id])} text channels")
        return cls.build(communities, channels)

    def _add(self, entry_type: str, remote_id: int, display_name: str, parent: int) -> int:
        key = (entry_type, remote_id)
        if key in self._by_remote:
            # Same remote entity listed twice: keep the first entry
            return self._by_remote[key]

        siblings = {self._entries[i].name for i in self._children[parent]}
        name = unique_name(sanitize_name(display_name), siblings)

        inode = self._next_inode
        self._next_inode += 1

        self._entries[inode] = Entry(
            inode=inode,
            name=name,
            entry_type=entry_type,
            parent=parent,
            remote_id=remote_id,
        )
        self._by_name[(parent, name)] = inode
        self._by_remote[key] = inode
        self._children[parent].append(inode)
        if entry_type == "community":
            self._children[inode] = []
        return inode

    def resolve(self, parent: int, name: str) -> Optional[Entry]:
        """Look up a child of `parent` by path segment."""
        inode = self._by_name.get((parent, name))
        if inode is None:
            return None
        return self._entries[inode]

    def entry(self, inode: int) -> Optional[Entry]:
        """Look up an entry by inode."""
        return self._entries.get(inode)

    def children(self, inode: int) -> list[Entry]:
        """Children in listing order; empty for files and unknown inodes."""
        return [self._entries[i] for i in self._children.get(inode, ())]

    def inode_for(self, entry_type: str, remote_id: int) -> Optional[int]:
        """Inode assigned to a remote guild or channel, if listed."""
        return self._by_remote.get((entry_type, remote_id))

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, inode: int) -> bool:
        return inode in self._entries
