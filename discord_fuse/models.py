"""Data models for the FUSE filesystem."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class Community:
    """A guild as returned by the remote service."""
    id: int
    name: str


@dataclass(frozen=True)
class Channel:
    """A text channel inside a guild."""
    id: int
    name: str
    community_id: int
    position: int = 0


@dataclass(frozen=True)
class Message:
    """One message of channel history."""
    id: int
    author: str
    timestamp: Optional[datetime]
    body: str
    attachments: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class Entry:
    """A node of the namespace tree.

    Entry types:
    - root: Mount root (lists communities)
    - community: Guild directory (lists channels)
    - channel: Text channel file (read = history, write = post)
    """
    inode: int
    name: str
    entry_type: str
    parent: Optional[int]
    remote_id: Optional[int] = None


# Directory entry types
DIR_TYPES = frozenset({"root", "community"})


def is_dir_type(entry_type: str) -> bool:
    """Check if entry type is a directory."""
    return entry_type in DIR_TYPES
