"""
Discord FUSE Filesystem: mixin composition.

Hierarchy:
- /                    - Mount root (one directory per guild)
- /{guild}/            - Guild directory (one file per text channel)
- /{guild}/{channel}   - Channel file: read = history, write = post

Handle model:
- open(O_RDONLY) → read handle, history fetched on first read and
  frozen for the handle's lifetime
- open(O_WRONLY) → write handle, bytes buffered and sent as one
  message on close
- open(O_RDWR)   → EINVAL
"""

from .base import BaseMixin
from .directory import DirectoryMixin
from .inode import InodeMixin
from .read import ReadMixin
from .write import WriteMixin


class DiscordFS(
    WriteMixin,        # write, flush, release, _send_buffer
    ReadMixin,         # open, read, _fetch_content
    DirectoryMixin,    # lookup, opendir, readdir, releasedir
    InodeMixin,        # getattr, setattr
    BaseMixin,         # __init__, destroy, statfs, xattrs, remote bridge (MUST be last)
):
    """Discord FUSE Filesystem.

    Composed from domain-specific mixins. BaseMixin must be last in MRO
    so its __init__ runs first and sets up all shared state.
    """
    pass


__all__ = ["DiscordFS"]
