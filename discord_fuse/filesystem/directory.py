"""
DirectoryMixin: Directory listing and lookup.

Handles lookup, opendir/releasedir and readdir. Every answer comes from
the in-memory NamespaceTree, so none of these calls touch the network.
"""

import errno
import logging

import pyfuse3

from ..models import is_dir_type

log = logging.getLogger(__name__)


class DirectoryMixin:
    """Directory listing and lookup."""

    async def lookup(self, parent_inode: int, name: bytes, ctx: pyfuse3.RequestContext = None) -> pyfuse3.EntryAttributes:
        """Look up a directory entry by name."""
        name_str = name.decode("utf-8", errors="surrogateescape")
        log.debug(f"lookup: parent={parent_inode}, name={name_str}")

        parent_entry = self._get_entry(parent_inode)
        if not is_dir_type(parent_entry.entry_type):
            raise pyfuse3.FUSEError(errno.ENOTDIR)

        entry = self._tree.resolve(parent_inode, name_str)
        if entry is None:
            raise pyfuse3.FUSEError(errno.ENOENT)
        return self._make_attr(entry)

    async def opendir(self, inode: int, ctx: pyfuse3.RequestContext) -> int:
        """Open a directory, return file handle."""
        entry = self._get_entry(inode)
        if not is_dir_type(entry.entry_type):
            raise pyfuse3.FUSEError(errno.ENOTDIR)

        return inode  # Use inode as file handle

    async def releasedir(self, fh: int) -> None:
        """Release (close) a directory handle. No-op, inodes are the handles."""
        pass

    async def readdir(self, fh: int, start_id: int, token: pyfuse3.ReaddirToken) -> None:
        """Read directory contents: guilds under root, channels under a guild."""
        log.debug(f"readdir: fh={fh}, start_id={start_id}")

        entry = self._get_entry(fh)
        if not is_dir_type(entry.entry_type):
            raise pyfuse3.FUSEError(errno.ENOTDIR)

        # Emit entries starting from start_id
        for idx, child in enumerate(self._tree.children(fh)):
            if idx < start_id:
                continue
            attr = self._make_attr(child)
            if not pyfuse3.readdir_reply(token, child.name.encode("utf-8", errors="surrogateescape"), attr, idx + 1):
                break
