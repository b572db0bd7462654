"""
ReadMixin: File open and read operations.

Handles open (allocating read or write handles) and read with
snapshot-at-first-read caching.

Read contract:
- open never touches the network; the first read fetches and renders
  the channel history into the handle's snapshot
- concurrent first reads on one handle share a single fetch
- once populated the snapshot never changes; reopen to see new messages
- a read past the end returns b"", which is how callers learn the real
  length (st_size is only a placeholder)
"""

import errno
import logging
import os

import pyfuse3

from ..handles import SnapshotClosed
from ..render import fetch_history, render_history

log = logging.getLogger(__name__)


class ReadMixin:
    """File open and read operations."""

    async def open(self, inode: int, flags: int, ctx: pyfuse3.RequestContext) -> pyfuse3.FileInfo:
        """Open a channel file for reading or for writing (not both)."""
        entry = self._get_entry(inode)
        if entry.entry_type != "channel":
            raise pyfuse3.FUSEError(errno.EISDIR)

        accmode = flags & os.O_ACCMODE
        if accmode == os.O_RDWR:
            log.debug(f"open: rejecting O_RDWR on {entry.name}")
            raise pyfuse3.FUSEError(errno.EINVAL)

        mode = "write" if accmode == os.O_WRONLY else "read"
        handle = self._handles.open(mode, inode, entry.remote_id)
        log.debug(f"open: {entry.name} ({mode}) -> fh {handle.fh}")

        # Content length is unknown until first read, so use direct_io
        # to bypass kernel page cache so reads aren't limited by st_size.
        fi = pyfuse3.FileInfo(fh=handle.fh)
        fi.direct_io = True
        fi.keep_cache = False
        return fi

    async def read(self, fh: int, off: int, size: int) -> bytes:
        """Read from the handle's snapshot, populating it on first use."""
        handle = self._handles.get(fh)
        if handle is None:
            raise pyfuse3.FUSEError(errno.EBADF)
        if handle.mode != "read":
            raise pyfuse3.FUSEError(errno.EINVAL)

        channel_id = handle.channel_id
        try:
            content = await handle.snapshot.get(
                lambda: self._fetch_content(channel_id),
                nursery=self._nursery,
                timeout=self.config.fetch_timeout,
            )
        except SnapshotClosed:
            raise pyfuse3.FUSEError(errno.EBADF)
        except Exception as e:
            # RemoteUnavailable, RateLimited, trio.TooSlowError or a bug: all EIO
            raise self._remote_error(f"Failed to read channel {channel_id}", e)

        return content[off:off + size]

    async def _fetch_content(self, channel_id: int) -> bytes:
        """Fetch and render a channel's history."""
        messages = await fetch_history(
            self._api,
            channel_id,
            page_size=self.config.page_size,
            max_pages=self.config.max_pages,
        )
        return render_history(messages, show_timestamps=self.config.show_timestamps)
