"""
BaseMixin: Lifecycle, configuration, and core FUSE plumbing.

Handles init, destroy, nursery setup, access checks, statfs, extended
attributes, shared attribute helpers, and the bridge that runs remote
calls as background tasks so an abandoned FUSE request never leaves a
half-finished network operation attached to a handle.
"""

import errno
import logging
import os
import stat
import time
from typing import Awaitable, Callable, Optional

import pyfuse3
import trio

from ..api_client import DiscordClient, RemoteUnavailable
from ..config import FuseConfig
from ..handles import HandleTable
from ..models import Entry, is_dir_type
from ..namespace import ROOT_INODE, NamespaceTree

log = logging.getLogger(__name__)


class BaseMixin(pyfuse3.Operations):
    """Lifecycle, configuration, and core FUSE plumbing."""

    ROOT_INODE = ROOT_INODE  # 1

    # Nominal st_size for directories
    DIR_SIZE = 4096

    # Extended attributes
    _XATTR_ID = b"user.discord.id"

    def __init__(self, tree: NamespaceTree, api: DiscordClient, config: FuseConfig = None):
        super().__init__()
        self.config = config or FuseConfig()

        # Static namespace, built at mount time and owned by this mount
        self._tree = tree

        # Remote data source
        self._api = api

        # Open file handles (read snapshots / write buffers)
        self._handles = HandleTable()

        # Background tasks (fetches and sends outliving their request)
        self._nursery: Optional[trio.Nursery] = None

        # Every entry reports the mount time; the remote side has no mtimes
        self._mount_time_ns = time.time_ns()

    def _make_attr(self, entry: Entry) -> pyfuse3.EntryAttributes:
        """Create file attributes."""
        attr = pyfuse3.EntryAttributes()
        attr.st_ino = entry.inode

        if is_dir_type(entry.entry_type):
            attr.st_mode = stat.S_IFDIR | 0o555
            attr.st_nlink = 2
            attr.st_size = self.DIR_SIZE
        else:
            # Channel files: true length is unknown until read, so report a
            # placeholder large enough that size-aware readers keep going
            # until a short read marks end of content.
            attr.st_mode = stat.S_IFREG | 0o644
            attr.st_nlink = 1
            attr.st_size = self.config.placeholder_size

        attr.st_atime_ns = self._mount_time_ns
        attr.st_mtime_ns = self._mount_time_ns
        attr.st_ctime_ns = self._mount_time_ns
        attr.st_uid = os.getuid()
        attr.st_gid = os.getgid()
        return attr

    def _get_entry(self, inode: int) -> Entry:
        """Resolve an inode or fail with ENOENT."""
        entry = self._tree.entry(inode)
        if entry is None:
            raise pyfuse3.FUSEError(errno.ENOENT)
        return entry

    async def statfs(self, ctx: pyfuse3.RequestContext) -> pyfuse3.StatvfsData:
        """Return filesystem stats. Required for file managers and df."""
        s = pyfuse3.StatvfsData()
        s.f_bsize = 4096
        s.f_frsize = 4096
        s.f_blocks = 0
        s.f_bfree = 0
        s.f_bavail = 0
        s.f_files = len(self._tree)
        s.f_ffree = 0
        s.f_favail = 0
        s.f_namemax = 255
        return s

    async def access(self, inode: int, mode: int, ctx: pyfuse3.RequestContext) -> bool:
        """Permission check. Always allowed; open and write do their own gating."""
        return True

    def set_nursery(self, nursery: trio.Nursery):
        """Set the trio nursery for background tasks. Called by main.py."""
        self._nursery = nursery

    # ── Remote call bridge ────────────────────────────────────────────

    async def _run_detached(self, description: str, fn: Callable[[], Awaitable[None]],
                            timeout: float) -> None:
        """Run a remote call in the nursery and wait up to `timeout` for it.

        If the wait is cancelled or times out the call keeps running in
        the background; its outcome is only logged. Raises whatever the
        call raised, or trio.TooSlowError.
        """
        if self._nursery is None:
            with trio.fail_after(timeout):
                await fn()
            return

        done = trio.Event()
        failure: list[Exception] = []
        waiting = True

        async def _task():
            try:
                await fn()
            except Exception as e:
                failure.append(e)
                if not waiting:
                    log.error(f"{description} failed after caller gave up: {e}")
            else:
                if not waiting:
                    log.info(f"{description} completed after caller gave up")
            finally:
                done.set()

        self._nursery.start_soon(_task)
        try:
            with trio.fail_after(timeout):
                await done.wait()
        finally:
            waiting = False

        if failure:
            raise failure[0]

    def _remote_error(self, what: str, e: Exception) -> pyfuse3.FUSEError:
        """Log a remote failure and translate it to EIO."""
        if isinstance(e, trio.TooSlowError):
            log.error(f"{what}: timed out waiting for Discord")
        elif isinstance(e, RemoteUnavailable):
            log.error(f"{what}: {e}")
        else:
            log.exception(f"{what}: unexpected error")
        return pyfuse3.FUSEError(errno.EIO)

    # ── Extended attributes ─────────────────────────────────────────────

    async def getxattr(self, inode: int, name: bytes, ctx: pyfuse3.RequestContext) -> bytes:
        """Get extended attribute. Exposes the remote snowflake id."""
        entry = self._get_entry(inode)
        if name == self._XATTR_ID and entry.remote_id is not None:
            return str(entry.remote_id).encode("utf-8")
        raise pyfuse3.FUSEError(errno.ENODATA)

    async def listxattr(self, inode: int, ctx: pyfuse3.RequestContext) -> list[bytes]:
        """List available extended attributes."""
        entry = self._get_entry(inode)
        if entry.remote_id is not None:
            return [self._XATTR_ID]
        return []

    # ── Lifecycle ─────────────────────────────────────────────────────

    async def destroy(self) -> None:
        """Clean up resources on unmount. Sends pending write buffers first.

        pyfuse3 has no teardown callback, so run_mount calls this after
        pyfuse3.main() returns, while the nursery is still open.
        """
        log.info("Destroying filesystem, cleaning up resources")

        pending = [h for h in self._handles.write_handles() if h.buffer]
        if pending:
            log.info(f"Sending {len(pending)} unsent message(s) before unmount")
            for handle in pending:
                try:
                    await self._send_buffer(handle)
                except pyfuse3.FUSEError:
                    pass  # Already logged by _send_buffer

        await self._api.close()
