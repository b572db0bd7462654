"""
InodeMixin: Attribute resolution.

The inode table itself is the NamespaceTree, built once at mount time;
this mixin only answers getattr/setattr against it.
"""

import errno
import logging

import pyfuse3

from ..models import is_dir_type

log = logging.getLogger(__name__)


class InodeMixin:
    """Attribute resolution for namespace entries."""

    async def getattr(self, inode: int, ctx: pyfuse3.RequestContext = None) -> pyfuse3.EntryAttributes:
        """Get file/directory attributes."""
        entry = self._get_entry(inode)
        return self._make_attr(entry)

    async def setattr(self, inode: int, attr: pyfuse3.EntryAttributes, fields: pyfuse3.SetattrFields,
                      fh: int, ctx: pyfuse3.RequestContext) -> pyfuse3.EntryAttributes:
        """Set file attributes.

        Only truncation to zero is meaningful: `echo hi > channel` opens
        with O_TRUNC, and a fresh write handle is already empty. Other
        attribute changes (touch, chmod) are accepted and ignored.
        """
        entry = self._get_entry(inode)

        if fields.update_size:
            if is_dir_type(entry.entry_type):
                raise pyfuse3.FUSEError(errno.EISDIR)
            if attr.st_size != 0:
                log.debug(f"setattr: refusing truncate of inode {inode} to {attr.st_size}")
                raise pyfuse3.FUSEError(errno.EPERM)
            # ftruncate(fd, 0) on a write handle discards what was written so far
            handle = self._handles.get(fh) if fh is not None else None
            if handle is not None and handle.mode == "write":
                handle.take()

        return await self.getattr(inode, ctx)
