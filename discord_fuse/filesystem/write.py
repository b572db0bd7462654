"""
WriteMixin: Posting messages by writing to channel files.

Writes on a handle accumulate in its buffer; the buffer is sent as a
single message when the file is closed:

    echo "gm" > /mnt/discord/Home/general

flush() (called on every close()) sends the buffer so a failed post is
reported as the close() error. release() sends whatever is still
buffered (the handle was dropped without a flush) and can
only log failures, since FUSE discards release errors.

One handle can outlive several close() calls when its fd is dup'd or
inherited across fork, as in `{ echo a; echo b; } > general`. Each
close() flushes what was written since the previous one, so such a
handle posts one message per close rather than one per open.
"""

import errno
import logging

import pyfuse3

from ..api_client import MAX_MESSAGE_CHARS
from ..handles import WriteHandle

log = logging.getLogger(__name__)


class WriteMixin:
    """Write buffering and message sending."""

    async def write(self, fh: int, off: int, buf: bytes) -> int:
        """Append to the handle's buffer. Offsets are not honoured."""
        handle = self._handles.get(fh)
        if handle is None:
            raise pyfuse3.FUSEError(errno.EBADF)
        if handle.mode != "write":
            raise pyfuse3.FUSEError(errno.EINVAL)

        if len(handle.buffer) + len(buf) > self.config.max_message_bytes:
            log.error(f"Message exceeds maximum size ({self.config.max_message_bytes} bytes)")
            raise pyfuse3.FUSEError(errno.EFBIG)

        if off != len(handle.buffer):
            log.debug(f"write: fh {fh} offset {off} treated as append at {len(handle.buffer)}")
        return handle.append(buf)

    async def flush(self, fh: int) -> None:
        """Send buffered content on close(); errors are returned to close()."""
        handle = self._handles.get(fh)
        if isinstance(handle, WriteHandle) and handle.buffer:
            await self._send_buffer(handle)

    async def release(self, fh: int) -> None:
        """Release (close) a file. Sends anything still buffered and drops the handle."""
        handle = self._handles.pop(fh)
        if handle is None:
            return

        if handle.mode == "read":
            # Detach any fetch still in flight; its result is discarded
            handle.snapshot.close()
            return

        if handle.buffer:
            try:
                await self._send_buffer(handle)
            except pyfuse3.FUSEError:
                pass  # Logged by _send_buffer; release errors never reach the caller

    async def _send_buffer(self, handle: WriteHandle) -> None:
        """Decode the buffer and send it as one message.

        The buffer is emptied before sending and never re-sent, whether
        or not the send succeeds.
        """
        data = handle.take()
        text = data.decode("utf-8", errors="replace")
        entry = self._tree.entry(handle.inode)
        name = entry.name if entry else handle.channel_id

        if len(text) > MAX_MESSAGE_CHARS:
            log.error(f"Not sending to {name}: {len(text)} characters exceeds the {MAX_MESSAGE_CHARS} limit")
            raise pyfuse3.FUSEError(errno.EFBIG)

        log.info(f"Sending message to {name} ({len(data)} bytes)")
        try:
            await self._run_detached(
                f"Send to {name}",
                lambda: self._api.send_message(handle.channel_id, text),
                timeout=self.config.flush_timeout,
            )
        except Exception as e:
            raise self._remote_error(f"Failed to send message to {name}", e)
