"""
Open file handles: per-open read snapshots and write buffers.

A read handle owns a Snapshot: the rendered channel history captured
by the first read after open and never refreshed for that handle. A
write handle owns a buffer of bytes that is sent as one message when
the file is closed.

Snapshot states:
  pending    → nothing fetched yet (or the last fetch failed)
  populating → a fetch is in flight; concurrent readers wait on it
  populated  → content fixed until release

Single-flight: the first reader starts a Flight; readers arriving while
it runs wait on the same Flight instead of fetching again. If every
waiter gives up (cancelled or timed out) the Flight is detached. It
runs to completion in the background and its result is thrown away.
"""

import logging
import math
from typing import Awaitable, Callable, Optional, Union

import trio

log = logging.getLogger(__name__)


class SnapshotClosed(Exception):
    """The handle was released while a read was waiting on it."""


class Flight:
    """One in-flight fetch shared by every reader waiting on it."""

    def __init__(self):
        self.done = trio.Event()
        self.error: Optional[Exception] = None
        self.waiters = 0
        self.abandoned = False


class Snapshot:
    """Lazily populated, immutable content of one read handle."""

    def __init__(self):
        self._data: Optional[bytes] = None
        self._flight: Optional[Flight] = None
        self._closed = False

    @property
    def state(self) -> str:
        if self._data is not None:
            return "populated"
        if self._flight is not None:
            return "populating"
        return "pending"

    @property
    def data(self) -> Optional[bytes]:
        return self._data

    async def get(self, fetch: Callable[[], Awaitable[bytes]],
                  nursery: Optional[trio.Nursery] = None,
                  timeout: float = math.inf) -> bytes:
        """Return the snapshot, populating it through `fetch` if needed.

        With a nursery the fetch runs as a background task, so a caller
        that times out leaves it running; without one the first caller
        runs it inline. Fetch errors are raised to every waiter and leave
        the snapshot pending so a later call can retry.
        """
        while self._data is None:
            if self._closed:
                raise SnapshotClosed()

            flight = self._flight
            inline = False
            if flight is None:
                flight = Flight()
                self._flight = flight
                if nursery is not None:
                    nursery.start_soon(self._run, flight, fetch)
                else:
                    inline = True

            flight.waiters += 1
            try:
                with trio.fail_after(timeout):
                    if inline:
                        await self._run(flight, fetch)
                    else:
                        await flight.done.wait()
            finally:
                flight.waiters -= 1
                if not flight.done.is_set() and flight.waiters == 0:
                    self._abandon(flight)

            if flight.error is not None:
                raise flight.error

        return self._data

    async def _run(self, flight: Flight, fetch: Callable[[], Awaitable[bytes]]) -> None:
        try:
            data = await fetch()
        except Exception as e:
            flight.error = e
            if flight.abandoned:
                log.debug(f"Abandoned fetch failed: {e}")
        else:
            if flight.abandoned or self._closed:
                log.debug(f"Discarding abandoned fetch result ({len(data)} bytes)")
            elif self._data is None:
                self._data = data
        finally:
            if self._flight is flight:
                self._flight = None
            flight.done.set()

    def _abandon(self, flight: Flight) -> None:
        flight.abandoned = True
        if self._flight is flight:
            self._flight = None

    def close(self) -> None:
        """Detach any in-flight fetch; waiting readers get SnapshotClosed."""
        self._closed = True
        if self._flight is not None:
            self._abandon(self._flight)


class ReadHandle:
    """Handle opened for reading a channel's history."""

    mode = "read"

    def __init__(self, fh: int, inode: int, channel_id: int):
        self.fh = fh
        self.inode = inode
        self.channel_id = channel_id
        self.snapshot = Snapshot()


class WriteHandle:
    """Handle opened for posting to a channel."""

    mode = "write"

    def __init__(self, fh: int, inode: int, channel_id: int):
        self.fh = fh
        self.inode = inode
        self.channel_id = channel_id
        self.buffer = bytearray()

    def append(self, data: bytes) -> int:
        self.buffer += data
        return len(data)

    def take(self) -> bytes:
        """Return the buffered bytes and empty the buffer."""
        data = bytes(self.buffer)
        self.buffer.clear()
        return data


OpenHandle = Union[ReadHandle, WriteHandle]


class HandleTable:
    """File handle allocation. Numbers are never reused within a mount."""

    def __init__(self):
        self._handles: dict[int, OpenHandle] = {}
        self._next_fh = 1

    def open(self, mode: str, inode: int, channel_id: int) -> OpenHandle:
        fh = self._next_fh
        self._next_fh += 1
        if mode == "write":
            handle = WriteHandle(fh, inode, channel_id)
        else:
            handle = ReadHandle(fh, inode, channel_id)
        self._handles[fh] = handle
        return handle

    def get(self, fh: int) -> Optional[OpenHandle]:
        return self._handles.get(fh)

    def pop(self, fh: int) -> Optional[OpenHandle]:
        return self._handles.pop(fh, None)

    def write_handles(self) -> list[WriteHandle]:
        return [h for h in self._handles.values() if isinstance(h, WriteHandle)]

    def __len__(self) -> int:
        return len(self._handles)
