"""Tests for snapshots, write buffers and handle allocation."""

import pytest
import trio
import trio.testing

from discord_fuse.handles import HandleTable, ReadHandle, Snapshot, SnapshotClosed, WriteHandle


class TestSnapshot:

    @pytest.mark.anyio
    async def test_populates_once(self):
        calls = []

        async def fetch():
            calls.append(1)
            return b"data"

        snapshot = Snapshot()
        assert snapshot.state == "pending"
        assert await snapshot.get(fetch) == b"data"
        assert await snapshot.get(fetch) == b"data"
        assert snapshot.state == "populated"
        assert len(calls) == 1

    @pytest.mark.anyio
    async def test_error_leaves_pending(self):
        async def fetch():
            raise ValueError("boom")

        snapshot = Snapshot()
        with pytest.raises(ValueError):
            await snapshot.get(fetch)
        assert snapshot.state == "pending"

    @pytest.mark.anyio
    async def test_cancelled_inline_fetch_lets_next_caller_retry(self):
        gate = trio.Event()
        calls = []

        async def fetch():
            calls.append(1)
            await gate.wait()
            return b"data"

        snapshot = Snapshot()
        with trio.move_on_after(0.01):
            await snapshot.get(fetch)
        assert snapshot.state == "pending"

        gate.set()
        assert await snapshot.get(fetch) == b"data"
        assert len(calls) == 2

    @pytest.mark.anyio
    async def test_one_waiter_timing_out_does_not_abandon_flight(self):
        gate = trio.Event()
        calls = []

        async def fetch():
            calls.append(1)
            await gate.wait()
            return b"data"

        snapshot = Snapshot()
        results = []

        async with trio.open_nursery() as nursery:
            async def patient():
                results.append(await snapshot.get(fetch, nursery=nursery))

            async def impatient():
                with pytest.raises(trio.TooSlowError):
                    await snapshot.get(fetch, nursery=nursery, timeout=0.01)

            nursery.start_soon(patient)
            await trio.testing.wait_all_tasks_blocked()
            await impatient()
            assert snapshot.state == "populating"
            gate.set()

        assert results == [b"data"]
        assert len(calls) == 1

    @pytest.mark.anyio
    async def test_closed_snapshot_refuses_reads(self):
        async def fetch():
            return b"data"

        snapshot = Snapshot()
        snapshot.close()
        with pytest.raises(SnapshotClosed):
            await snapshot.get(fetch)


class TestWriteHandle:

    def test_append_and_take(self):
        handle = WriteHandle(fh=1, inode=5, channel_id=10)
        assert handle.append(b"ab") == 2
        handle.append(b"cd")
        assert handle.take() == b"abcd"
        assert handle.take() == b""


class TestHandleTable:

    def test_open_allocates_by_mode(self):
        table = HandleTable()
        r = table.open("read", 5, 10)
        w = table.open("write", 5, 10)
        assert isinstance(r, ReadHandle)
        assert isinstance(w, WriteHandle)
        assert table.write_handles() == [w]
        assert len(table) == 2

    def test_handle_numbers_are_not_reused(self):
        table = HandleTable()
        first = table.open("read", 5, 10)
        table.pop(first.fh)
        second = table.open("read", 5, 10)
        assert second.fh != first.fh
        assert table.get(first.fh) is None
        assert table.pop(first.fh) is None
