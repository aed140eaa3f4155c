"""Tests for batched chunk transfer scheduling and retry."""

import asyncio

import pytest

from common.exceptions import (
    ChecksumMismatchError,
    DownloadFailedError,
    TransferCancelledError,
    UploadFailedError,
)
from common.types import BackendName
from sharding.progress import UploadProgressAggregator
from sharding.scheduler import Direction, TransferOperation, TransferScheduler


def make_op(index, action, backend=BackendName.PINATA):
    return TransferOperation(index=index, backend=backend, action=action)


def succeed_with(value, delay=0.0):
    async def action():
        await asyncio.sleep(delay)
        return value
    return action


def fail_times(times, value):
    """Action that raises ConnectionError ``times`` times, then returns value."""
    calls = {'count': 0}

    async def action():
        calls['count'] += 1
        if calls['count'] <= times:
            raise ConnectionError("network down")
        return value

    action.calls = calls
    return action


@pytest.fixture
def scheduler():
    return TransferScheduler(batch_size=2, max_retries=3, retry_base_delay=0)


class TestTransferScheduler:
    """Batch execution, ordering and failure handling."""

    @pytest.mark.asyncio
    async def test_results_follow_operation_order(self, scheduler):
        ops = [
            make_op(0, succeed_with("a", 0.03)),
            make_op(1, succeed_with("b", 0.0)),
            make_op(2, succeed_with("c", 0.01)),
        ]

        assert await scheduler.run(ops) == ["a", "b", "c"]

    @pytest.mark.asyncio
    async def test_empty_operation_list(self, scheduler):
        assert await scheduler.run([]) == []

    @pytest.mark.asyncio
    async def test_batches_never_exceed_batch_size(self):
        scheduler = TransferScheduler(batch_size=2, retry_base_delay=0)
        running = {'now': 0, 'peak': 0}

        async def action():
            running['now'] += 1
            running['peak'] = max(running['peak'], running['now'])
            await asyncio.sleep(0.01)
            running['now'] -= 1
            return True

        await scheduler.run([make_op(i, action) for i in range(7)])

        assert running['peak'] == 2

    @pytest.mark.asyncio
    async def test_downloads_use_their_own_batch_size(self):
        scheduler = TransferScheduler(batch_size=4, download_batch_size=1, retry_base_delay=0)
        running = {'now': 0, 'peak': 0}

        async def action():
            running['now'] += 1
            running['peak'] = max(running['peak'], running['now'])
            await asyncio.sleep(0.01)
            running['now'] -= 1
            return True

        await scheduler.run([make_op(i, action) for i in range(4)], Direction.DOWNLOAD)
        assert running['peak'] == 1

        await scheduler.run([make_op(i, action) for i in range(4)], Direction.UPLOAD)
        assert running['peak'] == 4

    @pytest.mark.asyncio
    async def test_transient_failure_is_retried(self, scheduler):
        action = fail_times(2, "ok")

        assert await scheduler.run([make_op(0, action)]) == ["ok"]
        assert action.calls['count'] == 3

    @pytest.mark.asyncio
    async def test_exhausted_upload_raises_upload_failed(self, scheduler):
        action = fail_times(10, "never")

        with pytest.raises(UploadFailedError) as exc_info:
            await scheduler.run([make_op(4, action, BackendName.LIGHTHOUSE)])

        error = exc_info.value
        assert error.chunk_index == 4
        assert error.backend == "lighthouse"
        assert isinstance(error.last_error, ConnectionError)
        assert action.calls['count'] == 3

    @pytest.mark.asyncio
    async def test_exhausted_download_raises_download_failed(self, scheduler):
        with pytest.raises(DownloadFailedError):
            await scheduler.run([make_op(0, fail_times(10, None))], Direction.DOWNLOAD)

    @pytest.mark.asyncio
    async def test_non_retriable_error_propagates_unchanged(self, scheduler):
        calls = {'count': 0}

        async def action():
            calls['count'] += 1
            raise ChecksumMismatchError(0, "aa", "bb")

        with pytest.raises(ChecksumMismatchError):
            await scheduler.run([make_op(0, action)], Direction.DOWNLOAD)

        assert calls['count'] == 1

    @pytest.mark.asyncio
    async def test_failure_stops_later_batches(self, scheduler):
        started = []

        def tracked(index, action):
            async def wrapper():
                started.append(index)
                return await action()
            return wrapper

        ops = [
            make_op(0, tracked(0, succeed_with(0))),
            make_op(1, tracked(1, fail_times(10, None))),
            make_op(2, tracked(2, succeed_with(2))),
            make_op(3, tracked(3, succeed_with(3))),
        ]

        with pytest.raises(UploadFailedError):
            await scheduler.run(ops)

        assert 2 not in started
        assert 3 not in started

    @pytest.mark.asyncio
    async def test_cancel_before_start(self, scheduler):
        cancel = asyncio.Event()
        cancel.set()
        action = fail_times(0, "ok")

        with pytest.raises(TransferCancelledError):
            await scheduler.run([make_op(0, action)], cancel_event=cancel)

        assert action.calls['count'] == 0

    @pytest.mark.asyncio
    async def test_cancel_between_batches(self, scheduler):
        cancel = asyncio.Event()

        async def first():
            cancel.set()
            return "first"

        second = fail_times(0, "second")

        with pytest.raises(TransferCancelledError):
            await scheduler.run(
                [make_op(0, first), make_op(1, succeed_with("x")), make_op(2, second)],
                cancel_event=cancel,
            )

        assert second.calls['count'] == 0

    @pytest.mark.asyncio
    async def test_progress_is_reported_per_chunk(self, scheduler):
        snapshots = []
        assignments = [BackendName.FILEBASE, BackendName.PINATA, BackendName.FILEBASE]
        ops = [make_op(i, succeed_with(i), backend) for i, backend in enumerate(assignments)]

        async with UploadProgressAggregator(assignments, snapshots.append) as progress:
            await scheduler.run(ops, progress=progress)

        assert [s.uploaded for s in snapshots] == [1, 2, 3]
        assert snapshots[-1].overall == 100.0

    def test_invalid_arguments(self):
        with pytest.raises(ValueError):
            TransferScheduler(batch_size=0)
        with pytest.raises(ValueError):
            TransferScheduler(download_batch_size=0)
        with pytest.raises(ValueError):
            TransferScheduler(max_retries=0)
