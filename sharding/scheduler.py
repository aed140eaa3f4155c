"""Bounded-concurrency chunk transfer scheduling with per-operation retry."""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional, Sequence

from common.constants import (
    MAX_CONCURRENT_DOWNLOADS,
    MAX_CONCURRENT_UPLOADS,
    MAX_RETRIES,
    RETRY_BASE_DELAY_SECONDS,
)
from common.exceptions import (
    ChecksumMismatchError,
    ChunkNotReadyError,
    ConfigurationError,
    DownloadFailedError,
    SizeExceededError,
    TransferCancelledError,
    UploadFailedError,
)
from common.logging_config import get_logger
from common.types import BackendName
from sharding.progress import ProgressAggregator

logger = get_logger(__name__)

# Retrying cannot change the outcome of these
NON_RETRIABLE_ERRORS = (
    ChecksumMismatchError,
    ChunkNotReadyError,
    ConfigurationError,
    SizeExceededError,
    TransferCancelledError,
)


class Direction(str, Enum):
    UPLOAD = "upload"
    DOWNLOAD = "download"


@dataclass(frozen=True)
class TransferOperation:
    """One chunk transfer; ``action`` performs a single attempt."""
    index: int
    backend: BackendName
    action: Callable[[], Awaitable[Any]]


def _check_cancelled(cancel_event: Optional[asyncio.Event]) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise TransferCancelledError("Transfer cancelled")


class TransferScheduler:
    """
    Runs chunk transfers in fixed-size batches.

    Operations within a batch run concurrently; the next batch starts only
    once the whole batch has finished. The first operation to exhaust its
    retries cancels the rest of its batch and aborts the transfer.
    """

    def __init__(
        self,
        batch_size: int = MAX_CONCURRENT_UPLOADS,
        download_batch_size: int = MAX_CONCURRENT_DOWNLOADS,
        max_retries: int = MAX_RETRIES,
        retry_base_delay: float = RETRY_BASE_DELAY_SECONDS,
    ):
        if batch_size < 1 or download_batch_size < 1:
            raise ValueError("batch sizes must be at least 1")
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")

        self.batch_size = batch_size
        self.download_batch_size = download_batch_size
        self.max_retries = max_retries
        self.retry_base_delay = retry_base_delay

    def batch_size_for(self, direction: Direction) -> int:
        """Concurrent operations per batch; downloads have their own limit."""
        if direction is Direction.DOWNLOAD:
            return self.download_batch_size
        return self.batch_size

    async def run(
        self,
        operations: Sequence[TransferOperation],
        direction: Direction = Direction.UPLOAD,
        progress: Optional[ProgressAggregator] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> List[Any]:
        """
        Execute every operation and return their results in operation order.

        Raises:
            UploadFailedError / DownloadFailedError: An operation exhausted its retries
            TransferCancelledError: cancel_event was set
            Any non-retriable error raised by an operation, unchanged
        """
        results: List[Any] = []
        batch_size = self.batch_size_for(direction)
        total_batches = -(-len(operations) // batch_size)

        for batch_number, start in enumerate(range(0, len(operations), batch_size), start=1):
            _check_cancelled(cancel_event)

            batch = operations[start:start + batch_size]
            logger.debug(
                f"{direction.value} batch {batch_number}/{total_batches}: "
                f"chunks {[op.index for op in batch]}"
            )

            tasks = [
                asyncio.create_task(self._run_one(op, direction, progress, cancel_event))
                for op in batch
            ]
            try:
                results.extend(await asyncio.gather(*tasks))
            except BaseException:
                for task in tasks:
                    if not task.done():
                        task.cancel()
                await asyncio.gather(*tasks, return_exceptions=True)
                raise

        return results

    async def _run_one(
        self,
        op: TransferOperation,
        direction: Direction,
        progress: Optional[ProgressAggregator],
        cancel_event: Optional[asyncio.Event],
    ) -> Any:
        last_error: Optional[BaseException] = None

        for attempt in range(1, self.max_retries + 1):
            _check_cancelled(cancel_event)
            try:
                result = await op.action()
            except NON_RETRIABLE_ERRORS:
                raise
            except Exception as e:
                last_error = e
                logger.warning(
                    f"Chunk {op.index} {direction.value} via {op.backend.value} "
                    f"attempt {attempt}/{self.max_retries} failed: {e}"
                )
                if attempt < self.max_retries:
                    await asyncio.sleep(self.retry_base_delay * 2 ** (attempt - 1))
                continue

            if progress is not None:
                progress.chunk_done(op.index, op.backend)
            return result

        error_cls = UploadFailedError if direction is Direction.UPLOAD else DownloadFailedError
        logger.error(
            f"Chunk {op.index} {direction.value} via {op.backend.value} "
            f"failed after {self.max_retries} attempts"
        )
        raise error_cls(
            op.backend.value,
            f"chunk {op.index} {direction.value} failed after {self.max_retries} attempts",
            last_error,
            chunk_index=op.index,
        )
