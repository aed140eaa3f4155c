"""Transfer progress snapshots and the single-writer aggregator that produces them."""

import asyncio
import inspect
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional, Sequence, Union

from common.logging_config import get_logger
from common.types import BackendName

logger = get_logger(__name__)


@dataclass(frozen=True)
class UploadProgress:
    overall: float
    uploaded: int
    total: int
    per_backend_percent: Dict[BackendName, float] = field(default_factory=dict)
    per_backend_count: Dict[BackendName, int] = field(default_factory=dict)
    per_backend_uploaded: Dict[BackendName, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'overall': self.overall,
            'uploaded': self.uploaded,
            'total': self.total,
            'perBackendPercent': {b.value: v for b, v in self.per_backend_percent.items()},
            'perBackendCount': {b.value: v for b, v in self.per_backend_count.items()},
            'perBackendUploaded': {b.value: v for b, v in self.per_backend_uploaded.items()},
        }


@dataclass(frozen=True)
class DownloadProgress:
    overall: float
    downloaded: int
    total: int
    current_chunk_index: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'overall': self.overall,
            'downloaded': self.downloaded,
            'total': self.total,
            'currentChunkIndex': self.current_chunk_index,
        }


ProgressSnapshot = Union[UploadProgress, DownloadProgress]
ProgressListener = Callable[[ProgressSnapshot], Union[None, Awaitable[None]]]


def _percent(done: int, total: int) -> float:
    if total <= 0:
        return 100.0
    return done / total * 100


@dataclass(frozen=True)
class _ChunkCompleted:
    index: int
    backend: BackendName


_STOP = object()


class ProgressAggregator(ABC):
    """
    Owns the progress counters of one transfer.

    Transfer tasks only enqueue completion events through chunk_done();
    a single consumer task applies them and hands immutable snapshots to
    the listener, which may be a plain function or a coroutine function.

    Usage:
        async with UploadProgressAggregator(assignments, listener) as progress:
            ...
            progress.chunk_done(index, backend)
    """

    def __init__(self, listener: Optional[ProgressListener] = None):
        self._listener = listener
        self._queue: asyncio.Queue = asyncio.Queue()
        self._consumer: Optional[asyncio.Task] = None
        self.completed = 0

    async def __aenter__(self) -> "ProgressAggregator":
        self._consumer = asyncio.create_task(self._consume())
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._consumer is None:
            return

        if exc_type is None:
            self._queue.put_nowait(_STOP)
            await self._consumer
        else:
            self._consumer.cancel()
            try:
                await self._consumer
            except asyncio.CancelledError:
                pass
        self._consumer = None

    def chunk_done(self, index: int, backend: BackendName) -> None:
        """Record a completed chunk; safe to call from any task."""
        self._queue.put_nowait(_ChunkCompleted(index, backend))

    async def _consume(self) -> None:
        while True:
            event = await self._queue.get()
            if event is _STOP:
                return

            self.completed += 1
            self._apply(event)

            if self._listener is not None:
                await self._notify(self.snapshot())

    async def _notify(self, snapshot: ProgressSnapshot) -> None:
        try:
            result = self._listener(snapshot)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.warning(f"Progress listener raised: {e}")

    @abstractmethod
    def _apply(self, event: _ChunkCompleted) -> None:
        """Fold one completion into the counters."""

    @abstractmethod
    def snapshot(self) -> ProgressSnapshot:
        """Current progress."""


class UploadProgressAggregator(ProgressAggregator):

    def __init__(
        self,
        assignments: Sequence[BackendName],
        listener: Optional[ProgressListener] = None
    ):
        """
        Args:
            assignments: Backend of every chunk index
            listener: Receives an UploadProgress after every completed chunk
        """
        super().__init__(listener)
        self.total = len(assignments)
        self._assigned: Dict[BackendName, int] = {}
        for backend in assignments:
            self._assigned[backend] = self._assigned.get(backend, 0) + 1
        self._done: Dict[BackendName, int] = {backend: 0 for backend in self._assigned}

    def _apply(self, event: _ChunkCompleted) -> None:
        self._done[event.backend] = self._done.get(event.backend, 0) + 1

    def snapshot(self) -> UploadProgress:
        return UploadProgress(
            overall=_percent(self.completed, self.total),
            uploaded=self.completed,
            total=self.total,
            per_backend_percent={
                backend: _percent(self._done.get(backend, 0), assigned)
                for backend, assigned in self._assigned.items()
            },
            per_backend_count=dict(self._assigned),
            per_backend_uploaded=dict(self._done),
        )


class DownloadProgressAggregator(ProgressAggregator):

    def __init__(self, total: int, listener: Optional[ProgressListener] = None):
        super().__init__(listener)
        self.total = total
        self._current: Optional[int] = None

    def _apply(self, event: _ChunkCompleted) -> None:
        self._current = event.index

    def snapshot(self) -> DownloadProgress:
        return DownloadProgress(
            overall=_percent(self.completed, self.total),
            downloaded=self.completed,
            total=self.total,
            current_chunk_index=self._current,
        )
