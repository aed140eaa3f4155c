"""Chunk size selection and payload splitting."""

from dataclasses import dataclass
from typing import Iterator, List

from common.constants import (
    ABSOLUTE_MIN_CHUNK_SIZE_BYTES,
    MAX_CHUNK_SIZE_BYTES,
    MIN_CHUNK_SIZE_BYTES,
    MIN_CHUNKS,
)
from common.logging_config import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class Chunk:
    """One contiguous slice of the ciphertext; lives only during an operation."""
    index: int
    offset: int
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class ChunkPlan:
    payload_size: int
    chunk_size: int
    total_chunks: int


def _ceil_div(numerator: int, denominator: int) -> int:
    return -(-numerator // denominator)


class ChunkPlanner:
    """
    Decides how a payload is cut into chunks.

    Small payloads still get up to MIN_CHUNKS chunks (never smaller than the
    absolute floor); larger payloads aim for MIN_CHUNKS chunks clamped to
    [min_chunk_size, max_chunk_size].
    """

    def __init__(
        self,
        min_chunks: int = MIN_CHUNKS,
        min_chunk_size: int = MIN_CHUNK_SIZE_BYTES,
        max_chunk_size: int = MAX_CHUNK_SIZE_BYTES,
        floor: int = ABSOLUTE_MIN_CHUNK_SIZE_BYTES,
    ):
        if min_chunks < 1:
            raise ValueError("min_chunks must be at least 1")
        if not 0 < floor <= min_chunk_size <= max_chunk_size:
            raise ValueError("Chunk sizes must satisfy 0 < floor <= min <= max")

        self.min_chunks = min_chunks
        self.min_chunk_size = min_chunk_size
        self.max_chunk_size = max_chunk_size
        self.floor = floor

    def chunk_size(self, payload_size: int) -> int:
        """
        Chunk size in bytes for a payload of the given size.

        Args:
            payload_size: Ciphertext length in bytes

        Returns:
            Chunk size, always >= the absolute floor
        """
        if payload_size < 0:
            raise ValueError("payload_size must be non-negative")

        target = _ceil_div(payload_size, self.min_chunks)

        if payload_size < self.min_chunks * self.min_chunk_size:
            return max(target, self.floor)

        return min(max(target, self.min_chunk_size), self.max_chunk_size)

    def plan(self, payload_size: int) -> ChunkPlan:
        size = self.chunk_size(payload_size)
        total = _ceil_div(payload_size, size)

        logger.debug(f"Chunk plan: {payload_size} bytes -> {total} chunk(s) of {size} bytes")
        return ChunkPlan(payload_size=payload_size, chunk_size=size, total_chunks=total)

    def iter_chunks(self, payload: bytes, chunk_size: int) -> Iterator[Chunk]:
        """Yield ordered, contiguous, non-overlapping chunks; the last may be short."""
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")

        view = memoryview(payload)
        for index, offset in enumerate(range(0, len(payload), chunk_size)):
            yield Chunk(index=index, offset=offset, data=bytes(view[offset:offset + chunk_size]))

    def split(self, payload: bytes, chunk_size: int) -> List[Chunk]:
        return list(self.iter_chunks(payload, chunk_size))
