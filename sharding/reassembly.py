"""Chunk readiness checks, integrity verification and ciphertext reassembly."""

from typing import Iterable, Sequence, Tuple

from common.checksum import PayloadDigest, checksum_matches, chunk_checksum
from common.exceptions import ChecksumMismatchError, ChunkNotReadyError, ManifestInvalidError
from common.logging_config import get_logger
from common.protocol import ChunkRecord

logger = get_logger(__name__)


def ensure_ready(record: ChunkRecord) -> None:
    """Raise ChunkNotReadyError for a placeholder content identifier."""
    if not record.is_ready:
        raise ChunkNotReadyError(record.index, record.backend.value)


def verify_chunk(record: ChunkRecord, data: bytes) -> bytes:
    """
    Check downloaded bytes against the record.

    Args:
        record: Manifest entry of the chunk
        data: Bytes returned by the backend

    Returns:
        The same bytes, once verified

    Raises:
        ChecksumMismatchError: If the SHA-256 or the length differs
    """
    if not checksum_matches(data, record.checksum):
        raise ChecksumMismatchError(record.index, record.checksum, chunk_checksum(data))

    # digest matched, so the recorded size is what is wrong
    if len(data) != record.size:
        raise ChecksumMismatchError(
            record.index,
            f"{record.checksum} ({record.size} bytes)",
            f"{record.checksum} ({len(data)} bytes)"
        )

    return data


def reassemble(pieces: Iterable[Tuple[int, bytes]], records: Sequence[ChunkRecord]) -> bytes:
    """
    Concatenate verified chunks in index order.

    Args:
        pieces: (index, bytes) pairs in any order
        records: Manifest entries the pieces belong to

    Raises:
        ManifestInvalidError: If an index is missing or repeated, or the
            result length differs from the recorded chunk sizes
    """
    by_index = {}
    for index, data in pieces:
        if index in by_index:
            raise ManifestInvalidError(f"Chunk {index} supplied more than once")
        by_index[index] = data

    expected_indices = sorted(record.index for record in records)
    if sorted(by_index) != expected_indices:
        missing = sorted(set(expected_indices) - set(by_index))
        raise ManifestInvalidError(f"Cannot reassemble, chunk set mismatch (missing: {missing})")

    digest = PayloadDigest()
    for index in expected_indices:
        digest.update(by_index[index])

    expected_size = sum(record.size for record in records)
    if digest.size != expected_size:
        raise ManifestInvalidError(
            f"Reassembled {digest.size} bytes, manifest records {expected_size}"
        )

    logger.debug(
        f"Reassembled {len(expected_indices)} chunk(s), {expected_size} bytes, "
        f"sha256={digest.hexdigest()}"
    )
    return b"".join(by_index[index] for index in expected_indices)
