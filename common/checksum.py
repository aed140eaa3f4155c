"""SHA-256 digests used to verify chunks and reassembled payloads."""

import hashlib
import hmac


def chunk_checksum(data: bytes) -> str:
    """Lowercase hex SHA-256 of a chunk, as written to the manifest."""
    return hashlib.sha256(data).hexdigest()


def checksum_matches(data: bytes, expected: str) -> bool:
    """
    Compare bytes against a recorded checksum.

    Args:
        data: Bytes as returned by a backend
        expected: Hex SHA-256 from the manifest, any case

    Returns:
        True if the digest of data equals expected
    """
    return hmac.compare_digest(chunk_checksum(data), expected.strip().lower())


class PayloadDigest:
    """
    Running SHA-256 over pieces fed in payload order.

    Usage:
        digest = PayloadDigest()
        for piece in pieces:
            digest.update(piece)
        digest.size, digest.hexdigest()
    """

    def __init__(self):
        self._hasher = hashlib.sha256()
        self.size = 0

    def update(self, data: bytes) -> "PayloadDigest":
        self._hasher.update(data)
        self.size += len(data)
        return self

    def hexdigest(self) -> str:
        """Digest of everything fed so far; more pieces may follow."""
        return self._hasher.hexdigest()
