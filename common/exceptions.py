"""Exception taxonomy shared by the backends, the sharding core and the gateway."""

from typing import List, Optional, Tuple


class ShardCloudException(Exception):
    """
    Base exception class for all ShardCloud errors.
    """
    pass


class ConfigurationError(ShardCloudException):
    """
    Raised when a backend is missing required credentials, or when no
    backend able to serve the operation is configured.
    """

    def __init__(self, message: str, backend: Optional[str] = None):
        super().__init__(message)
        self.backend = backend


class SizeExceededError(ShardCloudException):
    """
    Raised when a payload or chunk is larger than a backend accepts.
    """

    def __init__(self, backend: str, size: int, max_size: int):
        super().__init__(
            f"{backend}: size {size} exceeds maximum {max_size} bytes"
        )
        self.backend = backend
        self.size = size
        self.max_size = max_size


class BackendError(ShardCloudException):
    """
    Raised when a backend operation failed after its retries.

    Carries the backend name and the last underlying error.
    """

    def __init__(
        self,
        backend: str,
        message: str,
        last_error: Optional[BaseException] = None,
        chunk_index: Optional[int] = None,
    ):
        detail = f"{backend}: {message}"
        if last_error is not None:
            detail = f"{detail} (last error: {last_error})"
        super().__init__(detail)
        self.backend = backend
        self.last_error = last_error
        self.chunk_index = chunk_index


class UploadFailedError(BackendError):
    """
    Raised when all upload attempts for an object were exhausted.
    """
    pass


class DownloadFailedError(BackendError):
    """
    Raised when every retrieval route for an object failed.
    """
    pass


class BackendTimeoutError(BackendError):
    """
    Raised when a single backend network call exceeded its timeout.
    """

    def __init__(self, backend: str, timeout: float):
        super().__init__(backend, f"operation timed out after {timeout}s")
        self.timeout = timeout


class AllBackendsFailedError(ShardCloudException):
    """
    Raised when a fallback operation failed on every attempted backend.

    ``failures`` keeps one (backend, last error) pair per attempted backend.
    """

    def __init__(self, operation: str, failures: List[Tuple[str, BaseException]]):
        attempted = "; ".join(f"{name}: {error}" for name, error in failures)
        super().__init__(
            f"{operation} failed on all {len(failures)} backend(s): {attempted}"
        )
        self.operation = operation
        self.failures = failures


class ChecksumMismatchError(ShardCloudException):
    """
    Raised when a downloaded chunk does not match its recorded checksum.
    """

    def __init__(self, chunk_index: int, expected: str, actual: str):
        super().__init__(
            f"Checksum mismatch for chunk {chunk_index}: expected {expected}, got {actual}"
        )
        self.chunk_index = chunk_index
        self.expected = expected
        self.actual = actual


class ManifestInvalidError(ShardCloudException):
    """
    Raised when a manifest fails structural validation.
    """
    pass


class ChunkNotReadyError(ShardCloudException):
    """
    Raised when a manifest references a chunk whose upstream object was
    never finalized.
    """

    def __init__(self, chunk_index: int, backend: str):
        super().__init__(
            f"Chunk {chunk_index} on {backend} has no content identifier yet"
        )
        self.chunk_index = chunk_index
        self.backend = backend


class DecryptionError(ShardCloudException):
    """
    Raised when the reassembled payload cannot be decrypted.
    """
    pass


class TransferCancelledError(ShardCloudException):
    """
    Raised when a transfer was cancelled by its caller.
    """
    pass
