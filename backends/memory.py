"""In-process content-addressed backend for local development and tests."""

from typing import Dict, Optional

from backends.base import BackendAdapter, ProgressCallback
from common.checksum import chunk_checksum
from common.constants import GIB
from common.types import BackendName, DownloadResult, UploadResult


class MemoryBackend(BackendAdapter):
    """
    Keeps objects in a dict keyed by a content identifier derived from
    the SHA-256 of the bytes. Stands in for one of the named backends.
    """

    free_storage = "in-memory"

    def __init__(
        self,
        name: BackendName,
        configured: bool = True,
        max_size: int = 1 * GIB,
        **kwargs
    ):
        """
        Args:
            name: Backend slot this instance stands in for
            configured: Whether uploads are allowed
            max_size: Largest object accepted
            **kwargs: Passed through to BackendAdapter
        """
        super().__init__(**kwargs)
        self.name = name
        self.max_size = max_size
        self._configured = configured
        self.objects: Dict[str, bytes] = {}

    @property
    def is_configured(self) -> bool:
        return self._configured

    def download_routes(self):
        return (f"memory://{self.name.value}",)

    @staticmethod
    def content_id_for(data: bytes) -> str:
        """Identifier the backend issues for these bytes."""
        return f"bafk{chunk_checksum(data)[:52]}"

    async def _perform_upload(
        self,
        data: bytes,
        filename: str,
        on_progress: Optional[ProgressCallback] = None
    ) -> UploadResult:
        if on_progress:
            on_progress(10)

        content_id = self.content_id_for(data)
        self.objects[content_id] = bytes(data)

        if on_progress:
            on_progress(100)

        return UploadResult(
            content_id=content_id,
            url=f"memory://{self.name.value}/{content_id}",
            size=len(data),
            backend=self.name,
        )

    async def _perform_download(self, gateway: str, content_id: str) -> DownloadResult:
        try:
            data = self.objects[content_id]
        except KeyError:
            raise LookupError(f"{content_id} not found at {gateway}")
        return DownloadResult(data=data, size=len(data), content_id=content_id)

    async def _probe(self) -> bool:
        return True
