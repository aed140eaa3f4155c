"""Registry holding the storage backend adapters of one storage manager."""

import asyncio
from typing import Any, Dict, Iterable, List, Optional, Tuple

from backends.base import BackendAdapter, ProgressCallback
from common.exceptions import AllBackendsFailedError, ConfigurationError
from common.logging_config import get_logger
from common.types import BackendName, DownloadResult, UploadResult

logger = get_logger(__name__)


class BackendRegistry:
    """
    Fixed, ordered set of adapters, one per backend name.

    Built explicitly and passed to the components that need it, so
    independent operations can use registries with different backends.
    Registration order decides the primary adapter and the fallback order.
    """

    def __init__(self, adapters: Iterable[BackendAdapter]):
        self._adapters: List[BackendAdapter] = []
        self._by_name: Dict[BackendName, BackendAdapter] = {}

        for adapter in adapters:
            if adapter.name in self._by_name:
                raise ValueError(f"Duplicate adapter for backend {adapter.name.value}")
            self._adapters.append(adapter)
            self._by_name[adapter.name] = adapter

        primary = self.primary()
        logger.info(
            f"Backend registry initialized: {len(self._adapters)} adapter(s), "
            f"{len(self.configured())} configured, "
            f"primary={primary.name.value if primary else 'none'}"
        )

    def __len__(self) -> int:
        return len(self._adapters)

    def __contains__(self, name: BackendName) -> bool:
        return name in self._by_name

    def get(self, name: BackendName) -> BackendAdapter:
        """
        Look up the adapter for a backend.

        Raises:
            ConfigurationError: If no adapter is registered under that name
        """
        try:
            return self._by_name[BackendName.parse(name)]
        except (KeyError, ValueError):
            raise ConfigurationError(f"No adapter registered for backend {name}", backend=str(name))

    def all(self) -> List[BackendAdapter]:
        """All adapters, configured or not, in registration order."""
        return list(self._adapters)

    def configured(self) -> List[BackendAdapter]:
        """Adapters that have their credentials, in registration order."""
        return [adapter for adapter in self._adapters if adapter.is_configured]

    def primary(self) -> Optional[BackendAdapter]:
        """First configured adapter, used as the manifest's home."""
        for adapter in self._adapters:
            if adapter.is_configured:
                return adapter
        return None

    async def upload_with_fallback(
        self,
        data: bytes,
        filename: str = "file",
        on_progress: Optional[ProgressCallback] = None
    ) -> UploadResult:
        """
        Upload a whole object to the first configured adapter that accepts it.

        Raises:
            ConfigurationError: If no adapter is configured
            AllBackendsFailedError: If every configured adapter failed
        """
        candidates = self.configured()
        if not candidates:
            raise ConfigurationError("No storage backends configured")

        failures: List[Tuple[str, BaseException]] = []
        for position, adapter in enumerate(candidates, start=1):
            try:
                logger.info(f"Upload attempt {position}/{len(candidates)} via {adapter.name.value}")
                result = await adapter.upload(data, filename, on_progress)
                logger.info(f"Upload of {filename} succeeded via {adapter.name.value}")
                return result
            except Exception as e:
                failures.append((adapter.name.value, e))
                logger.warning(f"{adapter.name.value} upload failed: {e}")

        raise AllBackendsFailedError("upload", failures)

    async def download_with_fallback(self, content_id: str) -> DownloadResult:
        """
        Download an object trying every adapter's retrieval routes in order.

        Public gateways need no credentials, so unconfigured adapters are
        tried too.

        Raises:
            AllBackendsFailedError: If every adapter failed
        """
        if not self._adapters:
            raise ConfigurationError("No storage backends registered")

        failures: List[Tuple[str, BaseException]] = []
        for position, adapter in enumerate(self._adapters, start=1):
            try:
                logger.info(f"Download attempt {position}/{len(self._adapters)} via {adapter.name.value}")
                return await adapter.download(content_id)
            except Exception as e:
                failures.append((adapter.name.value, e))
                logger.warning(f"{adapter.name.value} download of {content_id} failed: {e}")

        raise AllBackendsFailedError(f"download of {content_id}", failures)

    async def health_check_all(self) -> Dict[BackendName, bool]:
        """Probe every adapter concurrently."""
        results = await asyncio.gather(
            *(adapter.is_healthy() for adapter in self._adapters),
            return_exceptions=True
        )

        health: Dict[BackendName, bool] = {}
        for adapter, result in zip(self._adapters, results):
            healthy = result is True
            health[adapter.name] = healthy
            logger.info(f"{adapter.name.value}: {'healthy' if healthy else 'unhealthy'}")
        return health

    def status(self) -> List[Dict[str, Any]]:
        """get_info() of every adapter."""
        return [adapter.get_info() for adapter in self._adapters]
