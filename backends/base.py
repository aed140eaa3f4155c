"""Capability contract every storage backend adapter satisfies."""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional, Sequence, Tuple

import httpx

from common.constants import (
    BACKEND_MAX_RETRIES,
    BACKEND_TIMEOUT_SECONDS,
    HEALTH_CHECK_TIMEOUT_SECONDS,
    RETRY_BASE_DELAY_SECONDS,
)
from common.exceptions import (
    BackendTimeoutError,
    ConfigurationError,
    DownloadFailedError,
    SizeExceededError,
    UploadFailedError,
)
from common.logging_config import get_logger
from common.types import BackendName, DownloadResult, UploadResult

logger = get_logger(__name__)

ProgressCallback = Callable[[int], None]


class BackendAdapter(ABC):
    """
    Uniform wrapper around one content-addressed storage backend.

    Adapters are long-lived and hold no per-operation state, so a single
    instance is shared by every concurrent chunk transfer.

    Subclasses provide the credential check, a single upload attempt, a
    single download from one retrieval route and a health probe; retry,
    timeouts and gateway fallback live here.
    """

    name: BackendName
    max_size: int
    free_storage: str = "unknown"
    gateways: Tuple[str, ...] = ()

    def __init__(
        self,
        timeout: float = BACKEND_TIMEOUT_SECONDS,
        max_retries: int = BACKEND_MAX_RETRIES,
        retry_base_delay: float = RETRY_BASE_DELAY_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            timeout: Seconds allowed for one network call
            max_retries: Upload attempts before giving up
            retry_base_delay: First backoff delay, doubled on every attempt
            transport: Optional httpx transport (tests inject a MockTransport)
        """
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_base_delay = retry_base_delay
        self._transport = transport

    @property
    @abstractmethod
    def is_configured(self) -> bool:
        """True iff the credentials/endpoints required for uploads are present."""

    @abstractmethod
    async def _perform_upload(
        self,
        data: bytes,
        filename: str,
        on_progress: Optional[ProgressCallback] = None
    ) -> UploadResult:
        """Single upload attempt without retry."""

    @abstractmethod
    async def _probe(self) -> bool:
        """Reachability check; may raise, is_healthy() absorbs errors."""

    def get_info(self) -> Dict[str, Any]:
        """Adapter configuration and status."""
        return {
            'name': self.name.value,
            'is_configured': self.is_configured,
            'max_size': self.max_size,
            'free_storage': self.free_storage,
        }

    def download_routes(self) -> Sequence[str]:
        """Retrieval routes tried in order by download()."""
        return self.gateways

    def gateway_url(self, content_id: str) -> str:
        """Public URL of an object on the first gateway."""
        if not self.gateways:
            return content_id
        return f"{self.gateways[0]}/{content_id}"

    def _client(self, timeout: Optional[float] = None) -> httpx.AsyncClient:
        """Create an HTTP client bounded by the per-call timeout."""
        return httpx.AsyncClient(
            transport=self._transport,
            timeout=timeout if timeout is not None else self.timeout,
            follow_redirects=True,
        )

    async def _with_timeout(self, coro, timeout: Optional[float] = None):
        """Bound one network call independently of the retry loop."""
        limit = timeout if timeout is not None else self.timeout
        try:
            return await asyncio.wait_for(coro, timeout=limit)
        except asyncio.TimeoutError:
            raise BackendTimeoutError(self.name.value, limit)
        except httpx.TimeoutException:
            raise BackendTimeoutError(self.name.value, limit)

    async def upload(
        self,
        data: bytes,
        filename: str = "file",
        on_progress: Optional[ProgressCallback] = None
    ) -> UploadResult:
        """
        Store an object on the backend.

        Args:
            data: Bytes to store
            filename: Name attached to the stored object
            on_progress: Optional callback receiving 0-100

        Returns:
            UploadResult with the backend-issued content identifier

        Raises:
            ConfigurationError: If the adapter has no credentials
            SizeExceededError: If data is larger than max_size
            UploadFailedError: If every attempt failed
        """
        if not self.is_configured:
            raise ConfigurationError(
                f"{self.name.value} adapter is not configured (missing credentials)",
                backend=self.name.value
            )

        if len(data) > self.max_size:
            raise SizeExceededError(self.name.value, len(data), self.max_size)

        logger.debug(f"[{self.name.value}] Uploading {filename} ({len(data)} bytes)")

        last_error: Optional[BaseException] = None
        for attempt in range(1, self.max_retries + 1):
            try:
                result = await self._with_timeout(
                    self._perform_upload(data, filename, on_progress)
                )
                logger.debug(
                    f"[{self.name.value}] Upload of {filename} succeeded "
                    f"(attempt {attempt}/{self.max_retries}): {result.content_id}"
                )
                return result
            except Exception as e:
                last_error = e
                logger.warning(
                    f"[{self.name.value}] Upload attempt {attempt}/{self.max_retries} failed: {e}"
                )
                if attempt < self.max_retries:
                    delay = self.retry_base_delay * 2 ** (attempt - 1)
                    await asyncio.sleep(delay)

        raise UploadFailedError(
            self.name.value,
            f"upload of {filename} failed after {self.max_retries} attempts",
            last_error
        )

    async def download(self, content_id: str) -> DownloadResult:
        """
        Retrieve an object, trying every retrieval route in order.

        Raises:
            DownloadFailedError: If every route failed
        """
        routes = self.download_routes()
        last_error: Optional[BaseException] = None

        for position, route in enumerate(routes, start=1):
            try:
                result = await self._with_timeout(self._perform_download(route, content_id))
                logger.debug(
                    f"[{self.name.value}] Downloaded {content_id} from route {position}/{len(routes)}"
                )
                return result
            except Exception as e:
                last_error = e
                logger.warning(
                    f"[{self.name.value}] Route {position}/{len(routes)} ({route}) failed for {content_id}: {e}"
                )

        raise DownloadFailedError(
            self.name.value,
            f"all {len(routes)} retrieval routes failed for {content_id}",
            last_error
        )

    async def _perform_download(self, gateway: str, content_id: str) -> DownloadResult:
        """Fetch an object from one public gateway."""
        async with self._client() as client:
            response = await client.get(f"{gateway}/{content_id}")

        if response.status_code != 200:
            raise httpx.HTTPStatusError(
                f"HTTP {response.status_code} from {gateway}",
                request=response.request,
                response=response
            )

        data = response.content
        return DownloadResult(data=data, size=len(data), content_id=content_id)

    async def is_healthy(self) -> bool:
        """Best-effort reachability probe. Never raises."""
        if not self.is_configured:
            return False

        try:
            return bool(await self._with_timeout(self._probe(), HEALTH_CHECK_TIMEOUT_SECONDS))
        except Exception as e:
            logger.warning(f"[{self.name.value}] Health check failed: {e}")
            return False


class IpfsHttpAdapter(BackendAdapter):
    """
    Adapter for pinning services that accept a multipart ``file`` upload
    with a bearer credential and answer with the CID in a JSON field.
    """

    upload_endpoint: str = ""
    cid_field: str = "Hash"

    def __init__(self, credential: Optional[str] = None, **kwargs):
        """
        Args:
            credential: Bearer token for the upload API (None = unconfigured)
            **kwargs: Passed through to BackendAdapter
        """
        super().__init__(**kwargs)
        self._credential = credential or None

    @property
    def is_configured(self) -> bool:
        return bool(self._credential)

    def _auth_headers(self) -> Dict[str, str]:
        return {'Authorization': f'Bearer {self._credential}'}

    async def _perform_upload(
        self,
        data: bytes,
        filename: str,
        on_progress: Optional[ProgressCallback] = None
    ) -> UploadResult:
        if on_progress:
            on_progress(10)

        async with self._client() as client:
            response = await client.post(
                self.upload_endpoint,
                files={'file': (filename, data, 'application/octet-stream')},
                headers=self._auth_headers(),
            )

        if on_progress:
            on_progress(80)

        if response.status_code >= 400:
            raise httpx.HTTPStatusError(
                f"HTTP {response.status_code}: {response.text}",
                request=response.request,
                response=response
            )

        payload = response.json()
        content_id = payload.get(self.cid_field) if isinstance(payload, dict) else None
        if not content_id:
            raise ValueError(f"No CID returned from {self.name.value}")

        if on_progress:
            on_progress(100)

        return UploadResult(
            content_id=content_id,
            url=self.gateway_url(content_id),
            size=len(data),
            backend=self.name,
        )
