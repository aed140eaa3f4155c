"""HTTP client for communicating with the storage gateway."""

import os
import sys
import time
import uuid
from pathlib import Path
from typing import Optional, Tuple
from urllib.parse import unquote

import httpx

from cli.config import Config
from cli.constants import GREEN, RED, RESET
from cli.utils import format_chunk_line, format_distribution, format_file_size
from common.logging_config import get_logger

logger = get_logger(__name__)


class GatewayClient:
    """HTTP client for the gateway API with retry logic and error handling."""

    def __init__(self, config: Config):
        """
        Initialize gateway client.

        Args:
            config: Configuration instance
        """
        self.config = config
        self.session = httpx.Client(
            base_url=config.get_base_url(),
            timeout=config.get_timeout()
        )
        self.request_id = None
        logger.info(f"Initialized GatewayClient [base_url={config.get_base_url()}]")

    def close(self) -> None:
        """Close the underlying HTTP session."""
        self.session.close()

    def _calculate_transfer_timeout(self, file_size: int) -> float:
        """
        Calculate timeout for a sharded transfer based on file size.

        Args:
            file_size: File size in bytes

        Returns:
            Timeout in seconds (configured base + 2s per MiB)
        """
        base_timeout = float(self.config.get_timeout())
        size_mb = file_size / (1024 * 1024)
        return base_timeout + size_mb * 2.0

    def _resolve_upload_path(self, file_path: str) -> Tuple[Optional[Path], Optional[str]]:
        """
        Validate a local file path for upload.

        Returns:
            Tuple of (path, error_message); error_message is None if valid
        """
        path = Path(file_path.strip()).expanduser()

        if not path.exists():
            return None, f"File not found: {file_path}"
        if not path.is_file():
            return None, f"Not a file: {file_path}"
        return path, None

    def _resolve_download_path(self, output_path: Optional[str], filename: str) -> Path:
        """
        Decide where a downloaded file is written.

        Args:
            output_path: Optional file or directory given by the user
            filename: Original file name from the manifest

        Returns:
            Output file path; parent directories are created
        """
        if output_path:
            output_file = Path(output_path).expanduser()
            if output_file.exists() and output_file.is_dir():
                output_file = output_file / filename
        else:
            output_file = self.config.get_downloads_dir() / filename

        output_file.parent.mkdir(parents=True, exist_ok=True)
        return output_file

    def _request_with_retry(
        self,
        method: str,
        endpoint: str,
        max_retries: Optional[int] = None,
        **kwargs
    ) -> httpx.Response:
        """
        Make HTTP request with retry logic on 5xx errors and network failures.

        Args:
            method: HTTP method (GET, POST, ...)
            endpoint: API endpoint path
            max_retries: Max retry attempts (uses config default if None)
            **kwargs: Additional arguments to pass to httpx request

        Returns:
            HTTP response object

        Raises:
            ConnectionError: If max retries exceeded or connection fails
        """
        retry_config = self.config.get_retry_config()
        max_retries = max_retries if max_retries is not None else retry_config['max_retries']
        backoff = retry_config['retry_backoff_multiplier']

        last_exception = None

        self.request_id = str(uuid.uuid4())
        kwargs.setdefault('headers', {})
        kwargs['headers']['X-Request-ID'] = self.request_id

        logger.debug(
            f"Making request: {method} {endpoint} [request_id={self.request_id}]"
        )

        for attempt in range(max_retries + 1):
            try:
                response = self.session.request(method, endpoint, **kwargs)

                logger.debug(
                    f"Response received: {method} {endpoint} status={response.status_code} [request_id={self.request_id}]"
                )

                if 400 <= response.status_code < 500:
                    logger.warning(
                        f"Client error: {method} {endpoint} status={response.status_code} [request_id={self.request_id}]"
                    )
                    return response

                if response.status_code >= 500 and attempt < max_retries:
                    delay = backoff ** attempt
                    logger.warning(
                        f"Server error (attempt {attempt + 1}/{max_retries + 1}): "
                        f"{method} {endpoint} status={response.status_code}, retrying in {delay}s [request_id={self.request_id}]"
                    )
                    time.sleep(delay)
                    continue

                return response

            except (httpx.ConnectError, httpx.TimeoutException) as e:
                last_exception = e
                if attempt < max_retries:
                    delay = backoff ** attempt
                    logger.warning(
                        f"Network error (attempt {attempt + 1}/{max_retries + 1}): "
                        f"{method} {endpoint} error={type(e).__name__}, retrying in {delay}s [request_id={self.request_id}]"
                    )
                    time.sleep(delay)
                else:
                    logger.error(
                        f"Network error (max retries exceeded): {method} {endpoint} error={e} [request_id={self.request_id}]"
                    )

        if isinstance(last_exception, httpx.TimeoutException):
            raise ConnectionError("Request timed out. Backends may be slow, try again later.")
        raise ConnectionError("Cannot connect to gateway server. Is it running?")

    def _format_error(self, response: httpx.Response) -> str:
        """
        Map HTTP errors to user-friendly messages.

        Args:
            response: HTTP response object

        Returns:
            User-friendly error message
        """
        try:
            error_data = response.json()
            detail = error_data.get('detail', 'Unknown error')
            code = error_data.get('code', 'UNKNOWN')
        except ValueError:
            detail = response.text if response.text else 'Unknown error'
            code = 'UNKNOWN'

        error_messages = {
            'CONFIGURATION_ERROR': 'Storage backends are not configured on the gateway (missing credentials).',
            'SIZE_EXCEEDED': 'File too large for the storage backends.',
            'UPLOAD_FAILED': 'A chunk could not be stored. Please try again later.',
            'DOWNLOAD_FAILED': 'A chunk could not be retrieved. Please try again later.',
            'ALL_BACKENDS_FAILED': 'No storage backend could serve the request. Check the manifest CID.',
            'BACKEND_TIMEOUT': 'A storage backend timed out. Please try again later.',
            'CHECKSUM_MISMATCH': 'File integrity check failed: a chunk was altered.',
            'MANIFEST_INVALID': 'The manifest is invalid or is not a ShardCloud chunk map.',
            'CHUNK_NOT_READY': 'The file is not fully stored yet (a chunk is still pending).',
            'DECRYPTION_FAILED': 'The file could not be decrypted.',
            'TRANSFER_CANCELLED': 'The transfer was cancelled.',
        }

        if code in error_messages:
            return error_messages[code]

        status_messages = {
            400: 'Bad request',
            404: 'Not found',
            413: 'File too large',
            422: 'Invalid request',
            500: 'Server error',
            502: 'Storage backend error',
            503: 'Service unavailable',
        }

        message = status_messages.get(response.status_code, detail)
        return f"{message} (Code: {code})" if code != 'UNKNOWN' else message

    def upload(self, file_path: str) -> str:
        """
        Upload a local file as encrypted shards.

        Args:
            file_path: Path of the file to upload

        Returns:
            Result message with the manifest CID
        """
        path, error = self._resolve_upload_path(file_path)
        if error:
            return f"Error: {error}"

        file_size = path.stat().st_size
        timeout = self._calculate_transfer_timeout(file_size)
        logger.info(f"Uploading {path.name} ({file_size} bytes, timeout={timeout:.1f}s)")

        sys.stdout.write(f"Uploading {path.name} ({format_file_size(file_size)})...")
        sys.stdout.flush()

        try:
            with open(path, 'rb') as f:
                response = self._request_with_retry(
                    'POST',
                    '/shards',
                    max_retries=0,
                    files={'file': (path.name, f, 'application/octet-stream')},
                    timeout=timeout
                )
        except ConnectionError as e:
            sys.stdout.write('\n')
            return f"Error: {e}"
        finally:
            sys.stdout.flush()

        sys.stdout.write('\n')

        if response.status_code == 201:
            result = response.json()
            return (
                f"Uploaded: {result['file_name']} ({format_file_size(result['size'])})\n"
                f"Manifest CID: {GREEN}{result['manifest_cid']}{RESET}"
            )
        return f"Error uploading {file_path}: {self._format_error(response)}"

    def download(self, manifest_cid: str, output_path: Optional[str] = None) -> str:
        """
        Rebuild a file from its manifest CID.

        Args:
            manifest_cid: Content identifier returned by upload
            output_path: Optional output file or directory

        Returns:
            Success message with the saved location
        """
        try:
            with self.session.stream(
                'GET',
                f'/shards/{manifest_cid}',
                headers={'X-Request-ID': str(uuid.uuid4())}
            ) as response:
                if response.status_code != 200:
                    response.read()
                    return f"Error: {self._format_error(response)}"

                filename = _attachment_filename(response) or manifest_cid
                output_file = self._resolve_download_path(output_path, filename)

                downloaded = 0
                with open(output_file, 'wb') as f:
                    for chunk in response.iter_bytes(chunk_size=8192):
                        f.write(chunk)
                        downloaded += len(chunk)
                        sys.stdout.write(f"\rDownloading {filename}: {format_file_size(downloaded)}")
                        sys.stdout.flush()

                sys.stdout.write('\n')
                sys.stdout.flush()

                return f"Downloaded: {filename} ({format_file_size(downloaded)})\nSaved to: {output_file.absolute()}"

        except httpx.ConnectError:
            return "Error: Cannot connect to gateway server. Is it running?"
        except httpx.TimeoutException:
            return "Error: Request timed out. Backends may be slow, try again later."
        except OSError as e:
            return f"Error: Cannot write output file: {e}"

    def manifest(self, manifest_cid: str) -> str:
        """
        Show the chunk layout of a stored file.

        Args:
            manifest_cid: Content identifier returned by upload

        Returns:
            Formatted manifest summary
        """
        try:
            response = self._request_with_retry('GET', f'/shards/{manifest_cid}/manifest')
        except ConnectionError as e:
            return f"Error: {e}"

        if response.status_code != 200:
            return f"Error: {self._format_error(response)}"

        data = response.json()
        output = [
            f"File: {data['file_name']} ({format_file_size(data['original_size'])})",
            f"Version: {data['version']}  Encrypted: {'yes' if data['encrypted'] else 'no'}",
            f"Chunks: {data['total_chunks']} x {format_file_size(data['chunk_size'])}",
            f"Distribution: {format_distribution(data['count_per_backend'])}",
            "",
        ]
        output.extend(format_chunk_line(chunk) for chunk in data['chunks'])
        return '\n'.join(output)

    def estimate(self, file_path: str) -> str:
        """
        Estimate upload time for a local file.

        Args:
            file_path: Path of the file

        Returns:
            Estimate message
        """
        path, error = self._resolve_upload_path(file_path)
        if error:
            return f"Error: {error}"

        size = path.stat().st_size
        try:
            response = self._request_with_retry('GET', '/shards/estimate', params={'size': size})
        except ConnectionError as e:
            return f"Error: {e}"

        if response.status_code != 200:
            return f"Error: {self._format_error(response)}"

        return f"{path.name} ({format_file_size(size)}): {response.json()['estimate']}"

    def backends(self) -> str:
        """
        List storage backends with their configuration status.

        Returns:
            Formatted backend table
        """
        try:
            response = self._request_with_retry('GET', '/backends')
        except ConnectionError as e:
            return f"Error: {e}"

        if response.status_code != 200:
            return f"Error: {self._format_error(response)}"

        data = response.json()
        output = [f"Primary: {data.get('primary') or 'none'}"]
        for backend in data['backends']:
            status = f"{GREEN}configured{RESET}" if backend['is_configured'] else f"{RED}not configured{RESET}"
            output.append(
                f"  {backend['name']:<10} {status}  "
                f"max {format_file_size(backend['max_size'])}, free tier {backend['free_storage']}"
            )
        return '\n'.join(output)

    def health(self) -> str:
        """
        Probe every storage backend.

        Returns:
            One line per backend
        """
        try:
            response = self._request_with_retry('GET', '/backends/health')
        except ConnectionError as e:
            return f"Error: {e}"

        if response.status_code != 200:
            return f"Error: {self._format_error(response)}"

        return '\n'.join(
            f"  {name:<10} {GREEN + 'healthy' if healthy else RED + 'unhealthy'}{RESET}"
            for name, healthy in response.json().items()
        )


def _attachment_filename(response: httpx.Response) -> Optional[str]:
    """
    File name from a Content-Disposition attachment header.

    The UTF-8 filename* parameter wins over the plain ASCII filename.
    """
    disposition = response.headers.get('Content-Disposition', '')
    plain = encoded = None

    for param in disposition.split(';'):
        key, sep, value = param.partition('=')
        if not sep:
            continue
        key = key.strip().lower()
        value = value.strip()
        if key == 'filename*':
            _, _, encoded = value.partition("''")
        elif key == 'filename':
            plain = value.strip('"')

    name = unquote(encoded, errors='replace') if encoded else plain
    if not name:
        return None
    return os.path.basename(name) or None
