"""Shared pytest fixtures for all tests."""

import pytest

from backends.memory import MemoryBackend
from backends.registry import BackendRegistry
from cli.config import Config
from common.types import BackendName, DownloadResult
from sharding.encryption import PlaintextEncryptor
from sharding.manager import ShardedStorageManager
from sharding.scheduler import TransferScheduler


class FlakyBackend(MemoryBackend):
    """
    MemoryBackend that fails a number of upload/download attempts first.

    ``upload_failures=-1`` (or ``download_failures=-1``) fails forever.
    """

    def __init__(self, name, upload_failures=0, download_failures=0, **kwargs):
        super().__init__(name, **kwargs)
        self.upload_failures = upload_failures
        self.download_failures = download_failures
        self.upload_calls = 0
        self.download_calls = 0

    async def _perform_upload(self, data, filename, on_progress=None):
        self.upload_calls += 1
        if self.upload_failures:
            if self.upload_failures > 0:
                self.upload_failures -= 1
            raise ConnectionError(f"{self.name.value} upload outage")
        return await super()._perform_upload(data, filename, on_progress)

    async def _perform_download(self, gateway, content_id) -> DownloadResult:
        self.download_calls += 1
        if self.download_failures:
            if self.download_failures > 0:
                self.download_failures -= 1
            raise ConnectionError(f"{self.name.value} download outage")
        return await super()._perform_download(gateway, content_id)


def make_backends(**overrides):
    """
    One in-memory backend per name, in pinata/filebase/lighthouse order.

    Args:
        **overrides: backend name -> adapter instance to use instead
    """
    backends = []
    for name in (BackendName.PINATA, BackendName.FILEBASE, BackendName.LIGHTHOUSE):
        backend = overrides.get(name.value)
        if backend is None:
            backend = MemoryBackend(name, retry_base_delay=0)
        backends.append(backend)
    return backends


def make_manager(registry, **kwargs):
    """Storage manager without encryption or backoff delays."""
    kwargs.setdefault('encryptor', PlaintextEncryptor())
    kwargs.setdefault('scheduler', TransferScheduler(retry_base_delay=0))
    return ShardedStorageManager(registry, **kwargs)


@pytest.fixture
def memory_backends():
    """Pinata, filebase and lighthouse stand-ins keyed by BackendName."""
    return {backend.name: backend for backend in make_backends()}


@pytest.fixture
def memory_registry(memory_backends):
    return BackendRegistry(memory_backends.values())


@pytest.fixture
def manager(memory_registry):
    """ShardedStorageManager over in-memory backends, identity encryption."""
    return make_manager(memory_registry)


@pytest.fixture
def temp_config_dir(tmp_path):
    """
    Create temporary config directory.

    Args:
        tmp_path: pytest tmp_path fixture

    Returns:
        Path to temporary .shardcloud directory
    """
    config_dir = tmp_path / '.shardcloud'
    config_dir.mkdir()
    return config_dir


@pytest.fixture
def temp_config(temp_config_dir, tmp_path):
    """
    Create temporary config instance with downloads under tmp_path.

    Args:
        temp_config_dir: Temporary config directory fixture

    Returns:
        Config instance with temp config file
    """
    config = Config(temp_config_dir / 'config.json')
    config.data['downloads_dir'] = str(tmp_path / 'downloads')
    return config


@pytest.fixture
def sample_file(tmp_path):
    """
    Create a sample file for testing file uploads.

    Args:
        tmp_path: pytest tmp_path fixture

    Returns:
        Path to sample text file
    """
    file_path = tmp_path / 'test.txt'
    file_path.write_text('Sample content for testing')
    return file_path
