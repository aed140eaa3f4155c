"""Storage manager lookup for the gateway routes."""

from typing import Optional

from fastapi import Request

from backends.config import create_registry_from_env
from common.logging_config import get_logger
from gateway.config import GATEWAY_ENCRYPTION
from sharding.distribution import DistributionPolicy
from sharding.encryption import AesGcmEncryptor, Encryptor, PlaintextEncryptor
from sharding.manager import ShardedStorageManager

logger = get_logger(__name__)


def create_encryptor(mode: str = GATEWAY_ENCRYPTION) -> Encryptor:
    """
    Build the encryptor for a mode name.

    Raises:
        ValueError: If the mode is not "aes-gcm" or "none"
    """
    if mode == "aes-gcm":
        return AesGcmEncryptor()
    if mode == "none":
        return PlaintextEncryptor()
    raise ValueError(f"Unknown encryption mode '{mode}', expected 'aes-gcm' or 'none'")


def create_storage_manager() -> ShardedStorageManager:
    """Build a storage manager from the environment."""
    manager = ShardedStorageManager(
        registry=create_registry_from_env(),
        policy=DistributionPolicy.from_env(),
        encryptor=create_encryptor(),
    )
    logger.info(f"Storage manager created (distribution={manager.policy}, encryption={GATEWAY_ENCRYPTION})")
    return manager


def set_storage_manager(app, manager: Optional[ShardedStorageManager]) -> None:
    """Install the manager used by every request of the app."""
    app.state.storage_manager = manager


def get_storage_manager(request: Request) -> ShardedStorageManager:
    """
    FastAPI dependency returning the app's storage manager.

    The manager is created from the environment on first use when none
    was installed.
    """
    manager = getattr(request.app.state, 'storage_manager', None)
    if manager is None:
        manager = create_storage_manager()
        set_storage_manager(request.app, manager)
    return manager
