"""Storage backend adapters and the registry that holds them."""

from backends.base import BackendAdapter, IpfsHttpAdapter
from backends.config import create_registry_from_env
from backends.filebase import FilebaseAdapter
from backends.lighthouse import LighthouseAdapter
from backends.memory import MemoryBackend
from backends.pinata import PinataAdapter
from backends.registry import BackendRegistry

__all__ = [
    "BackendAdapter",
    "IpfsHttpAdapter",
    "PinataAdapter",
    "FilebaseAdapter",
    "LighthouseAdapter",
    "MemoryBackend",
    "BackendRegistry",
    "create_registry_from_env",
]
