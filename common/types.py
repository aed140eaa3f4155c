"""Shared data type definitions (BackendName, UploadResult, DownloadResult)."""

from dataclasses import dataclass
from enum import Enum


class BackendName(str, Enum):
    """
    Closed set of storage backends a chunk can be placed on.

    The value is the name written to the manifest wire record.
    """
    PINATA = "pinata"
    FILEBASE = "filebase"
    LIGHTHOUSE = "lighthouse"

    @classmethod
    def parse(cls, value: str) -> "BackendName":
        """Case-insensitive lookup by wire name; raises ValueError if unknown."""
        if isinstance(value, cls):
            return value
        return cls(str(value).strip().lower())

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class UploadResult:
    """
    Outcome of storing one object on a backend.
    """
    content_id: str
    url: str
    size: int
    backend: BackendName


@dataclass(frozen=True)
class DownloadResult:
    """
    Bytes retrieved for one content identifier.
    """
    data: bytes
    size: int
    content_id: str
