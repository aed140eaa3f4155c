"""Command request data types for CLI."""

from dataclasses import dataclass
from typing import Literal, Optional, Union


@dataclass(frozen=True)
class UploadCommand:
    """Upload a local file as encrypted shards."""

    path: str
    command: Literal["upload"] = "upload"


@dataclass(frozen=True)
class DownloadCommand:
    """Rebuild a file from its manifest CID."""

    manifest_cid: str
    output_path: Optional[str] = None
    command: Literal["download"] = "download"


@dataclass(frozen=True)
class ManifestCommand:
    """Show the chunk layout stored under a manifest CID."""

    manifest_cid: str
    command: Literal["manifest"] = "manifest"


@dataclass(frozen=True)
class EstimateCommand:
    """Estimate upload time for a local file."""

    path: str
    command: Literal["estimate"] = "estimate"


@dataclass(frozen=True)
class BackendsCommand:
    """List storage backends."""

    command: Literal["backends"] = "backends"


@dataclass(frozen=True)
class HealthCommand:
    """Probe storage backends."""

    command: Literal["health"] = "health"


CommandRequest = Union[
    UploadCommand,
    DownloadCommand,
    ManifestCommand,
    EstimateCommand,
    BackendsCommand,
    HealthCommand,
]
