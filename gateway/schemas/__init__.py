"""Pydantic schemas for API requests and responses."""

from gateway.schemas.backends import (
    BackendInfoResponse,
    BackendListResponse,
    ServiceStatResponse
)
from gateway.schemas.shards import (
    UploadShardsResponse,
    EstimateResponse,
    ChunkLayoutResponse,
    ManifestResponse
)
from gateway.schemas.common import ErrorResponse

__all__ = [
    "BackendInfoResponse",
    "BackendListResponse",
    "ServiceStatResponse",
    "UploadShardsResponse",
    "EstimateResponse",
    "ChunkLayoutResponse",
    "ManifestResponse",
    "ErrorResponse"
]
