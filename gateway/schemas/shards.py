"""Pydantic schemas for sharded upload/download endpoints."""

from typing import Dict, List
from pydantic import BaseModel


class UploadShardsResponse(BaseModel):
    """Response model for a sharded upload."""
    manifest_cid: str
    file_name: str
    size: int


class EstimateResponse(BaseModel):
    """Response model for upload time estimates."""
    size: int
    estimate: str


class ChunkLayoutResponse(BaseModel):
    """Placement of one chunk."""
    index: int
    service: str
    cid: str
    checksum: str
    size: int


class ManifestResponse(BaseModel):
    """Chunk layout of a stored payload, without key material."""
    manifest_cid: str
    version: str
    file_name: str
    original_size: int
    chunk_size: int
    total_chunks: int
    encrypted: bool
    count_per_backend: Dict[str, int]
    chunks: List[ChunkLayoutResponse]
