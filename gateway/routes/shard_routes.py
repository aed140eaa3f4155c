"""Sharded upload/download API routes."""

from urllib.parse import quote

from fastapi import APIRouter, Depends, File, Query, UploadFile, status
from fastapi.responses import Response

from common.logging_config import get_logger
from gateway.schemas.common import ErrorResponse
from gateway.schemas.shards import (
    ChunkLayoutResponse,
    EstimateResponse,
    ManifestResponse,
    UploadShardsResponse
)
from gateway.service_locator import get_storage_manager
from sharding.manager import ShardedStorageManager, estimate_upload_time

logger = get_logger(__name__)


def content_disposition(file_name: str) -> str:
    """
    Attachment header for a stored file name.

    Header values must stay Latin-1, so the plain filename parameter carries
    an ASCII rendering and filename* carries the exact UTF-8 name.
    """
    fallback = "".join(
        char if " " <= char < "\x7f" and char not in '"\\;' else "_"
        for char in file_name
    )
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(file_name, safe='')}"


router = APIRouter(
    prefix="/shards",
    tags=["Shards"],
    responses={
        status.HTTP_502_BAD_GATEWAY: {"model": ErrorResponse},
        status.HTTP_503_SERVICE_UNAVAILABLE: {"model": ErrorResponse},
    },
)


@router.post("", response_model=UploadShardsResponse, status_code=status.HTTP_201_CREATED)
async def upload_file(
    file: UploadFile = File(...),
    manager: ShardedStorageManager = Depends(get_storage_manager)
):
    """
    Encrypt, shard and store a file across the configured backends.

    Parameters:
        - file: File to upload (multipart/form-data)

    Returns:
        - manifest_cid: Content identifier of the chunk map
        - file_name: Original filename
        - size: File size in bytes

    Raises:
        - 413: A chunk exceeds a backend's size limit
        - 502: A chunk could not be stored
        - 503: Required backends not configured
    """
    file_content = await file.read()
    file_name = file.filename or "file"
    logger.info(f"Upload received: {file_name} ({len(file_content)} bytes)")

    manifest_cid = await manager.upload_sharded(file_content, file_name)

    return UploadShardsResponse(
        manifest_cid=manifest_cid,
        file_name=file_name,
        size=len(file_content),
    )


@router.get("/estimate", response_model=EstimateResponse)
async def estimate(size: int = Query(..., ge=0, description="Payload size in bytes")):
    """
    Rough upload duration for a payload size.
    """
    return EstimateResponse(size=size, estimate=estimate_upload_time(size))


@router.get("/{manifest_cid}")
async def download_file(
    manifest_cid: str,
    manager: ShardedStorageManager = Depends(get_storage_manager)
):
    """
    Reconstruct the file stored under a manifest.

    Parameters:
        - manifest_cid: Content identifier returned by the upload

    Returns:
        - File bytes as an attachment named after the original file

    Raises:
        - 409: A chunk was never finalized
        - 422: Manifest is invalid
        - 500: Checksum mismatch or decryption failure
        - 502: Manifest or chunk could not be retrieved
    """
    manifest, payload = await manager.download_file(manifest_cid)

    return Response(
        content=payload,
        media_type="application/octet-stream",
        headers={
            "Content-Disposition": content_disposition(manifest.file_name or manifest_cid),
        }
    )


@router.get("/{manifest_cid}/manifest", response_model=ManifestResponse)
async def get_manifest(
    manifest_cid: str,
    manager: ShardedStorageManager = Depends(get_storage_manager)
):
    """
    Chunk layout of a stored file. Key material is never returned.
    """
    manifest = await manager.fetch_manifest(manifest_cid)

    return ManifestResponse(
        manifest_cid=manifest_cid,
        version=manifest.version,
        file_name=manifest.file_name,
        original_size=manifest.original_size,
        chunk_size=manifest.chunk_size,
        total_chunks=manifest.total_chunks,
        encrypted=bool(manifest.encryption_key),
        count_per_backend={
            backend.value: count for backend, count in manifest.count_per_backend().items()
        },
        chunks=[
            ChunkLayoutResponse(**chunk.to_dict())
            for chunk in sorted(manifest.chunks, key=lambda chunk: chunk.index)
        ],
    )
