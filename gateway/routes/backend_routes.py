"""Backend status API routes."""

from typing import Dict

from fastapi import APIRouter, Depends, status

from gateway.schemas.common import ErrorResponse
from gateway.schemas.backends import (
    BackendInfoResponse,
    BackendListResponse,
    ServiceStatResponse
)
from gateway.service_locator import get_storage_manager
from sharding.manager import ShardedStorageManager

router = APIRouter(
    prefix="/backends",
    tags=["Backends"],
    responses={status.HTTP_503_SERVICE_UNAVAILABLE: {"model": ErrorResponse}},
)


@router.get("", response_model=BackendListResponse)
async def list_backends(manager: ShardedStorageManager = Depends(get_storage_manager)):
    """
    Configuration status of every registered backend adapter.
    """
    primary = manager.registry.primary()

    return BackendListResponse(
        backends=[BackendInfoResponse(**info) for info in manager.registry.status()],
        primary=primary.name.value if primary else None,
    )


@router.get("/health", response_model=Dict[str, bool])
async def backend_health(manager: ShardedStorageManager = Depends(get_storage_manager)):
    """
    Probe every backend concurrently. Unconfigured backends report false.
    """
    health = await manager.registry.health_check_all()
    return {backend.value: healthy for backend, healthy in health.items()}


@router.get("/stats", response_model=Dict[str, ServiceStatResponse])
async def service_stats(manager: ShardedStorageManager = Depends(get_storage_manager)):
    """
    Usage and free-tier limit per backend.
    """
    return manager.get_service_stats()
