"""Pydantic schemas for backend status endpoints."""

from typing import List, Optional
from pydantic import BaseModel


class BackendInfoResponse(BaseModel):
    """Configuration and limits of one backend adapter."""
    name: str
    is_configured: bool
    max_size: int
    free_storage: str


class BackendListResponse(BaseModel):
    """Response model for the adapter status list."""
    backends: List[BackendInfoResponse]
    primary: Optional[str] = None


class ServiceStatResponse(BaseModel):
    """Usage and free-tier limit of one backend."""
    usage: str
    limit: str
