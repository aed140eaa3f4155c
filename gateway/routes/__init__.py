"""API routes package."""

from gateway.routes.backend_routes import router as backend_router
from gateway.routes.shard_routes import router as shard_router

__all__ = ["backend_router", "shard_router"]
