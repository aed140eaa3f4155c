"""Entry point for the storage gateway service."""

import time
import uuid

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from common.exceptions import (
    AllBackendsFailedError,
    BackendError,
    BackendTimeoutError,
    ChecksumMismatchError,
    ChunkNotReadyError,
    ConfigurationError,
    DecryptionError,
    DownloadFailedError,
    ManifestInvalidError,
    ShardCloudException,
    SizeExceededError,
    TransferCancelledError,
    UploadFailedError,
)
from common.logging_config import setup_logging
from gateway.config import GATEWAY_HOST, GATEWAY_PORT, GATEWAY_RELOAD
from gateway.routes.backend_routes import router as backend_router
from gateway.routes.shard_routes import router as shard_router
from gateway.schemas.common import ErrorResponse
from gateway.service_locator import create_storage_manager, set_storage_manager

logger = setup_logging('gateway')
setup_logging('backends')
setup_logging('sharding')

app = FastAPI(
    title="ShardCloud Files Gateway",
    description="Encrypted sharded storage across multiple IPFS pinning services",
    version="1.0.0"
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """
    Middleware to log all HTTP requests and responses.
    """
    request_id = str(uuid.uuid4())
    request.state.request_id = request_id

    start_time = time.time()

    logger.info(
        f"Request started: {request.method} {request.url.path} [request_id={request_id}]"
    )

    response = await call_next(request)

    duration = time.time() - start_time

    logger.info(
        f"Request completed: {request.method} {request.url.path} "
        f"status={response.status_code} duration={duration:.3f}s [request_id={request_id}]"
    )

    response.headers["X-Request-ID"] = request_id

    return response


@app.on_event("startup")
async def startup_event():
    """
    Create the storage manager unless one was installed already.
    """
    logger.info("Gateway service starting up...")

    manager = getattr(app.state, "storage_manager", None)
    if manager is None:
        manager = create_storage_manager()
        set_storage_manager(app, manager)

    configured = [adapter.name.value for adapter in manager.registry.configured()]
    logger.info(f"Configured backends: {', '.join(configured) or 'none'}")


def _error_response(request: Request, exc: Exception, status_code: int, code: str, level: str = "warning"):
    request_id = getattr(request.state, 'request_id', 'unknown')
    message = f"{type(exc).__name__}: {exc} [request_id={request_id}] path={request.url.path}"

    if level == "error":
        logger.error(message, exc_info=True)
    else:
        logger.warning(message)

    body = ErrorResponse(
        detail=str(exc),
        code=code,
        request_id=request_id,
        backend=getattr(exc, 'backend', None),
        chunk_index=getattr(exc, 'chunk_index', None),
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError):
    return _error_response(request, exc, status.HTTP_503_SERVICE_UNAVAILABLE, "CONFIGURATION_ERROR")


@app.exception_handler(SizeExceededError)
async def size_exceeded_handler(request: Request, exc: SizeExceededError):
    return _error_response(request, exc, status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, "SIZE_EXCEEDED")


@app.exception_handler(UploadFailedError)
async def upload_failed_handler(request: Request, exc: UploadFailedError):
    return _error_response(request, exc, status.HTTP_502_BAD_GATEWAY, "UPLOAD_FAILED", "error")


@app.exception_handler(DownloadFailedError)
async def download_failed_handler(request: Request, exc: DownloadFailedError):
    return _error_response(request, exc, status.HTTP_502_BAD_GATEWAY, "DOWNLOAD_FAILED", "error")


@app.exception_handler(BackendTimeoutError)
async def backend_timeout_handler(request: Request, exc: BackendTimeoutError):
    return _error_response(request, exc, status.HTTP_504_GATEWAY_TIMEOUT, "BACKEND_TIMEOUT", "error")


@app.exception_handler(BackendError)
async def backend_error_handler(request: Request, exc: BackendError):
    return _error_response(request, exc, status.HTTP_502_BAD_GATEWAY, "BACKEND_ERROR", "error")


@app.exception_handler(AllBackendsFailedError)
async def all_backends_failed_handler(request: Request, exc: AllBackendsFailedError):
    return _error_response(request, exc, status.HTTP_502_BAD_GATEWAY, "ALL_BACKENDS_FAILED", "error")


@app.exception_handler(ChecksumMismatchError)
async def checksum_mismatch_handler(request: Request, exc: ChecksumMismatchError):
    return _error_response(
        request, exc, status.HTTP_500_INTERNAL_SERVER_ERROR, "CHECKSUM_MISMATCH", "error"
    )


@app.exception_handler(ManifestInvalidError)
async def manifest_invalid_handler(request: Request, exc: ManifestInvalidError):
    return _error_response(request, exc, status.HTTP_422_UNPROCESSABLE_ENTITY, "MANIFEST_INVALID")


@app.exception_handler(ChunkNotReadyError)
async def chunk_not_ready_handler(request: Request, exc: ChunkNotReadyError):
    return _error_response(request, exc, status.HTTP_409_CONFLICT, "CHUNK_NOT_READY")


@app.exception_handler(DecryptionError)
async def decryption_error_handler(request: Request, exc: DecryptionError):
    return _error_response(
        request, exc, status.HTTP_500_INTERNAL_SERVER_ERROR, "DECRYPTION_FAILED", "error"
    )


@app.exception_handler(TransferCancelledError)
async def transfer_cancelled_handler(request: Request, exc: TransferCancelledError):
    return _error_response(request, exc, status.HTTP_409_CONFLICT, "TRANSFER_CANCELLED")


@app.exception_handler(ShardCloudException)
async def shardcloud_exception_handler(request: Request, exc: ShardCloudException):
    return _error_response(
        request, exc, status.HTTP_500_INTERNAL_SERVER_ERROR, "SHARDCLOUD_ERROR", "error"
    )


app.include_router(shard_router)
app.include_router(backend_router)


@app.get("/")
async def root():
    """
    Root endpoint for health check.
    """
    return {"message": "ShardCloud Files Gateway API", "status": "running"}


@app.get("/health")
async def health_check():
    """
    Liveness probe. Returns 200 if the service is alive; backend
    reachability is reported by /backends/health.
    """
    return {"status": "healthy", "service": "gateway"}


def main() -> None:
    """
    Start the FastAPI server with uvicorn.
    """
    uvicorn.run(
        "gateway.main:app",
        host=GATEWAY_HOST,
        port=GATEWAY_PORT,
        reload=GATEWAY_RELOAD
    )


if __name__ == "__main__":
    main()
