"""Command handler functions for CLI operations."""

from pathlib import Path
from typing import Optional

from common.logging_config import get_logger
from cli.config import Config
from cli.constants import CONFIG_DIR_NAME
from cli.gateway_client import GatewayClient
from cli.models import (
    BackendsCommand,
    DownloadCommand,
    EstimateCommand,
    HealthCommand,
    ManifestCommand,
    UploadCommand,
)

logger = get_logger(__name__)


_client: Optional[GatewayClient] = None


def get_client() -> GatewayClient:
    """
    Get or create global GatewayClient instance.

    Returns:
        GatewayClient instance
    """
    global _client
    if _client is None:
        logger.debug("Creating new GatewayClient instance")
        config = Config(Path.home() / CONFIG_DIR_NAME / 'config.json')
        _client = GatewayClient(config)
    return _client


def handle_upload(cmd: UploadCommand, client: Optional[GatewayClient] = None) -> str:
    """
    Handle 'upload' command.

    Args:
        cmd: UploadCommand with the local path
        client: Optional GatewayClient for dependency injection (testing)

    Returns:
        Manifest CID or error message
    """
    logger.info(f"Executing upload command: path={cmd.path}")
    if client is None:
        client = get_client()
    result = client.upload(cmd.path)
    logger.debug("Upload command completed")
    return result


def handle_download(cmd: DownloadCommand, client: Optional[GatewayClient] = None) -> str:
    """
    Handle 'download' command.

    Args:
        cmd: DownloadCommand with manifest_cid and optional output_path
        client: Optional GatewayClient for dependency injection (testing)

    Returns:
        Success or error message with download results
    """
    logger.info(f"Executing download command: manifest_cid={cmd.manifest_cid} output_path={cmd.output_path}")
    if client is None:
        client = get_client()
    result = client.download(cmd.manifest_cid, cmd.output_path)
    logger.debug("Download command completed")
    return result


def handle_manifest(cmd: ManifestCommand, client: Optional[GatewayClient] = None) -> str:
    if client is None:
        client = get_client()
    return client.manifest(cmd.manifest_cid)


def handle_estimate(cmd: EstimateCommand, client: Optional[GatewayClient] = None) -> str:
    if client is None:
        client = get_client()
    return client.estimate(cmd.path)


def handle_backends(cmd: BackendsCommand, client: Optional[GatewayClient] = None) -> str:
    if client is None:
        client = get_client()
    return client.backends()


def handle_health(cmd: HealthCommand, client: Optional[GatewayClient] = None) -> str:
    """
    Handle 'health' command.

    Args:
        cmd: HealthCommand
        client: Optional GatewayClient for dependency injection (testing)

    Returns:
        Health line per backend
    """
    logger.info("Executing health command")
    if client is None:
        client = get_client()
    return client.health()
