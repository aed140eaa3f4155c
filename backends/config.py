"""Backend credentials and registry construction from the environment."""

import os
from typing import Mapping, Optional

from backends.filebase import FilebaseAdapter
from backends.lighthouse import LighthouseAdapter
from backends.pinata import PinataAdapter
from backends.registry import BackendRegistry
from common.constants import (
    BACKEND_MAX_RETRIES,
    BACKEND_TIMEOUT_SECONDS,
    RETRY_BASE_DELAY_SECONDS,
)

PINATA_JWT_ENV = "PINATA_JWT"
FILEBASE_API_KEY_ENV = "FILEBASE_API_KEY"
LIGHTHOUSE_API_KEY_ENV = "LIGHTHOUSE_API_KEY"


def create_registry_from_env(
    environ: Optional[Mapping[str, str]] = None,
    timeout: float = BACKEND_TIMEOUT_SECONDS,
    max_retries: int = BACKEND_MAX_RETRIES,
    retry_base_delay: float = RETRY_BASE_DELAY_SECONDS,
) -> BackendRegistry:
    """
    Build the default registry: Pinata, Filebase, Lighthouse, in that order.

    Adapters whose credential variable is unset are registered anyway but
    report is_configured=False; they still serve public downloads.

    Args:
        environ: Mapping to read credentials from (defaults to os.environ)
        timeout: Per-call timeout in seconds for every adapter
        max_retries: Upload attempts per adapter call
        retry_base_delay: First backoff delay in seconds

    Returns:
        BackendRegistry instance
    """
    env = os.environ if environ is None else environ
    options = {
        'timeout': timeout,
        'max_retries': max_retries,
        'retry_base_delay': retry_base_delay,
    }

    return BackendRegistry([
        PinataAdapter(jwt=env.get(PINATA_JWT_ENV), **options),
        FilebaseAdapter(api_key=env.get(FILEBASE_API_KEY_ENV), **options),
        LighthouseAdapter(api_key=env.get(LIGHTHOUSE_API_KEY_ENV), **options),
    ])
