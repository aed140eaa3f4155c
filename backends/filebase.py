"""Filebase IPFS adapter (free tier: 5GB storage), via the IPFS RPC API."""

from typing import Optional

from backends.base import IpfsHttpAdapter
from common.constants import GIB
from common.types import BackendName

FILEBASE_RPC_URL = "https://rpc.filebase.io"


class FilebaseAdapter(IpfsHttpAdapter):
    """
    Adds objects through Filebase's IPFS RPC ``/api/v0/add`` endpoint,
    authenticated with an IPFS RPC API key.
    """

    name = BackendName.FILEBASE
    max_size = 5 * GIB
    free_storage = "5GB"
    upload_endpoint = f"{FILEBASE_RPC_URL}/api/v0/add"
    cid_field = "Hash"
    gateways = (
        "https://ipfs.filebase.io/ipfs",
        "https://ipfs.io/ipfs",
        "https://cloudflare-ipfs.com/ipfs",
    )

    def __init__(self, api_key: Optional[str] = None, **kwargs):
        super().__init__(credential=api_key, **kwargs)

    async def _probe(self) -> bool:
        async with self._client() as client:
            response = await client.head(FILEBASE_RPC_URL)
        # The RPC root answers 4xx to anonymous HEADs; only 5xx means down.
        return response.status_code < 500
