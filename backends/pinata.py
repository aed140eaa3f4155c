"""Pinata IPFS adapter (free tier: 1GB storage)."""

from typing import Optional

from backends.base import IpfsHttpAdapter
from common.constants import GIB
from common.types import BackendName

PINATA_API_URL = "https://api.pinata.cloud"


class PinataAdapter(IpfsHttpAdapter):
    """
    Pins objects through the Pinata pinning API using a JWT.
    """

    name = BackendName.PINATA
    max_size = 1 * GIB
    free_storage = "1GB"
    upload_endpoint = f"{PINATA_API_URL}/pinning/pinFileToIPFS"
    cid_field = "IpfsHash"
    gateways = (
        "https://gateway.pinata.cloud/ipfs",
        "https://ipfs.io/ipfs",
        "https://cloudflare-ipfs.com/ipfs",
        "https://dweb.link/ipfs",
    )

    def __init__(self, jwt: Optional[str] = None, **kwargs):
        super().__init__(credential=jwt, **kwargs)

    async def _probe(self) -> bool:
        async with self._client() as client:
            response = await client.get(
                f"{PINATA_API_URL}/data/testAuthentication",
                headers=self._auth_headers(),
            )
        return response.is_success
