"""Lighthouse.storage IPFS adapter (100GB perpetual storage, 24GB per request)."""

from typing import Optional

from backends.base import IpfsHttpAdapter
from common.constants import GIB, HEALTH_CHECK_TIMEOUT_SECONDS
from common.types import BackendName

LIGHTHOUSE_UPLOAD_URL = "https://upload.lighthouse.storage/api/v0/add"
LIGHTHOUSE_PROBE_CID = "QmNLei78zWmzUdbeRB3CiUfAizWUrbeeZh5K1rhAQKCh51"


class LighthouseAdapter(IpfsHttpAdapter):
    """
    Uploads through the Lighthouse node API; the response carries the CID
    in ``Hash`` (and ``Size`` as a string).
    """

    name = BackendName.LIGHTHOUSE
    max_size = 24 * GIB
    free_storage = "100GB (perpetual)"
    upload_endpoint = LIGHTHOUSE_UPLOAD_URL
    cid_field = "Hash"
    gateways = (
        "https://gateway.lighthouse.storage/ipfs",
        "https://ipfs.io/ipfs",
        "https://cloudflare-ipfs.com/ipfs",
    )

    def __init__(self, api_key: Optional[str] = None, **kwargs):
        super().__init__(credential=api_key, **kwargs)

    async def _probe(self) -> bool:
        async with self._client(timeout=HEALTH_CHECK_TIMEOUT_SECONDS) as client:
            response = await client.head(self.gateway_url(LIGHTHOUSE_PROBE_CID))
        return response.is_success
