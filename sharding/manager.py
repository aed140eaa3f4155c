"""Sharded upload/download entry points."""

import asyncio
import math
from functools import partial
from typing import Dict, List, Optional, Tuple

from backends.base import BackendAdapter
from backends.registry import BackendRegistry
from common.checksum import chunk_checksum
from common.constants import ESTIMATED_UPLOAD_BYTES_PER_SECOND
from common.exceptions import ConfigurationError, ManifestInvalidError
from common.logging_config import get_logger
from common.protocol import ChunkRecord, Manifest
from common.types import BackendName
from sharding.chunk_planner import Chunk, ChunkPlanner
from sharding.distribution import DistributionPolicy
from sharding.encryption import AesGcmEncryptor, Encryptor
from sharding.manifest import EncryptionMeta, FileMeta, ManifestManager
from sharding.progress import (
    DownloadProgressAggregator,
    ProgressListener,
    UploadProgressAggregator,
)
from sharding.reassembly import ensure_ready, reassemble, verify_chunk
from sharding.scheduler import Direction, TransferOperation, TransferScheduler

logger = get_logger(__name__)


class ShardedStorageManager:
    """
    Splits encrypted payloads across several storage backends and puts
    them back together.

    Upload: encrypt, plan, split, upload every chunk to the backend chosen
    by the distribution policy, then publish a manifest on the primary
    backend. The manifest content identifier is the only handle callers
    need. A manifest is published only when every chunk was stored.

    Download: fetch and validate the manifest, download every chunk from
    its recorded backend, verify checksums, reassemble and decrypt.
    """

    def __init__(
        self,
        registry: BackendRegistry,
        policy: Optional[DistributionPolicy] = None,
        planner: Optional[ChunkPlanner] = None,
        scheduler: Optional[TransferScheduler] = None,
        encryptor: Optional[Encryptor] = None,
    ):
        self.registry = registry
        self.policy = policy or DistributionPolicy()
        self.planner = planner or ChunkPlanner()
        self.scheduler = scheduler or TransferScheduler()
        self.encryptor = encryptor or AesGcmEncryptor()
        self.manifests = ManifestManager(registry)

    async def upload_sharded(
        self,
        payload: bytes,
        file_name: str,
        on_progress: Optional[ProgressListener] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> str:
        """
        Store a payload as encrypted chunks spread over the backends.

        Args:
            payload: Bytes to store
            file_name: Name recorded in the manifest
            on_progress: Receives an UploadProgress after every stored chunk
            cancel_event: Set it to abort the transfer

        Returns:
            Content identifier of the published manifest

        Raises:
            ConfigurationError: Before any network call, if a needed backend is missing
            UploadFailedError: If a chunk could not be stored
            TransferCancelledError: If cancel_event was set
        """
        encrypted = self.encryptor.encrypt(payload)
        plan = self.planner.plan(len(encrypted.ciphertext))
        assignments = self.policy.assign(plan.total_chunks)
        adapters = self._upload_adapters(assignments)

        distribution = {
            backend.value: count
            for backend, count in self.policy.count_per_backend(plan.total_chunks).items()
        }
        logger.info(
            f"Uploading {file_name}: {len(payload)} bytes -> {plan.total_chunks} chunk(s) "
            f"of {plan.chunk_size} bytes, distribution {distribution}"
        )

        chunks = self.planner.split(encrypted.ciphertext, plan.chunk_size)
        operations = [
            TransferOperation(
                index=chunk.index,
                backend=assignments[chunk.index],
                action=partial(self._upload_chunk, adapters[assignments[chunk.index]], chunk, file_name),
            )
            for chunk in chunks
        ]

        async with UploadProgressAggregator(assignments, on_progress) as progress:
            records = await self.scheduler.run(
                operations,
                Direction.UPLOAD,
                progress=progress,
                cancel_event=cancel_event,
            )

        manifest = self.manifests.build(
            records,
            FileMeta(file_name=file_name, original_size=len(payload), chunk_size=plan.chunk_size),
            EncryptionMeta(key=encrypted.key, iv=encrypted.iv),
            total_chunks=plan.total_chunks,
        )
        manifest_cid = await self.manifests.publish(manifest)

        logger.info(f"Upload of {file_name} complete, manifest {manifest_cid}")
        return manifest_cid

    async def download_sharded(
        self,
        manifest_cid: str,
        on_progress: Optional[ProgressListener] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> bytes:
        """
        Rebuild the payload stored under a manifest.

        Raises:
            ManifestInvalidError: Before any chunk download, if the manifest is unusable
            ChunkNotReadyError: If a chunk was never finalized
            ChecksumMismatchError: If a chunk came back altered
            DownloadFailedError: If a chunk could not be retrieved
            DecryptionError: If the reassembled payload does not decrypt
        """
        _, payload = await self.download_file(manifest_cid, on_progress, cancel_event)
        return payload

    async def download_file(
        self,
        manifest_cid: str,
        on_progress: Optional[ProgressListener] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Tuple[Manifest, bytes]:
        """Same as download_sharded, also returning the manifest."""
        manifest = await self.fetch_manifest(manifest_cid)
        records = sorted(manifest.chunks, key=lambda record: record.index)

        for record in records:
            ensure_ready(record)

        logger.info(
            f"Downloading {manifest.file_name}: {manifest.total_chunks} chunk(s), "
            f"{manifest.original_size} bytes"
        )

        operations = [
            TransferOperation(
                index=record.index,
                backend=record.backend,
                action=partial(self._download_chunk, record),
            )
            for record in records
        ]

        async with DownloadProgressAggregator(len(records), on_progress) as progress:
            pieces = await self.scheduler.run(
                operations,
                Direction.DOWNLOAD,
                progress=progress,
                cancel_event=cancel_event,
            )

        ciphertext = reassemble(
            ((record.index, data) for record, data in zip(records, pieces)),
            records,
        )
        payload = self.encryptor.decrypt(ciphertext, manifest.encryption_key, manifest.encryption_iv)

        if len(payload) != manifest.original_size:
            logger.warning(
                f"{manifest.file_name}: decrypted {len(payload)} bytes, "
                f"manifest records {manifest.original_size}"
            )

        logger.info(f"Download of {manifest.file_name} complete ({len(payload)} bytes)")
        return manifest, payload

    async def fetch_manifest(self, manifest_cid: str) -> Manifest:
        """Fetch a manifest and reject it unless it validates."""
        manifest = await self.manifests.fetch(manifest_cid)
        if not self.manifests.validate(manifest):
            raise ManifestInvalidError(f"Manifest {manifest_cid} failed validation")
        return manifest

    def get_service_stats(self) -> Dict[str, Dict[str, str]]:
        """Per-backend usage and free-tier limit; usage is not tracked."""
        return {
            adapter.name.value: {'usage': 'Unknown', 'limit': adapter.free_storage}
            for adapter in self.registry.all()
        }

    def _upload_adapters(self, assignments: List[BackendName]) -> Dict[BackendName, BackendAdapter]:
        if not self.registry.configured():
            raise ConfigurationError("No storage backends configured")

        if self.registry.primary() is None:
            raise ConfigurationError("No configured backend to store the manifest")

        adapters: Dict[BackendName, BackendAdapter] = {}
        for backend in dict.fromkeys(assignments):
            adapter = self.registry.get(backend)
            if not adapter.is_configured:
                raise ConfigurationError(
                    f"Distribution needs {backend.value} but it is not configured",
                    backend=backend.value
                )
            adapters[backend] = adapter
        return adapters

    async def _upload_chunk(self, adapter: BackendAdapter, chunk: Chunk, file_name: str) -> ChunkRecord:
        result = await adapter.upload(chunk.data, f"{file_name}_chunk_{chunk.index}")
        logger.debug(f"Chunk {chunk.index} stored on {adapter.name.value}: {result.content_id}")

        return ChunkRecord(
            index=chunk.index,
            backend=adapter.name,
            content_id=result.content_id,
            checksum=chunk_checksum(chunk.data),
            size=chunk.size,
        )

    async def _download_chunk(self, record: ChunkRecord) -> bytes:
        ensure_ready(record)
        result = await self.registry.get(record.backend).download(record.content_id)
        return verify_chunk(record, result.data)


def estimate_upload_time(size: int) -> str:
    """Rough human-readable upload duration at ~1 MiB/s."""
    seconds = size / ESTIMATED_UPLOAD_BYTES_PER_SECOND

    if seconds < 60:
        return f"~{math.ceil(seconds)} seconds"
    if seconds < 3600:
        return f"~{math.ceil(seconds / 60)} minutes"
    return f"~{math.ceil(seconds / 3600)} hours"
