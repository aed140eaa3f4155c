"""Manifest construction, validation, publication and retrieval."""

from dataclasses import dataclass
import re
from typing import Dict, Iterable, List, Optional

from backends.registry import BackendRegistry
from common.constants import KNOWN_MANIFEST_VERSIONS, MANIFEST_SUFFIX
from common.exceptions import ChunkNotReadyError, ConfigurationError, ManifestInvalidError
from common.logging_config import get_logger
from common.protocol import ChunkRecord, Manifest

logger = get_logger(__name__)

SHA256_HEX = re.compile(r"[0-9a-fA-F]{64}")


@dataclass(frozen=True)
class FileMeta:
    file_name: str
    original_size: int
    chunk_size: int


@dataclass(frozen=True)
class EncryptionMeta:
    key: str
    iv: str


class ManifestBuilder:
    """
    Collects chunk records as uploads finish.

    A Manifest can only be produced once every index has a record with a
    resolvable content identifier.
    """

    def __init__(
        self,
        total_chunks: int,
        chunk_size: int,
        original_size: int,
        file_name: str,
        encryption_key: str = "",
        encryption_iv: str = "",
    ):
        if total_chunks < 0:
            raise ValueError("total_chunks must be non-negative")

        self.total_chunks = total_chunks
        self.chunk_size = chunk_size
        self.original_size = original_size
        self.file_name = file_name
        self.encryption_key = encryption_key
        self.encryption_iv = encryption_iv
        self._records: Dict[int, ChunkRecord] = {}

    def add(self, record: ChunkRecord) -> None:
        """
        Raises:
            ManifestInvalidError: If the index is out of range or already recorded
        """
        if not 0 <= record.index < self.total_chunks:
            raise ManifestInvalidError(
                f"Chunk index {record.index} out of range [0, {self.total_chunks})"
            )
        if record.index in self._records:
            raise ManifestInvalidError(f"Duplicate chunk index {record.index}")
        self._records[record.index] = record

    def missing(self) -> List[int]:
        """Indices without a record or whose record is not ready yet."""
        return [
            index for index in range(self.total_chunks)
            if index not in self._records or not self._records[index].is_ready
        ]

    @property
    def is_complete(self) -> bool:
        return not self.missing()

    def build(self) -> Manifest:
        """
        Raises:
            ChunkNotReadyError: For the first index still missing or pending
        """
        missing = self.missing()
        if missing:
            record = self._records.get(missing[0])
            backend = record.backend.value if record is not None else "unassigned"
            raise ChunkNotReadyError(missing[0], backend)

        return Manifest(
            total_chunks=self.total_chunks,
            chunk_size=self.chunk_size,
            original_size=self.original_size,
            file_name=self.file_name,
            encryption_key=self.encryption_key,
            encryption_iv=self.encryption_iv,
            chunks=tuple(self._records[index] for index in range(self.total_chunks)),
        )


class ManifestManager:
    """
    Stores and retrieves manifests.

    Manifests are always written to the registry's primary backend and
    read back through download_with_fallback.
    """

    def __init__(self, registry: BackendRegistry):
        self.registry = registry

    def build(
        self,
        records: Iterable[ChunkRecord],
        file_meta: FileMeta,
        encryption_meta: EncryptionMeta,
        total_chunks: Optional[int] = None,
    ) -> Manifest:
        records = list(records)
        builder = ManifestBuilder(
            total_chunks=len(records) if total_chunks is None else total_chunks,
            chunk_size=file_meta.chunk_size,
            original_size=file_meta.original_size,
            file_name=file_meta.file_name,
            encryption_key=encryption_meta.key,
            encryption_iv=encryption_meta.iv,
        )
        for record in records:
            builder.add(record)
        return builder.build()

    async def publish(self, manifest: Manifest) -> str:
        """
        Upload the manifest to the primary backend.

        Returns:
            Content identifier of the stored manifest

        Raises:
            ManifestInvalidError: If the manifest does not validate
            ConfigurationError: If no backend is configured
        """
        if not self.validate(manifest):
            raise ManifestInvalidError(f"Refusing to publish invalid manifest for {manifest.file_name}")

        primary = self.registry.primary()
        if primary is None:
            raise ConfigurationError("No configured backend to store the manifest")

        result = await primary.upload(manifest.to_json(), f"{manifest.file_name}{MANIFEST_SUFFIX}")
        logger.info(
            f"Published manifest for {manifest.file_name} "
            f"({manifest.total_chunks} chunks) on {primary.name.value}: {result.content_id}"
        )
        return result.content_id

    async def fetch(self, content_id: str) -> Manifest:
        """
        Raises:
            AllBackendsFailedError: If no backend could return the manifest
            ManifestInvalidError: If the bytes are not a structurally valid manifest
        """
        result = await self.registry.download_with_fallback(content_id)
        manifest = Manifest.from_json(result.data)
        logger.debug(f"Fetched manifest {content_id}: {manifest.total_chunks} chunks")
        return manifest

    def validate(self, manifest: Manifest) -> bool:
        reason = self._invalid_reason(manifest)
        if reason is not None:
            logger.warning(f"Invalid manifest for '{manifest.file_name}': {reason}")
            return False
        return True

    @staticmethod
    def _invalid_reason(manifest: Manifest) -> Optional[str]:
        if manifest.version not in KNOWN_MANIFEST_VERSIONS:
            return f"unknown version {manifest.version!r}"

        for field_name, value in (
            ("fileName", manifest.file_name),
            ("encryptionKey", manifest.encryption_key),
            ("encryptionIV", manifest.encryption_iv),
        ):
            if not isinstance(value, str):
                return f"{field_name} is not a string ({type(value).__name__})"

        if not _is_int(manifest.total_chunks) or manifest.total_chunks < 0:
            return f"totalChunks is not a non-negative integer: {manifest.total_chunks!r}"

        if len(manifest.chunks) != manifest.total_chunks:
            return f"{len(manifest.chunks)} chunk entries for totalChunks={manifest.total_chunks}"

        for chunk in manifest.chunks:
            if not _is_int(chunk.index):
                return f"chunk index is not an integer: {chunk.index!r}"
            if not chunk.backend:
                return f"chunk {chunk.index} has no service"
            if not chunk.content_id:
                return f"chunk {chunk.index} has no cid"
            if not isinstance(chunk.checksum, str) or not SHA256_HEX.fullmatch(chunk.checksum):
                return f"chunk {chunk.index} checksum is not a SHA-256 hex digest: {chunk.checksum!r}"
            if not _is_int(chunk.size) or chunk.size < 0:
                return f"chunk {chunk.index} size is not a non-negative integer: {chunk.size!r}"

        indices = sorted(chunk.index for chunk in manifest.chunks)
        if indices != list(range(manifest.total_chunks)):
            return "chunk indices are not exactly 0..totalChunks-1"

        return None


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)
