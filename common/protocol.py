"""Manifest ("chunk map") wire record and its JSON serialization."""

from dataclasses import dataclass, field
from typing import Any, Dict, Tuple
import json

from common.constants import MANIFEST_VERSION, PENDING_CONTENT_IDS
from common.exceptions import ManifestInvalidError
from common.types import BackendName


@dataclass(frozen=True)
class ChunkRecord:
    """Where one chunk of the ciphertext lives and how to verify it."""
    index: int
    backend: BackendName
    content_id: str
    checksum: str
    size: int

    @property
    def is_ready(self) -> bool:
        """False while the backend has not issued a resolvable identifier."""
        return self.content_id not in PENDING_CONTENT_IDS

    def to_dict(self) -> Dict[str, Any]:
        """Wire representation of the record."""
        return {
            'index': self.index,
            'service': self.backend.value,
            'cid': self.content_id,
            'checksum': self.checksum,
            'size': self.size,
        }

    @classmethod
    def from_dict(cls, obj: Dict[str, Any]) -> 'ChunkRecord':
        """Build a record from its wire representation."""
        if not isinstance(obj, dict):
            raise ManifestInvalidError(f"Chunk entry is not an object: {obj!r}")

        try:
            backend = BackendName.parse(obj.get('service', ''))
        except ValueError:
            raise ManifestInvalidError(f"Unknown storage service in chunk entry: {obj.get('service')!r}")

        content_id = obj.get('cid')
        return cls(
            index=obj.get('index'),
            backend=backend,
            content_id='' if content_id is None else str(content_id),
            checksum=obj.get('checksum') or '',
            size=obj.get('size'),
        )


@dataclass(frozen=True)
class Manifest:
    """
    Everything needed to reverse the sharding of one payload.

    Immutable once built; its own content identifier on the storing
    backend is the handle returned to callers.
    """
    total_chunks: int
    chunk_size: int
    original_size: int
    file_name: str
    encryption_key: str
    encryption_iv: str
    chunks: Tuple[ChunkRecord, ...] = field(default_factory=tuple)
    version: str = MANIFEST_VERSION

    @property
    def ciphertext_size(self) -> int:
        """Sum of recorded chunk sizes."""
        return sum(chunk.size for chunk in self.chunks)

    def count_per_backend(self) -> Dict[BackendName, int]:
        """Number of chunks stored on each backend."""
        counts: Dict[BackendName, int] = {}
        for chunk in self.chunks:
            counts[chunk.backend] = counts.get(chunk.backend, 0) + 1
        return counts

    def to_dict(self) -> Dict[str, Any]:
        """Wire representation of the manifest."""
        return {
            'version': self.version,
            'totalChunks': self.total_chunks,
            'chunkSize': self.chunk_size,
            'originalSize': self.original_size,
            'fileName': self.file_name,
            'encryptionKey': self.encryption_key,
            'encryptionIV': self.encryption_iv,
            'chunks': [chunk.to_dict() for chunk in self.chunks],
        }

    def to_json(self) -> bytes:
        """Serialize to JSON bytes."""
        return json.dumps(self.to_dict()).encode('utf-8')

    @classmethod
    def from_dict(cls, obj: Dict[str, Any]) -> 'Manifest':
        """
        Build a manifest from its wire representation.

        Field types are kept as received; ManifestManager.validate decides
        whether the result is usable.
        """
        if not isinstance(obj, dict):
            raise ManifestInvalidError("Manifest is not a JSON object")

        missing = [
            key for key in ('version', 'totalChunks', 'chunks')
            if key not in obj
        ]
        if missing:
            raise ManifestInvalidError(f"Manifest missing fields: {', '.join(missing)}")

        raw_chunks = obj['chunks']
        if not isinstance(raw_chunks, list):
            raise ManifestInvalidError("Manifest 'chunks' is not a list")

        return cls(
            version=obj['version'],
            total_chunks=obj['totalChunks'],
            chunk_size=obj.get('chunkSize', 0),
            original_size=obj.get('originalSize', 0),
            file_name=obj.get('fileName', ''),
            encryption_key=obj.get('encryptionKey', ''),
            encryption_iv=obj.get('encryptionIV', ''),
            chunks=tuple(ChunkRecord.from_dict(chunk) for chunk in raw_chunks),
        )

    @classmethod
    def from_json(cls, data: bytes) -> 'Manifest':
        """Deserialize from JSON bytes."""
        try:
            obj = json.loads(data)
        except (ValueError, TypeError) as e:
            raise ManifestInvalidError(f"Manifest is not valid JSON: {e}")
        return cls.from_dict(obj)
