"""Sharded encrypted storage across multiple content-addressed backends."""

from sharding.chunk_planner import Chunk, ChunkPlan, ChunkPlanner
from sharding.distribution import DistributionPolicy
from sharding.encryption import AesGcmEncryptor, EncryptionResult, Encryptor, PlaintextEncryptor
from sharding.manager import ShardedStorageManager, estimate_upload_time
from sharding.manifest import EncryptionMeta, FileMeta, ManifestBuilder, ManifestManager
from sharding.progress import DownloadProgress, UploadProgress
from sharding.scheduler import Direction, TransferOperation, TransferScheduler

__all__ = [
    "Chunk",
    "ChunkPlan",
    "ChunkPlanner",
    "DistributionPolicy",
    "Encryptor",
    "EncryptionResult",
    "AesGcmEncryptor",
    "PlaintextEncryptor",
    "ShardedStorageManager",
    "estimate_upload_time",
    "FileMeta",
    "EncryptionMeta",
    "ManifestBuilder",
    "ManifestManager",
    "UploadProgress",
    "DownloadProgress",
    "Direction",
    "TransferOperation",
    "TransferScheduler",
]
