"""Project-wide constants (chunk sizing, transfer limits, timeouts, manifest format)."""

import os

KIB: int = 1024
MIB: int = 1024 * KIB
GIB: int = 1024 * MIB

# Chunk planning
MIN_CHUNKS: int = 5  # every slot of the default distribution table gets a chunk
MIN_CHUNK_SIZE_BYTES: int = 50 * KIB
MAX_CHUNK_SIZE_BYTES: int = 1 * MIB
ABSOLUTE_MIN_CHUNK_SIZE_BYTES: int = 10 * KIB

# Transfer scheduling
MAX_CONCURRENT_UPLOADS: int = int(os.environ.get("SHARD_MAX_CONCURRENT_UPLOADS", "5"))
MAX_CONCURRENT_DOWNLOADS: int = int(os.environ.get("SHARD_MAX_CONCURRENT_DOWNLOADS", "5"))
MAX_RETRIES: int = int(os.environ.get("SHARD_MAX_RETRIES", "3"))
RETRY_BASE_DELAY_SECONDS: float = float(os.environ.get("SHARD_RETRY_BASE_DELAY", "1.0"))

# Backend network calls
BACKEND_TIMEOUT_SECONDS: float = float(os.environ.get("SHARD_BACKEND_TIMEOUT", "30"))
BACKEND_MAX_RETRIES: int = 3
HEALTH_CHECK_TIMEOUT_SECONDS: float = 5.0

# Manifest
MANIFEST_VERSION: str = "1.0"
KNOWN_MANIFEST_VERSIONS: frozenset = frozenset({MANIFEST_VERSION})
MANIFEST_SUFFIX: str = "_chunkmap.json"
PENDING_CONTENT_IDS: frozenset = frozenset({"", "pending", "null"})

# Rough throughput used for upload time estimates
ESTIMATED_UPLOAD_BYTES_PER_SECOND: int = 1 * MIB
