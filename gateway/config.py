"""Configuration settings for the storage gateway."""

import os


GATEWAY_HOST = os.environ.get("SHARD_GATEWAY_HOST", "0.0.0.0")

GATEWAY_PORT = int(os.environ.get("SHARD_GATEWAY_PORT", "8000"))

GATEWAY_RELOAD = os.environ.get("SHARD_GATEWAY_RELOAD", "false").lower() in ("1", "true", "yes")

# Encryption applied by the gateway before sharding: "aes-gcm" or "none"
GATEWAY_ENCRYPTION = os.environ.get("SHARD_GATEWAY_ENCRYPTION", "aes-gcm").lower()
