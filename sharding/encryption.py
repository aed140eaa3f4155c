"""Payload encryption collaborators used by the storage manager."""

import base64
import binascii
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from common.exceptions import DecryptionError
from common.logging_config import get_logger

logger = get_logger(__name__)

AES_KEY_BITS = 256
GCM_NONCE_BYTES = 12


@dataclass(frozen=True)
class EncryptionResult:
    ciphertext: bytes
    key: str
    iv: str


class Encryptor(ABC):
    """Encrypts a whole payload before sharding and decrypts it after reassembly."""

    @abstractmethod
    def encrypt(self, plaintext: bytes) -> EncryptionResult:
        pass

    @abstractmethod
    def decrypt(self, ciphertext: bytes, key: str, iv: str) -> bytes:
        """Raises DecryptionError when the key, iv or ciphertext is wrong."""


class AesGcmEncryptor(Encryptor):
    """
    AES-256-GCM with a fresh key and nonce per payload.

    Key and nonce are returned base64-encoded so they fit in the manifest.
    The ciphertext is 16 bytes longer than the plaintext (GCM tag).
    """

    def encrypt(self, plaintext: bytes) -> EncryptionResult:
        key = AESGCM.generate_key(bit_length=AES_KEY_BITS)
        nonce = os.urandom(GCM_NONCE_BYTES)
        ciphertext = AESGCM(key).encrypt(nonce, plaintext, None)

        return EncryptionResult(
            ciphertext=ciphertext,
            key=base64.b64encode(key).decode('ascii'),
            iv=base64.b64encode(nonce).decode('ascii'),
        )

    def decrypt(self, ciphertext: bytes, key: str, iv: str) -> bytes:
        try:
            key_bytes = base64.b64decode(key, validate=True)
            nonce = base64.b64decode(iv, validate=True)
            return AESGCM(key_bytes).decrypt(nonce, ciphertext, None)
        except InvalidTag:
            logger.warning(f"GCM tag check failed for {len(ciphertext)}-byte ciphertext")
            raise DecryptionError("Authentication tag mismatch (wrong key or corrupted data)")
        except (binascii.Error, TypeError, ValueError) as e:
            raise DecryptionError(f"Invalid key material: {e}")


class PlaintextEncryptor(Encryptor):
    """Identity transform; ciphertext equals plaintext and no key is stored."""

    def encrypt(self, plaintext: bytes) -> EncryptionResult:
        return EncryptionResult(ciphertext=bytes(plaintext), key="", iv="")

    def decrypt(self, ciphertext: bytes, key: str, iv: str) -> bytes:
        if key or iv:
            raise DecryptionError("Payload was stored with key material, a real encryptor is required")
        return bytes(ciphertext)
