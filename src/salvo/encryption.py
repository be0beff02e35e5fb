# encryption abstraction module for save files

import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

NONCE_LEN = 12
TAG_LEN = 16

# Reject excessively large payloads (e.g., >10 MiB)
MAX_PAYLOAD = 10 * 1024 * 1024


def check_key(key: bytes) -> None:
    """Raise ValueError unless *key* is a valid AES key length"""
    if len(key) not in (16, 24, 32):
        raise ValueError("AES key must be 16/24/32 bytes")


def seal(key: bytes, payload: bytes, aad: bytes = b"") -> bytes:
    """AEAD seal: random nonce followed by ciphertext+tag"""
    check_key(key)
    if len(payload) > MAX_PAYLOAD:
        raise ValueError(f"Payload too large: {len(payload)} bytes")
    nonce = os.urandom(NONCE_LEN)
    return nonce + AESGCM(key).encrypt(nonce, payload, aad)


def open_sealed(key: bytes, blob: bytes, aad: bytes = b"") -> bytes:
    """AEAD open: returns plaintext, raises InvalidTag on tampering or wrong key"""
    check_key(key)
    if len(blob) < NONCE_LEN + TAG_LEN:
        raise InvalidTag()
    nonce, ciphertext = blob[:NONCE_LEN], blob[NONCE_LEN:]
    return AESGCM(key).decrypt(nonce, ciphertext, aad)


__all__ = ["InvalidTag", "check_key", "seal", "open_sealed"]
