"""Authenticated encryption for uploaded PII."""

from folioforge.crypto.encryption import (
    EncryptedPayload,
    PayloadCipher,
    decode_key,
    decrypt,
    encrypt,
    reencrypt,
)

__all__ = [
    "EncryptedPayload",
    "PayloadCipher",
    "decode_key",
    "decrypt",
    "encrypt",
    "reencrypt",
]
