"""Authenticated encryption for PII payloads.

AES-256-GCM via the cryptography package. Every call draws a fresh
16-byte random nonce; the 16-byte tag is split off the AEAD output so
nonce, tag and ciphertext travel as three separate fixed-layout fields:

    iv         16 bytes
    auth_tag   16 bytes
    ciphertext len(plaintext) bytes

The key is supplied per call so callers can re-encrypt during rotation.
"""

import base64
import binascii
import os
from dataclasses import dataclass

import structlog
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from folioforge.exceptions import IntegrityError, InvalidKeyError

logger = structlog.get_logger()

KEY_SIZE = 32
IV_SIZE = 16
TAG_SIZE = 16


@dataclass(frozen=True)
class EncryptedPayload:
    """Encrypted bytes with their nonce and authentication tag.

    Attributes:
        ciphertext: Encrypted bytes (same length as the plaintext).
        iv: 16-byte random nonce, unique per encryption call.
        auth_tag: 16-byte GCM authentication tag.
    """

    ciphertext: bytes
    iv: bytes
    auth_tag: bytes

    def to_dict(self) -> dict[str, str]:
        """Base64 representation, one entry per field."""
        return {
            "ciphertext": base64.b64encode(self.ciphertext).decode("ascii"),
            "iv": base64.b64encode(self.iv).decode("ascii"),
            "auth_tag": base64.b64encode(self.auth_tag).decode("ascii"),
        }

    @classmethod
    def from_dict(cls, data: dict[str, str]) -> "EncryptedPayload":
        """Rebuild a payload from to_dict() output.

        Raises:
            IntegrityError: If any field is missing or not valid base64.
        """
        try:
            return cls(
                ciphertext=base64.b64decode(data["ciphertext"], validate=True),
                iv=base64.b64decode(data["iv"], validate=True),
                auth_tag=base64.b64decode(data["auth_tag"], validate=True),
            )
        except (KeyError, binascii.Error, TypeError) as e:
            raise IntegrityError(f"Malformed encrypted payload: {type(e).__name__}") from None


def _check_key(key: bytes) -> None:
    if not isinstance(key, (bytes, bytearray)) or len(key) != KEY_SIZE:
        raise InvalidKeyError(len(key) if isinstance(key, (bytes, bytearray)) else None)


def decode_key(encoded: str) -> bytes:
    """Decode a 32-byte key from hex (64 chars) or base64 text.

    Raises:
        InvalidKeyError: If the text does not decode to exactly 32 bytes.
    """
    text = encoded.strip()
    if len(text) == KEY_SIZE * 2:
        try:
            return bytes.fromhex(text)
        except ValueError:
            pass
    try:
        key = base64.b64decode(text, validate=True)
    except binascii.Error:
        try:
            key = base64.urlsafe_b64decode(text + "=" * (-len(text) % 4))
        except (binascii.Error, ValueError):
            raise InvalidKeyError() from None
    if len(key) != KEY_SIZE:
        raise InvalidKeyError(len(key))
    return key


def encrypt(plaintext: bytes, key: bytes) -> EncryptedPayload:
    """Encrypt bytes under a 32-byte key.

    Args:
        plaintext: Bytes to protect.
        key: 256-bit key.

    Returns:
        EncryptedPayload with a fresh random iv.

    Raises:
        InvalidKeyError: If key is not exactly 32 bytes.
    """
    _check_key(key)
    iv = os.urandom(IV_SIZE)
    sealed = AESGCM(bytes(key)).encrypt(iv, bytes(plaintext), None)
    return EncryptedPayload(
        ciphertext=sealed[:-TAG_SIZE],
        iv=iv,
        auth_tag=sealed[-TAG_SIZE:],
    )


def decrypt(payload: EncryptedPayload, key: bytes) -> bytes:
    """Verify and decrypt a payload.

    Raises:
        InvalidKeyError: If key is not exactly 32 bytes.
        IntegrityError: If the tag does not verify or a field has the wrong length.
    """
    _check_key(key)
    if len(payload.iv) != IV_SIZE or len(payload.auth_tag) != TAG_SIZE:
        raise IntegrityError("Encrypted payload has malformed iv or tag")
    try:
        return AESGCM(bytes(key)).decrypt(payload.iv, payload.ciphertext + payload.auth_tag, None)
    except InvalidTag:
        logger.warning("Encrypted payload failed authentication", size=len(payload.ciphertext))
        raise IntegrityError() from None


def reencrypt(payload: EncryptedPayload, old_key: bytes, new_key: bytes) -> EncryptedPayload:
    """Decrypt under old_key and encrypt under new_key with a fresh iv."""
    return encrypt(decrypt(payload, old_key), new_key)


class PayloadCipher:
    """Cipher bound to one key, validated once at construction.

    Reason: Components that use a single configured key (the upload
    gatekeeper) fail at startup rather than on the first upload.
    """

    def __init__(self, key: bytes):
        _check_key(key)
        self._key = bytes(key)

    def encrypt(self, plaintext: bytes) -> EncryptedPayload:
        return encrypt(plaintext, self._key)

    def decrypt(self, payload: EncryptedPayload) -> bytes:
        return decrypt(payload, self._key)

    def __repr__(self) -> str:
        return "PayloadCipher(key=<redacted>)"
