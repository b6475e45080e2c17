"""Password hashing with scrypt.

Stored hashes are self-describing so verification needs no out-of-band
parameters:

    scrypt$<n>$<r>$<p>$<salt b64>$<derived key b64>

Reason: scrypt is memory-hard; cryptography's Scrypt.verify compares the
derived key in constant time.
"""

import base64
import binascii
import os

import structlog
from cryptography.exceptions import InvalidKey
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt
from fastapi.concurrency import run_in_threadpool

from folioforge.exceptions import InvalidInputError

logger = structlog.get_logger()

ALGORITHM = "scrypt"
SCRYPT_N = 2**14
SCRYPT_R = 8
SCRYPT_P = 1
SALT_SIZE = 16
KEY_LENGTH = 64

# Upper bound on cost accepted from a stored hash
_MAX_N = 2**20

_dummy_hash: str | None = None


def _b64encode(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def _encode(password: str) -> bytes | None:
    # Lone surrogates are legal in JSON strings but not in UTF-8
    try:
        return password.encode("utf-8")
    except UnicodeEncodeError:
        return None


def _derive(password: bytes, salt: bytes, n: int, r: int, p: int, length: int) -> bytes:
    kdf = Scrypt(salt=salt, length=length, n=n, r=r, p=p)
    return kdf.derive(password)


def hash_password(password: str) -> str:
    """Hash a password with a fresh random salt.

    Args:
        password: Plaintext password.

    Returns:
        Self-describing hash string.

    Raises:
        InvalidInputError: If password is empty or not valid text.
    """
    if not password:
        raise InvalidInputError("Password must not be empty")
    encoded = _encode(password)
    if encoded is None:
        raise InvalidInputError("Password must be valid text")

    salt = os.urandom(SALT_SIZE)
    derived = _derive(encoded, salt, SCRYPT_N, SCRYPT_R, SCRYPT_P, KEY_LENGTH)
    return "$".join(
        [ALGORITHM, str(SCRYPT_N), str(SCRYPT_R), str(SCRYPT_P), _b64encode(salt), _b64encode(derived)]
    )


def _parse(stored: str) -> tuple[int, int, int, bytes, bytes] | None:
    parts = stored.split("$")
    if len(parts) != 6 or parts[0] != ALGORITHM:
        return None
    try:
        n, r, p = int(parts[1]), int(parts[2]), int(parts[3])
        salt = base64.b64decode(parts[4], validate=True)
        expected = base64.b64decode(parts[5], validate=True)
    except (ValueError, binascii.Error):
        return None
    if n < 2 or n > _MAX_N or r < 1 or p < 1 or not salt or not expected:
        return None
    return n, r, p, salt, expected


def verify_password(password: str, stored: str) -> bool:
    """Check a candidate password against a stored hash.

    A mismatch is a normal False result. Malformed stored hashes also yield
    False; this function never raises on bad input.
    """
    if not password or not stored:
        return False

    parsed = _parse(stored)
    if parsed is None:
        logger.warning("Stored password hash is malformed")
        return False

    encoded = _encode(password)
    if encoded is None:
        logger.info("Password candidate is not valid text")
        return False

    n, r, p, salt, expected = parsed
    try:
        kdf = Scrypt(salt=salt, length=len(expected), n=n, r=r, p=p)
        kdf.verify(encoded, expected)
        return True
    except InvalidKey:
        return False
    except ValueError:
        logger.warning("Stored password hash has unusable parameters", n=n, r=r, p=p)
        return False


def needs_rehash(stored: str) -> bool:
    """True when a stored hash was made with different parameters than today's."""
    parsed = _parse(stored)
    if parsed is None:
        return True
    n, r, p, salt, expected = parsed
    return (n, r, p, len(salt), len(expected)) != (SCRYPT_N, SCRYPT_R, SCRYPT_P, SALT_SIZE, KEY_LENGTH)


def dummy_verify(password: str) -> bool:
    """Spend the same work as a real verify against a throwaway hash.

    Used for unknown accounts so login timing does not reveal which emails exist.
    """
    global _dummy_hash
    if _dummy_hash is None:
        _dummy_hash = hash_password(os.urandom(16).hex())
    verify_password(password or "-", _dummy_hash)
    return False


async def hash_password_async(password: str) -> str:
    """hash_password off the event loop."""
    return await run_in_threadpool(hash_password, password)


async def verify_password_async(password: str, stored: str) -> bool:
    """verify_password off the event loop."""
    return await run_in_threadpool(verify_password, password, stored)


async def dummy_verify_async(password: str) -> bool:
    return await run_in_threadpool(dummy_verify, password)
