"""Tests for AES-256-GCM payload encryption."""

import base64
import os
from dataclasses import replace

import pytest

from folioforge.crypto.encryption import (
    IV_SIZE,
    TAG_SIZE,
    EncryptedPayload,
    PayloadCipher,
    decode_key,
    decrypt,
    encrypt,
    reencrypt,
)
from folioforge.exceptions import IntegrityError, InvalidKeyError


def _flip_first_bit(data: bytes) -> bytes:
    return bytes([data[0] ^ 0x01]) + data[1:]


class TestEncryptDecrypt:
    def test_layout(self, encryption_key):
        payload = encrypt(b"resume contents", encryption_key)

        assert len(payload.iv) == IV_SIZE
        assert len(payload.auth_tag) == TAG_SIZE
        assert len(payload.ciphertext) == len(b"resume contents")
        assert payload.ciphertext != b"resume contents"
        assert decrypt(payload, encryption_key) == b"resume contents"

    def test_fresh_iv_per_call(self, encryption_key):
        first = encrypt(b"same", encryption_key)
        second = encrypt(b"same", encryption_key)

        assert first.iv != second.iv
        assert first.ciphertext != second.ciphertext

    def test_empty_plaintext(self, encryption_key):
        payload = encrypt(b"", encryption_key)
        assert payload.ciphertext == b""
        assert decrypt(payload, encryption_key) == b""

    def test_wrong_key_fails(self, encryption_key):
        payload = encrypt(b"pii", encryption_key)
        with pytest.raises(IntegrityError):
            decrypt(payload, os.urandom(32))

    @pytest.mark.parametrize("field", ["ciphertext", "iv", "auth_tag"])
    def test_single_bit_flip_is_detected(self, encryption_key, field):
        payload = encrypt(b"name: Ada Lovelace", encryption_key)
        tampered = replace(payload, **{field: _flip_first_bit(getattr(payload, field))})

        with pytest.raises(IntegrityError):
            decrypt(tampered, encryption_key)

    def test_truncated_tag_rejected(self, encryption_key):
        payload = encrypt(b"pii", encryption_key)
        with pytest.raises(IntegrityError):
            decrypt(replace(payload, auth_tag=payload.auth_tag[:8]), encryption_key)

    @pytest.mark.parametrize("length", [0, 16, 31, 33])
    def test_key_must_be_32_bytes(self, length):
        with pytest.raises(InvalidKeyError):
            encrypt(b"x", b"k" * length)

    def test_decrypt_checks_key_length(self, encryption_key):
        payload = encrypt(b"x", encryption_key)
        with pytest.raises(InvalidKeyError):
            decrypt(payload, encryption_key[:16])


class TestKeyHandling:
    def test_decode_hex_key(self, encryption_key):
        assert decode_key(encryption_key.hex()) == encryption_key

    def test_decode_base64_key(self, encryption_key):
        assert decode_key(base64.b64encode(encryption_key).decode()) == encryption_key
        assert decode_key(base64.urlsafe_b64encode(encryption_key).decode()) == encryption_key

    @pytest.mark.parametrize("text", ["", "abc", "00" * 16, base64.b64encode(b"k" * 24).decode()])
    def test_decode_rejects_wrong_length(self, text):
        with pytest.raises(InvalidKeyError):
            decode_key(text)

    def test_reencrypt_moves_to_new_key(self, encryption_key):
        new_key = os.urandom(32)
        original = encrypt(b"rotate me", encryption_key)
        rotated = reencrypt(original, encryption_key, new_key)

        assert rotated.iv != original.iv
        assert decrypt(rotated, new_key) == b"rotate me"
        with pytest.raises(IntegrityError):
            decrypt(rotated, encryption_key)

    def test_cipher_repr_hides_key(self, encryption_key):
        cipher = PayloadCipher(encryption_key)
        assert encryption_key.hex() not in repr(cipher)
        assert cipher.decrypt(cipher.encrypt(b"ok")) == b"ok"

    def test_from_dict_rejects_malformed(self):
        with pytest.raises(IntegrityError):
            EncryptedPayload.from_dict({"ciphertext": "!!!", "iv": "", "auth_tag": ""})
        with pytest.raises(IntegrityError):
            EncryptedPayload.from_dict({"iv": ""})
