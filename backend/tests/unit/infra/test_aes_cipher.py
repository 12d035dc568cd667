"""Unit tests for the AES-CBC credential cipher."""

from __future__ import annotations

import base64
import logging

import pytest

from gatekeeper.infra.crypto.aes_cipher import (
    IV_SIZE,
    AESCredentialCipher,
    CipherConfigurationError,
    CredentialDecodeError,
)

KEY = "0123456789abcdef0123456789abcdef"


@pytest.fixture()
def cipher() -> AESCredentialCipher:
    return AESCredentialCipher(KEY)


@pytest.mark.parametrize("password", ["", "a", "exactly16bytes!!", "pässwörd ✓", "x" * 100])
def test_decrypt_recovers_plaintext(cipher, password):
    ciphertext, iv = cipher.encrypt(password)
    assert cipher.decrypt(ciphertext, iv) == password


def test_each_encryption_uses_a_fresh_iv(cipher):
    first = cipher.encrypt("same password")
    second = cipher.encrypt("same password")
    assert first[1] != second[1]
    assert first[0] != second[0]
    assert len(base64.b64decode(first[1])) == IV_SIZE


def test_encrypt_with_iv_is_deterministic(cipher):
    iv = bytes(range(IV_SIZE))
    assert cipher.encrypt_with_iv("pw", iv) == cipher.encrypt_with_iv("pw", iv)


def test_authenticate_matches_decrypt_equality(cipher):
    ciphertext, iv = cipher.encrypt("correct horse")
    assert cipher.authenticate("correct horse", ciphertext, iv) is True
    assert cipher.authenticate("correct horse ", ciphertext, iv) is False
    assert cipher.authenticate("", ciphertext, iv) is False


def test_authenticate_rejects_malformed_iv_without_raising(cipher, caplog):
    ciphertext, _ = cipher.encrypt("pw")
    caplog.set_level(logging.WARNING, logger="gatekeeper.infra.crypto.aes_cipher")

    assert cipher.authenticate("pw", ciphertext, "not base64!!") is False
    assert cipher.authenticate("pw", ciphertext, base64.b64encode(b"short").decode()) is False
    assert "could not be decoded" in caplog.text


def test_authenticate_treats_missing_credential_as_mismatch(cipher):
    assert cipher.authenticate("pw", "", "") is False


def test_decrypt_raises_typed_error_on_corrupt_ciphertext(cipher):
    _, iv = cipher.encrypt("pw")
    with pytest.raises(CredentialDecodeError):
        cipher.decrypt(base64.b64encode(b"not-a-block").decode(), iv)


def test_ciphertext_from_another_key_does_not_authenticate(cipher):
    other = AESCredentialCipher("fedcba9876543210")
    ciphertext, iv = other.encrypt("pw")
    assert cipher.authenticate("pw", ciphertext, iv) is False


@pytest.mark.parametrize("key", ["", "short", "x" * 33])
def test_invalid_key_length_is_a_configuration_error(key):
    with pytest.raises(CipherConfigurationError):
        AESCredentialCipher(key)
