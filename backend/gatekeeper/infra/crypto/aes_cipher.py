"""AES-CBC credential cipher.

Stored credentials are ``base64(AES-CBC(key, iv, PKCS7(password)))`` next to
``base64(iv)``. Authentication re-encrypts the candidate password under the
stored IV and compares ciphertexts, which is equivalent to decrypting and
comparing plaintexts but never materialises the stored password.

The key is the raw bytes of the configured ``ENCRYPTION_KEY`` string and must
be 16, 24 or 32 bytes long (AES-128/192/256).

The scheme is reversible: anyone holding the key can recover every stored
password. It is kept for clients that depend on retrieving the original
credential.
"""

from __future__ import annotations

import base64
import binascii
import hmac
import logging
import os

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

log = logging.getLogger(__name__)

IV_SIZE = algorithms.AES.block_size // 8  # 16 bytes
VALID_KEY_SIZES = (16, 24, 32)


class CipherConfigurationError(RuntimeError):
    """The configured key cannot be used for AES."""


class CredentialDecodeError(ValueError):
    """Stored ciphertext or IV is malformed, or the key does not match."""


class AESCredentialCipher:
    """Encrypt, decrypt and verify stored credentials."""

    def __init__(self, key: str | bytes) -> None:
        raw = key.encode("utf-8") if isinstance(key, str) else bytes(key)
        if len(raw) not in VALID_KEY_SIZES:
            raise CipherConfigurationError(
                f"ENCRYPTION_KEY must be 16, 24 or 32 bytes long, got {len(raw)}"
            )
        self._key = raw

    def encrypt(self, plaintext: str) -> tuple[str, str]:
        """Encrypt ``plaintext`` under a fresh random IV.

        :returns: ``(ciphertext_b64, iv_b64)``.
        """
        iv = os.urandom(IV_SIZE)
        return self.encrypt_with_iv(plaintext, iv), base64.b64encode(iv).decode("ascii")

    def encrypt_with_iv(self, plaintext: str, iv: bytes) -> str:
        """Deterministically encrypt ``plaintext`` under ``iv``.

        :raises ValueError: If ``iv`` is not 16 bytes long.
        """
        padder = padding.PKCS7(algorithms.AES.block_size).padder()
        padded = padder.update(plaintext.encode("utf-8")) + padder.finalize()
        encryptor = Cipher(algorithms.AES(self._key), modes.CBC(iv)).encryptor()
        ciphertext = encryptor.update(padded) + encryptor.finalize()
        return base64.b64encode(ciphertext).decode("ascii")

    def decrypt(self, ciphertext_b64: str, iv_b64: str) -> str:
        """Recover the plaintext of a stored credential.

        :raises CredentialDecodeError: On bad Base64, a wrong IV length, a
            ciphertext that is not block aligned, invalid padding or non UTF-8
            plaintext.
        """
        try:
            iv = base64.b64decode(iv_b64, validate=True)
            ciphertext = base64.b64decode(ciphertext_b64, validate=True)
            decryptor = Cipher(algorithms.AES(self._key), modes.CBC(iv)).decryptor()
            padded = decryptor.update(ciphertext) + decryptor.finalize()
            unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
            raw = unpadder.update(padded) + unpadder.finalize()
            return raw.decode("utf-8")
        except (binascii.Error, ValueError) as exc:
            raise CredentialDecodeError(str(exc)) from exc

    def authenticate(self, password: str, ciphertext_b64: str, iv_b64: str) -> bool:
        """Return whether ``password`` matches the stored credential.

        Malformed stored values are logged and treated as a mismatch.
        """
        if not ciphertext_b64 or not iv_b64:
            return False
        try:
            iv = base64.b64decode(iv_b64, validate=True)
            candidate = self.encrypt_with_iv(password, iv)
            stored = ciphertext_b64.encode("ascii")
        except (binascii.Error, ValueError) as exc:
            log.warning("Stored credential could not be decoded: %s", exc)
            return False
        return hmac.compare_digest(candidate.encode("ascii"), stored)
