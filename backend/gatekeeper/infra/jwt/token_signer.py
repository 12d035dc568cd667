"""Access-token signing (HS256 or RS256) built once from configuration.

The signer is immutable after construction and safe to share between
threads. Verification of incoming bearer tokens is done by
``flask-jwt-extended``; :meth:`TokenSigner.verification_settings` hands it the
matching key material so both sides agree on a single algorithm.
"""

from __future__ import annotations

import base64
import hashlib
import json
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Any, ClassVar

import jwt
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey, RSAPublicKey
from jwt.algorithms import RSAAlgorithm

# Private claim namespace carrying tenant metadata.
METADATA_CLAIM = "https://gatekeeper/claims"


class SignerConfigurationError(RuntimeError):
    """Signing cannot be set up from the given configuration."""


class SigningAlgorithm(str, Enum):
    HS256 = "HS256"
    RS256 = "RS256"


@dataclass(frozen=True, slots=True)
class AccessTokenClaims:
    """
    Payload of an access token.

    :ivar sub: ``"gt|<user id>"``.
    :ivar aud: Audience of the user.
    :ivar iat: Issued-at, seconds since the epoch.
    :ivar exp: Expiry, seconds since the epoch.
    :ivar metadata: Namespaced tenant metadata.
    :ivar iss: Issuer; always replaced by the signer's configured issuer.
    """

    sub: str
    aud: str
    iat: int
    exp: int
    metadata: Mapping[str, Any] = field(default_factory=dict)
    iss: str = ""

    def to_payload(self) -> dict[str, Any]:
        return {
            "sub": self.sub,
            "aud": self.aud,
            "iss": self.iss,
            "iat": self.iat,
            "exp": self.exp,
            METADATA_CLAIM: dict(self.metadata),
        }


@dataclass(frozen=True, slots=True)
class HmacSigningKey:
    secret: bytes
    algorithm: ClassVar[SigningAlgorithm] = SigningAlgorithm.HS256

    def sign(self, payload: dict[str, Any]) -> str:
        return jwt.encode(payload, self.secret, algorithm=self.algorithm.value)

    @property
    def kid(self) -> str | None:
        return None

    @property
    def verification_key(self) -> str:
        return self.secret.decode("utf-8")


@dataclass(frozen=True, slots=True)
class RsaSigningKey:
    private_key: RSAPrivateKey
    public_key: RSAPublicKey
    kid: str
    algorithm: ClassVar[SigningAlgorithm] = SigningAlgorithm.RS256

    def sign(self, payload: dict[str, Any]) -> str:
        return jwt.encode(
            payload,
            self.private_key,
            algorithm=self.algorithm.value,
            headers={"kid": self.kid},
        )

    @property
    def verification_key(self) -> str:
        return self.public_key.public_bytes(
            serialization.Encoding.PEM,
            serialization.PublicFormat.SubjectPublicKeyInfo,
        ).decode("ascii")

    def jwk(self) -> dict[str, Any]:
        key = json.loads(RSAAlgorithm.to_jwk(self.public_key))
        key.update({"kid": self.kid, "use": "sig", "alg": self.algorithm.value})
        return key


SigningKey = HmacSigningKey | RsaSigningKey


def key_id(public_key: RSAPublicKey) -> str:
    """Unpadded URL-safe Base64 SHA-256 of the DER SubjectPublicKeyInfo."""
    der = public_key.public_bytes(
        serialization.Encoding.DER,
        serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    digest = hashlib.sha256(der).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


def _read_pem(path: str, what: str) -> bytes:
    if not path:
        raise SignerConfigurationError(f"{what} path is not configured")
    try:
        return Path(path).read_bytes()
    except OSError as exc:
        raise SignerConfigurationError(f"Cannot read {what} at {path!r}: {exc}") from exc


def load_rsa_signing_key(private_path: str, public_path: str = "") -> RsaSigningKey:
    """Load an RS256 key pair from PEM files.

    The private key may be PKCS#1 or PKCS#8. Without ``public_path`` the
    public key is derived from the private key; with it, the two must match.
    """
    try:
        private_key = serialization.load_pem_private_key(
            _read_pem(private_path, "RSA private key"), password=None
        )
    except (ValueError, TypeError) as exc:
        raise SignerConfigurationError(f"Unparsable RSA private key: {exc}") from exc
    if not isinstance(private_key, RSAPrivateKey):
        raise SignerConfigurationError("JWT_RSA_PRIVATE_KEY_PATH does not hold an RSA key")

    public_key = private_key.public_key()
    if public_path:
        try:
            loaded = serialization.load_pem_public_key(_read_pem(public_path, "RSA public key"))
        except (ValueError, TypeError) as exc:
            raise SignerConfigurationError(f"Unparsable RSA public key: {exc}") from exc
        if not isinstance(loaded, RSAPublicKey):
            raise SignerConfigurationError("JWT_RSA_PUBLIC_KEY_PATH does not hold an RSA key")
        if loaded.public_numbers() != public_key.public_numbers():
            raise SignerConfigurationError("RSA public key does not match the private key")
        public_key = loaded

    return RsaSigningKey(private_key=private_key, public_key=public_key, kid=key_id(public_key))


class TokenSigner:
    """
    Sign access tokens with one fixed key and issuer.

    :param key: Tagged signing key (:class:`HmacSigningKey` or
        :class:`RsaSigningKey`).
    :param issuer: Value written to the ``iss`` claim of every token.
    """

    def __init__(self, key: SigningKey, *, issuer: str) -> None:
        self._key = key
        self.issuer = issuer

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> TokenSigner:
        """Build the signer from Flask config keys.

        :raises SignerConfigurationError: On an unknown algorithm, an empty
            HMAC secret or missing/unparsable RSA key material.
        """
        raw_alg = str(config.get("JWT_ALGORITHM") or "HS256").upper()
        try:
            algorithm = SigningAlgorithm(raw_alg)
        except ValueError as exc:
            raise SignerConfigurationError(f"Unsupported JWT_ALGORITHM {raw_alg!r}") from exc

        key: SigningKey
        if algorithm is SigningAlgorithm.HS256:
            secret = config.get("JWT_SECRET") or ""
            if not secret:
                raise SignerConfigurationError("JWT_SECRET is required for HS256")
            key = HmacSigningKey(secret=secret.encode("utf-8"))
        else:
            key = load_rsa_signing_key(
                config.get("JWT_RSA_PRIVATE_KEY_PATH") or "",
                config.get("JWT_RSA_PUBLIC_KEY_PATH") or "",
            )

        issuer = config.get("JWT_ISSUER") or f"http://{config.get('SITE_URL', 'localhost')}"
        return cls(key, issuer=issuer)

    @property
    def algorithm(self) -> SigningAlgorithm:
        return self._key.algorithm

    @property
    def kid(self) -> str | None:
        return self._key.kid

    def sign(self, claims: AccessTokenClaims) -> str:
        """Return the compact JWS for ``claims`` with ``iss`` set to the issuer."""
        return self._key.sign(replace(claims, iss=self.issuer).to_payload())

    def jwks(self) -> dict[str, list[dict[str, Any]]]:
        """Public verification keys; empty for a shared-secret signer."""
        if isinstance(self._key, RsaSigningKey):
            return {"keys": [self._key.jwk()]}
        return {"keys": []}

    def verification_settings(self) -> dict[str, Any]:
        """``flask-jwt-extended`` config accepting only this signer's tokens."""
        settings: dict[str, Any] = {
            "JWT_ALGORITHM": self.algorithm.value,
            "JWT_DECODE_ALGORITHMS": [self.algorithm.value],
            "JWT_DECODE_ISSUER": self.issuer,
        }
        if isinstance(self._key, RsaSigningKey):
            settings["JWT_PUBLIC_KEY"] = self._key.verification_key
        else:
            settings["JWT_SECRET_KEY"] = self._key.verification_key
        return settings
