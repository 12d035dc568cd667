"""Integration tests for discovery, settings and health endpoints."""

from __future__ import annotations

import pytest

from gatekeeper.core.config import TestingConfig
from gatekeeper.factory import create_app
from tests.helpers.auth import rsa_key_pair


def test_jwks_is_empty_for_shared_secret(client) -> None:
    resp = client.get("/api/v1/.well-known/jwks.json")

    assert resp.status_code == 200
    assert resp.get_json() == {"keys": []}
    assert "max-age=300" in resp.headers["Cache-Control"]


@pytest.fixture()
def rsa_app(tmp_path):
    private_pem, public_pem = rsa_key_pair()
    (tmp_path / "private.pem").write_bytes(private_pem)
    (tmp_path / "public.pem").write_bytes(public_pem)

    class RSAConfig(TestingConfig):
        SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
        JWT_ALGORITHM = "RS256"
        JWT_SECRET = ""
        JWT_RSA_PRIVATE_KEY_PATH = str(tmp_path / "private.pem")
        JWT_RSA_PUBLIC_KEY_PATH = str(tmp_path / "public.pem")
        USE_PROXYFIX = False

    return create_app(RSAConfig)


def test_jwks_publishes_rsa_key(rsa_app) -> None:
    resp = rsa_app.test_client().get("/api/v1/.well-known/jwks.json")

    (key,) = resp.get_json()["keys"]
    assert key["kty"] == "RSA"
    assert key["alg"] == "RS256"
    assert key["use"] == "sig"
    assert key["kid"]
    with rsa_app.app_context():
        from gatekeeper.core.security import get_components

        assert key["kid"] == get_components().signer.kid


def test_openid_configuration(app, client) -> None:
    resp = client.get("/api/v1/.well-known/openid-configuration")

    assert resp.status_code == 200
    body = resp.get_json()
    assert body["issuer"] == app.config["JWT_DECODE_ISSUER"] == "http://auth.example.test"
    assert body["jwks_uri"] == "http://auth.example.test/api/v1/.well-known/jwks.json"
    assert body["token_endpoint"] == "http://auth.example.test/api/v1/token"
    assert body["id_token_signing_alg_values_supported"] == ["HS256"]
    assert body["grant_types_supported"] == ["password", "refresh_token"]


def test_openid_configuration_names_rsa_algorithm(rsa_app) -> None:
    body = rsa_app.test_client().get("/api/v1/.well-known/openid-configuration").get_json()

    assert body["id_token_signing_alg_values_supported"] == ["RS256"]


def test_settings(app, client) -> None:
    resp = client.get("/api/v1/settings")

    assert resp.status_code == 200
    assert resp.get_json() == {
        "external": {"email": True},
        "disable_signup": app.config["DISABLE_SIGNUP"],
        "autoconfirm": app.config["MAILER_AUTOCONFIRM"],
    }


def test_health(client) -> None:
    resp = client.get("/api/v1/health")

    assert resp.status_code == 200
    body = resp.get_json()
    assert body["status"] == "ok"
    assert body["db"] == "ok"
    assert body["token_cache"] == {"enabled": True, "size": 0}


def test_unknown_route_is_a_problem_document(client) -> None:
    resp = client.get("/api/v1/nope")

    assert resp.status_code == 404
    assert resp.mimetype == "application/problem+json"
