"""Public key and OpenID provider discovery."""

from __future__ import annotations

from flask import Blueprint, current_app, url_for

from gatekeeper.api.deps import json_response, timing
from gatekeeper.core.security import get_components
from gatekeeper.services.identity.dto import SignupPolicy

bp = Blueprint("well_known", __name__)


def _public_url(endpoint: str) -> str:
    return SignupPolicy.from_mapping(current_app.config).site_url + url_for(endpoint)


@bp.get("/jwks.json")
@timing
def jwks():
    """Return the verification keys as a JWK set (empty for HS256)."""

    response = json_response(get_components().signer.jwks())
    response.cache_control.public = True
    response.cache_control.max_age = 300
    return response


@bp.get("/openid-configuration")
@timing
def openid_configuration():
    """Return the provider metadata clients use to locate keys and the token endpoint."""

    signer = get_components().signer
    payload = {
        "issuer": signer.issuer,
        "jwks_uri": _public_url("well_known.jwks"),
        "token_endpoint": _public_url("token.token"),
        "grant_types_supported": ["password", "refresh_token"],
        "response_types_supported": ["token"],
        "subject_types_supported": ["public"],
        "id_token_signing_alg_values_supported": [signer.algorithm.value],
        "token_endpoint_auth_methods_supported": ["none"],
    }
    response = json_response(payload)
    response.cache_control.public = True
    response.cache_control.max_age = 300
    return response
