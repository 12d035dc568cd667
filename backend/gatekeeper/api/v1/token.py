"""OAuth2 token endpoint and logout."""

from __future__ import annotations

from flask import Blueprint, current_app, request

from gatekeeper.api.deps import (
    apply_cookie,
    current_user_id,
    grant_service,
    json_response,
    request_audience,
    require_auth,
    timing,
    use_cookie_preference,
)
from gatekeeper.core.errors import clear_session_cookie
from gatekeeper.core.extensions import limiter
from gatekeeper.schemas import AccessTokenResponseSchema, TokenRequestSchema
from gatekeeper.services.auth.dto import TokenRequestIn

bp = Blueprint("token", __name__)

token_request_schema = TokenRequestSchema()
token_response_schema = AccessTokenResponseSchema()


def _token_rate_limit() -> str:
    return str(current_app.config.get("AUTH_TOKEN_RATE_LIMIT", "30 per 5 minutes"))


@bp.post("/token")
@limiter.limit(_token_rate_limit)
@timing
def token():
    """Run a password or refresh-token grant and return the token pair."""

    form = token_request_schema.load(request.form)
    dto = TokenRequestIn(
        grant_type=form["grant_type"],
        aud=request_audience(),
        username=form["username"],
        password=form["password"],
        refresh_token=form["refresh_token"],
        use_cookie=use_cookie_preference(),
    )
    result = grant_service().token(dto)
    response = json_response(token_response_schema.dump(result.token))
    return apply_cookie(response, result.cookie)


@bp.post("/logout")
@require_auth
@timing
def logout():
    """Terminate every refresh-token chain of the caller and drop the cookie."""

    grant_service().logout(current_user_id())
    response = current_app.response_class(status=204)
    return clear_session_cookie(response)
