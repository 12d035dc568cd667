"""Sign-up, recovery, verification and current-user endpoints."""

from __future__ import annotations

from flask import Blueprint, request

from gatekeeper.api.deps import (
    apply_cookie,
    current_user_id,
    identity_service,
    json_response,
    request_audience,
    require_auth,
    timing,
    use_cookie_preference,
)
from gatekeeper.schemas import (
    AccessTokenResponseSchema,
    RecoverSchema,
    SignupSchema,
    UserSchema,
    UserUpdateSchema,
    VerifySchema,
)
from gatekeeper.services.identity.dto import RecoverIn, SignupIn, UserUpdateIn, VerifyIn

bp = Blueprint("users", __name__)

signup_schema = SignupSchema()
recover_schema = RecoverSchema()
verify_schema = VerifySchema()
user_update_schema = UserUpdateSchema()
user_schema = UserSchema()
token_response_schema = AccessTokenResponseSchema()


@bp.post("/signup")
@timing
def signup():
    """Register a user; a confirmation mail is sent unless autoconfirm is on."""

    payload = signup_schema.load(request.get_json(silent=True) or {})
    user = identity_service().signup(
        SignupIn(
            email=payload["email"],
            password=payload["password"],
            aud=request_audience(),
            data=payload["data"],
        )
    )
    return json_response(user_schema.dump(user))


@bp.post("/recover")
@timing
def recover():
    """Mail a password-recovery link to the given address."""

    payload = recover_schema.load(request.get_json(silent=True) or {})
    identity_service().recover(RecoverIn(email=payload["email"], aud=request_audience()))
    return json_response({})


@bp.post("/verify")
@timing
def verify():
    """Redeem a sign-up or recovery token and return a token pair."""

    payload = verify_schema.load(request.get_json(silent=True) or {})
    result = identity_service().verify(
        VerifyIn(type=payload["type"], token=payload["token"], use_cookie=use_cookie_preference())
    )
    response = json_response(token_response_schema.dump(result.token))
    return apply_cookie(response, result.cookie)


@bp.get("/user")
@require_auth
@timing
def get_user():
    """Return the authenticated user."""

    user = identity_service().get_user(current_user_id())
    return json_response(user_schema.dump(user))


@bp.put("/user")
@require_auth
@timing
def update_user():
    """Change the caller's password and/or metadata."""

    payload = user_update_schema.load(request.get_json(silent=True) or {})
    user = identity_service().update_user(
        current_user_id(),
        UserUpdateIn(password=payload.get("password"), data=payload.get("data")),
    )
    return json_response(user_schema.dump(user))
