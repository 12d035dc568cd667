"""Public instance settings."""

from __future__ import annotations

from flask import Blueprint, current_app

from gatekeeper.api.deps import json_response, timing
from gatekeeper.services.identity.dto import SignupPolicy

bp = Blueprint("settings", __name__)


@bp.get("/settings")
@timing
def settings():
    """Tell clients which sign-in methods are on and how sign-up behaves."""

    policy = SignupPolicy.from_mapping(current_app.config)
    return json_response(
        {
            "external": {"email": True},
            "disable_signup": policy.disable_signup,
            "autoconfirm": policy.autoconfirm,
        }
    )
