"""Health check endpoint."""

from __future__ import annotations

from flask import Blueprint, current_app
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from gatekeeper.api.deps import json_response, timing
from gatekeeper.core.extensions import db
from gatekeeper.core.security import get_components

bp = Blueprint("health", __name__)


@bp.get("/health")
@timing
def healthcheck():
    """Return application, database and token-cache health information."""

    db_status = "ok"
    try:
        db.session.execute(text("SELECT 1"))
    except SQLAlchemyError:  # pragma: no cover - depends on DB backend
        current_app.logger.exception("healthcheck.db_error")
        db_status = "fail"
    cache = get_components().cache
    payload = {
        "status": "ok",
        "db": db_status,
        "token_cache": {"enabled": cache.enabled, "size": len(cache)},
        "version": current_app.config.get("APP_VERSION", "dev"),
    }
    return json_response(payload)
