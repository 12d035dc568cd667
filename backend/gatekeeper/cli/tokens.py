"""Flask CLI commands for refresh-token administration."""

from __future__ import annotations

import logging
import uuid
from datetime import timedelta

import click
from flask import current_app
from flask.cli import with_appcontext

from gatekeeper.core.security import get_components
from gatekeeper.models.base import utcnow
from gatekeeper.services.auth.dto import AuthTokenConfig
from gatekeeper.services.auth.service import GrantService
from gatekeeper.uow import SQLAlchemyUnitOfWork

LOGGER = logging.getLogger(__name__)


def _grant_service() -> GrantService:
    return GrantService(
        components=get_components(),
        token_cfg=AuthTokenConfig.from_mapping(current_app.config),
    )


@click.group("tokens")
def tokens_cli() -> None:
    """Refresh-token administration commands."""


@tokens_cli.command("revoke")
@click.argument("user_id", type=click.UUID)
@with_appcontext
def revoke(user_id: uuid.UUID) -> None:
    """Terminate every refresh-token chain of USER_ID (forced logout)."""
    removed = _grant_service().logout(user_id)
    click.echo(f"Revoked {removed} refresh token(s) for {user_id}")


@tokens_cli.command("sweep")
@click.option(
    "--older-than-days",
    type=click.IntRange(min=0),
    default=30,
    show_default=True,
    help="Delete revoked tokens created more than this many days ago.",
)
@with_appcontext
def sweep(older_than_days: int) -> None:
    """Delete revoked refresh tokens past the retention window."""
    cutoff = utcnow() - timedelta(days=older_than_days)
    protocol = get_components().refresh_tokens
    with SQLAlchemyUnitOfWork() as uow:
        removed = protocol.sweep(uow, older_than=cutoff)
    LOGGER.info("Refresh-token sweep removed %d row(s) created before %s", removed, cutoff.isoformat())
    click.echo(f"Deleted {removed} revoked refresh token(s) older than {older_than_days} day(s)")
