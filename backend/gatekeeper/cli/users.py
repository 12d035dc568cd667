"""Flask CLI commands for operator-side account management."""

from __future__ import annotations

import logging
from dataclasses import replace

import click
from flask import current_app
from flask.cli import with_appcontext

from gatekeeper.core.security import get_components
from gatekeeper.services.auth.dto import AuthTokenConfig
from gatekeeper.services.identity.dto import SignupIn, SignupPolicy
from gatekeeper.services.identity.service import IdentityService

LOGGER = logging.getLogger(__name__)


@click.group("users")
def users_cli() -> None:
    """Account management commands."""


@users_cli.command("create")
@click.argument("email")
@click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True)
@click.option("--aud", default=None, help="Audience (defaults to JWT_AUD).")
@click.option(
    "--confirm/--no-confirm",
    default=True,
    show_default=True,
    help="Mark the address as confirmed instead of sending a confirmation mail.",
)
@with_appcontext
def create_user(email: str, password: str, aud: str | None, confirm: bool) -> None:
    """Create an account for EMAIL, bypassing DISABLE_SIGNUP."""
    config = current_app.config
    policy = replace(SignupPolicy.from_mapping(config), disable_signup=False, autoconfirm=confirm)
    service = IdentityService(
        components=get_components(),
        token_cfg=AuthTokenConfig.from_mapping(config),
        policy=policy,
    )
    user = service.signup(
        SignupIn(email=email, password=password, aud=aud or str(config.get("JWT_AUD", "")))
    )
    LOGGER.info("User created from CLI", extra={"user_id": str(user.id)})
    state = "confirmed" if user.confirmed_at else "confirmation mail sent"
    click.echo(f"Created {user.email} ({user.id}), {state}")
