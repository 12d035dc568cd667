"""Unit tests for the refresh-token chain protocol."""

from __future__ import annotations

from datetime import timedelta

import pytest
from sqlalchemy import func, select, update

from gatekeeper.models.base import utcnow
from gatekeeper.models.refresh_token import RefreshToken
from gatekeeper.services._shared.errors import RefreshTokenNotFoundError
from gatekeeper.services.tokens.refresh import RefreshTokenProtocol, RotationResult
from gatekeeper.uow import SQLAlchemyUnitOfWork
from tests.factories.refresh_token import RefreshTokenFactory
from tests.factories.user import UserFactory


@pytest.fixture()
def protocol() -> RefreshTokenProtocol:
    return RefreshTokenProtocol()


def _count(session, **filters) -> int:
    stmt = select(func.count()).select_from(RefreshToken)
    for name, value in filters.items():
        stmt = stmt.where(getattr(RefreshToken, name) == value)
    return session.execute(stmt).scalar_one()


def test_grant_starts_active_chain(session, protocol):
    user = UserFactory()
    with SQLAlchemyUnitOfWork() as uow:
        token = protocol.grant(uow, user)
        value = token.token

    row = session.execute(select(RefreshToken).where(RefreshToken.token == value)).scalar_one()
    assert row.parent is None
    assert row.revoked is False
    assert row.user_id == user.id
    # 16 random bytes, URL-safe Base64 without padding
    assert len(value) == 22 and "=" not in value


def test_n_rotations_leave_exactly_one_active_token(session, protocol):
    user = UserFactory()
    with SQLAlchemyUnitOfWork() as uow:
        current = protocol.grant(uow, user)
    issued = [current.token]

    for _ in range(5):
        with SQLAlchemyUnitOfWork() as uow:
            presented_user, presented = protocol.find_with_user(uow, issued[-1])
            result, successor = protocol.rotate(uow, presented_user, presented)
            assert result is RotationResult.OK
            assert successor.parent == issued[-1]
            issued.append(successor.token)

    session.expire_all()
    assert _count(session, user_id=user.id) == 6
    assert _count(session, user_id=user.id, revoked=False) == 1
    active = session.execute(
        select(RefreshToken).where(RefreshToken.revoked.is_(False))
    ).scalar_one()
    assert active.token == issued[-1]


def test_rotating_a_revoked_token_reports_revoked(session, protocol):
    token = RefreshTokenFactory(revoked=True)
    with SQLAlchemyUnitOfWork() as uow:
        user, row = protocol.find_with_user(uow, token.token)
        result, successor = protocol.rotate(uow, user, row)

    assert result is RotationResult.REVOKED
    assert successor is None
    assert _count(session) == 1


def test_concurrent_rotation_loser_observes_revoked(session, protocol):
    """The winner revokes the row between the loser's read and its CAS."""
    token = RefreshTokenFactory()
    with SQLAlchemyUnitOfWork() as uow:
        user, row = protocol.find_with_user(uow, token.token)
        assert row.revoked is False
        uow.session.execute(
            update(RefreshToken)
            .where(RefreshToken.id == row.id)
            .values(revoked=True)
            .execution_options(synchronize_session=False)
        )
        result, successor = protocol.rotate(uow, user, row)

    assert result is RotationResult.REVOKED
    assert successor is None
    assert _count(session) == 1


def test_find_with_user_unknown_token(session, protocol):
    with SQLAlchemyUnitOfWork() as uow, pytest.raises(RefreshTokenNotFoundError):
        protocol.find_with_user(uow, "does-not-exist")


def test_logout_deletes_every_chain_and_is_idempotent(session, protocol):
    user = UserFactory()
    other = RefreshTokenFactory()
    RefreshTokenFactory(user=user)
    RefreshTokenFactory(user=user, revoked=True)

    with SQLAlchemyUnitOfWork() as uow:
        removed = protocol.logout(uow, instance_id=user.instance_id, user_id=user.id)
    with SQLAlchemyUnitOfWork() as uow:
        removed_again = protocol.logout(uow, instance_id=user.instance_id, user_id=user.id)

    assert (removed, removed_again) == (2, 0)
    assert _count(session, user_id=user.id) == 0
    assert _count(session, user_id=other.user_id) == 1


def test_sweep_only_removes_revoked_tokens_past_cutoff(session, protocol):
    old = utcnow() - timedelta(days=40)
    RefreshTokenFactory(revoked=True, created_at=old)
    kept_active = RefreshTokenFactory(revoked=False, created_at=old)
    kept_recent = RefreshTokenFactory(revoked=True)

    with SQLAlchemyUnitOfWork() as uow:
        removed = protocol.sweep(uow, older_than=utcnow() - timedelta(days=30))

    assert removed == 1
    remaining = set(session.execute(select(RefreshToken.token)).scalars())
    assert remaining == {kept_active.token, kept_recent.token}


def test_rollback_discards_rotation(session, protocol):
    token = RefreshTokenFactory()
    with pytest.raises(RuntimeError), SQLAlchemyUnitOfWork() as uow:
        user, row = protocol.find_with_user(uow, token.token)
        protocol.rotate(uow, user, row)
        raise RuntimeError("signer exploded")

    session.expire_all()
    assert _count(session) == 1
    assert _count(session, revoked=False) == 1
