"""Unit tests for sign-up, confirmation and self-service updates."""

from __future__ import annotations

import uuid

import pytest
from freezegun import freeze_time
from sqlalchemy import func, select

from gatekeeper.models.audit_log import AuditLogEntry
from gatekeeper.models.refresh_token import RefreshToken
from gatekeeper.models.user import User
from gatekeeper.services._shared.errors import (
    AuthorizationError,
    ConflictError,
    HookError,
    InvalidGrantError,
    NotFoundError,
    ValidationFailedError,
)
from gatekeeper.services._shared.ports import HookEvent, MailTemplate
from gatekeeper.services.auth.dto import AuthTokenConfig, TokenRequestIn
from gatekeeper.services.identity.dto import (
    RecoverIn,
    SignupIn,
    SignupPolicy,
    UserUpdateIn,
    VerifyIn,
)
from gatekeeper.services.identity.service import ALREADY_REGISTERED, IdentityService
from tests.factories.user import DEFAULT_PASSWORD, UserFactory

AUD = "authenticated"


def _service(app, components, **policy) -> IdentityService:
    base = SignupPolicy.from_mapping(app.config)
    return IdentityService(
        components=components,
        token_cfg=AuthTokenConfig.from_mapping(app.config),
        policy=SignupPolicy(
            disable_signup=policy.get("disable_signup", base.disable_signup),
            autoconfirm=policy.get("autoconfirm", base.autoconfirm),
            site_url=base.site_url,
            max_frequency=policy.get("max_frequency", base.max_frequency),
        ),
    )


@pytest.fixture()
def service(app, components) -> IdentityService:
    return _service(app, components)


def _actions(session) -> list[str]:
    entries = session.execute(select(AuditLogEntry).order_by(AuditLogEntry.created_at)).scalars()
    return [entry.action for entry in entries]


def _login(service: IdentityService, email: str, password: str):
    dto = TokenRequestIn(grant_type="password", aud=AUD, username=email, password=password)
    return service.grants.token(dto)


# --------------------------------- Sign-up ---------------------------------- #
def test_signup_sends_confirmation(session, service, mailer, hooks):
    out = service.signup(SignupIn(email="New@Example.com", password="s3cret", aud=AUD, data={"name": "Ada"}))

    assert out.email == "new@example.com"
    assert out.confirmed_at is None
    assert out.confirmation_sent_at is not None
    assert out.app_metadata == {"provider": "email"}
    assert out.user_metadata == {"name": "Ada"}
    assert not hasattr(out, "encrypted_password")

    ((address, template, data),) = mailer.sent
    assert address == "new@example.com"
    assert template is MailTemplate.CONFIRMATION
    assert data["site_url"] == "http://auth.example.test"
    stored = session.get(User, out.id)
    assert data["token"] == stored.confirmation_token
    assert hooks.events == [(HookEvent.VALIDATE, "new@example.com")]
    assert _actions(session) == ["user_confirmation_requested"]


def test_signup_stores_an_encrypted_password(session, service, components):
    out = service.signup(SignupIn(email="enc@example.com", password="s3cret", aud=AUD))

    stored = session.get(User, out.id)
    assert stored.encrypted_password != "s3cret"
    assert components.cipher.authenticate("s3cret", stored.encrypted_password, stored.encryption_iv)


def test_signup_with_autoconfirm(app, session, components, mailer, hooks):
    service = _service(app, components, autoconfirm=True)

    out = service.signup(SignupIn(email="auto@example.com", password="s3cret", aud=AUD))

    assert out.confirmed_at is not None
    assert mailer.sent == []
    assert [event for event, _ in hooks.events] == [HookEvent.VALIDATE, HookEvent.SIGNUP]
    assert _actions(session) == ["user_signedup"]
    assert _login(service, "auto@example.com", "s3cret").token.access_token


def test_signup_disabled(app, session, components):
    service = _service(app, components, disable_signup=True)

    with pytest.raises(AuthorizationError):
        service.signup(SignupIn(email="no@example.com", password="x", aud=AUD))

    assert session.execute(select(func.count()).select_from(User)).scalar_one() == 0


def test_signup_of_confirmed_email_conflicts(session, service, mailer):
    UserFactory(email="taken@example.com")

    with pytest.raises(ConflictError) as excinfo:
        service.signup(SignupIn(email="taken@example.com", password="x", aud=AUD))

    assert str(excinfo.value) == ALREADY_REGISTERED
    assert mailer.sent == []


def test_same_email_other_audience_is_a_new_user(session, service):
    existing = UserFactory(email="multi@example.com")

    out = service.signup(SignupIn(email="multi@example.com", password="x", aud="other-app"))

    assert out.id != existing.id
    assert out.aud == "other-app"


def test_signup_of_unconfirmed_email_refreshes_it(app, session, components, mailer):
    service = _service(app, components, max_frequency=0)
    first = service.signup(SignupIn(email="again@example.com", password="x", aud=AUD, data={"a": 1, "b": 2}))

    second = service.signup(SignupIn(email="again@example.com", password="y", aud=AUD, data={"b": None, "c": 3}))

    assert second.id == first.id
    assert second.user_metadata == {"a": 1, "c": 3}
    assert len(mailer.sent) == 2
    assert mailer.sent[0][2]["token"] != mailer.sent[1][2]["token"]


def test_confirmation_mail_is_throttled(session, service, mailer):
    dto = SignupIn(email="impatient@example.com", password="x", aud=AUD)

    with freeze_time("2026-03-01 12:00:00") as frozen:
        for _ in range(3):
            service.signup(dto)
        assert len(mailer.sent) == 1

        frozen.tick(901)
        service.signup(dto)

    assert len(mailer.sent) == 2
    assert mailer.sent[0][2]["token"] != mailer.sent[1][2]["token"]
    assert _actions(session) == ["user_confirmation_requested"] * 4


def test_throttled_signup_keeps_the_mailed_token_valid(session, service, mailer):
    dto = SignupIn(email="twice@example.com", password="x", aud=AUD)
    service.signup(dto)
    service.signup(dto)

    out = service.verify(VerifyIn(type="signup", token=mailer.sent[0][2]["token"]))

    assert out.token.access_token


def test_validate_hook_rejection_creates_nothing(session, service, hooks, mailer):
    hooks.fail_on.add(HookEvent.VALIDATE)

    with pytest.raises(HookError):
        service.signup(SignupIn(email="vetoed@example.com", password="x", aud=AUD))

    assert session.execute(select(func.count()).select_from(User)).scalar_one() == 0
    assert mailer.sent == []


# ------------------------------ Confirmation -------------------------------- #
def test_verify_confirms_and_starts_a_session(session, service, mailer, hooks):
    service.signup(SignupIn(email="verify@example.com", password="s3cret", aud=AUD))
    token = mailer.sent[0][2]["token"]

    out = service.verify(VerifyIn(type="signup", token=token, use_cookie="session"))

    assert out.token.token_type == "bearer"
    assert out.cookie is not None and out.cookie.max_age is None
    session.expire_all()
    user = session.execute(select(User).where(User.email == "verify@example.com")).scalar_one()
    assert user.is_confirmed
    assert user.confirmation_token is None
    assert user.last_sign_in_at is not None
    row = session.execute(select(RefreshToken)).scalar_one()
    assert row.token == out.token.refresh_token and row.user_id == user.id
    assert hooks.events[-1] == (HookEvent.SIGNUP, "verify@example.com")
    assert _actions(session) == ["user_confirmation_requested", "user_signedup"]


def test_verify_token_is_single_use(session, service, mailer):
    service.signup(SignupIn(email="once@example.com", password="s3cret", aud=AUD))
    token = mailer.sent[0][2]["token"]
    service.verify(VerifyIn(type="signup", token=token))

    with pytest.raises(NotFoundError):
        service.verify(VerifyIn(type="signup", token=token))


@pytest.mark.parametrize(
    "dto",
    [VerifyIn(type="magiclink", token="abc"), VerifyIn(type="recovery", token="")],
)
def test_verify_rejects_malformed_requests(session, service, dto):
    with pytest.raises(ValidationFailedError):
        service.verify(dto)


def test_verify_unknown_token(session, service):
    with pytest.raises(NotFoundError):
        service.verify(VerifyIn(type="signup", token="does-not-exist"))


# ---------------------------- Password recovery ----------------------------- #
def test_recover_mails_a_recovery_link(session, service, mailer):
    user = UserFactory(email="lost@example.com")

    service.recover(RecoverIn(email="LOST@example.com", aud=AUD))

    ((address, template, data),) = mailer.sent
    assert address == "lost@example.com"
    assert template is MailTemplate.RECOVERY
    session.expire_all()
    stored = session.get(User, user.id)
    assert data["token"] == stored.recovery_token
    assert stored.recovery_sent_at is not None
    assert _actions(session) == ["user_recovery_requested"]


def test_recovery_mail_is_throttled(session, service, mailer):
    user = UserFactory()

    with freeze_time("2026-03-01 12:00:00") as frozen:
        service.recover(RecoverIn(email=user.email, aud=AUD))
        frozen.tick(5 * 60)
        service.recover(RecoverIn(email=user.email, aud=AUD))
        assert len(mailer.sent) == 1

        frozen.tick(15 * 60)
        service.recover(RecoverIn(email=user.email, aud=AUD))

    assert len(mailer.sent) == 2
    assert mailer.sent[0][2]["token"] != mailer.sent[1][2]["token"]


def test_recover_unknown_email(session, service, mailer):
    with pytest.raises(NotFoundError):
        service.recover(RecoverIn(email="ghost@example.com", aud=AUD))
    assert mailer.sent == []


def test_verify_recovery_signs_in(session, service, mailer, hooks):
    user = UserFactory(email="back@example.com")
    service.recover(RecoverIn(email=user.email, aud=AUD))
    token = mailer.sent[0][2]["token"]

    out = service.verify(VerifyIn(type="recovery", token=token))

    assert out.token.refresh_token
    session.expire_all()
    stored = session.get(User, user.id)
    assert stored.recovery_token is None
    assert stored.last_sign_in_at is not None
    assert hooks.events == [(HookEvent.LOGIN, "back@example.com")]
    assert _actions(session) == ["user_recovery_requested", "login"]
    with pytest.raises(NotFoundError):
        service.verify(VerifyIn(type="recovery", token=token))


def test_verify_recovery_confirms_pending_user(session, service, mailer, hooks):
    user = UserFactory(email="pending@example.com", confirmed_at=None)
    service.recover(RecoverIn(email=user.email, aud=AUD))

    service.verify(VerifyIn(type="recovery", token=mailer.sent[0][2]["token"]))

    session.expire_all()
    assert session.get(User, user.id).is_confirmed
    assert hooks.events == [(HookEvent.SIGNUP, "pending@example.com")]


def test_confirmation_token_does_not_redeem_as_recovery(session, service, mailer):
    service.signup(SignupIn(email="mixed@example.com", password="x", aud=AUD))

    with pytest.raises(NotFoundError):
        service.verify(VerifyIn(type="recovery", token=mailer.sent[0][2]["token"]))


# ------------------------------ Current user -------------------------------- #
def test_get_user(session, service):
    user = UserFactory(user_metadata={"theme": "dark"})

    out = service.get_user(user.id)

    assert out.email == user.email
    assert out.user_metadata == {"theme": "dark"}


def test_get_missing_user(session, service):
    with pytest.raises(NotFoundError):
        service.get_user(uuid.uuid4())


def test_password_update_replaces_credential(session, service):
    user = UserFactory(email="pw@example.com")
    old_iv = user.encryption_iv
    _login(service, "pw@example.com", DEFAULT_PASSWORD)
    assert len(service.cache) == 1

    service.update_user(user.id, UserUpdateIn(password="n3w-password"))

    session.expire_all()
    assert session.get(User, user.id).encryption_iv != old_iv
    assert len(service.cache) == 0
    with pytest.raises(InvalidGrantError):
        _login(service, "pw@example.com", DEFAULT_PASSWORD)
    assert _login(service, "pw@example.com", "n3w-password").token.access_token


def test_metadata_update_merges_and_audits(session, service):
    user = UserFactory(user_metadata={"keep": 1, "drop": 2})

    out = service.update_user(user.id, UserUpdateIn(data={"drop": None, "add": 3}))

    assert out.user_metadata == {"keep": 1, "add": 3}
    entry = session.execute(select(AuditLogEntry)).scalar_one()
    assert entry.action == "user_modified"
    assert entry.payload["traits"] == {"data": ["add", "drop"]}


def test_empty_update_writes_no_audit(session, service):
    user = UserFactory()

    service.update_user(user.id, UserUpdateIn())

    assert session.execute(select(func.count()).select_from(AuditLogEntry)).scalar_one() == 0


def test_update_missing_user(session, service):
    with pytest.raises(NotFoundError):
        service.update_user(uuid.uuid4(), UserUpdateIn(data={"a": 1}))
