from __future__ import annotations

import logging
import time
import uuid

from gatekeeper.core.security import SecurityComponents
from gatekeeper.infra.cache.access_token_cache import AccessTokenResponse
from gatekeeper.infra.jwt.token_signer import AccessTokenClaims
from gatekeeper.models.audit_log import AuditAction
from gatekeeper.models.base import utcnow
from gatekeeper.models.user import User
from gatekeeper.services._shared.base import BaseService, ServiceContext
from gatekeeper.services._shared.errors import (
    InvalidGrantError,
    InvalidRequestError,
    RefreshTokenNotFoundError,
    RefreshTokenReuseError,
    UnsupportedGrantTypeError,
)
from gatekeeper.services._shared.metering import record_login
from gatekeeper.services._shared.ports import HookEvent
from gatekeeper.services.auth.dto import (
    AuthTokenConfig,
    CookieDirective,
    GrantOut,
    TokenRequestIn,
)
from gatekeeper.services.tokens.refresh import RotationResult
from gatekeeper.uow.base import UnitOfWork

log = logging.getLogger(__name__)

BAD_CREDENTIALS = "No user found with that email, or password invalid."
EMAIL_NOT_CONFIRMED = "Email not confirmed"
INVALID_REFRESH_TOKEN = "Invalid Refresh Token"
REFRESH_TOKEN_REQUIRED = "refresh_token required"
SESSION_COOKIE = "session"


class GrantService(BaseService):
    """
    OAuth2 token endpoint: password and refresh-token grants, plus logout.

    Every successful grant writes its audit entry, refresh token and user
    update in one read-write Unit of Work; event hooks run inside it, so a
    rejecting hook leaves no trace.
    """

    def __init__(
        self,
        *,
        components: SecurityComponents,
        token_cfg: AuthTokenConfig,
        ctx: ServiceContext | None = None,
    ) -> None:
        super().__init__(ctx=ctx)
        self.signer = components.signer
        self.cipher = components.cipher
        self.cache = components.cache
        self.refresh_tokens = components.refresh_tokens
        self.hooks = components.hooks
        self.cfg = token_cfg

    # ------------------------------------------------------------------ #
    # Dispatch
    # ------------------------------------------------------------------ #

    def token(self, dto: TokenRequestIn) -> GrantOut:
        """
        Run the grant named by ``dto.grant_type``.

        :raises UnsupportedGrantTypeError: For any other grant type.
        """
        if dto.grant_type == "password":
            return self.password_grant(dto)
        if dto.grant_type == "refresh_token":
            return self.refresh_token_grant(dto)
        raise UnsupportedGrantTypeError(dto.grant_type)

    # ------------------------------------------------------------------ #
    # Password grant
    # ------------------------------------------------------------------ #

    def password_grant(self, dto: TokenRequestIn) -> GrantOut:
        """
        Exchange email and password for a token pair.

        A cached response is returned while its access token has more than the
        cache margin left; such a hit skips every write (no audit entry, no
        hook, no new refresh token) but still emits a metering record.

        :raises InvalidGrantError: Unknown email, unconfirmed email or wrong
            password. Unknown email and wrong password share one message.
        """
        with self.ro_uow() as uow:
            user = uow.users.find_by_email_and_audience(
                self.cfg.instance_id, dto.username, dto.aud
            )
            if user is None:
                raise InvalidGrantError(BAD_CREDENTIALS, internal="unknown email")
            if not user.is_confirmed:
                raise InvalidGrantError(EMAIL_NOT_CONFIRMED)
            if not self.cipher.authenticate(
                dto.password, user.encrypted_password, user.encryption_iv
            ):
                raise InvalidGrantError(BAD_CREDENTIALS, internal="password mismatch")
            user_id = user.id
            cache_key = self.cache_key(user)

        cached = self.cache.lookup(cache_key)
        if cached is not None:
            record_login("password", user_id, self.cfg.instance_id)
            return GrantOut(token=cached)

        with self.rw_uow() as uow:
            user = self._load_user(uow, user_id)
            uow.audit_log.record(self.cfg.instance_id, user, AuditAction.LOGIN)
            self.hooks.trigger(HookEvent.LOGIN, user, self.cfg.instance_id)
            response = self.issue_token_pair(uow, user)
            cookie = self.cookie_for(dto.use_cookie, response.access_token)

        self.cache.store(cache_key, response)
        record_login("password", user_id, self.cfg.instance_id)
        return GrantOut(token=response, cookie=cookie)

    # ------------------------------------------------------------------ #
    # Refresh-token grant
    # ------------------------------------------------------------------ #

    def refresh_token_grant(self, dto: TokenRequestIn) -> GrantOut:
        """
        Rotate a refresh token and return a new pair.

        :raises InvalidRequestError: No token supplied.
        :raises InvalidGrantError: Unknown token.
        :raises RefreshTokenReuseError: Token already revoked, including when a
            concurrent request rotated it first.
        """
        if not dto.refresh_token:
            raise InvalidRequestError(REFRESH_TOKEN_REQUIRED)

        with self.ro_uow() as uow:
            user, token = self.refresh_tokens.find_with_user(uow, dto.refresh_token)
            if token.instance_id != self.cfg.instance_id:
                raise RefreshTokenNotFoundError(
                    INVALID_REFRESH_TOKEN, internal="refresh token of another instance"
                )
            user_id, token_id = user.id, token.id
            cache_key = self.cache_key(user)
            if token.revoked:
                self._report_reuse(user, token_id)
                self.cache.evict(cache_key)
                raise RefreshTokenReuseError(INVALID_REFRESH_TOKEN, internal="Possible abuse attempt")

        with self.rw_uow() as uow:
            user = self._load_user(uow, user_id)
            current = uow.refresh_tokens.get(token_id)
            if current is None:
                raise InvalidGrantError(INVALID_REFRESH_TOKEN, internal="token deleted during grant")
            uow.audit_log.record(self.cfg.instance_id, user, AuditAction.TOKEN_REFRESHED)
            result, successor = self.refresh_tokens.rotate(uow, user, current)
            if result is RotationResult.REVOKED or successor is None:
                self._report_reuse(user, token_id)
                self.cache.evict(cache_key)
                raise RefreshTokenReuseError(INVALID_REFRESH_TOKEN, internal="Possible abuse attempt")
            response = self._token_response(user, successor.token)
            cookie = self.cookie_for(dto.use_cookie, response.access_token)

        # A cached password-grant pair may hold the token just revoked.
        self.cache.evict(cache_key)
        record_login("token", user_id, self.cfg.instance_id)
        return GrantOut(token=response, cookie=cookie)

    # ------------------------------------------------------------------ #
    # Logout
    # ------------------------------------------------------------------ #

    def logout(self, user_id: uuid.UUID) -> int:
        """
        Terminate all refresh-token chains of ``user_id``.

        Idempotent: a second call (or an unknown user) removes nothing.

        :returns: Number of refresh tokens removed.
        """
        with self.rw_uow() as uow:
            user = uow.users.get(user_id)
            removed = self.refresh_tokens.logout(
                uow, instance_id=self.cfg.instance_id, user_id=user_id
            )
            if user is not None:
                uow.audit_log.record(
                    self.cfg.instance_id, user, AuditAction.LOGOUT, {"revoked": removed}
                )
                self.cache.evict(self.cache_key(user))
        return removed

    # ------------------------------------------------------------------ #
    # Shared helpers (also used by sign-up confirmation)
    # ------------------------------------------------------------------ #

    def cache_key(self, user: User) -> str:
        return f"{user.instance_id}:{user.aud}:{user.email}"

    def issue_token_pair(self, uow: UnitOfWork, user: User) -> AccessTokenResponse:
        """Start a refresh-token chain and sign an access token, inside ``uow``."""
        user.last_sign_in_at = utcnow()
        refresh = self.refresh_tokens.grant(uow, user)
        return self._token_response(user, refresh.token)

    def cookie_for(self, use_cookie: str | None, access_token: str) -> CookieDirective | None:
        """Cookie to set for a client that sent ``x-use-cookie``, if cookies are enabled."""
        if not use_cookie or self.cfg.cookie_duration <= 0:
            return None
        max_age = None if use_cookie == SESSION_COOKIE else self.cfg.cookie_duration
        return CookieDirective(name=self.cfg.cookie_key, value=access_token, max_age=max_age)

    def _token_response(self, user: User, refresh_token: str) -> AccessTokenResponse:
        now = int(time.time())
        claims = AccessTokenClaims(
            sub=user.subject,
            aud=user.aud,
            iat=now,
            exp=now + self.cfg.access_ttl,
            metadata=self._tenant_claims(user),
        )
        return AccessTokenResponse(
            access_token=self.signer.sign(claims),
            token_type="bearer",
            expires_in=self.cfg.access_ttl,
            refresh_token=refresh_token,
        )

    @staticmethod
    def _tenant_claims(user: User) -> dict[str, str]:
        meta = user.app_metadata or {}
        if not meta:
            return {}
        return {"nc": meta.get("namespace", ""), "p": meta.get("project", "")}

    @staticmethod
    def _load_user(uow: UnitOfWork, user_id: uuid.UUID) -> User:
        user = uow.users.get(user_id)
        if user is None:
            raise InvalidGrantError(BAD_CREDENTIALS, internal="user deleted during grant")
        return user

    def _report_reuse(self, user: User, token_id: uuid.UUID) -> None:
        log.warning(
            "Possible abuse attempt",
            extra={
                "user_id": str(user.id),
                "instance_id": str(self.cfg.instance_id),
                "remote_addr": self.ctx.remote_addr,
                "user_agent": self.ctx.user_agent,
            },
        )
        log.debug("Revoked refresh token presented: %s", token_id)
