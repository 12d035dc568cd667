"""
IdentityService
===============

Application service for the parts of the ``User`` aggregate that create or
change a Credential:

- Sign-up (new user, or refreshed unconfirmed user) and confirmation mail.
- Password recovery mail.
- Verification of e-mailed tokens (``/verify``), which also starts a session.
- Current-user lookup and self-service updates (password, metadata).
"""

from __future__ import annotations

import logging
import uuid

from sqlalchemy.exc import IntegrityError

from gatekeeper.core.security import SecurityComponents
from gatekeeper.infra.crypto.secure_token import secure_token
from gatekeeper.models.audit_log import AuditAction
from gatekeeper.models.base import utcnow
from gatekeeper.models.user import User, sent_recently
from gatekeeper.services._shared.base import BaseService, ServiceContext
from gatekeeper.services._shared.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationFailedError,
    violates,
)
from gatekeeper.services._shared.ports import HookEvent, MailTemplate
from gatekeeper.services.auth.dto import AuthTokenConfig, GrantOut
from gatekeeper.services.auth.service import GrantService
from gatekeeper.services.identity.dto import (
    RecoverIn,
    SignupIn,
    SignupPolicy,
    UserPublicOut,
    UserUpdateIn,
    VerifyIn,
)
from gatekeeper.uow.base import UnitOfWork

log = logging.getLogger(__name__)

ALREADY_REGISTERED = "A user with this email address has already been registered"
SIGNUP_VERIFICATION = "signup"
RECOVERY_VERIFICATION = "recovery"


class IdentityService(BaseService):
    """
    Application service for the ``User`` aggregate.

    Responsibilities
    ----------------
    - Register users, enforcing one account per ``(instance, email, aud)``.
    - Confirm e-mail addresses and issue the first token pair.
    - Send recovery mails and sign users in from their recovery token.
    - Retrieve and update the current user.

    Notes
    -----
    - Hooks and the mailer run inside the Unit of Work; their failure rolls
      the whole operation back.
    """

    def __init__(
        self,
        *,
        components: SecurityComponents,
        token_cfg: AuthTokenConfig,
        policy: SignupPolicy,
        ctx: ServiceContext | None = None,
    ) -> None:
        super().__init__(ctx=ctx)
        self.cipher = components.cipher
        self.hooks = components.hooks
        self.mailer = components.mailer
        self.cache = components.cache
        self.cfg = token_cfg
        self.policy = policy
        self.grants = GrantService(components=components, token_cfg=token_cfg, ctx=self.ctx)

    # --------------------------------------------------------------------- #
    # Sign-up
    # --------------------------------------------------------------------- #

    def signup(self, dto: SignupIn) -> UserPublicOut:
        """
        Register a user, or refresh the metadata of an unconfirmed one.

        With autoconfirm the account is confirmed at once (audit entry and
        ``signup`` hook); otherwise a confirmation mail is sent.

        :param dto: Sign-up input DTO.
        :type dto: SignupIn
        :returns: Public-safe user DTO.
        :rtype: UserPublicOut
        :raises AuthorizationError: When sign-ups are disabled.
        :raises ConflictError: When a confirmed user already owns the email.
        """
        if self.policy.disable_signup:
            raise AuthorizationError("Signups not allowed for this instance")

        try:
            with self.rw_uow() as uow:
                user = uow.users.find_by_email_and_audience(
                    self.cfg.instance_id, dto.email, dto.aud
                )
                if user is not None:
                    if user.is_confirmed:
                        raise ConflictError("User", ALREADY_REGISTERED)
                    user.merge_user_metadata(dto.data)
                else:
                    user = self._new_user(uow, dto)

                if self.policy.autoconfirm:
                    uow.audit_log.record(self.cfg.instance_id, user, AuditAction.USER_SIGNED_UP)
                    self.hooks.trigger(HookEvent.SIGNUP, user, self.cfg.instance_id)
                    user.confirm()
                else:
                    self._send_confirmation(uow, user)
                uow.users.flush()
                return self._to_public(user)
        except IntegrityError as exc:
            if violates(exc, "uq_users_instance_email_aud") or violates(exc, "users.email"):
                raise ConflictError("User", ALREADY_REGISTERED) from exc
            raise

    def _new_user(self, uow: UnitOfWork, dto: SignupIn) -> User:
        ciphertext, iv = self.cipher.encrypt(dto.password)
        user = User(
            instance_id=self.cfg.instance_id,
            email=dto.email,
            aud=dto.aud,
            role="",
            encrypted_password=ciphertext,
            encryption_iv=iv,
            app_metadata={"provider": "email"},
            user_metadata=dict(dto.data or {}),
        )
        uow.users.add(user)
        self.hooks.trigger(HookEvent.VALIDATE, user, self.cfg.instance_id)
        return user

    def _send_confirmation(self, uow: UnitOfWork, user: User) -> None:
        uow.audit_log.record(
            self.cfg.instance_id, user, AuditAction.USER_CONFIRMATION_REQUESTED
        )
        if sent_recently(user.confirmation_sent_at, self.policy.max_frequency):
            log.info("Confirmation mail throttled", extra={"user_id": str(user.id)})
            return
        user.confirmation_token = secure_token()
        user.confirmation_sent_at = utcnow()
        self.mailer.send(
            user.email,
            MailTemplate.CONFIRMATION,
            {"site_url": self.policy.site_url, "token": user.confirmation_token},
        )

    # --------------------------------------------------------------------- #
    # Password recovery
    # --------------------------------------------------------------------- #

    def recover(self, dto: RecoverIn) -> None:
        """
        Mail a recovery link to the owner of ``dto.email``.

        A request arriving within ``max_frequency`` of the previous recovery
        mail is audited but sends nothing; the outstanding token stays valid.

        :raises NotFoundError: No user owns the email for this audience.
        """
        with self.rw_uow() as uow:
            user = uow.users.find_by_email_and_audience(
                self.cfg.instance_id, dto.email, dto.aud
            )
            if user is None:
                raise NotFoundError("User", "email")
            uow.audit_log.record(
                self.cfg.instance_id, user, AuditAction.USER_RECOVERY_REQUESTED
            )
            if sent_recently(user.recovery_sent_at, self.policy.max_frequency):
                log.info("Recovery mail throttled", extra={"user_id": str(user.id)})
                return
            user.recovery_token = secure_token()
            user.recovery_sent_at = utcnow()
            self.mailer.send(
                user.email,
                MailTemplate.RECOVERY,
                {"site_url": self.policy.site_url, "token": user.recovery_token},
            )

    # --------------------------------------------------------------------- #
    # Verification
    # --------------------------------------------------------------------- #

    def verify(self, dto: VerifyIn) -> GrantOut:
        """
        Redeem a sign-up or recovery token and start a session.

        A sign-up token confirms the address (``user_signedup`` entry and
        ``signup`` hook). A recovery token signs the user in (``login`` entry
        and hook), confirming the address first if it was still pending.
        Everything, including the new refresh token, is one transaction.

        :raises ValidationFailedError: Unsupported verification type or no token.
        :raises NotFoundError: No user holds the token.
        """
        if dto.type not in (SIGNUP_VERIFICATION, RECOVERY_VERIFICATION):
            raise ValidationFailedError("Verify requires a verification type")
        if not dto.token:
            raise ValidationFailedError("Verify requires a token")

        with self.rw_uow() as uow:
            if dto.type == SIGNUP_VERIFICATION:
                user = uow.users.find_by_confirmation_token(dto.token)
            else:
                user = uow.users.find_by_recovery_token(dto.token)
            if user is None or user.instance_id != self.cfg.instance_id:
                raise NotFoundError("User", f"{dto.type} token")

            if dto.type == RECOVERY_VERIFICATION and user.is_confirmed:
                uow.audit_log.record(self.cfg.instance_id, user, AuditAction.LOGIN)
                self.hooks.trigger(HookEvent.LOGIN, user, self.cfg.instance_id)
            else:
                uow.audit_log.record(self.cfg.instance_id, user, AuditAction.USER_SIGNED_UP)
                self.hooks.trigger(HookEvent.SIGNUP, user, self.cfg.instance_id)
                user.confirm()
            if dto.type == RECOVERY_VERIFICATION:
                user.recover()

            response = self.grants.issue_token_pair(uow, user)
            cookie = self.grants.cookie_for(dto.use_cookie, response.access_token)
        return GrantOut(token=response, cookie=cookie)

    # --------------------------------------------------------------------- #
    # Current user
    # --------------------------------------------------------------------- #

    def get_user(self, user_id: uuid.UUID) -> UserPublicOut:
        """
        Retrieve a user by identifier.

        :raises NotFoundError: If user does not exist.
        """
        with self.ro_uow() as uow:
            user = uow.users.get(user_id)
            if user is None:
                raise NotFoundError("User", str(user_id))
            return self._to_public(user)

    def update_user(self, user_id: uuid.UUID, dto: UserUpdateIn) -> UserPublicOut:
        """
        Change the password and/or merge user metadata.

        A new password is encrypted under a fresh IV; the old one stops
        authenticating once the transaction commits. Any cached access token
        of the user is dropped.

        :raises NotFoundError: If user does not exist.
        """
        with self.rw_uow() as uow:
            user = uow.users.get(user_id)
            if user is None:
                raise NotFoundError("User", str(user_id))

            traits: dict[str, object] = {}
            if dto.password:
                user.set_encrypted_password(*self.cipher.encrypt(dto.password))
                traits["password"] = True
            if dto.data:
                user.merge_user_metadata(dto.data)
                traits["data"] = sorted(dto.data)

            if traits:
                uow.audit_log.record(
                    self.cfg.instance_id, user, AuditAction.USER_MODIFIED, traits
                )
            uow.users.flush()
            out = self._to_public(user)
            cache_key = self.grants.cache_key(user)

        self.cache.evict(cache_key)
        return out

    # --------------------------------------------------------------------- #
    # Mapping
    # --------------------------------------------------------------------- #

    @staticmethod
    def _to_public(user: User) -> UserPublicOut:
        return UserPublicOut(
            id=user.id,
            aud=user.aud,
            role=user.role,
            email=user.email,
            confirmed_at=user.confirmed_at,
            confirmation_sent_at=user.confirmation_sent_at,
            recovery_sent_at=user.recovery_sent_at,
            last_sign_in_at=user.last_sign_in_at,
            app_metadata=dict(user.app_metadata or {}),
            user_metadata=dict(user.user_metadata or {}),
            created_at=user.created_at,
            updated_at=user.updated_at,
        )
