from __future__ import annotations

from dataclasses import dataclass
from http import HTTPStatus

from gatekeeper.core import errors as api_errors
from gatekeeper.services._shared.errors import (
    AuthorizationError,
    ConflictError,
    GrantError,
    HookError,
    InvalidGrantError,
    MailerError,
    NotFoundError,
    ServiceError,
)
from gatekeeper.uow.sqlalchemy_uow import (
    SQLAlchemyReadOnlyUnitOfWork,
    SQLAlchemyUnitOfWork,
)


@dataclass(slots=True)
class ServiceContext:
    """
    Carry cross-cutting request-scoped data.

    :param request_id: Correlation id for logging/tracing.
    :param remote_addr: Client address, reported on abuse warnings.
    :param user_agent: Client user agent, reported on abuse warnings.
    """

    request_id: str | None = None
    remote_addr: str | None = None
    user_agent: str | None = None


class BaseService:
    """
    Base class for application services.

    Responsibilities
    ----------------
    * Provide helpers to run read-only and read-write units of work.
    * Centralize error translation.

    Notes
    -----
    - Services must never touch the global session; always use a Unit of Work.
    """

    DEFAULT_READ_ISOLATION = "READ COMMITTED"

    def __init__(self, *, ctx: ServiceContext | None = None) -> None:
        self.ctx = ctx or ServiceContext()

    # -------------------------- UoW helpers ---------------------------------

    def rw_uow(self) -> SQLAlchemyUnitOfWork:
        """
        Create a read-write Unit of Work.

        :returns: Read-write UoW instance.
        :rtype: SQLAlchemyUnitOfWork
        """
        return SQLAlchemyUnitOfWork()

    def ro_uow(
        self, *, isolation: str | None = None, enforce_db_readonly: bool = True
    ) -> SQLAlchemyReadOnlyUnitOfWork:
        """
        Create a read-only Unit of Work.

        :param isolation: Transaction isolation level (e.g. "READ COMMITTED").
        :type isolation: str | None
        :param enforce_db_readonly: Apply `SET TRANSACTION READ ONLY` when supported.
        :type enforce_db_readonly: bool
        :returns: Read-only UoW instance.
        :rtype: SQLAlchemyReadOnlyUnitOfWork
        """
        return SQLAlchemyReadOnlyUnitOfWork(
            isolation_level=isolation or self.DEFAULT_READ_ISOLATION,
            enforce_db_readonly=enforce_db_readonly,
        )

    # -------------------------- Error handling ------------------------------

    @staticmethod
    def translate_exceptions(exc: Exception) -> Exception:
        """
        Map domain/service-level errors to API-level (HTTP) errors.

        Grant errors keep their OAuth2 code; ``invalid_grant`` is a 401.
        Hook and mailer failures are server-side problems (500).

        :param exc: Exception raised within the service.
        :type exc: Exception
        :returns: Translated exception ready to be re-raised.
        :rtype: Exception
        """
        if isinstance(exc, GrantError):
            status = (
                HTTPStatus.UNAUTHORIZED
                if isinstance(exc, InvalidGrantError)
                else HTTPStatus.BAD_REQUEST
            )
            return api_errors.OAuthError(
                exc.error,
                exc.description,
                status_code=status,
                internal_message=exc.internal,
                clear_cookie=exc.clear_cookie,
            )

        if isinstance(exc, (HookError, MailerError)):
            return api_errors.OAuthError(
                "server_error",
                "Unable to complete the request",
                status_code=HTTPStatus.INTERNAL_SERVER_ERROR,
                internal_message=str(exc),
            )

        if isinstance(exc, NotFoundError):
            return api_errors.NotFound(str(exc))

        if isinstance(exc, ConflictError):
            return api_errors.Conflict(str(exc))

        if isinstance(exc, AuthorizationError):
            return api_errors.Forbidden(str(exc))

        # Any other ServiceError subclass → 400 Bad Request
        if isinstance(exc, ServiceError):
            return api_errors.APIError(message=str(exc), status_code=400, code="bad_request")

        return exc
