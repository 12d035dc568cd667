from gatekeeper.repositories.audit_log import AuditLogRepository
from gatekeeper.repositories.refresh_token import RefreshTokenRepository
from gatekeeper.repositories.user import UserRepository

__all__ = [
    "AuditLogRepository",
    "RefreshTokenRepository",
    "UserRepository",
]
