from gatekeeper.models.audit_log import AuditAction, AuditLogEntry
from gatekeeper.models.refresh_token import RefreshToken
from gatekeeper.models.user import User

__all__ = [
    "AuditAction",
    "AuditLogEntry",
    "RefreshToken",
    "User",
]
