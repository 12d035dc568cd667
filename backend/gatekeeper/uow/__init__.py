"""Unit of Work abstractions and the SQLAlchemy implementations.

Services depend on :class:`UnitOfWork`; the Flask-scoped session backs both
the read-write and the read-only variants.
"""

from .base import UnitOfWork
from .sqlalchemy_uow import SQLAlchemyReadOnlyUnitOfWork, SQLAlchemyUnitOfWork

__all__ = [
    "UnitOfWork",
    "SQLAlchemyUnitOfWork",
    "SQLAlchemyReadOnlyUnitOfWork",
]
