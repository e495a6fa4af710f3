"""Database models and adapters for babyblink-auth."""

from babyblink_auth.db.protocols import AccountProtocol, AuthDatabase, SessionProtocol
from babyblink_auth.db.sqlalchemy.adapter import SQLAlchemyAdapter
from babyblink_auth.db.sqlalchemy.models import BaseAccountTable, BaseSessionTable
from babyblink_auth.db.sqlalchemy.types import UTCDateTime

__all__ = [
    "AccountProtocol",
    "AuthDatabase",
    "BaseAccountTable",
    "BaseSessionTable",
    "SQLAlchemyAdapter",
    "SessionProtocol",
    "UTCDateTime",
]

# Conditionally export MongoDB classes if motor is installed
try:
    from babyblink_auth.db.mongodb.adapter import MongoDBAdapter
    from babyblink_auth.db.mongodb.models import AccountDocument, SessionDocument

    __all__ += ["AccountDocument", "MongoDBAdapter", "SessionDocument"]
except ImportError:
    # MongoDB support not installed
    pass
