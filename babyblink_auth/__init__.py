"""BabyBlink Auth - sessions, access control and account blocking for the BabyBlink API."""

from babyblink_auth.admin_router import get_admin_router
from babyblink_auth.app import create_app
from babyblink_auth.blocking import BlockOutcome, BlockService
from babyblink_auth.config import BabyBlinkAuthConfig, OTPPurpose
from babyblink_auth.credentials import CredentialStore, RegistrationCandidate
from babyblink_auth.db import (
    AuthDatabase,
    BaseAccountTable,
    BaseSessionTable,
    SQLAlchemyAdapter,
)
from babyblink_auth.dependencies import (
    AccessGate,
    AuthContext,
    get_admin_dependency,
    get_auth_dependency,
    get_optional_auth_dependency,
)
from babyblink_auth.device import DeviceInfo, parse_device_info
from babyblink_auth.errors import AuthError, ConfigurationError
from babyblink_auth.handlers import register_exception_handlers
from babyblink_auth.router import get_auth_router
from babyblink_auth.security import TokenCheck, TokenPair, TokenStatus, issue_token_pair, verify_token
from babyblink_auth.sessions import IssuedSession, SessionReaper, SessionRegistry
from babyblink_auth.user_router import get_user_router

__version__ = "0.1.0"

__all__ = [
    "AccessGate",
    "AuthContext",
    "AuthDatabase",
    "AuthError",
    "BabyBlinkAuthConfig",
    "BaseAccountTable",
    "BaseSessionTable",
    "BlockOutcome",
    "BlockService",
    "ConfigurationError",
    "CredentialStore",
    "DeviceInfo",
    "IssuedSession",
    "OTPPurpose",
    "RegistrationCandidate",
    "SQLAlchemyAdapter",
    "SessionReaper",
    "SessionRegistry",
    "TokenCheck",
    "TokenPair",
    "TokenStatus",
    "create_app",
    "get_admin_dependency",
    "get_admin_router",
    "get_auth_dependency",
    "get_auth_router",
    "get_optional_auth_dependency",
    "get_user_router",
    "issue_token_pair",
    "parse_device_info",
    "register_exception_handlers",
    "verify_token",
]

# Conditionally export MongoDB classes if motor is installed
try:
    from babyblink_auth.db import AccountDocument, MongoDBAdapter, SessionDocument

    __all__ += ["AccountDocument", "MongoDBAdapter", "SessionDocument"]
except ImportError:
    # MongoDB support not installed
    pass
