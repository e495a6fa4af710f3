"""Error taxonomy for authentication, sessions and account blocking.

Every failure the subsystem reports to a caller is an ``AuthError`` subclass.
Each class carries its HTTP status, a stable machine ``code`` and the client
flags (``requiresAuth``, ``blocked``, ``expired``, ``needsVerification``,
``forceLogout``) that front-ends branch on.
"""

from datetime import datetime
from typing import Any


class AuthError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code: int = 400
    code: str = "auth_error"
    default_message: str = "Authentication request failed"
    flags: dict[str, bool] = {}

    def __init__(self, message: str | None = None, **extra: Any) -> None:  # noqa: ANN401
        self.message = message or self.default_message
        self.extra = {key: value for key, value in extra.items() if value is not None}
        super().__init__(self.message)

    def to_payload(self) -> dict[str, Any]:
        """Render the JSON body for this error."""
        payload: dict[str, Any] = {
            "success": False,
            "error": self.message,
            "code": self.code,
        }
        payload.update(self.flags)
        for key, value in self.extra.items():
            payload[key] = value.isoformat() if isinstance(value, datetime) else value
        return payload


class ConfigurationError(Exception):
    """Raised when the auth configuration is unusable."""


# --- request / identity errors ----------------------------------------------


class InvalidRequest(AuthError):
    status_code = 400
    code = "invalid_request"
    default_message = "Invalid request"


class DuplicateIdentity(AuthError):
    status_code = 400
    code = "duplicate_identity"
    default_message = "Username or email already registered"


class AccountNotFound(AuthError):
    status_code = 404
    code = "not_found"
    default_message = "User not found"


class InvalidCredential(AuthError):
    status_code = 401
    code = "invalid_credentials"
    default_message = "Invalid username/email or password"


class NotVerified(AuthError):
    """Account exists but has not completed OTP verification."""

    status_code = 403
    code = "verification_required"
    default_message = "Please verify your email first"
    flags = {"needsVerification": True}


class AccountBlocked(AuthError):
    """Account has been suspended by an administrator."""

    status_code = 403
    code = "blocked"
    default_message = (
        "Your account has been suspended. Please contact support for assistance."
    )
    flags = {"blocked": True, "forceLogout": True, "requiresAuth": True}

    @classmethod
    def for_account(cls, account: Any, support_email: str) -> "AccountBlocked":  # noqa: ANN401
        """Build the error with the block details of ``account``."""
        return cls(
            reason=account.block_reason or "Account suspended by administrator",
            blockedAt=account.blocked_at,
            supportEmail=support_email,
        )


class AlreadyBlocked(AuthError):
    status_code = 409
    code = "already_blocked"
    default_message = "User is already blocked"


class NotBlocked(AuthError):
    status_code = 409
    code = "not_blocked"
    default_message = "User is not blocked"


class Forbidden(AuthError):
    status_code = 403
    code = "forbidden"
    default_message = "Administrator privileges required"


# --- OTP errors ---------------------------------------------------------------


class InvalidOTP(AuthError):
    status_code = 400
    code = "invalid_otp"
    default_message = "Invalid OTP code"


class OTPExpired(AuthError):
    status_code = 400
    code = "otp_expired"
    default_message = "OTP has expired. Please request a new one."
    flags = {"expired": True}


class DeliveryFailure(AuthError):
    status_code = 502
    code = "delivery_failure"
    default_message = (
        "Unable to send verification email. Please try again or contact "
        "support if the problem persists."
    )


# --- token and session errors ---------------------------------------------------


class Unauthenticated(AuthError):
    status_code = 401
    code = "unauthenticated"
    default_message = "No authentication token provided"
    flags = {"requiresAuth": True}


class TokenMalformed(Unauthenticated):
    code = "token_malformed"
    default_message = "Invalid authentication token"


class TokenInvalidSignature(Unauthenticated):
    code = "token_invalid_signature"
    default_message = "Invalid authentication token"


class TokenExpired(Unauthenticated):
    """Token signature is valid but its lifetime has passed; clients should refresh."""

    code = "token_expired"
    default_message = "Session expired"
    flags = {"requiresAuth": True, "expired": True}


class SessionNotFound(Unauthenticated):
    code = "session_not_found"
    default_message = "Session not found or expired"


class SessionExpired(Unauthenticated):
    code = "session_expired"
    default_message = "Session not found or expired"
    flags = {"requiresAuth": True, "expired": True}


class AccountGone(Unauthenticated):
    """The session outlived its owning account."""

    code = "account_not_found"
    default_message = "User account not found"
    flags = {"requiresAuth": True, "forceLogout": True}
