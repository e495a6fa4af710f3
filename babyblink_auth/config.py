"""Configuration class for BabyBlink authentication."""

from abc import ABC, abstractmethod
from datetime import timedelta
from enum import StrEnum
from typing import Any

from babyblink_auth.errors import ConfigurationError


class OTPPurpose(StrEnum):
    """Why an OTP code is being delivered."""

    REGISTRATION = "registration"
    RESEND = "resend"
    PASSWORD_RESET = "password_reset"


class BabyBlinkAuthConfig(ABC):
    """
    Abstract configuration class for BabyBlink authentication.

    Applications extend this class and implement ``send_otp``.
    Configuration is set via class attributes.

    Example:
        ```python
        class MyAuthConfig(BabyBlinkAuthConfig):
            secret_key = "your-secret-key-here"
            refresh_secret_key = "another-secret-key-here"
            support_email = "support@example.com"

            async def send_otp(self, email: str, code: str, purpose: OTPPurpose) -> None:
                await mailer.send(email, f"Your verification code is {code}")
        ```
    """

    # Required configuration - must be set by subclasses
    secret_key: str

    refresh_secret_key: str | None = None
    """Signing key for refresh tokens. Falls back to ``secret_key``."""

    algorithm: str = "HS256"

    # Token and session lifetimes
    access_token_lifetime: timedelta = timedelta(days=7)
    refresh_token_lifetime: timedelta = timedelta(days=30)
    session_lifetime: timedelta = timedelta(days=7)

    # OTP configuration
    otp_length: int = 6
    otp_expiry: timedelta = timedelta(minutes=15)

    # Delivery retry policy for send_otp
    otp_delivery_attempts: int = 3
    otp_delivery_retry_delay: timedelta = timedelta(seconds=2)

    # Passwords
    password_hash_rounds: int = 10
    min_password_length: int = 6

    # Blocked-account responses
    support_email: str = "kinderkare@support.ac.in"

    # Background cleanup of expired session rows
    session_cleanup_interval: timedelta = timedelta(hours=1)

    developer_mode: bool = False

    def __init__(self) -> None:
        """Initialize and validate configuration."""
        self.validate_secret()

    @property
    def refresh_signing_key(self) -> str:
        """Key used to sign and verify refresh tokens."""
        return self.refresh_secret_key or self.secret_key

    def validate_secret(self) -> None:
        """
        Validate that the signing secrets are secure.

        In production mode, secrets must be at least 32 characters.
        In developer mode, any non-empty secret is allowed.

        Raises:
            ConfigurationError: if a secret is missing or too short
        """
        if not getattr(self, "secret_key", None):
            raise ConfigurationError(
                "secret_key must be set. Generate with: openssl rand -hex 32"
            )

        if self.developer_mode:
            return

        for name in ("secret_key", "refresh_secret_key"):
            value = getattr(self, name)
            if value is not None and len(value) < 32:
                raise ConfigurationError(
                    f"{name} must be at least 32 characters long. "
                    "Generate with: openssl rand -hex 32"
                )

    @abstractmethod
    async def send_otp(self, email: str, code: str, purpose: OTPPurpose) -> None:
        """
        Deliver an OTP code to the account's email address.

        Raise any exception to signal a failed attempt; the credential store
        retries up to ``otp_delivery_attempts`` times.

        Args:
            email: Recipient address
            code: OTP code to send
            purpose: Registration, resend or password reset
        """
        raise NotImplementedError("send_otp method must be implemented")

    def get_additional_claims(self, _account: Any) -> dict[str, Any]:  # noqa: ANN401
        """
        Get additional claims to include in access tokens.

        Override to add claims such as the username.

        Args:
            account: Account object

        Returns:
            Dictionary of additional claims
        """
        return {}
