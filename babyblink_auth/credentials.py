"""Credential store: registration, OTP verification, login checks and block state."""

import asyncio
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from fastapi.concurrency import run_in_threadpool  # type: ignore[import-untyped]

from babyblink_auth.config import BabyBlinkAuthConfig, OTPPurpose
from babyblink_auth.db.protocols import AccountProtocol, AuthDatabase
from babyblink_auth.errors import (
    AccountBlocked,
    AccountNotFound,
    AlreadyBlocked,
    DeliveryFailure,
    DuplicateIdentity,
    InvalidCredential,
    InvalidOTP,
    InvalidRequest,
    NotBlocked,
    NotVerified,
    OTPExpired,
)
from babyblink_auth.logging import get_logger, mask_email
from babyblink_auth.security import (
    MAX_PASSWORD_BYTES,
    generate_otp,
    hash_password,
    otp_matches,
    verify_password,
)

logger = get_logger(__name__)

PROFILE_FIELDS = (
    "full_name",
    "phone_number",
    "baby_name",
    "baby_age",
    "baby_gender",
    "address",
)


@dataclass
class RegistrationCandidate:
    """Data submitted at registration."""

    username: str
    email: str
    password: str
    full_name: str | None = None
    phone_number: str | None = None
    baby_name: str | None = None
    baby_age: int | None = None
    baby_gender: str | None = None
    address: str | None = None

    def profile(self) -> dict[str, Any]:
        return {name: getattr(self, name) for name in PROFILE_FIELDS}


def compute_profile_completeness(values: dict[str, Any]) -> int:
    """Percentage of profile fields that are filled in."""
    filled = sum(1 for name in PROFILE_FIELDS if values.get(name) not in (None, ""))
    return round(100 * filled / len(PROFILE_FIELDS))


class CredentialStore:
    """
    Account-level operations backed by an ``AuthDatabase``.

    Password hashing runs in the threadpool so bcrypt never blocks the
    event loop.
    """

    def __init__(self, db: AuthDatabase[Any, Any], config: BabyBlinkAuthConfig) -> None:
        self.db = db
        self.config = config

    def _otp_fields(self) -> dict[str, Any]:
        return {
            "otp_code": generate_otp(self.config.otp_length, self.config.developer_mode),
            "otp_expires_at": datetime.now(UTC) + self.config.otp_expiry,
        }

    async def _hash(self, password: str) -> str:
        return await run_in_threadpool(
            hash_password, password, self.config.password_hash_rounds
        )

    def _check_password_policy(self, password: str) -> None:
        if len(password) < self.config.min_password_length:
            raise InvalidRequest(
                f"Password must be at least {self.config.min_password_length} "
                "characters long"
            )
        if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise InvalidRequest(f"Password must be at most {MAX_PASSWORD_BYTES} bytes long")

    async def deliver_otp(self, email: str, code: str, purpose: OTPPurpose) -> None:
        """
        Send an OTP through ``config.send_otp`` with bounded retries.

        Raises:
            DeliveryFailure: every attempt failed
        """
        attempts = max(1, self.config.otp_delivery_attempts)
        delay = self.config.otp_delivery_retry_delay.total_seconds()
        for attempt in range(1, attempts + 1):
            try:
                await self.config.send_otp(email, code, purpose)
            except Exception as e:
                logger.warning(
                    "otp_delivery_attempt_failed",
                    email=mask_email(email),
                    purpose=str(purpose),
                    attempt=attempt,
                    max_attempts=attempts,
                    error=str(e),
                )
                if attempt < attempts:
                    await asyncio.sleep(delay)
            else:
                logger.info(
                    "otp_delivered", email=mask_email(email), purpose=str(purpose)
                )
                return

        raise DeliveryFailure()

    # ------------------------------------------------------------------
    # Registration and verification
    # ------------------------------------------------------------------

    async def register(self, candidate: RegistrationCandidate) -> AccountProtocol:
        """
        Create an unverified account and send its OTP.

        If OTP delivery fails the just-created account is deleted again, so no
        unreachable unverified accounts accumulate.

        Args:
            candidate: Registration data

        Returns:
            The created (unverified) account

        Raises:
            DuplicateIdentity: username or email already registered
            InvalidRequest: password too short or too long
            DeliveryFailure: OTP email could not be sent
        """
        self._check_password_policy(candidate.password)

        if await self.db.get_account_by_email(candidate.email):
            raise DuplicateIdentity("Email already registered")
        if await self.db.get_account_by_username(candidate.username):
            raise DuplicateIdentity("Username already taken")

        otp = self._otp_fields()
        profile = candidate.profile()
        account = await self.db.create_account(
            username=candidate.username,
            email=candidate.email,
            password_hash=await self._hash(candidate.password),
            is_verified=False,
            profile_completeness=compute_profile_completeness(profile),
            **profile,
            **otp,
        )
        logger.info("account_registered", account_id=str(account.id), email=mask_email(account.email))

        try:
            await self.deliver_otp(account.email, otp["otp_code"], OTPPurpose.REGISTRATION)
        except DeliveryFailure:
            await self.db.delete_account(account)
            logger.warning(
                "registration_rolled_back",
                account_id=str(account.id),
                email=mask_email(account.email),
            )
            raise

        return account

    async def verify_otp(self, email: str, code: str) -> bool:
        """
        Consume a registration OTP.

        Returns:
            True if the account was verified now, False if it already was

        Raises:
            AccountNotFound: no account for the email
            InvalidOTP: code does not match the stored one
            OTPExpired: code matched but its expiry has passed
        """
        account = await self.db.get_account_by_email(email)
        if account is None:
            raise AccountNotFound()

        if account.is_verified:
            return False

        self._check_otp(account, code)

        await self.db.update_account(
            account, is_verified=True, otp_code=None, otp_expires_at=None
        )
        logger.info("account_verified", account_id=str(account.id))
        return True

    def _check_otp(self, account: AccountProtocol, code: str) -> None:
        if not otp_matches(account.otp_code, code):
            raise InvalidOTP()
        if account.otp_expires_at is None or account.otp_expires_at < datetime.now(UTC):
            raise OTPExpired()

    async def resend_otp(self, email: str) -> None:
        """
        Issue and deliver a fresh registration OTP.

        Raises:
            AccountNotFound: no account for the email
            InvalidRequest: account already verified
            DeliveryFailure: OTP email could not be sent
        """
        account = await self.db.get_account_by_email(email)
        if account is None:
            raise AccountNotFound()
        if account.is_verified:
            raise InvalidRequest("Email already verified")

        otp = self._otp_fields()
        await self.db.update_account(account, **otp)
        await self.deliver_otp(email, otp["otp_code"], OTPPurpose.RESEND)

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    async def authenticate(self, identifier: str, password: str) -> AccountProtocol:
        """
        Check login credentials.

        Block state and verification state are both checked before the
        password hash is compared, so neither response reveals whether the
        password was right.

        Args:
            identifier: Username or email
            password: Plain password

        Returns:
            The authenticated account

        Raises:
            AccountNotFound: no account matches the identifier
            AccountBlocked: account is blocked
            NotVerified: account has not completed OTP verification
            InvalidCredential: password does not match
        """
        if "@" in identifier:
            # Emails are stored lowercased
            identifier = identifier.lower()
        account = await self.db.get_account_by_identifier(identifier)
        if account is None:
            raise AccountNotFound()

        if account.is_blocked:
            logger.warning("blocked_login_rejected", account_id=str(account.id))
            raise AccountBlocked.for_account(account, self.config.support_email)

        if not account.is_verified:
            raise NotVerified(
                "Please verify your email first. Check your inbox for the "
                "verification code.",
                email=account.email,
            )

        matches = await run_in_threadpool(verify_password, password, account.password_hash)
        if not matches:
            raise InvalidCredential()

        await self.db.increment_login_count(account)
        return account

    # ------------------------------------------------------------------
    # Block state
    # ------------------------------------------------------------------

    async def require_account(self, account_id: Any) -> AccountProtocol:  # noqa: ANN401
        account = await self.db.get_account_by_id(account_id)
        if account is None:
            raise AccountNotFound()
        return account

    async def set_blocked(
        self, account_id: Any, reason: str | None, admin_id: Any  # noqa: ANN401
    ) -> AccountProtocol:
        """
        Put an account into the blocked state.

        Raises:
            AccountNotFound: no such account
            AlreadyBlocked: account is already blocked
        """
        account = await self.require_account(account_id)
        changed = await self.db.set_block_state(
            account,
            True,
            block_reason=reason,
            blocked_at=datetime.now(UTC),
            blocked_by=admin_id,
        )
        if not changed:
            raise AlreadyBlocked()
        return account

    async def set_unblocked(self, account_id: Any) -> AccountProtocol:  # noqa: ANN401
        """
        Clear the blocked state together with reason, timestamp and actor.

        Raises:
            AccountNotFound: no such account
            NotBlocked: account is not blocked
        """
        account = await self.require_account(account_id)
        changed = await self.db.set_block_state(
            account, False, block_reason=None, blocked_at=None, blocked_by=None
        )
        if not changed:
            raise NotBlocked()
        return account

    # ------------------------------------------------------------------
    # Password reset and profile
    # ------------------------------------------------------------------

    async def request_password_reset(self, email: str) -> None:
        """
        Send a password-reset OTP.

        Raises:
            AccountNotFound: no account for the email
            DeliveryFailure: OTP email could not be sent
        """
        account = await self.db.get_account_by_email(email)
        if account is None:
            raise AccountNotFound("No account found with this email address")

        otp = self._otp_fields()
        await self.db.update_account(account, **otp)
        await self.deliver_otp(email, otp["otp_code"], OTPPurpose.PASSWORD_RESET)

    async def reset_password(self, email: str, code: str, new_password: str) -> AccountProtocol:
        """
        Replace the password after checking a reset OTP.

        The caller is responsible for invalidating existing sessions.

        Raises:
            AccountNotFound: no account for the email
            InvalidRequest: new password too short or too long
            InvalidOTP: code does not match
            OTPExpired: code has expired
        """
        self._check_password_policy(new_password)
        account = await self.db.get_account_by_email(email)
        if account is None:
            raise AccountNotFound()

        self._check_otp(account, code)

        await self.db.update_account(
            account,
            password_hash=await self._hash(new_password),
            otp_code=None,
            otp_expires_at=None,
        )
        logger.info("password_reset", account_id=str(account.id))
        return account

    async def update_profile(
        self, account: AccountProtocol, changes: dict[str, Any]
    ) -> AccountProtocol:
        """Apply profile-only changes and refresh ``profile_completeness``."""
        updates = {name: value for name, value in changes.items() if name in PROFILE_FIELDS}
        merged = {name: getattr(account, name, None) for name in PROFILE_FIELDS}
        merged.update(updates)
        await self.db.update_account(
            account,
            **updates,
            profile_completeness=compute_profile_completeness(merged),
        )
        return account
