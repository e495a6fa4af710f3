"""OTP generation, password hashing and JWT token issuing/verification."""

import secrets
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from enum import StrEnum
from typing import Any

import bcrypt
from jose import ExpiredSignatureError, JWTError, jwt  # type: ignore[import-untyped]

from babyblink_auth.config import BabyBlinkAuthConfig
from babyblink_auth.errors import TokenExpired, TokenInvalidSignature, TokenMalformed

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"

# bcrypt rejects longer input
MAX_PASSWORD_BYTES = 72


def generate_otp(length: int, developer_mode: bool) -> str:
    """
    Generate a cryptographically secure numeric OTP code.

    In developer mode, returns a code consisting of zeros for easy testing.

    Example:
        >>> generate_otp(6, True)
        '000000'
    """
    if developer_mode:
        return "0" * length

    return "".join(str(secrets.randbelow(10)) for _ in range(length))


def otp_matches(stored_code: str | None, input_code: str) -> bool:
    """Constant-time comparison of a stored OTP against user input."""
    if not stored_code:
        return False
    return secrets.compare_digest(stored_code, input_code)


def hash_password(password: str, rounds: int) -> str:
    """Hash a password with bcrypt using the given cost factor."""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode(
        "utf-8"
    )


def verify_password(password: str, password_hash: str) -> bool:
    """Check a plain password against a bcrypt hash."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Stored value is not a bcrypt hash
        return False


# ============================================================================
# Token issuing
# ============================================================================


@dataclass(frozen=True)
class TokenPair:
    """Access/refresh token pair minted for one session."""

    access_token: str
    refresh_token: str
    access_ttl: int
    """Access token lifetime in seconds."""


def create_access_token(
    account_id: Any,  # noqa: ANN401
    additional_claims: dict[str, Any],
    secret_key: str,
    algorithm: str,
    lifetime: timedelta,
) -> str:
    """
    Create a JWT access token.

    The ``jti`` claim is a fresh uuid so two tokens issued in the same second
    for the same account never collide.

    Args:
        account_id: Account identifier
        additional_claims: Additional claims to include in token
        secret_key: Secret key for signing token
        algorithm: JWT algorithm (e.g., 'HS256')
        lifetime: Token lifetime

    Returns:
        Encoded JWT token string
    """
    now = datetime.now(UTC)
    claims = {
        **additional_claims,
        "sub": str(account_id),
        "type": ACCESS_TOKEN_TYPE,
        "jti": str(uuid.uuid4()),
        "iat": now,
        "exp": now + lifetime,
    }
    return jwt.encode(claims, secret_key, algorithm=algorithm)


def create_refresh_token(
    account_id: Any,  # noqa: ANN401
    secret_key: str,
    algorithm: str,
    lifetime: timedelta,
) -> str:
    """
    Create a JWT refresh token.

    Args:
        account_id: Account identifier
        secret_key: Secret key for signing token
        algorithm: JWT algorithm (e.g., 'HS256')
        lifetime: Token lifetime

    Returns:
        Encoded JWT token string
    """
    now = datetime.now(UTC)
    claims = {
        "sub": str(account_id),
        "type": REFRESH_TOKEN_TYPE,
        "jti": str(uuid.uuid4()),
        "iat": now,
        "exp": now + lifetime,
    }
    return jwt.encode(claims, secret_key, algorithm=algorithm)


def issue_token_pair(
    account_id: Any,  # noqa: ANN401
    config: BabyBlinkAuthConfig,
    additional_claims: dict[str, Any] | None = None,
) -> TokenPair:
    """
    Mint a new access/refresh pair for an account.

    Stateless: no session lookup happens here.

    Args:
        account_id: Account identifier
        config: Auth configuration supplying keys and lifetimes
        additional_claims: Extra claims for the access token

    Returns:
        TokenPair with both tokens and the access lifetime in seconds
    """
    access_token = create_access_token(
        account_id=account_id,
        additional_claims=additional_claims or {},
        secret_key=config.secret_key,
        algorithm=config.algorithm,
        lifetime=config.access_token_lifetime,
    )
    refresh_token = create_refresh_token(
        account_id=account_id,
        secret_key=config.refresh_signing_key,
        algorithm=config.algorithm,
        lifetime=config.refresh_token_lifetime,
    )
    return TokenPair(
        access_token=access_token,
        refresh_token=refresh_token,
        access_ttl=int(config.access_token_lifetime.total_seconds()),
    )


# ============================================================================
# Token verification
# ============================================================================


class TokenStatus(StrEnum):
    """Outcome of verifying a token."""

    VALID = "valid"
    EXPIRED = "expired"
    INVALID_SIGNATURE = "invalid_signature"
    MALFORMED = "malformed"


@dataclass(frozen=True)
class TokenCheck:
    """Tagged result of ``verify_token``."""

    status: TokenStatus
    claims: dict[str, Any] = field(default_factory=dict)
    detail: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is TokenStatus.VALID

    @property
    def subject(self) -> str | None:
        return self.claims.get("sub")

    def raise_for_status(self) -> dict[str, Any]:
        """
        Return the claims of a valid token or raise the matching error.

        Raises:
            TokenExpired: token lifetime has passed
            TokenInvalidSignature: signature or claims rejected
            TokenMalformed: not a decodable JWT
        """
        if self.status is TokenStatus.VALID:
            return self.claims
        if self.status is TokenStatus.EXPIRED:
            raise TokenExpired()
        if self.status is TokenStatus.INVALID_SIGNATURE:
            raise TokenInvalidSignature()
        raise TokenMalformed()


def verify_token(
    token: str,
    secret_key: str,
    algorithm: str,
    expected_type: str,
) -> TokenCheck:
    """
    Verify a JWT and classify the outcome.

    A token that cannot be parsed at all is ``MALFORMED``. A parseable token
    whose signature does not verify is ``INVALID_SIGNATURE``. A token with a
    good signature whose ``exp`` has passed is ``EXPIRED``. A well-signed token
    of the wrong ``type`` or without a subject is ``MALFORMED``.

    Args:
        token: Encoded JWT
        secret_key: Key to verify the signature with
        algorithm: Expected JWT algorithm
        expected_type: ``"access"`` or ``"refresh"``

    Returns:
        TokenCheck describing the result
    """
    try:
        jwt.get_unverified_header(token)
        jwt.get_unverified_claims(token)
    except JWTError as e:
        return TokenCheck(TokenStatus.MALFORMED, detail=str(e))

    try:
        claims = jwt.decode(
            token,
            secret_key,
            algorithms=[algorithm],
            options={
                "verify_signature": True,
                "verify_exp": True,
                "require_exp": True,
                "require_iat": True,
            },
        )
    except ExpiredSignatureError as e:
        return TokenCheck(TokenStatus.EXPIRED, detail=str(e))
    except JWTError as e:
        return TokenCheck(TokenStatus.INVALID_SIGNATURE, detail=str(e))

    if claims.get("type") != expected_type:
        return TokenCheck(TokenStatus.MALFORMED, detail="Invalid token type")
    if not claims.get("sub"):
        return TokenCheck(TokenStatus.MALFORMED, detail="Token missing subject claim")

    return TokenCheck(TokenStatus.VALID, claims=claims)
