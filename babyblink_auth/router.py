"""API router for registration, login and session management endpoints."""

from collections.abc import Callable
from typing import Any

from fastapi import APIRouter, Depends, Request, status  # type: ignore[import-untyped]

from babyblink_auth.config import BabyBlinkAuthConfig
from babyblink_auth.credentials import CredentialStore, RegistrationCandidate
from babyblink_auth.db.protocols import AuthDatabase
from babyblink_auth.dependencies import AuthContext, get_auth_dependency
from babyblink_auth.device import device_from_request
from babyblink_auth.errors import SessionNotFound
from babyblink_auth.logging import get_logger, mask_email
from babyblink_auth.schemas import (
    AccountSummary,
    EmailRequest,
    LoginRequest,
    MessageResponse,
    OTPVerify,
    RefreshRequest,
    RegisterRequest,
    RegisterResponse,
    ResetPasswordRequest,
    SessionInfo,
    SessionListResponse,
    SessionTokenResponse,
)
from babyblink_auth.sessions import IssuedSession, SessionRegistry

logger = get_logger(__name__)


def _token_response(
    message: str, issued: IssuedSession, account: Any  # noqa: ANN401
) -> SessionTokenResponse:
    return SessionTokenResponse(
        message=message,
        session_token=issued.tokens.access_token,
        refresh_token=issued.tokens.refresh_token,
        expires_in=issued.tokens.access_ttl,
        session_id=str(issued.session.id),
        user=AccountSummary.from_account(account),
    )


def get_auth_router(
    get_db: Callable[..., Any],
    config: BabyBlinkAuthConfig,
) -> APIRouter:
    """
    Create an APIRouter with registration, login and session endpoints.

    Args:
        get_db: Dependency callable returning an AuthDatabase
        config: Auth configuration

    Returns:
        Configured APIRouter instance

    Example:
        ```python
        app.include_router(get_auth_router(get_auth_db, config), prefix="/auth")
        ```
    """
    router = APIRouter()
    require_auth = get_auth_dependency(get_db, config)

    @router.post(
        "/register",
        response_model=RegisterResponse,
        status_code=status.HTTP_201_CREATED,
        summary="Register account",
        description="Create an unverified account and email its OTP code",
    )
    async def register(
        body: RegisterRequest,
        db: AuthDatabase[Any, Any] = Depends(get_db),
    ) -> RegisterResponse:
        """
        Register a new account.

        Raises:
            DuplicateIdentity: username or email already registered
            DeliveryFailure: OTP email could not be sent; account rolled back
        """
        account = await CredentialStore(db, config).register(
            RegistrationCandidate(
                username=body.username.strip(),
                email=str(body.email).lower(),
                password=body.password,
                full_name=body.full_name,
                phone_number=body.phone_number,
                baby_name=body.baby_name,
                baby_age=body.baby_age,
                baby_gender=body.baby_gender,
                address=body.address,
            )
        )
        return RegisterResponse(
            message=(
                "Registration successful! Please check your email for the "
                "verification code."
            ),
            email=account.email,
        )

    @router.post("/verify-otp", response_model=MessageResponse, summary="Verify OTP code")
    async def verify_otp(
        body: OTPVerify,
        db: AuthDatabase[Any, Any] = Depends(get_db),
    ) -> MessageResponse:
        verified_now = await CredentialStore(db, config).verify_otp(
            str(body.email).lower(), body.otp
        )
        if not verified_now:
            return MessageResponse(message="Email already verified")
        return MessageResponse(message="Email verified successfully! You can now login.")

    @router.post("/resend-otp", response_model=MessageResponse, summary="Resend OTP code")
    async def resend_otp(
        body: EmailRequest,
        db: AuthDatabase[Any, Any] = Depends(get_db),
    ) -> MessageResponse:
        await CredentialStore(db, config).resend_otp(str(body.email).lower())
        return MessageResponse(message="New verification code sent to your email!")

    @router.post(
        "/login",
        response_model=SessionTokenResponse,
        summary="Login",
        description="Authenticate with username or email and open a new session",
    )
    async def login(
        body: LoginRequest,
        request: Request,
        db: AuthDatabase[Any, Any] = Depends(get_db),
    ) -> SessionTokenResponse:
        """
        Authenticate and create a session bound to the calling device.

        Raises:
            AccountNotFound, AccountBlocked, NotVerified, InvalidCredential
        """
        identifier = body.username.strip()
        account = await CredentialStore(db, config).authenticate(identifier, body.password)
        issued = await SessionRegistry(db, config).create(
            account.id,
            device_from_request(request),
            config.get_additional_claims(account),
        )
        logger.info(
            "login_succeeded",
            account_id=str(account.id),
            email=mask_email(account.email),
        )
        return _token_response("Login successful", issued, account)

    @router.post(
        "/refresh-session",
        response_model=SessionTokenResponse,
        summary="Refresh session",
        description="Rotate the token pair of an existing session",
    )
    async def refresh_session(
        body: RefreshRequest,
        db: AuthDatabase[Any, Any] = Depends(get_db),
    ) -> SessionTokenResponse:
        """
        Exchange a refresh token for a new token pair on the same session.

        Raises:
            TokenExpired, TokenInvalidSignature, TokenMalformed: bad refresh token
            SessionNotFound: token already rotated or session inactive/expired
        """
        issued = await SessionRegistry(db, config).refresh(body.refresh_token)
        account = await db.get_account_by_id(issued.session.account_id)
        if account is None:
            raise SessionNotFound("Session not found")
        return _token_response("Session refreshed successfully", issued, account)

    @router.post("/logout", response_model=MessageResponse, summary="Logout this device")
    async def logout(
        ctx: AuthContext = Depends(require_auth),
        db: AuthDatabase[Any, Any] = Depends(get_db),
    ) -> MessageResponse:
        await SessionRegistry(db, config).invalidate(ctx.session.id)
        return MessageResponse(message="Logged out successfully")

    @router.post("/logout-all", response_model=MessageResponse, summary="Logout all devices")
    async def logout_all(
        ctx: AuthContext = Depends(require_auth),
        db: AuthDatabase[Any, Any] = Depends(get_db),
    ) -> MessageResponse:
        await SessionRegistry(db, config).invalidate_all_for_account(ctx.account.id)
        return MessageResponse(message="Logged out from all devices successfully")

    @router.get(
        "/sessions",
        response_model=SessionListResponse,
        summary="List active sessions",
        description="Active sessions of the current account; the calling one is flagged",
    )
    async def list_sessions(
        ctx: AuthContext = Depends(require_auth),
        db: AuthDatabase[Any, Any] = Depends(get_db),
    ) -> SessionListResponse:
        sessions = await SessionRegistry(db, config).list_active(ctx.account.id)
        items = [SessionInfo.from_session(s, current_id=ctx.session.id) for s in sessions]
        return SessionListResponse(sessions=items, total=len(items))

    @router.delete(
        "/sessions/{session_id}",
        response_model=MessageResponse,
        summary="Revoke one session",
    )
    async def revoke_session(
        session_id: str,
        ctx: AuthContext = Depends(require_auth),
        db: AuthDatabase[Any, Any] = Depends(get_db),
    ) -> MessageResponse:
        """
        Sign out one of the current account's other devices.

        Raises:
            SessionNotFound: no such session owned by the caller
        """
        owned = {
            str(s.id): s for s in await SessionRegistry(db, config).list_active(ctx.account.id)
        }
        target = owned.get(session_id)
        if target is None:
            raise SessionNotFound("Session not found")
        await SessionRegistry(db, config).invalidate(target.id)
        return MessageResponse(message="Session revoked")

    @router.post(
        "/forgot-password",
        response_model=MessageResponse,
        summary="Request password reset code",
    )
    async def forgot_password(
        body: EmailRequest,
        db: AuthDatabase[Any, Any] = Depends(get_db),
    ) -> MessageResponse:
        await CredentialStore(db, config).request_password_reset(str(body.email).lower())
        return MessageResponse(
            message="Password reset code sent to your email. Please check your inbox."
        )

    @router.post(
        "/reset-password",
        response_model=MessageResponse,
        summary="Reset password with OTP",
        description="Set a new password and sign out every existing session",
    )
    async def reset_password(
        body: ResetPasswordRequest,
        db: AuthDatabase[Any, Any] = Depends(get_db),
    ) -> MessageResponse:
        account = await CredentialStore(db, config).reset_password(
            str(body.email).lower(), body.otp, body.new_password
        )
        await SessionRegistry(db, config).invalidate_all_for_account(account.id)
        return MessageResponse(
            message="Password reset successful! You can now login with your new password."
        )

    return router
