"""Pydantic schemas for request/response models."""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, EmailStr, Field  # type: ignore[import-untyped]

BabyGender = Literal["Male", "Female", "Other"]


class RegisterRequest(BaseModel):
    """Request schema for account registration."""

    username: str = Field(..., min_length=1, max_length=50)
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=72)
    full_name: str | None = Field(default=None, alias="fullName", max_length=100)
    phone_number: str | None = Field(default=None, alias="phoneNumber", max_length=32)
    baby_name: str | None = Field(default=None, alias="babyName", max_length=100)
    baby_age: int | None = Field(default=None, alias="babyAge", ge=0)
    baby_gender: BabyGender | None = Field(default=None, alias="babyGender")
    address: str | None = None

    model_config = ConfigDict(populate_by_name=True)


class OTPVerify(BaseModel):
    """Request schema for OTP verification."""

    email: EmailStr
    otp: str = Field(..., min_length=4, max_length=10, description="OTP code to verify")


class EmailRequest(BaseModel):
    """Request schema for OTP resend and password reset requests."""

    email: EmailStr


class LoginRequest(BaseModel):
    """Username or email plus password."""

    username: str = Field(..., min_length=1, description="Username or email")
    password: str = Field(..., min_length=1)


class RefreshRequest(BaseModel):
    refresh_token: str = Field(..., alias="refreshToken", min_length=1)

    model_config = ConfigDict(populate_by_name=True)


class ResetPasswordRequest(BaseModel):
    email: EmailStr
    otp: str = Field(..., min_length=4, max_length=10)
    new_password: str = Field(..., alias="newPassword", min_length=1, max_length=72)

    model_config = ConfigDict(populate_by_name=True)


class BlockUserRequest(BaseModel):
    user_id: str = Field(..., alias="userId")
    reason: str | None = Field(default=None, max_length=500)

    model_config = ConfigDict(populate_by_name=True)


class UnblockUserRequest(BaseModel):
    user_id: str = Field(..., alias="userId")

    model_config = ConfigDict(populate_by_name=True)


class ProfileUpdate(BaseModel):
    """Writable profile fields. Credentials and block state are not accepted."""

    full_name: str | None = Field(default=None, alias="fullName", max_length=100)
    phone_number: str | None = Field(default=None, alias="phoneNumber", max_length=32)
    baby_name: str | None = Field(default=None, alias="babyName", max_length=100)
    baby_age: int | None = Field(default=None, alias="babyAge", ge=0)
    baby_gender: BabyGender | None = Field(default=None, alias="babyGender")
    address: str | None = None

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


# ============================================================================
# Responses
# ============================================================================


class CamelModel(BaseModel):
    """Response base serialising with camelCase aliases."""

    model_config = ConfigDict(populate_by_name=True, from_attributes=True)


class MessageResponse(CamelModel):
    success: bool = True
    message: str


class RegisterResponse(MessageResponse):
    email: str


class AccountSummary(CamelModel):
    id: str
    username: str
    email: str
    full_name: str | None = Field(default=None, serialization_alias="fullName")
    baby_name: str | None = Field(default=None, serialization_alias="babyName")
    baby_age: int | None = Field(default=None, serialization_alias="babyAge")
    baby_gender: str | None = Field(default=None, serialization_alias="babyGender")

    @classmethod
    def from_account(cls, account: Any) -> "AccountSummary":  # noqa: ANN401
        return cls(
            id=str(account.id),
            username=account.username,
            email=account.email,
            full_name=account.full_name,
            baby_name=account.baby_name,
            baby_age=account.baby_age,
            baby_gender=account.baby_gender,
        )


class SessionTokenResponse(CamelModel):
    """Token pair returned by login and refresh."""

    success: bool = True
    message: str
    session_token: str = Field(serialization_alias="sessionToken")
    refresh_token: str = Field(serialization_alias="refreshToken")
    token_type: str = Field(default="bearer", serialization_alias="tokenType")
    expires_in: int = Field(serialization_alias="expiresIn")
    session_id: str = Field(serialization_alias="sessionId")
    user: AccountSummary


class DeviceInfoResponse(CamelModel):
    user_agent: str | None = Field(default=None, serialization_alias="userAgent")
    ip: str | None = None
    browser: str
    os: str
    device: str


class SessionInfo(CamelModel):
    id: str
    device_info: DeviceInfoResponse = Field(serialization_alias="deviceInfo")
    last_activity: datetime = Field(serialization_alias="lastActivity")
    created_at: datetime = Field(serialization_alias="createdAt")
    expires_at: datetime = Field(serialization_alias="expiresAt")
    is_current: bool = Field(default=False, serialization_alias="isCurrent")

    @classmethod
    def from_session(cls, session: Any, current_id: Any = None) -> "SessionInfo":  # noqa: ANN401
        return cls(
            id=str(session.id),
            device_info=DeviceInfoResponse(
                user_agent=session.user_agent,
                ip=session.ip_address,
                browser=session.browser,
                os=session.os,
                device=session.device,
            ),
            last_activity=session.last_activity,
            created_at=session.created_at,
            expires_at=session.expires_at,
            is_current=current_id is not None and str(session.id) == str(current_id),
        )


class SessionListResponse(CamelModel):
    success: bool = True
    sessions: list[SessionInfo]
    total: int


class BlockStatusResponse(CamelModel):
    success: bool = True
    message: str
    user_id: str = Field(serialization_alias="userId")
    is_blocked: bool = Field(serialization_alias="isBlocked")
    block_reason: str | None = Field(default=None, serialization_alias="blockReason")
    blocked_at: datetime | None = Field(default=None, serialization_alias="blockedAt")
    sessions_invalidated: int = Field(default=0, serialization_alias="sessionsInvalidated")


class UserProfile(CamelModel):
    id: str
    username: str
    email: str
    full_name: str | None = Field(default=None, serialization_alias="fullName")
    phone_number: str | None = Field(default=None, serialization_alias="phoneNumber")
    baby_name: str | None = Field(default=None, serialization_alias="babyName")
    baby_age: int | None = Field(default=None, serialization_alias="babyAge")
    baby_gender: str | None = Field(default=None, serialization_alias="babyGender")
    address: str | None = None
    is_verified: bool = Field(serialization_alias="isVerified")
    profile_completeness: int = Field(serialization_alias="profileCompleteness")
    login_count: int = Field(serialization_alias="loginCount")
    created_at: datetime | None = Field(default=None, serialization_alias="createdAt")
    updated_at: datetime | None = Field(default=None, serialization_alias="updatedAt")

    @classmethod
    def from_account(cls, account: Any) -> "UserProfile":  # noqa: ANN401
        return cls(
            id=str(account.id),
            username=account.username,
            email=account.email,
            full_name=account.full_name,
            phone_number=account.phone_number,
            baby_name=account.baby_name,
            baby_age=account.baby_age,
            baby_gender=account.baby_gender,
            address=account.address,
            is_verified=account.is_verified,
            profile_completeness=account.profile_completeness,
            login_count=account.login_count,
            created_at=getattr(account, "created_at", None),
            updated_at=getattr(account, "updated_at", None),
        )


class ProfileResponse(CamelModel):
    success: bool = True
    message: str | None = None
    user: UserProfile


class DashboardData(CamelModel):
    message: str
    baby_info: dict[str, Any] = Field(serialization_alias="babyInfo")
    user_stats: dict[str, Any] = Field(serialization_alias="userStats")


class DashboardResponse(CamelModel):
    success: bool = True
    data: DashboardData
