"""Declarative mixins for account and session tables."""

from datetime import UTC, datetime
from typing import Generic

from sqlalchemy import Boolean, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, declared_attr, mapped_column  # type: ignore[import-untyped]

from babyblink_auth.db.sqlalchemy.types import UTCDateTime
from babyblink_auth.types import ID


def _utcnow() -> datetime:
    return datetime.now(UTC)


class BaseAccountTable(Generic[ID]):
    """
    Base class for account models.

    Generic type parameter ID allows for different primary key types (int, UUID, etc.).
    The concrete model declares ``id`` and ``blocked_by`` with the matching type.

    Example:
        ```python
        from sqlalchemy.orm import DeclarativeBase

        class Base(DeclarativeBase):
            pass

        class Account(BaseAccountTable[int], Base):
            __tablename__ = "accounts"

            id: Mapped[int] = mapped_column(Integer, primary_key=True)
            blocked_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
        ```
    """

    # Identity
    username: Mapped[str] = mapped_column(
        String(50), unique=True, index=True, nullable=False
    )
    email: Mapped[str] = mapped_column(
        String(255), unique=True, index=True, nullable=False
    )
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    # Profile
    full_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    phone_number: Mapped[str | None] = mapped_column(String(32), nullable=True)
    baby_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    baby_age: Mapped[int | None] = mapped_column(Integer, nullable=True)
    baby_gender: Mapped[str | None] = mapped_column(String(10), nullable=True)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Verification - code and expiry are set and cleared together
    is_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    otp_code: Mapped[str | None] = mapped_column(String(20), nullable=True)
    otp_expires_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    # Block state - is_blocked implies blocked_at
    is_blocked: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    block_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    blocked_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    is_admin: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Advisory counters
    login_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    profile_completeness: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=_utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=_utcnow, onupdate=_utcnow, nullable=False
    )


class BaseSessionTable(Generic[ID]):
    """
    Base class for login session models.

    One row per authenticated login on one device. The concrete model
    declares ``id`` and ``account_id``.

    Example:
        ```python
        class LoginSession(BaseSessionTable[int], Base):
            __tablename__ = "sessions"

            id: Mapped[int] = mapped_column(Integer, primary_key=True)
            account_id: Mapped[int] = mapped_column(
                ForeignKey("accounts.id", ondelete="CASCADE"), index=True
            )
        ```
    """

    session_token: Mapped[str] = mapped_column(
        String(1024), unique=True, index=True, nullable=False
    )
    refresh_token: Mapped[str] = mapped_column(
        String(1024), unique=True, index=True, nullable=False
    )

    # Device snapshot
    user_agent: Mapped[str | None] = mapped_column(String(512), nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(45), nullable=True)
    browser: Mapped[str] = mapped_column(String(20), default="Unknown", nullable=False)
    os: Mapped[str] = mapped_column(String(20), default="Unknown", nullable=False)
    device: Mapped[str] = mapped_column(String(20), default="Desktop", nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    last_activity: Mapped[datetime] = mapped_column(
        UTCDateTime, default=_utcnow, nullable=False
    )
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=_utcnow, nullable=False
    )

    @declared_attr.directive
    def __table_args__(cls) -> tuple[Index, ...]:  # noqa: N805
        return (Index(f"ix_{cls.__tablename__}_account_active", "account_id", "is_active"),)
