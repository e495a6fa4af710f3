"""Test configuration and fixtures."""

from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

import pytest
from sqlalchemy import ForeignKey, Integer
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from babyblink_auth.config import BabyBlinkAuthConfig, OTPPurpose
from babyblink_auth.db.sqlalchemy.adapter import SQLAlchemyAdapter
from babyblink_auth.db.sqlalchemy.models import BaseAccountTable, BaseSessionTable
from babyblink_auth.device import parse_device_info
from babyblink_auth.security import hash_password

TEST_PASSWORD = "secret1"
CHROME_WINDOWS_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

# ============================================================================
# Database Models for Testing
# ============================================================================


class Base(DeclarativeBase):
    """Base class for test database models."""


class Account(BaseAccountTable[int], Base):
    """Test account model."""

    __tablename__ = "accounts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    blocked_by: Mapped[int | None] = mapped_column(Integer, nullable=True)


class LoginSession(BaseSessionTable[int], Base):
    """Test session model."""

    __tablename__ = "sessions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    account_id: Mapped[int] = mapped_column(
        ForeignKey("accounts.id", ondelete="CASCADE"), index=True
    )


# ============================================================================
# Test Configuration
# ============================================================================


class MockAuthConfig(BabyBlinkAuthConfig):
    """Auth configuration that records OTPs instead of emailing them."""

    secret_key = "test-secret-key-minimum-32-chars-long"
    refresh_secret_key = "test-refresh-secret-key-minimum-32-chars"
    access_token_lifetime = timedelta(hours=1)
    refresh_token_lifetime = timedelta(days=7)
    session_lifetime = timedelta(days=7)
    otp_delivery_retry_delay = timedelta(0)
    password_hash_rounds = 4
    support_email = "support@babyblink.test"
    developer_mode = True  # For testing

    def __init__(self) -> None:
        """Initialize test config."""
        self.sent_otps: list[tuple[str, str, OTPPurpose]] = []
        self.failures_remaining = 0
        self.delivery_attempts = 0
        super().__init__()

    async def send_otp(self, email: str, code: str, purpose: OTPPurpose) -> None:
        """Store sent OTPs; fail while ``failures_remaining`` is positive."""
        self.delivery_attempts += 1
        if self.failures_remaining > 0:
            self.failures_remaining -= 1
            raise ConnectionError("SMTP server unavailable")
        self.sent_otps.append((email, code, purpose))


# ============================================================================
# Basic Fixtures
# ============================================================================


@pytest.fixture
def test_config() -> MockAuthConfig:
    """Provide a test configuration."""
    return MockAuthConfig()


@pytest.fixture
def current_time() -> datetime:
    """Provide current UTC time."""
    return datetime.now(UTC)


@pytest.fixture
def desktop_device():  # type: ignore[no-untyped-def]
    """Device snapshot of a Chrome on Windows login."""
    return parse_device_info(CHROME_WINDOWS_UA, "203.0.113.7")


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
async def async_engine():  # type: ignore[no-untyped-def]
    """Create an async SQLite engine for testing."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def file_engine(tmp_path: Path):  # type: ignore[no-untyped-def]
    """SQLite file database that several connections can share in race tests."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'race.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def async_session(async_engine) -> AsyncSession:  # type: ignore[no-untyped-def]
    """Create an async database session."""
    async_session_maker = async_sessionmaker(
        async_engine, class_=AsyncSession, expire_on_commit=False
    )
    async with async_session_maker() as session:
        yield session


@pytest.fixture
async def auth_db(async_session: AsyncSession) -> SQLAlchemyAdapter[Account, LoginSession]:
    """Create a SQLAlchemyAdapter instance."""
    return SQLAlchemyAdapter(async_session, Account, LoginSession)


async def make_account(
    db: SQLAlchemyAdapter[Account, LoginSession],
    username: str,
    *,
    password: str = TEST_PASSWORD,
    verified: bool = True,
    **fields: Any,  # noqa: ANN401
) -> Account:
    """Insert an account directly, bypassing registration."""
    return await db.create_account(
        username=username,
        email=f"{username}@x.com",
        password_hash=hash_password(password, 4),
        is_verified=verified,
        **fields,
    )


@pytest.fixture
async def alice(auth_db: SQLAlchemyAdapter[Account, LoginSession]) -> Account:
    """A verified regular account."""
    return await make_account(auth_db, "alice", full_name="Alice Parent", baby_name="Mia")


@pytest.fixture
async def admin(auth_db: SQLAlchemyAdapter[Account, LoginSession]) -> Account:
    """A verified administrator account."""
    return await make_account(auth_db, "admin", is_admin=True)


@pytest.fixture
async def unverified(auth_db: SQLAlchemyAdapter[Account, LoginSession]) -> Account:
    """An account that never completed OTP verification."""
    return await make_account(
        auth_db,
        "pending",
        verified=False,
        otp_code="000000",
        otp_expires_at=datetime.now(UTC) + timedelta(minutes=15),
    )
