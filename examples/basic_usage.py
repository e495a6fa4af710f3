"""Example BabyBlink application backed by SQLite.

This example demonstrates:
- Declaring account and session tables from BaseAccountTable / BaseSessionTable
- Creating the database session and SQLAlchemyAdapter dependency
- Configuring authentication with a custom send_otp implementation
- Building the app with create_app and running the expired-session reaper
- Gating an application route with the access gate dependency
"""
from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import asynccontextmanager
from datetime import timedelta

from fastapi import Depends
from sqlalchemy import ForeignKey, Integer
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from babyblink_auth import (
    AuthContext,
    BabyBlinkAuthConfig,
    BaseAccountTable,
    BaseSessionTable,
    OTPPurpose,
    SQLAlchemyAdapter,
    create_app,
    get_auth_dependency,
)

DATABASE_URL = "sqlite+aiosqlite:///./babyblink.db"


class Base(DeclarativeBase):
    pass


class Account(BaseAccountTable[int], Base):
    __tablename__ = "accounts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    blocked_by: Mapped[int | None] = mapped_column(Integer, nullable=True)


class LoginSession(BaseSessionTable[int], Base):
    __tablename__ = "sessions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    account_id: Mapped[int] = mapped_column(
        ForeignKey("accounts.id", ondelete="CASCADE"), index=True
    )


engine = create_async_engine(DATABASE_URL)
# Adapters keep using rows after commit
async_session_maker = async_sessionmaker(engine, expire_on_commit=False)


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_maker() as session:
        yield session


async def get_auth_db(
    session: AsyncSession = Depends(get_async_session),
) -> SQLAlchemyAdapter[Account, LoginSession]:
    """Dependency to get the auth database adapter."""
    return SQLAlchemyAdapter(session, Account, LoginSession)


@asynccontextmanager
async def open_auth_db() -> AsyncIterator[SQLAlchemyAdapter[Account, LoginSession]]:
    """Adapter for work outside a request, such as the session reaper."""
    async with async_session_maker() as session:
        yield SQLAlchemyAdapter(session, Account, LoginSession)


class MyAuthConfig(BabyBlinkAuthConfig):
    secret_key = "your-secret-key-min-32-chars-long-generate-with-openssl"
    refresh_secret_key = "another-secret-key-min-32-chars-long-for-refresh"
    support_email = "support@babyblink.example"
    developer_mode = True  # Set to False in production!

    access_token_lifetime = timedelta(days=7)
    session_cleanup_interval = timedelta(minutes=30)

    async def send_otp(self, email: str, code: str, purpose: OTPPurpose) -> None:
        """
        Send the OTP to the account's email.

        In production, implement actual email sending here.
        """
        print(f"\nSending {purpose} code to {email}: {code}\n")


async def create_tables() -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


config = MyAuthConfig()
app = create_app(
    config,
    get_auth_db,
    enable_reaper=True,
    reaper_db=open_auth_db,
    on_startup=[create_tables],
)
current_account = Depends(get_auth_dependency(get_auth_db, config))


@app.get("/nursery/status")
async def nursery_status(ctx: AuthContext = current_account) -> dict[str, str | None]:
    """Application route behind the access gate."""
    return {
        "parent": ctx.account.username,
        "baby": ctx.account.baby_name,
        "device": ctx.session.device,
    }


if __name__ == "__main__":
    import uvicorn

    print("""
    Starting BabyBlink Auth example

    1. Register:
       POST http://localhost:8000/auth/register
       {"username": "alice", "email": "alice@example.com", "password": "secret1"}

    2. Verify (developer mode code is 000000):
       POST http://localhost:8000/auth/verify-otp
       {"email": "alice@example.com", "otp": "000000"}

    3. Login and copy sessionToken:
       POST http://localhost:8000/auth/login
       {"username": "alice", "password": "secret1"}

    4. Call GET /user/dashboard or /nursery/status with
       "Authorization: Bearer <sessionToken>"

    API Docs: http://localhost:8000/docs
    """)

    uvicorn.run(app, host="0.0.0.0", port=8000)
