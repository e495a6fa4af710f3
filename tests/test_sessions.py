"""Tests for the session registry and the background reaper."""

import asyncio
from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from babyblink_auth.db.sqlalchemy.adapter import SQLAlchemyAdapter
from babyblink_auth.device import DeviceInfo
from babyblink_auth.errors import (
    AccountBlocked,
    SessionExpired,
    SessionNotFound,
    TokenExpired,
    TokenInvalidSignature,
    TokenMalformed,
)
from babyblink_auth.security import create_refresh_token
from babyblink_auth.sessions import SessionReaper, SessionRegistry, is_session_usable
from tests.conftest import Account, LoginSession, MockAuthConfig, make_account

Adapter = SQLAlchemyAdapter[Account, LoginSession]


@pytest.fixture
def registry(auth_db: Adapter, test_config: MockAuthConfig) -> SessionRegistry:
    return SessionRegistry(auth_db, test_config)


# ============================================================================
# Create / resolve
# ============================================================================


class TestCreate:
    """Test suite for session creation."""

    async def test_create_persists_active_session(
        self, registry: SessionRegistry, alice: Account, desktop_device: DeviceInfo
    ) -> None:
        issued = await registry.create(alice.id, desktop_device)
        session = issued.session

        assert session.account_id == alice.id
        assert session.is_active is True
        assert session.session_token == issued.tokens.access_token
        assert session.refresh_token == issued.tokens.refresh_token
        assert session.browser == "Chrome"
        assert session.os == "Windows"
        assert session.device == "Desktop"
        assert session.ip_address == "203.0.113.7"

    async def test_expiry_is_session_lifetime(
        self, registry: SessionRegistry, alice: Account, desktop_device: DeviceInfo
    ) -> None:
        before = datetime.now(UTC)
        issued = await registry.create(alice.id, desktop_device)

        lifetime = issued.session.expires_at - before
        assert timedelta(days=7) - timedelta(seconds=5) < lifetime <= timedelta(days=7, seconds=1)

    async def test_each_login_creates_its_own_session(
        self, registry: SessionRegistry, alice: Account, desktop_device: DeviceInfo
    ) -> None:
        first = await registry.create(alice.id, desktop_device)
        second = await registry.create(alice.id, desktop_device)

        assert first.session.id != second.session.id
        assert len(await registry.list_active(alice.id)) == 2


class TestResolve:
    async def test_resolves_active_session(
        self, registry: SessionRegistry, alice: Account, desktop_device: DeviceInfo
    ) -> None:
        issued = await registry.create(alice.id, desktop_device)

        session = await registry.resolve(issued.tokens.access_token)

        assert session.id == issued.session.id

    async def test_unknown_token(self, registry: SessionRegistry) -> None:
        with pytest.raises(SessionNotFound):
            await registry.resolve("unknown-token")
        assert await registry.find_active_by_token("unknown-token") is None

    async def test_invalidated_session(
        self, registry: SessionRegistry, alice: Account, desktop_device: DeviceInfo
    ) -> None:
        issued = await registry.create(alice.id, desktop_device)
        await registry.invalidate(issued.session.id)

        with pytest.raises(SessionNotFound):
            await registry.resolve(issued.tokens.access_token)

    async def test_expired_session(
        self,
        registry: SessionRegistry,
        auth_db: Adapter,
        alice: Account,
        desktop_device: DeviceInfo,
    ) -> None:
        issued = await registry.create(alice.id, desktop_device)
        issued.session.expires_at = datetime.now(UTC) - timedelta(seconds=1)
        await auth_db.session.commit()

        with pytest.raises(SessionExpired):
            await registry.resolve(issued.tokens.access_token)
        assert await registry.find_active_by_token(issued.tokens.access_token) is None
        assert not is_session_usable(issued.session)

    async def test_touch_does_not_extend_expiry(
        self, registry: SessionRegistry, alice: Account, desktop_device: DeviceInfo
    ) -> None:
        issued = await registry.create(alice.id, desktop_device)
        expires_at = issued.session.expires_at

        await registry.touch(issued.session)

        session = await registry.resolve(issued.tokens.access_token)
        assert session.expires_at == expires_at
        assert session.last_activity >= issued.session.created_at


# ============================================================================
# Refresh
# ============================================================================


class TestRefresh:
    """Test suite for refresh-token rotation."""

    async def test_refresh_rotates_pair_on_same_row(
        self, registry: SessionRegistry, alice: Account, desktop_device: DeviceInfo
    ) -> None:
        issued = await registry.create(alice.id, desktop_device)

        refreshed = await registry.refresh(issued.tokens.refresh_token)

        assert refreshed.session.id == issued.session.id
        assert refreshed.tokens.access_token != issued.tokens.access_token
        assert refreshed.tokens.refresh_token != issued.tokens.refresh_token
        assert refreshed.session.session_token == refreshed.tokens.access_token
        assert len(await registry.list_active(alice.id)) == 1

    async def test_old_tokens_stop_working(
        self, registry: SessionRegistry, alice: Account, desktop_device: DeviceInfo
    ) -> None:
        issued = await registry.create(alice.id, desktop_device)
        await registry.refresh(issued.tokens.refresh_token)

        with pytest.raises(SessionNotFound):
            await registry.refresh(issued.tokens.refresh_token)
        with pytest.raises(SessionNotFound):
            await registry.resolve(issued.tokens.access_token)

    async def test_refresh_of_invalidated_session(
        self, registry: SessionRegistry, alice: Account, desktop_device: DeviceInfo
    ) -> None:
        issued = await registry.create(alice.id, desktop_device)
        await registry.invalidate_all_for_account(alice.id)

        with pytest.raises(SessionNotFound):
            await registry.refresh(issued.tokens.refresh_token)

    async def test_refresh_with_access_token_is_malformed(
        self, registry: SessionRegistry, alice: Account, desktop_device: DeviceInfo
    ) -> None:
        issued = await registry.create(alice.id, desktop_device)

        with pytest.raises((TokenMalformed, TokenInvalidSignature)):
            await registry.refresh(issued.tokens.access_token)

    async def test_expired_refresh_token(
        self, registry: SessionRegistry, test_config: MockAuthConfig, alice: Account
    ) -> None:
        token = create_refresh_token(
            alice.id, test_config.refresh_signing_key, "HS256", timedelta(seconds=-5)
        )

        with pytest.raises(TokenExpired):
            await registry.refresh(token)

    async def test_garbage_refresh_token(self, registry: SessionRegistry) -> None:
        with pytest.raises(TokenMalformed):
            await registry.refresh("garbage")

    async def test_refresh_for_blocked_owner_closes_sessions(
        self,
        registry: SessionRegistry,
        auth_db: Adapter,
        alice: Account,
        desktop_device: DeviceInfo,
    ) -> None:
        """A block written without the cascade still stops rotation."""
        first = await registry.create(alice.id, desktop_device)
        await registry.create(alice.id, desktop_device)
        await auth_db.set_block_state(
            alice, True, block_reason="spam", blocked_at=datetime.now(UTC)
        )

        with pytest.raises(AccountBlocked) as exc_info:
            await registry.refresh(first.tokens.refresh_token)

        assert exc_info.value.to_payload()["reason"] == "spam"
        assert await registry.list_active(alice.id) == []
        row = await auth_db.get_session_by_id(first.session.id)
        assert row is not None
        assert row.refresh_token == first.tokens.refresh_token
        assert row.expires_at == first.session.expires_at

    async def test_refresh_for_deleted_owner(
        self,
        registry: SessionRegistry,
        test_config: MockAuthConfig,
    ) -> None:
        token = create_refresh_token(
            9999, test_config.refresh_signing_key, "HS256", timedelta(days=1)
        )

        with pytest.raises(SessionNotFound):
            await registry.refresh(token)


class TestConcurrentRefresh:
    """Two refreshes racing with the same token on separate connections."""

    async def test_exactly_one_wins(
        self, file_engine, test_config: MockAuthConfig, desktop_device: DeviceInfo  # type: ignore[no-untyped-def]
    ) -> None:
        maker = async_sessionmaker(file_engine, class_=AsyncSession, expire_on_commit=False)
        async with maker() as setup, maker() as left, maker() as right:
            setup_db = SQLAlchemyAdapter(setup, Account, LoginSession)
            account = await make_account(setup_db, "alice")
            issued = await SessionRegistry(setup_db, test_config).create(
                account.id, desktop_device
            )

            results = await asyncio.gather(
                SessionRegistry(
                    SQLAlchemyAdapter(left, Account, LoginSession), test_config
                ).refresh(issued.tokens.refresh_token),
                SessionRegistry(
                    SQLAlchemyAdapter(right, Account, LoginSession), test_config
                ).refresh(issued.tokens.refresh_token),
                return_exceptions=True,
            )

        winners = [r for r in results if not isinstance(r, BaseException)]
        losers = [r for r in results if isinstance(r, BaseException)]
        assert len(winners) == 1
        assert len(losers) == 1
        assert isinstance(losers[0], SessionNotFound)


# ============================================================================
# Invalidation and listing
# ============================================================================


class TestInvalidation:
    async def test_invalidate_is_idempotent(
        self, registry: SessionRegistry, alice: Account, desktop_device: DeviceInfo
    ) -> None:
        issued = await registry.create(alice.id, desktop_device)

        assert await registry.invalidate(issued.session.id) == 1
        assert await registry.invalidate(issued.session.id) == 0

    async def test_invalidate_all_for_account(
        self,
        registry: SessionRegistry,
        alice: Account,
        admin: Account,
        desktop_device: DeviceInfo,
    ) -> None:
        await registry.create(alice.id, desktop_device)
        await registry.create(alice.id, desktop_device)
        await registry.create(admin.id, desktop_device)

        assert await registry.invalidate_all_for_account(alice.id) == 2
        assert await registry.list_active(alice.id) == []
        assert len(await registry.list_active(admin.id)) == 1

    async def test_reap_expired(
        self,
        registry: SessionRegistry,
        auth_db: Adapter,
        alice: Account,
        desktop_device: DeviceInfo,
    ) -> None:
        live = await registry.create(alice.id, desktop_device)
        dead = await registry.create(alice.id, desktop_device)
        dead.session.expires_at = datetime.now(UTC) - timedelta(minutes=1)
        await auth_db.session.commit()

        assert await registry.reap_expired() == 1
        assert await auth_db.get_session_by_token(dead.tokens.access_token) is None
        assert await auth_db.get_session_by_token(live.tokens.access_token) is not None


# ============================================================================
# Reaper
# ============================================================================


class TestSessionReaper:
    """Test suite for the background cleanup task."""

    async def test_runs_periodically_until_stopped(self) -> None:
        calls = 0

        async def reap() -> int:
            nonlocal calls
            calls += 1
            return 0

        reaper = SessionReaper(reap, interval=0.01)
        reaper.start()
        assert reaper.running
        await asyncio.sleep(0.05)
        await reaper.stop()

        assert not reaper.running
        assert calls >= 2

    async def test_start_is_idempotent(self) -> None:
        async def reap() -> int:
            return 0

        reaper = SessionReaper(reap, interval=60)
        reaper.start()
        task = reaper._task
        reaper.start()

        assert reaper._task is task
        await reaper.stop()

    async def test_failures_are_logged_not_raised(self) -> None:
        async def reap() -> int:
            raise RuntimeError("database unavailable")

        reaper = SessionReaper(reap, interval=60)

        assert await reaper.run_once() == 0
