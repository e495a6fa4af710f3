"""Tests for the access gate behind every protected route."""

from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy import delete

from babyblink_auth.blocking import BlockService
from babyblink_auth.credentials import CredentialStore
from babyblink_auth.db.sqlalchemy.adapter import SQLAlchemyAdapter
from babyblink_auth.dependencies import AccessGate
from babyblink_auth.device import DeviceInfo
from babyblink_auth.errors import (
    AccountBlocked,
    AccountGone,
    NotVerified,
    SessionExpired,
    SessionNotFound,
    TokenExpired,
    TokenInvalidSignature,
    TokenMalformed,
    Unauthenticated,
)
from babyblink_auth.security import create_access_token
from babyblink_auth.sessions import IssuedSession, SessionRegistry
from tests.conftest import Account, LoginSession, MockAuthConfig

Adapter = SQLAlchemyAdapter[Account, LoginSession]


@pytest.fixture
def gate(auth_db: Adapter, test_config: MockAuthConfig) -> AccessGate:
    return AccessGate(auth_db, test_config)


@pytest.fixture
async def alice_session(
    auth_db: Adapter,
    test_config: MockAuthConfig,
    alice: Account,
    desktop_device: DeviceInfo,
) -> IssuedSession:
    """A live login session owned by alice."""
    return await SessionRegistry(auth_db, test_config).create(alice.id, desktop_device)


class TestTokenChecks:
    """Steps that reject a request before any session lookup."""

    async def test_missing_token(self, gate: AccessGate) -> None:
        with pytest.raises(Unauthenticated) as exc_info:
            await gate.check(None)
        assert exc_info.value.to_payload()["requiresAuth"] is True

    async def test_garbage_token(self, gate: AccessGate) -> None:
        with pytest.raises(TokenMalformed):
            await gate.check("not-a-jwt")

    async def test_foreign_signature(self, gate: AccessGate, alice: Account) -> None:
        token = create_access_token(
            alice.id, {}, "some-other-secret-key-of-32-characters", "HS256", timedelta(hours=1)
        )

        with pytest.raises(TokenInvalidSignature):
            await gate.check(token)

    async def test_expired_token(
        self, gate: AccessGate, test_config: MockAuthConfig, alice: Account
    ) -> None:
        token = create_access_token(
            alice.id, {}, test_config.secret_key, "HS256", timedelta(seconds=-5)
        )

        with pytest.raises(TokenExpired) as exc_info:
            await gate.check(token)
        assert exc_info.value.to_payload()["expired"] is True

    async def test_refresh_token_is_not_an_access_token(
        self, gate: AccessGate, alice_session: IssuedSession
    ) -> None:
        with pytest.raises((TokenMalformed, TokenInvalidSignature)):
            await gate.check(alice_session.tokens.refresh_token)


class TestSessionChecks:
    """Steps that consult the session registry and the owning account."""

    async def test_valid_session_passes_and_is_touched(
        self, gate: AccessGate, alice: Account, alice_session: IssuedSession
    ) -> None:
        before = alice_session.session.last_activity

        ctx = await gate.check(alice_session.tokens.access_token)

        assert ctx.account.id == alice.id
        assert ctx.account_id == alice.id
        assert ctx.session.id == alice_session.session.id
        assert ctx.session.last_activity >= before
        assert ctx.token == alice_session.tokens.access_token

    async def test_well_signed_token_without_session(
        self, gate: AccessGate, test_config: MockAuthConfig, alice: Account
    ) -> None:
        token = create_access_token(
            alice.id, {}, test_config.secret_key, "HS256", timedelta(hours=1)
        )

        with pytest.raises(SessionNotFound):
            await gate.check(token)

    async def test_logged_out_session(
        self,
        gate: AccessGate,
        auth_db: Adapter,
        alice_session: IssuedSession,
    ) -> None:
        await auth_db.deactivate_session(alice_session.session.id)

        with pytest.raises(SessionNotFound):
            await gate.check(alice_session.tokens.access_token)

    async def test_session_expired_while_token_still_valid(
        self,
        gate: AccessGate,
        auth_db: Adapter,
        alice_session: IssuedSession,
    ) -> None:
        """The session row expiry wins over the access token lifetime."""
        row = await auth_db.get_session_by_id(alice_session.session.id)
        assert row is not None
        row.expires_at = datetime.now(UTC) - timedelta(seconds=1)
        await auth_db.session.commit()

        with pytest.raises(SessionExpired) as exc_info:
            await gate.check(alice_session.tokens.access_token)
        payload = exc_info.value.to_payload()
        assert payload["requiresAuth"] is True
        assert payload["expired"] is True

    async def test_account_gone_invalidates_session(
        self,
        gate: AccessGate,
        auth_db: Adapter,
        alice: Account,
        alice_session: IssuedSession,
    ) -> None:
        session_id = alice_session.session.id
        # SQLite does not enforce the FK cascade here, so the session row stays
        await auth_db.session.execute(delete(Account).where(Account.id == alice.id))
        await auth_db.session.commit()

        with pytest.raises(AccountGone) as exc_info:
            await gate.check(alice_session.tokens.access_token)

        assert exc_info.value.to_payload()["forceLogout"] is True
        row = await auth_db.get_session_by_id(session_id)
        assert row is not None and row.is_active is False

    async def test_unverified_account(
        self,
        gate: AccessGate,
        auth_db: Adapter,
        test_config: MockAuthConfig,
        unverified: Account,
        desktop_device: DeviceInfo,
    ) -> None:
        issued = await SessionRegistry(auth_db, test_config).create(unverified.id, desktop_device)

        with pytest.raises(NotVerified) as exc_info:
            await gate.check(issued.tokens.access_token)
        assert exc_info.value.to_payload()["needsVerification"] is True


class TestBlockedOwner:
    """A block applied behind the registry's back is still enforced."""

    async def test_blocked_owner_is_rejected_and_logged_out_everywhere(
        self,
        gate: AccessGate,
        auth_db: Adapter,
        test_config: MockAuthConfig,
        alice: Account,
        alice_session: IssuedSession,
        desktop_device: DeviceInfo,
    ) -> None:
        registry = SessionRegistry(auth_db, test_config)
        await registry.create(alice.id, desktop_device)
        await auth_db.update_account(
            alice,
            is_blocked=True,
            block_reason="Abuse",
            blocked_at=datetime.now(UTC),
        )

        with pytest.raises(AccountBlocked) as exc_info:
            await gate.check(alice_session.tokens.access_token)

        payload = exc_info.value.to_payload()
        assert payload["blocked"] is True
        assert payload["forceLogout"] is True
        assert payload["reason"] == "Abuse"
        assert payload["supportEmail"] == "support@babyblink.test"
        assert "blockedAt" in payload
        assert await registry.list_active(alice.id) == []

    async def test_block_without_reason_uses_default(
        self,
        gate: AccessGate,
        auth_db: Adapter,
        alice: Account,
        alice_session: IssuedSession,
    ) -> None:
        await auth_db.update_account(alice, is_blocked=True)

        with pytest.raises(AccountBlocked) as exc_info:
            await gate.check(alice_session.tokens.access_token)
        assert exc_info.value.to_payload()["reason"] == "Account suspended by administrator"

    async def test_session_closed_by_block_reports_the_block(
        self,
        gate: AccessGate,
        auth_db: Adapter,
        test_config: MockAuthConfig,
        alice: Account,
        admin: Account,
        alice_session: IssuedSession,
    ) -> None:
        """After the eager cascade the old token still gets the block details."""
        store = CredentialStore(auth_db, test_config)
        blocks = BlockService(store, SessionRegistry(auth_db, test_config))
        await blocks.block(alice.id, "policy violation", admin)

        with pytest.raises(AccountBlocked) as exc_info:
            await gate.check(alice_session.tokens.access_token)
        assert exc_info.value.to_payload()["reason"] == "policy violation"
