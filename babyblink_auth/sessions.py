"""Session registry: durable login sessions, token rotation and cleanup."""

import asyncio
import contextlib
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from babyblink_auth.config import BabyBlinkAuthConfig
from babyblink_auth.db.protocols import AuthDatabase, SessionProtocol
from babyblink_auth.device import DeviceInfo
from babyblink_auth.errors import AccountBlocked, SessionExpired, SessionNotFound
from babyblink_auth.logging import get_logger
from babyblink_auth.security import REFRESH_TOKEN_TYPE, TokenPair, issue_token_pair, verify_token

logger = get_logger(__name__)


@dataclass(frozen=True)
class IssuedSession:
    """A session row together with the token pair stored on it."""

    session: SessionProtocol
    tokens: TokenPair


def is_session_usable(session: SessionProtocol, now: datetime | None = None) -> bool:
    """True while the session is active and unexpired (owner block state aside)."""
    now = now or datetime.now(UTC)
    return session.is_active and session.expires_at > now


class SessionRegistry:
    """
    Create, look up, rotate and invalidate login sessions.

    Each session row owns exactly one token pair. Refreshing replaces the
    pair on the same row rather than creating a new one.
    """

    def __init__(self, db: AuthDatabase[Any, Any], config: BabyBlinkAuthConfig) -> None:
        self.db = db
        self.config = config

    async def create(
        self,
        account_id: Any,  # noqa: ANN401
        device: DeviceInfo,
        additional_claims: dict[str, Any] | None = None,
    ) -> IssuedSession:
        """
        Issue a token pair and persist a new active session.

        Args:
            account_id: Owning account
            device: Device snapshot of the login request
            additional_claims: Extra claims for the access token

        Returns:
            The created session and its tokens
        """
        tokens = issue_token_pair(account_id, self.config, additional_claims)
        now = datetime.now(UTC)
        session = await self.db.create_session(
            account_id=account_id,
            session_token=tokens.access_token,
            refresh_token=tokens.refresh_token,
            user_agent=device.user_agent,
            ip_address=device.ip_address,
            browser=str(device.browser),
            os=str(device.os),
            device=str(device.device),
            is_active=True,
            last_activity=now,
            expires_at=now + self.config.session_lifetime,
            created_at=now,
        )
        logger.info(
            "session_created",
            session_id=str(session.id),
            account_id=str(account_id),
            browser=session.browser,
            os=session.os,
            device=session.device,
        )
        return IssuedSession(session=session, tokens=tokens)

    async def resolve(self, session_token: str) -> SessionProtocol:
        """
        Find the session holding ``session_token`` and check it is usable.

        Raises:
            SessionNotFound: no session holds the token, or it was invalidated
            SessionExpired: the session's expiry has passed
        """
        session = await self.db.get_session_by_token(session_token)
        if session is None or not session.is_active:
            raise SessionNotFound()
        if session.expires_at <= datetime.now(UTC):
            raise SessionExpired()
        return session

    async def find_active_by_token(self, session_token: str) -> SessionProtocol | None:
        """Return the session only if it is active and unexpired."""
        try:
            return await self.resolve(session_token)
        except (SessionNotFound, SessionExpired):
            return None

    async def touch(self, session: SessionProtocol) -> None:
        """Record activity now. Never extends ``expires_at``."""
        await self.db.touch_session(session, datetime.now(UTC))

    async def refresh(
        self,
        refresh_token: str,
        additional_claims: dict[str, Any] | None = None,
    ) -> IssuedSession:
        """
        Rotate the token pair of the session that holds ``refresh_token``.

        The old refresh token is overwritten in the same atomic update, so it
        can never be used again.

        Args:
            refresh_token: Refresh token presented by the client
            additional_claims: Extra claims for the new access token

        Returns:
            The updated session and its new tokens

        Raises:
            TokenExpired: refresh token lifetime has passed
            TokenInvalidSignature: refresh token signature rejected
            TokenMalformed: refresh token unparseable or of the wrong type
            SessionNotFound: no active, unexpired session holds this token
            AccountBlocked: the owner is blocked; all its sessions are closed
        """
        check = verify_token(
            refresh_token,
            self.config.refresh_signing_key,
            self.config.algorithm,
            expected_type=REFRESH_TOKEN_TYPE,
        )
        claims = check.raise_for_status()

        owner = await self.db.get_account_by_id(claims["sub"])
        if owner is None:
            raise SessionNotFound("Session not found")
        if owner.is_blocked:
            await self.invalidate_all_for_account(owner.id)
            logger.warning("blocked_refresh_rejected", account_id=str(owner.id))
            raise AccountBlocked.for_account(owner, self.config.support_email)

        tokens = issue_token_pair(claims["sub"], self.config, additional_claims)
        now = datetime.now(UTC)
        session = await self.db.rotate_session_tokens(
            refresh_token=refresh_token,
            now=now,
            new_session_token=tokens.access_token,
            new_refresh_token=tokens.refresh_token,
            new_expires_at=now + self.config.session_lifetime,
        )
        if session is None or str(session.account_id) != claims["sub"]:
            logger.warning("refresh_rejected", subject=claims["sub"])
            raise SessionNotFound("Session not found")

        logger.info("session_refreshed", session_id=str(session.id))
        return IssuedSession(session=session, tokens=tokens)

    async def invalidate(self, session_id: Any) -> int:  # noqa: ANN401
        """Deactivate one session. Idempotent; returns rows changed."""
        changed = await self.db.deactivate_session(session_id)
        if changed:
            logger.info("session_invalidated", session_id=str(session_id))
        return changed

    async def invalidate_all_for_account(self, account_id: Any) -> int:  # noqa: ANN401
        """Deactivate every session of an account. Idempotent; returns rows changed."""
        changed = await self.db.deactivate_account_sessions(account_id)
        logger.info(
            "account_sessions_invalidated", account_id=str(account_id), count=changed
        )
        return changed

    async def list_active(self, account_id: Any) -> Sequence[SessionProtocol]:  # noqa: ANN401
        """Active, unexpired sessions ordered by last activity, newest first."""
        return await self.db.list_active_sessions(account_id, datetime.now(UTC))

    async def reap_expired(self) -> int:
        """Physically delete expired session rows."""
        removed = await self.db.delete_expired_sessions(datetime.now(UTC))
        if removed:
            logger.info("expired_sessions_reaped", count=removed)
        return removed


class SessionReaper:
    """
    Background task that periodically deletes expired session rows.

    Correctness never depends on it: expired sessions are already rejected
    by ``SessionRegistry.resolve``.

    Example:
        ```python
        reaper = SessionReaper(reap_once, interval=3600)
        reaper.start()
        ...
        await reaper.stop()
        ```
    """

    def __init__(self, reap: Callable[[], Awaitable[int]], interval: float) -> None:
        """
        Args:
            reap: Coroutine function performing one cleanup pass
            interval: Seconds between passes
        """
        self._reap = reap
        self._interval = interval
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self) -> int:
        """Run one cleanup pass, logging instead of raising on failure."""
        try:
            return await self._reap()
        except Exception as e:
            logger.error("session_reaper_failed", error_type=type(e).__name__, error=str(e))
            return 0

    async def _loop(self) -> None:
        while True:
            await self.run_once()
            await asyncio.sleep(self._interval)

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name="session-reaper")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
