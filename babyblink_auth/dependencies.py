"""FastAPI dependencies implementing the per-request access gate."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from fastapi import Depends  # type: ignore[import-untyped]
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer  # type: ignore[import-untyped]

from babyblink_auth.config import BabyBlinkAuthConfig
from babyblink_auth.db.protocols import AccountProtocol, AuthDatabase, SessionProtocol
from babyblink_auth.errors import (
    AccountBlocked,
    AccountGone,
    Forbidden,
    NotVerified,
    SessionNotFound,
    Unauthenticated,
)
from babyblink_auth.logging import get_logger, mask_email
from babyblink_auth.security import ACCESS_TOKEN_TYPE, verify_token
from babyblink_auth.sessions import SessionRegistry

logger = get_logger(__name__)

# HTTP Bearer scheme; missing credentials are handled by the gate itself
http_bearer_scheme = HTTPBearer(auto_error=False)

GetDB = Callable[..., Any]


@dataclass
class AuthContext:
    """The resolved account and session of an authenticated request."""

    account: AccountProtocol
    session: SessionProtocol
    token: str

    @property
    def account_id(self) -> Any:  # noqa: ANN401
        return self.account.id


class AccessGate:
    """
    Checks a bearer token against the session registry and account state.

    The order of checks is fixed:

    1. no token                      -> ``Unauthenticated``
    2. token fails verification      -> ``TokenExpired`` / ``TokenInvalidSignature`` /
                                        ``TokenMalformed``
    3. no active, unexpired session  -> ``SessionNotFound`` / ``SessionExpired``
                                        (``AccountBlocked`` if a block deactivated it)
    4. owning account missing        -> session invalidated, ``AccountGone``
    5. account not verified          -> ``NotVerified``
    6. account blocked               -> all sessions invalidated, ``AccountBlocked``
    7. otherwise                     -> session touched, context returned

    The block check runs on every gated request, not only at login, since an
    account can be blocked while its sessions are live.
    """

    def __init__(self, db: AuthDatabase[Any, Any], config: BabyBlinkAuthConfig) -> None:
        self.db = db
        self.config = config
        self.sessions = SessionRegistry(db, config)

    async def check(self, token: str | None) -> AuthContext:
        if not token:
            raise Unauthenticated()

        claims = verify_token(
            token, self.config.secret_key, self.config.algorithm, ACCESS_TOKEN_TYPE
        ).raise_for_status()

        try:
            session = await self.sessions.resolve(token)
        except SessionNotFound:
            await self._raise_if_owner_blocked(token)
            raise
        if str(session.account_id) != claims["sub"]:
            raise SessionNotFound()

        account = await self.db.get_account_by_id(session.account_id)
        if account is None:
            await self.sessions.invalidate(session.id)
            raise AccountGone()

        if not account.is_verified:
            raise NotVerified(email=account.email)

        if account.is_blocked:
            invalidated = await self.sessions.invalidate_all_for_account(account.id)
            logger.warning(
                "blocked_account_rejected",
                account_id=str(account.id),
                email=mask_email(account.email),
                reason=account.block_reason,
                sessions_invalidated=invalidated,
            )
            raise AccountBlocked.for_account(account, self.config.support_email)

        await self.sessions.touch(session)
        return AuthContext(account=account, session=session, token=token)

    async def _raise_if_owner_blocked(self, token: str) -> None:
        """Report the block, not a missing session, when the block cascade deactivated it."""
        row = await self.db.get_session_by_token(token)
        if row is None:
            return
        account = await self.db.get_account_by_id(row.account_id)
        if account is not None and account.is_blocked:
            raise AccountBlocked.for_account(account, self.config.support_email)


def get_auth_dependency(
    get_db: GetDB,
    config: BabyBlinkAuthConfig,
) -> Callable[..., Awaitable[AuthContext]]:
    """
    Create a dependency that requires an authenticated, verified, unblocked account.

    Args:
        get_db: Dependency callable returning an AuthDatabase
        config: Auth configuration

    Returns:
        FastAPI dependency function yielding an AuthContext

    Example:
        ```python
        current = Depends(get_auth_dependency(get_auth_db, config))

        @app.get("/nursery")
        async def nursery(ctx: AuthContext = current):
            return {"account_id": str(ctx.account.id)}
        ```
    """

    async def require_auth(
        credentials: HTTPAuthorizationCredentials | None = Depends(http_bearer_scheme),
        db: AuthDatabase[Any, Any] = Depends(get_db),
    ) -> AuthContext:
        token = credentials.credentials if credentials else None
        return await AccessGate(db, config).check(token)

    return require_auth


def get_optional_auth_dependency(
    get_db: GetDB,
    config: BabyBlinkAuthConfig,
) -> Callable[..., Awaitable[AuthContext | None]]:
    """
    Create a dependency for routes that tolerate anonymous callers.

    Without a bearer token the dependency yields ``None``. A token that is
    present is checked exactly like ``get_auth_dependency`` does, so a bad,
    expired or blocked credential is still rejected.
    """

    async def optional_auth(
        credentials: HTTPAuthorizationCredentials | None = Depends(http_bearer_scheme),
        db: AuthDatabase[Any, Any] = Depends(get_db),
    ) -> AuthContext | None:
        if credentials is None or not credentials.credentials:
            return None
        return await AccessGate(db, config).check(credentials.credentials)

    return optional_auth


def get_admin_dependency(
    get_db: GetDB,
    config: BabyBlinkAuthConfig,
) -> Callable[..., Awaitable[AuthContext]]:
    """Create a dependency that additionally requires ``account.is_admin``."""
    require_auth = get_auth_dependency(get_db, config)

    async def require_admin(ctx: AuthContext = Depends(require_auth)) -> AuthContext:
        if not ctx.account.is_admin:
            logger.warning("admin_access_denied", account_id=str(ctx.account.id))
            raise Forbidden()
        return ctx

    return require_admin
