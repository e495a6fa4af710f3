"""API router for administrator block management."""

from collections.abc import Callable
from typing import Any

from fastapi import APIRouter, Depends  # type: ignore[import-untyped]

from babyblink_auth.blocking import BlockService
from babyblink_auth.config import BabyBlinkAuthConfig
from babyblink_auth.credentials import CredentialStore
from babyblink_auth.db.protocols import AuthDatabase
from babyblink_auth.dependencies import AuthContext, get_admin_dependency
from babyblink_auth.errors import AccountNotFound
from babyblink_auth.schemas import (
    BlockStatusResponse,
    BlockUserRequest,
    SessionInfo,
    SessionListResponse,
    UnblockUserRequest,
)
from babyblink_auth.sessions import SessionRegistry


def get_admin_router(
    get_db: Callable[..., Any],
    config: BabyBlinkAuthConfig,
) -> APIRouter:
    """
    Create an APIRouter with the administrator endpoints.

    Every route requires an authenticated account with ``is_admin`` set.

    Args:
        get_db: Dependency callable returning an AuthDatabase
        config: Auth configuration

    Returns:
        Configured APIRouter instance
    """
    router = APIRouter()
    require_admin = get_admin_dependency(get_db, config)

    def block_service(db: AuthDatabase[Any, Any]) -> BlockService:
        return BlockService(CredentialStore(db, config), SessionRegistry(db, config))

    @router.post(
        "/block-user",
        response_model=BlockStatusResponse,
        summary="Block account",
        description="Block an account and sign out all of its sessions",
    )
    async def block_user(
        body: BlockUserRequest,
        ctx: AuthContext = Depends(require_admin),
        db: AuthDatabase[Any, Any] = Depends(get_db),
    ) -> BlockStatusResponse:
        """
        Block an account.

        Raises:
            InvalidRequest: administrator targeted their own account
            AccountNotFound: no such account
            AlreadyBlocked: account already blocked
        """
        outcome = await block_service(db).block(body.user_id, body.reason, ctx.account)
        account = outcome.account
        return BlockStatusResponse(
            message="User blocked successfully",
            user_id=str(account.id),
            is_blocked=account.is_blocked,
            block_reason=account.block_reason,
            blocked_at=account.blocked_at,
            sessions_invalidated=outcome.sessions_invalidated,
        )

    @router.post("/unblock-user", response_model=BlockStatusResponse, summary="Unblock account")
    async def unblock_user(
        body: UnblockUserRequest,
        ctx: AuthContext = Depends(require_admin),
        db: AuthDatabase[Any, Any] = Depends(get_db),
    ) -> BlockStatusResponse:
        account = await block_service(db).unblock(body.user_id, ctx.account)
        return BlockStatusResponse(
            message="User unblocked successfully",
            user_id=str(account.id),
            is_blocked=account.is_blocked,
        )

    @router.get(
        "/users/{account_id}/sessions",
        response_model=SessionListResponse,
        summary="Inspect account sessions",
    )
    async def account_sessions(
        account_id: str,
        _ctx: AuthContext = Depends(require_admin),
        db: AuthDatabase[Any, Any] = Depends(get_db),
    ) -> SessionListResponse:
        account = await db.get_account_by_id(account_id)
        if account is None:
            raise AccountNotFound()
        sessions = await SessionRegistry(db, config).list_active(account.id)
        items = [SessionInfo.from_session(s) for s in sessions]
        return SessionListResponse(sessions=items, total=len(items))

    return router
