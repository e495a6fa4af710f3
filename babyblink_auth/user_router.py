"""API router for gated account routes: profile and dashboard."""

from collections.abc import Callable
from typing import Any

from fastapi import APIRouter, Depends  # type: ignore[import-untyped]

from babyblink_auth.config import BabyBlinkAuthConfig
from babyblink_auth.credentials import CredentialStore
from babyblink_auth.db.protocols import AuthDatabase
from babyblink_auth.dependencies import AuthContext, get_auth_dependency
from babyblink_auth.schemas import (
    DashboardData,
    DashboardResponse,
    ProfileResponse,
    ProfileUpdate,
    UserProfile,
)


def get_user_router(
    get_db: Callable[..., Any],
    config: BabyBlinkAuthConfig,
) -> APIRouter:
    """
    Create an APIRouter with routes that sit behind the access gate.

    Args:
        get_db: Dependency callable returning an AuthDatabase
        config: Auth configuration

    Returns:
        Configured APIRouter instance
    """
    router = APIRouter()
    require_auth = get_auth_dependency(get_db, config)

    @router.get("/profile", response_model=ProfileResponse, summary="Get profile")
    async def get_profile(ctx: AuthContext = Depends(require_auth)) -> ProfileResponse:
        return ProfileResponse(user=UserProfile.from_account(ctx.account))

    @router.put(
        "/profile",
        response_model=ProfileResponse,
        summary="Update profile",
        description="Update profile fields; credentials and block state are not writable here",
    )
    async def update_profile(
        body: ProfileUpdate,
        ctx: AuthContext = Depends(require_auth),
        db: AuthDatabase[Any, Any] = Depends(get_db),
    ) -> ProfileResponse:
        account = await CredentialStore(db, config).update_profile(
            ctx.account, body.model_dump(exclude_unset=True)
        )
        return ProfileResponse(
            message="Profile updated successfully",
            user=UserProfile.from_account(account),
        )

    @router.get("/dashboard", response_model=DashboardResponse, summary="Dashboard")
    async def dashboard(ctx: AuthContext = Depends(require_auth)) -> DashboardResponse:
        account = ctx.account
        return DashboardResponse(
            data=DashboardData(
                message=f"Welcome to BabyBlink, {account.full_name or account.username}!",
                baby_info={
                    "name": account.baby_name,
                    "age": account.baby_age,
                    "gender": account.baby_gender,
                },
                user_stats={
                    "loginCount": account.login_count,
                    "profileCompleteness": account.profile_completeness,
                    "lastActivity": ctx.session.last_activity.isoformat(),
                },
            )
        )

    return router
