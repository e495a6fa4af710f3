"""Application factory wiring routers, error handlers, logging and the session reaper."""

from collections.abc import AsyncIterator, Awaitable, Callable, Sequence
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import Any

from fastapi import FastAPI  # type: ignore[import-untyped]

from babyblink_auth.admin_router import get_admin_router
from babyblink_auth.config import BabyBlinkAuthConfig
from babyblink_auth.db.protocols import AuthDatabase
from babyblink_auth.errors import ConfigurationError
from babyblink_auth.handlers import register_exception_handlers
from babyblink_auth.logging import configure_from_env, get_logger
from babyblink_auth.router import get_auth_router
from babyblink_auth.sessions import SessionReaper, SessionRegistry
from babyblink_auth.user_router import get_user_router

logger = get_logger(__name__)

DatabaseFactory = Callable[[], AbstractAsyncContextManager[AuthDatabase[Any, Any]]]


def create_app(
    config: BabyBlinkAuthConfig,
    get_db: Callable[..., Any],
    *,
    enable_reaper: bool = False,
    reaper_db: DatabaseFactory | None = None,
    on_startup: Sequence[Callable[[], Awaitable[None]]] = (),
    title: str = "BabyBlink Auth",
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        config: Auth configuration
        get_db: Request dependency returning an AuthDatabase
        enable_reaper: Run the expired-session reaper for the app's lifetime
        reaper_db: Opens an AuthDatabase outside of a request; required
            when ``enable_reaper`` is set
        on_startup: Coroutine functions awaited before serving, in order,
            e.g. creating tables or indexes
        title: OpenAPI title

    Returns:
        Configured FastAPI application

    Raises:
        ConfigurationError: reaper enabled without a ``reaper_db`` factory

    Example:
        ```python
        @asynccontextmanager
        async def open_db():
            async with async_session_maker() as session:
                yield SQLAlchemyAdapter(session, Account, LoginSession)

        app = create_app(MyAuthConfig(), get_auth_db, enable_reaper=True, reaper_db=open_db)
        ```
    """
    if enable_reaper and reaper_db is None:
        raise ConfigurationError("enable_reaper requires a reaper_db factory")

    configure_from_env()

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        for hook in on_startup:
            await hook()

        reaper: SessionReaper | None = None
        if enable_reaper and reaper_db is not None:

            async def reap_once() -> int:
                async with reaper_db() as db:
                    return await SessionRegistry(db, config).reap_expired()

            reaper = SessionReaper(
                reap_once, config.session_cleanup_interval.total_seconds()
            )
            reaper.start()
            logger.info(
                "session_reaper_started",
                interval_seconds=config.session_cleanup_interval.total_seconds(),
            )
        try:
            yield
        finally:
            if reaper is not None:
                await reaper.stop()
                logger.info("session_reaper_stopped")

    app = FastAPI(title=title, lifespan=lifespan)
    register_exception_handlers(app)

    app.include_router(get_auth_router(get_db, config), prefix="/auth", tags=["auth"])
    app.include_router(get_admin_router(get_db, config), prefix="/admin", tags=["admin"])
    app.include_router(get_user_router(get_db, config), prefix="/user", tags=["user"])

    @app.get("/health", tags=["health"])
    async def health() -> dict[str, Any]:
        return {"success": True, "status": "ok"}

    return app
