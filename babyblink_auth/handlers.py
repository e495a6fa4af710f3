"""Exception handlers rendering every failure in the auth JSON envelope."""

from typing import Any

from fastapi import FastAPI, Request  # type: ignore[import-untyped]
from fastapi.exceptions import RequestValidationError  # type: ignore[import-untyped]
from fastapi.responses import JSONResponse  # type: ignore[import-untyped]
from starlette.exceptions import HTTPException as StarletteHTTPException

from babyblink_auth.errors import AuthError
from babyblink_auth.logging import get_logger

logger = get_logger(__name__)


def _envelope(status: int, message: str, **extra: Any) -> JSONResponse:  # noqa: ANN401
    return JSONResponse(
        status_code=status,
        content={"success": False, "error": message, **extra},
    )


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid value")
    return f"{field}: {message}" if field else message


def register_exception_handlers(app: FastAPI) -> None:
    """
    Install handlers for auth errors, validation errors and uncaught exceptions.

    Auth errors keep their status and flags. Unexpected exceptions become a
    bare 500 without internals.
    """

    @app.exception_handler(AuthError)
    async def handle_auth_error(request: Request, exc: AuthError) -> JSONResponse:
        log_fn = logger.error if exc.status_code >= 500 else logger.info
        log_fn(
            "auth_error",
            path=request.url.path,
            method=request.method,
            status=exc.status_code,
            kind=exc.code,
        )
        return JSONResponse(status_code=exc.status_code, content=exc.to_payload())

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        logger.info("request_validation_failed", path=request.url.path, method=request.method)
        return _envelope(400, _validation_message(exc), code="invalid_request")

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        message = exc.detail if isinstance(exc.detail, str) else "HTTP error"
        return _envelope(exc.status_code, message)

    @app.exception_handler(Exception)
    async def handle_uncaught(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(
            "unhandled_exception",
            exc_info=exc,
            path=request.url.path,
            method=request.method,
        )
        return _envelope(500, "Internal server error")
