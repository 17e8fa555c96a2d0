"""
Global exception handlers.

Every failure leaves the API as `{"success": false, "error": "<message>"}`
with the status code of the underlying error.
"""
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from core.exceptions import PortalError
from core.logger import logger


def error_response(status_code: int, message: str, headers: dict = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": message},
        headers=headers
    )


def register_error_handlers(app: FastAPI) -> None:
    """Register all global error handlers on the FastAPI app."""

    @app.exception_handler(PortalError)
    async def portal_error_handler(request: Request, exc: PortalError):
        if exc.status_code >= 500:
            logger.error(f"{type(exc).__name__} on {request.url.path}: {exc.message}")
        else:
            logger.info(f"{type(exc).__name__} ({exc.status_code}) on {request.method} {request.url.path}: {exc.message}")
        return error_response(exc.status_code, exc.message)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
        return error_response(exc.status_code, message, getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        logger.warning(f"Validation error on {request.url.path}: {errors}")
        return error_response(status.HTTP_400_BAD_REQUEST, _first_message(errors))

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception):
        # Never leaks internal details
        logger.error(f"Unhandled exception on {request.method} {request.url.path}: {exc}", exc_info=True)
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")


def _first_message(errors) -> str:
    if not errors:
        return "Invalid request data"
    first = errors[0]
    field = ".".join(str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path"))
    message = first.get("msg", "Invalid value")
    return f"{field}: {message}" if field else message
