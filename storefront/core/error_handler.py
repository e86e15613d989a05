"""
Error rendering and sanitization

- StorefrontError subclasses render as {"error", "message", "details"} with
  the status code the exception class declares
- Unhandled exceptions are logged with a traceback and answered with a
  generic 500; database driver text never reaches the client
"""
import logging
import traceback
from typing import Union

from fastapi import Request, HTTPException
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from storefront.core.config import settings
from storefront.core.exceptions import StorefrontError

logger = logging.getLogger(__name__)

# Fragments that indicate internal/sensitive error information
SENSITIVE_PATTERNS = [
    "password",
    "secret",
    "token",
    "credential",
    "sqlalchemy",
    "asyncpg",
    "postgresql",
    "sqlite",
    "traceback",
    "file \"",
    "/storefront/",
]

MAX_MESSAGE_LENGTH = 200
GENERIC_MESSAGE = "An internal error occurred. Please try again later."


def is_sensitive_error(message: str) -> bool:
    message_lower = message.lower()
    return any(pattern in message_lower for pattern in SENSITIVE_PATTERNS)


def sanitize_error_message(error: Union[str, Exception]) -> str:
    """Return a message that is safe to show to API clients."""
    message = error if isinstance(error, str) else str(error)

    if settings.DEBUG:
        return message

    if is_sensitive_error(message):
        return GENERIC_MESSAGE

    if len(message) > MAX_MESSAGE_LENGTH:
        return message[:MAX_MESSAGE_LENGTH] + "..."

    return message


async def storefront_error_handler(request: Request, exc: StorefrontError) -> JSONResponse:
    """Render a typed domain error."""
    log = logger.warning if exc.http_status < 500 else logger.error
    log("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message)

    return JSONResponse(
        status_code=exc.http_status,
        content={
            "error": exc.code,
            "message": sanitize_error_message(exc.message),
            "details": exc.details,
        },
    )


class ErrorSanitizationMiddleware(BaseHTTPMiddleware):
    """
    Catch anything the route handlers did not turn into a response.

    In production the client gets a generic message and an error id that
    matches the server log line; in debug mode the exception text is returned.
    """

    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except HTTPException:
            raise
        except Exception as e:
            error_id = f"{request.client.host if request.client else 'unknown'}-{id(e)}"
            logger.error(
                "Unhandled exception [%s] %s %s: %s: %s\n%s",
                error_id,
                request.method,
                request.url.path,
                type(e).__name__,
                e,
                traceback.format_exc(),
            )

            content = {
                "error": "internal_error",
                "message": str(e) if settings.DEBUG else GENERIC_MESSAGE,
                "error_id": error_id,
            }
            if settings.DEBUG:
                content["type"] = type(e).__name__
            return JSONResponse(status_code=500, content=content)
