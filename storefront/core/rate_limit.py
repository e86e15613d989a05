"""
Rate limiting

SlowAPI limiter with in-memory storage. Checkout is limited per
authenticated user so that several shoppers behind one NAT do not share a
budget; anonymous traffic falls back to the client IP.
"""
import logging
from typing import Optional

from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from starlette.requests import Request
from starlette.responses import JSONResponse

from storefront.core.config import settings
from storefront.core.security import decode_token

logger = logging.getLogger(__name__)


def get_client_ip(request: Request) -> str:
    """Client IP, honouring the first hop of X-Forwarded-For."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return get_remote_address(request)


def _token_subject(request: Request) -> Optional[str]:
    auth = request.headers.get("Authorization", "")
    token = auth[7:] if auth.lower().startswith("bearer ") else request.cookies.get("access_token")
    if not token:
        return None
    payload = decode_token(token)
    if not payload:
        return None
    return payload.get("sub")


def get_user_or_ip(request: Request) -> str:
    """Limiter key: ``user:<id>`` for authenticated requests, else the client IP."""
    subject = _token_subject(request)
    if subject:
        return f"user:{subject}"
    return get_client_ip(request)


limiter = Limiter(
    key_func=get_client_ip,
    enabled=settings.RATE_LIMIT_ENABLED,
    default_limits=[settings.RATE_LIMIT_DEFAULT],
)


def checkout_limit():
    """Decorator applying the checkout rate limit, keyed per user."""
    return limiter.limit(settings.RATE_LIMIT_CHECKOUT, key_func=get_user_or_ip)


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    logger.warning(
        "Rate limit exceeded: key=%s path=%s", get_user_or_ip(request), request.url.path
    )

    retry_after = exc.detail.split("per")[0].strip() if exc.detail else "1 minute"

    return JSONResponse(
        status_code=429,
        content={
            "error": "rate_limit_exceeded",
            "message": f"Too many requests. Please try again in {retry_after}.",
            "retry_after": retry_after,
        },
        headers={"Retry-After": "60"},
    )
