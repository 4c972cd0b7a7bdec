from fastapi import FastAPI, Request
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from starlette.responses import JSONResponse

from .config import settings
from .logging_config import logger

SEND_MESSAGE_LIMIT = settings.SEND_MESSAGE_RATE_LIMIT

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[settings.GENERAL_RATE_LIMIT],
    enabled=settings.RATE_LIMIT_ENABLED,
    strategy="fixed-window",  # "moving-window" is more accurate but more resource-intensive
)


async def rate_limit_exceeded_handler(
    request: Request, exc: RateLimitExceeded
) -> JSONResponse:
    """Custom handler for rate limit exceeded exceptions"""
    logger.warning(f"Rate limit exceeded for {get_remote_address(request)} on {request.url.path}")
    return JSONResponse(
        status_code=429,
        content={"detail": "Rate limit exceeded"},
    )


def setup_rate_limiting(app: FastAPI) -> None:
    """Configure rate limiting for the FastAPI application"""
    app.state.limiter = limiter

    if limiter.enabled:
        logger.info(f"Rate limiting is enabled: SendMessage={SEND_MESSAGE_LIMIT}")
    else:
        logger.info("Rate limiting is disabled")

    app.add_middleware(SlowAPIMiddleware)
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
