"""Rate limiting backed by the persisted fixed-window counter."""

import hashlib
import logging

from fastapi import Request, Response
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from eventra.config import Settings, settings
from eventra.errors.exceptions import DatabaseError, RateLimitExceededError
from eventra.logging_config import bind_request_context
from eventra.models.rate_limit import RateLimitConfig
from eventra.services.rate_limiter import RateLimitService

logger = logging.getLogger(__name__)

API_KEY_HEADER = "x-api-key"


def setup_rate_limiter(
    app, session_factory: async_sessionmaker[AsyncSession], config: Settings = settings
) -> None:
    """Attach the rate limiter to app state. Disabled limiter is stored as None."""
    app.state.rate_limit_fail_open = config.rate_limit_fail_open
    if not config.rate_limit_enabled:
        app.state.rate_limiter = None
        logger.info("Rate limiting disabled")
        return

    app.state.rate_limiter = RateLimitService(
        session_factory,
        RateLimitConfig(
            window_ms=config.rate_limit_window_ms,
            max=config.rate_limit_max,
            message=config.rate_limit_message,
            status_code=config.rate_limit_status_code,
            headers=config.rate_limit_headers,
        ),
    )
    logger.info(
        "Rate limiter configured (max=%d per %d ms)", config.rate_limit_max, config.rate_limit_window_ms
    )


def get_rate_limit_key(request: Request) -> str:
    """Use a hash of the API key when one is sent, the client IP otherwise."""
    api_key = request.headers.get(API_KEY_HEADER)
    if api_key:
        return f"apikey:{hashlib.sha256(api_key.encode()).hexdigest()[:16]}"
    host = request.client.host if request.client else "unknown"
    return f"ip:{host}"


def get_rate_limit_endpoint(request: Request) -> str:
    route = request.scope.get("route")
    path = getattr(route, "path", None) or request.url.path
    return f"{request.method} {path}"


async def enforce_rate_limit(request: Request, response: Response) -> None:
    """Router dependency: count the request and reject it once over the limit."""
    limiter: RateLimitService | None = getattr(request.app.state, "rate_limiter", None)
    if limiter is None:
        return

    key = get_rate_limit_key(request)
    endpoint = get_rate_limit_endpoint(request)
    bind_request_context(getattr(request.state, "trace_id", "unknown"), client_key=key)
    try:
        decision = await limiter.check_and_consume(key, endpoint)
    except DatabaseError:
        if getattr(request.app.state, "rate_limit_fail_open", False):
            logger.warning("Rate limiter unavailable, allowing request", extra={"key": key, "endpoint": endpoint})
            return
        raise

    headers = limiter.headers(decision)
    if not decision.allowed:
        logger.warning(
            "Rate limit exceeded",
            extra={"key": key, "endpoint": endpoint, "limit": decision.limit, "reset": decision.reset},
        )
        raise RateLimitExceededError(
            limiter.config.message,
            headers=headers,
            status_code=limiter.config.status_code,
            details={"limit": decision.limit, "reset": decision.reset},
        )
    response.headers.update(headers)
