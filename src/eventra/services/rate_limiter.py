"""Fixed-window rate limiter backed by the persisted counter table."""

import logging
from collections.abc import Callable
from datetime import datetime, timedelta

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from eventra.db.base import utcnow
from eventra.errors.exceptions import DatabaseError, ValidationError
from eventra.models.rate_limit import RateLimitConfig, RateLimitDecision
from eventra.repositories.rate_limit_repo import RateLimitRepository

logger = logging.getLogger(__name__)


class RateLimitService:
    """Counts requests per (key, endpoint) in fixed windows.

    Requests over the limit still increment the counter, so ``count`` keeps
    tracking true demand while ``remaining`` bottoms out at zero. Storage
    failures surface as ``DatabaseError``; allowing or blocking traffic when
    the limiter is down is left to the caller.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        config: RateLimitConfig | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        config = config or RateLimitConfig()
        if config.window_ms <= 0:
            raise ValidationError("Window size must be greater than 0")
        if config.max <= 0:
            raise ValidationError("Maximum requests must be greater than 0")
        self.config = config
        self._session_factory = session_factory
        self._clock = clock

    async def check_and_consume(self, key: str, endpoint: str) -> RateLimitDecision:
        now = self._clock()
        window_reset_at = now + timedelta(milliseconds=self.config.window_ms)
        try:
            async with self._session_factory() as session:
                count, reset_at = await RateLimitRepository(session).consume(key, endpoint, now, window_reset_at)
                await session.commit()
        except SQLAlchemyError as exc:
            logger.error("Rate limit check failed", extra={"key": key, "endpoint": endpoint, "error": str(exc)})
            raise DatabaseError("Failed to check rate limit") from exc

        return RateLimitDecision(
            allowed=count <= self.config.max,
            limit=self.config.max,
            remaining=max(0, self.config.max - count),
            reset=int(reset_at.timestamp()),
        )

    def headers(self, decision: RateLimitDecision) -> dict[str, str]:
        if not self.config.headers:
            return {}
        return {
            "X-RateLimit-Limit": str(decision.limit),
            "X-RateLimit-Remaining": str(decision.remaining),
            "X-RateLimit-Reset": str(decision.reset),
        }

    async def cleanup(self) -> int:
        """Delete counters whose window has already closed."""
        try:
            async with self._session_factory() as session:
                deleted = await RateLimitRepository(session).delete_expired(self._clock())
                await session.commit()
        except SQLAlchemyError as exc:
            logger.error("Error cleaning up rate limits: %s", exc)
            raise DatabaseError("Failed to clean up rate limits") from exc
        if deleted:
            logger.info("Removed %d expired rate-limit windows", deleted)
        return deleted
