"""Background scheduler for periodic maintenance jobs.

Sweeps expired rate-limit windows and, on PostgreSQL, refreshes the
``events_*`` aggregate views.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from eventra.config import settings
from eventra.services.aggregation import INTERVAL_CONFIGS
from eventra.services.event_store import EventStore

logger = logging.getLogger(__name__)


async def sweep_rate_limits(app) -> None:
    limiter = getattr(app.state, "rate_limiter", None)
    if limiter is None:
        return
    await limiter.cleanup()


async def refresh_aggregate_views(app) -> None:
    session_factory = getattr(app.state, "db_session_factory", None)
    if not session_factory:
        return
    views = [config.view_name for config in INTERVAL_CONFIGS.values()]
    await EventStore(session_factory).refresh_views(views)


async def _run_periodically(name: str, interval: float, job: Callable[[], Awaitable[None]]) -> None:
    logger.info("Scheduled job %s started (interval=%ss)", name, interval)
    while True:
        try:
            await asyncio.sleep(interval)
            await job()
        except asyncio.CancelledError:
            logger.info("Scheduled job %s stopped", name)
            raise
        except Exception as exc:
            logger.exception("Scheduler error in %s: %s", name, exc)
            # Continue running despite errors


async def run_scheduler(app) -> None:
    """Background task running every maintenance job until cancelled."""
    jobs = [
        _run_periodically(
            "rate_limit_cleanup",
            settings.rate_limit_cleanup_interval_seconds,
            lambda: sweep_rate_limits(app),
        ),
    ]
    if "sqlite" not in settings.effective_database_url:
        jobs.append(
            _run_periodically(
                "aggregate_view_refresh",
                settings.aggregate_refresh_interval_seconds,
                lambda: refresh_aggregate_views(app),
            )
        )
    try:
        await asyncio.gather(*jobs)
    except asyncio.CancelledError:
        logger.info("Scheduler stopped")
