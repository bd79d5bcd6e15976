"""FastAPI application factory and lifespan management."""

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from eventra.config import settings
from eventra.db.engine import create_db_engine, create_session_factory
from eventra.events.background import BackgroundTasks
from eventra.logging_config import configure_logging

# Configure logging at import time
configure_logging(log_level=settings.log_level, json_output=settings.json_logs and not settings.local_mode)

logger = logging.getLogger(__name__)

# Seconds to wait for in-flight webhook deliveries on shutdown
_SHUTDOWN_DRAIN_TIMEOUT = 30


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application startup and shutdown resources."""
    db_url = settings.effective_database_url
    engine = create_db_engine(db_url)

    # Auto-create tables for SQLite (local dev, no Alembic migrations)
    if "sqlite" in db_url:
        from eventra.db.base import Base
        import eventra.db.models  # noqa: F401 register all ORM models

        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("SQLite tables created (local mode)")

    session_factory = create_session_factory(engine)
    app.state.db_engine = engine
    app.state.db_session_factory = session_factory
    app.state.tasks = BackgroundTasks()
    app.state.webhook_transport = None

    from eventra.api.middleware.rate_limit import setup_rate_limiter
    setup_rate_limiter(app, session_factory)

    # Start background scheduler
    from eventra.workers.scheduler import run_scheduler
    scheduler_task = asyncio.create_task(run_scheduler(app))

    logger.info("Eventra API started (db=%s)", "sqlite" if "sqlite" in db_url else "postgresql")
    yield

    # Shutdown
    scheduler_task.cancel()
    try:
        await scheduler_task
    except asyncio.CancelledError:
        pass
    await app.state.tasks.drain(timeout=_SHUTDOWN_DRAIN_TIMEOUT)
    await engine.dispose()
    logger.info("Eventra API shutdown complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Eventra API",
        version="1.0.0",
        description="Event ingestion, time-bucketed analytics and signed webhook notifications.",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Trace-Id", "X-RateLimit-Limit", "X-RateLimit-Remaining", "X-RateLimit-Reset"],
    )

    # Add middleware (order matters: last added = first executed)
    from eventra.api.middleware.trace_id import TraceIdMiddleware
    app.add_middleware(TraceIdMiddleware)

    # Register error handlers
    from eventra.errors.handlers import register_exception_handlers
    register_exception_handlers(app)

    # Prometheus metrics (internal endpoint)
    try:
        from prometheus_fastapi_instrumentator import Instrumentator
        Instrumentator(
            should_group_status_codes=True,
            should_respect_env_var=False,
            excluded_handlers=["/api/v1/health.*", "/metrics"],
        ).instrument(app).expose(app, endpoint="/metrics", include_in_schema=False)
    except ImportError:
        logger.debug("prometheus-fastapi-instrumentator not installed, /metrics disabled")

    # Import and mount routers
    from eventra.api.router import api_router
    app.include_router(api_router)

    return app


app = create_app()
