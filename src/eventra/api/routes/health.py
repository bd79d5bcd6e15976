"""Health check endpoints."""

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

router = APIRouter()


@router.get("/health")
async def health_check():
    """Return service health status."""
    return {"status": "healthy", "service": "eventra-api", "version": "1.0.0"}


@router.get("/health/live")
async def liveness():
    """Liveness probe: 200 whenever the process is serving requests."""
    return {"status": "alive"}


@router.get("/health/ready")
async def readiness(request: Request):
    """Readiness probe: checks database connectivity and pending webhook work."""
    checks: dict[str, str] = {}
    overall_ok = True

    try:
        session_factory = request.app.state.db_session_factory
        async with session_factory() as session:
            await session.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except SQLAlchemyError as exc:
        checks["database"] = f"error: {exc}"
        overall_ok = False

    tasks = getattr(request.app.state, "tasks", None)
    checks["pending_webhook_tasks"] = str(tasks.pending if tasks is not None else 0)
    checks["rate_limiter"] = "enabled" if getattr(request.app.state, "rate_limiter", None) else "disabled"

    status_code = 200 if overall_ok else 503
    return JSONResponse(
        status_code=status_code,
        content={
            "status": "ready" if overall_ok else "not_ready",
            "checks": checks,
        },
    )
