"""Master API router mounted at /api/v1."""

from fastapi import APIRouter

from eventra.api.routes import events, export, health, webhooks

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(health.router, tags=["Health"])
api_router.include_router(events.router)
api_router.include_router(webhooks.router)
api_router.include_router(export.router)
