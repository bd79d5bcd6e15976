"""Webhook subscription management and delivery log routes."""

from datetime import datetime

from fastapi import APIRouter, Depends, Query

from eventra.api.middleware.rate_limit import enforce_rate_limit
from eventra.dependencies import get_webhook_service
from eventra.models.enums import DeliveryStatus
from eventra.models.webhook import WebhookCreate, WebhookUpdate
from eventra.services.webhook_service import WebhookService

router = APIRouter(tags=["Webhooks"], dependencies=[Depends(enforce_rate_limit)])


@router.post("/webhooks", status_code=201)
async def create_webhook(
    webhook: WebhookCreate,
    service: WebhookService = Depends(get_webhook_service),
) -> dict:
    created = await service.create(webhook)
    return created.model_dump(mode="json", exclude_none=True)


@router.get("/webhooks")
async def list_webhooks(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    enabled: bool | None = None,
    service: WebhookService = Depends(get_webhook_service),
) -> dict:
    webhooks, pagination = await service.list_webhooks(page, page_size, enabled)
    return {
        "webhooks": [w.model_dump(mode="json", exclude_none=True) for w in webhooks],
        "pagination": pagination.model_dump(),
    }


@router.get("/webhooks/deliveries")
async def list_webhook_deliveries(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    webhook_id: str | None = None,
    status: DeliveryStatus | None = None,
    start_time: datetime | None = None,
    end_time: datetime | None = None,
    service: WebhookService = Depends(get_webhook_service),
) -> dict:
    deliveries, pagination = await service.list_deliveries(
        page, page_size, webhook_id, status, start_time, end_time
    )
    return {
        "deliveries": [d.model_dump(mode="json", exclude_none=True) for d in deliveries],
        "pagination": pagination.model_dump(),
    }


@router.get("/webhooks/{webhook_id}")
async def get_webhook(
    webhook_id: str,
    service: WebhookService = Depends(get_webhook_service),
) -> dict:
    webhook = await service.get(webhook_id)
    return webhook.model_dump(mode="json", exclude_none=True)


@router.patch("/webhooks/{webhook_id}")
async def update_webhook(
    webhook_id: str,
    update: WebhookUpdate,
    service: WebhookService = Depends(get_webhook_service),
) -> dict:
    webhook = await service.update(webhook_id, update)
    return webhook.model_dump(mode="json", exclude_none=True)


@router.delete("/webhooks/{webhook_id}", status_code=204)
async def delete_webhook(
    webhook_id: str,
    service: WebhookService = Depends(get_webhook_service),
) -> None:
    await service.delete(webhook_id)
