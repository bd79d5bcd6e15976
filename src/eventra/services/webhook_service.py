"""Webhook subscription management and delivery log queries."""

import logging
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from eventra.errors.exceptions import NotFoundError
from eventra.models.common import Pagination
from eventra.models.enums import DeliveryStatus
from eventra.models.webhook import WebhookCreate, WebhookDeliveryModel, WebhookModel, WebhookUpdate
from eventra.repositories.webhook_repo import WebhookDeliveryRepository, WebhookRepository
from eventra.services.id_generator import WEBHOOK_PREFIX, generate_id, is_generated_id
from eventra.services.monitoring import monitored

logger = logging.getLogger(__name__)


class WebhookService:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def _create(self, webhook: WebhookCreate) -> WebhookModel:
        async with self._session_factory() as session:
            row = await WebhookRepository(session).create(
                webhook_id=generate_id(WEBHOOK_PREFIX),
                name=webhook.name,
                url=str(webhook.url),
                secret=webhook.secret,
                events=list(webhook.events),
                headers=webhook.headers,
                enabled=webhook.enabled,
                retry_count=webhook.retry_count,
            )
            await session.commit()
            logger.info("Webhook created", extra={"webhook_id": row.webhook_id, "events": row.events})
            return WebhookModel.model_validate(row)

    async def create(self, webhook: WebhookCreate) -> WebhookModel:
        return await monitored("create_webhook", self._create, webhook)

    async def _get(self, webhook_id: str) -> WebhookModel:
        if not is_generated_id(webhook_id, WEBHOOK_PREFIX):
            raise NotFoundError("Webhook", webhook_id)
        async with self._session_factory() as session:
            row = await WebhookRepository(session).get(webhook_id)
            if row is None:
                raise NotFoundError("Webhook", webhook_id)
            return WebhookModel.model_validate(row)

    async def get(self, webhook_id: str) -> WebhookModel:
        return await monitored("get_webhook", self._get, webhook_id)

    async def _update(self, webhook_id: str, update: WebhookUpdate) -> WebhookModel:
        # Only headers may be cleared; other fields ignore an explicit null.
        changes = {
            k: v for k, v in update.model_dump(exclude_unset=True).items() if v is not None or k == "headers"
        }
        if "url" in changes:
            changes["url"] = str(changes["url"])

        async with self._session_factory() as session:
            repo = WebhookRepository(session)
            row = await repo.get(webhook_id)
            if row is None:
                raise NotFoundError("Webhook", webhook_id)
            await repo.update(row, **changes)
            await session.commit()
            await session.refresh(row)
            return WebhookModel.model_validate(row)

    async def update(self, webhook_id: str, update: WebhookUpdate) -> WebhookModel:
        return await monitored("update_webhook", self._update, webhook_id, update)

    async def _delete(self, webhook_id: str) -> None:
        async with self._session_factory() as session:
            if not await WebhookRepository(session).delete(webhook_id):
                raise NotFoundError("Webhook", webhook_id)
            await session.commit()
        logger.info("Webhook deleted", extra={"webhook_id": webhook_id})

    async def delete(self, webhook_id: str) -> None:
        await monitored("delete_webhook", self._delete, webhook_id)

    async def _list(
        self, page: int, page_size: int, enabled: bool | None
    ) -> tuple[list[WebhookModel], Pagination]:
        async with self._session_factory() as session:
            rows, total = await WebhookRepository(session).list_paginated(page, page_size, enabled)
            return [WebhookModel.model_validate(r) for r in rows], Pagination.build(page, page_size, total)

    async def list_webhooks(
        self, page: int = 1, page_size: int = 20, enabled: bool | None = None
    ) -> tuple[list[WebhookModel], Pagination]:
        return await monitored("list_webhooks", self._list, page, page_size, enabled)

    async def _list_deliveries(
        self,
        page: int,
        page_size: int,
        webhook_id: str | None,
        status: DeliveryStatus | None,
        start_time: datetime | None,
        end_time: datetime | None,
    ) -> tuple[list[WebhookDeliveryModel], Pagination]:
        async with self._session_factory() as session:
            rows, total = await WebhookDeliveryRepository(session).list_paginated(
                page,
                page_size,
                webhook_id=webhook_id,
                status=status.value if status else None,
                start_time=start_time,
                end_time=end_time,
            )
            return (
                [WebhookDeliveryModel.model_validate(r) for r in rows],
                Pagination.build(page, page_size, total),
            )

    async def list_deliveries(
        self,
        page: int = 1,
        page_size: int = 20,
        webhook_id: str | None = None,
        status: DeliveryStatus | None = None,
        start_time: datetime | None = None,
        end_time: datetime | None = None,
    ) -> tuple[list[WebhookDeliveryModel], Pagination]:
        return await monitored(
            "list_webhook_deliveries",
            self._list_deliveries,
            page,
            page_size,
            webhook_id,
            status,
            start_time,
            end_time,
        )
