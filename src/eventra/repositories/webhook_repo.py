"""Webhook subscription and delivery repositories."""

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from eventra.db.models.webhook import WebhookDeliveryRow, WebhookRow
from eventra.repositories.base import BaseRepository


class WebhookRepository(BaseRepository):
    def __init__(self, session: AsyncSession):
        super().__init__(session, WebhookRow)

    async def get(self, webhook_id: str) -> WebhookRow | None:
        return await self.get_by_id("webhook_id", webhook_id)

    async def delete(self, webhook_id: str) -> bool:
        return await self.delete_by_id("webhook_id", webhook_id)

    async def list_paginated(
        self, page: int, page_size: int, enabled: bool | None = None
    ) -> tuple[list[WebhookRow], int]:
        conditions = [] if enabled is None else [WebhookRow.enabled == enabled]
        stmt = (
            select(WebhookRow)
            .where(*conditions)
            .order_by(WebhookRow.created_at.desc(), WebhookRow.webhook_id)
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all()), await self.count_where(*conditions)

    async def find_by_event_type(self, event_type: str, enabled_only: bool = True) -> list[WebhookRow]:
        """Return webhooks subscribed to ``event_type``.

        ``events`` is a JSON list, so membership is checked in Python to stay
        portable across PostgreSQL and SQLite.
        """
        stmt = select(WebhookRow).order_by(WebhookRow.created_at, WebhookRow.webhook_id)
        if enabled_only:
            stmt = stmt.where(WebhookRow.enabled == True)  # noqa: E712
        result = await self.session.execute(stmt)
        return [row for row in result.scalars().all() if event_type in (row.events or [])]


class WebhookDeliveryRepository(BaseRepository):
    def __init__(self, session: AsyncSession):
        super().__init__(session, WebhookDeliveryRow)

    async def list_paginated(
        self,
        page: int,
        page_size: int,
        webhook_id: str | None = None,
        status: str | None = None,
        start_time: datetime | None = None,
        end_time: datetime | None = None,
    ) -> tuple[list[WebhookDeliveryRow], int]:
        conditions = []
        if webhook_id:
            conditions.append(WebhookDeliveryRow.webhook_id == webhook_id)
        if status:
            conditions.append(WebhookDeliveryRow.status == status)
        if start_time:
            conditions.append(WebhookDeliveryRow.created_at >= start_time)
        if end_time:
            conditions.append(WebhookDeliveryRow.created_at <= end_time)

        stmt = (
            select(WebhookDeliveryRow)
            .where(*conditions)
            .order_by(WebhookDeliveryRow.created_at.desc(), WebhookDeliveryRow.delivery_record_id)
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all()), await self.count_where(*conditions)
