"""Webhook fan-out with HMAC-SHA256 signing and fixed-backoff retries."""

import asyncio
import hashlib
import hmac
import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any

import httpx
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from eventra.errors.exceptions import DatabaseError, ExternalServiceError
from eventra.models.enums import DeliveryStatus
from eventra.models.webhook import DeliveryResult
from eventra.repositories.webhook_repo import WebhookDeliveryRepository, WebhookRepository
from eventra.services.id_generator import DELIVERY_PREFIX, DELIVERY_RECORD_PREFIX, generate_id

from .webhook_config import (
    DELIVERY_ID_HEADER,
    EVENT_TYPE_HEADER,
    SIGNATURE_HEADER,
    WEBHOOK_ID_HEADER,
    WebhookDeliveryConfig,
    WebhookTarget,
)

logger = logging.getLogger(__name__)

EVENT_CREATED = "event.created"


def serialize_payload(payload: Any) -> bytes:
    """Compact JSON body. The signature is computed over exactly these bytes."""
    return json.dumps(payload, separators=(",", ":"), default=str).encode("utf-8")


def sign_payload(body: bytes, secret: str) -> str:
    """Compute HMAC-SHA256 signature over the raw JSON body."""
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def verify_signature(body: bytes, secret: str, signature: str) -> bool:
    """Check a received ``X-Webhook-Signature`` value in constant time."""
    return hmac.compare_digest(sign_payload(body, secret), signature)


def _response_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text[:2000] or None


class WebhookDispatcher:
    """Delivers one trigger to every enabled subscriber of its event type.

    Subscribers are delivered to concurrently; each one retries on its own
    schedule, sequentially, reusing a single delivery id. ``trigger`` returns
    once every subscriber has succeeded or exhausted its attempts, and never
    raises for an individual delivery failure.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        config: WebhookDeliveryConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self._session_factory = session_factory
        self.config = config or WebhookDeliveryConfig()
        self._transport = transport
        self._sleep = sleep

    async def trigger(self, event_type: str, payload: Any) -> list[DeliveryResult]:
        targets = await self._subscribers(event_type)
        if not targets:
            return []

        body = serialize_payload(payload)
        async with httpx.AsyncClient(timeout=self.config.timeout, transport=self._transport) as client:
            results = await asyncio.gather(
                *(self._deliver(client, target, event_type, body) for target in targets)
            )

        delivered = sum(1 for r in results if r.success)
        logger.info(
            "Webhook trigger %s finished: %d/%d delivered", event_type, delivered, len(results)
        )
        return list(results)

    async def _subscribers(self, event_type: str) -> list[WebhookTarget]:
        try:
            async with self._session_factory() as session:
                rows = await WebhookRepository(session).find_by_event_type(event_type, enabled_only=True)
                return [WebhookTarget.from_row(row) for row in rows]
        except SQLAlchemyError as exc:
            logger.error("Failed to load webhook subscribers for %s: %s", event_type, exc)
            raise DatabaseError("Failed to load webhook subscribers") from exc

    def _headers(self, target: WebhookTarget, event_type: str, delivery_id: str, body: bytes) -> dict[str, str]:
        return {
            **target.headers,
            "Content-Type": "application/json",
            SIGNATURE_HEADER: sign_payload(body, target.secret),
            WEBHOOK_ID_HEADER: target.webhook_id,
            DELIVERY_ID_HEADER: delivery_id,
            EVENT_TYPE_HEADER: event_type,
        }

    async def _deliver(
        self, client: httpx.AsyncClient, target: WebhookTarget, event_type: str, body: bytes
    ) -> DeliveryResult:
        """Deliver a signed webhook to a single subscriber with retry."""
        delivery_id = generate_id(DELIVERY_PREFIX)
        headers = self._headers(target, event_type, delivery_id, body)
        max_attempts = max(1, target.max_retries)

        attempt = 0
        status_code: int | None = None
        response_body: Any = None
        error: str | None = None

        while attempt < max_attempts:
            attempt += 1
            try:
                resp = await client.post(target.url, content=body, headers=headers)
            except (httpx.HTTPError, httpx.InvalidURL) as exc:
                status_code, response_body = None, None
                error = str(exc) or exc.__class__.__name__
            except Exception as exc:
                # Request could not be built (e.g. unencodable stored header); terminal.
                status_code, response_body = None, None
                error = f"{exc.__class__.__name__}: {exc}"
                logger.exception(
                    "Webhook request could not be sent",
                    extra={"webhook_id": target.webhook_id, "delivery_id": delivery_id, "attempt": attempt},
                )
                break
            else:
                status_code, response_body = resp.status_code, _response_body(resp)
                if resp.is_success:
                    result = DeliveryResult(
                        webhook_id=target.webhook_id,
                        delivery_id=delivery_id,
                        success=True,
                        attempt=attempt,
                        status_code=status_code,
                        response=response_body,
                    )
                    await self._record(result, event_type)
                    return result
                error = f"HTTP {resp.status_code}"

            logger.warning(
                "Webhook delivery failed",
                extra={
                    "webhook_id": target.webhook_id,
                    "delivery_id": delivery_id,
                    "attempt": attempt,
                    "status": status_code,
                    "error": error,
                    "url": target.url,
                },
            )
            if attempt < max_attempts:
                await self._sleep(self.config.delay_for(attempt))

        failure = ExternalServiceError("webhook", error or "delivery failed")
        logger.error(
            "Webhook delivery exhausted: %s",
            failure.message,
            extra={
                "code": failure.code,
                "webhook_id": target.webhook_id,
                "delivery_id": delivery_id,
                "attempts": attempt,
            },
        )
        result = DeliveryResult(
            webhook_id=target.webhook_id,
            delivery_id=delivery_id,
            success=False,
            attempt=attempt,
            status_code=status_code,
            response=response_body,
            error=error,
        )
        await self._record(result, event_type)
        return result

    async def _record(self, result: DeliveryResult, event_type: str) -> None:
        """Persist the terminal outcome. A logging failure must not fail the delivery."""
        try:
            async with self._session_factory() as session:
                await WebhookDeliveryRepository(session).create(
                    delivery_record_id=generate_id(DELIVERY_RECORD_PREFIX),
                    webhook_id=result.webhook_id,
                    delivery_id=result.delivery_id,
                    event_type=event_type,
                    status=(DeliveryStatus.SUCCESS if result.success else DeliveryStatus.FAILED).value,
                    status_code=result.status_code,
                    response=result.response,
                    error=result.error,
                    retry_count=result.attempt,
                )
                await session.commit()
        except SQLAlchemyError:
            logger.exception(
                "Failed to record webhook delivery %s for %s", result.delivery_id, result.webhook_id
            )
