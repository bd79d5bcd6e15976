"""Chunked, bounded-concurrency batch event ingestion."""

import asyncio
import logging

from eventra.errors.exceptions import ValidationError
from eventra.events.background import BackgroundTasks
from eventra.events.webhook_dispatcher import EVENT_CREATED, WebhookDispatcher
from eventra.models.enums import ItemStatus
from eventra.models.event import BatchSummary, EventInput, EventModel, ItemResult
from eventra.services.event_store import EventStore
from eventra.services.id_generator import FAILED_ITEM_PREFIX, generate_id

logger = logging.getLogger(__name__)


class BatchIngestionCoordinator:
    """Creates a batch of events chunk by chunk, wave by wave.

    A wave is up to ``max_concurrent_chunks`` chunks run together; the next
    wave starts only after every create in the current one has finished, so
    at most ``max_concurrent_chunks * chunk_size`` creates are in flight.
    """

    def __init__(
        self,
        store: EventStore,
        dispatcher: WebhookDispatcher | None = None,
        tasks: BackgroundTasks | None = None,
        chunk_size: int = 100,
        max_concurrent_chunks: int = 5,
        max_batch_size: int = 1000,
    ):
        if chunk_size <= 0 or max_concurrent_chunks <= 0 or max_batch_size <= 0:
            raise ValueError("chunk_size, max_concurrent_chunks and max_batch_size must be positive")
        self.store = store
        self.dispatcher = dispatcher
        self.tasks = tasks or BackgroundTasks()
        self.chunk_size = chunk_size
        self.max_concurrent_chunks = max_concurrent_chunks
        self.max_batch_size = max_batch_size

    def validate(self, items: list[EventInput]) -> None:
        if not items:
            raise ValidationError("Batch must contain at least one event")
        if len(items) > self.max_batch_size:
            raise ValidationError(
                f"Batch size {len(items)} exceeds the maximum of {self.max_batch_size} events",
                {"max_batch_size": self.max_batch_size, "received": len(items)},
            )

    async def ingest_batch(
        self,
        items: list[EventInput],
        chunk_size: int | None = None,
        max_concurrent_chunks: int | None = None,
    ) -> list[ItemResult]:
        """Create every item and return one result per item, in input order."""
        self.validate(items)
        if chunk_size is None:
            chunk_size = self.chunk_size
        if max_concurrent_chunks is None:
            max_concurrent_chunks = self.max_concurrent_chunks
        if chunk_size <= 0 or max_concurrent_chunks <= 0:
            raise ValidationError(
                "chunk_size and max_concurrent_chunks must be positive",
                {"chunk_size": chunk_size, "max_concurrent_chunks": max_concurrent_chunks},
            )

        chunks = [items[i:i + chunk_size] for i in range(0, len(items), chunk_size)]
        results: list[ItemResult] = []
        for wave_start in range(0, len(chunks), max_concurrent_chunks):
            wave = chunks[wave_start:wave_start + max_concurrent_chunks]
            # gather() keeps submission order, so results land back in position.
            wave_results = await asyncio.gather(*(self._process_chunk(chunk) for chunk in wave))
            for chunk_results in wave_results:
                results.extend(chunk_results)

        self._notify_created([r.event for r in results if r.event is not None])
        return results

    async def _process_chunk(self, chunk: list[EventInput]) -> list[ItemResult]:
        return list(await asyncio.gather(*(self._create_one(item) for item in chunk)))

    async def _create_one(self, item: EventInput) -> ItemResult:
        try:
            event = await self.store.create(item)
        except Exception as exc:
            logger.error(
                "Failed to create event in batch",
                extra={"event_type": item.event_type, "source": item.source, "error": str(exc)},
            )
            return ItemResult(
                status=ItemStatus.FAILED,
                id=generate_id(FAILED_ITEM_PREFIX),
                error=str(exc) or exc.__class__.__name__,
                input=item,
            )
        return ItemResult(status=ItemStatus.CREATED, id=event.event_id, event=event)

    def _notify_created(self, events: list[EventModel]) -> None:
        if self.dispatcher is None:
            return
        for event in events:
            self.tasks.spawn(
                self.dispatcher.trigger(EVENT_CREATED, event.model_dump(mode="json")),
                name=f"webhooks:{event.event_id}",
            )

    @staticmethod
    def summarize(results: list[ItemResult]) -> BatchSummary:
        failed = sum(1 for r in results if r.status == ItemStatus.FAILED)
        return BatchSummary(total=len(results), success=len(results) - failed, failed=failed)
