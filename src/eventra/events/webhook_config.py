"""Webhook delivery settings and subscriber snapshots."""

from dataclasses import dataclass, field

SIGNATURE_HEADER = "X-Webhook-Signature"
WEBHOOK_ID_HEADER = "X-Webhook-Id"
DELIVERY_ID_HEADER = "X-Delivery-Id"
EVENT_TYPE_HEADER = "X-Event-Type"


@dataclass(frozen=True)
class WebhookDeliveryConfig:
    """Per-attempt timeout and the fixed retry backoff table (seconds)."""

    timeout: float = 10.0
    retry_delays: tuple[float, ...] = (1.0, 5.0, 15.0)

    def delay_for(self, attempt: int) -> float:
        """Delay after failed attempt number ``attempt`` (1-based)."""
        if not self.retry_delays:
            return 0.0
        return self.retry_delays[min(attempt, len(self.retry_delays)) - 1]


@dataclass(frozen=True)
class WebhookTarget:
    """Detached copy of a subscription, safe to use after its session closes."""

    webhook_id: str
    url: str
    secret: str
    max_retries: int = 3
    headers: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_row(cls, row) -> "WebhookTarget":
        return cls(
            webhook_id=row.webhook_id,
            url=row.url,
            secret=row.secret,
            max_retries=row.retry_count,
            headers=dict(row.headers or {}),
        )
