"""SQLAlchemy ORM models - import all to register with Base.metadata."""

from eventra.db.models.event import EventRow
from eventra.db.models.rate_limit import RateLimitRow
from eventra.db.models.webhook import WebhookDeliveryRow, WebhookRow

__all__ = [
    "EventRow",
    "RateLimitRow",
    "WebhookRow",
    "WebhookDeliveryRow",
]
