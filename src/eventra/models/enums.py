"""String enums shared by API models and ORM rows."""

from enum import StrEnum


class EventStatus(StrEnum):
    PENDING = "pending"
    PROCESSED = "processed"
    FAILED = "failed"
    ARCHIVED = "archived"


class TimeInterval(StrEnum):
    ONE_MINUTE = "1m"
    FIVE_MINUTES = "5m"
    FIFTEEN_MINUTES = "15m"
    ONE_HOUR = "1h"
    ONE_DAY = "1d"


class DeliveryStatus(StrEnum):
    SUCCESS = "success"
    FAILED = "failed"
    PENDING = "pending"


class ItemStatus(StrEnum):
    CREATED = "created"
    FAILED = "failed"


class SortDirection(StrEnum):
    ASC = "asc"
    DESC = "desc"


class ExportFormat(StrEnum):
    JSON = "json"
    CSV = "csv"
