"""Pydantic models for webhook subscriptions and deliveries."""

import re
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, HttpUrl, field_validator

from eventra.models.enums import DeliveryStatus

MAX_RETRY_COUNT = 10

_HEADER_NAME = re.compile(r"^[!#$%&'*+.^_`|~0-9A-Za-z-]+$")
_HEADER_VALUE = re.compile(r"^[\x20-\x7e\t]*$")


def check_custom_headers(headers: dict[str, str] | None) -> dict[str, str] | None:
    """Custom headers are sent verbatim, so names must be HTTP tokens and values printable ASCII."""
    if headers is None:
        return None
    for name, value in headers.items():
        if not _HEADER_NAME.match(name):
            raise ValueError(f"Invalid header name: {name!r}")
        if not _HEADER_VALUE.match(value):
            raise ValueError(f"Header {name} must contain printable ASCII only")
    return headers


class WebhookCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1, max_length=255)
    url: HttpUrl
    secret: str = Field(..., min_length=16, max_length=64)
    events: list[str] = Field(..., min_length=1)
    headers: dict[str, str] | None = None
    enabled: bool = True
    retry_count: int = Field(3, ge=0, le=MAX_RETRY_COUNT)

    @field_validator("headers")
    @classmethod
    def check_headers(cls, value: dict[str, str] | None) -> dict[str, str] | None:
        return check_custom_headers(value)


class WebhookUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str | None = Field(None, min_length=1, max_length=255)
    url: HttpUrl | None = None
    secret: str | None = Field(None, min_length=16, max_length=64)
    events: list[str] | None = Field(None, min_length=1)
    headers: dict[str, str] | None = None
    enabled: bool | None = None
    retry_count: int | None = Field(None, ge=0, le=MAX_RETRY_COUNT)

    @field_validator("headers")
    @classmethod
    def check_headers(cls, value: dict[str, str] | None) -> dict[str, str] | None:
        return check_custom_headers(value)


class WebhookModel(BaseModel):
    """Webhook subscription as returned by the API. The secret is never exposed."""

    model_config = ConfigDict(from_attributes=True)

    webhook_id: str
    name: str
    url: str
    events: list[str]
    headers: dict[str, str] | None = None
    enabled: bool
    retry_count: int
    created_at: datetime
    updated_at: datetime


class WebhookDeliveryModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    delivery_record_id: str
    webhook_id: str
    delivery_id: str
    event_type: str
    status: DeliveryStatus
    status_code: int | None = None
    response: Any = None
    error: str | None = None
    retry_count: int
    created_at: datetime


class DeliveryResult(BaseModel):
    """Terminal outcome of one trigger-to-subscriber delivery."""

    webhook_id: str
    delivery_id: str
    success: bool
    attempt: int
    status_code: int | None = None
    response: Any = None
    error: str | None = None
