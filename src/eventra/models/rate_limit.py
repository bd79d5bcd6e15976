"""Pydantic models for the fixed-window rate limiter."""

from pydantic import BaseModel


class RateLimitConfig(BaseModel):
    window_ms: int = 60_000
    max: int = 100
    message: str = "Too many requests, please try again later."
    status_code: int = 429
    headers: bool = True


class RateLimitDecision(BaseModel):
    allowed: bool
    limit: int
    remaining: int
    reset: int  # epoch seconds
