"""Custom exception classes for the Eventra API."""


class EventraError(Exception):
    """Base exception for Eventra."""

    def __init__(
        self,
        code: str,
        message: str,
        details=None,
        status_code: int = 500,
        headers: dict[str, str] | None = None,
    ):
        self.code = code
        self.message = message
        self.details = details
        self.status_code = status_code
        self.headers = headers or {}
        super().__init__(message)


class ValidationError(EventraError):
    """Caller-correctable input failure (bad batch size, bad date range, bad item)."""

    def __init__(self, message: str, details=None):
        super().__init__("VALIDATION_ERROR", message, details, status_code=400)


class NotFoundError(EventraError):
    """Resource not found."""

    def __init__(self, resource: str, resource_id: str):
        super().__init__(
            "NOT_FOUND",
            f"{resource} '{resource_id}' not found",
            status_code=404,
        )


class ConflictError(EventraError):
    """Resource state conflict."""

    def __init__(self, message: str, details=None):
        super().__init__("CONFLICT", message, details, status_code=409)


class RateLimitExceededError(EventraError):
    """Request rejected by the fixed-window rate limiter."""

    def __init__(self, message: str, headers: dict[str, str], status_code: int = 429, details=None):
        super().__init__("RATE_LIMIT", message, details, status_code=status_code, headers=headers)


class DatabaseError(EventraError):
    """Storage adapter failure. Retryable."""

    def __init__(self, message: str = "Database operation failed", details=None):
        super().__init__("DATABASE_ERROR", message, details, status_code=500)


class ExternalServiceError(EventraError):
    """Failure of an outbound call to a third-party service."""

    def __init__(self, service: str, message: str):
        super().__init__(
            "EXTERNAL_SERVICE_ERROR",
            f"{service} service error: {message}",
            {"service": service},
            status_code=503,
        )
