from fastapi import Request
from fastapi.responses import JSONResponse


class FeedError(Exception):
    """Base exception for activity feed API errors."""

    def __init__(
        self,
        code: str,
        message: str,
        status: int = 500,
        details: dict | None = None,
    ):
        self.code = code
        self.message = message
        self.status = status
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        result = {
            "error": {
                "code": self.code,
                "message": self.message,
                "status": self.status,
            }
        }
        if self.details:
            result["error"]["details"] = self.details
        return result


class TenantRequiredError(FeedError):
    def __init__(self, message: str = "Missing or invalid X-Teacher-Id header.", details: dict | None = None):
        super().__init__(code="tenant_required", message=message, status=401, details=details)


class InvalidRequestError(FeedError):
    def __init__(self, message: str = "Invalid request.", code: str = "invalid_request", details: dict | None = None):
        super().__init__(code=code, message=message, status=400, details=details)


class SourceUnavailableError(FeedError):
    def __init__(self, source: str, message: str | None = None, details: dict | None = None):
        self.source = source
        super().__init__(
            code="source_unavailable",
            message=message or f"The {source} store is unavailable.",
            status=503,
            details=details or {"source": source, "suggestion": "Retry the request shortly."},
        )


async def feed_error_handler(request: Request, exc: FeedError) -> JSONResponse:
    """Global exception handler for FeedError and subclasses."""
    return JSONResponse(status_code=exc.status, content=exc.to_dict())
