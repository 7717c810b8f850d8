"""Error taxonomy for the chat pipeline.

Every failure the pipeline can signal to a caller is a ChatError subclass.
The API layer renders them with one exception handler (see bizchat.main) as a
flat JSON body: {"error": ..., "message": ..., **extra}.
"""

from typing import Any


class ChatError(Exception):
    """Base class: carries the HTTP status and the JSON payload for the client."""

    status_code: int = 500
    error: str = "Something went wrong. Please try again."

    def __init__(self, message: str | None = None, **extra: Any):
        self.message = message
        self.extra = extra
        super().__init__(message or self.error)

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"error": self.error}
        if self.message:
            payload["message"] = self.message
        payload.update(self.extra)
        return payload

    def headers(self) -> dict[str, str] | None:
        return None


class ValidationError(ChatError):
    """Missing or malformed request input."""

    status_code = 400
    error = "Invalid request"

    def __init__(self, error: str, **extra: Any):
        self.error = error
        super().__init__(None, **extra)


class TierMismatch(ChatError):
    """Business is on the wrong tier for this endpoint; payload tells the caller where to go."""

    status_code = 400

    def __init__(self, error: str, **extra: Any):
        self.error = error
        super().__init__(None, **extra)


class NotFound(ChatError):
    status_code = 404
    error = "Business not found"


class LimitReached(ChatError):
    """Monthly message quota of the business is used up."""

    status_code = 429
    error = "LIMIT_REACHED"
    default_message = (
        "This assistant has reached its monthly message limit. "
        "Please contact the business directly."
    )

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message, limitReached=True)


class RateLimited(ChatError):
    """Upstream model is overloaded; retryable."""

    status_code = 429
    error = "Rate limits exceeded, please try again later."

    def __init__(self, retry_after: int | None = None):
        super().__init__(None, rateLimited=True)
        self.retry_after = retry_after

    def headers(self) -> dict[str, str] | None:
        if self.retry_after is None:
            return None
        return {"Retry-After": str(self.retry_after)}


class QuotaExceeded(ChatError):
    """Upstream billing or quota is exhausted; needs operator action."""

    status_code = 402
    error = "AI usage quota exceeded. Please contact the business directly."

    def __init__(self, message: str | None = None):
        super().__init__(message, quotaExceeded=True)


class UpstreamError(ChatError):
    status_code = 500
    error = "AI service error"


class InternalError(ChatError):
    status_code = 500
    error = "Something went wrong. Please try again."
