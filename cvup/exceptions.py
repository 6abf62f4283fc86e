import json
from typing import Any, Optional


class ZoomError(Exception):
    """Base error for everything that goes wrong talking to Zoom."""
    pass


class ZoomAuthError(ZoomError):
    """No Zoom credential method is configured, or every method failed."""
    pass


class ZoomApiError(ZoomError):
    """Zoom answered with a non-2xx status."""

    def __init__(self, status: int, detail: Any = None, code: Optional[int] = None):
        self.status = status
        self.detail = detail
        self.code = code
        super().__init__(f"Zoom API Error {status}: {json.dumps(detail, default=str)}")

    @property
    def is_client_error(self) -> bool:
        return 400 <= self.status < 500


class ZoomRateLimitError(ZoomApiError):
    """HTTP 429 from Zoom. Not retried."""

    def __init__(self, retry_after: Optional[str] = None):
        self.retry_after = retry_after
        super().__init__(429, f"rate limit exceeded, retry after: {retry_after or 'N/A'}")

    @property
    def is_client_error(self) -> bool:
        return False


class MissingParameterError(ValueError):
    """A required parameter was not supplied to a /zoom-api action."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Missing required parameter: {name}")
