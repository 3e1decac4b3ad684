from typing import Any, Optional


class RetrieveError(Exception):
    """Base exception for recoverable retrieve errors."""
    pass


class ConfigurationError(RetrieveError):
    """Raised (and recorded on the builder) when a configuration step fails."""
    def __init__(self, reason: str):
        super().__init__(f"invalid URL: {reason}")
        self.reason = reason


class RequestValidationError(RetrieveError):
    """Raised before any network call when the request cannot be sent."""
    pass


class InvalidURLError(RequestValidationError):
    def __init__(self, url: str):
        super().__init__(f"invalid URL: {url}")
        self.url = url


class InvalidMethodError(RequestValidationError):
    def __init__(self, method: str):
        super().__init__(f"invalid method: {method}")
        self.method = method


class StatusCodeError(RetrieveError):
    def __init__(self, status_code: int, url: Optional[str] = None):
        super().__init__(f"received status code {status_code}")
        self.status_code = status_code
        self.url = url


class ContextCancelledError(RetrieveError):
    CANCELED = "context canceled"
    DEADLINE_EXCEEDED = "context deadline exceeded"

    def __init__(self, reason: str = CANCELED):
        super().__init__(reason)
        self.reason = reason

    @property
    def deadline_exceeded(self) -> bool:
        return self.reason == self.DEADLINE_EXCEEDED


class BodyEncodingError(TypeError):
    """
    Raised when a request body cannot be encoded to JSON.

    This is a programming error, not a RetrieveError: it is raised straight
    out of the setter and never recorded on the builder.
    """
    def __init__(self, value: Any, cause: Exception):
        super().__init__(f"failed to encode body to JSON: {cause}")
        self.value = value
        self.cause = cause
