"""
Retrieve - fluent HTTP request builder that saves responses to disk
"""

__version__ = "0.1.0"

from .config import RetrieveConfig, DEFAULT_TIMEOUT, DEFAULT_OUTPUT
from .context import Context, background
from .core.request import RequestBuilder, new
from .errors import (
    RetrieveError,
    ConfigurationError,
    RequestValidationError,
    InvalidURLError,
    InvalidMethodError,
    StatusCodeError,
    ContextCancelledError,
    BodyEncodingError,
)
from .logger import setup_logging
from .types import HttpMethod, VALID_METHODS, TextBody, BytesBody, JsonBody, Open, Errored

__all__ = [
    "new", "RequestBuilder",
    "RetrieveConfig", "DEFAULT_TIMEOUT", "DEFAULT_OUTPUT",
    "Context", "background",
    "RetrieveError", "ConfigurationError", "RequestValidationError",
    "InvalidURLError", "InvalidMethodError", "StatusCodeError",
    "ContextCancelledError", "BodyEncodingError",
    "setup_logging",
    "HttpMethod", "VALID_METHODS", "TextBody", "BytesBody", "JsonBody", "Open", "Errored",
]
