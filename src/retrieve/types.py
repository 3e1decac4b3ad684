"""
Core type definitions for retrieve.
"""
import json
from dataclasses import dataclass
from typing import Any, Literal, Optional, Tuple, Union

from .errors import BodyEncodingError, RetrieveError

# HTTP Methods
HttpMethod = Literal["GET", "POST", "PUT", "PATCH"]

VALID_METHODS: Tuple[str, ...] = ("GET", "POST", "PUT", "PATCH")

JSON_CONTENT_TYPE = "application/json"


@dataclass(frozen=True)
class TextBody:
    """Body sent verbatim as UTF-8 text."""
    text: str

    @property
    def content_type(self) -> Optional[str]:
        return None

    def encode(self) -> bytes:
        return self.text.encode("utf-8")


@dataclass(frozen=True)
class BytesBody:
    """Body sent as raw bytes."""
    data: bytes

    @property
    def content_type(self) -> Optional[str]:
        return None

    def encode(self) -> bytes:
        return bytes(self.data)


@dataclass(frozen=True)
class JsonBody:
    """Body serialized to JSON before sending."""
    value: Any

    @property
    def content_type(self) -> Optional[str]:
        return JSON_CONTENT_TYPE

    def encode(self) -> bytes:
        try:
            # Compact separators, no NaN/Infinity
            text = json.dumps(self.value, separators=(",", ":"), allow_nan=False)
        except (TypeError, ValueError) as e:
            raise BodyEncodingError(self.value, e) from e
        return text.encode("utf-8")


Body = Union[TextBody, BytesBody, JsonBody]


def body_from_value(value: Any) -> Body:
    """
    Pick the body variant for a plain value.

    - Body variants are returned unchanged
    - str -> TextBody
    - bytes-like -> BytesBody
    - anything else -> JsonBody
    """
    if isinstance(value, (TextBody, BytesBody, JsonBody)):
        return value
    if isinstance(value, str):
        return TextBody(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return BytesBody(bytes(value))
    return JsonBody(value)


@dataclass(frozen=True)
class Open:
    """Builder accepts configuration."""

    @property
    def error(self) -> None:
        return None


@dataclass(frozen=True)
class Errored:
    """Builder is frozen by the first configuration error."""
    error: RetrieveError


BuilderState = Union[Open, Errored]
