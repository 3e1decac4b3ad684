"""
Request builder.

A RequestBuilder collects the pieces of a single HTTP request through chained
setters and, on ``exec()``, sends it and saves the response body to disk.

The first configuration error freezes the builder: every later setter is a
no-op and ``exec()``/``build_url()`` raise that error.
"""
import asyncio
import io
import logging
import re
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, TypeVar, Union

import httpx

from ..config import DEFAULT_METHOD, RetrieveConfig
from ..context import Context
from ..errors import (
    ConfigurationError,
    ContextCancelledError,
    InvalidMethodError,
    InvalidURLError,
    RetrieveError,
    StatusCodeError,
)
from ..logger import LOG_PREFIX, format_body
from ..types import (
    Body,
    BuilderState,
    BytesBody,
    Errored,
    JsonBody,
    Open,
    TextBody,
    VALID_METHODS,
    body_from_value,
)
from .output import resolve_output_path, write_stream

logger = logging.getLogger(__name__)

Timeout = Union[float, int, timedelta]


def is_valid_method(method: str) -> bool:
    return method.upper() in VALID_METHODS


SCHEME_RE = re.compile(r"[A-Za-z][A-Za-z0-9+.-]*")
AUTHORITY_RE = re.compile(r"^[A-Za-z][A-Za-z0-9+.-]*://([^/?#]*)")

T = TypeVar("T")


def parse_url(url: str) -> httpx.URL:
    """
    Parse ``url`` strictly.

    httpx percent-encodes most stray characters, so control characters,
    whitespace in the host and a malformed scheme are rejected here first.
    Raises httpx.InvalidURL.
    """
    if any(ord(c) < 0x20 or ord(c) == 0x7F for c in url):
        raise httpx.InvalidURL("invalid control character in URL")
    head = url.split("/", 1)[0]
    if ":" in head:
        scheme = head.split(":", 1)[0]
        if not scheme:
            raise httpx.InvalidURL("missing protocol scheme")
        if not SCHEME_RE.fullmatch(scheme):
            raise httpx.InvalidURL("first path segment in URL cannot contain colon")
    authority = AUTHORITY_RE.match(url)
    if authority and any(c.isspace() for c in authority.group(1)):
        raise httpx.InvalidURL("invalid character in host name")
    return httpx.URL(url)


def is_valid_url(url: str) -> bool:
    """Absolute URL with both a scheme and a host."""
    try:
        parsed = parse_url(url)
    except httpx.InvalidURL:
        return False
    return bool(parsed.scheme) and bool(parsed.host)


def _run_blocking(factory: Callable[[], Awaitable[T]]) -> T:
    """Run a coroutine to completion from synchronous code."""
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(factory())
    # Called from inside an event loop: use a private loop on a helper thread.
    with ThreadPoolExecutor(max_workers=1) as pool:
        return pool.submit(asyncio.run, factory()).result()


class RequestBuilder:
    """Fluent builder for a single request whose response is saved to a file."""

    def __init__(self, url: str, config: Optional[RetrieveConfig] = None):
        self._config = config or RetrieveConfig.from_env()
        self._url = url
        self._method: str = DEFAULT_METHOD
        self._headers: Dict[str, str] = {}
        self._body: Optional[io.BytesIO] = None
        self._ctx: Context = Context.background()
        self._timeout: float = self._config.timeout
        self._output: str = self._config.output
        self._ignore_status_code = False
        self._state: BuilderState = Open()

    # State

    @property
    def state(self) -> BuilderState:
        return self._state

    @property
    def error(self) -> Optional[RetrieveError]:
        return self._state.error

    @property
    def _frozen(self) -> bool:
        return isinstance(self._state, Errored)

    def _record(self, error: RetrieveError) -> "RequestBuilder":
        # First error wins
        if not self._frozen:
            logger.warning(f"{LOG_PREFIX} Builder frozen: {error}")
            self._state = Errored(error)
        return self

    # Method

    def set_method(self, method: str) -> "RequestBuilder":
        """
        Set the HTTP method. Supported: GET, POST, PUT, PATCH (any case).
        Validation happens in ``exec()``.
        """
        if self._frozen:
            return self
        self._method = method
        return self

    @property
    def method(self) -> str:
        return self._method

    # Headers

    def set_header(self, key: str, value: str) -> "RequestBuilder":
        if self._frozen:
            return self
        self._headers[key] = value
        return self

    def set_headers(self, headers: Mapping[str, str]) -> "RequestBuilder":
        if self._frozen:
            return self
        self._headers.update(headers)
        return self

    @property
    def headers(self) -> Dict[str, str]:
        """Copy of the configured headers."""
        return dict(self._headers)

    # Body

    def set_body(self, body: Any) -> "RequestBuilder":
        """
        Set the request body.

        A TextBody, BytesBody or JsonBody is used as given. Otherwise a str is
        sent as text, bytes as-is, and any other value is serialized to JSON
        with Content-Type forced to application/json.

        Raises BodyEncodingError if the value cannot be serialized.
        """
        if self._frozen:
            return self
        return self._apply_body(body_from_value(body))

    def set_text(self, text: str) -> "RequestBuilder":
        if self._frozen:
            return self
        return self._apply_body(TextBody(text))

    def set_bytes(self, data: bytes) -> "RequestBuilder":
        if self._frozen:
            return self
        return self._apply_body(BytesBody(bytes(data)))

    def set_json(self, value: Any) -> "RequestBuilder":
        if self._frozen:
            return self
        return self._apply_body(JsonBody(value))

    def _apply_body(self, body: Body) -> "RequestBuilder":
        content = body.encode()
        self._body = io.BytesIO(content)
        if body.content_type is not None:
            for key in [k for k in self._headers if k.lower() == "content-type"]:
                del self._headers[key]
            self._headers["Content-Type"] = body.content_type
        return self

    def get_body(self) -> str:
        """
        Drain the body into a string.

        Draining is destructive: a second call returns "" and ``exec()`` sends
        whatever has not been read yet.
        """
        if self._body is None:
            return ""
        return self._body.read().decode("utf-8", errors="replace")

    # Context / timeout / output

    def set_context(self, ctx: Context) -> "RequestBuilder":
        """Attach a cancellation/deadline carrier to the request."""
        if self._frozen:
            return self
        self._ctx = ctx
        return self

    @property
    def context(self) -> Context:
        return self._ctx

    def set_timeout(self, timeout: Timeout) -> "RequestBuilder":
        """Whole-request timeout in seconds (connect through body read)."""
        if self._frozen:
            return self
        if isinstance(timeout, timedelta):
            timeout = timeout.total_seconds()
        self._timeout = timeout
        return self

    @property
    def timeout(self) -> float:
        return self._timeout

    def set_output(self, output: Union[str, Path]) -> "RequestBuilder":
        """File path, or existing directory, that receives the response body."""
        if self._frozen:
            return self
        self._output = str(output)
        return self

    @property
    def output(self) -> str:
        return self._output

    # Query

    def set_query_param(self, key: str, value: str) -> "RequestBuilder":
        return self.set_query_params({key: value})

    def set_query_params(self, params: Mapping[str, str]) -> "RequestBuilder":
        """Merge params into the URL query, replacing existing keys."""
        if self._frozen:
            return self

        try:
            parsed = parse_url(self._url)
        except httpx.InvalidURL as e:
            return self._record(ConfigurationError(str(e)))

        query = parsed.params
        for key, value in params.items():
            query = query.set(key, value)
        ordered = sorted(query.multi_items(), key=lambda item: item[0])
        self._url = str(parsed.copy_with(params=ordered))
        return self

    # Status

    def ignore_status_code(self) -> "RequestBuilder":
        """Save the body even when the response status is >= 400."""
        if self._frozen:
            return self
        self._ignore_status_code = True
        return self

    @property
    def is_ignore_status_code(self) -> bool:
        return self._ignore_status_code

    # URL

    @property
    def url(self) -> str:
        return self._url

    def build_url(self) -> str:
        """Canonical form of the current URL."""
        if isinstance(self._state, Errored):
            raise self._state.error
        try:
            return str(parse_url(self._url))
        except httpx.InvalidURL as e:
            raise InvalidURLError(self._url) from e

    # Execution

    def _request_headers(self) -> Dict[str, str]:
        headers = dict(self._headers)
        user_agent = self._config.user_agent
        if user_agent and not any(k.lower() == "user-agent" for k in headers):
            headers["User-Agent"] = user_agent
        return headers

    def exec(self) -> Path:
        """
        Send the request and write the response body to the output path.

        Returns the path written. Raises the sticky configuration error,
        a RequestValidationError, StatusCodeError, ContextCancelledError,
        or the underlying httpx/OSError.
        """
        if isinstance(self._state, Errored):
            raise self._state.error

        if not is_valid_url(self._url):
            raise InvalidURLError(self._url)

        if not is_valid_method(self._method):
            raise InvalidMethodError(self._method)

        ctx = self._ctx
        ctx.raise_if_done()

        content = self._body.read() if self._body is not None else None
        headers = self._request_headers()

        logger.debug(f"{LOG_PREFIX} Request: {self._method} {self._url} body={format_body(content)}")

        return _run_blocking(lambda: self._exec(ctx, headers, content))

    async def _exec(self, ctx: Context, headers: Dict[str, str], content: Optional[bytes]) -> Path:
        """
        Run the transfer under one wall-clock limit.

        The limit is the builder timeout, or the context's remaining time when
        that is sooner. It covers connect, response headers and the whole body.
        A context cancelled from another thread cancels this task, which
        interrupts whatever network read is pending.
        """
        timeout = self._timeout
        remaining = ctx.remaining()
        ctx_bound = remaining is not None and remaining <= timeout
        if ctx_bound:
            timeout = remaining

        loop = asyncio.get_running_loop()
        task = asyncio.current_task()

        def on_cancel() -> None:
            try:
                loop.call_soon_threadsafe(task.cancel)
            except RuntimeError:
                # Loop already closed: the transfer has finished.
                return

        ctx.add_done_callback(on_cancel)
        try:
            return await asyncio.wait_for(self._transfer(ctx, headers, content), timeout)
        except asyncio.CancelledError:
            err = ctx.err()
            if err is None:
                raise
            logger.error(f"{LOG_PREFIX} Request aborted: {err}")
            raise err from None
        except asyncio.TimeoutError:
            if ctx_bound:
                err = ctx.err() or ContextCancelledError(ContextCancelledError.DEADLINE_EXCEEDED)
                logger.error(f"{LOG_PREFIX} Request aborted: {err}")
                raise err from None
            logger.error(f"{LOG_PREFIX} Request timed out after {timeout}s")
            raise httpx.TimeoutException(f"Request exceeded its timeout of {timeout}s") from None
        finally:
            ctx.remove_done_callback(on_cancel)

    async def _transfer(self, ctx: Context, headers: Dict[str, str], content: Optional[bytes]) -> Path:
        async with httpx.AsyncClient(
            timeout=httpx.Timeout(self._timeout),
            follow_redirects=self._config.follow_redirects,
        ) as client:
            request = client.build_request(self._method, self._url, headers=headers, content=content)
            try:
                response = await client.send(request, stream=True)
            except httpx.HTTPError as e:
                logger.error(f"{LOG_PREFIX} Request failed: {e}")
                raise

            try:
                logger.debug(f"{LOG_PREFIX} Response: {response.status_code} {response.reason_phrase}")
                ctx.raise_if_done()

                if not self._ignore_status_code and response.status_code > 399:
                    raise StatusCodeError(response.status_code, self._url)

                path = resolve_output_path(self._output, response.headers, self._url)
                await write_stream(path, response.aiter_bytes(chunk_size=self._config.chunk_size), ctx)
            finally:
                await response.aclose()

        return path

    def __repr__(self) -> str:
        return f"RequestBuilder(method={self._method!r}, url={self._url!r}, output={self._output!r})"


def new(url: str, config: Optional[RetrieveConfig] = None) -> RequestBuilder:
    """Start a builder for ``url`` with default settings."""
    return RequestBuilder(url, config)
