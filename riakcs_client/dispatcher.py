"""Dispatcher - sends a compiled RequestDescriptor and captures the raw response.

The Dispatcher performs the single network round trip of an execute() call
using httpx, and converts every transport failure into a TransportError.
There is no retry: a failed call surfaces as-is.
"""

from __future__ import annotations

import json
import logging
import threading
from typing import Any

import httpx

from riakcs_client.errors import TransportError
from riakcs_client.models import Param, RawResponse, RequestDescriptor
from riakcs_client.signer import canonical_pair

logger = logging.getLogger(__name__)

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"
JSON_CONTENT_TYPE = "application/json"


def _sanitize_header_value(value: str) -> str:
    """Replace non-ASCII characters with '?' (RFC 7230 header values)."""
    return value.encode("ascii", errors="replace").decode("ascii")


def build_query_string(params: list[Param]) -> str:
    """Join params in descriptor order; bare flags are emitted as just their name."""
    return "&".join(canonical_pair(p) for p in params)


def build_url(descriptor: RequestDescriptor) -> str:
    url = f"{descriptor.protocol}://{descriptor.host}{descriptor.path}"
    if descriptor.params:
        url += "?" + build_query_string(descriptor.params)
    return url


def build_body(descriptor: RequestDescriptor) -> tuple[bytes | None, dict[str, str]]:
    """Return the request content and any headers it implies.

    JSON fields win over forms, which win over a raw body. Content-Length
    always describes the bytes returned here.
    """
    headers: dict[str, str] = {}
    if descriptor.json_fields:
        headers["Content-Type"] = JSON_CONTENT_TYPE
        content = json.dumps(descriptor.json_fields).encode("utf-8")
    elif descriptor.forms:
        headers["Content-Type"] = FORM_CONTENT_TYPE
        content = build_query_string(descriptor.forms).encode("utf-8")
    elif descriptor.body is None:
        return None, headers
    elif isinstance(descriptor.body, bytes):
        content = descriptor.body
    else:
        content = descriptor.body.encode("utf-8")
    headers["Content-Length"] = str(len(content))
    return content, headers


def build_headers(descriptor: RequestDescriptor, implied: dict[str, str]) -> dict[str, str]:
    """Merge descriptor headers with the implied ones.

    Explicit headers win, except Content-Length, which is taken from the
    content actually sent.
    """
    headers = {
        k: _sanitize_header_value(v)
        for k, v in descriptor.headers.items()
        if k.lower() != "content-length"
    }
    present = {k.lower() for k in headers}
    for key, value in implied.items():
        if key.lower() not in present:
            headers[key] = value
    return headers


def convert_response(response: httpx.Response) -> RawResponse:
    """Convert an httpx Response to a RawResponse.

    Header keys are lowercase; repeated headers are joined with ", ".
    """
    headers: dict[str, str] = {}
    for key, value in response.headers.multi_items():
        key_lower = key.lower()
        if key_lower in headers:
            headers[key_lower] = f"{headers[key_lower]}, {value}"
        else:
            headers[key_lower] = value
    return RawResponse(
        status_code=response.status_code,
        headers=headers,
        content=response.content,
    )


def _transport_error(target: str, e: Exception) -> TransportError:
    if isinstance(e, httpx.TimeoutException):
        message = f"request timeout: {e}"
    elif isinstance(e, httpx.ConnectError):
        message = f"connection error: {e}"
    elif isinstance(e, UnicodeEncodeError):
        message = (
            f"encoding error: non-ASCII characters in request. "
            f"Character: {e.object[e.start:e.end]!r} at position {e.start}"
        )
    else:
        message = f"request error: {e}"
    logger.debug("transport failure for %s: %s", target, message)
    return TransportError(message, original_error=e)


def _target(descriptor: RequestDescriptor) -> str:
    # Without the query string, which carries the signature
    return f"{descriptor.method} {descriptor.protocol}://{descriptor.host}{descriptor.path}"


# Transport failures that are reported as TransportError. Cancellation
# (asyncio.CancelledError) is a BaseException and passes through untouched.
_TRANSPORT_ERRORS = (httpx.RequestError, httpx.InvalidURL, UnicodeEncodeError)


class Dispatcher:
    """Sends RequestDescriptors over httpx.

    ``connection_agent`` selects connection reuse:
    - ``None``: a client owned by this dispatcher, created on first use.
    - ``False``: a fresh client per request, closed right after it.
    - an ``httpx.Client`` / ``httpx.AsyncClient``: used as-is, never closed here.

    Usage:
        with Dispatcher(timeout=10.0) as dispatcher:
            raw = dispatcher.send(descriptor)
    """

    def __init__(
        self,
        timeout: float = 30.0,
        connection_agent: httpx.Client | httpx.AsyncClient | bool | None = None,
    ) -> None:
        if connection_agent is True:
            connection_agent = None
        self._timeout = timeout
        self._connection_agent = connection_agent
        self._client: httpx.Client | None = None
        self._async_client: httpx.AsyncClient | None = None
        self._lock = threading.Lock()

    def __enter__(self) -> "Dispatcher":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        self.close()

    def close(self) -> None:
        """Close the dispatcher-owned sync client.

        The async client must be closed with ``aclose()``.
        """
        with self._lock:
            client, self._client = self._client, None
        if client is not None:
            client.close()

    async def aclose(self) -> None:
        with self._lock:
            client, self._async_client = self._async_client, None
        try:
            if client is not None:
                await client.aclose()
        finally:
            self.close()

    def _shared_client(self) -> httpx.Client:
        with self._lock:
            if self._client is None:
                self._client = httpx.Client()
            return self._client

    def _shared_async_client(self) -> httpx.AsyncClient:
        with self._lock:
            if self._async_client is None:
                self._async_client = httpx.AsyncClient()
            return self._async_client

    def _request_kwargs(
        self, descriptor: RequestDescriptor, timeout: float | None
    ) -> dict[str, Any]:
        content, implied = build_body(descriptor)
        return {
            "method": descriptor.method,
            "url": build_url(descriptor),
            "headers": build_headers(descriptor, implied),
            "content": content,
            "timeout": timeout if timeout is not None else self._timeout,
        }

    def send(self, descriptor: RequestDescriptor, timeout: float | None = None) -> RawResponse:
        """Send the request and block until the response arrives.

        Raises:
            TransportError: If the request fails (DNS, connection, timeout).
        """
        kwargs = self._request_kwargs(descriptor, timeout)
        agent = self._connection_agent
        try:
            if agent is False:
                with httpx.Client() as client:
                    response = client.request(**kwargs)
            elif agent is None or isinstance(agent, httpx.AsyncClient):
                response = self._shared_client().request(**kwargs)
            else:
                response = agent.request(**kwargs)
        except _TRANSPORT_ERRORS as e:
            raise _transport_error(_target(descriptor), e) from e
        return convert_response(response)

    async def send_async(
        self, descriptor: RequestDescriptor, timeout: float | None = None
    ) -> RawResponse:
        """Send the request without blocking the event loop.

        The await on httpx is the only suspension point.

        Raises:
            TransportError: If the request fails (DNS, connection, timeout).
        """
        kwargs = self._request_kwargs(descriptor, timeout)
        agent = self._connection_agent
        try:
            if agent is False:
                async with httpx.AsyncClient() as client:
                    response = await client.request(**kwargs)
            elif agent is None or isinstance(agent, httpx.Client):
                response = await self._shared_async_client().request(**kwargs)
            else:
                response = await agent.request(**kwargs)
        except _TRANSPORT_ERRORS as e:
            raise _transport_error(_target(descriptor), e) from e
        return convert_response(response)
