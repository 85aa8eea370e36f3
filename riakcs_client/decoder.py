"""ResponseDecoder - turns a RawResponse into a Result or a typed error.

Decoding runs in three steps:
1. Extract headers according to the operation's (or client's) header mode.
2. Pick the body kind: the success kind when the status is expected, the
   error kind otherwise, and decode the body with it.
3. Return a Result, or raise StatusMismatchError carrying whatever was
   decoded when the status was not expected.
"""

from __future__ import annotations

import json
import logging
import re
import xml.etree.ElementTree as ET
from typing import TYPE_CHECKING, Any, Callable, Mapping
from urllib.parse import unquote

from riakcs_client.errors import ParseError, ProgrammerError, StatusMismatchError
from riakcs_client.models import ALL_HEADERS, BodyKind, OperationSpec, RawResponse, Result
from riakcs_client.xml_body import xml_to_dict

if TYPE_CHECKING:
    from riakcs_client.client import RiakCS

logger = logging.getLogger(__name__)


# =============================================================================
# Headers
# =============================================================================


def extract_headers(mode: Any, response: RawResponse, prefix: str) -> dict[str, str] | None:
    """Select response headers according to ``mode``.

    Modes:
        None / False: no headers (returns None).
        True: headers whose name starts with ``prefix``.
        re.Pattern: headers whose name matches the pattern (``search``).
        "all": every header verbatim.
        list / tuple / set: allow-list of header names.
        dict: rename mapping, response header name -> result key.
        callable: ``mode(response)`` returns the headers.

    Raises:
        ProgrammerError: If ``mode`` is none of the above.
    """
    headers = response.headers

    if mode is None or mode is False:
        return None
    if mode is True:
        prefix = prefix.lower()
        return {k: v for k, v in headers.items() if k.startswith(prefix)}
    if isinstance(mode, re.Pattern):
        return {k: v for k, v in headers.items() if mode.search(k)}
    if isinstance(mode, str):
        if mode == ALL_HEADERS:
            return dict(headers)
        raise ProgrammerError(f"unknown extract_headers mode {mode!r}")
    if isinstance(mode, (list, tuple, set, frozenset)):
        wanted = [name.lower() for name in mode]
        return {name: headers[name] for name in wanted if name in headers}
    if isinstance(mode, Mapping):
        return {
            out_name: headers[wire_name.lower()]
            for wire_name, out_name in mode.items()
            if wire_name.lower() in headers
        }
    if callable(mode):
        return mode(response)
    raise ProgrammerError(f"unknown extract_headers mode {mode!r}")


# =============================================================================
# Body
# =============================================================================


def parse_form_urlencoded(text: str) -> dict[str, str]:
    """Split ``a=1&b=two`` into ``{"a": "1", "b": "two"}``.

    Values are percent-decoded; ``+`` is left alone. A pair without ``=``
    maps to an empty string.
    """
    result: dict[str, str] = {}
    for pair in text.split("&"):
        if not pair:
            continue
        name, _, value = pair.partition("=")
        result[name] = unquote(value)
    return result


def _decode_text(content: bytes) -> str:
    return content.decode("utf-8", errors="replace")


def _as_body_kind(kind: Any) -> Any:
    if isinstance(kind, str) and not isinstance(kind, BodyKind):
        try:
            return BodyKind(kind)
        except ValueError as e:
            raise ProgrammerError(f"unknown body kind {kind!r}") from e
    return kind


def decode_body(kind: BodyKind | Callable[[RawResponse], Any], response: RawResponse) -> Any:
    """Decode the response body with the given kind.

    ``kind`` may also be the string value of a BodyKind, e.g. ``"json"``.

    Raises:
        ParseError: If an XML or JSON body is malformed. The raw body and the
            parser exception are attached.
        ProgrammerError: If ``kind`` is not a known BodyKind or callable.
    """
    content = response.content
    kind = _as_body_kind(kind)

    if kind is BodyKind.XML:
        if not content.strip():
            return None
        try:
            return xml_to_dict(content)
        except ET.ParseError as e:
            raise ParseError(
                f"malformed XML body: {e}", body=content, original_error=e
            ) from e
    elif kind is BodyKind.JSON:
        if not content.strip():
            return None
        try:
            return json.loads(content)
        except ValueError as e:
            raise ParseError(
                f"malformed JSON body: {e}", body=content, original_error=e
            ) from e
    elif kind is BodyKind.BLOB:
        return content
    elif kind is BodyKind.STRING:
        return _decode_text(content)
    elif kind is BodyKind.FORM_URLENCODED:
        return parse_form_urlencoded(_decode_text(content))
    elif kind is BodyKind.NONE:
        return None
    elif callable(kind) and not isinstance(kind, BodyKind):
        return kind(response)
    raise ProgrammerError(f"unknown body kind {kind!r}")


# =============================================================================
# Disposition
# =============================================================================


def decode_response(
    operation: OperationSpec,
    client: RiakCS,
    response: RawResponse,
    options: Mapping[str, Any] | None = None,
) -> Result:
    """Decode a raw response for ``operation``.

    ``options`` may override ``extract_headers`` and ``extract_body`` for
    this call only.

    Raises:
        StatusMismatchError: If the status is not one the operation expects.
        ParseError: If the body cannot be parsed; no Result is produced.
    """
    config = client.config
    options = options or {}

    if "extract_headers" in options:
        header_mode = options["extract_headers"]
    elif operation.extract_headers is not None:
        header_mode = operation.extract_headers
    else:
        header_mode = config.extract_headers
    headers = extract_headers(header_mode, response, config.header_prefix)

    if operation.expects(response.status_code):
        kind = options.get("extract_body") or operation.extract_body or config.extract_body
        body = decode_body(kind, response)
        return Result(status_code=response.status_code, headers=headers, body=body)

    kind = operation.extract_body_when_error or config.extract_body_when_error
    body = decode_body(kind, response)
    logger.debug(
        "%s: unexpected status %d (expected %s)",
        operation.name,
        response.status_code,
        operation.expected_status_code,
    )
    raise StatusMismatchError(
        f"{operation.name}: unexpected status code {response.status_code}",
        status_code=response.status_code,
        headers=headers,
        body=body,
    )
