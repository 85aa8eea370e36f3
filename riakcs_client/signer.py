"""Canonicalizer and Signer - string-to-sign construction and HMAC signing.

The string-to-sign is::

    METHOD\\nhost\\npath\\nName1=Value1&Name2=Value2...

with the host lower-cased and the parameters sorted by name. Python's sort is
stable, so parameters sharing a name keep their insertion order; the service
computes the same string and any reordering would break the signature.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
from typing import Iterable
from urllib.parse import quote

from riakcs_client.models import Param, RequestDescriptor

SIGNATURE_PARAM = "Signature"

# RFC 3986 unreserved characters. Everything else, including "/" and "+",
# is percent-encoded.
_UNRESERVED = "-_.~"


def escape(value: str) -> str:
    """Percent-encode ``value`` for signing and for the query string."""
    return quote(value, safe=_UNRESERVED)


def canonical_pair(param: Param) -> str:
    """Render one parameter; a bare flag renders as its name only."""
    if param.value is None:
        return escape(param.name)
    return f"{escape(param.name)}={escape(param.value)}"


def canonical_query(params: Iterable[Param]) -> str:
    ordered = sorted(params, key=lambda p: p.name)
    return "&".join(canonical_pair(p) for p in ordered)


def string_to_sign(method: str, host: str, path: str, params: Iterable[Param]) -> str:
    """Build the canonical string-to-sign.

    Deterministic: the same inputs in any parameter order produce the same
    string, since parameters are sorted by name before joining.
    """
    return f"{method}\n{host.lower()}\n{path}\n{canonical_query(params)}"


def sign(secret: str, to_sign: str) -> str:
    """Return base64(HMAC-SHA256(secret, to_sign))."""
    digest = hmac.new(
        secret.encode("utf-8"), to_sign.encode("utf-8"), hashlib.sha256
    ).digest()
    return base64.b64encode(digest).decode("ascii")


def add_signature(descriptor: RequestDescriptor, signature: str) -> None:
    descriptor.add_param(SIGNATURE_PARAM, signature)
