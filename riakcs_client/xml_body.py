"""XML response body to Python value conversion.

Produces the shape RiakCS callers expect from an explicit-root XML parser:

- The root tag is the single top-level key: ``<Error>...</Error>`` becomes
  ``{"Error": {...}}``.
- Namespace URIs are stripped from tag names.
- Attributes go under a ``"$"`` key, text of an element that also has
  attributes or children goes under ``"_"``.
- A tag repeated among siblings becomes a list; a single child stays scalar.
- Text-only leaves are strings, kept untrimmed. Empty elements are ``""``.
"""

from __future__ import annotations

import xml.etree.ElementTree as ET
from typing import Any

ATTR_KEY = "$"
TEXT_KEY = "_"


def xml_to_dict(xml_bytes: bytes) -> dict[str, Any]:
    """Convert XML bytes into a dict keyed by the root tag.

    Raises:
        ET.ParseError: If *xml_bytes* is not well-formed XML.
    """
    root = ET.fromstring(xml_bytes)
    return {_strip_ns(root.tag): _element_to_value(root)}


def _strip_ns(tag: str) -> str:
    """``{http://...}Name`` → ``Name``."""
    if tag.startswith("{"):
        return tag.split("}", 1)[1]
    return tag


def _element_to_value(element: ET.Element) -> dict[str, Any] | str:
    result: dict[str, Any] = {}

    attrs = {
        _strip_ns(name): value
        for name, value in element.attrib.items()
        if not name.startswith("xmlns")
    }
    if attrs:
        result[ATTR_KEY] = attrs

    for child in element:
        tag = _strip_ns(child.tag)
        value = _element_to_value(child)
        if tag not in result:
            result[tag] = value
        elif isinstance(result[tag], list):
            result[tag].append(value)
        else:
            result[tag] = [result[tag], value]

    text = element.text or ""
    if not text.strip():
        text = ""

    if not result:
        return text
    if text:
        result[TEXT_KEY] = text
    return result
