"""
Response Codecs
===============

Turn raw body bytes into structured values and back.

Two wire formats are supported: JSON (the ``application/x-amz-json``
protocols) and XML (the Query and REST-XML protocols). Each codec has an
``encode`` inverse, used to serialize structured request payloads.

XML mapping
-----------
- ``<Tag>text</Tag>`` becomes ``{"Tag": "text"}``
- an empty or whitespace-only element becomes ``None``
- repeated sibling elements become a list
- an element whose children are all ``<member>`` becomes a list
- namespaces and attributes are dropped

Example
-------
>>> from awsrpc.core.codecs import decode
>>> from awsrpc.core.operation import ResponseFormat
>>>
>>> decode(ResponseFormat.XML, b"<R><Arn>a</Arn></R>")
{'R': {'Arn': 'a'}}
"""

from __future__ import annotations

import json
import xml.etree.ElementTree as ET
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Mapping, Optional

from awsrpc.core.exceptions import DecodeError, EncodeError
from awsrpc.core.operation import ResponseFormat

LIST_MEMBER = "member"


class Codec(ABC):
    """
    Abstract base class for body codecs.

    Subclasses must implement :meth:`decode` and :meth:`encode`.
    ``decode`` raises :class:`DecodeError` on malformed input and
    ``encode`` raises :class:`EncodeError` on values it cannot represent.
    """

    content_type: str = "application/octet-stream"

    @abstractmethod
    def decode(self, body: bytes) -> Any:
        """Parse body bytes into a structured value."""
        pass

    @abstractmethod
    def encode(self, value: Any) -> bytes:
        """Serialize a structured value into body bytes."""
        pass


class JSONCodec(Codec):
    """Compact JSON, UTF-8."""

    content_type = "application/x-amz-json-1.1"

    def decode(self, body: bytes) -> Any:
        if not body or not body.strip():
            return {}
        try:
            return json.loads(body)
        except (ValueError, UnicodeDecodeError) as e:
            raise DecodeError(
                f"Malformed JSON response: {e}",
                details={"body_prefix": body[:200].decode("utf-8", "replace")},
            ) from e

    def encode(self, value: Any) -> bytes:
        try:
            return json.dumps(value, separators=(",", ":")).encode("utf-8")
        except (TypeError, ValueError) as e:
            raise EncodeError(f"Payload is not JSON serializable: {e}") from e


class XMLCodec(Codec):
    """XML documents mapped to nested dicts, see module docstring."""

    content_type = "application/xml"

    def decode(self, body: bytes) -> Any:
        if not body or not body.strip():
            return {}
        try:
            root = ET.fromstring(body)
        except ET.ParseError as e:
            raise DecodeError(
                f"Malformed XML response: {e}",
                details={"body_prefix": body[:200].decode("utf-8", "replace")},
            ) from e
        return {_local_name(root.tag): _element_value(root)}

    def encode(self, value: Any) -> bytes:
        if not isinstance(value, Mapping) or len(value) != 1:
            raise EncodeError("XML payload must be a dict with a single root key")
        (tag, content), = value.items()
        try:
            root = ET.Element(tag)
            _fill_element(root, content)
            return ET.tostring(root, encoding="utf-8")
        except (TypeError, ValueError) as e:
            raise EncodeError(f"Payload cannot be written as XML: {e}") from e


def _local_name(tag: str) -> str:
    if tag.startswith("{"):
        return tag.split("}", 1)[1]
    return tag


def _element_value(element: ET.Element) -> Any:
    children = list(element)
    if not children:
        text = element.text
        if text is None or not text.strip():
            return None
        return text

    names = [_local_name(child.tag) for child in children]
    if all(name == LIST_MEMBER for name in names):
        return [_element_value(child) for child in children]

    result: Dict[str, Any] = {}
    for name, child in zip(names, children):
        value = _element_value(child)
        if name in result:
            existing = result[name]
            if isinstance(existing, _Repeated):
                existing.append(value)
            else:
                result[name] = _Repeated([existing, value])
        else:
            result[name] = value
    return {
        key: list(value) if isinstance(value, _Repeated) else value
        for key, value in result.items()
    }


class _Repeated(list):
    """Marks lists built from repeated siblings while a level is parsed."""


def _fill_element(element: ET.Element, content: Any) -> None:
    if content is None:
        return
    if isinstance(content, Mapping):
        for key, value in content.items():
            _fill_element(ET.SubElement(element, key), value)
    elif isinstance(content, (list, tuple)):
        for value in content:
            _fill_element(ET.SubElement(element, LIST_MEMBER), value)
    elif isinstance(content, bool):
        element.text = "true" if content else "false"
    else:
        element.text = str(content)


class RawCodec(Codec):
    """Returns the body untouched."""

    def decode(self, body: bytes) -> bytes:
        return body

    def encode(self, value: Any) -> bytes:
        if isinstance(value, bytes):
            return value
        return str(value).encode("utf-8")


DEFAULT_CODECS: Dict[ResponseFormat, Codec] = {
    ResponseFormat.JSON: JSONCodec(),
    ResponseFormat.XML: XMLCodec(),
    ResponseFormat.NONE: RawCodec(),
}


def get_codec(
    fmt: ResponseFormat,
    codecs: Optional[Mapping[ResponseFormat, Codec]] = None,
) -> Codec:
    """
    Look up the codec for a format.

    Parameters
    ----------
    fmt : ResponseFormat
        Format tag, as carried by the Operation.
    codecs : mapping, optional
        Codec table to search before the defaults.
    """
    table = codecs or DEFAULT_CODECS
    codec = table.get(ResponseFormat(fmt)) or DEFAULT_CODECS.get(ResponseFormat(fmt))
    if codec is None:
        raise ValueError(f"No codec registered for format {fmt!r}")
    return codec


def decode(
    fmt: ResponseFormat,
    body: bytes,
    codecs: Optional[Mapping[ResponseFormat, Codec]] = None,
) -> Any:
    """Decode ``body`` with the codec registered for ``fmt``."""
    return get_codec(fmt, codecs).decode(body)


def encode(
    fmt: ResponseFormat,
    value: Any,
    codecs: Optional[Mapping[ResponseFormat, Codec]] = None,
) -> bytes:
    """Encode ``value`` with the codec registered for ``fmt``."""
    return get_codec(fmt, codecs).encode(value)


__all__: List[str] = [
    "Codec",
    "JSONCodec",
    "XMLCodec",
    "RawCodec",
    "DEFAULT_CODECS",
    "get_codec",
    "decode",
    "encode",
]
