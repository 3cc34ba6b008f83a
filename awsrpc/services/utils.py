"""
Builder Utilities
=================

Helpers shared by the service builder modules.
"""

from __future__ import annotations

from typing import Any, Mapping, Sequence, Tuple
from urllib.parse import quote


def camelize_key(key: str) -> str:
    """
    Convert a snake_case name to the service's CamelCase.

    Only the first letter of each part is upper-cased, so names that are
    already CamelCase pass through unchanged.

    Example
    -------
    >>> camelize_key("exclusive_start_delivery_stream_name")
    'ExclusiveStartDeliveryStreamName'
    >>> camelize_key("RoleARN")
    'RoleARN'
    """
    return "".join(part[:1].upper() + part[1:] for part in key.split("_"))


def camelize_keys(value: Any) -> Any:
    """Recursively camelize the keys of dicts, inside lists too."""
    if isinstance(value, Mapping):
        return {camelize_key(str(k)): camelize_keys(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [camelize_keys(v) for v in value]
    return value


def encode_form(params: Sequence[Tuple[str, str]]) -> bytes:
    """
    Encode ordered pairs as an ``application/x-www-form-urlencoded`` body.

    Keys and values are percent-encoded with the RFC 3986 unreserved set.
    """
    return "&".join(
        f"{quote(str(k), safe='-_.~')}={quote(str(v), safe='-_.~')}" for k, v in params
    ).encode("utf-8")
