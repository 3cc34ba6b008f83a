"""
STS Operations
==============

Builders for AWS Security Token Service actions (Query protocol: form
encoded request, XML response).
"""

from __future__ import annotations

from typing import Any, Dict

from awsrpc.core.operation import Operation, ResponseFormat
from awsrpc.services.utils import encode_form

SERVICE = "sts"
API_VERSION = "2011-06-15"
CONTENT_TYPE = "application/x-www-form-urlencoded; charset=utf-8"


def _action(action: str, **params: str) -> Operation:
    form = [("Action", action), ("Version", API_VERSION)] + sorted(params.items())
    return Operation(
        service=SERVICE,
        headers=(("content-type", CONTENT_TYPE),),
        body=encode_form(form),
        response_format=ResponseFormat.XML,
    )


def get_caller_identity() -> Operation:
    """Who am I: account, ARN and user id of the signing credentials."""
    return _action("GetCallerIdentity")


def caller_identity(response: Dict[str, Any]) -> Dict[str, Any]:
    """
    Extract the identity fields from a decoded GetCallerIdentity response.

    Returns
    -------
    dict
        ``Account``, ``Arn`` and ``UserId`` (missing fields are None).
    """
    result = (response.get("GetCallerIdentityResponse") or {}).get(
        "GetCallerIdentityResult"
    ) or {}
    return {key: result.get(key) for key in ("Account", "Arn", "UserId")}
