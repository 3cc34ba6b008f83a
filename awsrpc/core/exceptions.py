"""
Custom Exceptions for awsrpc
============================

This module defines the hierarchy of exceptions raised by the execution
core. Every failure a caller can observe is one of these classes, and the
class alone tells whether the retry loop would have retried it.

Exception Hierarchy
-------------------
::

    AWSRPCError (base)
    ├── ConfigurationError        fatal
    ├── CredentialError           fatal
    └── RequestError
        ├── TransportError        retryable
        ├── ServerError           retryable
        │   └── ThrottlingError   retryable
        ├── ClientError           not retryable
        ├── EncodeError           not retryable
        └── DecodeError           not retryable

Example
-------
>>> from awsrpc.core.exceptions import ClientError, RequestError
>>>
>>> try:
...     client.request_or_raise(operation)
... except ClientError as e:
...     print(f"Rejected: {e.code}")
... except RequestError as e:
...     print(f"Gave up after retries: {e}")
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    """
    Classification of a failed HTTP exchange.

    The retry policy decides on this value alone.
    """

    TRANSPORT = "transport"
    SERVER = "server"
    THROTTLING = "throttling"
    CLIENT = "client"
    ENCODE = "encode"
    DECODE = "decode"


RETRYABLE_KINDS = frozenset(
    {ErrorKind.TRANSPORT, ErrorKind.SERVER, ErrorKind.THROTTLING}
)


class AWSRPCError(Exception):
    """
    Base exception for all awsrpc errors.

    Parameters
    ----------
    message : str
        Human-readable error message.
    details : dict, optional
        Additional context about the error.

    Attributes
    ----------
    message : str
        The error message.
    details : dict
        Additional error details.

    Example
    -------
    >>> raise AWSRPCError("Something went wrong", details={"code": 500})
    """

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} (Details: {self.details})"
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert exception to dictionary for serialization.

        Returns
        -------
        dict
            Dictionary representation of the error.
        """
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


# =============================================================================
# Fatal Setup Errors
# =============================================================================


class ConfigurationError(AWSRPCError):
    """
    Raised when a mandatory setting cannot be resolved or is invalid.

    Example
    -------
    >>> raise ConfigurationError(
    ...     "No region configured",
    ...     details={"hint": "Set AWS_REGION or pass region= in overrides"}
    ... )
    """

    pass


class CredentialError(AWSRPCError):
    """
    Raised when no credential provider could supply credentials.

    Never retried by the request loop: a request without credentials
    cannot be signed.
    """

    pass


# =============================================================================
# Request Errors
# =============================================================================


class RequestError(AWSRPCError):
    """
    Base exception for a failed HTTP exchange.

    Parameters
    ----------
    message : str
        Human-readable error message.
    service : str, optional
        Signing name of the service that was called.
    status_code : int, optional
        HTTP status of the response, if one was received.
    details : dict, optional
        Additional context about the error.

    Attributes
    ----------
    kind : ErrorKind
        Classification used by the retry policy.
    """

    kind: ErrorKind = ErrorKind.SERVER

    def __init__(
        self,
        message: str,
        service: Optional[str] = None,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.service = service
        self.status_code = status_code
        full_details = details or {}
        if service:
            full_details["service"] = service
        if status_code is not None:
            full_details["status_code"] = status_code
        super().__init__(message, full_details)

    @property
    def retryable(self) -> bool:
        """Whether the retry loop may resend after this failure."""
        return self.kind in RETRYABLE_KINDS


class TransportError(RequestError):
    """
    Raised when no HTTP response was received.

    Covers refused connections, timeouts and DNS failures.
    """

    kind = ErrorKind.TRANSPORT


class ServerError(RequestError):
    """Raised for 5xx responses."""

    kind = ErrorKind.SERVER


class ThrottlingError(ServerError):
    """
    Raised when the service rejected the request for rate limiting.

    Example
    -------
    >>> raise ThrottlingError(
    ...     "Rate exceeded",
    ...     service="firehose",
    ...     status_code=400,
    ...     details={"code": "ThrottlingException"}
    ... )
    """

    kind = ErrorKind.THROTTLING


class ClientError(RequestError):
    """
    Raised for 4xx responses other than throttling.

    Parameters
    ----------
    message : str
        Human-readable error message.
    code : str, optional
        Vendor error code parsed from the response body.
    error_message : str, optional
        Vendor error message parsed from the response body.

    Example
    -------
    >>> err = ClientError("Request rejected", code="ValidationError", status_code=400)
    >>> err.code
    'ValidationError'
    """

    kind = ErrorKind.CLIENT

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        error_message: Optional[str] = None,
        service: Optional[str] = None,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.code = code
        self.error_message = error_message
        full_details = details or {}
        if code:
            full_details["code"] = code
        if error_message:
            full_details["error_message"] = error_message
        super().__init__(message, service, status_code, full_details)


class DecodeError(RequestError):
    """
    Raised when a successful response body cannot be decoded.

    A malformed body is never reported as an empty success.
    """

    kind = ErrorKind.DECODE


class EncodeError(RequestError):
    """
    Raised when an Operation's payload cannot be serialized.

    Raised before anything is sent, so no status code is attached.
    """

    kind = ErrorKind.ENCODE
