"""
HTTP Dispatcher Module
======================

Sends signed requests and classifies what came back.

The execution core depends only on the :class:`Dispatcher` contract;
:class:`HttpxDispatcher` is the bundled implementation. Any object
implementing ``send`` can be supplied at composition time.

Classification
--------------
============================  ===================  ==========
Outcome                       Exception            Retryable
============================  ===================  ==========
2xx                           (none)               -
429, or 4xx throttling code   ThrottlingError      yes
other 4xx                     ClientError          no
5xx and anything else         ServerError          yes
no response                   TransportError       yes
undecodable 2xx body          DecodeError          no
============================  ===================  ==========

Example
-------
>>> from awsrpc.transport.dispatcher import HttpxDispatcher, classify_response
>>>
>>> dispatcher = HttpxDispatcher(timeout=10)
>>> response = dispatcher.send(signed_request)
>>> error = classify_response(response, service="firehose")
>>> if error is not None:
...     raise error
"""

from __future__ import annotations

import json
import logging
import xml.etree.ElementTree as ET
from abc import ABC, abstractmethod
from typing import Dict, Optional, Tuple

import httpx

from awsrpc.core.exceptions import (
    ClientError,
    DecodeError,
    RequestError,
    ServerError,
    ThrottlingError,
    TransportError,
)
from awsrpc.core.operation import HttpResponse, SignedRequest

# Module logger
logger = logging.getLogger(__name__)

# Error codes AWS services return for rate limiting
THROTTLING_CODES = frozenset(
    {
        "Throttling",
        "ThrottlingException",
        "ThrottledException",
        "RequestThrottledException",
        "TooManyRequestsException",
        "ProvisionedThroughputExceededException",
        "TransactionInProgressException",
        "RequestLimitExceeded",
        "BandwidthLimitExceeded",
        "LimitExceededException",
        "RequestThrottled",
        "SlowDown",
        "PriorRequestNotComplete",
        "EC2ThrottledException",
    }
)


class Dispatcher(ABC):
    """
    Abstract HTTP transport.

    Implementations send a fully formed request and return its raw
    response, whatever the status. They raise :class:`TransportError`
    when no response was received, and never swallow failures.
    """

    @abstractmethod
    def send(self, request: SignedRequest) -> HttpResponse:
        """
        Send one request.

        Parameters
        ----------
        request : SignedRequest
            The signed request, sent unchanged.

        Returns
        -------
        HttpResponse
            Status, headers and body bytes.

        Raises
        ------
        TransportError
            On connection failures, timeouts and DNS errors.
        DecodeError
            When a successful response body cannot be read.
        """
        pass

    def close(self) -> None:
        """Release transport resources."""


class HttpxDispatcher(Dispatcher):
    """
    Dispatcher backed by an :class:`httpx.Client`.

    Parameters
    ----------
    timeout : float, default=30
        Read/write/pool timeout per attempt, in seconds.
    connect_timeout : float, default=5
        Connect timeout per attempt, in seconds.
    transport : httpx.BaseTransport, optional
        Custom transport, e.g. :class:`httpx.MockTransport` in tests.
    client : httpx.Client, optional
        Pre-built client; takes precedence over the other parameters.
    """

    def __init__(
        self,
        timeout: float = 30.0,
        connect_timeout: float = 5.0,
        transport: Optional[httpx.BaseTransport] = None,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self.timeout = timeout
        self.connect_timeout = connect_timeout
        self._owns_client = client is None
        self._client = client or httpx.Client(
            timeout=httpx.Timeout(timeout, connect=connect_timeout),
            transport=transport,
        )

    def send(self, request: SignedRequest) -> HttpResponse:
        """
        Send a signed request.

        Raises
        ------
        TransportError
            When no usable response arrived (connection failures, timeouts,
            too many redirects).
        DecodeError
            When a 2xx body cannot be content-decoded (e.g. corrupt gzip).
        """
        try:
            with self._client.stream(
                request.method,
                request.url,
                headers=list(request.headers),
                content=request.body,
                timeout=self._timeout_for(request),
            ) as response:
                body = self._read(request, response)
        except httpx.HTTPError as e:
            logger.debug(f"Transport failure for {request.method} {request.url}: {e!r}")
            raise TransportError(
                f"{e.__class__.__name__}: {e}",
                service=request.service,
                details={"url": request.url},
            ) from e

        return HttpResponse(
            status_code=response.status_code,
            headers=dict(response.headers),
            body=body,
        )

    @staticmethod
    def _read(request: SignedRequest, response: httpx.Response) -> bytes:
        try:
            return response.read()
        except httpx.DecodingError as e:
            encoding = response.headers.get("content-encoding")
            if not response.is_success:
                # The status alone classifies an error response
                logger.debug(
                    f"Unreadable {response.status_code} body ({encoding}) "
                    f"from {request.url}: {e}"
                )
                return b""
            raise DecodeError(
                f"Response body could not be decoded: {e}",
                service=request.service,
                status_code=response.status_code,
                details={"url": request.url, "content_encoding": encoding},
            ) from e

    def _timeout_for(self, request: SignedRequest) -> httpx.Timeout:
        timeout = request.timeout if request.timeout is not None else self.timeout
        connect = (
            request.connect_timeout
            if request.connect_timeout is not None
            else self.connect_timeout
        )
        return httpx.Timeout(timeout, connect=connect)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> HttpxDispatcher:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return (
            f"HttpxDispatcher(timeout={self.timeout}, "
            f"connect_timeout={self.connect_timeout})"
        )


# =============================================================================
# Response Classification
# =============================================================================


def parse_error_body(body: bytes) -> Tuple[Optional[str], Optional[str]]:
    """
    Extract the vendor error code and message from an error body.

    Understands the JSON protocols (``__type``/``code``/``Code`` and
    ``message``/``Message``) and the XML ``<Error><Code>`` layouts.

    Returns
    -------
    tuple
        ``(code, message)``; either may be None when not decodable.
    """
    if not body or not body.strip():
        return None, None

    stripped = body.lstrip()
    if stripped.startswith(b"{"):
        try:
            data = json.loads(body)
        except ValueError:
            return None, None
        if not isinstance(data, dict):
            return None, None
        code = data.get("__type") or data.get("code") or data.get("Code")
        if isinstance(code, str) and "#" in code:
            code = code.rsplit("#", 1)[1]
        if isinstance(code, str) and ":" in code:
            code = code.split(":", 1)[0]
        message = data.get("message") or data.get("Message")
        return code, message

    if stripped.startswith(b"<"):
        try:
            root = ET.fromstring(body)
        except ET.ParseError:
            return None, None
        code = message = None
        for element in root.iter():
            tag = element.tag.split("}", 1)[-1]
            if tag == "Code" and code is None:
                code = (element.text or "").strip() or None
            elif tag == "Message" and message is None:
                message = (element.text or "").strip() or None
        return code, message

    return None, None


def classify_response(
    response: HttpResponse,
    service: Optional[str] = None,
) -> Optional[RequestError]:
    """
    Classify a response.

    Parameters
    ----------
    response : HttpResponse
        Raw response from a dispatcher.
    service : str, optional
        Service name attached to the error.

    Returns
    -------
    RequestError or None
        None for 2xx responses, otherwise the classified error (not raised).
    """
    status = response.status_code
    if 200 <= status < 300:
        return None

    code, message = parse_error_body(response.body)
    details: Dict[str, object] = {}
    request_id = response.headers.get("x-amzn-requestid") or response.headers.get("x-amz-request-id")
    if request_id:
        details["request_id"] = request_id

    text = message or (code or f"HTTP {status}")

    if status == 429 or (400 <= status < 500 and code in THROTTLING_CODES):
        if code:
            details["code"] = code
        return ThrottlingError(f"Throttled: {text}", service=service, status_code=status, details=details)

    if 400 <= status < 500:
        return ClientError(
            f"Request rejected: {text}",
            code=code,
            error_message=message,
            service=service,
            status_code=status,
            details=details,
        )

    if code:
        details["code"] = code
    return ServerError(f"Service error: {text}", service=service, status_code=status, details=details)
