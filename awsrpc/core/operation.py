"""
Operation Module
================

Declarative values passed between the execution stages.

Classes
-------
Operation
    Immutable description of one remote call.
Paginator
    How a pageable Operation exposes its items and continuation token.
SignedRequest
    A fully formed request, ready for the dispatcher.
HttpResponse
    Raw status, headers and body returned by the dispatcher.
Page
    One decoded response of a pagination stream.
Result
    Success-or-error value returned by ``AWSClient.request``.

Example
-------
>>> from awsrpc.core.operation import BodyFormat, Operation
>>>
>>> op = Operation(
...     service="firehose",
...     headers=(("x-amz-target", "Firehose_20150804.ListDeliveryStreams"),),
...     payload={"Limit": 10},
...     body_format=BodyFormat.JSON,
... )
>>> op.with_param("ExclusiveStartDeliveryStreamName", "logs").payload
{'Limit': 10, 'ExclusiveStartDeliveryStreamName': 'logs'}
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Dict, Generic, List, Optional, Tuple, TypeVar

from awsrpc.core.exceptions import AWSRPCError

Pairs = Tuple[Tuple[str, str], ...]

T = TypeVar("T")


class BodyFormat(str, Enum):
    """Serialization applied to ``Operation.payload``."""

    JSON = "json"
    XML = "xml"
    NONE = "none"


class ResponseFormat(str, Enum):
    """Decoder used for a successful response body."""

    JSON = "json"
    XML = "xml"
    NONE = "none"


def lookup_path(data: Any, path: Optional[str]) -> Any:
    """
    Follow a dotted key path through nested dicts.

    Returns None as soon as a segment is missing.

    Example
    -------
    >>> lookup_path({"A": {"B": [1, 2]}}, "A.B")
    [1, 2]
    """
    if not path:
        return None
    current = data
    for key in path.split("."):
        if not isinstance(current, dict):
            return None
        current = current.get(key)
        if current is None:
            return None
    return current


@dataclass(frozen=True)
class Paginator:
    """
    Describes where a paged response keeps its items and its token.

    Parameters
    ----------
    result_key : str
        Dotted path to the list of items in a decoded page.
    input_token : str
        Request parameter that receives the continuation token.
    output_token : str, optional
        Dotted path to the continuation token in a decoded page.
    more_results : str, optional
        Dotted path to a boolean flag; when present and false the
        stream ends even if a token was found.
    token_from : callable, optional
        ``token_from(result, items)`` computing the token for services
        that derive it from the page instead of returning it.
    """

    result_key: str
    input_token: str
    output_token: Optional[str] = None
    more_results: Optional[str] = None
    token_from: Optional[Callable[[Any, List[Any]], Optional[str]]] = field(
        default=None, compare=False
    )

    def items(self, result: Any) -> List[Any]:
        """Extract the page's items, always as a list."""
        found = lookup_path(result, self.result_key)
        if found is None:
            return []
        if isinstance(found, list):
            return found
        return [found]

    def next_token(self, result: Any, items: List[Any]) -> Optional[str]:
        """Return the token for the following page, or None at the end."""
        if self.more_results is not None:
            more = lookup_path(result, self.more_results)
            if isinstance(more, str):
                more = more.lower() == "true"
            if not more:
                return None
        if self.token_from is not None:
            token = self.token_from(result, items)
        else:
            token = lookup_path(result, self.output_token)
        return token or None


@dataclass(frozen=True)
class Operation:
    """
    Immutable description of one remote call.

    Parameters
    ----------
    service : str
        Signing name of the target service; also the default endpoint
        prefix (``{service}.{region}.amazonaws.com``).
    method : str, default="POST"
        HTTP method.
    path : str, default="/"
        Resource path, not yet URI-encoded.
    query : tuple of (str, str)
        Ordered query parameters.
    headers : tuple of (str, str)
        Ordered request headers.
    body : bytes, optional
        Opaque body sent as-is. Takes precedence over ``payload``.
    payload : any, optional
        Structured body serialized according to ``body_format``.
    body_format : BodyFormat, default=BodyFormat.NONE
        Serialization for ``payload``.
    response_format : ResponseFormat, default=ResponseFormat.JSON
        Decoder for a successful response.
    paginator : Paginator, optional
        Present on pageable operations.
    """

    service: str
    method: str = "POST"
    path: str = "/"
    query: Pairs = ()
    headers: Pairs = ()
    body: Optional[bytes] = None
    payload: Any = None
    body_format: BodyFormat = BodyFormat.NONE
    response_format: ResponseFormat = ResponseFormat.JSON
    paginator: Optional[Paginator] = None

    def with_header(self, name: str, value: str) -> Operation:
        """Return a copy with ``name`` set, replacing any existing value."""
        kept = tuple(
            (k, v) for k, v in self.headers if k.lower() != name.lower()
        )
        return replace(self, headers=kept + ((name, value),))

    def with_param(self, name: str, value: Any) -> Operation:
        """
        Return a copy with a request parameter set.

        The parameter goes into the structured payload when the operation
        carries a dict payload, otherwise into the query string.
        """
        if isinstance(self.payload, dict) and self.body is None:
            payload = dict(self.payload)
            payload[name] = value
            return replace(self, payload=payload)
        kept = tuple((k, v) for k, v in self.query if k != name)
        return replace(self, query=kept + ((name, str(value)),))

    def header(self, name: str) -> Optional[str]:
        """Case-insensitive header lookup."""
        for key, value in self.headers:
            if key.lower() == name.lower():
                return value
        return None


@dataclass(frozen=True)
class SignedRequest:
    """
    A request whose headers already carry a valid signature.

    Any change to method, url, headers or body invalidates the signature.
    The timeouts are not sent and may be set after signing.
    """

    method: str
    url: str
    headers: Pairs
    body: bytes
    service: str
    response_format: ResponseFormat = ResponseFormat.JSON
    timeout: Optional[float] = None
    connect_timeout: Optional[float] = None

    def header(self, name: str) -> Optional[str]:
        for key, value in self.headers:
            if key.lower() == name.lower():
                return value
        return None


@dataclass(frozen=True)
class HttpResponse:
    """Raw response returned by a dispatcher."""

    status_code: int
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


@dataclass(frozen=True)
class Page:
    """
    One decoded response of a pagination stream.

    Attributes
    ----------
    result : any
        The full decoded response.
    items : list
        Items extracted through the operation's paginator.
    next_token : str or None
        Continuation token; None means this is the last page.
    """

    result: Any
    items: List[Any]
    next_token: Optional[str] = None

    @property
    def is_last(self) -> bool:
        return self.next_token is None


@dataclass(frozen=True)
class Result(Generic[T]):
    """
    Outcome of :meth:`AWSClient.request`.

    Exactly one of ``value`` and ``error`` is meaningful, as told by ``ok``.
    ``attempts`` counts the attempts started, 0 when the configuration could
    not be resolved.

    Example
    -------
    >>> result = client.request(operation)
    >>> if result.ok:
    ...     print(result.value)
    ... else:
    ...     print(result.error.to_dict())
    """

    value: Optional[T] = None
    error: Optional[AWSRPCError] = None
    attempts: int = 0

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        """Return the value, raising the stored error if there is one."""
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]
