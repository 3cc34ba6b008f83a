"""
Core Components
===============

The execution core of awsrpc:

- :class:`AWSClient` - runs Operations through the signing, dispatch,
  retry and decode pipeline
- :class:`Operation` - immutable description of one call
- :class:`PageStream` - lazy iteration over paged results
- Configuration resolution and the exception hierarchy

Classes
-------
AWSClient
    Execution entry points (``request``, ``request_or_raise``, ``stream``).
Operation
    What to call and with what data.
Paginator
    Where a pageable response keeps items and continuation token.
Config, ConfigOverrides
    Resolved settings, and the settings a caller may override.
PageStream
    Iterator over the items of every page.
Result
    Success-or-error value.

Exceptions
----------
AWSRPCError
    Base exception for all awsrpc errors.
ConfigurationError
    Missing region or invalid setting.
CredentialError
    No credentials available.
RequestError
    Base exception for failed HTTP exchanges.
TransportError, ServerError, ThrottlingError
    Retryable failures.
ClientError, EncodeError, DecodeError
    Non-retryable failures.

See Also
--------
awsrpc.auth : Credentials and signing.
awsrpc.transport : Dispatch and retry.
"""

# Leaf modules first; awsrpc.core.client depends on awsrpc.auth and
# awsrpc.transport, which import these submodules directly.
from awsrpc.core.exceptions import (
    AWSRPCError,
    ClientError,
    ConfigurationError,
    CredentialError,
    DecodeError,
    EncodeError,
    ErrorKind,
    RequestError,
    ServerError,
    ThrottlingError,
    TransportError,
)
from awsrpc.core.operation import (
    BodyFormat,
    HttpResponse,
    Operation,
    Page,
    Paginator,
    ResponseFormat,
    Result,
    SignedRequest,
)
from awsrpc.core.config import Config, ConfigOverrides, resolve_config
from awsrpc.core.codecs import Codec, JSONCodec, XMLCodec
from awsrpc.core.pagination import PageStream
from awsrpc.core.client import AWSClient

__all__ = [
    # Client
    "AWSClient",
    # Data model
    "BodyFormat",
    "HttpResponse",
    "Operation",
    "Page",
    "Paginator",
    "ResponseFormat",
    "Result",
    "SignedRequest",
    "PageStream",
    # Configuration
    "Config",
    "ConfigOverrides",
    "resolve_config",
    # Codecs
    "Codec",
    "JSONCodec",
    "XMLCodec",
    # Exceptions - Base
    "AWSRPCError",
    "ErrorKind",
    # Exceptions - Setup
    "ConfigurationError",
    "CredentialError",
    # Exceptions - Request
    "RequestError",
    "TransportError",
    "ServerError",
    "ThrottlingError",
    "ClientError",
    "EncodeError",
    "DecodeError",
]
