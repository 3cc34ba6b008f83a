"""
Request Signer Module
=====================

AWS Signature Version 4 (HMAC-SHA256) signing.

Signing is a pure function of its inputs once the timestamp is fixed,
and must run last, immediately before each dispatch attempt: the
signature covers method, path, query, headers and body, and expires.

Signing Steps
-------------
1. **Canonical request** - method, canonical URI, canonical query string,
   canonical headers, signed header list, hex SHA-256 of the body
2. **String to sign** - algorithm, timestamp, credential scope, hash of
   the canonical request
3. **Signing key** - ``HMAC("AWS4" + secret, date)`` chained over region,
   service and ``aws4_request``
4. **Signature** - ``HMAC(signing key, string to sign)``

Example
-------
>>> from datetime import datetime, timezone
>>> from awsrpc.auth.signer import SigV4Signer
>>>
>>> signer = SigV4Signer()
>>> signed = signer.sign(operation, config, credentials,
...                      datetime(2015, 8, 30, 12, 36, tzinfo=timezone.utc))
>>> signed.header("Authorization")
'AWS4-HMAC-SHA256 Credential=AKIDEXAMPLE/20150830/us-east-1/firehose/aws4_request, ...'
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import posixpath
from datetime import datetime, timezone
from typing import List, Mapping, Optional, Tuple
from urllib.parse import quote

from awsrpc.auth.providers import Credentials
from awsrpc.core.codecs import Codec, get_codec
from awsrpc.core.config import Config
from awsrpc.core.exceptions import EncodeError
from awsrpc.core.operation import BodyFormat, Operation, ResponseFormat, SignedRequest

# Module logger
logger = logging.getLogger(__name__)

ALGORITHM = "AWS4-HMAC-SHA256"
TERMINATOR = "aws4_request"
AMZ_DATE_FORMAT = "%Y%m%dT%H%M%SZ"
SCOPE_DATE_FORMAT = "%Y%m%d"

EMPTY_SHA256 = hashlib.sha256(b"").hexdigest()

# Never signed, intermediaries may rewrite them
UNSIGNED_HEADERS = frozenset(
    {"authorization", "user-agent", "expect", "transfer-encoding", "x-amzn-trace-id"}
)

# Services whose paths are URI-encoded once instead of twice
SINGLE_ENCODE_SERVICES = frozenset({"s3"})


def sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def _hmac(key: bytes, msg: str) -> bytes:
    return hmac.new(key, msg.encode("utf-8"), hashlib.sha256).digest()


def uri_encode(value: str, encode_slash: bool = True) -> str:
    """
    Percent-encode everything except RFC 3986 unreserved characters.

    Parameters
    ----------
    value : str
        Text to encode.
    encode_slash : bool, default=True
        Whether ``/`` is encoded as well.
    """
    safe = "-_.~" if encode_slash else "-_.~/"
    return quote(value, safe=safe)


def normalize_path(path: str) -> str:
    """
    Collapse ``.``, ``..`` and duplicate slashes, keeping a trailing slash.

    Example
    -------
    >>> normalize_path("/a/./b/../c/")
    '/a/c/'
    """
    if not path:
        return "/"
    normalized = posixpath.normpath(path)
    if normalized.startswith("//"):
        normalized = "/" + normalized.lstrip("/")
    if path.endswith("/") and normalized != "/":
        normalized += "/"
    if not normalized.startswith("/"):
        normalized = "/" + normalized
    return normalized


def wire_path(operation: Operation) -> str:
    """The path as sent on the request line (encoded once)."""
    if operation.service in SINGLE_ENCODE_SERVICES:
        return uri_encode(operation.path or "/", encode_slash=False)
    return uri_encode(normalize_path(operation.path), encode_slash=False)


def canonical_uri(operation: Operation) -> str:
    """
    Canonical URI of an operation.

    S3 signs the wire path as-is; every other service signs the wire
    path URI-encoded a second time.
    """
    path = wire_path(operation)
    if operation.service in SINGLE_ENCODE_SERVICES:
        return path
    return uri_encode(path, encode_slash=False)


def encode_query(query: Tuple[Tuple[str, str], ...]) -> List[Tuple[str, str]]:
    return [(uri_encode(str(k)), uri_encode(str(v))) for k, v in query]


def canonical_query_string(query: Tuple[Tuple[str, str], ...]) -> str:
    """Query pairs encoded, then sorted by key and value."""
    return "&".join(f"{k}={v}" for k, v in sorted(encode_query(query)))


def _trim(value: str) -> str:
    return " ".join(str(value).split())


def canonical_headers(headers: Mapping[str, str]) -> Tuple[str, str]:
    """
    Build the canonical header block and the signed header list.

    Parameters
    ----------
    headers : mapping
        Lower-cased header names to values.

    Returns
    -------
    tuple of str
        ``(canonical_headers, signed_headers)``; the block ends with a
        newline, the list is ``;``-separated.
    """
    names = sorted(headers)
    block = "".join(f"{name}:{_trim(headers[name])}\n" for name in names)
    return block, ";".join(names)


def derive_signing_key(secret_key: str, date: str, region: str, service: str) -> bytes:
    """
    Derive the SigV4 signing key.

    Parameters
    ----------
    secret_key : str
        Secret access key.
    date : str
        Scope date, ``YYYYMMDD``.
    region : str
        Region name.
    service : str
        Signing name of the service.
    """
    k_date = _hmac(("AWS4" + secret_key).encode("utf-8"), date)
    k_region = _hmac(k_date, region)
    k_service = _hmac(k_region, service)
    return _hmac(k_service, TERMINATOR)


class SigV4Signer:
    """
    Signs Operations with AWS Signature Version 4.

    Parameters
    ----------
    codecs : mapping, optional
        Codec table used to serialize structured payloads.

    Notes
    -----
    The signed headers are ``host``, ``x-amz-content-sha256``,
    ``x-amz-date``, ``x-amz-security-token`` (when a session token is
    present) and every header the Operation carries, except headers
    proxies may rewrite (``user-agent``, ``expect`` ...).
    """

    def __init__(self, codecs: Optional[Mapping[ResponseFormat, Codec]] = None) -> None:
        self._codecs = codecs

    def sign(
        self,
        operation: Operation,
        config: Config,
        credentials: Credentials,
        timestamp: datetime,
    ) -> SignedRequest:
        """
        Produce a signed request.

        Parameters
        ----------
        operation : Operation
            The call to sign.
        config : Config
            Supplies region and endpoint.
        credentials : Credentials
            Keys used for the signature.
        timestamp : datetime
            Signing time; naive values are taken as UTC.

        Returns
        -------
        SignedRequest
            Request with ``Authorization``, ``X-Amz-Date``,
            ``X-Amz-Content-SHA256`` and, if any, ``X-Amz-Security-Token``.
        """
        timestamp = _as_utc(timestamp)
        amz_date = timestamp.strftime(AMZ_DATE_FORMAT)
        scope_date = timestamp.strftime(SCOPE_DATE_FORMAT)

        headers, body, canonical_request, signed_headers = self._prepare(
            operation, config, credentials, amz_date
        )

        scope = f"{scope_date}/{config.region}/{operation.service}/{TERMINATOR}"
        string_to_sign = "\n".join(
            [ALGORITHM, amz_date, scope, sha256_hex(canonical_request.encode("utf-8"))]
        )
        signing_key = derive_signing_key(
            credentials.secret_access_key, scope_date, config.region, operation.service
        )
        signature = hmac.new(
            signing_key, string_to_sign.encode("utf-8"), hashlib.sha256
        ).hexdigest()

        headers.append(
            (
                "Authorization",
                f"{ALGORITHM} Credential={credentials.access_key_id}/{scope}, "
                f"SignedHeaders={signed_headers}, Signature={signature}",
            )
        )

        logger.debug(
            f"Signed {operation.method} {operation.service} at {amz_date} "
            f"(signed headers: {signed_headers})"
        )

        return SignedRequest(
            method=operation.method.upper(),
            url=self._url(operation, config),
            headers=tuple(headers),
            body=body,
            service=operation.service,
            response_format=operation.response_format,
        )

    def canonical_request(
        self,
        operation: Operation,
        config: Config,
        credentials: Credentials,
        timestamp: datetime,
    ) -> str:
        """Return the canonical request, for debugging signature mismatches."""
        amz_date = _as_utc(timestamp).strftime(AMZ_DATE_FORMAT)
        return self._prepare(operation, config, credentials, amz_date)[2]

    def serialize_body(self, operation: Operation) -> bytes:
        """
        Bytes sent as the request body.

        An opaque ``body`` is sent as-is; otherwise ``payload`` is
        serialized according to ``body_format``.

        Raises
        ------
        EncodeError
            If the payload cannot be written in ``body_format``.
        """
        if operation.body is not None:
            return operation.body
        if operation.payload is None or operation.body_format == BodyFormat.NONE:
            return b""
        try:
            return self._codec(operation).encode(operation.payload)
        except EncodeError as e:
            e.service = operation.service
            e.details["service"] = operation.service
            raise

    def _prepare(
        self,
        operation: Operation,
        config: Config,
        credentials: Credentials,
        amz_date: str,
    ) -> Tuple[List[Tuple[str, str]], bytes, str, str]:
        body = self.serialize_body(operation)
        payload_hash = sha256_hex(body)

        headers: List[Tuple[str, str]] = []
        if (
            operation.body is None
            and operation.payload is not None
            and operation.body_format != BodyFormat.NONE
            and operation.header("content-type") is None
        ):
            headers.append(("Content-Type", self._codec(operation).content_type))
        headers.extend(
            (k, v) for k, v in operation.headers if k.lower() not in _GENERATED_HEADERS
        )
        headers.append(("Host", config.host_header))
        headers.append(("X-Amz-Date", amz_date))
        headers.append(("X-Amz-Content-SHA256", payload_hash))
        if credentials.session_token:
            headers.append(("X-Amz-Security-Token", credentials.session_token))

        to_sign = {
            k.lower(): v for k, v in headers if k.lower() not in UNSIGNED_HEADERS
        }
        header_block, signed_headers = canonical_headers(to_sign)

        canonical_request = "\n".join(
            [
                operation.method.upper(),
                canonical_uri(operation),
                canonical_query_string(operation.query),
                header_block,
                signed_headers,
                payload_hash,
            ]
        )
        return headers, body, canonical_request, signed_headers

    def _codec(self, operation: Operation) -> Codec:
        return get_codec(ResponseFormat(operation.body_format.value), self._codecs)

    @staticmethod
    def _url(operation: Operation, config: Config) -> str:
        url = f"{config.endpoint_url}{wire_path(operation)}"
        if operation.query:
            url += "?" + "&".join(f"{k}={v}" for k, v in encode_query(operation.query))
        return url


# Set by the signer itself; an Operation's own values are dropped
_GENERATED_HEADERS = frozenset(
    {"authorization", "host", "x-amz-date", "x-amz-content-sha256", "x-amz-security-token"}
)


def _as_utc(timestamp: datetime) -> datetime:
    if timestamp.tzinfo is None:
        return timestamp.replace(tzinfo=timezone.utc)
    return timestamp.astimezone(timezone.utc)
