"""
AWS Client Module
=================

The execution core: turns one :class:`Operation` into one HTTP exchange
(or one per page) with resolved configuration, cached credentials, a
fresh SigV4 signature per attempt, classified failures and retries.

Entry Points
------------
AWSClient.request
    Returns a :class:`Result` holding the decoded value or the error.
AWSClient.request_or_raise
    Returns the decoded value, raises the error.
AWSClient.stream
    Returns a lazy :class:`PageStream` over a pageable operation's items.

All three share the same pipeline and accept an optional
:class:`ConfigOverrides`.

Example
-------
>>> from awsrpc import AWSClient, ConfigOverrides, CredentialCache
>>> from awsrpc.services import firehose
>>>
>>> cache = CredentialCache()                 # once per process
>>> client = AWSClient(
...     defaults=ConfigOverrides(region="us-east-1"),
...     credential_cache=cache,
... )
>>> result = client.request(firehose.describe_delivery_stream("logs"))
>>> if result.ok:
...     print(result.value["DeliveryStreamDescription"]["DeliveryStreamStatus"])
>>>
>>> for name in client.stream(firehose.list_delivery_streams()):
...     print(name)

Notes
-----
Each call runs as an independent sequential pipeline, so one client may
serve many threads. The only state shared between calls is the
credential cache.

See Also
--------
awsrpc.auth.cache.CredentialCache : Shared credential cache.
awsrpc.transport.retry.RetryPolicy : Retry decisions.
"""

from __future__ import annotations

import logging
import random
import threading
import time
from dataclasses import replace
from datetime import datetime
from typing import Any, Callable, List, Mapping, Optional, Sequence

from awsrpc.auth.cache import CredentialCache, utc_now
from awsrpc.auth.providers import (
    CredentialProvider,
    CredentialProviderChain,
    EnvironmentCredentialsProvider,
    InstanceMetadataProvider,
    StaticCredentialsProvider,
)
from awsrpc.auth.signer import SigV4Signer
from awsrpc.core.codecs import DEFAULT_CODECS, Codec, get_codec
from awsrpc.core.config import Config, ConfigOverrides, resolve_config
from awsrpc.core.logging import redact_headers
from awsrpc.core.exceptions import (
    AWSRPCError,
    CredentialError,
    DecodeError,
    RequestError,
    TransportError,
)
from awsrpc.core.operation import HttpResponse, Operation, ResponseFormat, Result
from awsrpc.core.pagination import PageStream
from awsrpc.transport.dispatcher import Dispatcher, HttpxDispatcher, classify_response
from awsrpc.transport.retry import GiveUp, RetryPolicy, RetryState

# Module logger
logger = logging.getLogger(__name__)


class AWSClient:
    """
    Executes Operations against AWS-style HTTP RPC endpoints.

    Parameters
    ----------
    defaults : ConfigOverrides, optional
        Process-wide settings, below call-site overrides and above the
        environment.
    credential_cache : CredentialCache, optional
        Shared credential cache. A private cache is created when omitted.
    dispatcher : Dispatcher, optional
        HTTP transport. An :class:`HttpxDispatcher` is created on first
        use when omitted.
    codecs : mapping, optional
        Response format to codec table, replacing the defaults per format.
    providers : sequence of CredentialProvider, optional
        Credential sources tried after configured static credentials.
        Defaults to environment variables, then instance metadata.
    environ : mapping, optional
        Environment used for configuration and credentials.
    sleep : callable, default=time.sleep
        Called with each retry delay.
    clock : callable, optional
        Returns the signing time (timezone-aware).
    rng : random.Random, optional
        Random source for retry jitter.

    Raises
    ------
    ConfigurationError
        From any entry point, when no region can be resolved.
    CredentialError
        From any entry point, when no credentials can be found.
    """

    def __init__(
        self,
        defaults: Optional[ConfigOverrides] = None,
        credential_cache: Optional[CredentialCache] = None,
        dispatcher: Optional[Dispatcher] = None,
        codecs: Optional[Mapping[ResponseFormat, Codec]] = None,
        providers: Optional[Sequence[CredentialProvider]] = None,
        environ: Optional[Mapping[str, str]] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Optional[Callable[[], datetime]] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.defaults = defaults or ConfigOverrides()
        self.credential_cache = (
            credential_cache if credential_cache is not None else CredentialCache()
        )
        self.codecs = {**DEFAULT_CODECS, **(codecs or {})}
        self.signer = SigV4Signer(self.codecs)
        self.environ = environ
        self._dispatcher = dispatcher
        self._owns_dispatcher = dispatcher is None
        self._providers: Optional[List[CredentialProvider]] = (
            list(providers) if providers is not None else None
        )
        self._sleep = sleep
        self._clock = clock or utc_now
        self._rng = rng
        self._lock = threading.Lock()

        logger.debug(f"Initialized {self!r}")

    # =========================================================================
    # Lazy Components
    # =========================================================================

    @property
    def dispatcher(self) -> Dispatcher:
        """Default HTTP transport (lazy loaded)."""
        if self._dispatcher is None:
            with self._lock:
                if self._dispatcher is None:
                    self._dispatcher = HttpxDispatcher()
        return self._dispatcher

    @property
    def providers(self) -> List[CredentialProvider]:
        """Credential sources after static configuration (lazy loaded)."""
        if self._providers is None:
            with self._lock:
                if self._providers is None:
                    self._providers = [
                        EnvironmentCredentialsProvider(self.environ),
                        InstanceMetadataProvider(environ=self.environ),
                    ]
        return self._providers

    # =========================================================================
    # Entry Points
    # =========================================================================

    def request(
        self,
        operation: Operation,
        overrides: Optional[ConfigOverrides] = None,
    ) -> Result[Any]:
        """
        Execute one call and return its outcome as a value.

        Parameters
        ----------
        operation : Operation
            The call to perform.
        overrides : ConfigOverrides, optional
            Call-site settings.

        Returns
        -------
        Result
            ``Result(value=...)`` on success, ``Result(error=...)`` with the
            classified error otherwise; ``attempts`` counts attempts started.
        """
        state = RetryState()
        try:
            value = self._execute(operation, overrides, state)
        except AWSRPCError as e:
            return Result(error=e, attempts=state.attempt)
        return Result(value=value, attempts=state.attempt)

    def request_or_raise(
        self,
        operation: Operation,
        overrides: Optional[ConfigOverrides] = None,
    ) -> Any:
        """
        Execute one call and return the decoded response.

        Raises
        ------
        AWSRPCError
            The classified failure, unchanged.
        """
        return self._execute(operation, overrides, RetryState())

    def stream(
        self,
        operation: Operation,
        overrides: Optional[ConfigOverrides] = None,
    ) -> PageStream:
        """
        Lazily iterate the items of every page of a pageable operation.

        Nothing is sent before the first item is requested. Each page is a
        complete call with its own retry budget; errors raise from
        ``next()``.

        Raises
        ------
        ValueError
            If the operation has no paginator.
        """
        return PageStream(
            lambda page_operation: self.request_or_raise(page_operation, overrides),
            operation,
        )

    # =========================================================================
    # Pipeline
    # =========================================================================

    def resolve_config(
        self,
        service: str,
        overrides: Optional[ConfigOverrides] = None,
    ) -> Config:
        """Resolve the effective configuration for a call to ``service``."""
        return resolve_config(service, overrides, self.defaults, self.environ)

    def credential_provider(self, config: Config) -> CredentialProvider:
        """The provider chain used for a call with ``config``."""
        providers: List[CredentialProvider] = []
        if config.has_static_credentials:
            providers.append(
                StaticCredentialsProvider(
                    config.access_key_id,
                    config.secret_access_key,
                    config.session_token,
                )
            )
        providers.extend(self.providers)
        return CredentialProviderChain(providers)

    def _execute(
        self,
        operation: Operation,
        overrides: Optional[ConfigOverrides],
        state: RetryState,
    ) -> Any:
        config = self.resolve_config(operation.service, overrides)
        provider = self.credential_provider(config)
        cache = config.credential_cache
        if cache is None:
            cache = self.credential_cache
        dispatcher = config.dispatcher
        if dispatcher is None:
            dispatcher = self.dispatcher
        policy = RetryPolicy.from_config(config, rng=self._rng)

        while True:
            state.attempt += 1
            outcome = self._attempt(operation, config, provider, cache, dispatcher)
            if not isinstance(outcome, RequestError):
                return outcome
            error = outcome

            decision = policy.decide(
                error, state.attempt, previous_delay=state.next_delay
            )
            if isinstance(decision, GiveUp):
                if error.retryable:
                    logger.error(
                        f"{operation.service} call failed after {state.attempt} "
                        f"attempts: {error.message}"
                    )
                raise error

            state.last_error = error
            state.next_delay = decision.delay
            logger.warning(
                f"{operation.service} attempt {state.attempt}/{config.max_attempts} "
                f"failed ({error.kind.value}: {error.message}), "
                f"retrying in {decision.delay:.2f}s"
            )
            self._sleep(decision.delay)

    def _attempt(
        self,
        operation: Operation,
        config: Config,
        provider: CredentialProvider,
        cache: CredentialCache,
        dispatcher: Dispatcher,
    ) -> Any:
        """
        Run one attempt.

        Returns the decoded value, or the classified :class:`RequestError`
        (returned, not raised) for the retry loop to judge. Credential, encode and
        decode failures raise.
        """
        credentials = cache.get(provider)
        signed = self.signer.sign(operation, config, credentials, self._clock())
        signed = replace(
            signed, timeout=config.timeout, connect_timeout=config.connect_timeout
        )

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                f"Dispatching {signed.method} {signed.url} "
                f"[{redact_headers(signed.headers)}]"
            )
        try:
            response = dispatcher.send(signed)
        except TransportError as e:
            return e

        error = classify_response(response, service=operation.service)
        if error is not None:
            return error
        return self._decode(operation, response)

    def _decode(self, operation: Operation, response: HttpResponse) -> Any:
        codec = get_codec(operation.response_format, self.codecs)
        try:
            return codec.decode(response.body)
        except DecodeError as e:
            e.service = operation.service
            e.status_code = response.status_code
            e.details.update(service=operation.service, status_code=response.status_code)
            raise

    # =========================================================================
    # Credential and Account Operations
    # =========================================================================

    def get_caller_identity(
        self,
        overrides: Optional[ConfigOverrides] = None,
    ) -> dict:
        """
        Call STS GetCallerIdentity.

        Returns
        -------
        dict
            ``Account``, ``Arn`` and ``UserId``.
        """
        from awsrpc.services import sts

        response = self.request_or_raise(sts.get_caller_identity(), overrides)
        return sts.caller_identity(response)

    def get_account_id(self, overrides: Optional[ConfigOverrides] = None) -> str:
        """Account id owning the signing credentials."""
        return self.get_caller_identity(overrides)["Account"]

    def validate_credentials(
        self,
        overrides: Optional[ConfigOverrides] = None,
    ) -> bool:
        """
        Validate credentials by calling STS GetCallerIdentity.

        Returns
        -------
        bool
            True if the service accepted the credentials.

        Raises
        ------
        CredentialError
            If credentials are missing or were rejected.
        """
        try:
            identity = self.get_caller_identity(overrides)
        except RequestError as e:
            code = getattr(e, "code", None)
            raise CredentialError(
                "Invalid AWS credentials"
                if code in ("InvalidClientTokenId", "SignatureDoesNotMatch")
                else f"Failed to validate credentials: {e.message}",
                details={"error_code": code} if code else {},
            ) from e
        logger.info(f"Credentials validated for {identity.get('Arn')}")
        return True

    # =========================================================================
    # Factory Methods
    # =========================================================================

    def with_region(self, region: str) -> AWSClient:
        """
        Create a client with the same components and a different region.

        The credential cache, dispatcher and providers are shared.
        """
        return AWSClient(
            defaults=replace(self.defaults, region=region),
            credential_cache=self.credential_cache,
            dispatcher=self.dispatcher,
            codecs=self.codecs,
            providers=self.providers,
            environ=self.environ,
            sleep=self._sleep,
            clock=self._clock,
            rng=self._rng,
        )

    # =========================================================================
    # Context Manager Support
    # =========================================================================

    def close(self) -> None:
        """Close the transports this client created."""
        with self._lock:
            dispatcher, self._dispatcher = self._dispatcher, None
        if self._owns_dispatcher and dispatcher is not None:
            dispatcher.close()
        for provider in self._providers or []:
            if isinstance(provider, InstanceMetadataProvider):
                provider.close()

    def __enter__(self) -> AWSClient:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return (
            f"AWSClient(region={self.defaults.region!r}, "
            f"max_attempts={self.defaults.max_attempts})"
        )
