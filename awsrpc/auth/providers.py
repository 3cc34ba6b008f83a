"""
Credential Providers
====================

Sources of AWS credentials, tried in order by
:class:`CredentialProviderChain` until one succeeds:

1. :class:`StaticCredentialsProvider` - credentials from configuration
2. :class:`EnvironmentCredentialsProvider` - ``AWS_ACCESS_KEY_ID`` and friends
3. :class:`InstanceMetadataProvider` - the EC2 instance metadata service

Every provider raises :class:`CredentialError` when it cannot supply
credentials, and exposes a hashable ``cache_key`` identifying it to the
:class:`~awsrpc.auth.cache.CredentialCache`.

Example
-------
>>> from awsrpc.auth.providers import (
...     CredentialProviderChain,
...     EnvironmentCredentialsProvider,
...     InstanceMetadataProvider,
... )
>>>
>>> chain = CredentialProviderChain(
...     [EnvironmentCredentialsProvider(), InstanceMetadataProvider()]
... )
>>> credentials = chain.resolve()
"""

from __future__ import annotations

import logging
import os
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Hashable, List, Mapping, Optional, Sequence

import httpx
from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from awsrpc.core.exceptions import CredentialError
from awsrpc.core.logging import mask_key

# Module logger
logger = logging.getLogger(__name__)

ENV_ACCESS_KEY_ID = "AWS_ACCESS_KEY_ID"
ENV_SECRET_ACCESS_KEY = "AWS_SECRET_ACCESS_KEY"
ENV_SESSION_TOKEN = ("AWS_SESSION_TOKEN", "AWS_SECURITY_TOKEN")

ENV_METADATA_ENDPOINT = "AWS_EC2_METADATA_SERVICE_ENDPOINT"
ENV_METADATA_TIMEOUT = "AWS_METADATA_SERVICE_TIMEOUT"
ENV_METADATA_ATTEMPTS = "AWS_METADATA_SERVICE_NUM_ATTEMPTS"

METADATA_ENDPOINT = "http://169.254.169.254"
METADATA_ROLE_PATH = "/latest/meta-data/iam/security-credentials/"


@dataclass(frozen=True)
class Credentials:
    """
    AWS access credentials.

    Parameters
    ----------
    access_key_id : str
        Access key id.
    secret_access_key : str
        Secret key, never logged.
    session_token : str, optional
        Token of temporary credentials.
    expiration : datetime, optional
        Timezone-aware expiry; None means the credentials never expire.
    """

    access_key_id: str
    secret_access_key: str
    session_token: Optional[str] = None
    expiration: Optional[datetime] = None

    def is_valid(self, now: datetime, refresh_skew: timedelta) -> bool:
        """
        Whether these credentials may be used for a new request.

        Invalid once ``now >= expiration - refresh_skew``.
        """
        if self.expiration is None:
            return True
        return now < self.expiration - refresh_skew

    def __repr__(self) -> str:
        return (
            f"Credentials(access_key_id='{mask_key(self.access_key_id)}', "
            f"session_token={'set' if self.session_token else None}, "
            f"expiration={self.expiration!r})"
        )


class CredentialProvider(ABC):
    """
    Abstract base class for credential sources.

    Subclasses implement :meth:`load` and :attr:`cache_key`.
    """

    name: str = "provider"

    @property
    @abstractmethod
    def cache_key(self) -> Hashable:
        """Identity of this provider for caching purposes."""
        pass

    @abstractmethod
    def load(self) -> Credentials:
        """
        Fetch credentials from this source.

        Raises
        ------
        CredentialError
            If this source cannot supply credentials.
        """
        pass

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


# =============================================================================
# Concrete Providers
# =============================================================================


class StaticCredentialsProvider(CredentialProvider):
    """Credentials supplied directly in configuration."""

    name = "static"

    def __init__(
        self,
        access_key_id: Optional[str],
        secret_access_key: Optional[str],
        session_token: Optional[str] = None,
    ) -> None:
        self.access_key_id = access_key_id
        self.secret_access_key = secret_access_key
        self.session_token = session_token

    @property
    def cache_key(self) -> Hashable:
        return ("static", self.access_key_id, self.session_token)

    def load(self) -> Credentials:
        if not (self.access_key_id and self.secret_access_key):
            raise CredentialError("No static credentials configured")
        return Credentials(
            access_key_id=self.access_key_id,
            secret_access_key=self.secret_access_key,
            session_token=self.session_token,
        )


class EnvironmentCredentialsProvider(CredentialProvider):
    """
    Credentials from environment variables.

    Reads ``AWS_ACCESS_KEY_ID``, ``AWS_SECRET_ACCESS_KEY`` and
    ``AWS_SESSION_TOKEN`` (falling back to ``AWS_SECURITY_TOKEN``).
    """

    name = "environment"

    def __init__(self, environ: Optional[Mapping[str, str]] = None) -> None:
        self._environ = environ

    @property
    def environ(self) -> Mapping[str, str]:
        return os.environ if self._environ is None else self._environ

    @property
    def cache_key(self) -> Hashable:
        return ("environment",)

    def load(self) -> Credentials:
        env = self.environ
        access_key_id = env.get(ENV_ACCESS_KEY_ID)
        secret_access_key = env.get(ENV_SECRET_ACCESS_KEY)
        if not (access_key_id and secret_access_key):
            raise CredentialError(
                f"{ENV_ACCESS_KEY_ID} and {ENV_SECRET_ACCESS_KEY} are not both set"
            )
        token = None
        for name in ENV_SESSION_TOKEN:
            if env.get(name):
                token = env[name]
                break
        return Credentials(
            access_key_id=access_key_id,
            secret_access_key=secret_access_key,
            session_token=token,
        )


class _MetadataUnavailable(Exception):
    """Transient metadata service failure (5xx); retried."""


class InstanceMetadataProvider(CredentialProvider):
    """
    Role credentials from the EC2 instance metadata service.

    Two sequential GETs: the role name, then that role's credentials.
    Each GET has a short timeout and is retried a small, fixed number
    of times before the provider gives up.

    Parameters
    ----------
    endpoint : str, optional
        Base URL of the metadata service. Defaults to
        ``AWS_EC2_METADATA_SERVICE_ENDPOINT`` or ``http://169.254.169.254``.
    timeout : float, optional
        Per-request timeout in seconds (default 1).
    num_attempts : int, optional
        Attempts per GET (default 3).
    retry_delay : float, default=0.1
        Seconds to wait between attempts.
    transport : httpx.BaseTransport, optional
        Transport for the underlying client, used by tests.
    environ : mapping, optional
        Environment read for the settings above.
    """

    name = "instance-metadata"

    def __init__(
        self,
        endpoint: Optional[str] = None,
        timeout: Optional[float] = None,
        num_attempts: Optional[int] = None,
        retry_delay: float = 0.1,
        transport: Optional[httpx.BaseTransport] = None,
        environ: Optional[Mapping[str, str]] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        env = os.environ if environ is None else environ
        self.endpoint = (endpoint or env.get(ENV_METADATA_ENDPOINT) or METADATA_ENDPOINT).rstrip("/")
        self.timeout = timeout if timeout is not None else _env_number(env, ENV_METADATA_TIMEOUT, 1.0, float)
        self.num_attempts = (
            num_attempts if num_attempts is not None else _env_number(env, ENV_METADATA_ATTEMPTS, 3, int)
        )
        self.retry_delay = retry_delay
        self._sleep = sleep
        self._transport = transport
        self._client: Optional[httpx.Client] = None
        self._client_lock = threading.Lock()

    @property
    def cache_key(self) -> Hashable:
        return ("instance-metadata", self.endpoint)

    @property
    def client(self) -> httpx.Client:
        """HTTP client for the metadata service (lazy loaded)."""
        if self._client is None:
            with self._client_lock:
                if self._client is None:
                    self._client = httpx.Client(
                        timeout=httpx.Timeout(self.timeout, connect=self.timeout),
                        transport=self._transport,
                    )
        return self._client

    def load(self) -> Credentials:
        try:
            role = self._get(METADATA_ROLE_PATH).text.strip().splitlines()
            if not role:
                raise CredentialError("Instance metadata returned no IAM role")
            role_name = role[0].strip()
            response = self._get(f"{METADATA_ROLE_PATH}{role_name}")
            data = response.json()
        except (httpx.HTTPError, _MetadataUnavailable, ValueError) as e:
            raise CredentialError(
                f"Instance metadata credentials unavailable: {e}",
                details={"endpoint": self.endpoint},
            ) from e

        return self._parse(data, role_name)

    def _get(self, path: str) -> httpx.Response:
        url = f"{self.endpoint}{path}"
        retrying = Retrying(
            stop=stop_after_attempt(self.num_attempts),
            wait=wait_fixed(self.retry_delay),
            retry=retry_if_exception_type((httpx.TransportError, _MetadataUnavailable)),
            before_sleep=before_sleep_log(logger, logging.DEBUG),
            sleep=self._sleep,
            reraise=True,
        )
        for attempt in retrying:
            with attempt:
                response = self.client.get(url)
                if response.status_code >= 500:
                    raise _MetadataUnavailable(
                        f"{url} returned {response.status_code}"
                    )
                response.raise_for_status()
        return response

    def _parse(self, data: Dict[str, Any], role_name: str) -> Credentials:
        code = data.get("Code", "Success")
        if code != "Success":
            raise CredentialError(
                f"Instance metadata refused credentials for role {role_name}",
                details={"code": code, "message": data.get("Message")},
            )
        try:
            credentials = Credentials(
                access_key_id=data["AccessKeyId"],
                secret_access_key=data["SecretAccessKey"],
                session_token=data.get("Token"),
                expiration=parse_expiration(data.get("Expiration")),
            )
        except (KeyError, ValueError) as e:
            raise CredentialError(
                f"Malformed instance metadata credentials: {e}",
                details={"role": role_name},
            ) from e
        logger.info(
            f"Loaded instance role credentials for {role_name} "
            f"(expires {credentials.expiration})"
        )
        return credentials

    def close(self) -> None:
        with self._client_lock:
            client, self._client = self._client, None
        if client is not None:
            client.close()

    def __repr__(self) -> str:
        return f"InstanceMetadataProvider(endpoint='{self.endpoint}')"


def parse_expiration(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO 8601 expiry such as ``2026-10-19T12:00:00Z``.

    Naive timestamps are taken as UTC.
    """
    if not value:
        return None
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _env_number(env: Mapping[str, str], name: str, default: Any, cast: Callable[[str], Any]) -> Any:
    raw = env.get(name)
    if not raw:
        return default
    try:
        return cast(raw)
    except ValueError:
        logger.warning(f"Ignoring invalid {name}={raw!r}, using {default}")
        return default


# =============================================================================
# Provider Chain
# =============================================================================


class CredentialProviderChain(CredentialProvider):
    """
    Ordered list of providers; the first one that succeeds wins.

    Parameters
    ----------
    providers : sequence of CredentialProvider
        Providers in priority order.

    Raises
    ------
    CredentialError
        From :meth:`resolve`, when every provider failed. The error's
        details map each provider name to its failure.
    """

    name = "chain"

    def __init__(self, providers: Sequence[CredentialProvider]) -> None:
        self.providers: List[CredentialProvider] = list(providers)

    @property
    def cache_key(self) -> Hashable:
        return ("chain",) + tuple(p.cache_key for p in self.providers)

    def resolve(self) -> Credentials:
        """Return credentials from the first provider that has them."""
        failures: Dict[str, str] = {}
        for provider in self.providers:
            try:
                credentials = provider.load()
            except CredentialError as e:
                logger.debug(f"Credential provider {provider.name} failed: {e.message}")
                failures[provider.name] = e.message
                continue
            logger.debug(
                f"Resolved credentials {mask_key(credentials.access_key_id)} "
                f"from {provider.name}"
            )
            return credentials

        raise CredentialError(
            "Unable to locate AWS credentials",
            details={
                "providers": failures,
                "hint": (
                    "Pass access_key_id/secret_access_key in ConfigOverrides or set "
                    "AWS_ACCESS_KEY_ID and AWS_SECRET_ACCESS_KEY environment variables"
                ),
            },
        )

    def load(self) -> Credentials:
        return self.resolve()

    def __repr__(self) -> str:
        return f"CredentialProviderChain({self.providers!r})"
