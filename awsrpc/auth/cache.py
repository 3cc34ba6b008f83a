"""
Credential Cache Module
=======================

Process-wide memoization of resolved credentials.

One :class:`CredentialCache` is created at process start by the
composition root and handed by reference to every
:class:`~awsrpc.core.client.AWSClient`. It is never reset implicitly.

Concurrency
-----------
- Reads of still-valid credentials take no lock.
- Refreshes are serialized per provider: while one thread refreshes,
  other threads asking for the same provider wait and then share its
  result, so N concurrent callers cause a single provider invocation.

Example
-------
>>> from awsrpc.auth.cache import CredentialCache
>>> from awsrpc.auth.providers import EnvironmentCredentialsProvider
>>>
>>> cache = CredentialCache()
>>> provider = EnvironmentCredentialsProvider()
>>> first = cache.get(provider)
>>> cache.get(provider) is first
True
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Hashable, Optional

from awsrpc.auth.providers import CredentialProvider, Credentials
from awsrpc.core.logging import mask_key

# Module logger
logger = logging.getLogger(__name__)

DEFAULT_REFRESH_SKEW = timedelta(minutes=5)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CredentialCache:
    """
    Thread-safe, single-flight credential cache keyed by provider identity.

    Parameters
    ----------
    refresh_skew : timedelta, default=5 minutes
        Credentials are refreshed once ``now >= expiration - refresh_skew``.
    clock : callable, optional
        Returns the current timezone-aware time. Injectable for tests.

    Attributes
    ----------
    refresh_count : int
        Number of provider invocations performed so far.
    """

    def __init__(
        self,
        refresh_skew: timedelta = DEFAULT_REFRESH_SKEW,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.refresh_skew = refresh_skew
        self._clock = clock or utc_now
        self._entries: Dict[Hashable, Credentials] = {}
        self._locks: Dict[Hashable, threading.Lock] = {}
        self._locks_guard = threading.Lock()
        self.refresh_count = 0

    def get(self, provider: CredentialProvider) -> Credentials:
        """
        Return valid credentials for ``provider``.

        Parameters
        ----------
        provider : CredentialProvider
            Usually a :class:`CredentialProviderChain`.

        Returns
        -------
        Credentials
            Cached credentials, or freshly resolved ones.

        Raises
        ------
        CredentialError
            If a refresh was needed and the provider failed.
        """
        key = provider.cache_key

        cached = self._entries.get(key)
        if cached is not None and cached.is_valid(self._clock(), self.refresh_skew):
            return cached

        with self._lock_for(key):
            # Another thread may have refreshed while we waited
            cached = self._entries.get(key)
            if cached is not None and cached.is_valid(self._clock(), self.refresh_skew):
                return cached

            if cached is None:
                logger.debug(f"Resolving credentials for {provider!r}")
            else:
                logger.info(
                    f"Refreshing credentials {mask_key(cached.access_key_id)} "
                    f"(expire {cached.expiration})"
                )
            credentials = provider.load()
            self.refresh_count += 1
            self._entries[key] = credentials
            return credentials

    def invalidate(self, provider: Optional[CredentialProvider] = None) -> None:
        """
        Drop cached credentials explicitly.

        Parameters
        ----------
        provider : CredentialProvider, optional
            Provider whose entry is dropped; all entries when omitted.
        """
        if provider is None:
            self._entries.clear()
        else:
            self._entries.pop(provider.cache_key, None)

    def _lock_for(self, key: Hashable) -> threading.Lock:
        lock = self._locks.get(key)
        if lock is None:
            with self._locks_guard:
                lock = self._locks.setdefault(key, threading.Lock())
        return lock

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return (
            f"CredentialCache(entries={len(self._entries)}, "
            f"refresh_skew={self.refresh_skew})"
        )
