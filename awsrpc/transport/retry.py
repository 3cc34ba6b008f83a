"""
Retry Policy Module
===================

Decides, after a failed attempt, whether to resend and after what delay.

Rules
-----
- Transport, server and throttling failures are retried until
  ``max_attempts`` attempts have been made.
- Client, encode and decode failures are never retried.
- The delay before retry ``n`` (``n`` = number of attempts already made)
  is ``min(max_delay, base * 2**(n-1) * (1 + jitter))`` with ``jitter``
  drawn uniformly from ``[0, 1)``. Successive jitter windows do not
  overlap, so for one failure kind delays never decrease and never exceed
  ``max_delay``.
- When the kind changes between attempts (a throttle, then a 5xx) the
  windows can overlap; passing ``previous_delay`` keeps the sequence
  non-decreasing.
- Throttling multiplies ``base`` by ``throttle_multiplier``.

Example
-------
>>> from awsrpc.core.exceptions import ErrorKind
>>> from awsrpc.transport.retry import RetryPolicy
>>>
>>> policy = RetryPolicy(base_delay=1.0, max_delay=20.0, jitter=False)
>>> policy.decide(ErrorKind.SERVER, attempt=1, max_attempts=3)
Retry(delay=1.0)
>>> policy.decide(ErrorKind.SERVER, attempt=3, max_attempts=3)
GiveUp()
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Optional, Union

from awsrpc.core.exceptions import RETRYABLE_KINDS, AWSRPCError, ErrorKind, RequestError


@dataclass(frozen=True)
class Retry:
    """Resend after ``delay`` seconds."""

    delay: float


@dataclass(frozen=True)
class GiveUp:
    """Surface the last failure to the caller."""


Decision = Union[Retry, GiveUp]


@dataclass
class RetryState:
    """
    Retry bookkeeping of one in-flight call.

    Created at call start and discarded when the call ends.
    """

    attempt: int = 0
    last_error: Optional[AWSRPCError] = None
    next_delay: Optional[float] = None


class RetryPolicy:
    """
    Exponential backoff with non-overlapping jitter.

    Parameters
    ----------
    max_attempts : int, default=3
        Attempts per call, the first one included.
    base_delay : float, default=1.0
        Delay before the first retry, in seconds, before jitter.
    max_delay : float, default=20.0
        Cap on every delay, in seconds.
    throttle_multiplier : float, default=2.0
        Factor applied to ``base_delay`` after a throttling failure.
    jitter : bool, default=True
        Randomize delays within each attempt's window.
    rng : random.Random, optional
        Random source, injectable for reproducible tests.
    """

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 20.0,
        throttle_multiplier: float = 2.0,
        jitter: bool = True,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.throttle_multiplier = throttle_multiplier
        self.jitter = jitter
        self._rng = rng or random.Random()

    @classmethod
    def from_config(cls, config, rng: Optional[random.Random] = None) -> RetryPolicy:
        """Build the policy described by a resolved ``Config``."""
        return cls(
            max_attempts=config.max_attempts,
            base_delay=config.base_backoff,
            max_delay=config.max_backoff,
            throttle_multiplier=config.throttle_multiplier,
            rng=rng,
        )

    def decide(
        self,
        failure: Union[ErrorKind, AWSRPCError],
        attempt: int,
        max_attempts: Optional[int] = None,
        previous_delay: Optional[float] = None,
    ) -> Decision:
        """
        Decide what to do after a failed attempt.

        Parameters
        ----------
        failure : ErrorKind or AWSRPCError
            Classification of the failure, or the failure itself.
        attempt : int
            Number of attempts made so far (1 after the first failure).
        max_attempts : int, optional
            Overrides the policy's own limit.
        previous_delay : float, optional
            Delay slept before this attempt; the next delay is never shorter,
            even when the failure kind changed.

        Returns
        -------
        Retry or GiveUp
        """
        kind = _kind_of(failure)
        limit = self.max_attempts if max_attempts is None else max_attempts
        if kind not in RETRYABLE_KINDS or attempt >= limit:
            return GiveUp()
        delay = self.delay(kind, attempt)
        if previous_delay is not None:
            delay = max(delay, min(previous_delay, self.max_delay))
        return Retry(delay)

    def delay(self, kind: ErrorKind, attempt: int) -> float:
        """Backoff before the retry that follows attempt number ``attempt``."""
        base = self.base_delay
        if kind == ErrorKind.THROTTLING:
            base *= self.throttle_multiplier
        window = base * (2 ** min(max(attempt - 1, 0), 62))
        factor = 1.0 + self._rng.random() if self.jitter else 1.0
        return min(self.max_delay, window * factor)


def _kind_of(failure: Union[ErrorKind, AWSRPCError]) -> Optional[ErrorKind]:
    if isinstance(failure, ErrorKind):
        return failure
    if isinstance(failure, RequestError):
        return failure.kind
    # Configuration and credential errors are fatal
    return None
