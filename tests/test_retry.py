"""
Tests for the retry policy.
"""

import random

import pytest

from awsrpc.core.config import ConfigOverrides, resolve_config
from awsrpc.core.exceptions import (
    ClientError,
    ConfigurationError,
    CredentialError,
    DecodeError,
    EncodeError,
    ErrorKind,
    ServerError,
    ThrottlingError,
    TransportError,
)
from awsrpc.transport.retry import GiveUp, Retry, RetryPolicy


class TestRetryDecisions:
    """Tests for RetryPolicy.decide."""

    @pytest.mark.parametrize(
        "failure",
        [
            ErrorKind.TRANSPORT,
            ErrorKind.SERVER,
            ErrorKind.THROTTLING,
            TransportError("reset"),
            ServerError("boom", status_code=500),
            ThrottlingError("slow down", status_code=429),
        ],
    )
    def test_retryable_failures(self, failure):
        """Test transient failures are retried while attempts remain."""
        policy = RetryPolicy(max_attempts=3, jitter=False)
        assert isinstance(policy.decide(failure, attempt=1), Retry)
        assert isinstance(policy.decide(failure, attempt=2), Retry)
        assert isinstance(policy.decide(failure, attempt=3), GiveUp)

    @pytest.mark.parametrize(
        "failure",
        [
            ErrorKind.CLIENT,
            ErrorKind.DECODE,
            ErrorKind.ENCODE,
            ClientError("bad", code="ValidationError", status_code=400),
            DecodeError("garbage"),
            EncodeError("unserializable payload"),
            CredentialError("none"),
            ConfigurationError("no region"),
        ],
    )
    def test_fatal_failures(self, failure):
        """Test non-retryable failures give up on the first attempt."""
        policy = RetryPolicy(max_attempts=10)
        assert policy.decide(failure, attempt=1) == GiveUp()

    def test_single_attempt(self):
        """Test max_attempts=1 never retries."""
        assert RetryPolicy(max_attempts=1).decide(ErrorKind.SERVER, attempt=1) == GiveUp()

    def test_limit_override(self):
        """Test the per-call limit overrides the policy's own."""
        policy = RetryPolicy(max_attempts=2)
        assert isinstance(policy.decide(ErrorKind.SERVER, attempt=2, max_attempts=5), Retry)


class TestRetryDelays:
    """Tests for backoff delays."""

    def test_exponential_without_jitter(self):
        """Test delays double per attempt up to the cap."""
        policy = RetryPolicy(base_delay=1.0, max_delay=20.0, jitter=False)
        delays = [policy.delay(ErrorKind.SERVER, n) for n in range(1, 8)]
        assert delays == [1.0, 2.0, 4.0, 8.0, 16.0, 20.0, 20.0]

    def test_jittered_delays_non_decreasing_and_capped(self):
        """Test jittered delays never decrease and never exceed the cap."""
        for seed in range(20):
            policy = RetryPolicy(base_delay=0.5, max_delay=20.0, rng=random.Random(seed))
            delays = [policy.delay(ErrorKind.SERVER, n) for n in range(1, 12)]
            assert delays == sorted(delays)
            assert all(0.5 <= d <= 20.0 for d in delays)

    def test_jitter_window(self):
        """Test each delay stays inside its attempt's window."""
        policy = RetryPolicy(base_delay=1.0, max_delay=100.0, rng=random.Random(3))
        for attempt in range(1, 6):
            delay = policy.delay(ErrorKind.TRANSPORT, attempt)
            window = 2 ** (attempt - 1)
            assert window <= delay < 2 * window

    def test_throttling_backs_off_longer(self):
        """Test throttling multiplies the base delay."""
        policy = RetryPolicy(base_delay=1.0, throttle_multiplier=3.0, jitter=False)
        assert policy.delay(ErrorKind.THROTTLING, 1) == 3.0
        assert policy.delay(ErrorKind.SERVER, 1) == 1.0

    def test_large_attempt_is_capped(self):
        """Test very large attempt numbers do not overflow."""
        policy = RetryPolicy(max_delay=20.0)
        assert policy.delay(ErrorKind.SERVER, 10_000) == 20.0

    def test_decision_carries_delay(self):
        """Test Retry carries the computed delay."""
        policy = RetryPolicy(base_delay=0.1, jitter=False)
        assert policy.decide(ErrorKind.SERVER, attempt=2) == Retry(0.2)

    def test_kind_change_never_shortens_delay(self):
        """Test a server error after a throttle waits at least as long as before."""
        policy = RetryPolicy(base_delay=1.0, throttle_multiplier=4.0, jitter=False)
        first = policy.decide(ErrorKind.THROTTLING, attempt=1)
        assert first == Retry(4.0)

        assert policy.decide(ErrorKind.SERVER, attempt=2) == Retry(2.0)
        assert policy.decide(ErrorKind.SERVER, attempt=2, previous_delay=first.delay) == Retry(4.0)

    def test_previous_delay_respects_cap(self):
        """Test carrying the previous delay never exceeds the cap."""
        policy = RetryPolicy(base_delay=1.0, max_delay=3.0, jitter=False)
        assert policy.decide(ErrorKind.SERVER, attempt=1, previous_delay=50.0) == Retry(3.0)

    def test_from_config(self):
        """Test the policy mirrors a resolved config."""
        config = resolve_config(
            "firehose",
            ConfigOverrides(region="us-east-1", max_attempts=6, base_backoff=0.2, max_backoff=3.0),
            environ={},
        )
        policy = RetryPolicy.from_config(config)
        assert policy.max_attempts == 6
        assert policy.base_delay == 0.2
        assert policy.max_delay == 3.0
        assert policy.throttle_multiplier == 2.0
