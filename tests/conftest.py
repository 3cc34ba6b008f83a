"""
Pytest configuration and shared fixtures for testing.
"""

import json
import random
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from awsrpc.auth.providers import CredentialProvider, Credentials, EnvironmentCredentialsProvider
from awsrpc.core.client import AWSClient
from awsrpc.transport.dispatcher import HttpxDispatcher

ACCESS_KEY_ID = "AKIDEXAMPLE"
SECRET_ACCESS_KEY = "wJalrXUtnFEMI/K7MDENG+bPxRfiCYEXAMPLEKEY"
FIXED_TIME = datetime(2015, 8, 30, 12, 36, 0, tzinfo=timezone.utc)


def json_response(status_code, payload=None, **kwargs):
    """Build an httpx response with a JSON body."""
    body = b"" if payload is None else json.dumps(payload).encode("utf-8")
    return httpx.Response(status_code, content=body, **kwargs)


class ScriptedTransport:
    """
    Replays canned responses in order and records every request.

    An entry may be an ``httpx.Response``, or a callable taking the
    request and returning a response (or raising).
    """

    def __init__(self, responses):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        if not self.responses:
            raise AssertionError(f"Unexpected request: {request.method} {request.url}")
        item = self.responses.pop(0)
        if callable(item):
            return item(request)
        return item

    @property
    def bodies(self):
        return [json.loads(r.content) if r.content else None for r in self.requests]


class CountingProvider(CredentialProvider):
    """Provider returning fixed credentials and counting its invocations."""

    name = "counting"

    def __init__(self, key="counting", expiration=None, access_key_id=ACCESS_KEY_ID):
        self.key = key
        self.expiration = expiration
        self.access_key_id = access_key_id
        self.calls = 0

    @property
    def cache_key(self):
        return (self.key,)

    def load(self):
        self.calls += 1
        return Credentials(
            access_key_id=self.access_key_id,
            secret_access_key=SECRET_ACCESS_KEY,
            expiration=self.expiration,
        )


class FakeClock:
    """Manually advanced, timezone-aware clock."""

    def __init__(self, now=FIXED_TIME):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def environ():
    """Isolated environment with credentials and a region."""
    return {
        "AWS_ACCESS_KEY_ID": ACCESS_KEY_ID,
        "AWS_SECRET_ACCESS_KEY": SECRET_ACCESS_KEY,
        "AWS_REGION": "us-east-1",
    }


@pytest.fixture
def aws_credentials(monkeypatch):
    """Mock AWS credentials in the process environment."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")
    monkeypatch.delenv("AWS_REGION", raising=False)


@pytest.fixture
def sleeps():
    """Delays passed to the client's sleep function."""
    return []


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_client(environ, sleeps, clock):
    """
    Factory for clients wired to a scripted transport.

    Returns ``(client, transport)``; extra keyword arguments go to
    :class:`AWSClient`.
    """
    dispatchers = []

    def factory(*responses, **kwargs):
        transport = ScriptedTransport(responses)
        dispatcher = HttpxDispatcher(transport=httpx.MockTransport(transport))
        dispatchers.append(dispatcher)
        env = kwargs.pop("environ", environ)
        kwargs.setdefault("providers", [EnvironmentCredentialsProvider(env)])
        kwargs.setdefault("sleep", sleeps.append)
        kwargs.setdefault("clock", clock)
        kwargs.setdefault("rng", random.Random(7))
        client = AWSClient(dispatcher=dispatcher, environ=env, **kwargs)
        return client, transport

    yield factory

    for dispatcher in dispatchers:
        dispatcher.close()
