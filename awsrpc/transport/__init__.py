"""
Transport Layer
===============

Sending requests and deciding whether to send them again.

Classes
-------
Dispatcher
    Abstract HTTP transport.
HttpxDispatcher
    Dispatcher backed by httpx.
RetryPolicy
    Exponential backoff with jitter.
"""

from awsrpc.transport.dispatcher import (
    Dispatcher,
    HttpxDispatcher,
    classify_response,
    parse_error_body,
)
from awsrpc.transport.retry import GiveUp, Retry, RetryPolicy, RetryState

__all__ = [
    "Dispatcher",
    "HttpxDispatcher",
    "classify_response",
    "parse_error_body",
    "GiveUp",
    "Retry",
    "RetryPolicy",
    "RetryState",
]
