"""
awsrpc: Execution Core for AWS-style HTTP RPC Calls
===================================================

Given an :class:`Operation` describing what to call, awsrpc resolves
configuration and credentials, signs the request with AWS Signature
Version 4, sends it, retries transient failures with jittered backoff,
decodes JSON or XML responses, and streams paged results lazily.

Modules
-------
core
    Operation model, configuration, codecs, pagination, the client
auth
    Credential providers, the shared credential cache, the SigV4 signer
transport
    HTTP dispatcher and retry policy
services
    Operation builders for Kinesis Firehose and STS

Example
-------
>>> from awsrpc import AWSClient, ConfigOverrides, CredentialCache, setup_logging
>>> from awsrpc.services import firehose
>>>
>>> setup_logging(level="INFO")
>>> cache = CredentialCache()
>>> with AWSClient(ConfigOverrides(region="us-east-1"), credential_cache=cache) as client:
...     for name in client.stream(firehose.list_delivery_streams()):
...         print(name)

Notes
-----
Credentials are looked up in order:
- ``access_key_id``/``secret_access_key`` in ConfigOverrides
- Environment variables (AWS_ACCESS_KEY_ID, AWS_SECRET_ACCESS_KEY)
- IAM role (EC2 instance metadata service)
"""

__version__ = "0.1.0"
__author__ = "awsrpc Team"
__license__ = "MIT"

# Public API
from awsrpc.core import (
    AWSClient,
    AWSRPCError,
    ConfigOverrides,
    Operation,
    Paginator,
    Result,
)
from awsrpc.auth import CredentialCache, Credentials
from awsrpc.core.logging import setup_logging

__all__ = [
    # Version info
    "__version__",
    "__author__",
    "__license__",
    # Core classes
    "AWSClient",
    "AWSRPCError",
    "ConfigOverrides",
    "CredentialCache",
    "Credentials",
    "Operation",
    "Paginator",
    "Result",
    # Logging
    "setup_logging",
]
