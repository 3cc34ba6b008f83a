"""
Authentication
==============

Credential resolution, caching and request signing.

Classes
-------
Credentials
    Access key, secret key, optional session token and expiry.
CredentialProviderChain
    Ordered credential sources, first success wins.
CredentialCache
    Process-wide, single-flight credential cache.
SigV4Signer
    AWS Signature Version 4 signer.
"""

from awsrpc.auth.cache import CredentialCache
from awsrpc.auth.providers import (
    CredentialProvider,
    CredentialProviderChain,
    Credentials,
    EnvironmentCredentialsProvider,
    InstanceMetadataProvider,
    StaticCredentialsProvider,
)
from awsrpc.auth.signer import SigV4Signer

__all__ = [
    "CredentialCache",
    "CredentialProvider",
    "CredentialProviderChain",
    "Credentials",
    "EnvironmentCredentialsProvider",
    "InstanceMetadataProvider",
    "StaticCredentialsProvider",
    "SigV4Signer",
]
