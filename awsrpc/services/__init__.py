"""
Service Builders
================

Functions that build :class:`~awsrpc.core.operation.Operation` values for
specific AWS actions. The execution pipeline does not depend on them; only
the identity helpers on :class:`~awsrpc.core.client.AWSClient` use ``sts``.

Modules
-------
firehose
    Kinesis Data Firehose (JSON protocol, pageable listing).
sts
    Security Token Service (Query protocol, XML responses).
"""

from awsrpc.services import firehose, sts

__all__ = ["firehose", "sts"]
