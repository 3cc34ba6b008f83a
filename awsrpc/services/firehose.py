"""
Kinesis Firehose Operations
===========================

Builders for Amazon Kinesis Data Firehose actions (JSON 1.1 protocol).

Each function returns an :class:`Operation`; nothing is sent until the
Operation is passed to an :class:`AWSClient`. Optional keyword arguments
are snake_case and sent camelized (``limit`` becomes ``Limit``).

Example
-------
>>> from awsrpc.services import firehose
>>>
>>> client.request_or_raise(firehose.put_record("logs", b"hello\\n"))
>>> for name in client.stream(firehose.list_delivery_streams(limit=10)):
...     print(name)
"""

from __future__ import annotations

import base64
from typing import Any, Dict, Iterable, List, Optional, Union

from awsrpc.core.operation import BodyFormat, Operation, Paginator
from awsrpc.services.utils import camelize_keys

SERVICE = "firehose"
NAMESPACE = "Firehose_20150804"
CONTENT_TYPE = "application/x-amz-json-1.1"

Record = Union[bytes, str, Dict[str, Any]]


def _last_stream_name(result: Any, items: List[Any]) -> Optional[str]:
    return items[-1] if items else None


DELIVERY_STREAMS_PAGINATOR = Paginator(
    result_key="DeliveryStreamNames",
    input_token="ExclusiveStartDeliveryStreamName",
    more_results="HasMoreDeliveryStreams",
    token_from=_last_stream_name,
)


def _request(action: str, data: Dict[str, Any], paginator: Optional[Paginator] = None) -> Operation:
    return Operation(
        service=SERVICE,
        headers=(
            ("x-amz-target", f"{NAMESPACE}.{action}"),
            ("content-type", CONTENT_TYPE),
        ),
        payload=data,
        body_format=BodyFormat.JSON,
        paginator=paginator,
    )


def _encode_data(data: Union[bytes, str]) -> str:
    if isinstance(data, str):
        data = data.encode("utf-8")
    return base64.b64encode(data).decode("ascii")


def _format_record(record: Record) -> Dict[str, str]:
    if isinstance(record, dict):
        record = record["data"]
    return {"Data": _encode_data(record)}


# =============================================================================
# Delivery Streams
# =============================================================================


def list_delivery_streams(**opts: Any) -> Operation:
    """
    List delivery streams.

    Pageable: :meth:`AWSClient.stream` yields stream names across pages,
    continuing from the last name while ``HasMoreDeliveryStreams`` is true.

    Parameters
    ----------
    limit : int, optional
        Maximum names per page.
    delivery_stream_type : str, optional
        ``DirectPut`` or ``KinesisStreamAsSource``.
    exclusive_start_delivery_stream_name : str, optional
        Start listing after this name.
    """
    return _request("ListDeliveryStreams", camelize_keys(opts), DELIVERY_STREAMS_PAGINATOR)


def describe_delivery_stream(delivery_stream_name: str, **opts: Any) -> Operation:
    """Describe a delivery stream (``limit``, ``exclusive_start_destination_id``)."""
    data = camelize_keys(opts)
    data["DeliveryStreamName"] = delivery_stream_name
    return _request("DescribeDeliveryStream", data)


def create_delivery_stream(delivery_stream_name: str, **opts: Any) -> Operation:
    """
    Create a delivery stream.

    Destination settings are passed as nested keyword arguments, e.g.
    ``extended_s3_destination_configuration={"BucketARN": ..., "RoleARN": ...}``;
    nested snake_case keys are camelized as well.
    """
    data = camelize_keys(opts)
    data["DeliveryStreamName"] = delivery_stream_name
    return _request("CreateDeliveryStream", data)


def delete_delivery_stream(delivery_stream_name: str) -> Operation:
    return _request("DeleteDeliveryStream", {"DeliveryStreamName": delivery_stream_name})


# =============================================================================
# Records
# =============================================================================


def put_record(delivery_stream_name: str, data: Union[bytes, str]) -> Operation:
    """Put one record; ``data`` is base64 encoded for the wire."""
    return _request(
        "PutRecord",
        {
            "DeliveryStreamName": delivery_stream_name,
            "Record": {"Data": _encode_data(data)},
        },
    )


def put_record_batch(delivery_stream_name: str, records: Iterable[Record]) -> Operation:
    """
    Put several records in one call.

    Parameters
    ----------
    delivery_stream_name : str
        Target stream.
    records : iterable
        Each record is bytes, str, or a dict with a ``data`` key.
    """
    return _request(
        "PutRecordBatch",
        {
            "DeliveryStreamName": delivery_stream_name,
            "Records": [_format_record(record) for record in records],
        },
    )


# =============================================================================
# Destinations
# =============================================================================


def update_destination(
    delivery_stream_name: str,
    version_id: str,
    destination_id: str,
    **opts: Any,
) -> Operation:
    """Update the destination ``destination_id`` of a delivery stream."""
    data = camelize_keys(opts)
    data.update(
        {
            "DeliveryStreamName": delivery_stream_name,
            "CurrentDeliveryStreamVersionId": version_id,
            "DestinationId": destination_id,
        }
    )
    return _request("UpdateDestination", data)
