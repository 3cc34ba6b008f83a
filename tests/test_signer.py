"""
Tests for the SigV4 signer.
"""

from dataclasses import replace
from datetime import timedelta

import pytest
from botocore.auth import SigV4Auth
from botocore.awsrequest import AWSRequest
from botocore.credentials import Credentials as BotocoreCredentials

from awsrpc.auth.providers import Credentials
from awsrpc.auth.signer import (
    SigV4Signer,
    canonical_query_string,
    canonical_uri,
    derive_signing_key,
    normalize_path,
)
from awsrpc.core.config import ConfigOverrides, resolve_config
from awsrpc.core.operation import BodyFormat, Operation
from awsrpc.services import firehose

from conftest import ACCESS_KEY_ID, FIXED_TIME, SECRET_ACCESS_KEY


@pytest.fixture
def config():
    return resolve_config("firehose", ConfigOverrides(region="us-east-1"), environ={})


@pytest.fixture
def credentials():
    return Credentials(access_key_id=ACCESS_KEY_ID, secret_access_key=SECRET_ACCESS_KEY)


@pytest.fixture
def signer():
    return SigV4Signer()


def botocore_signature(signed, region, service, credentials):
    """Recompute a signature with botocore from the signed request's parts."""
    headers = {k: v for k, v in signed.headers if k != "Authorization"}
    request = AWSRequest(method=signed.method, url=signed.url, data=signed.body, headers=headers)
    request.context["timestamp"] = signed.header("X-Amz-Date")

    auth = SigV4Auth(
        BotocoreCredentials(credentials.access_key_id, credentials.secret_access_key, credentials.session_token),
        service,
        region,
    )
    canonical = auth.canonical_request(request)
    return canonical, auth.signature(auth.string_to_sign(request, canonical), request)


class TestSigV4Signer:
    """Tests for SigV4Signer."""

    def test_deterministic(self, signer, config, credentials):
        """Test identical inputs give identical signatures."""
        operation = firehose.list_delivery_streams(limit=10)
        first = signer.sign(operation, config, credentials, FIXED_TIME)
        second = signer.sign(operation, config, credentials, FIXED_TIME)
        assert first == second

    def test_authorization_header(self, signer, config, credentials):
        """Test the generated headers and credential scope."""
        signed = signer.sign(firehose.list_delivery_streams(), config, credentials, FIXED_TIME)

        authorization = signed.header("Authorization")
        assert authorization.startswith(
            "AWS4-HMAC-SHA256 Credential=AKIDEXAMPLE/20150830/us-east-1/firehose/aws4_request, "
        )
        assert "SignedHeaders=content-type;host;x-amz-content-sha256;x-amz-date;x-amz-target, " in authorization
        assert signed.header("X-Amz-Date") == "20150830T123600Z"
        assert signed.header("Host") == "firehose.us-east-1.amazonaws.com"
        assert signed.url == "https://firehose.us-east-1.amazonaws.com/"
        assert signed.method == "POST"

    def test_agrees_with_botocore(self, signer, config, credentials):
        """Test the signature matches botocore's SigV4 implementation."""
        operation = firehose.describe_delivery_stream("web-logs", limit=5)
        signed = signer.sign(operation, config, credentials, FIXED_TIME)

        canonical, expected = botocore_signature(signed, "us-east-1", "firehose", credentials)

        assert signer.canonical_request(operation, config, credentials, FIXED_TIME) == canonical
        assert signed.header("Authorization").endswith(f"Signature={expected}")

    def test_agrees_with_botocore_with_query_and_token(self, signer, credentials):
        """Test agreement for a GET with query parameters and a session token."""
        config = resolve_config("monitoring", ConfigOverrides(region="eu-west-1"), environ={})
        credentials = replace(credentials, session_token="session+token/=")
        operation = Operation(
            service="monitoring",
            method="GET",
            query=(("Version", "2010-08-01"), ("Action", "ListMetrics"), ("Namespace", "AWS/EC2")),
        )
        signed = signer.sign(operation, config, credentials, FIXED_TIME)

        canonical, expected = botocore_signature(signed, "eu-west-1", "monitoring", credentials)

        assert signed.header("X-Amz-Security-Token") == "session+token/="
        assert "x-amz-security-token" in signed.header("Authorization")
        assert signed.header("Authorization").endswith(f"Signature={expected}")
        assert signed.url == (
            "https://monitoring.eu-west-1.amazonaws.com/"
            "?Version=2010-08-01&Action=ListMetrics&Namespace=AWS%2FEC2"
        )
        assert canonical.splitlines()[2] == "Action=ListMetrics&Namespace=AWS%2FEC2&Version=2010-08-01"

    def test_body_changes_signature(self, signer, config, credentials):
        """Test the body is covered by the signature."""
        first = signer.sign(firehose.put_record("s", b"one"), config, credentials, FIXED_TIME)
        second = signer.sign(firehose.put_record("s", b"two"), config, credentials, FIXED_TIME)
        assert first.header("Authorization") != second.header("Authorization")
        assert first.header("X-Amz-Content-SHA256") != second.header("X-Amz-Content-SHA256")

    def test_timestamp_changes_signature(self, signer, config, credentials):
        """Test re-signing at a later time gives a new signature."""
        operation = firehose.list_delivery_streams()
        first = signer.sign(operation, config, credentials, FIXED_TIME)
        later = signer.sign(operation, config, credentials, FIXED_TIME + timedelta(seconds=1))
        assert first.header("Authorization") != later.header("Authorization")

    def test_content_type_added_for_payload(self, signer, config, credentials):
        """Test structured payloads get the codec's content type."""
        operation = Operation(service="firehose", payload={"A": 1}, body_format=BodyFormat.JSON)
        signed = signer.sign(operation, config, credentials, FIXED_TIME)
        assert signed.header("Content-Type") == "application/x-amz-json-1.1"
        assert signed.body == b'{"A":1}'

    def test_operation_cannot_override_generated_headers(self, signer, config, credentials):
        """Test an Operation's own date and host headers are replaced."""
        operation = firehose.list_delivery_streams().with_header("X-Amz-Date", "19990101T000000Z")
        signed = signer.sign(operation, config, credentials, FIXED_TIME)
        dates = [v for k, v in signed.headers if k.lower() == "x-amz-date"]
        assert dates == ["20150830T123600Z"]

    def test_user_agent_not_signed(self, signer, config, credentials):
        """Test headers proxies may rewrite stay out of the signature."""
        operation = firehose.list_delivery_streams().with_header("User-Agent", "awsrpc/0.1.0")
        signed = signer.sign(operation, config, credentials, FIXED_TIME)
        assert signed.header("User-Agent") == "awsrpc/0.1.0"
        assert "user-agent" not in signed.header("Authorization")


class TestSigningHelpers:
    """Tests for the canonicalization helpers."""

    def test_signing_key_vector(self):
        """Test the documented signing key derivation example."""
        key = derive_signing_key(SECRET_ACCESS_KEY, "20120215", "us-east-1", "iam")
        assert key.hex() == "f4780e2d9f65fa895f9c67b32ce1baf0b0d8a43505a000a1a9e090d414db404d"

    def test_normalize_path(self):
        """Test dot segments and duplicate slashes are removed."""
        assert normalize_path("/a/./b/../c/") == "/a/c/"
        assert normalize_path("//a//b") == "/a/b"
        assert normalize_path("") == "/"

    def test_double_encoding(self):
        """Test non-S3 paths are encoded twice, S3 paths once."""
        assert canonical_uri(Operation(service="lambda", path="/a b")) == "/a%2520b"
        assert canonical_uri(Operation(service="s3", path="/a b")) == "/a%20b"

    def test_query_sorted_and_encoded(self):
        """Test query pairs are encoded, then sorted."""
        query = (("b", "2"), ("a", "x y"), ("a", "1"))
        assert canonical_query_string(query) == "a=1&a=x%20y&b=2"
