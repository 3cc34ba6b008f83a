"""
Tests for the response codecs.
"""

import pytest

from awsrpc.core.codecs import JSONCodec, XMLCodec, decode, encode, get_codec
from awsrpc.core.exceptions import DecodeError, EncodeError, ErrorKind
from awsrpc.core.operation import ResponseFormat

CALLER_IDENTITY = b"""<GetCallerIdentityResponse xmlns="https://sts.amazonaws.com/doc/2011-06-15/">
  <GetCallerIdentityResult>
    <Arn>arn:aws:iam::123456789012:user/Alice</Arn>
    <UserId>AKIAI44QH8DHBEXAMPLE</UserId>
    <Account>123456789012</Account>
  </GetCallerIdentityResult>
  <ResponseMetadata>
    <RequestId>01234567-89ab-cdef-0123-456789abcdef</RequestId>
  </ResponseMetadata>
</GetCallerIdentityResponse>"""


class TestJSONCodec:
    """Tests for JSONCodec."""

    def test_decode(self):
        """Test JSON bodies decode to structures."""
        assert JSONCodec().decode(b'{"A": 1, "B": [true, null]}') == {"A": 1, "B": [True, None]}

    def test_empty_body(self):
        """Test an empty body decodes to an empty dict."""
        assert JSONCodec().decode(b"") == {}
        assert JSONCodec().decode(b"  \n") == {}

    @pytest.mark.parametrize("body", [b"{not json", b"\xff\xfe", b'{"A": 1'])
    def test_malformed(self, body):
        """Test malformed JSON is a decode error, never an empty success."""
        with pytest.raises(DecodeError) as exc_info:
            JSONCodec().decode(body)
        assert not exc_info.value.retryable

    def test_round_trip(self):
        """Test decode inverts encode."""
        value = {"DeliveryStreamName": "logs", "Records": [{"Data": "aGk="}], "Limit": 3}
        codec = JSONCodec()
        assert codec.decode(codec.encode(value)) == value

    def test_compact_encoding(self):
        """Test encoding has no insignificant whitespace."""
        assert JSONCodec().encode({"A": [1, 2]}) == b'{"A":[1,2]}'

    def test_encode_unserializable(self):
        """Test values JSON cannot represent raise a non-retryable encode error."""
        with pytest.raises(EncodeError) as exc_info:
            JSONCodec().encode({"A": {1, 2}})
        assert exc_info.value.kind == ErrorKind.ENCODE
        assert not exc_info.value.retryable


class TestXMLCodec:
    """Tests for XMLCodec."""

    def test_decode_query_response(self):
        """Test an STS response with namespace stripped."""
        decoded = XMLCodec().decode(CALLER_IDENTITY)
        result = decoded["GetCallerIdentityResponse"]["GetCallerIdentityResult"]
        assert result == {
            "Arn": "arn:aws:iam::123456789012:user/Alice",
            "UserId": "AKIAI44QH8DHBEXAMPLE",
            "Account": "123456789012",
        }

    def test_member_lists(self):
        """Test member wrappers become lists, even with one element."""
        decoded = XMLCodec().decode(
            b"<R><Names><member>a</member><member>b</member></Names>"
            b"<Single><member>c</member></Single></R>"
        )
        assert decoded == {"R": {"Names": ["a", "b"], "Single": ["c"]}}

    def test_repeated_siblings(self):
        """Test repeated sibling elements become a list."""
        decoded = XMLCodec().decode(b"<R><Item>1</Item><Item>2</Item><Item>3</Item><Other>x</Other></R>")
        assert decoded == {"R": {"Item": ["1", "2", "3"], "Other": "x"}}

    def test_empty_elements(self):
        """Test empty and whitespace-only elements decode to None."""
        decoded = XMLCodec().decode(b"<R><Empty/><Blank>  </Blank></R>")
        assert decoded == {"R": {"Empty": None, "Blank": None}}

    def test_empty_body(self):
        """Test an empty body decodes to an empty dict."""
        assert XMLCodec().decode(b"") == {}

    def test_malformed(self):
        """Test malformed XML is a decode error."""
        with pytest.raises(DecodeError):
            XMLCodec().decode(b"<R><Open></R>")

    def test_round_trip(self):
        """Test decode inverts encode."""
        value = {
            "CreateQueueRequest": {
                "QueueName": "jobs",
                "Tags": ["a", "b"],
                "Attributes": {"DelaySeconds": "5", "FifoQueue": "true"},
            }
        }
        codec = XMLCodec()
        assert codec.decode(codec.encode(value)) == value

    def test_encode_scalars(self):
        """Test booleans and numbers are written as text."""
        encoded = XMLCodec().encode({"R": {"Flag": True, "Count": 2, "Nothing": None}})
        assert encoded.endswith(b"<R><Flag>true</Flag><Count>2</Count><Nothing /></R>")

    def test_encode_requires_single_root(self):
        """Test encoding needs exactly one root element."""
        with pytest.raises(EncodeError):
            XMLCodec().encode({"A": 1, "B": 2})

    def test_encode_invalid_tag(self):
        """Test a non-string element name is an encode error."""
        with pytest.raises(EncodeError):
            XMLCodec().encode({"R": {1: "one"}})


class TestCodecLookup:
    """Tests for the codec table helpers."""

    def test_none_returns_raw_bytes(self):
        """Test the NONE format leaves the body untouched."""
        assert decode(ResponseFormat.NONE, b"\x00raw") == b"\x00raw"

    def test_format_dispatch(self):
        """Test formats map to their codecs."""
        assert isinstance(get_codec(ResponseFormat.JSON), JSONCodec)
        assert isinstance(get_codec(ResponseFormat.XML), XMLCodec)
        assert decode(ResponseFormat.JSON, encode(ResponseFormat.JSON, {"A": 1})) == {"A": 1}

    def test_custom_table(self):
        """Test a custom table takes precedence, defaults fill the rest."""

        class UpperCodec(JSONCodec):
            def decode(self, body):
                return body.decode().upper()

        table = {ResponseFormat.JSON: UpperCodec()}
        assert get_codec(ResponseFormat.JSON, table).decode(b"abc") == "ABC"
        assert isinstance(get_codec(ResponseFormat.XML, table), XMLCodec)
