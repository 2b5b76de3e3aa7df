"""
Tests for the tunnel message codec and close-reason classification.
"""

import base64
import json

import pytest

from freetunnel.client.exceptions import MessageDecodeError
from freetunnel.models.enums import FatalCondition
from freetunnel.models.messages import RequestMessage, ResponseMessage
from freetunnel.tunnel.protocol import (
    BODY_FIELD,
    classify_close_reason,
    decode_message,
    encode_message,
)


class TestEncodeDecode:
    """Envelope encoding and decoding"""

    def test_request_round_trip_with_body(self):
        msg = RequestMessage(
            id="req-1",
            method="POST",
            path="/items?x=1",
            headers={"content-type": "application/json", "x-multi": ["a", "b"]},
            body=b'{"name": "widget"}',
        )
        decoded = decode_message(encode_message(msg))
        assert decoded == msg

    def test_response_round_trip_without_body(self):
        msg = ResponseMessage(id="req-2", status=204, headers={"x-a": "1"})
        wire = encode_message(msg)

        assert BODY_FIELD not in json.loads(wire)
        decoded = decode_message(wire)
        assert decoded == msg
        assert decoded.body is None

    def test_empty_body_is_not_encoded(self):
        msg = ResponseMessage(id="r", body=b"")
        envelope = json.loads(encode_message(msg))
        assert BODY_FIELD not in envelope

    def test_binary_body_uses_base64(self):
        raw = bytes(range(256))
        envelope = json.loads(encode_message(ResponseMessage(id="bin", body=raw)))
        assert base64.b64decode(envelope[BODY_FIELD]) == raw
        assert envelope["type"] == "response"

    def test_decode_server_request(self):
        wire = json.dumps(
            {
                "id": "abc",
                "type": "request",
                "method": "PUT",
                "path": "/upload",
                "headers": {"content-length": 5},
                "bodyBase64": base64.b64encode(b"hello").decode(),
            }
        )
        msg = decode_message(wire)
        assert isinstance(msg, RequestMessage)
        assert msg.id == "abc"
        assert msg.body == b"hello"
        # Non-string header values are coerced
        assert msg.headers == {"content-length": "5"}

    def test_missing_headers_treated_as_empty(self):
        msg = decode_message('{"id":"1","type":"request","method":"GET","path":""}')
        assert msg.headers == {}
        assert msg.path == ""
        assert msg.body is None

    def test_null_headers_treated_as_empty(self):
        msg = decode_message(
            '{"id":"1","type":"request","method":"GET","path":"/","headers":null}'
        )
        assert msg.headers == {}

    def test_binary_frame_decoded_as_utf8(self):
        wire = b'{"id":"1","type":"request","method":"GET","path":"/"}'
        assert isinstance(decode_message(wire), RequestMessage)

    def test_response_status_defaults_to_200(self):
        msg = decode_message('{"id":"1","type":"response"}')
        assert isinstance(msg, ResponseMessage)
        assert msg.status == 200


class TestDecodeErrors:
    """Malformed envelopes"""

    @pytest.mark.parametrize(
        "wire",
        [
            "not json",
            "[1, 2, 3]",
            '"just a string"',
            '{"type":"request","method":"GET","path":"/"}',  # no id
            '{"type":"request","id":"1","path":"/"}',  # no method
            '{"type":"request","id":"1","method":"GET"}',  # no path
            '{"type":"response","status":200}',  # no id
            '{"type":"request","id":"1","method":"GET","path":"/","bodyBase64":"@@@"}',
            b"\xff\xfe\x00",
            '{"type":{"a":1}}',
            '{"type":["request"],"id":"x"}',
            '{"type":5,"id":"x"}',
        ],
    )
    def test_malformed_raises(self, wire):
        with pytest.raises(MessageDecodeError):
            decode_message(wire)

    @pytest.mark.parametrize("kind", ["ping", "hello", None])
    def test_unknown_kind_is_ignored(self, kind):
        wire = json.dumps({"type": kind, "id": "1"})
        assert decode_message(wire) is None


class TestCloseReason:
    """Fatal close reason classification"""

    @pytest.mark.parametrize(
        "reason,expected",
        [
            ("Subdomain already in use", FatalCondition.SUBDOMAIN_IN_USE),
            (
                "Error: Subdomain already in use by another client",
                FatalCondition.SUBDOMAIN_IN_USE,
            ),
            ("Invalid or not allowed subdomain", FatalCondition.SUBDOMAIN_REJECTED),
            ("Auth failed", FatalCondition.AUTH_FAILED),
            ("Auth failed: bad token", FatalCondition.AUTH_FAILED),
        ],
    )
    def test_fatal_reasons(self, reason, expected):
        assert classify_close_reason(reason) is expected

    @pytest.mark.parametrize("reason", ["", None, "Server restarting", "going away"])
    def test_transient_reasons(self, reason):
        assert classify_close_reason(reason) is None
