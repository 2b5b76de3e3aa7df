"""
Tunnel message protocol.

This module provides the wire codec for the JSON request/response envelopes
exchanged with the tunnel server, and the close-reason classification used
to detect fatal server-side rejections.
"""

from freetunnel.tunnel.protocol import (
    BODY_FIELD,
    MSG_REQUEST,
    MSG_RESPONSE,
    classify_close_reason,
    decode_body,
    decode_message,
    encode_body,
    encode_message,
)

__all__ = [
    "BODY_FIELD",
    "MSG_REQUEST",
    "MSG_RESPONSE",
    "classify_close_reason",
    "decode_body",
    "decode_message",
    "encode_body",
    "encode_message",
]
