"""
Tunnel protocol definitions and utilities.

Wire format (one JSON object per WebSocket frame):

    Server → Client:
        {"type": "request", "id": "...", "method": "GET", "path": "/x?y=1",
         "headers": {...}, "bodyBase64": "..."}

    Client → Server:
        {"type": "response", "id": "...", "status": 200,
         "headers": {...}, "bodyBase64": "..."}

bodyBase64 is standard base64 of the raw body and is omitted entirely when
the body is empty. The server also signals fatal conditions through the
WebSocket close reason text; see classify_close_reason().
"""

import base64
import binascii
import json

from pydantic import ValidationError

from freetunnel.client.exceptions import MessageDecodeError
from freetunnel.models.enums import FatalCondition
from freetunnel.models.messages import RequestMessage, ResponseMessage, TunnelMessage

# =============================================================================
# Message Types
# =============================================================================

MSG_REQUEST: str = "request"  # Server → Client: replay this HTTP request
MSG_RESPONSE: str = "response"  # Client → Server: result of a replayed request

BODY_FIELD = "bodyBase64"

_MESSAGE_MODELS: dict[str, type[RequestMessage] | type[ResponseMessage]] = {
    MSG_REQUEST: RequestMessage,
    MSG_RESPONSE: ResponseMessage,
}


# =============================================================================
# Body Encoding
# =============================================================================


def encode_body(body: bytes | None) -> str | None:
    """Encode a body for the wire. Empty bodies are not encoded."""
    if not body:
        return None
    return base64.b64encode(body).decode("ascii")


def decode_body(data: str | None) -> bytes | None:
    """
    Decode a wire body.

    Raises:
        MessageDecodeError: If data is not valid base64.
    """
    if data is None:
        return None
    if not isinstance(data, str):
        raise MessageDecodeError(f"{BODY_FIELD} must be a string")
    try:
        body = base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as e:
        raise MessageDecodeError(f"Invalid {BODY_FIELD}: {e}") from e
    return body or None


# =============================================================================
# Envelope Encoding
# =============================================================================


def encode_message(message: TunnelMessage) -> str:
    """
    Build the wire text for a tunnel message.

    Args:
        message: RequestMessage or ResponseMessage

    Returns:
        Compact JSON text
    """
    envelope = message.model_dump(exclude={"body"})
    body = encode_body(message.body)
    if body is not None:
        envelope[BODY_FIELD] = body
    return json.dumps(envelope, separators=(",", ":"))


def decode_message(data: str | bytes) -> TunnelMessage | None:
    """
    Parse a tunnel message from wire text.

    Args:
        data: Frame payload (text, or UTF-8 bytes for binary frames)

    Returns:
        The decoded message, or None if the envelope has a kind this
        client does not know about.

    Raises:
        MessageDecodeError: If the envelope is malformed or misses required
            fields for its declared kind.
    """
    if isinstance(data, (bytes, bytearray)):
        try:
            data = bytes(data).decode("utf-8")
        except UnicodeDecodeError as e:
            raise MessageDecodeError(f"Frame is not valid UTF-8: {e}") from e

    try:
        envelope = json.loads(data)
    except json.JSONDecodeError as e:
        raise MessageDecodeError(f"Frame is not valid JSON: {e}") from e

    if not isinstance(envelope, dict):
        raise MessageDecodeError(
            f"Envelope must be a JSON object, got {type(envelope).__name__}"
        )

    kind = envelope.get("type")
    if kind is not None and not isinstance(kind, str):
        raise MessageDecodeError(
            f"Envelope type must be a string, got {type(kind).__name__}"
        )

    model = _MESSAGE_MODELS.get(kind)
    if model is None:
        return None

    fields = {k: v for k, v in envelope.items() if k != BODY_FIELD and v is not None}
    fields["body"] = decode_body(envelope.get(BODY_FIELD))

    try:
        return model.model_validate(fields)
    except ValidationError as e:
        raise MessageDecodeError(
            f"Invalid {kind} message: {e.error_count()} error(s): "
            + "; ".join(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
                for err in e.errors()
            )
        ) from e


# =============================================================================
# Close Reasons
# =============================================================================


def classify_close_reason(reason: str | None) -> FatalCondition | None:
    """
    Map a WebSocket close reason to a fatal condition.

    Matching is by substring, since the server sends free text.

    Returns:
        The matching FatalCondition, or None for transient closes.
    """
    if not reason:
        return None
    for condition in FatalCondition:
        if condition.value in reason:
            return condition
    return None
