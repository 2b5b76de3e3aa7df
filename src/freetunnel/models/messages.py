"""
Pydantic models for tunnel messages.

The tunnel server pushes RequestMessage objects over the WebSocket and the
client answers each one with exactly one ResponseMessage carrying the same id.
Bodies are held as raw bytes here; the wire encoding (base64 inside JSON)
is handled by freetunnel.tunnel.protocol.
"""

from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

# Header values are a single string, or a list for repeated headers (set-cookie)
HeaderValue = str | list[str]


def _coerce_headers(value: Any) -> Any:
    """Treat null headers as empty and stringify scalar values."""
    if value is None:
        return {}
    if not isinstance(value, dict):
        return value
    coerced: dict[str, Any] = {}
    for name, item in value.items():
        if isinstance(item, list):
            coerced[name] = [str(v) for v in item]
        elif item is None:
            continue
        else:
            coerced[name] = str(item)
    return coerced


# =============================================================================
# Tunnel Messages
# =============================================================================


class RequestMessage(BaseModel):
    """A unit of work pushed by the server over the tunnel connection."""

    type: Literal["request"] = "request"
    id: str = Field(..., description="Server-generated correlation id")
    method: str = Field(..., description="HTTP method")
    path: str = Field(..., description="Path and query relative to target base")
    headers: dict[str, HeaderValue] = Field(default_factory=dict)
    body: bytes | None = Field(
        default=None,
        description="Raw request body, only set when the request had one",
    )

    @field_validator("headers", mode="before")
    @classmethod
    def normalize_headers(cls, value: Any) -> Any:
        return _coerce_headers(value)


class ResponseMessage(BaseModel):
    """The result of replaying one RequestMessage against the local target."""

    type: Literal["response"] = "response"
    id: str = Field(..., description="Copied verbatim from the request")
    status: int = Field(default=200, description="HTTP status code")
    headers: dict[str, HeaderValue] = Field(default_factory=dict)
    body: bytes | None = Field(
        default=None,
        description="Raw response body, None when empty",
    )

    @field_validator("headers", mode="before")
    @classmethod
    def normalize_headers(cls, value: Any) -> Any:
        return _coerce_headers(value)


TunnelMessage = RequestMessage | ResponseMessage
