"""
Local forwarding engine.

Replays a tunneled RequestMessage against the local target service and
packages the result into a ResponseMessage. Forwarding always produces a
response: transport failures become a synthetic 502 so the server-side caller
never waits forever for a correlated reply.

Each request gets exactly one attempt; retrying is up to whoever is on the
other end of the tunnel.
"""

import json
from urllib.parse import urlsplit

import httpx

from freetunnel.models.messages import HeaderValue, RequestMessage, ResponseMessage
from freetunnel.utils.logger import format_traceback, get_logger

logger = get_logger(__name__)

UPSTREAM_ERROR_STATUS = 502
UPSTREAM_ERROR_BODY = json.dumps({"error": "Upstream error"}, separators=(",", ":"))


# =============================================================================
# Request / Response Translation
# =============================================================================


def build_target_url(target_url: str, path: str) -> str:
    """
    Join the target base URL with a request path.

    The base path loses one trailing slash and the request path is appended
    verbatim, so an empty request path maps to exactly the base path.
    """
    base = urlsplit(target_url)
    base_path = base.path[:-1] if base.path.endswith("/") else base.path
    return f"{base.scheme}://{base.netloc}{base_path}{path}"


def build_request_headers(
    target_url: str, headers: dict[str, HeaderValue]
) -> list[tuple[str, str]]:
    """Flatten message headers and point the host header at the target."""
    result: list[tuple[str, str]] = []
    for name, value in headers.items():
        if name.lower() == "host":
            continue
        if isinstance(value, list):
            result.extend((name, v) for v in value)
        else:
            result.append((name, value))
    result.append(("host", host_header(target_url)))
    return result


def host_header(target_url: str) -> str:
    """Host header value for the target: hostname and port, never userinfo."""
    parts = urlsplit(target_url)
    host = parts.hostname or ""
    if ":" in host:
        host = f"[{host}]"  # IPv6 literal
    if parts.port is not None:
        host = f"{host}:{parts.port}"
    return host


def collect_response_headers(headers: httpx.Headers) -> dict[str, HeaderValue]:
    """Group upstream headers by lowercase name; repeated names become lists."""
    result: dict[str, HeaderValue] = {}
    for name, value in headers.multi_items():
        existing = result.get(name)
        if existing is None:
            result[name] = value
        elif isinstance(existing, list):
            existing.append(value)
        else:
            result[name] = [existing, value]
    return result


def upstream_error_response(request_id: str) -> ResponseMessage:
    """Build the synthetic response used when the local target fails."""
    return ResponseMessage(
        id=request_id,
        status=UPSTREAM_ERROR_STATUS,
        headers={"content-type": "application/json"},
        body=UPSTREAM_ERROR_BODY.encode("utf-8"),
    )


# =============================================================================
# Forwarding
# =============================================================================


async def forward_request(
    target_url: str,
    request: RequestMessage,
    client: httpx.AsyncClient,
) -> ResponseMessage:
    """
    Replay a tunneled request against the local target.

    Args:
        target_url: Local target base URL (scheme://host:port[/base])
        request: Decoded request from the tunnel
        client: HTTP client used for the local call

    Returns:
        ResponseMessage with the same id as the request. Never raises for
        upstream failures; those produce a 502 response instead.
    """
    log_prefix = f"[Forward {request.id}]"

    try:
        url = build_target_url(target_url, request.path)
        outbound = client.build_request(
            request.method,
            url,
            headers=build_request_headers(target_url, request.headers),
            content=request.body,
        )
        logger.debug(f"{log_prefix} {request.method} {url}")

        # Stream so the raw (still content-encoded) body is relayed untouched
        response = await client.send(outbound, stream=True)
        try:
            body = b"".join([chunk async for chunk in response.aiter_raw()])
        finally:
            await response.aclose()

    except (httpx.HTTPError, httpx.InvalidURL) as e:
        logger.warning(
            f"{log_prefix} Upstream error for {request.method} {request.path!r}: "
            f"{type(e).__name__}: {e}"
        )
        return upstream_error_response(request.id)

    except Exception as e:
        logger.error(f"{log_prefix} Unexpected error while forwarding: {e}")
        logger.debug(format_traceback(e))
        return upstream_error_response(request.id)

    logger.debug(
        f"{log_prefix} {response.status_code} ({len(body)} bytes) "
        f"for {request.method} {request.path!r}"
    )
    return ResponseMessage(
        id=request.id,
        status=response.status_code or 200,
        headers=collect_response_headers(response.headers),
        body=body or None,
    )


class LocalForwarder:
    """
    Forwards tunneled requests to one local target.

    Owns a single httpx.AsyncClient for the lifetime of the process so that
    concurrent requests share a connection pool.
    """

    def __init__(
        self,
        target_url: str,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize the forwarder.

        Args:
            target_url: Local target base URL.
            timeout: Per-request timeout in seconds, None for no timeout.
            transport: Optional httpx transport (used by tests).
        """
        self.target_url = target_url
        self.timeout = timeout
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            follow_redirects=False,
            transport=transport,
        )

    async def forward(self, request: RequestMessage) -> ResponseMessage:
        """Forward one request; always returns a response."""
        return await forward_request(self.target_url, request, self._client)

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()
