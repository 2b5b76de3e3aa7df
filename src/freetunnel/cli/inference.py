"""
Turn user-facing CLI arguments into client configuration values.

    myapp.example.com        -> wss://myapp.example.com/ws, ws://myapp.example.com/ws
                                subdomain "myapp"
    wss://myapp.example.com/ws -> that URL only, subdomain "myapp"
    localhost:3000           -> http://localhost:3000
"""

import re
from urllib.parse import urlsplit

_WS_URL_RE = re.compile(r"^wss?://", re.IGNORECASE)
_HTTP_URL_RE = re.compile(r"^https?://", re.IGNORECASE)


def infer_subdomain(host: str) -> str | None:
    """
    Get the subdomain label from a public tunnel host.

    Only hosts with at least three DNS labels carry a subdomain
    (sub.example.com -> sub). Any port is ignored.
    """
    hostname = host.split(":")[0]
    labels = [label for label in hostname.split(".") if label]
    if len(labels) >= 3:
        return labels[0]
    return None


def build_candidates(
    server: str, server_ws_url: str | None = None
) -> tuple[list[str], str | None]:
    """
    Build the ordered candidate list.

    Args:
        server: Public host (myapp.example.com) or a full ws(s):// URL.
        server_ws_url: Explicit WebSocket URL that overrides inference.

    Returns:
        (candidates, host) where host is the hostname used for subdomain
        inference, or None if it could not be determined.
    """
    if server_ws_url:
        return [server_ws_url], urlsplit(server_ws_url).hostname

    server = server.strip()
    if _WS_URL_RE.match(server):
        return [server], urlsplit(server).hostname

    host = server[:-1] if server.endswith("/") else server
    # Secure transport first, plaintext as fallback
    return [f"wss://{host}/ws", f"ws://{host}/ws"], host


def resolve_target_url(
    to: str | None,
    to_arg: str | None,
    to_proto: str = "http",
    to_host: str = "localhost",
    to_port: int | str = 3000,
) -> str:
    """
    Determine the local target URL.

    Precedence: explicit --to URL, then the positional host:port (http://
    added when no scheme is given), then --to-proto/--to-host/--to-port.
    """
    if to:
        return to
    if to_arg:
        target = to_arg.strip()
        return target if _HTTP_URL_RE.match(target) else f"http://{target}"
    return f"{to_proto}://{to_host}:{to_port}"
