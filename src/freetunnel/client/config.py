"""
Tunnel client configuration.

A global Config instance that can be modified at runtime.

Usage:
    from freetunnel.client.config import config

    # Modify configuration before starting the manager
    config.SERVER_URLS = ["wss://myapp.example.com/ws", "ws://myapp.example.com/ws"]
    config.SUBDOMAIN = "myapp"
"""

from dataclasses import dataclass, field
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from freetunnel.models.enums import LogLevel

# Public scheme served by the tunnel server for each transport scheme
_PUBLIC_SCHEMES = {"wss": "https", "ws": "http"}


@dataclass
class ClientConfig:
    """Tunnel client configuration."""

    # Server Configuration
    SERVER_URLS: list[str] = field(default_factory=list)  # Highest priority first
    SUBDOMAIN: str = ""
    TOKEN: str | None = None

    # Local Target Configuration
    TARGET_URL: str = "http://localhost:3000"
    FORWARD_TIMEOUT: float | None = None  # None: wait for the local target

    # Timing Configuration
    HEARTBEAT_INTERVAL_SECONDS: float = 30
    RECONNECT_DELAY_SECONDS: float = 2
    CONNECT_TIMEOUT_SECONDS: float = 10

    # Transport Configuration
    MAX_MESSAGE_SIZE: int | None = None  # No frame size limit

    # Logging Configuration
    LOG_LEVEL: LogLevel = LogLevel.INFO

    def get_candidates(self) -> tuple[str, ...]:
        """Get the ordered, read-only candidate list."""
        return tuple(self.SERVER_URLS)

    def get_tunnel_url(self, candidate: str) -> str:
        """
        Get the URL to open for a candidate.

        Adds subdomain and (if configured) token query parameters,
        replacing any existing parameters of the same name.
        """
        parts = urlsplit(candidate)
        params = {"subdomain": self.SUBDOMAIN}
        if self.TOKEN:
            params["token"] = self.TOKEN

        query = [
            (k, v)
            for k, v in parse_qsl(parts.query, keep_blank_values=True)
            if k not in params
        ]
        query.extend(params.items())
        return urlunsplit(parts._replace(query=urlencode(query)))

    def get_candidate_variant(self, candidate: str) -> str:
        """Get the transport variant of a candidate (wss or ws)."""
        return urlsplit(candidate).scheme.lower()

    def get_public_url(self, candidate: str) -> str:
        """
        Get the public base URL served for this client.

        The candidate host is used as-is when it already starts with the
        subdomain label, otherwise the subdomain is prepended.
        """
        parts = urlsplit(candidate)
        scheme = _PUBLIC_SCHEMES.get(parts.scheme.lower(), "https")
        host = parts.hostname or ""
        labels = host.split(".")
        if self.SUBDOMAIN and labels[0] != self.SUBDOMAIN:
            host = f"{self.SUBDOMAIN}.{host}"
        if parts.port:
            host = f"{host}:{parts.port}"
        return f"{scheme}://{host}"


# Global config instance
config = ClientConfig()
