"""
Enumeration types for FreeTunnel.

This module defines the enumeration types used throughout the client for
connection state tracking, exit status reporting, and configuration options.
"""

from enum import Enum, IntEnum


# =============================================================================
# Connection-Related Enums
# =============================================================================


class ConnectionState(str, Enum):
    """
    Connection manager lifecycle state.

    State transitions:
        IDLE -> CONNECTING (first candidate)
        CONNECTING -> CONNECTED (handshake succeeded)
        CONNECTING -> CONNECTING (fallback to next candidate, no delay)
        CONNECTED -> DISCONNECTED (connection lost)
        DISCONNECTED -> CONNECTING (after reconnect delay, first candidate)
        Any -> TERMINATED (fatal close reason or candidates exhausted)
    """

    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    TERMINATED = "terminated"


class ExitCode(IntEnum):
    """Process exit status, one per fatal condition."""

    OK = 0
    NO_CANDIDATES = 1  # Nothing to connect to, or unusable configuration
    NO_REACHABLE_SERVER = 2  # Every candidate failed before connecting
    SUBDOMAIN_IN_USE = 2  # Another client holds the subdomain
    SUBDOMAIN_REJECTED = 3  # Subdomain invalid or disallowed by server policy
    AUTH_FAILED = 4  # Token rejected


class FatalCondition(str, Enum):
    """
    Server-signaled close conditions that must not be retried.

    The value is the substring the server puts into the close reason.
    """

    SUBDOMAIN_IN_USE = "Subdomain already in use"
    SUBDOMAIN_REJECTED = "Invalid or not allowed subdomain"
    AUTH_FAILED = "Auth failed"


# =============================================================================
# Configuration Enums
# =============================================================================


class LogLevel(str, Enum):
    """
    Logging verbosity levels for FreeTunnel.

    Levels (from most to least verbose):
        - FULL: Debug output including websockets/httpx internals
        - DEBUG: Debug messages and above
        - INFO: Informational messages and above
        - WARNING: Only warnings and errors
    """

    FULL = "full"
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
