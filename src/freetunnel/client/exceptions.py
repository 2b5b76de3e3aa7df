"""Tunnel client exception classes."""

from freetunnel.models.enums import ExitCode


class TunnelError(Exception):
    """Base exception for tunnel client operations."""

    pass


class MessageDecodeError(TunnelError):
    """An inbound frame could not be decoded into a tunnel message."""

    pass


# =============================================================================
# Fatal Conditions (terminate the process)
# =============================================================================


class TunnelFatalError(TunnelError):
    """A condition the client cannot recover from by reconnecting."""

    exit_code: ExitCode = ExitCode.NO_CANDIDATES

    def __init__(self, message: str, exit_code: ExitCode | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class NoCandidatesError(TunnelFatalError):
    """No server candidates were configured."""

    exit_code = ExitCode.NO_CANDIDATES

    def __init__(self):
        super().__init__("No tunnel server candidates configured.")


class NoReachableServerError(TunnelFatalError):
    """Every candidate failed before a connection was established."""

    exit_code = ExitCode.NO_REACHABLE_SERVER

    def __init__(self, candidates: list[str], last_reason: str = ""):
        self.candidates = candidates
        self.last_reason = last_reason
        message = "Could not connect to any tunnel server candidate: " + ", ".join(
            candidates
        )
        if last_reason:
            message += f" (last error: {last_reason})"
        super().__init__(message)


class SubdomainInUseError(TunnelFatalError):
    """Server reported the subdomain is held by another client."""

    exit_code = ExitCode.SUBDOMAIN_IN_USE

    def __init__(self):
        super().__init__(
            "The requested subdomain is already in use. Choose another subdomain."
        )


class SubdomainRejectedError(TunnelFatalError):
    """Server rejected the subdomain by policy."""

    exit_code = ExitCode.SUBDOMAIN_REJECTED

    def __init__(self):
        super().__init__("Subdomain invalid or not allowed by server policy.")


class AuthFailedError(TunnelFatalError):
    """Server rejected the auth token."""

    exit_code = ExitCode.AUTH_FAILED

    def __init__(self):
        super().__init__("Authentication failed. Check your token.")
