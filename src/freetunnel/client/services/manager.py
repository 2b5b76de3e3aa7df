"""
Connection manager for the tunnel client.

Drives the connection lifecycle across the ordered candidate list:

    IDLE ─▶ CONNECTING(0) ─fail─▶ CONNECTING(1) ─fail─▶ ... ─▶ TERMINATED(2)
                │ handshake ok
                ▼
            CONNECTED ─close─▶ DISCONNECTED ─delay─▶ CONNECTING(0)

Candidate fallback happens immediately and only while no candidate in the
current walk has connected. After a connected session drops, the next walk
starts over at the highest-priority candidate once the reconnect delay has
passed. Fatal close reasons from the server terminate from any state.
"""

import asyncio
from typing import Awaitable, Callable

from freetunnel.client.config import ClientConfig
from freetunnel.client.exceptions import (
    AuthFailedError,
    NoCandidatesError,
    NoReachableServerError,
    SubdomainInUseError,
    SubdomainRejectedError,
    TunnelFatalError,
)
from freetunnel.client.services.forwarder import LocalForwarder
from freetunnel.client.services.session import SessionOutcome, TunnelSession
from freetunnel.models.enums import ConnectionState, FatalCondition
from freetunnel.utils.logger import get_logger

logger = get_logger(__name__)

_FATAL_ERRORS: dict[FatalCondition, type[TunnelFatalError]] = {
    FatalCondition.SUBDOMAIN_IN_USE: SubdomainInUseError,
    FatalCondition.SUBDOMAIN_REJECTED: SubdomainRejectedError,
    FatalCondition.AUTH_FAILED: AuthFailedError,
}

SessionFactory = Callable[[ClientConfig, int, LocalForwarder, int], TunnelSession]


class ConnectionManager:
    """
    Owns the candidate walk and reconnection policy for one tunnel.

    Exactly one session is alive at a time; it is created per attempt and
    dropped when the attempt ends.
    """

    def __init__(
        self,
        config: ClientConfig,
        forwarder: LocalForwarder | None = None,
        session_factory: SessionFactory = TunnelSession,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialize the manager.

        Args:
            config: Client configuration (candidates, subdomain, timings).
            forwarder: Local forwarder; one is created from config if omitted.
            session_factory: Builds a session for (config, index, forwarder, id).
            sleep: Awaitable used for the reconnect delay.
        """
        self.config = config
        self.candidates = config.get_candidates()
        self._owns_forwarder = forwarder is None
        self.forwarder = forwarder or LocalForwarder(
            config.TARGET_URL, timeout=config.FORWARD_TIMEOUT
        )
        self._session_factory = session_factory
        self._sleep = sleep

        self.state = ConnectionState.IDLE
        self.candidate_index: int | None = None
        self.session: TunnelSession | None = None
        self.ever_connected = False
        self._next_session_id = 1

    def _set_state(self, state: ConnectionState, index: int | None = None) -> None:
        self.state = state
        self.candidate_index = index
        suffix = f"({index})" if index is not None else ""
        logger.debug(f"[Manager] State -> {state.value}{suffix}")

    async def run(self) -> None:
        """
        Keep the tunnel connected until a fatal condition occurs.

        Never returns normally.

        Raises:
            TunnelFatalError: With the exit code for the terminating condition.
        """
        try:
            await self._run()
        except TunnelFatalError as e:
            self._set_state(ConnectionState.TERMINATED)
            logger.info(
                f"[Manager] Terminating with exit code {int(e.exit_code)} "
                f"({type(e).__name__})"
            )
            raise
        finally:
            self.session = None
            if self._owns_forwarder:
                await self.forwarder.aclose()

    async def _run(self) -> None:
        if not self.candidates:
            raise NoCandidatesError()

        while True:
            connected, last_reason = await self._walk_candidates()

            if not connected and not self.ever_connected:
                raise NoReachableServerError(list(self.candidates), last_reason)

            self._set_state(ConnectionState.DISCONNECTED)
            logger.info(
                f"[Manager] Disconnected. Reconnecting in "
                f"{self.config.RECONNECT_DELAY_SECONDS:g}s..."
            )
            await self._sleep(self.config.RECONNECT_DELAY_SECONDS)

    async def _walk_candidates(self) -> tuple[bool, str]:
        """
        Try candidates in priority order until one connects.

        Returns:
            (connected, last_reason). connected is True once a session
            in this walk completed its handshake; the walk then ends when
            that session closes.
        """
        last_reason = ""
        for index in range(len(self.candidates)):
            outcome = await self._attempt(index)
            last_reason = outcome.reason

            if outcome.fatal is not None:
                raise _FATAL_ERRORS[outcome.fatal]()

            if outcome.connected:
                return True, last_reason

            if index + 1 < len(self.candidates):
                logger.info(
                    f"[Manager] Falling back to {self.candidates[index + 1]}"
                )
        return False, last_reason

    async def _attempt(self, index: int) -> SessionOutcome:
        """Run one session against candidate index."""
        self._set_state(ConnectionState.CONNECTING, index)

        session_id = self._next_session_id
        self._next_session_id += 1
        self.session = self._session_factory(
            self.config, index, self.forwarder, session_id
        )
        self.session.on_connected = lambda: self._set_state(
            ConnectionState.CONNECTED, index
        )
        try:
            outcome = await self.session.run()
        finally:
            self.session = None

        if outcome.connected:
            self.ever_connected = True
            logger.debug(
                f"[Manager] Session {session_id} on candidate {index} ended: "
                f"{outcome.reason!r}"
            )
        return outcome
