"""
Tunnel connection session.

A TunnelSession owns exactly one WebSocket connection attempt to one server
candidate and all traffic on it:

    Server ──frames──▶ reader task ──▶ queue ──▶ dispatch loop
                                                   │ one task per frame
                                                   ▼
    Server ◀──responses── send ◀── LocalForwarder.forward()

Requests are forwarded concurrently and may be answered out of order; the
message id is the only correlation key. When the connection closes, the close
reason is classified and handed back to the ConnectionManager as a
SessionOutcome. Forwards still in flight at that point run to completion and
their responses are dropped.
"""

import asyncio
from dataclasses import dataclass
from typing import Callable
from urllib.parse import urlsplit

import websockets
from websockets.exceptions import (
    ConnectionClosed,
    ConnectionClosedOK,
    WebSocketException,
)

from freetunnel.client.background.heartbeat import connection_open, send_heartbeat
from freetunnel.client.config import ClientConfig
from freetunnel.client.exceptions import MessageDecodeError
from freetunnel.client.services.forwarder import LocalForwarder
from freetunnel.models.enums import FatalCondition
from freetunnel.models.messages import RequestMessage, ResponseMessage
from freetunnel.tunnel.protocol import (
    classify_close_reason,
    decode_message,
    encode_message,
)
from freetunnel.utils.logger import format_traceback, get_logger

logger = get_logger(__name__)


@dataclass
class SessionOutcome:
    """How a session ended, as reported to the ConnectionManager."""

    connected: bool  # Handshake completed at some point
    reason: str = ""  # Close reason, or the connect error text
    fatal: FatalCondition | None = None


class TunnelSession:
    """Manages a single tunnel connection to one server candidate."""

    def __init__(
        self,
        config: ClientConfig,
        candidate_index: int,
        forwarder: LocalForwarder,
        session_id: int = 0,
    ):
        """
        Initialize the session.

        Args:
            config: Client configuration.
            candidate_index: Index into config's candidate list.
            forwarder: Shared local forwarder.
            session_id: Identifier used to key this session's logs.
        """
        self.config = config
        self.candidate_index = candidate_index
        self.candidate = config.get_candidates()[candidate_index]
        self.forwarder = forwarder
        self.session_id = session_id
        self.log_prefix = f"[Session {session_id}]"

        self.ws = None
        self.connected = False
        self.on_connected: Callable[[], None] | None = None
        self._inbound: asyncio.Queue[str | bytes] = asyncio.Queue()
        self._heartbeat_task: asyncio.Task | None = None
        self._in_flight: set[asyncio.Task] = set()

    @property
    def in_flight(self) -> int:
        """Number of requests currently being forwarded."""
        return len(self._in_flight)

    async def run(self) -> SessionOutcome:
        """
        Connect, serve requests until the connection closes, then report.

        Returns:
            SessionOutcome describing whether the handshake completed and
            why the connection ended.
        """
        candidates = self.config.get_candidates()
        logger.info(
            f"{self.log_prefix} Connecting to {self.candidate} "
            f"(candidate {self.candidate_index + 1}/{len(candidates)})"
        )

        try:
            self.ws = await websockets.connect(
                self.config.get_tunnel_url(self.candidate),
                open_timeout=self.config.CONNECT_TIMEOUT_SECONDS,
                ping_interval=None,  # Heartbeat is driven by send_heartbeat
                max_size=self.config.MAX_MESSAGE_SIZE,
            )
        except (OSError, TimeoutError, WebSocketException) as e:
            reason = f"{type(e).__name__}: {e}"
            logger.warning(
                f"{self.log_prefix} Failed to connect to {self.candidate}: {reason}"
            )
            return SessionOutcome(connected=False, reason=reason)

        self.connected = True
        self._log_connected()
        if self.on_connected is not None:
            self.on_connected()

        reader = asyncio.create_task(self._read_frames())
        dispatcher = asyncio.create_task(self._dispatch_frames())
        self._heartbeat_task = asyncio.create_task(
            send_heartbeat(
                self.ws,
                self.config.HEARTBEAT_INTERVAL_SECONDS,
                log_prefix=self.log_prefix,
            )
        )

        try:
            reason = await reader
        finally:
            for task in (reader, dispatcher, self._heartbeat_task):
                task.cancel()
            await asyncio.gather(
                reader, dispatcher, self._heartbeat_task, return_exceptions=True
            )
            await self.close()

        return SessionOutcome(
            connected=True, reason=reason, fatal=classify_close_reason(reason)
        )

    def _log_connected(self) -> None:
        """Print the connect confirmation with the public URL."""
        host = urlsplit(self.candidate).netloc
        variant = self.config.get_candidate_variant(self.candidate)
        logger.info(
            f"{self.log_prefix} Connected to {host} via {variant} "
            f'as subdomain "{self.config.SUBDOMAIN}"'
        )
        logger.info(
            f"{self.log_prefix} Public URL: "
            f"{self.config.get_public_url(self.candidate)} -> {self.config.TARGET_URL}"
        )

    # =========================================================================
    # Inbound Frames
    # =========================================================================

    async def _read_frames(self) -> str:
        """
        Feed inbound frames into the queue until the connection closes.

        Returns:
            The close reason sent by the server ("" if none).
        """
        try:
            while True:
                frame = await self.ws.recv()
                self._inbound.put_nowait(frame)
        except ConnectionClosedOK as e:
            reason = e.rcvd.reason if e.rcvd else ""
            logger.info(
                f"{self.log_prefix} Connection closed by server "
                f"(code={e.rcvd.code if e.rcvd else None}, reason={reason!r})"
            )
            return reason
        except ConnectionClosed as e:
            reason = e.rcvd.reason if e.rcvd else ""
            logger.warning(f"{self.log_prefix} Connection lost: {e}")
            return reason

    async def _dispatch_frames(self) -> None:
        """Start one independent task per inbound frame."""
        while True:
            frame = await self._inbound.get()
            task = asyncio.create_task(self._handle_frame(frame))
            self._in_flight.add(task)
            task.add_done_callback(self._frame_done)

    def _frame_done(self, task: asyncio.Task) -> None:
        """Untrack a finished frame task and log anything it raised."""
        self._in_flight.discard(task)
        if task.cancelled() or task.exception() is None:
            return
        e = task.exception()
        logger.error(f"{self.log_prefix} Frame handler failed: {e}")
        logger.debug(format_traceback(e))

    async def _handle_frame(self, frame: str | bytes) -> None:
        """Decode one frame, forward it, and send the response."""
        try:
            message = decode_message(frame)
        except MessageDecodeError as e:
            logger.warning(f"{self.log_prefix} Dropping malformed frame: {e}")
            return

        if not isinstance(message, RequestMessage):
            kind = message.type if message is not None else "unknown"
            logger.debug(f"{self.log_prefix} Ignoring {kind} message")
            return

        logger.debug(
            f"{self.log_prefix} Request {message.id}: {message.method} {message.path}"
        )
        response = await self.forwarder.forward(message)
        await self._send(response)

    # =========================================================================
    # Outbound Responses
    # =========================================================================

    async def _send(self, response: ResponseMessage) -> bool:
        """
        Send a response if the connection is still open.

        Returns:
            True if sent, False if the response was discarded.
        """
        if self.ws is None or not connection_open(self.ws):
            logger.debug(
                f"{self.log_prefix} Discarding response {response.id}: "
                "connection closed"
            )
            return False
        try:
            await self.ws.send(encode_message(response))
        except ConnectionClosed:
            logger.debug(
                f"{self.log_prefix} Discarding response {response.id}: "
                "connection closed during send"
            )
            return False
        logger.debug(f"{self.log_prefix} Response {response.id}: {response.status}")
        return True

    async def close(self) -> None:
        """Close the WebSocket connection."""
        if self.ws is not None:
            try:
                await self.ws.close()
            except WebSocketException as e:
                logger.debug(f"{self.log_prefix} Error while closing: {e}")
