"""
Heartbeat background task.

Sends periodic WebSocket pings over the tunnel connection while it is open.
Pong replies are not tracked; a dead connection is detected by the transport
itself when the ping cannot be written or the peer closes.
"""

import asyncio

from websockets.exceptions import ConnectionClosed
from websockets.protocol import State

from freetunnel.utils.logger import get_logger

logger = get_logger(__name__)


def connection_open(ws) -> bool:
    """Check whether a websockets connection is still open."""
    return ws.state is State.OPEN


async def send_heartbeat(ws, interval: float, log_prefix: str = "[Heartbeat]"):
    """
    Ping the tunnel server every interval seconds.

    Returns as soon as the connection is no longer open.

    Args:
        ws: websockets client connection.
        interval: Seconds between pings.
        log_prefix: Prefix for log lines (identifies the session).
    """
    while True:
        await asyncio.sleep(interval)

        if not connection_open(ws):
            logger.debug(f"{log_prefix} Connection no longer open, stopping heartbeat")
            return

        try:
            # Fire the ping without waiting for the pong
            await ws.ping()
            logger.debug(f"{log_prefix} Ping sent")
        except ConnectionClosed:
            logger.debug(f"{log_prefix} Connection closed during ping")
            return
