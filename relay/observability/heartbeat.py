"""
Heartbeat publisher
Best-effort periodic push of this consumer's identity to the status monitor
"""

import asyncio
from typing import Optional

import socketio
import structlog
from socketio.exceptions import ConnectionError as MonitorConnectionError
from socketio.exceptions import SocketIOError

logger = structlog.get_logger(__name__)

HEARTBEAT_EVENT = "heartbeat"


class HeartbeatPublisher:
    """
    Emits a socket.io "heartbeat" event with {"consumerName": ...} on an interval

    The monitor tracks live consumers from these events. The connection is
    opened lazily and re-opened on the next tick after a drop, so the client
    should be built with reconnection disabled. Failures are logged and never
    propagate; with no monitor URL the publisher does nothing.
    """

    def __init__(
        self,
        client: socketio.AsyncClient,
        consumer_name: str,
        realtime_url: Optional[str],
        interval_seconds: float = 5.0,
    ):
        self._client = client
        self.consumer_name = consumer_name
        self.realtime_url = realtime_url.rstrip("/") if realtime_url else None
        self.interval_seconds = interval_seconds
        self.sent = 0

    @property
    def enabled(self) -> bool:
        return self.realtime_url is not None

    async def send_once(self) -> bool:
        """
        Send a single heartbeat, connecting first if needed

        Returns:
            True if the event was emitted
        """
        if not self.enabled:
            return False

        if not self._client.connected:
            try:
                await self._client.connect(
                    self.realtime_url,
                    transports=["websocket"],
                    wait_timeout=self.interval_seconds,
                )
            except MonitorConnectionError as e:
                logger.debug("Heartbeat connection failed", url=self.realtime_url, error=str(e))
                return False
            logger.info("Connected to realtime monitor", url=self.realtime_url)

        try:
            await self._client.emit(HEARTBEAT_EVENT, {"consumerName": self.consumer_name})
        except SocketIOError as e:
            logger.debug("Heartbeat failed", error=str(e))
            return False

        self.sent += 1
        return True

    async def run(self) -> None:
        """Send heartbeats until cancelled"""
        if not self.enabled:
            logger.warning("REALTIME_URL not set, heartbeats disabled")
            return

        logger.info("Heartbeat started", url=self.realtime_url, interval=self.interval_seconds)
        while True:
            await self.send_once()
            await asyncio.sleep(self.interval_seconds)

    async def close(self) -> None:
        """Disconnect from the monitor if connected"""
        if self._client.connected:
            await self._client.disconnect()
