"""
WebSocket client for the live price stream.

Connects to the scanner's /ws endpoint with:
- Auto-reconnection with exponential backoff
- Heartbeat pings
- Update period restored after every reconnect
"""

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from enum import Enum, auto
from typing import Any

import aiohttp
import orjson

from arbscanner.config.constants import (
    MAX_RECONNECT_DELAY,
    MESSAGE_SET_UPDATE_PERIOD,
    MIN_RECONNECT_DELAY,
    RECONNECT_MULTIPLIER,
    WS_CLOSE_TIMEOUT,
    WS_MAX_MESSAGE_SIZE,
    WS_PING_INTERVAL,
)
from arbscanner.core.errors import TransportError


logger = logging.getLogger(__name__)


# Sync or async callback receiving each decoded server message
MessageHandler = Callable[[dict[str, Any]], Awaitable[Any] | Any]


class ConnectionState(Enum):
    """WebSocket connection state."""

    DISCONNECTED = auto()
    CONNECTING = auto()
    CONNECTED = auto()
    RECONNECTING = auto()
    CLOSED = auto()


class PriceStreamClient:
    """
    Single reconnecting connection to the price stream.

    Messages are decoded with orjson and passed to the handler in
    arrival order.
    """

    def __init__(
        self,
        url: str,
        message_handler: MessageHandler,
        min_reconnect_delay: float = MIN_RECONNECT_DELAY,
        max_reconnect_delay: float = MAX_RECONNECT_DELAY,
    ) -> None:
        """
        Initialize the stream client.

        Args:
            url: WebSocket URL (ws:// or wss://).
            message_handler: Callback for decoded messages.
            min_reconnect_delay: First backoff delay in seconds.
            max_reconnect_delay: Backoff ceiling in seconds.
        """
        self._url = url
        self._message_handler = message_handler
        self._min_delay = min_reconnect_delay
        self._max_delay = max_reconnect_delay

        self._ws: aiohttp.ClientWebSocketResponse | None = None
        self._session: aiohttp.ClientSession | None = None
        self._state = ConnectionState.DISCONNECTED
        self._reconnect_delay = min_reconnect_delay
        self._running = False
        self._task: asyncio.Task[None] | None = None
        self._message_count = 0
        self._period: float | None = None
        self._connected = asyncio.Event()

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def message_count(self) -> int:
        """Get total messages received."""
        return self._message_count

    @property
    def requested_period(self) -> float | None:
        return self._period

    async def connect(self) -> bool:
        """
        Establish the WebSocket connection.

        Returns:
            True if connected successfully.
        """
        if self._state == ConnectionState.CONNECTED:
            return True

        self._state = ConnectionState.CONNECTING

        try:
            if self._session is None or self._session.closed:
                self._session = aiohttp.ClientSession()

            logger.info(f"Connecting to {self._url}")
            self._ws = await self._session.ws_connect(
                self._url,
                heartbeat=WS_PING_INTERVAL,
                max_msg_size=WS_MAX_MESSAGE_SIZE,
            )
        except (aiohttp.ClientError, OSError, TimeoutError) as e:
            logger.error(f"Connection failed: {e}")
            self._state = ConnectionState.DISCONNECTED
            return False

        self._state = ConnectionState.CONNECTED
        self._reconnect_delay = self._min_delay
        self._connected.set()
        logger.info("Price stream connected")

        if self._period is not None:
            try:
                await self._send_period(self._period)
            except TransportError as e:
                logger.warning(f"Could not restore update period: {e}")
        return True

    async def disconnect(self) -> None:
        """Close the WebSocket connection."""
        self._running = False
        self._state = ConnectionState.CLOSED
        self._connected.clear()

        if self._ws and not self._ws.closed:
            await self._ws.close()

        if self._session and not self._session.closed:
            await self._session.close()

        self._ws = None
        self._session = None

    async def _reconnect(self) -> None:
        """Attempt reconnection with exponential backoff."""
        self._state = ConnectionState.RECONNECTING
        self._connected.clear()

        while self._running and self._state != ConnectionState.CONNECTED:
            logger.info(f"Reconnecting in {self._reconnect_delay:.1f}s")
            await asyncio.sleep(self._reconnect_delay)

            if await self.connect():
                break

            self._reconnect_delay = min(
                self._reconnect_delay * RECONNECT_MULTIPLIER,
                self._max_delay,
            )

    async def _handle_message(self, msg: aiohttp.WSMessage) -> bool:
        """
        Process a WebSocket message.

        Returns:
            False if the connection should be closed.
        """
        if msg.type == aiohttp.WSMsgType.TEXT:
            try:
                data = orjson.loads(msg.data)
            except orjson.JSONDecodeError as e:
                logger.warning(f"Invalid JSON: {e}")
                return True

            self._message_count += 1
            if isinstance(data, dict):
                result = self._message_handler(data)
                if inspect.isawaitable(result):
                    await result

        elif msg.type == aiohttp.WSMsgType.ERROR:
            logger.error(f"Stream error: {msg.data}")
            return False

        elif msg.type in (aiohttp.WSMsgType.CLOSE, aiohttp.WSMsgType.CLOSED):
            logger.warning("Stream closed by server")
            return False

        return True

    async def run(self) -> None:
        """Main message loop with auto-reconnection."""
        self._running = True

        while self._running:
            if self._state != ConnectionState.CONNECTED:
                if not await self.connect():
                    await self._reconnect()
                    continue

            try:
                if self._ws is None:
                    await self._reconnect()
                    continue

                async for msg in self._ws:
                    if not self._running:
                        break
                    if not await self._handle_message(msg):
                        break

            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in message loop: {e}")

            if self._running:
                self._state = ConnectionState.DISCONNECTED
                await self._reconnect()

    def start(self) -> asyncio.Task[None]:
        """Start the message loop as a task."""
        self._task = asyncio.create_task(self.run(), name="price-stream")
        return self._task

    async def stop(self) -> None:
        """Stop the message loop and disconnect."""
        self._running = False

        if self._task:
            self._task.cancel()
            try:
                await asyncio.wait_for(self._task, timeout=WS_CLOSE_TIMEOUT)
            except (TimeoutError, asyncio.CancelledError):
                pass

        await self.disconnect()

    async def wait_connected(self, timeout: float = 30.0) -> bool:
        """
        Wait for the connection to be established.

        Returns:
            True if connected within timeout.
        """
        try:
            await asyncio.wait_for(self._connected.wait(), timeout=timeout)
        except TimeoutError:
            return False
        return True

    async def set_update_period(self, period: float) -> None:
        """
        Ask the server for a new broadcast period.

        The period is remembered and re-sent after a reconnect. The
        server answers with an update_period or error message.

        Raises:
            TransportError: If the stream is not connected.
        """
        self._period = period
        if self._state != ConnectionState.CONNECTED or self._ws is None:
            raise TransportError("Price stream is not connected")
        await self._send_period(period)

    async def _send_period(self, period: float) -> None:
        if self._ws is None:
            return
        message = {"type": MESSAGE_SET_UPDATE_PERIOD, "period": period}
        try:
            await self._ws.send_str(orjson.dumps(message).decode())
        except (aiohttp.ClientError, ConnectionResetError) as e:
            raise TransportError(f"Failed to send period change: {e}") from e
        logger.info(f"Requested update period {period:g}s")

    async def __aenter__(self) -> "PriceStreamClient":
        self.start()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.stop()
