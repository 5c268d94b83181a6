"""
Connection worker for the Blitzortung WebSocket stream.

The worker owns the live socket and runs on its own thread inside a
single-threaded asyncio event loop. It talks to the outside world only
through two queues:

    command queue (manager -> worker)
        └── Connect / Disconnect / Send / SendRaw / Shutdown
    event queue (worker -> manager)
        └── Envelopes: connection status, raw text, binary

Loop discipline:
    Every iteration first drains all queued commands without blocking, then
    waits a bounded time for one inbound frame. Commands therefore always run
    before the next frame is handled, and the loop re-checks the command queue
    at least every receive_timeout seconds. While disconnected the loop sleeps
    idle_sleep between command checks.

Nothing raised inside an iteration stops the loop; failures become log
records or connection-status envelopes. Only a ShutdownCommand ends it.
"""

import asyncio
import logging
import queue
from typing import Any, Awaitable, Callable, Optional, Union

from websockets.asyncio.client import connect as ws_connect
from websockets.exceptions import ConnectionClosed

from py2blitz.models.settings import StreamSettings
from . import envelope as envelopes
from .commands import (
    ConnectCommand,
    DisconnectCommand,
    SendCommand,
    SendRawCommand,
    ShutdownCommand,
    WorkerCommand,
)
from .envelope import Envelope
from .errors import (
    ConnectionFailedError,
    EnvelopeFormatError,
    ErrorCodes,
    ProtocolError,
    wrap_external_error,
)

logger = logging.getLogger(__name__)

Connector = Callable[[str], Awaitable[Any]]


class ConnectionWorker:
    """
    Owns the WebSocket and services the command queue.

    States:
        Disconnected: self._connection is None
        Connected: self._connection holds the live socket

    Example:
        >>> commands, events = queue.Queue(), queue.Queue()
        >>> worker = ConnectionWorker(commands, events)
        >>> threading.Thread(target=lambda: asyncio.run(worker.run())).start()
        >>> commands.put(ConnectCommand("wss://ws1.blitzortung.org"))
    """

    def __init__(
        self,
        commands: "queue.Queue[WorkerCommand]",
        events: "queue.Queue[Envelope]",
        settings: Optional[StreamSettings] = None,
        connector: Optional[Connector] = None
    ):
        """
        Initialize the worker.

        Args:
            commands: Receive side of the command channel
            events: Send side of the event channel
            settings: Timeouts and keepalive settings (defaults if None)
            connector: Coroutine function url -> connection. Defaults to the
                       websockets asyncio client.
        """
        self._commands = commands
        self._events = events
        self._settings = settings or StreamSettings()
        self._connector = connector or self._open_websocket
        self._connection: Optional[Any] = None
        self._url: Optional[str] = None
        self._running = False

        self._stats = {
            'commands_applied': 0,
            'frames_received': 0,
            'envelopes_emitted': 0,
            'send_errors': 0,
            'loop_errors': 0,
        }

    @property
    def is_connected(self) -> bool:
        """True while a socket is held."""
        return self._connection is not None

    @property
    def is_running(self) -> bool:
        return self._running

    def get_stats(self) -> dict:
        """Get worker statistics."""
        return self._stats.copy()

    async def run(self) -> None:
        """Run the event loop until a ShutdownCommand is applied."""
        logger.info("Connection worker started")
        self._running = True

        try:
            while self._running:
                try:
                    await self.run_once()
                except Exception as e:
                    self._stats['loop_errors'] += 1
                    logger.error(f"Unexpected error in worker loop: {e}", exc_info=True)
        finally:
            await self._disconnect()
            self._running = False
            logger.info(f"Connection worker stopped. Stats: {self._stats}")

    async def run_once(self) -> None:
        """
        One loop iteration: drain commands, then handle at most one frame.

        Applying a ShutdownCommand clears the running flag and skips the
        frame check.
        """
        await self._drain_commands()

        if not self._running:
            return

        if self._connection is not None:
            await self._receive_frame()
        else:
            await asyncio.sleep(self._settings.idle_sleep)

    # ========== Commands ==========

    async def _drain_commands(self) -> None:
        """Apply every queued command in FIFO order without blocking."""
        while True:
            try:
                command = self._commands.get_nowait()
            except queue.Empty:
                return

            await self._apply(command)
            self._stats['commands_applied'] += 1

            if isinstance(command, ShutdownCommand):
                return

    async def _apply(self, command: WorkerCommand) -> None:
        if isinstance(command, ConnectCommand):
            await self._connect(command.url)
        elif isinstance(command, DisconnectCommand):
            await self._disconnect()
        elif isinstance(command, SendCommand):
            await self._send(command.message.to_json())
        elif isinstance(command, SendRawCommand):
            await self._send_raw(command.data)
        elif isinstance(command, ShutdownCommand):
            logger.info("Shutdown requested")
            self._running = False
        else:
            raise TypeError(f"Unknown worker command: {command!r}")

    # ========== Connection lifecycle ==========

    async def _open_websocket(self, url: str) -> Any:
        return await ws_connect(
            url,
            open_timeout=self._settings.open_timeout,
            close_timeout=self._settings.close_timeout,
            ping_interval=self._settings.ping_interval,
        )

    async def _connect(self, url: str) -> None:
        """Open a connection and report the outcome on the event queue."""
        if self._connection is not None:
            logger.warning("Already connected. Disconnecting first.")
            await self._disconnect()

        logger.info(f"Connecting to {url}")

        try:
            self._connection = await self._connector(url)
        except Exception as e:
            error = str(e) or type(e).__name__
            timed_out = isinstance(e, (TimeoutError, asyncio.TimeoutError))
            failure = ConnectionFailedError(
                f"Connection to {url} failed: {error}",
                url=url,
                cause=e,
                error_code=(ErrorCodes.CONNECTION_TIMEOUT if timed_out
                            else ErrorCodes.CONNECTION_REFUSED)
            )
            logger.error(failure.format_log_message())
            self._emit(envelopes.connection_status("failed", url=url, error=error))
            return

        self._url = url
        logger.info(f"Connected to {url}")
        self._emit(envelopes.connection_status("connected", url=url))

    async def _disconnect(self) -> None:
        """
        Close the live connection, best effort.

        Safe to call when disconnected; emits a status envelope only when a
        connection was actually dropped.
        """
        connection, self._connection = self._connection, None
        url, self._url = self._url, None

        if connection is None:
            logger.debug("Disconnect requested while not connected")
            return

        logger.info(f"Disconnecting from {url}")
        try:
            await connection.close()
        except Exception as e:
            logger.warning(f"Error closing WebSocket: {e}")

        self._emit(envelopes.connection_status("disconnected", url=url))

    # ========== Outbound ==========

    async def _send(self, frame: Union[str, bytes]) -> None:
        if self._connection is None:
            logger.warning("Cannot send message: not connected")
            return

        try:
            await self._connection.send(frame)
            logger.debug(f"Sent {len(frame)} {'characters' if isinstance(frame, str) else 'bytes'}")
        except Exception as e:
            self._stats['send_errors'] += 1
            error = ProtocolError("Failed to send frame", error_code=ErrorCodes.SEND_FAILED,
                                  cause=e, context={'url': self._url})
            logger.error(error.format_log_message())
            # The socket is unusable after a failed write
            await self._disconnect()

    async def _send_raw(self, data: bytes) -> None:
        try:
            frame: Union[str, bytes] = data.decode('utf-8')
        except UnicodeDecodeError:
            frame = bytes(data)
        await self._send(frame)

    # ========== Inbound ==========

    async def _receive_frame(self) -> None:
        """Wait up to receive_timeout for one frame and handle it."""
        try:
            frame = await asyncio.wait_for(
                self._connection.recv(),
                timeout=self._settings.receive_timeout
            )
        except asyncio.TimeoutError:
            return
        except ConnectionClosed as e:
            logger.info(f"Connection closed by peer: {e}")
            await self._disconnect()
            return
        except Exception as e:
            error = wrap_external_error(e, "WebSocket read failed", ConnectionFailedError,
                                        error_code=ErrorCodes.CONNECTION_LOST, url=self._url)
            logger.error(error.format_log_message())
            await self._disconnect()
            return

        self._stats['frames_received'] += 1
        self.handle_frame(frame)

    def handle_frame(self, frame: Union[str, bytes]) -> None:
        """
        Classify one data frame and emit the matching envelope.

        Text frames that parse as envelopes are forwarded unchanged; any
        other text becomes a RAW_TEXT envelope. Binary frames become BINARY
        envelopes. Ping, pong and close frames never reach this method; the
        websockets protocol layer answers pings and turns close frames into
        ConnectionClosed.
        """
        if isinstance(frame, str):
            logger.debug(f"Received text frame ({len(frame)} characters)")
            try:
                message = Envelope.from_json(frame)
            except EnvelopeFormatError as e:
                logger.debug(f"Not a structured envelope ({e.message}), forwarding as raw text")
                message = envelopes.raw_text(frame)
        elif isinstance(frame, (bytes, bytearray, memoryview)):
            data = bytes(frame)
            logger.debug(f"Received binary frame ({len(data)} bytes)")
            message = envelopes.binary(data)
        else:
            raise TypeError(f"Unexpected frame type: {type(frame)}")

        self._emit(message)

    def _emit(self, message: Envelope) -> None:
        self._events.put(message)
        self._stats['envelopes_emitted'] += 1
