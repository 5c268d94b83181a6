"""
Service for managing the Blitzortung stream connection.

ConnectionManager is the caller-facing side of the client. It lives on the
caller's thread, forwards commands to a ConnectionWorker running on a
dedicated thread, and hands back envelopes produced by the worker. None of its
methods touch the socket or block, except recv_blocking and shutdown.
"""

import asyncio
import logging
import queue
import threading
from typing import List, Optional

from py2blitz.core.commands import (
    ConnectCommand,
    DisconnectCommand,
    SendCommand,
    SendRawCommand,
    ShutdownCommand,
    WorkerCommand,
)
from py2blitz.core.connection_worker import ConnectionWorker, Connector
from py2blitz.core.envelope import Envelope
from py2blitz.models.settings import StreamSettings


class ConnectionManager:
    """
    Non-blocking façade over the connection worker.

    Constructing a manager starts the worker thread immediately, exactly once.
    Connection outcomes, disconnects and received frames all arrive later as
    envelopes through poll().

    Example:
        >>> manager = ConnectionManager()
        >>> manager.connect("wss://ws1.blitzortung.org")
        >>> while True:
        ...     for envelope in manager.drain():
        ...         handle(envelope)
        >>> manager.shutdown()
    """

    def __init__(
        self,
        settings: Optional[StreamSettings] = None,
        connector: Optional[Connector] = None
    ):
        """
        Initialize the manager and start its worker thread.

        Args:
            settings: Stream settings passed to the worker
            connector: Optional coroutine function url -> connection, used
                       instead of the websockets client (tests)
        """
        self.logger = logging.getLogger(__name__)
        self._commands: "queue.Queue[WorkerCommand]" = queue.Queue()
        self._events: "queue.Queue[Envelope]" = queue.Queue()
        self._worker = ConnectionWorker(self._commands, self._events, settings, connector)
        self._lock = threading.Lock()
        self._closed = False

        self._thread = threading.Thread(
            target=self._run_worker,
            name="ConnectionWorker",
            daemon=True
        )
        self._thread.start()
        self.logger.info("Connection worker thread started")

    def _run_worker(self) -> None:
        """Worker thread body: one single-threaded event loop."""
        try:
            asyncio.run(self._worker.run())
        except Exception as e:
            self.logger.error(f"Connection worker thread crashed: {e}", exc_info=True)

    def _enqueue(self, command: WorkerCommand) -> bool:
        with self._lock:
            if self._closed:
                self.logger.warning(
                    f"Dropping {type(command).__name__}: manager is shut down"
                )
                return False
            self._commands.put(command)
            return True

    # ========== Commands ==========

    def connect(self, url: str) -> None:
        """Ask the worker to connect. The outcome arrives as a status envelope."""
        self._enqueue(ConnectCommand(url))

    def disconnect(self) -> None:
        """Ask the worker to close the connection."""
        self._enqueue(DisconnectCommand())

    def send(self, message: Envelope) -> None:
        """Send an envelope to the server in its JSON wire form."""
        self._enqueue(SendCommand(message))

    def send_raw(self, data: bytes) -> None:
        """
        Send raw bytes to the server.

        Args:
            data: Sent as a text frame when valid UTF-8, otherwise binary
        """
        if not isinstance(data, (bytes, bytearray)):
            raise ValueError(f"Data must be bytes, got {type(data)}")
        self._enqueue(SendRawCommand(bytes(data)))

    # ========== Events ==========

    def poll(self) -> Optional[Envelope]:
        """
        Take one envelope without blocking.

        Returns:
            The oldest pending envelope, or None if there is none
        """
        try:
            return self._events.get_nowait()
        except queue.Empty:
            return None

    def drain(self) -> List[Envelope]:
        """Take every pending envelope, oldest first (once per UI tick)."""
        envelopes = []
        while True:
            envelope = self.poll()
            if envelope is None:
                return envelopes
            envelopes.append(envelope)

    def recv_blocking(self, timeout: Optional[float] = None) -> Optional[Envelope]:
        """
        Wait for the next envelope.

        Args:
            timeout: Seconds to wait, None to wait forever

        Returns:
            The next envelope, or None if timeout expired
        """
        try:
            return self._events.get(timeout=timeout)
        except queue.Empty:
            return None

    # ========== Lifecycle ==========

    def is_running(self) -> bool:
        """Check if the worker thread is alive."""
        return self._thread.is_alive()

    def shutdown(self, timeout: float = 2.0) -> None:
        """
        Stop the worker and join its thread.

        Any live connection is closed first (its status envelope is still
        delivered). Safe to call more than once.

        Args:
            timeout: Seconds to wait for the thread to stop
        """
        with self._lock:
            if not self._closed:
                self._closed = True
                self._commands.put(ShutdownCommand())

        if self._thread.is_alive() and self._thread is not threading.current_thread():
            self._thread.join(timeout=timeout)
            if self._thread.is_alive():
                self.logger.warning("Connection worker thread did not stop cleanly")
                return

        self.logger.info("Connection manager shut down")

    def __enter__(self) -> "ConnectionManager":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.shutdown()
