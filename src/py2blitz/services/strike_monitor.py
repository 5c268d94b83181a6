"""
Strike monitor: the consumer side of the stream client.

StrikeMonitor drives a ConnectionManager from the caller's thread. Once per
tick, process_pending() drains the event channel and handles every envelope:

- connection status: updates the ConnectionModel and, on a fresh connection,
  sends the handshake control frame that starts the strike stream
- raw text: runs the decode-then-parse pipeline and keeps the most recent
  strikes in a bounded history
- binary: logged; the stream does not use binary frames
"""

import logging
from collections import deque
from typing import Callable, Deque, Dict, List, Optional

from py2blitz.core.envelope import Envelope, MessageKind
from py2blitz.models.connection import (
    ConnectionModel,
    ConnectionState,
    ConnectionStatus,
    status_from_envelope,
)
from py2blitz.models.settings import StreamSettings
from py2blitz.models.strike import Strike
from py2blitz.services.connection_manager import ConnectionManager
from py2blitz.services.strike_service import StrikeDecodeResult, StrikeService


class StrikeMonitor:
    """
    Collects strikes from the live stream.

    Example:
        >>> monitor = StrikeMonitor(StreamSettings(max_strikes=50))
        >>> monitor.start()
        >>> while running:
        ...     for strike in monitor.process_pending():
        ...         print(strike.summary())
        ...     time.sleep(0.1)
        >>> monitor.close()
    """

    def __init__(
        self,
        settings: Optional[StreamSettings] = None,
        manager_factory: Callable[[StreamSettings], ConnectionManager] = ConnectionManager,
        connection_model: Optional[ConnectionModel] = None
    ):
        """
        Initialize the monitor.

        Args:
            settings: Stream settings (defaults if None)
            manager_factory: Builds the ConnectionManager on first start()
            connection_model: Observable connection state (created if None)
        """
        self.settings = settings or StreamSettings()
        self.logger = logging.getLogger(__name__)
        self.connection_model = connection_model or ConnectionModel()
        self.strike_service = StrikeService(self.settings.max_dictionary_size)

        self._manager_factory = manager_factory
        self._manager: Optional[ConnectionManager] = None
        self._strikes: Deque[Strike] = deque(maxlen=self.settings.max_strikes)
        self._strike_observers: List[Callable[[Strike], None]] = []
        self.last_diagnostic: Optional[StrikeDecodeResult] = None

        self._handlers: Dict[MessageKind, Callable[[Envelope], Optional[Strike]]] = {
            MessageKind.CONNECTION_STATUS: self._handle_connection_status,
            MessageKind.RAW_TEXT: self._handle_raw_text,
            MessageKind.BINARY: self._handle_binary,
        }
        missing = [kind.value for kind in MessageKind if kind not in self._handlers]
        if missing:
            raise NotImplementedError(f"No handler for message kind(s): {', '.join(missing)}")

    # ========== Properties ==========

    @property
    def status(self) -> ConnectionStatus:
        return self.connection_model.status

    @property
    def strikes(self) -> List[Strike]:
        """Most recent strikes, oldest first."""
        return list(self._strikes)

    @property
    def manager(self) -> Optional[ConnectionManager]:
        return self._manager

    def add_strike_observer(self, callback: Callable[[Strike], None]) -> None:
        """Register a callback called with every new strike."""
        if callback not in self._strike_observers:
            self._strike_observers.append(callback)

    def remove_strike_observer(self, callback: Callable[[Strike], None]) -> None:
        if callback in self._strike_observers:
            self._strike_observers.remove(callback)

    # ========== Connection control ==========

    def start(self, url: Optional[str] = None) -> None:
        """
        Connect to the stream.

        Args:
            url: Server URL; defaults to the configured server
        """
        target = url or self.settings.url
        self.logger.info(f"Connecting to Blitzortung at {target}")

        if self._manager is None:
            self._manager = self._manager_factory(self.settings)

        self._manager.connect(target)
        self.connection_model.status = ConnectionStatus(
            state=ConnectionState.CONNECTING, url=target
        )

    def stop(self) -> None:
        """Disconnect from the stream (the manager stays available)."""
        if self._manager is None:
            return
        self.logger.info("Disconnecting from Blitzortung")
        self._manager.disconnect()
        self.connection_model.status = ConnectionStatus(state=ConnectionState.DISCONNECTED)

    def close(self) -> None:
        """Shut down the manager and its worker thread."""
        if self._manager is not None:
            self._manager.shutdown()
            self._manager = None

    def send_handshake(self) -> None:
        """Ask the server to start streaming strikes."""
        if self._manager is None:
            return
        self.logger.info("Sending Blitzortung handshake")
        self._manager.send_raw(self.settings.handshake)

    # ========== Event handling ==========

    def process_pending(self) -> List[Strike]:
        """
        Handle every pending envelope (one UI tick).

        Returns:
            Strikes decoded during this tick, oldest first
        """
        if self._manager is None:
            return []

        new_strikes = []
        for envelope in self._manager.drain():
            strike = self.handle_envelope(envelope)
            if strike is not None:
                new_strikes.append(strike)
        return new_strikes

    def handle_envelope(self, envelope: Envelope) -> Optional[Strike]:
        """Dispatch one envelope by kind. Returns a strike if one was decoded."""
        return self._handlers[envelope.kind](envelope)

    def _handle_connection_status(self, envelope: Envelope) -> None:
        self.logger.info(f"Connection status: {envelope.text}")
        try:
            status = status_from_envelope(envelope)
        except ValueError as e:
            self.logger.warning(f"Ignoring malformed connection status: {e}")
            return None

        self.connection_model.status = status
        if status.state is ConnectionState.CONNECTED:
            self.send_handshake()
        elif status.state is ConnectionState.ERROR:
            self.logger.error(f"Connection failed: {status.last_error}")
        return None

    def _handle_raw_text(self, envelope: Envelope) -> Optional[Strike]:
        result = self.strike_service.decode_envelope(envelope)
        if not result.ok:
            self.last_diagnostic = result
            self.logger.info(f"Raw message: {result.text or result.raw}")
            return None

        strike = result.strike
        self._strikes.append(strike)
        self.logger.debug(f"Strike: {strike.summary()}")

        for observer in self._strike_observers:
            try:
                observer(strike)
            except Exception as e:
                self.logger.error(f"Strike observer error: {e}")
        return strike

    def _handle_binary(self, envelope: Envelope) -> None:
        try:
            size = envelope.json_payload().get('size')
        except (ValueError, AttributeError, RecursionError):
            size = len(envelope.payload)
        self.logger.info(f"Ignoring binary message ({size} bytes)")
        return None
