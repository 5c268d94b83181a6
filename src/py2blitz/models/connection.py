"""
Connection models for py2blitz.

Classes:
    ConnectionState: Enumeration of connection states
    ConnectionStatus: Current status of the stream connection
    ConnectionModel: Observable model for connection state management

Functions:
    status_from_envelope: Interpret a connection-status envelope
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional

from py2blitz.core.envelope import Envelope, MessageKind

logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    """
    Enumeration of possible connection states.

    States:
        DISCONNECTED: Not connected to a server
        CONNECTING: Connect command issued, waiting for the worker's report
        CONNECTED: Worker reported a successful handshake
        ERROR: Worker reported a failed connection attempt
    """

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"


# Worker status strings -> states
_STATUS_STATES = {
    'connected': ConnectionState.CONNECTED,
    'failed': ConnectionState.ERROR,
    'disconnected': ConnectionState.DISCONNECTED,
}


@dataclass
class ConnectionStatus:
    """
    Current status of the stream connection.

    Attributes:
        state: Current connection state
        url: Server URL, None if unknown
        connected_at: When the connection was established, None if not connected
        last_error: Error text if state is ERROR, None otherwise
    """

    state: ConnectionState
    url: Optional[str] = None
    connected_at: Optional[datetime] = None
    last_error: Optional[str] = None


def status_from_envelope(envelope: Envelope) -> ConnectionStatus:
    """
    Interpret a CONNECTION_STATUS envelope.

    Args:
        envelope: Envelope emitted by the connection worker

    Returns:
        ConnectionStatus described by the envelope

    Raises:
        ValueError: If the envelope is not a well-formed status report
    """
    if envelope.kind is not MessageKind.CONNECTION_STATUS:
        raise ValueError(f"Not a connection-status envelope: {envelope.kind.value}")

    try:
        body = envelope.json_payload()
    except RecursionError as e:
        raise ValueError(f"Connection status nested too deeply: {e}")

    status = body.get('status') if isinstance(body, dict) else None
    if not isinstance(status, str) or status not in _STATUS_STATES:
        raise ValueError(f"Unrecognized connection status: {envelope.text}")

    url = body.get('url')
    error = body.get('error')
    state = _STATUS_STATES[status]

    connected_at = None
    if state is ConnectionState.CONNECTED:
        try:
            connected_at = datetime.fromtimestamp(envelope.timestamp)
        except (OverflowError, OSError, ValueError):
            # Timestamp outside the platform datetime range
            connected_at = datetime.now()

    return ConnectionStatus(
        state=state,
        url=url if isinstance(url, str) else None,
        connected_at=connected_at,
        last_error=str(error) if state is ConnectionState.ERROR and error is not None else None,
    )


class ConnectionModel:
    """
    Observable model for connection state management.

    Observers registered with add_observer are called with the new status
    every time it is set.

    Example:
        >>> model = ConnectionModel()
        >>> model.add_observer(lambda s: print(s.state.value))
        >>> model.status = ConnectionStatus(state=ConnectionState.CONNECTING)
        connecting
    """

    def __init__(self):
        """Initialize the connection model with disconnected state."""
        self._status = ConnectionStatus(state=ConnectionState.DISCONNECTED)
        self._observers: List[Callable[[ConnectionStatus], None]] = []

    @property
    def status(self) -> ConnectionStatus:
        """Get the current connection status."""
        return self._status

    @status.setter
    def status(self, new_status: ConnectionStatus) -> None:
        """Set the connection status and notify all observers."""
        self._status = new_status
        self._notify()

    def add_observer(self, callback: Callable[[ConnectionStatus], None]) -> None:
        """Register a callback to be notified of status changes."""
        if callback not in self._observers:
            self._observers.append(callback)

    def remove_observer(self, callback: Callable[[ConnectionStatus], None]) -> None:
        """Unregister a callback. No-op if it is not registered."""
        if callback in self._observers:
            self._observers.remove(callback)

    def _notify(self) -> None:
        for observer in self._observers:
            try:
                observer(self._status)
            except Exception as e:
                logger.error(f"Connection observer error: {e}")
