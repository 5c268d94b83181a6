"""
Commands sent from the connection manager to the connection worker.

Commands travel over a single FIFO queue and are applied by the worker in the
order they were enqueued.
"""

from dataclasses import dataclass
from typing import Union

from .envelope import Envelope


@dataclass(frozen=True)
class ConnectCommand:
    """Open a WebSocket connection to url."""
    url: str


@dataclass(frozen=True)
class DisconnectCommand:
    """Close the live connection, if any."""


@dataclass(frozen=True)
class SendCommand:
    """Send an envelope in its JSON wire form."""
    message: Envelope


@dataclass(frozen=True)
class SendRawCommand:
    """Send raw bytes (text frame when valid UTF-8, binary otherwise)."""
    data: bytes


@dataclass(frozen=True)
class ShutdownCommand:
    """Close any live connection and stop the worker loop."""


WorkerCommand = Union[
    ConnectCommand,
    DisconnectCommand,
    SendCommand,
    SendRawCommand,
    ShutdownCommand,
]
