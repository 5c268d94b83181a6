"""
Core layer for the Blitzortung stream client.

This package contains the wire-level pieces: the LZW decoder, message
envelopes, worker commands and the connection worker that owns the socket.
"""

from .lzw_decoder import decode
from .envelope import Envelope, MessageKind
from .commands import (
    ConnectCommand,
    DisconnectCommand,
    SendCommand,
    SendRawCommand,
    ShutdownCommand,
)
from .connection_worker import ConnectionWorker

__all__ = [
    'decode',
    'Envelope',
    'MessageKind',
    'ConnectCommand',
    'DisconnectCommand',
    'SendCommand',
    'SendRawCommand',
    'ShutdownCommand',
    'ConnectionWorker',
]
