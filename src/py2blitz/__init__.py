# py2blitz package

__version__ = "0.1.0"

from .core import decode, Envelope, MessageKind
from .models import Strike, Signal, StreamSettings
from .services import ConnectionManager, StrikeMonitor

__all__ = [
    "decode",
    "Envelope",
    "MessageKind",
    "Strike",
    "Signal",
    "StreamSettings",
    "ConnectionManager",
    "StrikeMonitor",
]
