"""
Services layer for py2blitz.

Caller-side services: the connection manager façade, the strike decoding
pipeline and the strike monitor built on top of both.
"""

from .connection_manager import ConnectionManager
from .strike_service import StrikeDecodeResult, StrikeService
from .strike_monitor import StrikeMonitor

__all__ = [
    'ConnectionManager',
    'StrikeDecodeResult',
    'StrikeService',
    'StrikeMonitor',
]
