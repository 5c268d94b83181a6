"""
Models layer for py2blitz.

Passive data shapes: strike records, connection status and stream settings.
"""

from .strike import Signal, Strike
from .connection import (
    ConnectionState,
    ConnectionStatus,
    ConnectionModel,
    status_from_envelope,
)
from .settings import (
    BLITZ_HANDSHAKE,
    BLITZ_SERVERS,
    StreamSettings,
    load_settings,
    settings_from_dict,
)

__all__ = [
    'Signal',
    'Strike',
    'ConnectionState',
    'ConnectionStatus',
    'ConnectionModel',
    'status_from_envelope',
    'BLITZ_HANDSHAKE',
    'BLITZ_SERVERS',
    'StreamSettings',
    'load_settings',
    'settings_from_dict',
]
