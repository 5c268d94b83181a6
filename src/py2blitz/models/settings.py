"""
Stream settings for py2blitz.

Settings are immutable once loaded. Defaults match the public Blitzortung
service; a YAML file can override any of them:

    server_index: 1
    receive_timeout: 0.2
    max_strikes: 250
"""

import logging
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import yaml

from py2blitz.core.errors import ConfigurationError, ErrorCodes

logger = logging.getLogger(__name__)

# Blitzortung WebSocket servers; the client picks one explicitly, no failover
BLITZ_SERVERS: Tuple[str, ...] = (
    "wss://ws1.blitzortung.org",
    "wss://ws7.blitzortung.org",
    "wss://ws8.blitzortung.org",
)

# Control frame that asks the server to start streaming strikes
BLITZ_HANDSHAKE = b'{"a":111}'


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


@dataclass(frozen=True)
class StreamSettings:
    """
    Immutable configuration for the streaming client.

    Attributes:
        servers: Equivalent server endpoints
        server_index: Which entry of servers to connect to
        handshake: Control frame sent right after connecting
        receive_timeout: Bounded wait for one inbound frame (seconds)
        idle_sleep: Sleep between command checks while disconnected (seconds)
        open_timeout: WebSocket opening handshake timeout (seconds)
        close_timeout: Wait for the closing handshake (seconds)
        ping_interval: Client keepalive ping interval, None to disable
        max_strikes: Size of the in-memory strike history
        max_dictionary_size: Optional decoder dictionary cap, None = unbounded
    """

    servers: Tuple[str, ...] = BLITZ_SERVERS
    server_index: int = 0
    handshake: bytes = BLITZ_HANDSHAKE
    receive_timeout: float = 0.1
    idle_sleep: float = 0.1
    open_timeout: float = 10.0
    close_timeout: float = 2.0
    ping_interval: Optional[float] = None
    max_strikes: int = 100
    max_dictionary_size: Optional[int] = None

    @property
    def url(self) -> str:
        """URL of the selected server."""
        return self.servers[self.server_index]

    def validate(self) -> Tuple[bool, List[str]]:
        """
        Validate the settings.

        Returns:
            Tuple of (is_valid, list_of_error_messages)
        """
        errors = []

        if not self.servers:
            errors.append("At least one server is required")
        for server in self.servers:
            if not isinstance(server, str) or not server.startswith(("ws://", "wss://")):
                errors.append(f"Server URL must start with ws:// or wss://: {server!r}")

        if not _is_int(self.server_index) or not (0 <= self.server_index < len(self.servers)):
            errors.append(
                f"server_index out of range (0-{len(self.servers) - 1}): {self.server_index}"
            )

        if not isinstance(self.handshake, bytes):
            errors.append(f"Handshake frame must be bytes: {self.handshake!r}")
        elif not self.handshake:
            errors.append("Handshake frame cannot be empty")

        for name in ('receive_timeout', 'idle_sleep', 'open_timeout', 'close_timeout'):
            value = getattr(self, name)
            if value <= 0:
                errors.append(f"{name} must be positive: {value}")

        if self.ping_interval is not None and self.ping_interval <= 0:
            errors.append(f"ping_interval must be positive or None: {self.ping_interval}")

        if not _is_int(self.max_strikes) or self.max_strikes < 1:
            errors.append(f"max_strikes must be an integer of at least 1: {self.max_strikes!r}")

        if self.max_dictionary_size is not None and (
            not _is_int(self.max_dictionary_size) or self.max_dictionary_size < 1
        ):
            errors.append(
                f"max_dictionary_size must be a positive integer or None: "
                f"{self.max_dictionary_size!r}"
            )

        return (len(errors) == 0, errors)

    def with_overrides(self, **overrides: Any) -> "StreamSettings":
        """Return a copy with the given fields replaced and validated."""
        settings = replace(self, **{k: v for k, v in overrides.items() if v is not None})
        _raise_if_invalid(settings)
        return settings


def settings_from_dict(data: Dict[str, Any]) -> StreamSettings:
    """
    Build settings from a plain mapping (e.g. parsed YAML).

    Raises:
        ConfigurationError: On unknown keys, bad types or invalid values
    """
    known = {f.name for f in fields(StreamSettings)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigurationError(
            f"Unknown setting(s): {', '.join(unknown)}",
            setting_name=unknown[0],
            error_code=ErrorCodes.UNKNOWN_SETTING,
            suggestions=[f"Valid settings: {', '.join(sorted(known))}"]
        )

    values = dict(data)
    if 'servers' in values:
        if not isinstance(values['servers'], (list, tuple)):
            raise ConfigurationError("servers must be a list of URLs", setting_name='servers',
                                     error_code=ErrorCodes.CONFIG_INVALID)
        values['servers'] = tuple(values['servers'])
    if 'handshake' in values and isinstance(values['handshake'], str):
        values['handshake'] = values['handshake'].encode('utf-8')

    try:
        settings = StreamSettings(**values)
        _raise_if_invalid(settings)
    except TypeError as e:
        raise ConfigurationError("Invalid setting value", cause=e,
                                 error_code=ErrorCodes.CONFIG_INVALID)
    return settings


def load_settings(path: Optional[Union[str, Path]] = None) -> StreamSettings:
    """
    Load settings from a YAML file.

    Args:
        path: YAML file; None returns the defaults

    Returns:
        Validated StreamSettings

    Raises:
        ConfigurationError: If the file is missing, unreadable or invalid
    """
    if path is None:
        return StreamSettings()

    config_path = Path(path)
    if not config_path.is_file():
        raise ConfigurationError(f"Settings file not found: {config_path}",
                                 error_code=ErrorCodes.CONFIG_NOT_FOUND)

    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Cannot read settings file: {config_path}", cause=e,
                                 error_code=ErrorCodes.CONFIG_INVALID)

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Settings file must contain a mapping: {config_path}",
                                 error_code=ErrorCodes.CONFIG_INVALID)

    settings = settings_from_dict(data)
    logger.info(f"Loaded stream settings from {config_path}")
    return settings


def _raise_if_invalid(settings: StreamSettings) -> None:
    valid, errors = settings.validate()
    if not valid:
        raise ConfigurationError(
            f"Invalid stream settings: {'; '.join(errors)}",
            error_code=ErrorCodes.CONFIG_INVALID,
            context={'errors': errors}
        )
