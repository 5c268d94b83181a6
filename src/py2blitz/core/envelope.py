"""
Message envelopes exchanged between the connection worker and its manager.

An envelope is deliberately untyped at the transport layer: it carries a kind
tag, opaque payload bytes and the time it was produced. The worker and the
manager never need to share the application's message schema; consumers
interpret the payload according to the kind.
"""

import base64
import json
import math
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from .errors import EnvelopeFormatError


class MessageKind(Enum):
    """
    Kinds of envelope carried on the event channel.

    Kinds:
        CONNECTION_STATUS: Connect/disconnect/failure report (JSON payload)
        RAW_TEXT: Text frame that is not a structured envelope
        BINARY: Binary frame, base64 wrapped with its size (JSON payload)
    """

    CONNECTION_STATUS = "connection_status"
    RAW_TEXT = "raw_text"
    BINARY = "binary"


# Keys of the JSON wire form of an envelope
_WIRE_KEYS = frozenset({'kind', 'payload', 'timestamp'})


@dataclass(frozen=True)
class Envelope:
    """
    Immutable transport unit.

    Attributes:
        kind: What the payload contains
        payload: Opaque bytes, interpreted according to kind
        timestamp: Seconds since epoch, set by the producer

    Example:
        >>> env = Envelope(MessageKind.RAW_TEXT, b"hello")
        >>> env.text
        'hello'
    """

    kind: MessageKind
    payload: bytes = b""
    timestamp: float = field(default_factory=time.time)

    def __post_init__(self):
        """Coerce payload to bytes so the envelope stays immutable."""
        if not isinstance(self.kind, MessageKind):
            raise TypeError(f"kind must be a MessageKind, got {type(self.kind)}")
        if isinstance(self.payload, str):
            object.__setattr__(self, 'payload', self.payload.encode('utf-8'))
        elif isinstance(self.payload, (bytearray, memoryview)):
            object.__setattr__(self, 'payload', bytes(self.payload))
        elif not isinstance(self.payload, bytes):
            raise TypeError(f"payload must be bytes, got {type(self.payload)}")

    @property
    def text(self) -> str:
        """Payload decoded as UTF-8 (invalid sequences replaced)."""
        return self.payload.decode('utf-8', errors='replace')

    def json_payload(self) -> Any:
        """
        Payload parsed as JSON.

        Raises:
            ValueError: If the payload is not valid JSON
        """
        return json.loads(self.text)

    def to_json(self) -> str:
        """Serialize to the JSON wire form sent over the socket."""
        return json.dumps({
            'kind': self.kind.value,
            'payload': self.text,
            'timestamp': self.timestamp,
        })

    @classmethod
    def from_json(cls, text: str) -> "Envelope":
        """
        Parse the JSON wire form.

        Args:
            text: Text frame received from the server

        Returns:
            The envelope described by the frame

        Raises:
            EnvelopeFormatError: If the text is not a structured envelope
        """
        try:
            obj = json.loads(text)
        except (ValueError, RecursionError) as e:
            raise EnvelopeFormatError("Frame is not JSON", cause=e)

        if not isinstance(obj, dict) or set(obj.keys()) != _WIRE_KEYS:
            raise EnvelopeFormatError(
                f"Frame is not an envelope object (expected keys {sorted(_WIRE_KEYS)})"
            )

        try:
            kind = MessageKind(obj['kind'])
        except ValueError as e:
            raise EnvelopeFormatError(f"Unknown envelope kind: {obj['kind']!r}", cause=e)

        payload = obj['payload']
        timestamp = obj['timestamp']
        if not isinstance(payload, str):
            raise EnvelopeFormatError("Envelope payload must be a string")
        if isinstance(timestamp, bool) or not isinstance(timestamp, (int, float)):
            raise EnvelopeFormatError("Envelope timestamp must be a number")
        try:
            timestamp = float(timestamp)
        except OverflowError as e:
            raise EnvelopeFormatError("Envelope timestamp out of range", cause=e)
        if not math.isfinite(timestamp) or timestamp < 0:
            raise EnvelopeFormatError("Envelope timestamp must be a finite non-negative number")

        try:
            payload_bytes = payload.encode('utf-8')
        except UnicodeEncodeError as e:
            raise EnvelopeFormatError("Envelope payload is not valid Unicode text", cause=e)

        return cls(kind=kind, payload=payload_bytes, timestamp=timestamp)


def connection_status(status: str, url: Optional[str] = None,
                      error: Optional[str] = None) -> Envelope:
    """
    Build a connection-status envelope.

    Args:
        status: "connected", "failed" or "disconnected"
        url: Server URL, when known
        error: Error description for failures
    """
    body: Dict[str, Any] = {'status': status}
    if url is not None:
        body['url'] = url
    if error is not None:
        body['error'] = error
    return Envelope(MessageKind.CONNECTION_STATUS, json.dumps(body).encode('utf-8'))


def raw_text(text: str) -> Envelope:
    """Wrap an unstructured text frame."""
    return Envelope(MessageKind.RAW_TEXT, text.encode('utf-8'))


def binary(data: bytes) -> Envelope:
    """Wrap a binary frame as base64 plus its size."""
    body = {
        'size': len(data),
        'data': base64.b64encode(data).decode('ascii'),
    }
    return Envelope(MessageKind.BINARY, json.dumps(body).encode('utf-8'))


def binary_data(envelope: Envelope) -> bytes:
    """
    Recover the original bytes of a BINARY envelope.

    Raises:
        ValueError: If the envelope is not a well-formed binary envelope
    """
    if envelope.kind is not MessageKind.BINARY:
        raise ValueError(f"Not a binary envelope: {envelope.kind.value}")
    body = envelope.json_payload()
    return base64.b64decode(body['data'], validate=True)
