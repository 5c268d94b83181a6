"""
Strike decoding pipeline.

Turns the payload of a RAW_TEXT envelope into a Strike in two separate steps,
decompress then parse, so decoder failures and schema failures can be told
apart when debugging:

    raw text ──decode()──> JSON text ──Strike.from_json()──> Strike
"""

import logging
from dataclasses import dataclass
from typing import Optional

from py2blitz.core.envelope import Envelope, MessageKind
from py2blitz.core.errors import BlitzError, DecodeError, StrikeParseError
from py2blitz.core.lzw_decoder import decode
from py2blitz.models.strike import Strike

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StrikeDecodeResult:
    """
    Outcome of decoding one raw-text payload.

    Attributes:
        raw: The payload text as received
        text: Decompressed text ("" if decompression failed)
        strike: The parsed strike, None on failure
        error: What went wrong, None on success
    """

    raw: str
    text: str
    strike: Optional[Strike] = None
    error: Optional[BlitzError] = None

    @property
    def ok(self) -> bool:
        return self.strike is not None

    @property
    def decode_failed(self) -> bool:
        return isinstance(self.error, DecodeError)

    @property
    def parse_failed(self) -> bool:
        return isinstance(self.error, StrikeParseError)


class StrikeService:
    """
    Decodes raw-text payloads into strike records.

    Example:
        >>> service = StrikeService()
        >>> result = service.decode_text(envelope.text)
        >>> if result.ok:
        ...     print(result.strike.summary())
        ... else:
        ...     print(f"Raw message: {result.text}")
    """

    def __init__(self, max_dictionary_size: Optional[int] = None):
        """
        Args:
            max_dictionary_size: Optional decoder dictionary cap
        """
        self.max_dictionary_size = max_dictionary_size
        self.logger = logging.getLogger(__name__)

    def decode_text(self, raw: str) -> StrikeDecodeResult:
        """Decompress and parse one payload. Never raises."""
        try:
            text = decode(raw, self.max_dictionary_size)
        except DecodeError as e:
            self.logger.warning(f"Failed to decompress frame: {e.message}")
            return StrikeDecodeResult(raw=raw, text="", error=e)

        try:
            strike = Strike.from_json(text)
        except StrikeParseError as e:
            self.logger.debug(f"Decoded text is not a strike: {e.message}")
            return StrikeDecodeResult(raw=raw, text=text, error=e)

        return StrikeDecodeResult(raw=raw, text=text, strike=strike)

    def decode_envelope(self, envelope: Envelope) -> StrikeDecodeResult:
        """
        Decode the payload of a RAW_TEXT envelope.

        Raises:
            ValueError: If the envelope is of another kind
        """
        if envelope.kind is not MessageKind.RAW_TEXT:
            raise ValueError(f"Expected a raw_text envelope, got {envelope.kind.value}")
        return self.decode_text(envelope.text)
