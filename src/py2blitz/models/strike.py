"""
Strike record models for py2blitz.

A strike is one detected lightning discharge together with the stations that
picked up its signal. Records are built from the JSON text the server sends
after LZW decompression.

Classes:
    Signal: One station's detection of a strike
    Strike: A decoded lightning strike
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional, Tuple

from py2blitz.core.errors import ErrorCodes, StrikeParseError

_U32_MAX = 2 ** 32 - 1
_U64_MAX = 2 ** 64 - 1
_I32_MIN, _I32_MAX = -2 ** 31, 2 ** 31 - 1
_I64_MIN, _I64_MAX = -2 ** 63, 2 ** 63 - 1


def _require(obj: Mapping[str, Any], key: str, where: str) -> Any:
    if key not in obj:
        raise StrikeParseError(f"Missing field '{key}' in {where}", field_name=key,
                               error_code=ErrorCodes.INVALID_STRIKE)
    return obj[key]


def _as_int(value: Any, key: str, bounds: Tuple[int, int]) -> int:
    # bool is an int subclass; JSON true/false is never a number here
    if isinstance(value, bool) or not isinstance(value, int):
        raise StrikeParseError(f"Field '{key}' must be an integer, got {value!r}",
                               field_name=key, error_code=ErrorCodes.INVALID_STRIKE)
    low, high = bounds
    if not (low <= value <= high):
        raise StrikeParseError(f"Field '{key}' out of range ({low}-{high}): {value}",
                               field_name=key, error_code=ErrorCodes.INVALID_STRIKE)
    return value


def _as_float(value: Any, key: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise StrikeParseError(f"Field '{key}' must be a number, got {value!r}",
                               field_name=key, error_code=ErrorCodes.INVALID_STRIKE)
    return float(value)


@dataclass(frozen=True)
class Signal:
    """
    A single station's detection of a strike.

    Attributes:
        station: Station id (JSON "sta")
        time: Nanoseconds since the last full second
        lat: Station latitude in degrees
        lon: Station longitude in degrees
        alt: Station altitude in meters
        status: Station status flags
    """

    station: int
    time: int
    lat: float
    lon: float
    alt: int
    status: int

    @property
    def offset_text(self) -> str:
        """Sub-second offset with 9-digit fixed precision, e.g. '0.000123456'."""
        return f"0.{self.time:09d}"

    @classmethod
    def from_dict(cls, obj: Mapping[str, Any]) -> "Signal":
        """
        Build a signal from its JSON object.

        Raises:
            StrikeParseError: If a field is missing or has the wrong type
        """
        if not isinstance(obj, Mapping):
            raise StrikeParseError(f"Signal entry must be an object, got {obj!r}",
                                   field_name='sig', error_code=ErrorCodes.INVALID_STRIKE)
        where = "signal"
        return cls(
            station=_as_int(_require(obj, 'sta', where), 'sta', (0, _U32_MAX)),
            time=_as_int(_require(obj, 'time', where), 'time', (0, _U64_MAX)),
            lat=_as_float(_require(obj, 'lat', where), 'lat'),
            lon=_as_float(_require(obj, 'lon', where), 'lon'),
            alt=_as_int(_require(obj, 'alt', where), 'alt', (_I64_MIN, _I64_MAX)),
            status=_as_int(_require(obj, 'status', where), 'status', (0, _U32_MAX)),
        )


@dataclass(frozen=True)
class Strike:
    """
    A decoded lightning strike.

    Attributes:
        time: Microseconds since epoch
        lat: Latitude in degrees
        lon: Longitude in degrees
        alt: Altitude in meters
        polarity: Discharge polarity (JSON "pol")
        mds: Maximal deviation span
        mcg: Maximal circular gap
        status: Strike status flags
        region: Server region id
        lonc: Longitude correction count
        latc: Latitude correction count
        signals: Per-station detections, in server order (JSON "sig")
        delay: Server-side delay in seconds, when reported

    Example:
        >>> strike = Strike.from_json(decoded_text)
        >>> print(strike.summary())
        14:03:27 - Lat: 48.1234°, Lon: 11.5678°, Alt: 0m
    """

    time: int
    lat: float
    lon: float
    alt: float
    polarity: int
    mds: int
    mcg: int
    status: int
    region: int
    lonc: int
    latc: int
    signals: Tuple[Signal, ...] = field(default_factory=tuple)
    delay: Optional[float] = None

    @property
    def occurred_at(self) -> datetime:
        """Strike time as an aware UTC datetime."""
        seconds, micros = divmod(self.time, 1_000_000)
        return datetime.fromtimestamp(seconds, tz=timezone.utc).replace(microsecond=micros)

    def summary(self) -> str:
        """One-line description used by the monitor and the CLI."""
        position = f"Lat: {self.lat:.4f}°, Lon: {self.lon:.4f}°, Alt: {self.alt:.0f}m"
        try:
            return f"{self.occurred_at:%H:%M:%S} - {position}"
        except (OverflowError, OSError, ValueError):
            # Timestamp outside the platform datetime range
            return f"Time: {self.time} - {position}"

    @classmethod
    def from_dict(cls, obj: Mapping[str, Any]) -> "Strike":
        """
        Build a strike from its decoded JSON object.

        Unknown keys are ignored.

        Raises:
            StrikeParseError: If a field is missing or has the wrong type
        """
        if not isinstance(obj, Mapping):
            raise StrikeParseError(f"Strike must be a JSON object, got {type(obj).__name__}",
                                   error_code=ErrorCodes.INVALID_STRIKE)

        where = "strike"
        sig = _require(obj, 'sig', where)
        if not isinstance(sig, list):
            raise StrikeParseError("Field 'sig' must be an array", field_name='sig',
                                   error_code=ErrorCodes.INVALID_STRIKE)

        delay = obj.get('delay')
        return cls(
            time=_as_int(_require(obj, 'time', where), 'time', (0, _U64_MAX)),
            lat=_as_float(_require(obj, 'lat', where), 'lat'),
            lon=_as_float(_require(obj, 'lon', where), 'lon'),
            alt=_as_float(_require(obj, 'alt', where), 'alt'),
            polarity=_as_int(_require(obj, 'pol', where), 'pol', (_I32_MIN, _I32_MAX)),
            mds=_as_int(_require(obj, 'mds', where), 'mds', (0, _U32_MAX)),
            mcg=_as_int(_require(obj, 'mcg', where), 'mcg', (0, _U32_MAX)),
            status=_as_int(_require(obj, 'status', where), 'status', (0, _U32_MAX)),
            region=_as_int(_require(obj, 'region', where), 'region', (0, _U32_MAX)),
            lonc=_as_int(_require(obj, 'lonc', where), 'lonc', (0, _U32_MAX)),
            latc=_as_int(_require(obj, 'latc', where), 'latc', (0, _U32_MAX)),
            signals=tuple(Signal.from_dict(s) for s in sig),
            delay=None if delay is None else _as_float(delay, 'delay'),
        )

    @classmethod
    def from_json(cls, text: str) -> "Strike":
        """
        Parse decoded JSON text into a strike.

        Raises:
            StrikeParseError: If the text is not JSON or not a valid strike
        """
        try:
            obj = json.loads(text)
        except (ValueError, RecursionError) as e:
            raise StrikeParseError("Decoded text is not valid JSON", cause=e,
                                   error_code=ErrorCodes.INVALID_JSON)
        return cls.from_dict(obj)

    def to_dict(self) -> Dict[str, Any]:
        """Convert back to the server's JSON field names."""
        result: Dict[str, Any] = {
            'time': self.time,
            'lat': self.lat,
            'lon': self.lon,
            'alt': self.alt,
            'pol': self.polarity,
            'mds': self.mds,
            'mcg': self.mcg,
            'status': self.status,
            'region': self.region,
            'sig': [
                {'sta': s.station, 'time': s.time, 'lat': s.lat, 'lon': s.lon,
                 'alt': s.alt, 'status': s.status}
                for s in self.signals
            ],
            'lonc': self.lonc,
            'latc': self.latc,
        }
        if self.delay is not None:
            result['delay'] = self.delay
        return result

