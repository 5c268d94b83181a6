"""
Unified error handling framework for py2blitz.

Every error carries a numeric code from ErrorCodes, a category and a context
dict, so the same object can be shown to a user or written to the log.

Error Code Ranges:
- 1000-1999: Connection errors
- 2000-2999: Protocol/envelope errors
- 4000-4999: Decode/parse errors
- 6000-6999: Configuration errors
- 9000-9999: Unknown/System errors

Errors raised inside the connection worker never reach the caller directly;
the worker converts them into log records or connection-status envelopes.
"""

from typing import Optional, Dict, Any, List
from datetime import datetime


class ErrorCodes:
    """Standard error codes for common error scenarios."""

    # Connection errors (1000-1999)
    CONNECTION_REFUSED = 1001
    CONNECTION_TIMEOUT = 1002
    CONNECTION_LOST = 1003

    # Protocol errors (2000-2999)
    PROTOCOL_ERROR = 2001
    SEND_FAILED = 2002
    INVALID_ENVELOPE = 2003

    # Decode errors (4000-4999)
    DECODE_FAILED = 4001
    DICTIONARY_OVERFLOW = 4002
    INVALID_JSON = 4003
    INVALID_STRIKE = 4004

    # Configuration errors (6000-6999)
    CONFIG_NOT_FOUND = 6001
    CONFIG_INVALID = 6002
    UNKNOWN_SETTING = 6003

    # System errors (9000-9999)
    UNKNOWN_ERROR = 9000


class BlitzError(Exception):
    """
    Base exception for all py2blitz errors.

    Subclasses set DEFAULT_CODE and CATEGORY; the category is stamped into
    the context so log consumers can filter on it.
    """

    DEFAULT_CODE = ErrorCodes.UNKNOWN_ERROR
    CATEGORY: Optional[str] = None

    def __init__(
        self,
        message: str,
        error_code: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        suggestions: Optional[List[str]] = None
    ):
        """
        Args:
            message: Human-readable error description
            error_code: Numeric code, DEFAULT_CODE if None
            context: Additional context information
            cause: Original exception if this wraps another error
            suggestions: Possible next steps shown to the user
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.DEFAULT_CODE
        self.cause = cause
        self.suggestions = suggestions or []
        self.timestamp = datetime.now()

        self.context = dict(context or {})
        if self.CATEGORY:
            self.context['category'] = self.CATEGORY
        if cause is not None:
            self.context['original_error'] = str(cause)
            self.context['original_type'] = type(cause).__name__

    def _add_context(self, **values: Any) -> None:
        """Record the keyword values that are not None."""
        self.context.update({k: v for k, v in values.items() if v is not None})

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        return {
            'error_type': type(self).__name__,
            'message': self.message,
            'code': self.error_code,
            'context': self.context,
            'suggestions': self.suggestions,
            'timestamp': self.timestamp.isoformat(),
            'cause': str(self.cause) if self.cause else None,
        }

    def format_user_message(self) -> str:
        """Message plus numbered suggestions, without technical details."""
        lines = [self.message]
        if self.suggestions:
            lines.append("")
            lines.append("Suggestions:")
            lines.extend(f"  {i}. {s}" for i, s in enumerate(self.suggestions, 1))
        return "\n".join(lines)

    def format_log_message(self) -> str:
        """Single-line form with code, context and cause."""
        parts = [f"[{self.error_code}] {type(self).__name__}: {self.message}"]
        if self.context:
            parts.append(f"Context: {self.context}")
        if self.cause:
            parts.append(f"Caused by: {self.cause}")
        return " | ".join(parts)


class ConnectionFailedError(BlitzError):
    """Errors related to the WebSocket connection."""
    DEFAULT_CODE = ErrorCodes.CONNECTION_REFUSED
    CATEGORY = 'CONNECTION'

    def __init__(self, message: str, url: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self._add_context(url=url)


class ProtocolError(BlitzError):
    """Errors related to frame handling and protocol violations."""
    DEFAULT_CODE = ErrorCodes.PROTOCOL_ERROR
    CATEGORY = 'PROTOCOL'


class EnvelopeFormatError(ProtocolError, ValueError):
    """A text frame is not a structured envelope."""
    DEFAULT_CODE = ErrorCodes.INVALID_ENVELOPE


class DecodeError(BlitzError):
    """Errors raised by the LZW decoder."""
    DEFAULT_CODE = ErrorCodes.DECODE_FAILED
    CATEGORY = 'DECODE'


class DictionaryOverflowError(DecodeError):
    """The decoder dictionary grew past its configured cap."""
    DEFAULT_CODE = ErrorCodes.DICTIONARY_OVERFLOW

    def __init__(self, message: str, limit: Optional[int] = None, **kwargs):
        super().__init__(message, **kwargs)
        self._add_context(limit=limit)


class StrikeParseError(BlitzError, ValueError):
    """Decoded text is not a valid strike record."""
    DEFAULT_CODE = ErrorCodes.INVALID_STRIKE
    CATEGORY = 'PARSE'

    def __init__(self, message: str, field_name: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self._add_context(field=field_name)


class ConfigurationError(BlitzError):
    """Errors related to stream settings."""
    DEFAULT_CODE = ErrorCodes.CONFIG_INVALID
    CATEGORY = 'CONFIGURATION'

    def __init__(self, message: str, setting_name: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self._add_context(setting=setting_name)


def wrap_external_error(e: Exception, message: str, error_class=BlitzError,
                        error_code: Optional[int] = None, **context) -> BlitzError:
    """
    Wrap a third-party exception in a BlitzError.

    Args:
        e: The original exception
        message: Context-specific error message
        error_class: The BlitzError subclass to use
        error_code: Overrides the class default code
        **context: Additional context information
    """
    return error_class(message=message, error_code=error_code, cause=e, context=context)
