"""
LZW decoder for Blitzortung compressed frames.

The server compresses each strike message with an incremental LZW scheme that
works on Unicode code points instead of bytes: code points below 256 are
literals, anything at or above 256 is a dictionary code. The dictionary is
rebuilt from scratch for every frame, so decoding is stateless across calls.

The dictionary is unbounded unless a cap is given. Every input symbol adds one
entry, so memory grows with the frame length; a hostile peer sending very long
frames can make a single decode expensive.
"""

import logging
from typing import Dict, List, Optional

from .errors import DictionaryOverflowError

logger = logging.getLogger(__name__)

# First code assigned to a dictionary phrase
FIRST_CODE = 256


def decode(data: str, max_dictionary_size: Optional[int] = None) -> str:
    """
    Expand an LZW-compressed frame.

    Args:
        data: Compressed frame text
        max_dictionary_size: Optional cap on dictionary entries. None keeps
                             the dictionary unbounded.

    Returns:
        Decompressed text. Malformed input decodes to garbage rather than
        raising; the JSON parse that follows rejects it.

    Raises:
        DictionaryOverflowError: If max_dictionary_size is set and exceeded

    Example:
        >>> decode("ab\\u0100")
        'abab'
    """
    if not data:
        return ""

    dictionary: Dict[int, List[str]] = {}
    old_phrase = [data[0]]
    result = [data[0]]
    code = FIRST_CODE

    for symbol in data[1:]:
        current = ord(symbol)

        if current < FIRST_CODE:
            phrase = [symbol]
        elif current in dictionary:
            phrase = dictionary[current]
        else:
            # Code used before it was inserted: previous phrase plus its own head
            phrase = old_phrase + [old_phrase[0]]

        result.extend(phrase)

        if max_dictionary_size is not None and len(dictionary) >= max_dictionary_size:
            raise DictionaryOverflowError(
                f"LZW dictionary exceeded {max_dictionary_size} entries",
                limit=max_dictionary_size,
                context={'input_length': len(data)}
            )

        dictionary[code] = old_phrase + [phrase[0]]
        code += 1
        old_phrase = phrase

    decoded = "".join(result)
    logger.debug(f"Decoded {len(data)} symbols into {len(decoded)} characters")
    return decoded
