from __future__ import annotations

import logging

from .errors import InvalidCodeFormat

LOGGER = logging.getLogger(__name__)

CODE_LENGTH = 4
PLACEHOLDER = "-"


def compute_object_level(code: str) -> str:
    """
    Map a 4-digit BSMI code to its hierarchy level.

    The level is 4 minus the number of trailing zeros: "1000" -> "1", "1200" -> "2",
    "1230" -> "3", "1234" -> "4". "0000" yields "0".
    """
    if not isinstance(code, str) or len(code) != CODE_LENGTH or not all(c in "0123456789" for c in code):
        raise InvalidCodeFormat(code)

    trailing_zeros = len(code) - len(code.rstrip("0"))
    return str(CODE_LENGTH - trailing_zeros)


def object_level_or_placeholder(code: str) -> str:
    """Report-friendly variant of ``compute_object_level``: malformed codes become "-"."""
    try:
        return compute_object_level(code)
    except InvalidCodeFormat as exc:
        LOGGER.warning(f"Cannot compute object level: {exc}")
        return PLACEHOLDER


def cleanup_short_name(short_name: str) -> str:
    """Make a short name usable as a bare DOT identifier."""
    return short_name.replace("-", "_").replace(" ", "_")
