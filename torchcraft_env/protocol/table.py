"""Envelope codec: bracketed ``key=value`` tables and comma lists.

Server messages look like ``{frame={...},deaths={4,7}}``. Splitting happens on
commas and ``=`` signs at nesting depth zero, so a bracketed value keeps its
own commas. Pieces that are empty, or that do not split into exactly one
non-empty key and one non-empty value, are dropped without error.
"""

import logging
from enum import Enum

from torchcraft_env.errors import MalformedEnvelope

logger = logging.getLogger(__name__)

_OPEN = "{"
_CLOSE = "}"


class EnvelopeKey(str, Enum):
    """Envelope keys understood by the session state."""

    FRAME = "frame"
    DEATHS = "deaths"
    UNKNOWN = ""

    @classmethod
    def lookup(cls, key: str) -> "EnvelopeKey":
        """Map a raw key to a member, falling back to UNKNOWN."""
        if not key:
            return cls.UNKNOWN
        try:
            return cls(key)
        except ValueError:
            return cls.UNKNOWN


def strip_brackets(value: str) -> str:
    """Return the body of a ``{...}`` string."""
    if len(value) < 2 or value[0] != _OPEN or value[-1] != _CLOSE:
        preview = value if len(value) <= 40 else value[:37] + "..."
        raise MalformedEnvelope(f"expected a bracketed value, got {preview!r}")
    return value[1:-1]


def _split_top_level(body: str, sep: str) -> list[str]:
    """Split *body* on *sep* wherever the bracket depth is zero."""
    pieces = []
    depth = 0
    start = 0
    for i, ch in enumerate(body):
        if ch == _OPEN:
            depth += 1
        elif ch == _CLOSE:
            depth = max(depth - 1, 0)
        elif ch == sep and depth == 0:
            pieces.append(body[start:i])
            start = i + 1
    pieces.append(body[start:])
    return pieces


def parse_table(message: str) -> dict[str, str]:
    """Parse ``{a=1,b={2 3},...}`` into ``{"a": "1", "b": "{2 3}"}``.

    Keys and values are stripped of surrounding whitespace. Malformed pieces
    (``a=``, ``=b``, ``a=b=c``) are skipped; later keys overwrite earlier ones.
    """
    table: dict[str, str] = {}
    for piece in _split_top_level(strip_brackets(message), ","):
        if not piece:
            continue
        parts = [p.strip() for p in _split_top_level(piece, "=") if p.strip()]
        if len(parts) != 2:
            logger.debug(f"Dropping malformed table entry {piece[:40]!r}")
            continue
        table[parts[0]] = parts[1]
    return table


def parse_list(value: str) -> list[str]:
    """Parse ``{a,,b}`` into ``["a", "b"]``."""
    pieces = _split_top_level(strip_brackets(value), ",")
    return [piece.strip() for piece in pieces if piece.strip()]
