"""Token cursor over a frame value.

A token is a maximal run of characters that are neither whitespace nor a
comma. The reader keeps an explicit index into the source string and only
ever moves forward.
"""

import re
from typing import Optional

from torchcraft_env.errors import NotAFloat, NotAnInteger, UnexpectedEof
from torchcraft_env.protocol.table import strip_brackets

_TOKEN = re.compile(r"[^\s,]+")
_INTEGER = re.compile(r"[+-]?[0-9]+")

INT32_MIN = -(2**31)
INT32_MAX = 2**31 - 1


class TokenReader:
    """Forward-only typed reader over whitespace/comma separated tokens."""

    def __init__(self, source: str, start: int = 0, end: Optional[int] = None):
        self._source = source
        self._pos = start
        self._end = len(source) if end is None else end

    @classmethod
    def from_bracketed(cls, value: str) -> "TokenReader":
        """Build a reader over the body of a ``{...}`` value."""
        strip_brackets(value)
        return cls(value, 1, len(value) - 1)

    @property
    def position(self) -> int:
        return self._pos

    @property
    def exhausted(self) -> bool:
        return _TOKEN.search(self._source, self._pos, self._end) is None

    def _next_token(self, expected: str) -> str:
        match = _TOKEN.search(self._source, self._pos, self._end)
        if match is None:
            self._pos = self._end
            raise UnexpectedEof(f"unexpected EOF while parsing {expected}")
        self._pos = match.end()
        return match.group()

    def next_int(self) -> int:
        """Read the next token as a signed 32-bit integer."""
        token = self._next_token("int32")
        if _INTEGER.fullmatch(token) is None:
            raise NotAnInteger(f"error parsing int32 from {token!r}")
        value = int(token)
        if not INT32_MIN <= value <= INT32_MAX:
            raise NotAnInteger(f"{token!r} is outside the int32 range")
        return value

    def next_float(self) -> float:
        """Read the next token as a float."""
        token = self._next_token("float")
        if "_" in token:
            raise NotAFloat(f"error parsing float from {token!r}")
        try:
            return float(token)
        except ValueError:
            raise NotAFloat(f"error parsing float from {token!r}") from None

    def remaining(self) -> list[str]:
        """Return the unread tokens without consuming them."""
        return _TOKEN.findall(self._source, self._pos, self._end)
