"""Scale-tagged 2D coordinates.

BWAPI uses three grids: pixels (Position), 8x8 walk tiles (WalkPosition) and
32x32 build tiles (TilePosition). Each class carries its scale in pixels, and
arithmetic is only defined between points of the same class. Converting
between grids goes through ``to()``.

Integer division and modulo truncate toward zero. Dividing by zero raises
ZeroDivisionError.
"""

import math
from dataclasses import dataclass
from typing import ClassVar, Type, TypeVar

P = TypeVar("P", bound="Point")


def _div(a: int, b: int) -> int:
    q = abs(a) // abs(b)
    return q if (a >= 0) == (b > 0) else -q


def _rem(a: int, b: int) -> int:
    return a - b * _div(a, b)


@dataclass(frozen=True)
class Point:
    """Base class; use one of the scaled subclasses."""

    x: int = 0
    y: int = 0

    SCALE: ClassVar[int] = 1

    def _check(self, other: object) -> bool:
        return type(other) is type(self)

    def __add__(self: P, other: P) -> P:
        if not self._check(other):
            return NotImplemented
        return type(self)(self.x + other.x, self.y + other.y)

    def __sub__(self: P, other: P) -> P:
        if not self._check(other):
            return NotImplemented
        return type(self)(self.x - other.x, self.y - other.y)

    def __mul__(self: P, scalar: int) -> P:
        if not isinstance(scalar, int):
            return NotImplemented
        return type(self)(self.x * scalar, self.y * scalar)

    __rmul__ = __mul__

    def __truediv__(self: P, scalar: int) -> P:
        if not isinstance(scalar, int):
            return NotImplemented
        if scalar == 0:
            raise ZeroDivisionError(f"{type(self).__name__} division by zero")
        return type(self)(_div(self.x, scalar), _div(self.y, scalar))

    __floordiv__ = __truediv__

    def __mod__(self: P, scalar: int) -> P:
        if not isinstance(scalar, int):
            return NotImplemented
        if scalar == 0:
            raise ZeroDivisionError(f"{type(self).__name__} modulo by zero")
        return type(self)(_rem(self.x, scalar), _rem(self.y, scalar))

    def length(self) -> float:
        return math.sqrt(self.x * self.x + self.y * self.y)

    def distance(self: P, other: P) -> float:
        return (self - other).length()

    def to(self, cls: Type[P]) -> P:
        """Convert to another grid, e.g. ``walk.to(Position)``."""
        return cls.from_point(self)

    @classmethod
    def from_point(cls: Type[P], other: "Point") -> P:
        if other.SCALE > cls.SCALE:
            factor = other.SCALE // cls.SCALE
            return cls(other.x * factor, other.y * factor)
        factor = cls.SCALE // other.SCALE
        return cls(_div(other.x, factor), _div(other.y, factor))

    @classmethod
    def from_tuple(cls: Type[P], coords: tuple[int, int]) -> P:
        """Wrap a raw ``(x, y)`` pair, such as ``Unit.pixel_coords``."""
        return cls(coords[0], coords[1])


@dataclass(frozen=True)
class Position(Point):
    SCALE: ClassVar[int] = 1


@dataclass(frozen=True)
class WalkPosition(Point):
    SCALE: ClassVar[int] = 8


@dataclass(frozen=True)
class TilePosition(Point):
    SCALE: ClassVar[int] = 32
