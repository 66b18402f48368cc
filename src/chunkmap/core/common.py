from __future__ import annotations

import functools
import math
import numbers
import operator
from collections.abc import Iterable, Sequence
from typing import Any, NamedTuple

import numpy as np

from chunkmap.errors import BoundsCheckError, InvalidShapeError

ShapeLike = Iterable[int] | int
Coords3D = tuple[int, int, int]
Shape3D = tuple[int, int, int]
Range = tuple[int, int]


class Interval(NamedTuple):
    """A closed integer interval ``[lo, hi]``. Empty when ``lo > hi``."""

    lo: int
    hi: int

    def clip(self, length: int) -> Interval:
        return Interval(max(self.lo, 0), min(self.hi, length - 1))

    @property
    def nitems(self) -> int:
        return max(0, self.hi - self.lo + 1)


def product(tup: tuple[int, ...]) -> int:
    return functools.reduce(operator.mul, tup, 1)


def ceildiv(a: float, b: float) -> int:
    if a == 0:
        return 0
    return math.ceil(a / b)


def is_bool(x: Any) -> bool:
    """True if x is a boolean (both pure Python or NumPy)."""
    return type(x) in [bool, np.bool_]


def is_integer(x: Any) -> bool:
    """True if x is an integer (both pure Python or NumPy)."""
    return isinstance(x, numbers.Integral) and not is_bool(x)


def parse_shape3d(data: ShapeLike, name: str = "shape") -> Shape3D:
    """
    Normalize a shape to a 3-tuple of positive integers.

    A single integer is treated as a 1D extent and two-element shapes are
    padded with a trailing ``1``.
    """
    if is_integer(data):
        data = (int(data),)
    try:
        data_tuple = tuple(data)
    except TypeError as e:
        raise InvalidShapeError(name, data, "an integer or an iterable of integers") from e

    if not 1 <= len(data_tuple) <= 3:
        raise InvalidShapeError(name, data, "between one and three dimensions")
    if not all(is_integer(v) for v in data_tuple):
        raise InvalidShapeError(name, data, "an iterable of integers")
    if not all(v > 0 for v in data_tuple):
        raise InvalidShapeError(name, data, "all values to be positive")
    data_tuple = tuple(int(v) for v in data_tuple) + (1,) * (3 - len(data_tuple))
    return data_tuple  # type: ignore[return-value]


def check_coords(coords: Sequence[int], shape: Sequence[int]) -> None:
    if len(coords) != len(shape) or not all(
        0 <= c < s for c, s in zip(coords, shape, strict=True)
    ):
        raise BoundsCheckError(tuple(coords), tuple(shape))
