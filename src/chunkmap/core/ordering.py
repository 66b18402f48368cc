"""
Ordering functions mapping a coordinate triple inside a known shape to an integer rank.

Row-major and column-major ranks are dense in ``[0, prod(shape))``. Morton (Z-order) and
Hilbert ranks are computed over the enclosing power-of-two square (or cube) and are only
dense when every axis is the same power of two; callers that need dense positions must
normalize them (see ``chunkmap.core.chunk_grids``).
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from chunkmap.core.common import Coords3D, Shape3D
from chunkmap.errors import UnknownOrderingError

MORTON_2D_BITS = 16
MORTON_3D_BITS = 10


class Ordering(Enum):
    """
    Enum for linearization order.
    """

    ROW_MAJOR = "row-major"
    COL_MAJOR = "col-major"
    Z_ORDER = "z-order"
    HILBERT = "hilbert"

    @classmethod
    def parse(cls, data: Any) -> Ordering:
        if isinstance(data, Ordering):
            return data
        try:
            return cls(data)
        except ValueError as e:
            raise UnknownOrderingError(data, [o.value for o in cls]) from e

    @property
    def is_space_filling(self) -> bool:
        """True for orderings whose raw ranks need normalization to become dense."""
        return self in (Ordering.Z_ORDER, Ordering.HILBERT)


def row_major(x: int, y: int, z: int, shape: Shape3D) -> int:
    sx, sy, _ = shape
    return x + y * sx + z * sx * sy


def col_major(x: int, y: int, z: int, shape: Shape3D) -> int:
    sx, sy, _ = shape
    return y + x * sy + z * sx * sy


def row_major_inverse(index: int, shape: Shape3D) -> Coords3D:
    sx, sy, _ = shape
    z, xy = divmod(index, sx * sy)
    y, x = divmod(xy, sx)
    return x, y, z


def col_major_inverse(index: int, shape: Shape3D) -> Coords3D:
    sx, sy, _ = shape
    z, xy = divmod(index, sx * sy)
    x, y = divmod(xy, sy)
    return x, y, z


def _morton_bits(minimum: int, *values: int) -> int:
    return max(minimum, *(v.bit_length() for v in values))


def morton_encode_2d(x: int, y: int) -> int:
    """Interleave the bits of ``x`` (even positions) and ``y`` (odd positions)."""
    result = 0
    for i in range(_morton_bits(MORTON_2D_BITS, x, y)):
        result |= ((x >> i) & 1) << (2 * i)
        result |= ((y >> i) & 1) << (2 * i + 1)
    return result


def morton_encode_3d(x: int, y: int, z: int) -> int:
    """Interleave the bits of ``x``, ``y`` and ``z``, one bit per axis at a time."""
    result = 0
    for i in range(_morton_bits(MORTON_3D_BITS, x, y, z)):
        result |= ((x >> i) & 1) << (3 * i)
        result |= ((y >> i) & 1) << (3 * i + 1)
        result |= ((z >> i) & 1) << (3 * i + 2)
    return result


def morton_decode_2d(code: int) -> tuple[int, int]:
    x = y = 0
    for i in range((code.bit_length() + 1) // 2):
        x |= ((code >> (2 * i)) & 1) << i
        y |= ((code >> (2 * i + 1)) & 1) << i
    return x, y


def morton_decode_3d(code: int) -> Coords3D:
    x = y = z = 0
    for i in range((code.bit_length() + 2) // 3):
        x |= ((code >> (3 * i)) & 1) << i
        y |= ((code >> (3 * i + 1)) & 1) << i
        z |= ((code >> (3 * i + 2)) & 1) << i
    return x, y, z


def next_power_of_two(n: int) -> int:
    if n <= 1:
        return 1
    return 1 << (n - 1).bit_length()


def hilbert_rotate(n: int, x: int, y: int, rx: int, ry: int) -> tuple[int, int]:
    """Rotate/reflect a quadrant of side ``n`` so the sub-curve has the right orientation."""
    if ry == 0:
        if rx == 1:
            x = n - 1 - x
            y = n - 1 - y
        x, y = y, x
    return x, y


def hilbert_encode_2d(x: int, y: int, max_dim: int) -> int:
    """
    Distance of ``(x, y)`` along the Hilbert curve filling the ``n`` x ``n`` square, where
    ``n`` is the next power of two >= ``max_dim``.
    """
    n = next_power_of_two(max_dim)
    d = 0
    s = n // 2
    while s > 0:
        rx = 1 if x & s else 0
        ry = 1 if y & s else 0
        d += s * s * ((3 * rx) ^ ry)
        x, y = hilbert_rotate(s, x, y, rx, ry)
        s //= 2
    return d


def hilbert_decode_2d(d: int, max_dim: int) -> tuple[int, int]:
    """Inverse of ``hilbert_encode_2d``."""
    n = next_power_of_two(max_dim)
    x = y = 0
    t = d
    s = 1
    while s < n:
        rx = 1 & (t // 2)
        ry = 1 & (t ^ rx)
        x, y = hilbert_rotate(s, x, y, rx, ry)
        x += s * rx
        y += s * ry
        t //= 4
        s *= 2
    return x, y


def hilbert_layer_stride(shape: Shape3D) -> int:
    """
    Offset between consecutive z layers of the 3D Hilbert ordering.

    Layers are stacked z-major and each one spans the full power-of-two square
    ``n * n`` containing the 2D curve, not ``shape[0] * shape[1]``. Raw ranks therefore
    leave gaps for non-power-of-two shapes: ``(0, 0, 1)`` in ``(3, 3, 2)`` ranks 16, not 9.
    Normalization removes the gaps.
    """
    n = next_power_of_two(max(shape[0], shape[1]))
    return n * n


def linearize(ordering: Ordering, x: int, y: int, z: int, shape: Shape3D) -> int:
    """Raw rank of ``(x, y, z)`` inside ``shape`` under ``ordering``."""
    match ordering:
        case Ordering.ROW_MAJOR:
            return row_major(x, y, z, shape)
        case Ordering.COL_MAJOR:
            return col_major(x, y, z, shape)
        case Ordering.Z_ORDER:
            if shape[2] > 1:
                return morton_encode_3d(x, y, z)
            return morton_encode_2d(x, y)
        case Ordering.HILBERT:
            layer = hilbert_encode_2d(x, y, max(shape[0], shape[1]))
            return z * hilbert_layer_stride(shape) + layer
    raise UnknownOrderingError(ordering, [o.value for o in Ordering])


def delinearize(ordering: Ordering, rank: int, shape: Shape3D) -> Coords3D:
    """Inverse of ``linearize`` for any rank it can produce."""
    match ordering:
        case Ordering.ROW_MAJOR:
            return row_major_inverse(rank, shape)
        case Ordering.COL_MAJOR:
            return col_major_inverse(rank, shape)
        case Ordering.Z_ORDER:
            if shape[2] > 1:
                return morton_decode_3d(rank)
            x, y = morton_decode_2d(rank)
            return x, y, 0
        case Ordering.HILBERT:
            z, d = divmod(rank, hilbert_layer_stride(shape))
            x, y = hilbert_decode_2d(d, max(shape[0], shape[1]))
            return x, y, z
    raise UnknownOrderingError(ordering, [o.value for o in Ordering])
