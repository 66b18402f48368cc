from __future__ import annotations

import itertools
import logging
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from typing import NamedTuple

import numpy as np
import numpy.typing as npt

from chunkmap.core.cache import LRUCache
from chunkmap.core.common import (
    Coords3D,
    Shape3D,
    ShapeLike,
    ceildiv,
    check_coords,
    parse_shape3d,
    product,
)
from chunkmap.core.ordering import Ordering, delinearize, linearize
from chunkmap.errors import BoundsCheckError, NormalizationLookupError

logger = logging.getLogger(__name__)


def _iter_grid(shape: Shape3D) -> Iterator[Coords3D]:
    """
    Iterate over every coordinate of ``shape`` with x varying fastest.

    Examples
    --------
    >>> tuple(_iter_grid((2, 2, 1)))
    ((0, 0, 0), (1, 0, 0), (0, 1, 0), (1, 1, 0))
    """
    for z, y, x in itertools.product(*(range(s) for s in reversed(shape))):
        yield x, y, z


class RegionBounds(NamedTuple):
    """Half-open bounds ``[start, end)`` per axis of a region of a grid.

    Attributes
    ----------
    start
        First coordinate of the region.
    end
        One past the last coordinate of the region, clipped to the grid shape.
    """

    start: Coords3D
    end: Coords3D

    @property
    def shape(self) -> Shape3D:
        return (
            self.end[0] - self.start[0],
            self.end[1] - self.start[1],
            self.end[2] - self.start[2],
        )

    @property
    def nitems(self) -> int:
        return product(self.shape)

    def iter_coords(self) -> Iterator[Coords3D]:
        ox, oy, oz = self.start
        for x, y, z in _iter_grid(self.shape):
            yield ox + x, oy + y, oz + z


@dataclass(frozen=True)
class GridCoordinate:
    """
    One ordering function bound to a grid shape.

    ``linearize`` results are memoized in ``cache`` when one is given; the cache is a
    side-table and never changes a result.
    """

    shape: Shape3D
    ordering: Ordering
    cache: LRUCache[tuple[object, ...], int] | None = field(
        default=None, compare=False, repr=False
    )

    def __init__(
        self,
        shape: ShapeLike,
        ordering: Ordering | str = Ordering.ROW_MAJOR,
        cache: LRUCache[tuple[object, ...], int] | None = None,
    ) -> None:
        object.__setattr__(self, "shape", parse_shape3d(shape))
        object.__setattr__(self, "ordering", Ordering.parse(ordering))
        object.__setattr__(self, "cache", cache)

    def linearize(self, x: int, y: int, z: int = 0) -> int:
        if self.cache is None:
            return linearize(self.ordering, x, y, z, self.shape)
        key = (x, y, z, *self.shape, self.ordering.value)
        result = self.cache.get(key)
        if result is None:
            result = linearize(self.ordering, x, y, z, self.shape)
            self.cache.set(key, result)
        return result

    def bounds(
        self,
        grid_x: int,
        grid_y: int,
        grid_z: int = 0,
        nominal_x: int = 1,
        nominal_y: int = 1,
        nominal_z: int = 1,
    ) -> RegionBounds:
        """
        Bounds of the region at grid position ``(grid_x, grid_y, grid_z)`` when the grid is
        tiled by regions of the nominal size, clipped to this grid's shape.
        """
        start = (grid_x * nominal_x, grid_y * nominal_y, grid_z * nominal_z)
        end = (
            min(start[0] + nominal_x, self.shape[0]),
            min(start[1] + nominal_y, self.shape[1]),
            min(start[2] + nominal_z, self.shape[2]),
        )
        return RegionBounds(start, end)

    def dimensions(
        self,
        grid_x: int,
        grid_y: int,
        grid_z: int = 0,
        nominal_x: int = 1,
        nominal_y: int = 1,
        nominal_z: int = 1,
    ) -> Shape3D:
        return self.bounds(grid_x, grid_y, grid_z, nominal_x, nominal_y, nominal_z).shape

    def total_cells(self) -> int:
        return product(self.shape)

    def iter_coords(self) -> Iterator[Coords3D]:
        return _iter_grid(self.shape)


class NormalizationKey(NamedTuple):
    shape: Shape3D
    ordering: Ordering


@dataclass(frozen=True)
class NormalizationMap:
    """
    Dense ranks for every coordinate of a finite domain.

    Attributes
    ----------
    key
        The domain shape and ordering the map was built for.
    forward
        Raw rank to dense position.
    reverse
        Dense position to coordinate.
    """

    key: NormalizationKey
    forward: Mapping[int, int]
    reverse: tuple[Coords3D, ...]

    def __len__(self) -> int:
        return len(self.reverse)

    def position(self, rank: int) -> int:
        try:
            return self.forward[rank]
        except KeyError:
            raise NormalizationLookupError(
                "raw rank", rank, self.key.shape, self.key.ordering.value
            ) from None

    def coords(self, position: int) -> Coords3D:
        if not 0 <= position < len(self.reverse):
            raise NormalizationLookupError(
                "dense position", position, self.key.shape, self.key.ordering.value
            )
        return self.reverse[position]


def build_normalization_map(key: NormalizationKey) -> NormalizationMap:
    """
    Enumerate every coordinate of ``key.shape``, sort by raw rank and assign positions
    ``0..N-1`` in that order. Equal ranks keep enumeration order (z, then y, then x).
    """
    shape, ordering = key
    coords = list(_iter_grid(shape))
    ranks = np.fromiter(
        (linearize(ordering, x, y, z, shape) for x, y, z in coords),
        dtype=np.int64,
        count=len(coords),
    )
    order = np.argsort(ranks, kind="stable")
    forward = {int(ranks[i]): position for position, i in enumerate(order)}
    reverse = tuple(coords[i] for i in order)
    logger.debug(
        "build_normalization_map: built map for shape %s, ordering %s, %d entries",
        shape,
        ordering.value,
        len(reverse),
    )
    return NormalizationMap(key, forward, reverse)


class ChunkGlobalRange(NamedTuple):
    min: int
    max: int
    positions: tuple[int, ...]


class ChunkedCoordinate:
    """
    Cell-within-chunk-within-array addressing.

    The global index of a cell is the number of cells in every chunk that precedes its
    chunk in chunk order, plus the dense rank of the cell inside its own chunk. Boundary
    chunks that are cut short by the array shape are linearized as grids of their actual
    size, so the global index is a bijection onto ``[0, prod(shape))``.

    Parameters
    ----------
    shape : ShapeLike
        Array shape, in cells.
    chunk_shape : ShapeLike
        Nominal chunk shape, in cells.
    cell_ordering : Ordering | str
        Ordering of cells inside each chunk.
    chunk_ordering : Ordering | str
        Ordering of chunks inside the chunk grid.
    cache : LRUCache, optional
        Memo for raw ranks, shared by the cell and chunk grids.
    normalization_cache : LRUCache, optional
        Store for per-chunk-shape normalization maps. Maps depend only on their key, so
        one store may be shared between coordinate systems.
    """

    shape: Shape3D
    chunk_shape: Shape3D
    cell_grid: GridCoordinate
    chunk_grid: GridCoordinate

    def __init__(
        self,
        shape: ShapeLike,
        chunk_shape: ShapeLike,
        cell_ordering: Ordering | str = Ordering.ROW_MAJOR,
        chunk_ordering: Ordering | str = Ordering.ROW_MAJOR,
        *,
        cache: LRUCache[tuple[object, ...], int] | None = None,
        normalization_cache: LRUCache[NormalizationKey, NormalizationMap] | None = None,
    ) -> None:
        self.shape = parse_shape3d(shape)
        self.chunk_shape = parse_shape3d(chunk_shape, name="chunk shape")
        self.cache = cache
        self.normalization_cache = (
            normalization_cache if normalization_cache is not None else LRUCache()
        )
        self.cell_grid = GridCoordinate(self.shape, cell_ordering, cache)
        self.chunk_grid = GridCoordinate(
            tuple(ceildiv(s, c) for s, c in zip(self.shape, self.chunk_shape, strict=True)),
            chunk_ordering,
            cache,
        )
        self._chunk_map: NormalizationMap | None = None
        self._chunk_offsets: npt.NDArray[np.int64] | None = None

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(shape={self.shape}, chunk_shape={self.chunk_shape}, "
            f"cell_ordering={self.cell_ordering.value!r}, "
            f"chunk_ordering={self.chunk_ordering.value!r})"
        )

    @property
    def cell_ordering(self) -> Ordering:
        return self.cell_grid.ordering

    @property
    def chunk_ordering(self) -> Ordering:
        return self.chunk_grid.ordering

    @property
    def nchunks(self) -> int:
        return self.chunk_grid.total_cells()

    def total_cells(self) -> int:
        return self.cell_grid.total_cells()

    def normalization_map(self, shape: Shape3D, ordering: Ordering) -> NormalizationMap:
        key = NormalizationKey(shape, ordering)
        return self.normalization_cache.get_or_create(
            key, lambda: build_normalization_map(key)
        )

    # chunks

    def parent_chunk(self, x: int, y: int, z: int = 0) -> Coords3D:
        cx, cy, cz = self.chunk_shape
        return x // cx, y // cy, z // cz

    def chunk_region(self, cx: int, cy: int, cz: int = 0) -> RegionBounds:
        return self.cell_grid.bounds(cx, cy, cz, *self.chunk_shape)

    def chunk_cell_count(self, cx: int, cy: int, cz: int = 0) -> int:
        return self.chunk_region(cx, cy, cz).nitems

    def _chunk_normalization(self) -> NormalizationMap:
        if self._chunk_map is None:
            self._chunk_map = self.normalization_map(self.chunk_grid.shape, self.chunk_ordering)
        return self._chunk_map

    def chunk_index(self, cx: int, cy: int, cz: int = 0) -> int:
        """Dense sequential position of a chunk in chunk order, in ``[0, nchunks)``."""
        raw = self.chunk_grid.linearize(cx, cy, cz)
        if self.chunk_ordering.is_space_filling:
            return self._chunk_normalization().position(raw)
        return raw

    def delinearize_chunk_index(self, index: int) -> Coords3D:
        """Inverse of ``chunk_index``."""
        if not 0 <= index < self.nchunks:
            raise BoundsCheckError((index,), (self.nchunks,))
        if self.chunk_ordering.is_space_filling:
            return self._chunk_normalization().coords(index)
        return delinearize(self.chunk_ordering, index, self.chunk_grid.shape)

    def _offsets(self) -> npt.NDArray[np.int64]:
        # offsets[i] is the number of cells stored before the chunk with dense index i
        if self._chunk_offsets is None:
            nchunks = self.nchunks
            counts = np.fromiter(
                (
                    self.chunk_cell_count(*self.delinearize_chunk_index(i))
                    for i in range(nchunks)
                ),
                dtype=np.int64,
                count=nchunks,
            )
            offsets = np.zeros(nchunks + 1, dtype=np.int64)
            np.cumsum(counts, out=offsets[1:])
            logger.debug("_offsets: computed cumulative offsets for %d chunks of %r", nchunks, self)
            self._chunk_offsets = offsets
        return self._chunk_offsets

    def cells_before_chunk(self, index: int) -> int:
        """Total number of cells in all chunks whose dense index is smaller than ``index``."""
        return int(self._offsets()[index])

    # cells

    def _local(self, x: int, y: int, z: int) -> tuple[Coords3D, Shape3D]:
        region = self.chunk_region(*self.parent_chunk(x, y, z))
        sx, sy, sz = region.start
        return (x - sx, y - sy, z - sz), region.shape

    def intra_chunk_position(self, x: int, y: int, z: int = 0) -> int:
        """Raw rank of a cell inside its chunk, before normalization."""
        (lx, ly, lz), dims = self._local(x, y, z)
        return GridCoordinate(dims, self.cell_ordering, self.cache).linearize(lx, ly, lz)

    def inter_chunk_position(self, x: int, y: int, z: int = 0) -> int:
        """Raw rank of a cell's chunk in the chunk grid, before normalization."""
        return self.chunk_grid.linearize(*self.parent_chunk(x, y, z))

    def local_index(self, x: int, y: int, z: int = 0) -> int:
        """Dense rank of a cell inside its own, possibly partial, chunk."""
        (lx, ly, lz), dims = self._local(x, y, z)
        raw = GridCoordinate(dims, self.cell_ordering, self.cache).linearize(lx, ly, lz)
        if self.cell_ordering.is_space_filling:
            return self.normalization_map(dims, self.cell_ordering).position(raw)
        return raw

    def global_index(self, x: int, y: int, z: int = 0) -> int:
        check_coords((x, y, z), self.shape)
        index = self.chunk_index(*self.parent_chunk(x, y, z))
        return self.cells_before_chunk(index) + self.local_index(x, y, z)

    def cell_from_global_index(self, index: int) -> Coords3D:
        """Inverse of ``global_index``."""
        if not 0 <= index < self.total_cells():
            raise BoundsCheckError((index,), (self.total_cells(),))
        offsets = self._offsets()
        chunk = int(np.searchsorted(offsets, index, side="right")) - 1
        region = self.chunk_region(*self.delinearize_chunk_index(chunk))
        local = index - int(offsets[chunk])
        if self.cell_ordering.is_space_filling:
            lx, ly, lz = self.normalization_map(region.shape, self.cell_ordering).coords(local)
        else:
            lx, ly, lz = delinearize(self.cell_ordering, local, region.shape)
        sx, sy, sz = region.start
        return sx + lx, sy + ly, sz + lz

    def chunk_global_range(self, cx: int, cy: int, cz: int = 0) -> ChunkGlobalRange:
        check_coords((cx, cy, cz), self.chunk_grid.shape)
        positions = tuple(
            self.global_index(*cell) for cell in self.chunk_region(cx, cy, cz).iter_coords()
        )
        return ChunkGlobalRange(min(positions), max(positions), positions)
