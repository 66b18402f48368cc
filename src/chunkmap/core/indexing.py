from __future__ import annotations

import itertools
import logging
from collections.abc import Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

import numpy as np

from chunkmap.core.chunk_grids import ChunkedCoordinate
from chunkmap.core.common import Coords3D, Interval, Range, is_integer
from chunkmap.core.config import config, parse_alignment_weights
from chunkmap.core.ordering import row_major, row_major_inverse
from chunkmap.errors import InvalidConfigError

logger = logging.getLogger(__name__)


def _configured_alignment_weights() -> tuple[float, float]:
    return parse_alignment_weights(config.get("metrics.alignment_weights"))


def parse_interval(data: Any, name: str) -> Interval:
    if isinstance(data, Interval):
        return data
    if (
        isinstance(data, Sequence)
        and not isinstance(data, str)
        and len(data) == 2
        and all(is_integer(v) for v in data)
    ):
        return Interval(int(data[0]), int(data[1]))
    raise InvalidConfigError(f"query.{name}", "a pair of integers [lo, hi]", data)


@dataclass(frozen=True)
class QueryBox:
    """
    A rectangular read request given as three closed intervals.

    An inverted interval (``lo > hi``) selects nothing; it is a valid, empty query.
    """

    x: Interval
    y: Interval
    z: Interval = Interval(0, 0)

    @classmethod
    def from_dict(cls, data: QueryBox | Mapping[str, Any]) -> QueryBox:
        if isinstance(data, QueryBox):
            return data
        if not isinstance(data, Mapping):
            raise InvalidConfigError("query", "a mapping with keys 'x', 'y' and 'z'", data)
        try:
            x, y = data["x"], data["y"]
        except KeyError as e:
            raise InvalidConfigError("query", "a mapping with keys 'x', 'y' and 'z'", data) from e
        return cls(
            parse_interval(x, "x"),
            parse_interval(y, "y"),
            parse_interval(data.get("z", (0, 0)), "z"),
        )

    def to_dict(self) -> dict[str, list[int]]:
        return {"x": list(self.x), "y": list(self.y), "z": list(self.z)}

    def clip(self, shape: Sequence[int]) -> QueryBox:
        return QueryBox(self.x.clip(shape[0]), self.y.clip(shape[1]), self.z.clip(shape[2]))

    def iter_coords(self) -> Iterator[Coords3D]:
        return itertools.product(
            range(self.x.lo, self.x.hi + 1),
            range(self.y.lo, self.y.hi + 1),
            range(self.z.lo, self.z.hi + 1),
        )


def coalesce_ranges(positions: Iterable[int]) -> tuple[Range, ...]:
    """
    Merge storage addresses into the minimal sorted list of inclusive ``(start, end)`` runs.

    Examples
    --------
    >>> coalesce_ranges([5, 1, 2, 3, 7, 6])
    ((1, 3), (5, 7))
    >>> coalesce_ranges([])
    ()
    """
    values = np.unique(np.fromiter(positions, dtype=np.int64))
    if values.size == 0:
        return ()
    breaks = np.flatnonzero(np.diff(values) != 1)
    starts = np.concatenate(([0], breaks + 1))
    ends = np.concatenate((breaks, [values.size - 1]))
    return tuple(
        (int(values[start]), int(values[end])) for start, end in zip(starts, ends, strict=True)
    )


@dataclass(frozen=True)
class QueryResult:
    """The cells and storage ranges a query touches, with and without chunking.

    Attributes
    ----------
    requested_cells
        Cells inside the query box, clipped to the array.
    touched_chunks
        Flat row-major indices of the chunks intersecting the query.
    actual_cells
        Every cell of every touched chunk.
    chunked_ranges
        Contiguous global-index runs covering ``actual_cells``.
    unchunked_ranges
        Contiguous global-index runs covering ``requested_cells``.
    total_cells
        Number of cells in the array.
    alignment_weights
        ``(amplification, ranges)`` weights for ``storage_alignment``, read from
        ``metrics.alignment_weights`` when the result is created.
    """

    requested_cells: frozenset[Coords3D]
    touched_chunks: frozenset[int]
    actual_cells: frozenset[Coords3D]
    chunked_ranges: tuple[Range, ...]
    unchunked_ranges: tuple[Range, ...]
    total_cells: int
    alignment_weights: tuple[float, float] = field(
        default_factory=_configured_alignment_weights, compare=False
    )

    @property
    def amplification(self) -> float | None:
        if not self.requested_cells:
            return None
        return len(self.actual_cells) / len(self.requested_cells)

    @property
    def coalescing_factor(self) -> float | None:
        if not self.chunked_ranges:
            return None
        return len(self.touched_chunks) / len(self.chunked_ranges)

    @property
    def efficiency(self) -> float | None:
        amplification = self.amplification
        if amplification is None:
            return None
        return 100 / amplification

    @property
    def storage_alignment(self) -> float | None:
        """
        Weighted score in ``[0, 1]`` combining low amplification and few storage ranges.

        Uses the weights captured in ``alignment_weights``; later configuration
        changes do not affect an existing result.
        """
        amplification = self.amplification
        if amplification is None:
            return None
        w_amplification, w_ranges = self.alignment_weights
        amplification_score = 1 / max(1.0, amplification)
        range_score = 1 / max(1, len(self.chunked_ranges))
        return w_amplification * amplification_score + w_ranges * range_score

    def metrics(self) -> dict[str, float | int | None]:
        return {
            "total_cells": self.total_cells,
            "requested_cells": len(self.requested_cells),
            "actual_cells": len(self.actual_cells),
            "touched_chunks": len(self.touched_chunks),
            "chunked_ranges": len(self.chunked_ranges),
            "unchunked_ranges": len(self.unchunked_ranges),
            "amplification": self.amplification,
            "coalescing_factor": self.coalescing_factor,
            "efficiency": self.efficiency,
            "storage_alignment": self.storage_alignment,
        }


class QueryAnalyzer:
    """
    Reduce a query box to the chunks and storage ranges it touches.

    Examples
    --------
    >>> analyzer = QueryAnalyzer(ChunkedCoordinate((4, 4, 1), (2, 2, 1)))
    >>> result = analyzer.analyze({"x": [0, 1], "y": [0, 0]})
    >>> result.chunked_ranges
    ((0, 3),)
    """

    def __init__(self, coordinate: ChunkedCoordinate) -> None:
        self.coordinate = coordinate

    def _flat_chunk_index(self, chunk: Coords3D) -> int:
        # set key only; independent of the chunk ordering
        return row_major(*chunk, self.coordinate.chunk_grid.shape)

    def requested(self, query: QueryBox) -> tuple[frozenset[Coords3D], frozenset[int]]:
        requested_cells: set[Coords3D] = set()
        touched_chunks: set[int] = set()
        for cell in query.clip(self.coordinate.shape).iter_coords():
            requested_cells.add(cell)
            touched_chunks.add(self._flat_chunk_index(self.coordinate.parent_chunk(*cell)))
        return frozenset(requested_cells), frozenset(touched_chunks)

    def actual(self, touched_chunks: Iterable[int]) -> frozenset[Coords3D]:
        actual_cells: set[Coords3D] = set()
        grid_shape = self.coordinate.chunk_grid.shape
        for flat_index in touched_chunks:
            region = self.coordinate.chunk_region(*row_major_inverse(flat_index, grid_shape))
            actual_cells.update(region.iter_coords())
        return frozenset(actual_cells)

    def ranges(self, cells: Iterable[Coords3D]) -> tuple[Range, ...]:
        return coalesce_ranges(self.coordinate.global_index(*cell) for cell in cells)

    def analyze(self, query: QueryBox | Mapping[str, Any]) -> QueryResult:
        query = QueryBox.from_dict(query)
        requested_cells, touched_chunks = self.requested(query)
        actual_cells = self.actual(touched_chunks)
        result = QueryResult(
            requested_cells=requested_cells,
            touched_chunks=touched_chunks,
            actual_cells=actual_cells,
            chunked_ranges=self.ranges(actual_cells),
            unchunked_ranges=self.ranges(requested_cells),
            total_cells=self.coordinate.total_cells(),
        )
        logger.debug(
            "analyze: %s on %r requested %d cells, read %d cells in %d chunks and %d ranges",
            query,
            self.coordinate,
            len(requested_cells),
            len(actual_cells),
            len(touched_chunks),
            len(result.chunked_ranges),
        )
        return result
