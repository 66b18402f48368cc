"""
Functional entry points backed by a process-wide default ``Simulation``.

Every function takes the array configuration last, either as an ``ArrayConfig`` or as the
record form accepted by ``ArrayConfig.from_dict``.
"""

from __future__ import annotations

import threading
from typing import NamedTuple

from chunkmap.core.chunk_grids import ChunkGlobalRange, GridCoordinate
from chunkmap.core.common import Coords3D
from chunkmap.core.indexing import QueryResult
from chunkmap.core.simulation import ConfigLike, Simulation

__all__ = [
    "ChunkBounds",
    "cell_from_global_index",
    "chunk_bounds",
    "chunk_global_range",
    "compute_query_result",
    "get_default_simulation",
    "global_index",
    "inter_chunk_position",
    "intra_chunk_position",
    "parent_chunk",
    "reset_default_simulation",
]

_default_simulation: Simulation | None = None
_default_simulation_lock = threading.Lock()


def get_default_simulation() -> Simulation:
    """Return the shared default simulation, creating it from the current config if needed."""
    global _default_simulation
    with _default_simulation_lock:
        if _default_simulation is None:
            _default_simulation = Simulation()
        return _default_simulation


def reset_default_simulation() -> None:
    """Drop the default simulation so the next call rebuilds it with the current config."""
    global _default_simulation
    with _default_simulation_lock:
        _default_simulation = None


class ChunkBounds(NamedTuple):
    start_x: int
    start_y: int
    end_x: int
    end_y: int


def compute_query_result(config: ConfigLike) -> QueryResult:
    """
    Compute the cells, chunks and storage ranges touched by the configured query.

    Parameters
    ----------
    config : ArrayConfig or dict
        Array layout and query. The query is required.

    Returns
    -------
    QueryResult

    Examples
    --------
    >>> result = compute_query_result(
    ...     {
    ...         "size": [4, 4, 1],
    ...         "chunk": [2, 2, 1],
    ...         "cellAlgorithm": "row-major",
    ...         "chunkAlgorithm": "row-major",
    ...         "query": {"x": [0, 3], "y": [0, 3], "z": [0, 0]},
    ...     }
    ... )
    >>> len(result.touched_chunks), result.chunked_ranges
    (4, ((0, 15),))
    """
    return get_default_simulation().compute_query_result(config)


def global_index(x: int, y: int, z: int, config: ConfigLike) -> int:
    """Storage address of cell ``(x, y, z)``."""
    return get_default_simulation().global_index(x, y, z, config)


def parent_chunk(x: int, y: int, z: int, config: ConfigLike) -> Coords3D:
    """Chunk coordinate containing cell ``(x, y, z)``."""
    return get_default_simulation().parent_chunk(x, y, z, config)


def intra_chunk_position(x: int, y: int, z: int, config: ConfigLike) -> int:
    return get_default_simulation().intra_chunk_position(x, y, z, config)


def inter_chunk_position(x: int, y: int, z: int, config: ConfigLike) -> int:
    return get_default_simulation().inter_chunk_position(x, y, z, config)


def chunk_global_range(
    chunk_x: int, chunk_y: int, chunk_z: int, config: ConfigLike
) -> ChunkGlobalRange:
    return get_default_simulation().chunk_global_range(chunk_x, chunk_y, chunk_z, config)


def cell_from_global_index(index: int, config: ConfigLike) -> Coords3D:
    """Cell stored at address ``index``; inverse of ``global_index``."""
    return get_default_simulation().cell_from_global_index(index, config)


def chunk_bounds(
    chunk_x: int, chunk_y: int, chunk_size_x: int, chunk_size_y: int, size_x: int, size_y: int
) -> ChunkBounds:
    """Half-open 2D cell bounds of chunk ``(chunk_x, chunk_y)``, clipped to the array."""
    region = GridCoordinate((size_x, size_y, 1)).bounds(
        chunk_x, chunk_y, 0, chunk_size_x, chunk_size_y, 1
    )
    return ChunkBounds(region.start[0], region.start[1], region.end[0], region.end[1])
