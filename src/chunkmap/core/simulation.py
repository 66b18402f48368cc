from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from chunkmap.core.array_config import ArrayConfig
from chunkmap.core.cache import LRUCache
from chunkmap.core.chunk_grids import (
    ChunkedCoordinate,
    ChunkGlobalRange,
    NormalizationKey,
    NormalizationMap,
)
from chunkmap.core.common import Coords3D
from chunkmap.core.config import config as chunkmap_config
from chunkmap.core.config import parse_cache_size
from chunkmap.core.indexing import QueryAnalyzer, QueryResult
from chunkmap.errors import InvalidConfigError

logger = logging.getLogger(__name__)

ConfigLike = ArrayConfig | Mapping[str, Any]


class Simulation:
    """
    A session owning the memoization caches shared by every coordinate system it builds.

    Coordinate systems are built once per array layout (shape, chunk shape and both
    orderings) and reused for later queries on the same layout.

    Parameters
    ----------
    linearization_size : int, optional
        Entries in the raw rank memo. Defaults to ``cache.linearization_size``.
    normalization_size : int, optional
        Normalization maps kept. Defaults to ``cache.normalization_size``.
    coordinate_systems : int, optional
        Coordinate systems kept. Defaults to ``cache.coordinate_systems``.
    """

    def __init__(
        self,
        *,
        linearization_size: int | None = None,
        normalization_size: int | None = None,
        coordinate_systems: int | None = None,
    ) -> None:
        if linearization_size is None:
            linearization_size = chunkmap_config.get("cache.linearization_size")
        if normalization_size is None:
            normalization_size = chunkmap_config.get("cache.normalization_size")
        if coordinate_systems is None:
            coordinate_systems = chunkmap_config.get("cache.coordinate_systems")
        self.linearization_cache: LRUCache[tuple[object, ...], int] = LRUCache(
            parse_cache_size(linearization_size, "cache.linearization_size")
        )
        self.normalization_cache: LRUCache[NormalizationKey, NormalizationMap] = LRUCache(
            parse_cache_size(normalization_size, "cache.normalization_size")
        )
        self.coordinate_cache: LRUCache[tuple[object, ...], ChunkedCoordinate] = LRUCache(
            parse_cache_size(coordinate_systems, "cache.coordinate_systems")
        )

    def coordinate_system(self, config: ConfigLike) -> ChunkedCoordinate:
        array_config = ArrayConfig.from_dict(config)
        return self.coordinate_cache.get_or_create(
            array_config.layout_key, lambda: self._build_coordinate_system(array_config)
        )

    def _build_coordinate_system(self, array_config: ArrayConfig) -> ChunkedCoordinate:
        coordinate = ChunkedCoordinate(
            array_config.size,
            array_config.chunk,
            array_config.cell_ordering,
            array_config.chunk_ordering,
            cache=self.linearization_cache,
            normalization_cache=self.normalization_cache,
        )
        logger.debug("coordinate_system: built %r", coordinate)
        return coordinate

    def compute_query_result(self, config: ConfigLike) -> QueryResult:
        array_config = ArrayConfig.from_dict(config)
        if array_config.query is None:
            raise InvalidConfigError("query", "a query box", None)
        analyzer = QueryAnalyzer(self.coordinate_system(array_config))
        return analyzer.analyze(array_config.query)

    def global_index(self, x: int, y: int, z: int, config: ConfigLike) -> int:
        return self.coordinate_system(config).global_index(x, y, z)

    def parent_chunk(self, x: int, y: int, z: int, config: ConfigLike) -> Coords3D:
        return self.coordinate_system(config).parent_chunk(x, y, z)

    def intra_chunk_position(self, x: int, y: int, z: int, config: ConfigLike) -> int:
        return self.coordinate_system(config).intra_chunk_position(x, y, z)

    def inter_chunk_position(self, x: int, y: int, z: int, config: ConfigLike) -> int:
        return self.coordinate_system(config).inter_chunk_position(x, y, z)

    def chunk_global_range(
        self, chunk_x: int, chunk_y: int, chunk_z: int, config: ConfigLike
    ) -> ChunkGlobalRange:
        return self.coordinate_system(config).chunk_global_range(chunk_x, chunk_y, chunk_z)

    def cell_from_global_index(self, index: int, config: ConfigLike) -> Coords3D:
        return self.coordinate_system(config).cell_from_global_index(index)

    def clear_cache(self) -> None:
        self.linearization_cache.clear()
        self.normalization_cache.clear()
        self.coordinate_cache.clear()

    def cache_info(self) -> dict[str, dict[str, Any]]:
        return {
            "linearization": self.linearization_cache.cache_info(),
            "normalization": self.normalization_cache.cache_info(),
            "coordinate_systems": self.coordinate_cache.cache_info(),
        }
