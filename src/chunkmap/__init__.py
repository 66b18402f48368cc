from chunkmap._version import version as __version__
from chunkmap.api import (
    ChunkBounds,
    cell_from_global_index,
    chunk_bounds,
    chunk_global_range,
    compute_query_result,
    global_index,
    inter_chunk_position,
    intra_chunk_position,
    parent_chunk,
)
from chunkmap.core.array_config import ArrayConfig
from chunkmap.core.cache import LRUCache
from chunkmap.core.chunk_grids import ChunkedCoordinate, GridCoordinate
from chunkmap.core.config import config
from chunkmap.core.indexing import QueryAnalyzer, QueryBox, QueryResult, coalesce_ranges
from chunkmap.core.ordering import Ordering
from chunkmap.core.simulation import Simulation


def print_debug_info() -> None:
    """
    Print version info for use in bug reports.
    """
    import platform
    from importlib.metadata import PackageNotFoundError, version

    def print_packages(packages: list[str]) -> None:
        not_installed = []
        for package in packages:
            try:
                print(f"{package}: {version(package)}")
            except PackageNotFoundError:
                not_installed.append(package)
        if not_installed:
            print("\n**Not Installed:**")
            for package in not_installed:
                print(package)

    required = [
        "numpy",
        "donfig",
    ]
    optional = [
        "hypothesis",
        "pytest",
    ]

    print(f"platform: {platform.platform()}")
    print(f"python: {platform.python_version()}")
    print(f"chunkmap: {__version__}\n")
    print("**Required dependencies:**")
    print_packages(required)
    print("\n**Optional dependencies:**")
    print_packages(optional)


__all__ = [
    "ArrayConfig",
    "ChunkBounds",
    "ChunkedCoordinate",
    "GridCoordinate",
    "LRUCache",
    "Ordering",
    "QueryAnalyzer",
    "QueryBox",
    "QueryResult",
    "Simulation",
    "__version__",
    "cell_from_global_index",
    "chunk_bounds",
    "chunk_global_range",
    "coalesce_ranges",
    "compute_query_result",
    "config",
    "global_index",
    "inter_chunk_position",
    "intra_chunk_position",
    "parent_chunk",
    "print_debug_info",
]
