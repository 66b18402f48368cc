from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest
from hypothesis import HealthCheck, settings

from chunkmap import config
from chunkmap.api import reset_default_simulation
from chunkmap.core.array_config import ArrayConfig
from chunkmap.core.cache import LRUCache
from chunkmap.core.chunk_grids import ChunkedCoordinate
from chunkmap.core.ordering import Ordering

if TYPE_CHECKING:
    from collections.abc import Callable, Generator
    from typing import Any


@pytest.fixture(autouse=True)
def reset_config() -> Generator[None, None, None]:
    config.reset()
    reset_default_simulation()
    yield
    config.reset()
    reset_default_simulation()


@pytest.fixture(params=list(Ordering), ids=lambda o: o.value)
def ordering(request: pytest.FixtureRequest) -> Ordering:
    return request.param


@pytest.fixture(params=list(Ordering), ids=lambda o: f"chunk-{o.value}")
def chunk_ordering(request: pytest.FixtureRequest) -> Ordering:
    return request.param


@pytest.fixture
def linearization_cache() -> LRUCache[tuple[object, ...], int]:
    return LRUCache(max_size=1000)


@pytest.fixture
def uneven_coordinate() -> ChunkedCoordinate:
    """6x6 array in 4x4 chunks: one full chunk and three partial boundary chunks."""
    return ChunkedCoordinate((6, 6, 1), (4, 4, 1))


def _config_record(
    size: tuple[int, ...],
    chunk: tuple[int, ...],
    cell: str = "row-major",
    chunk_order: str = "row-major",
    x: tuple[int, int] = (0, 0),
    y: tuple[int, int] = (0, 0),
    z: tuple[int, int] = (0, 0),
) -> dict[str, Any]:
    return {
        "size": list(size),
        "chunk": list(chunk),
        "cellAlgorithm": cell,
        "chunkAlgorithm": chunk_order,
        "query": {"x": list(x), "y": list(y), "z": list(z)},
    }


@pytest.fixture
def config_record() -> Callable[..., dict[str, Any]]:
    """Factory for configurations in the record form read by ``ArrayConfig.from_dict``."""
    return _config_record


@pytest.fixture
def small_config() -> ArrayConfig:
    return ArrayConfig.from_dict(_config_record((4, 4, 1), (2, 2, 1), x=(0, 3), y=(0, 3)))


settings.register_profile(
    "default",
    parent=settings.get_profile("default"),
    max_examples=100,
    suppress_health_check=[HealthCheck.filter_too_much, HealthCheck.too_slow],
    deadline=None,
)
settings.register_profile(
    "ci",
    parent=settings.get_profile("ci"),
    max_examples=300,
    derandomize=True,  # more like regression testing
    deadline=None,
    suppress_health_check=[HealthCheck.filter_too_much, HealthCheck.too_slow],
)

settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "default"))
