from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from chunkmap.core.common import Shape3D, ShapeLike, parse_shape3d
from chunkmap.core.config import config
from chunkmap.core.indexing import QueryBox
from chunkmap.core.ordering import Ordering
from chunkmap.errors import InvalidConfigError

_ORDERING_KEYS = {
    "cell_ordering": ("cellAlgorithm", "cell_ordering"),
    "chunk_ordering": ("chunkAlgorithm", "chunk_ordering"),
}


def _get_ordering(data: Mapping[str, Any], name: str) -> Any:
    for key in _ORDERING_KEYS[name]:
        if key in data:
            return data[key]
    return None


@dataclass(frozen=True)
class ArrayConfig:
    """
    Array shape, chunk shape, both orderings and an optional query.

    ``from_dict`` accepts the record form used by front ends::

        {
            "size": [16, 16, 1],
            "chunk": [4, 4, 1],
            "cellAlgorithm": "row-major",
            "chunkAlgorithm": "hilbert",
            "query": {"x": [3, 10], "y": [3, 10], "z": [0, 0]},
        }

    Orderings that are left out default to ``ordering.cell`` and ``ordering.chunk`` from the
    configuration.
    """

    size: Shape3D
    chunk: Shape3D
    cell_ordering: Ordering
    chunk_ordering: Ordering
    query: QueryBox | None

    def __init__(
        self,
        size: ShapeLike,
        chunk: ShapeLike,
        cell_ordering: Ordering | str | None = None,
        chunk_ordering: Ordering | str | None = None,
        query: QueryBox | Mapping[str, Any] | None = None,
    ) -> None:
        if cell_ordering is None:
            cell_ordering = config.get("ordering.cell")
        if chunk_ordering is None:
            chunk_ordering = config.get("ordering.chunk")
        object.__setattr__(self, "size", parse_shape3d(size, name="size"))
        object.__setattr__(self, "chunk", parse_shape3d(chunk, name="chunk"))
        object.__setattr__(self, "cell_ordering", Ordering.parse(cell_ordering))
        object.__setattr__(self, "chunk_ordering", Ordering.parse(chunk_ordering))
        object.__setattr__(self, "query", None if query is None else QueryBox.from_dict(query))

    @classmethod
    def from_dict(cls, data: ArrayConfig | Mapping[str, Any]) -> ArrayConfig:
        if isinstance(data, ArrayConfig):
            return data
        if not isinstance(data, Mapping):
            raise InvalidConfigError("config", "a mapping", data)
        for key in ("size", "chunk"):
            if key not in data:
                raise InvalidConfigError(key, "a shape", None)
        return cls(
            size=data["size"],
            chunk=data["chunk"],
            cell_ordering=_get_ordering(data, "cell_ordering"),
            chunk_ordering=_get_ordering(data, "chunk_ordering"),
            query=data.get("query"),
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "size": list(self.size),
            "chunk": list(self.chunk),
            "cellAlgorithm": self.cell_ordering.value,
            "chunkAlgorithm": self.chunk_ordering.value,
        }
        if self.query is not None:
            out["query"] = self.query.to_dict()
        return out

    @property
    def layout_key(self) -> tuple[Shape3D, Shape3D, Ordering, Ordering]:
        """Everything that determines the cell-to-address mapping, without the query."""
        return self.size, self.chunk, self.cell_ordering, self.chunk_ordering
