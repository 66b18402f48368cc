from __future__ import annotations

import logging
from typing import Any

import numpy as np
import pytest

from chunkmap.core.chunk_grids import ChunkedCoordinate
from chunkmap.core.common import Interval
from chunkmap.core.indexing import (
    QueryAnalyzer,
    QueryBox,
    QueryResult,
    coalesce_ranges,
    parse_interval,
)
from chunkmap.errors import InvalidConfigError


class TestQueryBox:
    def test_from_dict(self) -> None:
        box = QueryBox.from_dict({"x": [1, 2], "y": (0, 3), "z": [0, 1]})
        assert box == QueryBox(Interval(1, 2), Interval(0, 3), Interval(0, 1))
        assert box.to_dict() == {"x": [1, 2], "y": [0, 3], "z": [0, 1]}

    def test_from_dict_numpy_integers(self) -> None:
        box = QueryBox.from_dict({"x": [np.int64(0), np.int64(1)], "y": [np.int32(0), 1]})
        assert box == QueryBox(Interval(0, 1), Interval(0, 1))
        assert all(type(v) is int for interval in (box.x, box.y) for v in interval)

    def test_z_defaults_to_first_layer(self) -> None:
        assert QueryBox.from_dict({"x": [0, 1], "y": [0, 1]}).z == Interval(0, 0)

    def test_from_dict_passes_boxes_through(self) -> None:
        box = QueryBox(Interval(0, 1), Interval(0, 1))
        assert QueryBox.from_dict(box) is box

    @pytest.mark.parametrize(
        "data",
        [
            {"x": [0, 1]},
            {"y": [0, 1], "z": [0, 0]},
            {"x": [0], "y": [0, 1]},
            {"x": "01", "y": [0, 1]},
            {"x": [0, 1.5], "y": [0, 1]},
            [0, 1],
            None,
        ],
    )
    def test_from_dict_invalid(self, data: Any) -> None:
        with pytest.raises(InvalidConfigError):
            QueryBox.from_dict(data)

    def test_parse_interval_names_the_axis(self) -> None:
        with pytest.raises(InvalidConfigError, match="query.y"):
            parse_interval([1, 2, 3], "y")

    def test_clip(self) -> None:
        box = QueryBox(Interval(-2, 10), Interval(1, 2), Interval(0, 5))
        assert box.clip((4, 4, 1)) == QueryBox(Interval(0, 3), Interval(1, 2), Interval(0, 0))

    def test_iter_coords(self) -> None:
        box = QueryBox(Interval(0, 1), Interval(2, 2))
        assert sorted(box.iter_coords()) == [(0, 2, 0), (1, 2, 0)]

    def test_inverted_box_is_empty(self) -> None:
        assert list(QueryBox(Interval(3, 2), Interval(0, 1)).iter_coords()) == []


@pytest.mark.parametrize(
    ("positions", "expected"),
    [
        ([], ()),
        ([4], ((4, 4),)),
        ([5, 1, 2, 3, 7, 6], ((1, 3), (5, 7))),
        ([3, 3, 2, 2], ((2, 3),)),
        ([0, 2, 4], ((0, 0), (2, 2), (4, 4))),
        (range(10), ((0, 9),)),
    ],
)
def test_coalesce_ranges(positions: Any, expected: tuple[tuple[int, int], ...]) -> None:
    result = coalesce_ranges(positions)
    assert result == expected
    assert all(isinstance(v, int) for pair in result for v in pair)


def test_coalesce_ranges_accepts_generators() -> None:
    assert coalesce_ranges(i * 2 for i in range(3)) == ((0, 0), (2, 2), (4, 4))


class TestQueryAnalyzer:
    def test_partial_chunk_read(self, uneven_coordinate: ChunkedCoordinate) -> None:
        result = QueryAnalyzer(uneven_coordinate).analyze({"x": [1, 2], "y": [1, 2]})

        assert result.requested_cells == {(1, 1, 0), (2, 1, 0), (1, 2, 0), (2, 2, 0)}
        assert result.touched_chunks == {0}
        assert len(result.actual_cells) == 16
        assert result.chunked_ranges == ((0, 15),)
        assert result.unchunked_ranges == ((5, 6), (9, 10))
        assert result.total_cells == 36
        assert result.amplification == 4
        assert result.efficiency == 25
        assert result.coalescing_factor == 1
        assert result.storage_alignment == pytest.approx(0.325)

    def test_full_read(self) -> None:
        analyzer = QueryAnalyzer(ChunkedCoordinate((4, 4, 1), (2, 2, 1)))
        result = analyzer.analyze(QueryBox(Interval(0, 3), Interval(0, 3)))

        assert result.touched_chunks == {0, 1, 2, 3}
        assert result.actual_cells == result.requested_cells
        assert result.chunked_ranges == ((0, 15),)
        assert result.unchunked_ranges == ((0, 15),)
        assert result.amplification == 1
        assert result.efficiency == 100
        assert result.coalescing_factor == 4
        assert result.storage_alignment == pytest.approx(1.0)

    def test_straddling_query(self) -> None:
        analyzer = QueryAnalyzer(ChunkedCoordinate((16, 16, 1), (4, 4, 1)))
        result = analyzer.analyze({"x": [4, 8], "y": [4, 8]})
        assert len(result.requested_cells) == 25
        assert result.touched_chunks == {5, 6, 9, 10}
        assert len(result.actual_cells) == 64
        assert result.amplification == pytest.approx(64 / 25)

    def test_aligned_query_reads_one_range(self) -> None:
        analyzer = QueryAnalyzer(ChunkedCoordinate((16, 16, 1), (4, 4, 1)))
        result = analyzer.analyze({"x": [4, 7], "y": [4, 7]})
        assert result.chunked_ranges == ((80, 95),)
        assert result.amplification == 1

    def test_3d_query(self) -> None:
        analyzer = QueryAnalyzer(ChunkedCoordinate((4, 4, 4), (2, 2, 2)))
        result = analyzer.analyze({"x": [0, 1], "y": [0, 1], "z": [0, 1]})
        assert result.touched_chunks == {0}
        assert result.chunked_ranges == ((0, 7),)

    def test_touched_chunks_ignore_chunk_ordering(self) -> None:
        coordinate = ChunkedCoordinate((4, 4, 1), (2, 2, 1), "row-major", "hilbert")
        result = QueryAnalyzer(coordinate).analyze({"x": [2, 3], "y": [0, 1]})
        # chunk (1, 0) is last along the curve but keyed by its row-major index
        assert result.touched_chunks == {1}
        assert coordinate.chunk_index(1, 0) == 3
        assert result.chunked_ranges == ((12, 15),)

    def test_query_is_clipped(self) -> None:
        analyzer = QueryAnalyzer(ChunkedCoordinate((4, 4, 1), (2, 2, 1)))
        result = analyzer.analyze({"x": [-2, 10], "y": [0, 0], "z": [0, 3]})
        assert result.requested_cells == {(0, 0, 0), (1, 0, 0), (2, 0, 0), (3, 0, 0)}
        assert result.touched_chunks == {0, 1}

    @pytest.mark.parametrize(
        "query",
        [
            {"x": [3, 2], "y": [0, 1]},
            {"x": [5, 9], "y": [0, 1]},
            {"x": [0, 1], "y": [-3, -1]},
        ],
    )
    def test_empty_query(self, query: dict[str, list[int]]) -> None:
        result = QueryAnalyzer(ChunkedCoordinate((4, 4, 1), (2, 2, 1))).analyze(query)
        assert result.requested_cells == frozenset()
        assert result.touched_chunks == frozenset()
        assert result.actual_cells == frozenset()
        assert result.chunked_ranges == ()
        assert result.unchunked_ranges == ()
        assert result.amplification is None
        assert result.efficiency is None
        assert result.coalescing_factor is None
        assert result.storage_alignment is None

    def test_analyze_is_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        analyzer = QueryAnalyzer(ChunkedCoordinate((4, 4, 1), (2, 2, 1)))
        with caplog.at_level(logging.DEBUG, logger="chunkmap.core.indexing"):
            analyzer.analyze({"x": [0, 1], "y": [0, 0]})
        assert "requested 2 cells" in caplog.text


def test_metrics() -> None:
    result = QueryResult(
        requested_cells=frozenset({(0, 0, 0), (1, 0, 0)}),
        touched_chunks=frozenset({0, 1}),
        actual_cells=frozenset((x, y, 0) for x in range(4) for y in range(2)),
        chunked_ranges=((0, 3), (8, 11)),
        unchunked_ranges=((0, 0), (4, 4)),
        total_cells=16,
    )
    assert result.metrics() == {
        "total_cells": 16,
        "requested_cells": 2,
        "actual_cells": 8,
        "touched_chunks": 2,
        "chunked_ranges": 2,
        "unchunked_ranges": 2,
        "amplification": 4.0,
        "coalescing_factor": 1.0,
        "efficiency": 25.0,
        "storage_alignment": pytest.approx(0.9 * 0.25 + 0.1 * 0.5),
    }
