"""
Tests for depth chart projection.
"""

from orderbook_sim.engine.depth import project
from orderbook_sim.types import DepthPoint

from conftest import make_book


class TestProject:
    """Merged price-ascending series."""

    def test_one_level_each_side(self):
        book = make_book(bids=[("100", "5")], asks=[("101", "3")])

        assert project(book) == [
            DepthPoint(100.0, 5.0, 0.0),
            DepthPoint(101.0, 0.0, 3.0),
        ]

    def test_ascending_with_cumulative_sizes(self):
        book = make_book(
            bids=[("100", "1"), ("99", "2"), ("98", "3")],
            asks=[("101", "4"), ("102", "5")],
        )
        points = project(book)

        assert [p.price for p in points] == [98.0, 99.0, 100.0, 101.0, 102.0]
        assert [p.bid_cumulative for p in points] == [6.0, 3.0, 1.0, 0.0, 0.0]
        assert [p.ask_cumulative for p in points] == [0.0, 0.0, 0.0, 4.0, 9.0]

    def test_same_price_points_are_not_merged(self):
        # Crossed book: both sides quote 100
        book = make_book(bids=[("100", "2")], asks=[("100", "3")])

        assert project(book) == [
            DepthPoint(100.0, 2.0, 0.0),
            DepthPoint(100.0, 0.0, 3.0),
        ]

    def test_empty_book(self):
        assert project(make_book()) == []

    def test_one_sided_book(self):
        points = project(make_book(asks=[("101", "1"), ("103", "1")]))
        assert [p.price for p in points] == [101.0, 103.0]
        assert all(p.bid_cumulative == 0.0 for p in points)
