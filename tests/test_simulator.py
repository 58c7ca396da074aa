"""
Tests for the execution simulator.
"""

import pytest

from orderbook_sim.engine.simulator import order_from_form, simulate, validate_order
from orderbook_sim.errors import InvalidOrderRequest
from orderbook_sim.types import OrderRequest, OrderType, Side

from conftest import make_book


def market(side: Side, qty: float) -> OrderRequest:
    return OrderRequest(side, OrderType.MARKET, qty)


def limit(side: Side, qty: float, price: float) -> OrderRequest:
    return OrderRequest(side, OrderType.LIMIT, qty, price)


class TestMarketOrders:
    """Level-by-level walk from the top of book."""

    def setup_method(self):
        self.book = make_book(
            bids=[("99", "8"), ("98", "12")],
            asks=[("100", "10"), ("101", "10")],
        )

    def test_fills_within_top_level_at_exact_price(self):
        metrics = simulate(self.book, market(Side.BUY, 4))

        assert metrics.fill_percentage == 100.0
        assert metrics.average_fill_price == 100.0
        assert metrics.slippage_percent == 0.0
        assert metrics.estimated_cost == 400.0
        assert metrics.market_impact_percent == pytest.approx(40.0)

    def test_walks_into_second_level(self):
        metrics = simulate(self.book, market(Side.BUY, 15))

        assert metrics.estimated_cost == 1505.0
        assert metrics.average_fill_price == pytest.approx(100.3333333, rel=1e-9)
        assert metrics.fill_percentage == 100.0
        assert metrics.slippage_percent == pytest.approx(0.3333333, rel=1e-6)
        # Relative to the first level's cumulative size only
        assert metrics.market_impact_percent == pytest.approx(150.0)

    def test_sell_walks_bids(self):
        metrics = simulate(self.book, market(Side.SELL, 10))

        assert metrics.estimated_cost == 8 * 99 + 2 * 98
        assert metrics.average_fill_price == pytest.approx((8 * 99 + 2 * 98) / 10)
        assert metrics.slippage_percent == pytest.approx(abs(98.8 - 99) / 99 * 100)

    def test_partial_fill_when_side_exhausted(self):
        metrics = simulate(self.book, market(Side.BUY, 40))

        assert metrics.fill_percentage == 50.0
        assert metrics.estimated_cost == 2010.0
        assert metrics.average_fill_price == pytest.approx(100.5)

    def test_unfilled_market_order_on_zero_size_side(self):
        book = make_book(asks=[("100", "0"), ("101", "0")])
        metrics = simulate(book, market(Side.BUY, 1))

        assert metrics.fill_percentage == 0.0
        assert metrics.average_fill_price == 0.0
        assert metrics.estimated_cost == 0.0

    def test_zero_touch_depth_uses_unit_denominator(self):
        # Retained zero-size top level: impact denominator falls back to 1
        book = make_book(asks=[("100", "0"), ("101", "5")])
        metrics = simulate(book, market(Side.BUY, 2))

        assert metrics.average_fill_price == 101.0
        assert metrics.market_impact_percent == 200.0
        assert metrics.slippage_percent == pytest.approx(1.0)


class TestLimitOrders:
    """Crossing check only; no level walk."""

    def setup_method(self):
        self.book = make_book(
            bids=[("99", "8"), ("98", "12")],
            asks=[("100", "10"), ("101", "10")],
        )

    def test_non_crossing_buy_rests_unfilled(self):
        metrics = simulate(self.book, limit(Side.BUY, 5, 99))

        assert metrics.fill_percentage == 0.0
        assert metrics.average_fill_price == 0.0
        assert metrics.slippage_percent == 0.0
        assert metrics.market_impact_percent == 0.0
        assert metrics.estimated_cost == 495.0

    def test_crossing_buy_fills_at_limit_price(self):
        metrics = simulate(self.book, limit(Side.BUY, 5, 101))

        assert metrics.fill_percentage == 100.0
        assert metrics.average_fill_price == 101.0
        assert metrics.slippage_percent == 0.0
        assert metrics.market_impact_percent == 50.0
        assert metrics.estimated_cost == 505.0

    def test_crossing_is_inclusive(self):
        assert simulate(self.book, limit(Side.BUY, 1, 100)).fill_percentage == 100.0
        assert simulate(self.book, limit(Side.SELL, 1, 99)).fill_percentage == 100.0

    def test_sell_limit_crossing(self):
        assert simulate(self.book, limit(Side.SELL, 3, 98.5)).fill_percentage == 100.0
        assert simulate(self.book, limit(Side.SELL, 3, 99.5)).fill_percentage == 0.0

    def test_quantity_beyond_book_still_reports_full_fill(self):
        metrics = simulate(self.book, limit(Side.BUY, 500, 105))

        assert metrics.fill_percentage == 100.0
        assert metrics.market_impact_percent == 5000.0


class TestNoResult:
    """Cases that produce no metrics."""

    def test_empty_relevant_side(self):
        book = make_book(bids=[("99", "1")])
        assert simulate(book, market(Side.BUY, 1)) is None
        assert simulate(book, limit(Side.BUY, 1, 100)) is None

    def test_other_side_still_simulates(self):
        book = make_book(bids=[("99", "1")])
        assert simulate(book, market(Side.SELL, 1)) is not None

    @pytest.mark.parametrize("order", [
        OrderRequest(Side.BUY, OrderType.MARKET, 0),
        OrderRequest(Side.BUY, OrderType.MARKET, -1),
        OrderRequest(Side.BUY, OrderType.MARKET, float("nan")),
        OrderRequest(Side.BUY, OrderType.LIMIT, 1),
        OrderRequest(Side.BUY, OrderType.LIMIT, 1, 0),
        OrderRequest(Side.BUY, OrderType.LIMIT, 1, "100"),
        OrderRequest(Side.BUY, OrderType.MARKET, 2, "100"),
        OrderRequest(Side.BUY, OrderType.MARKET, 2, float("nan")),
        OrderRequest(Side.BUY, OrderType.MARKET, 2, -5.0),
    ])
    def test_invalid_orders(self, order):
        book = make_book(asks=[("100", "1")])
        assert simulate(book, order) is None
        with pytest.raises(InvalidOrderRequest):
            validate_order(order)

    def test_priced_market_order_on_empty_levels(self):
        book = make_book(asks=[("100", "0")])
        assert simulate(book, OrderRequest(Side.BUY, OrderType.MARKET, 2, "100")) is None

        metrics = simulate(book, OrderRequest(Side.BUY, OrderType.MARKET, 2, 100.0))
        assert metrics.estimated_cost == 200.0


class TestOrderFromForm:
    """Free-text form parsing."""

    def test_string_fields(self):
        order = order_from_form("sell", "limit", "2.5", "64000.5")
        assert order == OrderRequest(Side.SELL, OrderType.LIMIT, 2.5, 64000.5)

    def test_market_without_price(self):
        order = order_from_form("buy", "market", 3)
        assert order.limit_price is None

    @pytest.mark.parametrize("side, order_type, qty, price", [
        ("buy", "market", "", None),
        ("buy", "market", "abc", None),
        ("buy", "market", "0", None),
        ("buy", "limit", "1", ""),
        ("buy", "limit", "1", "x"),
        ("hold", "market", "1", None),
        ("buy", "stop", "1", None),
    ])
    def test_rejects_instead_of_defaulting_to_zero(self, side, order_type, qty, price):
        with pytest.raises(InvalidOrderRequest):
            order_from_form(side, order_type, qty, price)

    def test_market_price_used_for_cost_when_nothing_fills(self):
        book = make_book(asks=[("100", "0")])
        metrics = simulate(book, order_from_form("buy", "market", "2", "100"))
        assert metrics.estimated_cost == 200.0


class TestWarnings:
    """High slippage / impact thresholds."""

    def test_flags(self):
        book = make_book(asks=[("100", "1"), ("110", "10")])
        metrics = simulate(book, market(Side.BUY, 5))

        assert metrics.high_slippage
        assert metrics.high_impact

    def test_small_order_not_flagged(self):
        book = make_book(asks=[("100", "1000")])
        metrics = simulate(book, market(Side.BUY, 1))

        assert not metrics.high_slippage
        assert not metrics.high_impact
