"""
Execution simulator.

Walks one side of a CanonicalBook to estimate how a hypothetical order would fill.

- Buy orders walk the asks, sell orders walk the bids, best price first.
- Market orders take min(remaining, level.size) at each level until filled
  or the side is exhausted.
- Limit orders are not walked: if any level crosses the limit price the
  order is treated as fully filled at the limit price, otherwise it rests
  unfilled.

Market impact is filled quantity relative to the FIRST level's cumulative
size (near-touch liquidity), not to the whole side. When that size is zero
the denominator is replaced by 1 so the call never divides by zero; the
resulting value carries no meaning in that case.
"""

from __future__ import annotations

import logging
import math
from typing import Sequence

from ..errors import InvalidOrderRequest
from ..types import CanonicalBook, Level, OrderMetrics, OrderRequest, OrderType, Side

logger = logging.getLogger(__name__)


def _parse_field(value: object, field: str) -> float:
    """Parse a form field (string or number). Never defaults to zero."""
    if value is None or isinstance(value, bool):
        raise InvalidOrderRequest(f"{field} is required")
    if isinstance(value, str):
        value = value.strip()
        if not value:
            raise InvalidOrderRequest(f"{field} is required")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise InvalidOrderRequest(f"{field} is not a number: {value!r}") from None
    if not math.isfinite(number):
        raise InvalidOrderRequest(f"{field} is not finite: {value!r}")
    return number


def validate_order(order: OrderRequest) -> None:
    """Raise InvalidOrderRequest unless the order can be simulated."""
    if not isinstance(order.quantity, (int, float)) or isinstance(order.quantity, bool):
        raise InvalidOrderRequest("quantity must be numeric")
    if not math.isfinite(order.quantity) or order.quantity <= 0:
        raise InvalidOrderRequest("quantity must be > 0")

    price = order.limit_price
    if price is None:
        if order.order_type == OrderType.LIMIT:
            raise InvalidOrderRequest("limit orders need a numeric price")
        return
    # A market order may carry a price too; it feeds the cost fallback.
    if isinstance(price, bool) or not isinstance(price, (int, float)):
        raise InvalidOrderRequest("limit price must be numeric")
    if not math.isfinite(price) or price <= 0:
        raise InvalidOrderRequest("limit price must be > 0")


def order_from_form(
    side: str | Side,
    order_type: str | OrderType,
    quantity: str | float,
    price: str | float | None = None,
) -> OrderRequest:
    """
    Build an OrderRequest from free-text form fields.

    Raises InvalidOrderRequest on missing or unparseable values.
    """
    try:
        side = Side(side)
        order_type = OrderType(order_type)
    except ValueError as e:
        raise InvalidOrderRequest(str(e)) from None

    qty = _parse_field(quantity, "quantity")

    limit_price = None
    if order_type == OrderType.LIMIT:
        limit_price = _parse_field(price, "price")
    elif price not in (None, ""):
        limit_price = _parse_field(price, "price")

    order = OrderRequest(side, order_type, qty, limit_price)
    validate_order(order)
    return order


def _crosses(level: Level, side: Side, limit_price: float) -> bool:
    # Buy crosses any ask at or below the limit; sell crosses any bid at or above it
    if side == Side.BUY:
        return level.price <= limit_price
    return level.price >= limit_price


def simulate(book: CanonicalBook, order: OrderRequest) -> OrderMetrics | None:
    """
    Simulate `order` against `book`.

    Returns None if the relevant side is empty or the order is invalid.
    """
    try:
        validate_order(order)
    except InvalidOrderRequest as e:
        logger.debug("Not simulating invalid order: %s", e)
        return None

    levels: Sequence[Level] = book.asks if order.side == Side.BUY else book.bids
    if not levels:
        logger.debug("%s: no %s levels to simulate against", book.venue,
                     "ask" if order.side == Side.BUY else "bid")
        return None

    quantity = order.quantity
    top = levels[0]
    touch_depth = top.cumulative_size or 1.0

    fill_percentage = 0.0
    average_fill_price = 0.0
    slippage = 0.0
    market_impact = 0.0
    cost = 0.0

    if order.order_type == OrderType.MARKET:
        remaining = quantity
        filled = 0.0

        for level in levels:
            if remaining <= 0:
                break
            take = min(remaining, level.size)
            cost += take * level.price
            filled += take
            remaining -= take

        if filled > 0:
            average_fill_price = cost / filled
            fill_percentage = filled / quantity * 100
            if top.price > 0:
                slippage = abs(average_fill_price - top.price) / top.price * 100
            market_impact = filled / touch_depth * 100
    else:
        limit_price = order.limit_price
        if any(_crosses(level, order.side, limit_price) for level in levels):
            fill_percentage = 100.0
            average_fill_price = limit_price
            market_impact = quantity / touch_depth * 100

    # Nothing accumulated: price the order at its own limit when it has one
    if cost == 0 and order.limit_price is not None:
        cost = order.limit_price * quantity

    return OrderMetrics(
        fill_percentage=min(fill_percentage, 100.0),
        average_fill_price=average_fill_price,
        slippage_percent=slippage,
        market_impact_percent=market_impact,
        estimated_cost=cost,
    )
