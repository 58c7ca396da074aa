"""
Data types for Orderbook Sim.

Notes:
- Using NamedTuple for immutable, memory-efficient structures
- Book sides are tuples so a published book can be shared across threads
"""

from __future__ import annotations

from enum import Enum
from typing import NamedTuple, Sequence, Tuple, Union

# Raw token as sent by a venue: numeric string or JSON number
Token = Union[str, float, int, None]
RawLevel = Tuple[Token, Token]

# Warning thresholds shown next to simulation results (percent)
HIGH_SLIPPAGE_PCT = 1.0
HIGH_IMPACT_PCT = 5.0


class Side(str, Enum):
    BUY = "buy"
    SELL = "sell"


class OrderType(str, Enum):
    MARKET = "market"
    LIMIT = "limit"


class OrderTiming(str, Enum):
    """When a simulated order is evaluated against the book."""
    IMMEDIATE = "immediate"
    DELAY_5S = "5s"
    DELAY_10S = "10s"
    DELAY_30S = "30s"

    @property
    def delay_sec(self) -> float:
        return {"immediate": 0.0, "5s": 5.0, "10s": 10.0, "30s": 30.0}[self.value]


class ConnectionStatus(str, Enum):
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    ERROR = "error"


class Level(NamedTuple):
    """Single price level with running depth on its side."""
    price: float
    size: float
    cumulative_size: float  # sum of sizes from top of book up to and including this level


class RawBook(NamedTuple):
    """Structural extraction of a venue payload. Tokens are not parsed yet."""
    bids: Sequence[RawLevel]
    asks: Sequence[RawLevel]
    ts: Token


class CanonicalBook(NamedTuple):
    """
    Venue-independent full-book snapshot.

    bids: descending by price (best bid first)
    asks: ascending by price (best ask first)
    """
    venue: str
    bids: tuple[Level, ...]
    asks: tuple[Level, ...]
    observed_at_ms: int

    @property
    def best_bid(self) -> float:
        """Best bid price. Returns 0.0 if no bids."""
        return self.bids[0].price if self.bids else 0.0

    @property
    def best_ask(self) -> float:
        """Best ask price. Returns 0.0 if no asks."""
        return self.asks[0].price if self.asks else 0.0

    @property
    def mid_price(self) -> float:
        """Mid price. Returns 0.0 if no book."""
        bb, ba = self.best_bid, self.best_ask
        if bb > 0 and ba > 0:
            return (bb + ba) / 2.0
        return bb or ba

    @property
    def spread_bps(self) -> float:
        if not self.bids or not self.asks:
            return 0.0
        mid = self.mid_price
        return ((self.best_ask - self.best_bid) / mid * 10000) if mid > 0 else 0.0


class OrderRequest(NamedTuple):
    side: Side
    order_type: OrderType
    quantity: float
    limit_price: float | None = None


class OrderMetrics(NamedTuple):
    """Result of one simulated execution. All percentages are 0-100 scale."""
    fill_percentage: float
    average_fill_price: float
    slippage_percent: float
    market_impact_percent: float
    estimated_cost: float

    @property
    def high_slippage(self) -> bool:
        return self.slippage_percent > HIGH_SLIPPAGE_PCT

    @property
    def high_impact(self) -> bool:
        return self.market_impact_percent > HIGH_IMPACT_PCT


class DepthPoint(NamedTuple):
    """One point of the depth chart. Only one side is non-zero per point."""
    price: float
    bid_cumulative: float
    ask_cumulative: float
