"""
Venue adapters: structural extraction of book snapshots from venue payloads.

Each venue is one VenueAdapter subclass. An adapter only locates the bids,
asks and timestamp inside the venue envelope; price/size tokens are passed
through unparsed (numeric parsing belongs to book_builder).

Adding a venue means adding one subclass and registering it in VENUES.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Sequence

from ..errors import MalformedPayload, UnknownVenue
from ..types import RawBook, RawLevel

logger = logging.getLogger(__name__)


class Venue(str, Enum):
    OKX = "okx"
    BYBIT = "bybit"
    DERIBIT = "deribit"


def _rows(value: Any, field: str) -> list[RawLevel]:
    """Convert a venue level array into (price, size) token pairs."""
    if not isinstance(value, list):
        raise MalformedPayload(f"'{field}' is not a list")

    result: list[RawLevel] = []
    for row in value:
        if isinstance(row, (list, tuple)) and len(row) >= 2:
            result.append((row[0], row[1]))
        else:
            # Left for the builder's parse policy to reject
            result.append((None, None))
    return result


class VenueAdapter:
    """Base class for one venue's wire format and connection details."""

    key: Venue
    name: str
    ws_url: str
    color: str
    default_symbol: str

    def subscription(self, symbol: str) -> dict:
        """Subscribe message sent right after the WebSocket opens."""
        raise NotImplementedError

    def extract(self, payload: Any) -> RawBook:
        """Locate bids/asks/timestamp. Raises MalformedPayload on any other message."""
        raise NotImplementedError

    def adapt(self, payload: Any) -> RawBook | None:
        """Extract raw levels, or None if the payload is not a book update."""
        try:
            return self.extract(payload)
        except MalformedPayload as e:
            logger.debug("%s: skipping non-book message (%s)", self.name, e)
            return None


class OKXAdapter(VenueAdapter):
    """
    OKX v5 public `books` channel.

    Expected format: {arg: {...}, action, data: [{bids: [[px, sz, "0", n], ...], asks, ts}]}
    """

    key = Venue.OKX
    name = "OKX"
    ws_url = "wss://ws.okx.com:8443/ws/v5/public"
    color = "#1890ff"
    default_symbol = "BTC-USDT"

    def subscription(self, symbol: str) -> dict:
        return {"op": "subscribe", "args": [{"channel": "books", "instId": symbol}]}

    def extract(self, payload: Any) -> RawBook:
        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, list) or not data or not isinstance(data[0], dict):
            raise MalformedPayload("missing data[0]")

        book = data[0]
        if "bids" not in book or "asks" not in book:
            raise MalformedPayload("missing bids/asks")

        return RawBook(_rows(book["bids"], "bids"), _rows(book["asks"], "asks"), book.get("ts"))


class BybitAdapter(VenueAdapter):
    """
    Bybit v5 spot `orderbook.50` topic.

    Expected format: {topic, type, ts, data: {s, b: [[px, sz], ...], a: [...], u, seq}}
    Snapshot and delta messages are both treated as full books.
    """

    key = Venue.BYBIT
    name = "Bybit"
    ws_url = "wss://stream.bybit.com/v5/public/spot"
    color = "#f7b801"
    default_symbol = "BTCUSDT"

    def subscription(self, symbol: str) -> dict:
        return {"op": "subscribe", "args": [f"orderbook.50.{symbol}"]}

    def extract(self, payload: Any) -> RawBook:
        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, dict) or "b" not in data or "a" not in data:
            raise MalformedPayload("missing data.b/data.a")

        # Envelope ts is the message time; `u` is only an update id
        ts = payload.get("ts", data.get("u"))
        return RawBook(_rows(data["b"], "b"), _rows(data["a"], "a"), ts)


class DeribitAdapter(VenueAdapter):
    """
    Deribit v2 `book.<instrument>.raw` subscription.

    Expected format: {jsonrpc, method: "subscription", params: {channel, data: {bids, asks, timestamp}}}
    Rows are [price, amount] or [action, price, amount] with JSON numbers.
    """

    key = Venue.DERIBIT
    name = "Deribit"
    ws_url = "wss://www.deribit.com/ws/api/v2"
    color = "#ff4d4f"
    default_symbol = "BTC-PERPETUAL"

    def subscription(self, symbol: str) -> dict:
        return {
            "jsonrpc": "2.0",
            "id": 1,
            "method": "public/subscribe",
            "params": {"channels": [f"book.{symbol}.raw"]},
        }

    @staticmethod
    def _strip_actions(rows: Any) -> Any:
        if not isinstance(rows, list):
            return rows
        return [
            row[1:] if isinstance(row, list) and len(row) >= 3 and isinstance(row[0], str) else row
            for row in rows
        ]

    def extract(self, payload: Any) -> RawBook:
        params = payload.get("params") if isinstance(payload, dict) else None
        data = params.get("data") if isinstance(params, dict) else None
        if not isinstance(data, dict) or "bids" not in data or "asks" not in data:
            raise MalformedPayload("missing params.data.bids/asks")

        return RawBook(
            _rows(self._strip_actions(data["bids"]), "bids"),
            _rows(self._strip_actions(data["asks"]), "asks"),
            data.get("timestamp"),
        )


VENUES: dict[Venue, VenueAdapter] = {
    adapter.key: adapter
    for adapter in (OKXAdapter(), BybitAdapter(), DeribitAdapter())
}


def get_adapter(venue: str | Venue) -> VenueAdapter:
    try:
        return VENUES[Venue(venue)]
    except ValueError:
        raise UnknownVenue(f"No adapter for venue {venue!r}") from None


def adapt(venue: str | Venue, payload: Any) -> RawBook | None:
    """
    Extract raw levels for `venue` from a decoded message.

    Returns None (never raises) for control / ack / heartbeat messages.
    """
    return get_adapter(venue).adapt(payload)


def venue_names() -> Sequence[str]:
    return [v.value for v in VENUES]
