"""
Pytest configuration and shared fixtures.
"""

from __future__ import annotations

import pytest

from orderbook_sim.datafeed.book_builder import build_book
from orderbook_sim.types import CanonicalBook, RawBook


def make_book(bids=(), asks=(), venue: str = "test", ts: int = 1_700_000_000_000) -> CanonicalBook:
    """Build a book from (price, size) pairs in priority order."""
    return build_book(venue, RawBook(list(bids), list(asks), ts))


# =============================================================================
# VENUE PAYLOADS (shapes as sent on the wire)
# =============================================================================

@pytest.fixture
def okx_payload() -> dict:
    return {
        "arg": {"channel": "books", "instId": "BTC-USDT"},
        "action": "snapshot",
        "data": [{
            "asks": [["100.5", "2", "0", "3"], ["101", "4", "0", "1"]],
            "bids": [["100", "1.5", "0", "2"], ["99.5", "3", "0", "5"]],
            "ts": "1700000000123",
            "checksum": 0,
        }],
    }


@pytest.fixture
def bybit_payload() -> dict:
    return {
        "topic": "orderbook.50.BTCUSDT",
        "type": "snapshot",
        "ts": 1700000000456,
        "data": {
            "s": "BTCUSDT",
            "b": [["100", "10"], ["99", "5"]],
            "a": [["101", "3"], ["102", "7"]],
            "u": 18521288,
            "seq": 7961638724,
        },
    }


@pytest.fixture
def deribit_payload() -> dict:
    return {
        "jsonrpc": "2.0",
        "method": "subscription",
        "params": {
            "channel": "book.BTC-PERPETUAL.raw",
            "data": {
                "timestamp": 1700000000789,
                "instrument_name": "BTC-PERPETUAL",
                "bids": [[64000.5, 1200.0], [64000.0, 800.0]],
                "asks": [[64001.0, 500.0], [64002.5, 1500.0]],
            },
        },
    }
