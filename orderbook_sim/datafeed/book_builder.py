"""
Canonical book builder.

Turns the raw (price, size) token pairs extracted by a venue adapter into an
immutable CanonicalBook with cumulative depth per side.

HOT PATH: build_book() runs on every coalesced update (~10x per second per venue).

Policies:
1. Parsing is lenient by default: a malformed level is dropped and the rest of
   the update is kept. strict=True fails the whole update instead.
2. Zero-size levels are retained by default (they add nothing to cumulative
   depth). drop_empty=True prunes them.
3. Ordering is validated; an out-of-order side is re-sorted and logged rather
   than accepted as-is.
"""

from __future__ import annotations

import logging
import math
import time
from typing import Any, Sequence

import numpy as np

from ..errors import NumericParseFailure
from ..types import CanonicalBook, Level, RawBook, RawLevel, Token
from .venues import adapt

logger = logging.getLogger(__name__)


def parse_number(token: Token) -> float:
    """
    Parse a price/size token (numeric string or JSON number).

    Raises NumericParseFailure for empty, non-numeric, non-finite or negative tokens.
    """
    if token is None or isinstance(token, bool):
        raise NumericParseFailure(token)

    if isinstance(token, str):
        token = token.strip()
        if not token:
            raise NumericParseFailure(token, "empty")

    try:
        value = float(token)
    except (TypeError, ValueError, OverflowError):
        raise NumericParseFailure(token) from None

    if not math.isfinite(value):
        raise NumericParseFailure(token, "not finite")
    if value < 0:
        raise NumericParseFailure(token, "negative")
    return value


def _parse_side(
    rows: Sequence[RawLevel],
    strict: bool,
    drop_empty: bool,
) -> tuple[list[tuple[float, float]], int]:
    """Parse one side. Returns (levels, dropped_count)."""
    levels: list[tuple[float, float]] = []
    dropped = 0

    for price_tok, size_tok in rows:
        try:
            price, size = parse_number(price_tok), parse_number(size_tok)
        except NumericParseFailure:
            if strict:
                raise
            dropped += 1
            continue

        if size == 0 and drop_empty:
            continue
        levels.append((price, size))

    return levels, dropped


def _is_ordered(levels: list[tuple[float, float]], descending: bool) -> bool:
    if descending:
        return all(levels[i][0] > levels[i + 1][0] for i in range(len(levels) - 1))
    return all(levels[i][0] < levels[i + 1][0] for i in range(len(levels) - 1))


def _resort(levels: list[tuple[float, float]], descending: bool) -> list[tuple[float, float]]:
    """Sort by price. Duplicate prices collapse, the last one in the update wins."""
    by_price: dict[float, float] = {}
    for price, size in levels:
        by_price[price] = size
    return [(p, by_price[p]) for p in sorted(by_price, reverse=descending)]


def _with_totals(levels: list[tuple[float, float]]) -> tuple[Level, ...]:
    """Attach running cumulative size in priority order."""
    if not levels:
        return ()
    sizes = np.fromiter((size for _, size in levels), dtype=np.float64, count=len(levels))
    totals = np.cumsum(sizes).tolist()
    return tuple(
        Level(price, size, total)
        for (price, size), total in zip(levels, totals)
    )


def _timestamp_ms(ts: Any) -> int:
    """Normalize a venue timestamp to epoch ms. Falls back to receive time."""
    if ts is not None and not isinstance(ts, bool):
        try:
            value = float(ts)
            if math.isfinite(value):
                return int(value)
        except (TypeError, ValueError):
            pass
    return int(time.time() * 1000)


def build_book(
    venue: str,
    raw: RawBook,
    *,
    strict: bool = False,
    drop_empty: bool = False,
    check_order: bool = True,
) -> CanonicalBook:
    """
    Build a CanonicalBook from adapter output.

    Args:
        venue: Venue key stored on the book
        raw: Unparsed levels + timestamp from a venue adapter
        strict: Raise NumericParseFailure on the first bad token instead of dropping the level
        drop_empty: Prune zero-size levels instead of retaining them
        check_order: Validate bid/ask ordering and re-sort on violation

    The result is a fresh immutable value; no previous book is touched.
    """
    venue = getattr(venue, "value", venue)
    bids, bid_dropped = _parse_side(raw.bids, strict, drop_empty)
    asks, ask_dropped = _parse_side(raw.asks, strict, drop_empty)

    if bid_dropped or ask_dropped:
        logger.warning(
            "%s: dropped %d malformed bid level(s), %d ask level(s)",
            venue, bid_dropped, ask_dropped,
        )

    if check_order:
        if not _is_ordered(bids, descending=True):
            logger.warning("%s: bids not strictly descending, re-sorting", venue)
            bids = _resort(bids, descending=True)
        if not _is_ordered(asks, descending=False):
            logger.warning("%s: asks not strictly ascending, re-sorting", venue)
            asks = _resort(asks, descending=False)

    return CanonicalBook(
        venue=venue,
        bids=_with_totals(bids),
        asks=_with_totals(asks),
        observed_at_ms=_timestamp_ms(raw.ts),
    )


def normalize(
    venue: str,
    payload: Any,
    *,
    strict: bool = False,
    drop_empty: bool = False,
    check_order: bool = True,
) -> CanonicalBook | None:
    """
    Adapter + builder in one step.

    Returns None when the payload is not a book update, or when strict
    parsing rejects the update.
    """
    raw = adapt(venue, payload)
    if raw is None:
        return None

    try:
        return build_book(
            venue, raw, strict=strict, drop_empty=drop_empty, check_order=check_order,
        )
    except NumericParseFailure as e:
        logger.warning("%s: rejecting update (%s)", venue, e)
        return None


def renormalize(book: CanonicalBook) -> CanonicalBook:
    """Rebuild a book from its own (price, size) levels."""
    raw = RawBook(
        bids=[(lvl.price, lvl.size) for lvl in book.bids],
        asks=[(lvl.price, lvl.size) for lvl in book.asks],
        ts=book.observed_at_ms,
    )
    return build_book(book.venue, raw)
