"""
Depth chart projection.

Flattens both sides of a CanonicalBook into one price-ascending series of
cumulative sizes. Bid and ask points at the same price stay separate points.
"""

from __future__ import annotations

from ..types import CanonicalBook, DepthPoint


def project(book: CanonicalBook) -> list[DepthPoint]:
    """Depth points ascending by price (stable sort, bids first on ties)."""
    # Bids are stored best (highest) first; reverse to ascending before joining
    bid_points = [DepthPoint(lvl.price, lvl.cumulative_size, 0.0) for lvl in reversed(book.bids)]
    ask_points = [DepthPoint(lvl.price, 0.0, lvl.cumulative_size) for lvl in book.asks]

    return sorted(bid_points + ask_points, key=lambda p: p.price)
