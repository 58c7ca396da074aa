"""
Latest-book registry shared between venue feeds and consumers (UI, simulator).

Each publish swaps in a whole new CanonicalBook; the previous one is discarded.
Readers therefore always see a complete book, never a partially built one.
"""

from __future__ import annotations

import threading
import time

from ..types import CanonicalBook, ConnectionStatus


class BookStore:
    """
    Latest CanonicalBook + connection status per venue.

    Thread-safety: safe for one writer per venue and any number of readers.
    Feeds may run in a background event loop while the UI reads from another thread.
    """

    __slots__ = ('_lock', '_books', '_updated_ms', '_status')

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._books: dict[str, CanonicalBook] = {}
        self._updated_ms: dict[str, int] = {}
        self._status: dict[str, ConnectionStatus] = {}

    def publish(self, book: CanonicalBook) -> None:
        """Replace the venue's book."""
        now_ms = int(time.time() * 1000)
        with self._lock:
            self._books[book.venue] = book
            self._updated_ms[book.venue] = now_ms

    def get(self, venue: str) -> CanonicalBook | None:
        with self._lock:
            return self._books.get(venue)

    def last_updated_ms(self, venue: str) -> int | None:
        """Local receive time of the venue's current book."""
        with self._lock:
            return self._updated_ms.get(venue)

    def set_status(self, venue: str, status: ConnectionStatus) -> None:
        with self._lock:
            self._status[venue] = status

    def status(self, venue: str) -> ConnectionStatus:
        with self._lock:
            return self._status.get(venue, ConnectionStatus.DISCONNECTED)

    def snapshot(self) -> dict[str, CanonicalBook]:
        """Copy of all current books keyed by venue."""
        with self._lock:
            return dict(self._books)
