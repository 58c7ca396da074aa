"""
Venue WebSocket client with async orchestration.

Handles:
1. Connection + venue-specific subscription
2. Update coalescing (only the newest payload per throttle window is built)
3. Normalization into a CanonicalBook and publishing to a BookStore
4. Reconnect with exponential backoff on stream termination

Performance notes:
- Uses orjson for fast JSON parsing
- Minimal logging in hot path
- All I/O is non-blocking (pure asyncio)
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Iterable

import aiohttp
import orjson

from .book_builder import normalize
from .book_store import BookStore
from .venues import Venue, get_adapter
from ..engine.simulator import simulate
from ..types import ConnectionStatus, OrderMetrics, OrderRequest, OrderTiming

logger = logging.getLogger(__name__)

DEFAULT_THROTTLE_MS = 100
DEFAULT_RECONNECT_DELAY = 3.0
MAX_RECONNECT_DELAY = 30.0
HEARTBEAT_SEC = 20.0


class UpdateCoalescer:
    """
    Trailing-edge throttle for full-book updates.

    Books are rebuilt wholesale, so an update superseded inside the window
    can be dropped without loss.
    """

    __slots__ = ('interval_ms', '_pending', '_last_emit', 'dropped')

    def __init__(self, interval_ms: int = DEFAULT_THROTTLE_MS) -> None:
        self.interval_ms = interval_ms
        self._pending: Any = None
        self._last_emit: float | None = None
        self.dropped: int = 0

    def offer(self, payload: Any, now: float | None = None) -> Any:
        """
        Offer a new payload. Returns the payload to process now, or None if it
        was parked until the window elapses.
        """
        now = time.perf_counter() if now is None else now

        if self._last_emit is None or (now - self._last_emit) * 1000 >= self.interval_ms:
            self._pending = None
            self._last_emit = now
            return payload

        if self._pending is not None:
            self.dropped += 1
        self._pending = payload
        return None

    def remaining_ms(self, now: float | None = None) -> float:
        """Time until the parked payload may be emitted."""
        if self._last_emit is None:
            return 0.0
        now = time.perf_counter() if now is None else now
        return max(0.0, self.interval_ms - (now - self._last_emit) * 1000)

    def flush(self, now: float | None = None) -> Any:
        """Take the parked payload (if any), marking the window as used."""
        payload, self._pending = self._pending, None
        if payload is not None:
            self._last_emit = time.perf_counter() if now is None else now
        return payload

    @property
    def has_pending(self) -> bool:
        return self._pending is not None


class VenueClient:
    """
    Async client for one venue's order book stream.

    Usage:
        store = BookStore()
        client = VenueClient("okx", store=store)
        await client.run()   # publishes to store until stop()
    """

    def __init__(
        self,
        venue: str | Venue,
        store: BookStore,
        symbol: str | None = None,
        throttle_ms: int = DEFAULT_THROTTLE_MS,
        reconnect_delay: float = DEFAULT_RECONNECT_DELAY,
        max_reconnect_delay: float = MAX_RECONNECT_DELAY,
        strict: bool = False,
        drop_empty: bool = False,
    ) -> None:
        self.adapter = get_adapter(venue)
        self.venue = self.adapter.key.value
        self.symbol = symbol or self.adapter.default_symbol
        self.store = store
        self.reconnect_delay = reconnect_delay
        self.max_reconnect_delay = max_reconnect_delay
        self.strict = strict
        self.drop_empty = drop_empty

        self.coalescer = UpdateCoalescer(throttle_ms)

        # State
        self._running = False
        self._flush_handle: asyncio.TimerHandle | None = None
        self.books_published: int = 0
        self.messages_seen: int = 0

    def _set_status(self, status: ConnectionStatus) -> None:
        self.store.set_status(self.venue, status)

    def _process_payload(self, payload: Any) -> None:
        """
        Normalize and publish one payload.

        HOT PATH - called at most once per throttle window.
        """
        book = normalize(
            self.venue, payload, strict=self.strict, drop_empty=self.drop_empty,
        )
        if book is not None:
            self.store.publish(book)
            self.books_published += 1

    def _flush_pending(self) -> None:
        self._flush_handle = None
        payload = self.coalescer.flush()
        if payload is not None:
            self._process_payload(payload)

    def _schedule_flush(self) -> None:
        if self._flush_handle is not None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return  # no loop (direct call); next message will drain the window
        delay = self.coalescer.remaining_ms() / 1000
        self._flush_handle = loop.call_later(delay, self._flush_pending)

    def handle_message(self, raw: bytes | str) -> None:
        """
        Handle incoming WebSocket frame.

        HOT PATH - called for every message.
        """
        self.messages_seen += 1
        try:
            payload = orjson.loads(raw)
        except orjson.JSONDecodeError:
            logger.debug("%s: undecodable frame dropped", self.venue)
            return

        ready = self.coalescer.offer(payload)
        if ready is not None:
            self._process_payload(ready)
        else:
            self._schedule_flush()

    async def _stream(self, session: aiohttp.ClientSession) -> None:
        """One connection lifetime: connect, subscribe, consume until closed."""
        self._set_status(ConnectionStatus.CONNECTING)

        async with session.ws_connect(self.adapter.ws_url, heartbeat=HEARTBEAT_SEC) as ws:
            self._set_status(ConnectionStatus.CONNECTED)
            logger.info("%s: connected, subscribing to %s", self.adapter.name, self.symbol)
            await ws.send_bytes(orjson.dumps(self.adapter.subscription(self.symbol)))

            async for msg in ws:
                if not self._running:
                    break

                if msg.type in (aiohttp.WSMsgType.TEXT, aiohttp.WSMsgType.BINARY):
                    self.handle_message(msg.data)
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    raise aiohttp.ClientError(f"WebSocket error: {ws.exception()}")

    async def run(self) -> None:
        """
        Main run loop. Keeps the stream alive until stop() is called.

        Pushes CanonicalBook updates to self.store.
        """
        self._running = True
        delay = self.reconnect_delay

        async with aiohttp.ClientSession() as session:
            while self._running:
                connected_before = self.messages_seen
                try:
                    await self._stream(session)
                    self._set_status(ConnectionStatus.DISCONNECTED)
                    logger.info("%s: stream closed", self.adapter.name)
                except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
                    self._set_status(ConnectionStatus.ERROR)
                    logger.warning("%s: connection error: %s", self.adapter.name, e)

                if not self._running:
                    break

                # Reset backoff once a connection actually delivered data
                if self.messages_seen > connected_before:
                    delay = self.reconnect_delay

                logger.warning("%s: reconnecting in %.1fs", self.adapter.name, delay)
                await asyncio.sleep(delay)
                delay = min(delay * 2, self.max_reconnect_delay)

        if self._flush_handle is not None:
            self._flush_handle.cancel()
            self._flush_handle = None
        self._set_status(ConnectionStatus.DISCONNECTED)

    def stop(self) -> None:
        """Signal the client to stop."""
        self._running = False


async def run_all(clients: Iterable[VenueClient]) -> None:
    """
    Run several venue clients concurrently until all of them stop.

    A client that dies with an unexpected error is logged; the rest keep running.
    """
    clients = list(clients)
    results = await asyncio.gather(*(client.run() for client in clients),
                                   return_exceptions=True)
    for client, result in zip(clients, results):
        if isinstance(result, Exception):
            logger.error("%s feed stopped: %r", client.adapter.name, result)


async def simulate_with_timing(
    store: BookStore,
    venue: str,
    order: OrderRequest,
    timing: OrderTiming = OrderTiming.IMMEDIATE,
) -> OrderMetrics | None:
    """
    Simulate `order` against the venue's book as it is after `timing`'s delay.

    Returns None if no book has arrived for the venue by then.
    """
    if timing.delay_sec > 0:
        await asyncio.sleep(timing.delay_sec)

    book = store.get(venue)
    if book is None:
        logger.info("%s: no book available for simulation", venue)
        return None
    return simulate(book, order)
