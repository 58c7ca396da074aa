#!/usr/bin/env python3
"""
Orderbook Sim - Multi-venue order book viewer and execution simulator.

Usage:
    orderbook-sim watch --venues okx bybit deribit --side buy --type market --quantity 0.5
    orderbook-sim simulate okx captured_okx.json --side sell --type limit --quantity 2 --price 64000

    Or directly:
    python -m orderbook_sim.main watch

Controls (watch):
    1/2/3 - Select venue
    s     - Submit the order for a timed fill (with --timing 5s/10s/30s)
    q     - Quit
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from .errors import InvalidOrderRequest, OrderBookSimError
from .types import OrderTiming

logger = logging.getLogger("orderbook_sim")


def setup_logging(level: str, log_file: str | None) -> None:
    """Configure root logging once. Use a file while the TUI owns the terminal."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
        filename=log_file,
    )


def _order_from_args(args: argparse.Namespace):
    from .engine.simulator import order_from_form

    if args.quantity is None:
        return None
    return order_from_form(args.side, args.type, args.quantity, args.price)


async def watch(args: argparse.Namespace) -> None:
    """Runs all venue feeds and the UI concurrently."""

    # Import here to avoid slow startup for --help
    from .datafeed.book_store import BookStore
    from .datafeed.venue_client import VenueClient, run_all
    from .ui.book_view import run_ui

    order = _order_from_args(args)
    timing = OrderTiming(args.timing)
    store = BookStore()

    clients = [
        VenueClient(
            venue,
            store=store,
            symbol=args.symbol,
            throttle_ms=args.throttle_ms,
            strict=args.strict,
            drop_empty=args.drop_empty,
        )
        for venue in args.venues
    ]

    async def run_feeds() -> None:
        try:
            await run_all(clients)
        except asyncio.CancelledError:
            pass

    feed_task = asyncio.create_task(run_feeds())

    try:
        # Run UI (blocks until quit)
        await run_ui(store, [c.venue for c in clients], order=order,
                     levels=args.levels, timing=timing)
    finally:
        for client in clients:
            client.stop()
        feed_task.cancel()
        await asyncio.gather(feed_task, return_exceptions=True)


def simulate_file(args: argparse.Namespace) -> int:
    """Normalize a captured venue payload and simulate an order against it."""
    import orjson
    from rich.console import Console

    from .datafeed.book_builder import normalize
    from .datafeed.book_store import BookStore
    from .datafeed.venue_client import simulate_with_timing
    from .engine.depth import project
    from .ui.book_view import render_ladder, render_metrics

    console = Console()
    order = _order_from_args(args)
    if order is None:
        raise InvalidOrderRequest("quantity is required")
    timing = OrderTiming(args.timing)

    payload = orjson.loads(Path(args.payload).read_bytes())
    book = normalize(args.venue, payload, strict=args.strict, drop_empty=args.drop_empty)
    if book is None:
        console.print(f"[red]No order book found in {args.payload} for {args.venue}[/red]")
        return 1

    store = BookStore()
    store.publish(book)

    console.print(render_ladder(book, args.levels))
    console.print()
    if timing.delay_sec > 0:
        console.print(f"[dim]Filling after {timing.value}...[/dim]")
    metrics = asyncio.run(simulate_with_timing(store, book.venue, order, timing))
    console.print(render_metrics(order, metrics))
    console.print(f"[dim]{len(project(book))} depth points[/dim]")
    return 0


def _add_order_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--side", choices=["buy", "sell"], default="buy",
                        help="Order side (default: buy)")
    parser.add_argument("--type", choices=["market", "limit"], default="market",
                        help="Order type (default: market)")
    parser.add_argument("--quantity", help="Order quantity")
    parser.add_argument("--price", help="Limit price (required for limit orders)")
    parser.add_argument("--timing", choices=[t.value for t in OrderTiming], default="immediate",
                        help="Delay before the order is filled (default: immediate)")
    parser.add_argument("--strict", action="store_true",
                        help="Reject a whole update on any malformed level (default: drop the level)")
    parser.add_argument("--drop-empty", action="store_true",
                        help="Prune zero-size levels (default: keep them)")
    parser.add_argument("--levels", type=int, default=15,
                        help="Number of price levels to show per side (default: 15)")


def cli(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    from .datafeed.venues import venue_names

    parser = argparse.ArgumentParser(
        description="Orderbook Sim - Multi-venue order book normalization and execution simulation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    orderbook-sim watch --venues okx bybit --quantity 0.25
    orderbook-sim watch --venues deribit --type limit --side sell --quantity 10 --price 65000
    orderbook-sim simulate bybit bybit_book.json --quantity 3
    orderbook-sim simulate okx okx_book.json --quantity 1 --timing 5s
        """
    )
    parser.add_argument("--log-level", default="WARNING", help="Logging level (default: WARNING)")
    parser.add_argument("--log-file", help="Write logs to this file instead of stderr")

    sub = parser.add_subparsers(dest="command", required=True)

    watch_p = sub.add_parser("watch", help="Stream live books and simulate a standing order")
    watch_p.add_argument("--venues", nargs="+", choices=venue_names(), default=venue_names(),
                         help="Venues to connect to (default: all)")
    watch_p.add_argument("--symbol", help="Instrument symbol (default: venue's default)")
    watch_p.add_argument("--throttle-ms", type=int, default=100,
                         help="Minimum interval between book rebuilds per venue (default: 100)")
    _add_order_args(watch_p)

    sim_p = sub.add_parser("simulate", help="Simulate an order against a captured payload")
    sim_p.add_argument("venue", choices=venue_names())
    sim_p.add_argument("payload", help="Path to a JSON message captured from the venue")
    _add_order_args(sim_p)

    args = parser.parse_args(argv)

    # Symbols are venue specific (BTC-USDT, BTCUSDT, BTC-PERPETUAL)
    if args.command == "watch" and args.symbol and len(args.venues) != 1:
        watch_p.error("--symbol needs exactly one venue in --venues")

    log_file = args.log_file
    if args.command == "watch" and log_file is None:
        log_file = "orderbook_sim.log"
    setup_logging(args.log_level, log_file)

    try:
        if args.command == "watch":
            asyncio.run(watch(args))
        else:
            sys.exit(simulate_file(args))
    except OrderBookSimError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)
    except KeyboardInterrupt:
        print("\nShutdown requested.")
        sys.exit(0)


if __name__ == "__main__":
    cli()
