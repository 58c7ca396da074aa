"""
Order book TUI using Textual.

Displays:
- Top: Per-venue connection status, selected venue's best bid/ask and spread
- Left: Price ladder (asks above bids) with cumulative depth bars
- Right: Depth chart rows and the standing order simulation (live, or a
  timed fill submitted with `s` when a delay is configured)

Performance notes:
- Polls the BookStore at ~10 FPS instead of reacting to every update
- Minimal widget tree updates
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Sequence

from rich.console import Group, RenderableType
from rich.style import Style
from rich.table import Table
from rich.text import Text

from textual.app import App, ComposeResult
from textual.containers import Horizontal, Vertical
from textual.widgets import Footer, Static

from ..datafeed.venues import get_adapter
from ..engine.depth import project
from ..engine.simulator import simulate
from ..datafeed.venue_client import simulate_with_timing
from ..types import ConnectionStatus, OrderTiming

if TYPE_CHECKING:
    from ..datafeed.book_store import BookStore
    from ..types import CanonicalBook, DepthPoint, Level, OrderMetrics, OrderRequest

# Color scheme (dark theme)
BID_COLOR = "#22c55e"      # Green
ASK_COLOR = "#ef4444"      # Red
WARN_COLOR = "#facc15"
PRICE_COLOR = "#f8fafc"
HEADER_COLOR = "#94a3b8"
BAR_BG = "#1e293b"

STATUS_COLORS = {
    ConnectionStatus.CONNECTED: BID_COLOR,
    ConnectionStatus.CONNECTING: WARN_COLOR,
    ConnectionStatus.DISCONNECTED: HEADER_COLOR,
    ConnectionStatus.ERROR: ASK_COLOR,
}

REFRESH_SEC = 0.1


def format_qty(qty: float) -> str:
    """Format quantity for display."""
    if qty >= 1000:
        return f"{qty/1000:.1f}K"
    elif qty >= 1:
        return f"{qty:.2f}"
    else:
        return f"{qty:.4f}"


def format_age(updated_ms: int | None, now_ms: int | None = None) -> str:
    """Human readable time since the last book update."""
    if updated_ms is None:
        return "never"
    now_ms = int(time.time() * 1000) if now_ms is None else now_ms
    age = max(0, now_ms - updated_ms)
    if age < 1000:
        return f"{age}ms ago"
    return f"{age / 1000:.1f}s ago"


def make_bar(value: float, max_value: float, width: int, color: str) -> Text:
    """Create a horizontal bar using block characters."""
    if max_value <= 0:
        return Text(" " * width)

    fill_ratio = min(1.0, value / max_value)
    fill_width = int(fill_ratio * width)

    bar = "█" * fill_width + " " * (width - fill_width)
    return Text(bar, style=Style(color=color, bgcolor=BAR_BG))


def render_ladder(book: CanonicalBook | None, levels: int) -> RenderableType:
    """Render asks (worst on top) above bids as a Rich Table."""
    if book is None:
        return Text("Waiting for data...", style="dim")

    asks: Sequence[Level] = book.asks[:levels]
    bids: Sequence[Level] = book.bids[:levels]
    if not asks and not bids:
        return Text("No levels", style="dim")

    max_total = max(
        asks[-1].cumulative_size if asks else 0.0,
        bids[-1].cumulative_size if bids else 0.0,
    )

    table = Table(
        show_header=True,
        header_style=HEADER_COLOR,
        box=None,
        padding=(0, 1),
        collapse_padding=True,
    )
    table.add_column("Price", justify="right", width=12)
    table.add_column("Size", justify="right", width=10)
    table.add_column("Total", justify="right", width=10)
    table.add_column("Depth", justify="left", width=16, no_wrap=True)

    for level in reversed(asks):
        table.add_row(
            Text(f"{level.price:.2f}", style=ASK_COLOR),
            Text(format_qty(level.size)),
            Text(format_qty(level.cumulative_size), style="dim"),
            make_bar(level.cumulative_size, max_total, 16, ASK_COLOR),
        )

    table.add_row(
        Text("spread", style="dim"),
        Text(f"{book.spread_bps:.1f}bps", style=WARN_COLOR),
        Text(""),
        Text(""),
    )

    for level in bids:
        table.add_row(
            Text(f"{level.price:.2f}", style=BID_COLOR),
            Text(format_qty(level.size)),
            Text(format_qty(level.cumulative_size), style="dim"),
            make_bar(level.cumulative_size, max_total, 16, BID_COLOR),
        )

    return table


def sample_depth(points: Sequence[DepthPoint], rows: int) -> list[DepthPoint]:
    """Evenly pick at most `rows` points, keeping both ends."""
    if rows <= 0:
        return []
    if len(points) <= rows:
        return list(points)
    if rows == 1:
        return [points[0]]
    step = (len(points) - 1) / (rows - 1)
    return [points[round(i * step)] for i in range(rows)]


def render_depth(book: CanonicalBook | None, rows: int = 20) -> RenderableType:
    """Depth chart as horizontal bars, one row per sampled point, price descending."""
    if book is None:
        return Text("")

    points = sample_depth(project(book), rows)
    if not points:
        return Text("No depth", style="dim")

    max_total = max(max(p.bid_cumulative, p.ask_cumulative) for p in points)

    table = Table(show_header=True, header_style=HEADER_COLOR, box=None, padding=(0, 1))
    table.add_column("Price", justify="right", width=12)
    table.add_column("Depth", justify="left", width=24, no_wrap=True)

    for point in reversed(points):
        if point.ask_cumulative > 0:
            bar = make_bar(point.ask_cumulative, max_total, 24, ASK_COLOR)
        else:
            bar = make_bar(point.bid_cumulative, max_total, 24, BID_COLOR)
        table.add_row(Text(f"{point.price:.2f}"), bar)

    return table


def render_metrics(
    order: OrderRequest | None,
    metrics: OrderMetrics | None,
    note: str | None = None,
) -> RenderableType:
    """Order impact analysis panel. `note` is shown under the title."""
    if order is None:
        return Text("No order configured (--quantity)", style="dim")

    title = f"{order.side.value.upper()} {order.order_type.value.upper()} {format_qty(order.quantity)}"
    if order.limit_price is not None:
        title += f" @ {order.limit_price:.2f}"
    heading: list[RenderableType] = [Text(title, style="bold")]
    if note:
        heading.append(Text(note, style="dim"))

    if metrics is None:
        return Group(*heading, Text("No liquidity on this side", style="dim"))

    slip_style = ASK_COLOR if metrics.high_slippage else BID_COLOR
    impact_style = ASK_COLOR if metrics.high_impact else WARN_COLOR

    table = Table(show_header=False, box=None, padding=(0, 1))
    table.add_column("Metric", style=HEADER_COLOR)
    table.add_column("Value", justify="right")
    table.add_row("Fill Percentage", f"{metrics.fill_percentage:.2f}%")
    table.add_row("Average Fill Price", f"${metrics.average_fill_price:.2f}")
    table.add_row("Slippage", Text(f"{metrics.slippage_percent:.3f}%", style=slip_style))
    table.add_row("Market Impact", Text(f"{metrics.market_impact_percent:.2f}%", style=impact_style))
    table.add_row("Estimated Cost", f"${metrics.estimated_cost:.2f}")

    parts: list[RenderableType] = [*heading, table]
    if metrics.high_slippage:
        parts.append(Text("High slippage: this order may cause significant price movement",
                          style=WARN_COLOR))
    return Group(*parts)


def render_timed(
    order: OrderRequest | None,
    timing: OrderTiming,
    pending: bool,
    fill: tuple[str, OrderMetrics | None] | None,
) -> RenderableType:
    """Simulation panel when the order fills after a delay."""
    if order is None:
        return render_metrics(None, None)
    if pending:
        return Text(f"Filling after {timing.value}...", style=WARN_COLOR)
    if fill is None:
        return Text(f"Press s to fill after {timing.value}", style="dim")
    venue, metrics = fill
    return render_metrics(order, metrics, note=f"{get_adapter(venue).name}, filled after {timing.value}")


def render_status(
    venues: Sequence[str],
    selected: str,
    statuses: dict[str, ConnectionStatus],
    book: CanonicalBook | None,
    updated_ms: int | None,
) -> Text:
    """Status bar line: venue labels in their own colours, then top of book."""
    result = Text()
    for i, venue in enumerate(venues, start=1):
        adapter = get_adapter(venue)
        status = statuses.get(venue, ConnectionStatus.DISCONNECTED)
        label = f" {i}:{adapter.name} "
        if venue == selected:
            result.append(label, style=f"bold white on {adapter.color}")
        else:
            result.append(label, style=adapter.color)
        result.append("● ", style=STATUS_COLORS[status])

    if book is not None:
        result.append("  │  ", style="dim")
        result.append("Bid: ", style="dim")
        result.append(f"{book.best_bid:.2f}", style=BID_COLOR)
        result.append("  Ask: ", style="dim")
        result.append(f"{book.best_ask:.2f}", style=ASK_COLOR)
        result.append("  Updated: ", style="dim")
        result.append(format_age(updated_ms), style="cyan")
    return result


class StatusBar(Static):
    """Connection status per venue plus top of book for the selected one."""

    DEFAULT_CSS = """
    StatusBar {
        dock: top;
        height: 3;
        padding: 0 2;
        background: #0f172a;
    }
    """

    def __init__(self, venues: Sequence[str]) -> None:
        super().__init__()
        self.venues = list(venues)
        self.selected: str = self.venues[0]
        self.statuses: dict[str, ConnectionStatus] = {}
        self.book: CanonicalBook | None = None
        self.updated_ms: int | None = None

    def render(self) -> RenderableType:
        return render_status(self.venues, self.selected, self.statuses, self.book, self.updated_ms)


class BookApp(App):
    """Main Orderbook Sim application."""

    CSS = """
    Screen {
        background: #0f172a;
    }

    #ladder {
        width: 3fr;
        padding: 1 2;
    }

    #side {
        width: 2fr;
        padding: 1 2;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("1", "select_venue(0)", "Venue 1"),
        ("2", "select_venue(1)", "Venue 2"),
        ("3", "select_venue(2)", "Venue 3"),
        ("s", "submit", "Timed fill"),
    ]

    def __init__(
        self,
        store: BookStore,
        venues: Sequence[str],
        order: OrderRequest | None = None,
        levels: int = 15,
        timing: OrderTiming = OrderTiming.IMMEDIATE,
    ) -> None:
        super().__init__()
        self.store = store
        self.venues = list(venues)
        self.order = order
        self.levels = levels
        self.timing = timing
        self.selected = self.venues[0]
        self._pending = False
        self._fill: tuple[str, OrderMetrics | None] | None = None

        self._status_bar = StatusBar(self.venues)
        self._ladder = Static(id="ladder")
        self._depth = Static()
        self._metrics = Static()

    def compose(self) -> ComposeResult:
        yield self._status_bar
        yield Horizontal(
            self._ladder,
            Vertical(self._metrics, self._depth, id="side"),
        )
        yield Footer()

    def on_mount(self) -> None:
        self.set_interval(REFRESH_SEC, self.refresh_view)

    def refresh_view(self) -> None:
        """Pull the latest book for the selected venue and redraw."""
        book = self.store.get(self.selected)

        bar = self._status_bar
        bar.selected = self.selected
        bar.statuses = {v: self.store.status(v) for v in self.venues}
        bar.book = book
        bar.updated_ms = self.store.last_updated_ms(self.selected)
        bar.refresh()

        self._ladder.update(render_ladder(book, self.levels))
        self._depth.update(render_depth(book))

        if self.timing is OrderTiming.IMMEDIATE:
            metrics = simulate(book, self.order) if (book is not None and self.order) else None
            self._metrics.update(render_metrics(self.order, metrics))
        else:
            self._metrics.update(render_timed(self.order, self.timing, self._pending, self._fill))

    def action_select_venue(self, index: int) -> None:
        if 0 <= index < len(self.venues):
            self.selected = self.venues[index]
            self.refresh_view()

    def action_submit(self) -> None:
        """Fill the standing order against the selected venue after the timing delay."""
        if self.order is None or self.timing is OrderTiming.IMMEDIATE or self._pending:
            return
        self._pending = True
        self.run_worker(self._timed_fill(self.selected), exclusive=True)
        self.refresh_view()

    async def _timed_fill(self, venue: str) -> None:
        try:
            metrics = await simulate_with_timing(self.store, venue, self.order, self.timing)
            self._fill = (venue, metrics)
        finally:
            self._pending = False
        self.refresh_view()


async def run_ui(
    store: BookStore,
    venues: Sequence[str],
    order: OrderRequest | None = None,
    levels: int = 15,
    timing: OrderTiming = OrderTiming.IMMEDIATE,
) -> None:
    """Run the TUI application."""
    app = BookApp(store, venues, order=order, levels=levels, timing=timing)
    await app.run_async()
