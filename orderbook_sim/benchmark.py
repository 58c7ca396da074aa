#!/usr/bin/env python3
"""
Micro-benchmark for Orderbook Sim performance.

Tests:
1. Normalization throughput (adapter + builder) per venue format
2. Market / limit simulation speed
3. Depth projection speed

Usage:
    python -m orderbook_sim.benchmark
"""

from __future__ import annotations

import time
from statistics import mean, stdev

import numpy as np

from .datafeed.book_builder import normalize
from .engine.depth import project
from .engine.simulator import simulate
from .types import OrderRequest, OrderType, Side

rng = np.random.default_rng(42)


def generate_mock_levels(base_price: float = 60000.0, levels: int = 1000) -> tuple[list, list]:
    """Generate sorted bid/ask (price, size) pairs around base_price."""
    tick_size = 0.5
    offsets = np.arange(1, levels + 1) * tick_size
    bid_sizes = rng.uniform(0.01, 5, levels)
    ask_sizes = rng.uniform(0.01, 5, levels)
    bids = [[f"{base_price - o:.1f}", f"{s:.4f}"] for o, s in zip(offsets, bid_sizes)]
    asks = [[f"{base_price + o:.1f}", f"{s:.4f}"] for o, s in zip(offsets, ask_sizes)]
    return bids, asks


def generate_mock_payloads(levels: int = 1000) -> dict[str, dict]:
    """One mock payload per venue envelope."""
    bids, asks = generate_mock_levels(levels=levels)
    ts = int(time.time() * 1000)
    return {
        "okx": {
            "arg": {"channel": "books", "instId": "BTC-USDT"},
            "data": [{
                "bids": [b + ["0", "1"] for b in bids],
                "asks": [a + ["0", "1"] for a in asks],
                "ts": str(ts),
            }],
        },
        "bybit": {"topic": "orderbook.50.BTCUSDT", "ts": ts, "data": {"b": bids, "a": asks, "u": 1}},
        "deribit": {
            "params": {"data": {
                "bids": [[float(p), float(s)] for p, s in bids],
                "asks": [[float(p), float(s)] for p, s in asks],
                "timestamp": ts,
            }},
        },
    }


def _timeit(fn, iterations: int) -> list[float]:
    times = []
    for _ in range(iterations):
        start = time.perf_counter()
        fn()
        times.append(time.perf_counter() - start)
    return times


def _report(times: list[float]) -> None:
    avg_time = mean(times) * 1000
    std_time = stdev(times) * 1000
    print(f"  Iterations: {len(times)}")
    print(f"  Avg time: {avg_time:.3f}ms")
    print(f"  Std dev: {std_time:.3f}ms")
    print(f"  Rate: {1000/avg_time:,.0f} calls/sec")


def benchmark_normalize(iterations: int = 200) -> None:
    """Benchmark adapter + builder per venue."""
    for venue, payload in generate_mock_payloads().items():
        print(f"\n=== Normalize Benchmark ({venue}) ===")
        # Warm up
        for _ in range(5):
            normalize(venue, payload)
        _report(_timeit(lambda: normalize(venue, payload), iterations))


def benchmark_simulate(iterations: int = 2000) -> None:
    """Benchmark market and limit simulations."""
    book = normalize("bybit", generate_mock_payloads()["bybit"])
    orders = {
        "market buy 500": OrderRequest(Side.BUY, OrderType.MARKET, 500.0),
        "limit sell 10": OrderRequest(Side.SELL, OrderType.LIMIT, 10.0, 59000.0),
    }
    for label, order in orders.items():
        print(f"\n=== Simulation Benchmark ({label}) ===")
        _report(_timeit(lambda: simulate(book, order), iterations))


def benchmark_depth(iterations: int = 500) -> None:
    """Benchmark depth chart projection."""
    print("\n=== Depth Projection Benchmark ===")
    book = normalize("bybit", generate_mock_payloads()["bybit"])
    _report(_timeit(lambda: project(book), iterations))


def main() -> None:
    """Run all benchmarks."""
    print("=" * 60)
    print("Orderbook Sim Performance Benchmark")
    print("=" * 60)

    benchmark_normalize()
    benchmark_simulate()
    benchmark_depth()

    print("\n" + "=" * 60)
    print("Benchmark complete.")
    print("=" * 60)


if __name__ == "__main__":
    main()
