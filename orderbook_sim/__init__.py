"""
Orderbook Sim - Multi-venue order book normalization and execution simulation.

Architecture:
- datafeed/: Venue adapters, canonical book builder, latest-book store, WebSocket clients
- engine/: Execution simulator (market/limit fills) and depth projection
- ui/: Live book ladder + simulation panel (Textual TUI)
"""

__version__ = "0.1.0"
