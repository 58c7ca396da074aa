"""
Error types. None of these are fatal: the offending update or order
request is discarded and the next one is processed.
"""


class OrderBookSimError(Exception):
    """Base class for all orderbook_sim errors."""


class MalformedPayload(OrderBookSimError):
    """Venue payload does not have the expected book shape (acks, heartbeats, ...)."""


class NumericParseFailure(OrderBookSimError):
    """A price/size token is not a finite, non-negative number."""

    def __init__(self, token: object, reason: str = "not a number") -> None:
        super().__init__(f"Cannot parse {token!r}: {reason}")
        self.token = token


class InvalidOrderRequest(OrderBookSimError):
    """Order request is missing fields or carries non-numeric / non-positive values."""


class UnknownVenue(OrderBookSimError):
    """Venue key has no registered adapter."""
