"""Error taxonomy shared by the data, stream and signal layers."""

from __future__ import annotations


class MarketSignalsError(Exception):
    """Base class for every error raised by this package."""


class InvalidFormat(MarketSignalsError, ValueError):
    """Interval string does not match ``<positive integer><s|m|h|d>``."""


class InvalidInput(MarketSignalsError, ValueError):
    """A call received structurally insufficient data."""


class UpstreamError(MarketSignalsError):
    """The exchange answered with a 4xx/5xx status."""

    def __init__(self, status: int, message: str) -> None:
        super().__init__(f"API error {status}: {message}")
        self.status = status
        self.message = message

    @property
    def retriable(self) -> bool:
        return self.status == 429 or self.status >= 500


class NetworkError(MarketSignalsError):
    """No response was received from the exchange."""


class ConnectionFailure(MarketSignalsError):
    """The live stream could not be kept alive within its retry budget."""

    def __init__(self, symbol: str, attempts: int, cause: BaseException | None = None) -> None:
        super().__init__(f"Stream for {symbol} stopped after {attempts} reconnect attempts")
        self.symbol = symbol
        self.attempts = attempts
        self.cause = cause
