"""Error taxonomy for upstream market data failures."""


class MarketDataError(Exception):
    """Base class for every recoverable market data failure."""


class NetworkFailure(MarketDataError):
    """The request never produced a usable response (transport error, bad body)."""


class BadResponse(MarketDataError):
    """The provider answered, but with a non-success status or a malformed payload."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class EmptySeries(MarketDataError):
    """A price series has no samples and cannot be charted."""
