"""
Error taxonomy for the telemetry pipeline.

Only StoreUnavailableError is expected to escape to callers of the store;
the rest are recovered locally by the component that raises them or mapped
to a response at the API / stream boundary.
"""


class AirWatchError(Exception):
    """Base error for the AirWatch backend."""


class NoDataError(AirWatchError):
    """Raised when a location has no usable stored readings."""

    def __init__(self, location: str = '', message: str = '') -> None:
        self.location = location
        super().__init__(message or f'No data available for {location!r}')


class InsufficientHistoryError(AirWatchError):
    """Raised when a caller requires a fitted model but history is too short."""

    def __init__(self, available: int, required: int) -> None:
        self.available = available
        self.required = required
        super().__init__(
            f'Insufficient history: {available} points, {required} required'
        )


class ProviderError(AirWatchError):
    """Upstream telemetry provider failed (network, auth, rate limit, parse)."""

    def __init__(self, location: str, message: str) -> None:
        self.location = location
        super().__init__(f'{location}: {message}')


class MalformedEventError(AirWatchError):
    """An inbound stream payload failed to parse or validate."""


class StoreUnavailableError(AirWatchError):
    """The reading store could not be reached or failed a query."""
