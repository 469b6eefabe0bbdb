"""Chart data store: the price series of the selected instrument and period."""

import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from src.models.market_data import PeriodDays, Series
from src.services.coingecko_client import CoinGeckoClient
from src.utils.config import VALID_PERIODS
from src.utils.errors import EmptySeries, MarketDataError
from src.utils.logger import StructuredLogger
from src.utils.trace_context import traced

Listener = Callable[["ChartDataStore"], None]


class ChartState(str, Enum):
    """Lifecycle of the chart series."""

    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


@dataclass(frozen=True)
class ChartRequest:
    """Ticket for one series fetch; only the newest generation may complete."""

    instrument_id: str
    period_days: PeriodDays
    generation: int

    @property
    def key(self) -> tuple[str, int]:
        return (self.instrument_id, self.period_days)


class ChartDataStore:
    """
    Holds at most one series, keyed by (instrument, period).

    request() starts a new generation and discards the previous series;
    load() performs the fetch for a ticket and drops the result if a newer
    request was made in the meantime. Failures are never retried
    automatically; the user retries through retry().
    """

    ERROR_MESSAGE = "Failed to load chart. Please try again."

    def __init__(self, client: CoinGeckoClient | None = None):
        self.client = client or CoinGeckoClient()
        self.logger = StructuredLogger("ChartDataStore")

        self._lock = threading.Lock()
        self._generation = 0
        self._current: Optional[ChartRequest] = None
        self._state = ChartState.IDLE
        self._series: Optional[Series] = None
        self._error: Optional[str] = None
        self._listeners: list[Listener] = []

    @property
    def state(self) -> ChartState:
        return self._state

    @property
    def series(self) -> Optional[Series]:
        return self._series

    @property
    def error(self) -> Optional[str]:
        return self._error

    @property
    def key(self) -> Optional[tuple[str, int]]:
        return self._current.key if self._current else None

    def is_current(self, ticket: ChartRequest) -> bool:
        return self._current is not None and ticket.generation == self._current.generation

    def request(self, instrument_id: str, period_days: int) -> ChartRequest:
        """
        Start loading a new key, discarding any previous series.

        Raises:
            ValueError: If period_days is not 7, 30 or 90
        """
        if period_days not in VALID_PERIODS:
            raise ValueError(f"Unsupported period: {period_days}. Use one of {VALID_PERIODS}")

        with self._lock:
            self._generation += 1
            ticket = ChartRequest(instrument_id, period_days, self._generation)
            self._current = ticket
            self._state = ChartState.LOADING
            self._series = None
            self._error = None
        self.logger.debug(
            "Chart requested",
            context={"symbol": instrument_id, "days": period_days, "generation": ticket.generation},
        )
        self._notify()
        return ticket

    def load(self, ticket: ChartRequest) -> bool:
        """
        Fetch the series for a ticket and publish it if the ticket is still current.

        Returns:
            True if the result (series or failure) was applied, False if it
            was stale and discarded
        """
        if not self.is_current(ticket):
            return False

        with traced():
            start_time = time.time()
            series: Optional[Series] = None
            failure: Optional[Exception] = None
            try:
                series = self.client.fetch_market_chart(ticket.instrument_id, ticket.period_days)
                if not series.samples:
                    raise EmptySeries(
                        f"No price samples for {ticket.instrument_id} ({ticket.period_days}d)"
                    )
            except MarketDataError as e:
                failure = e
            except Exception as e:
                self.logger.error(
                    "Unexpected error while loading chart",
                    context={"symbol": ticket.instrument_id, "days": ticket.period_days},
                    exception=e,
                )
                failure = e

            context = {
                "symbol": ticket.instrument_id,
                "days": ticket.period_days,
                "generation": ticket.generation,
                "duration_ms": (time.time() - start_time) * 1000,
            }
            with self._lock:
                if not self.is_current(ticket):
                    stale = True
                else:
                    stale = False
                    if failure is None:
                        self._series = series
                        self._state = ChartState.READY
                    else:
                        self._error = self.ERROR_MESSAGE
                        self._state = ChartState.FAILED

            if stale:
                self.logger.debug("Discarding stale chart response", context=context)
                return False
            if failure is None:
                self.logger.info("Chart loaded", context={**context, "samples": len(series)})
            else:
                self.logger.warning(
                    "Chart load failed",
                    context={**context, "error_type": type(failure).__name__},
                )
        self._notify()
        return True

    def fetch(self, instrument_id: str, period_days: int) -> bool:
        """Request and load a key inline."""
        return self.load(self.request(instrument_id, period_days))

    def retry(self) -> Optional[ChartRequest]:
        """Re-request the current key; None when nothing is selected."""
        current = self._current
        if current is None:
            return None
        return self.request(current.instrument_id, current.period_days)

    def clear(self) -> None:
        """Drop the selection and invalidate any in-flight load."""
        with self._lock:
            self._generation += 1
            self._current = None
            self._state = ChartState.IDLE
            self._series = None
            self._error = None
        self._notify()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a callback invoked after every state change."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception as e:
                self.logger.error("Chart data listener failed", exception=e)
