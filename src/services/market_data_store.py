"""Market data store: owns the instrument list and keeps it fresh on a schedule."""

import threading
import time
from enum import Enum
from typing import Callable, Optional

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from src.models.market_data import Instrument
from src.services.coingecko_client import CoinGeckoClient
from src.utils.config import config
from src.utils.errors import MarketDataError
from src.utils.logger import StructuredLogger
from src.utils.trace_context import traced

Listener = Callable[["MarketDataStore"], None]


class LoadState(str, Enum):
    """Lifecycle of the instrument list."""

    LOADING = "loading"
    READY = "ready"
    REFRESHING = "refreshing"
    FAILED = "failed"


class MarketDataStore:
    """
    Authoritative, periodically refreshed list of instruments.

    The list is an immutable tuple replaced wholesale on every successful
    refresh. A failed refresh keeps the last good list and only sets the
    error message.
    """

    ERROR_MESSAGE = "Failed to load data. Please try again."
    JOB_ID = "market_refresh"

    def __init__(
        self,
        client: CoinGeckoClient | None = None,
        interval_seconds: int | None = None,
        scheduler: BackgroundScheduler | None = None,
    ):
        """
        Initialize the store. No request is made until start() or refresh().

        Args:
            client: Market data client
            interval_seconds: Seconds between refreshes (defaults to config)
            scheduler: Scheduler to run the refresh job on; when omitted the
                store creates and owns one
        """
        self.client = client or CoinGeckoClient()
        self.interval_seconds = interval_seconds or config.refresh.interval_seconds
        self._owns_scheduler = scheduler is None
        self.scheduler = scheduler or BackgroundScheduler()
        self.is_running = False
        self.logger = StructuredLogger("MarketDataStore")

        self._state_lock = threading.Lock()
        self._in_flight = threading.Lock()
        self._instruments: tuple[Instrument, ...] = ()
        self._state = LoadState.LOADING
        self._error: Optional[str] = None
        self._attempted = False
        self._generation = 0
        self._listeners: list[Listener] = []

    @property
    def instruments(self) -> tuple[Instrument, ...]:
        return self._instruments

    @property
    def state(self) -> LoadState:
        return self._state

    @property
    def error(self) -> Optional[str]:
        return self._error

    @property
    def is_loading(self) -> bool:
        return self._state is LoadState.LOADING

    def start(self) -> None:
        """Fetch immediately, then refresh every interval until stop()."""
        if self.is_running:
            return

        self.refresh()

        self.scheduler.add_job(
            self.refresh,
            IntervalTrigger(seconds=self.interval_seconds),
            id=self.JOB_ID,
            name="Market Data Refresh",
            replace_existing=True,
            coalesce=True,
        )
        if not self.scheduler.running:
            self.scheduler.start()
        self.is_running = True
        self.logger.info(
            "Market refresh scheduled",
            context={"interval_seconds": self.interval_seconds},
        )

    def stop(self) -> None:
        """
        Cancel the refresh job, shutting down the scheduler if the store owns it.

        A refresh still in flight keeps running but its result is discarded.
        """
        if not self.is_running:
            return
        with self._state_lock:
            self._generation += 1
        try:
            self.scheduler.remove_job(self.JOB_ID)
        except JobLookupError:
            pass
        if self._owns_scheduler and self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        self.is_running = False
        self.logger.info("Market refresh stopped")

    def __enter__(self) -> "MarketDataStore":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()

    def retry(self) -> bool:
        """User-triggered refresh after a failure."""
        return self.refresh()

    def refresh(self) -> bool:
        """
        Fetch the instrument list once.

        Returns:
            False if a refresh was already in flight and this one was
            coalesced into it, True otherwise
        """
        if not self._in_flight.acquire(blocking=False):
            self.logger.debug("Refresh already in flight, skipping")
            return False

        try:
            with traced():
                generation = self._begin_refresh()
                start_time = time.time()
                try:
                    instruments = self.client.fetch_markets()
                except MarketDataError as e:
                    self._fail(e, start_time, generation)
                except Exception as e:
                    self.logger.error(
                        "Unexpected error while refreshing market data",
                        context={"result": "failed"},
                        exception=e,
                    )
                    self._fail(e, start_time, generation)
                else:
                    self._succeed(instruments, start_time, generation)
            return True
        finally:
            self._in_flight.release()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register a callback invoked after every state change.

        Returns:
            A function that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _begin_refresh(self) -> int:
        with self._state_lock:
            self._state = LoadState.REFRESHING if self._attempted else LoadState.LOADING
            self._attempted = True
            generation = self._generation
        self._notify()
        return generation

    def _is_stale(self, generation: int) -> bool:
        if generation == self._generation:
            return False
        self.logger.debug(
            "Discarding refresh result after stop",
            context={"generation": generation, "current_generation": self._generation},
        )
        return True

    def _succeed(
        self, instruments: tuple[Instrument, ...], start_time: float, generation: int
    ) -> None:
        with self._state_lock:
            if self._is_stale(generation):
                return
            self._instruments = tuple(instruments)
            self._error = None
            self._state = LoadState.READY
        self.logger.info(
            "Instrument list refreshed",
            context={
                "result": "success",
                "count": len(instruments),
                "duration_ms": (time.time() - start_time) * 1000,
            },
        )
        self._notify()

    def _fail(self, error: Exception, start_time: float, generation: int) -> None:
        with self._state_lock:
            if self._is_stale(generation):
                return
            self._error = self.ERROR_MESSAGE
            self._state = LoadState.FAILED
            kept = len(self._instruments)
        self.logger.warning(
            "Instrument list refresh failed, keeping last good list",
            context={
                "result": "failed",
                "error_type": type(error).__name__,
                "status_code": getattr(error, "status_code", None),
                "kept_instruments": kept,
                "duration_ms": (time.time() - start_time) * 1000,
            },
        )
        self._notify()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception as e:
                self.logger.error("Market data listener failed", exception=e)
