"""Top-level tracker session: search, selection and period state plus view models."""

import threading
from dataclasses import dataclass
from typing import Any, Callable, Optional

from apscheduler.schedulers.background import BackgroundScheduler

from src.models.market_data import Instrument, Series
from src.services.chart_data_store import ChartDataStore, ChartRequest, ChartState
from src.services.chart_geometry import GeometryFrame, Viewport, build_frame
from src.services.coingecko_client import CoinGeckoClient
from src.services.filter_engine import filter_instruments
from src.services.formatter import (
    EMPTY_VALUE,
    format_compact_magnitude,
    format_percent_change,
    format_price,
    format_rank,
)
from src.services.interaction_tracker import HoverState, InteractionTracker, Tooltip
from src.services.market_data_store import MarketDataStore
from src.utils.config import VALID_PERIODS, config
from src.utils.logger import StructuredLogger

Dispatch = Callable[..., Any]


@dataclass(frozen=True)
class InstrumentRow:
    """One list row, every numeric field already formatted."""

    id: str
    rank: str
    symbol: str
    name: str
    icon_url: str
    price: str
    change_24h: str
    change_direction: str
    market_cap: str
    volume: str


@dataclass(frozen=True)
class ListView:
    total: int
    rows: tuple[InstrumentRow, ...]
    loading: bool
    error: Optional[str]
    show_empty_state: bool


@dataclass(frozen=True)
class FooterStat:
    label: str
    value: str
    direction: Optional[str] = None


@dataclass(frozen=True)
class ChartView:
    """Everything the chart panel renders for the selected instrument."""

    instrument_id: str
    symbol: str
    name: str
    icon_url: str
    price: str
    period_days: int
    periods: tuple[int, ...]
    period_change: Optional[str]
    period_direction: Optional[str]
    loading: bool
    error: Optional[str]
    frame: Optional[GeometryFrame]
    hover: Optional[HoverState]
    tooltip: Optional[Tooltip]
    footer: tuple[FooterStat, ...]


def build_row(instrument: Instrument, position: int) -> InstrumentRow:
    change = instrument.change_24h_percent
    return InstrumentRow(
        id=instrument.id,
        rank=format_rank(instrument.rank or position),
        symbol=instrument.symbol.upper(),
        name=instrument.name,
        icon_url=instrument.icon_url,
        price=format_price(instrument.current_price),
        change_24h=format_percent_change(change),
        change_direction="positive" if change and change > 0 else "negative",
        market_cap=format_compact_magnitude(instrument.market_cap),
        volume=format_compact_magnitude(instrument.volume_24h),
    )


def build_footer(instrument: Instrument) -> tuple[FooterStat, ...]:
    change = instrument.change_24h_percent
    return (
        FooterStat("RANK", f"#{instrument.rank}" if instrument.rank else EMPTY_VALUE),
        FooterStat(
            "24H CHANGE",
            f"{change:.2f}%" if change is not None else EMPTY_VALUE,
            "up" if change and change > 0 else "down",
        ),
        FooterStat("24H HIGH", format_price(instrument.high_24h)),
        FooterStat("24H LOW", format_price(instrument.low_24h)),
    )


def describe_period_change(series: Optional[Series]) -> tuple[Optional[str], Optional[str]]:
    """Chart header change, e.g. ("▲ 2.35% (7d)", "up")."""
    if series is None:
        return None, None
    change = series.period_change_percent
    if change is None:
        return None, None
    direction = "up" if change > 0 else "down"
    arrow = "▲" if direction == "up" else "▼"
    return f"{arrow} {abs(change):.2f}% ({series.period_days}d)", direction


class TrackerSession:
    """
    Owns the user's search term, selection and chart period.

    Renderers call the input methods (set_search, select, set_period,
    pointer_move, ...) and read list_view() / chart_view(); they never touch
    the stores directly.
    """

    def __init__(
        self,
        client: CoinGeckoClient | None = None,
        scheduler: BackgroundScheduler | None = None,
        dispatch: Dispatch | None = None,
        viewport: Viewport | None = None,
        default_period: int | None = None,
    ):
        """
        Initialize the session.

        Args:
            client: Market data client shared by both stores
            scheduler: Scheduler for the refresh job and chart loads
            dispatch: Callable(fn, *args) used to run chart loads; defaults
                to a one-off job on the scheduler
            viewport: Chart drawing surface
            default_period: Period selected when an instrument is opened
        """
        self.client = client or CoinGeckoClient()
        self.scheduler = scheduler or BackgroundScheduler()
        self.market_store = MarketDataStore(self.client, scheduler=self.scheduler)
        self.chart_store = ChartDataStore(self.client)
        self.viewport = viewport or Viewport(width=config.chart.width, height=config.chart.height)
        self.default_period = default_period or config.chart.default_period_days
        if self.default_period not in VALID_PERIODS:
            raise ValueError(f"Unsupported period: {self.default_period}")
        self._dispatch = dispatch or self._dispatch_on_scheduler
        self.logger = StructuredLogger("TrackerSession")

        self._lock = threading.RLock()
        self._search = ""
        self._selected: Optional[Instrument] = None
        self._period = self.default_period
        self._frame: Optional[GeometryFrame] = None
        self._tracker = InteractionTracker()
        self._listeners: list[Callable[["TrackerSession"], None]] = []

        self.market_store.subscribe(self._on_market_change)
        self.chart_store.subscribe(self._on_chart_change)

    # Lifecycle

    def start(self) -> None:
        self.market_store.start()
        if not self.scheduler.running:
            self.scheduler.start()

    def stop(self) -> None:
        self.market_store.stop()
        self.chart_store.clear()
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)

    def __enter__(self) -> "TrackerSession":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()

    def subscribe(self, listener: Callable[["TrackerSession"], None]) -> Callable[[], None]:
        """Register a callback invoked whenever a view may have changed."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # User input

    @property
    def search_term(self) -> str:
        return self._search

    @property
    def period(self) -> int:
        return self._period

    @property
    def selected_instrument(self) -> Optional[Instrument]:
        return self._selected

    def set_search(self, term: str) -> None:
        with self._lock:
            self._search = term or ""
        self._notify()

    def visible_instruments(self) -> tuple[Instrument, ...]:
        return filter_instruments(self.market_store.instruments, self._search)

    def select(self, instrument_id: str) -> None:
        """
        Open the chart for an instrument at the default period.

        Raises:
            KeyError: If the instrument is not in the current list
        """
        instrument = self._find(instrument_id)
        if instrument is None:
            raise KeyError(f"Unknown instrument: {instrument_id}")
        with self._lock:
            self._selected = instrument
            self._period = self.default_period
        self._request_chart()

    def deselect(self) -> None:
        with self._lock:
            self._selected = None
            self._period = self.default_period
        self.chart_store.clear()

    def set_period(self, days: int) -> None:
        """
        Switch the chart period; a no-op when it is already active.

        Raises:
            ValueError: If days is not 7, 30 or 90
        """
        if days not in VALID_PERIODS:
            raise ValueError(f"Unsupported period: {days}. Use one of {VALID_PERIODS}")
        with self._lock:
            if days == self._period and self.chart_store.key is not None:
                return
            self._period = days
        if self._selected is not None:
            self._request_chart()

    def retry(self) -> bool:
        return self.market_store.retry()

    def retry_chart(self) -> None:
        ticket = self.chart_store.retry()
        if ticket is not None:
            self._dispatch(self.chart_store.load, ticket)

    def pointer_move(self, x: float, y: float) -> Optional[HoverState]:
        with self._lock:
            hover = self._tracker.pointer_move(x, y)
        self._notify()
        return hover

    def pointer_leave(self) -> None:
        with self._lock:
            self._tracker.leave()
        self._notify()

    # Views

    def list_view(self) -> ListView:
        store = self.market_store
        visible = self.visible_instruments()
        rows = tuple(build_row(instrument, i + 1) for i, instrument in enumerate(visible))
        return ListView(
            total=len(visible),
            rows=rows,
            loading=store.is_loading,
            error=store.error,
            show_empty_state=not store.is_loading and not rows,
        )

    def chart_view(self) -> Optional[ChartView]:
        with self._lock:
            instrument = self._selected
            if instrument is None:
                return None
            series = self.chart_store.series
            period_change, period_direction = describe_period_change(series)
            return ChartView(
                instrument_id=instrument.id,
                symbol=instrument.symbol.upper(),
                name=instrument.name,
                icon_url=instrument.icon_url,
                price=format_price(instrument.current_price),
                period_days=self._period,
                periods=VALID_PERIODS,
                period_change=period_change,
                period_direction=period_direction,
                loading=self.chart_store.state is ChartState.LOADING,
                error=self.chart_store.error,
                frame=self._frame,
                hover=self._tracker.hover,
                tooltip=self._tracker.tooltip(),
                footer=build_footer(instrument),
            )

    # Internals

    def _find(self, instrument_id: str) -> Optional[Instrument]:
        for instrument in self.market_store.instruments:
            if instrument.id == instrument_id:
                return instrument
        return None

    def _request_chart(self) -> None:
        with self._lock:
            instrument_id = self._selected.id
            period = self._period
        ticket = self.chart_store.request(instrument_id, period)
        self._dispatch(self.chart_store.load, ticket)

    def _dispatch_on_scheduler(self, fn: Callable[[ChartRequest], bool], ticket: ChartRequest) -> None:
        self.scheduler.add_job(fn, args=[ticket], name="Chart Data Load")

    def _on_market_change(self, store: MarketDataStore) -> None:
        # Detail fields follow the newest snapshot carrying the selected id
        with self._lock:
            if self._selected is not None:
                latest = self._find(self._selected.id)
                if latest is not None:
                    self._selected = latest
        self._notify()

    def _on_chart_change(self, store: ChartDataStore) -> None:
        with self._lock:
            series = store.series
            if store.state is ChartState.READY and series is not None:
                self._frame = build_frame(series, self.viewport)
                self._tracker.reset(series, self._frame)
            else:
                self._frame = None
                self._tracker.reset()
        self._notify()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception as e:
                self.logger.error("Session listener failed", exception=e)
