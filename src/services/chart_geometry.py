"""Price chart geometry: maps a price series onto SVG-style pixel paths and axis ticks."""

import bisect
import math
from dataclasses import dataclass, field
from typing import Sequence

from src.models.market_data import Series
from src.services.formatter import format_axis_date, format_axis_price
from src.utils.errors import EmptySeries

UP_COLOR = "#00ff88"
DOWN_COLOR = "#ff4466"

Y_TICK_COUNT = 5
# Longer periods have denser series, so they get fewer date labels
X_TICK_COUNTS = {7: 7, 30: 6, 90: 5}


@dataclass(frozen=True)
class Padding:
    """Space between the viewport edge and the plot area, in pixels."""

    top: float = 20
    right: float = 20
    bottom: float = 40
    left: float = 60


@dataclass(frozen=True)
class Viewport:
    """Fixed drawing surface the chart is laid out on."""

    width: float = 800
    height: float = 300
    padding: Padding = field(default_factory=Padding)

    @property
    def plot_width(self) -> float:
        return self.width - self.padding.left - self.padding.right

    @property
    def plot_height(self) -> float:
        return self.height - self.padding.top - self.padding.bottom

    @property
    def plot_left(self) -> float:
        return self.padding.left

    @property
    def plot_right(self) -> float:
        return self.width - self.padding.right

    @property
    def plot_top(self) -> float:
        return self.padding.top

    @property
    def plot_bottom(self) -> float:
        return self.height - self.padding.bottom

    def contains(self, x: float, y: float) -> bool:
        """Whether a pointer position lies inside the plot area."""
        return (
            self.plot_left <= x <= self.plot_right
            and self.plot_top <= y <= self.plot_bottom
        )


DEFAULT_VIEWPORT = Viewport()


@dataclass(frozen=True)
class AxisTick:
    """One labelled axis tick; value is a price (y axis) or a sample index (x axis)."""

    value: float
    position: float
    label: str


@dataclass(frozen=True)
class GeometryFrame:
    """Drawable representation of a series at a fixed viewport."""

    viewport: Viewport
    line_path: str
    area_path: str
    direction: str
    line_color: str
    points: tuple[tuple[float, float], ...]
    y_ticks: tuple[AxisTick, ...]
    x_ticks: tuple[AxisTick, ...]
    min_price: float
    max_price: float

    @property
    def sample_count(self) -> int:
        return len(self.points)


class ChartScale:
    """Linear mapping from (sample index, price) to pixel coordinates."""

    def __init__(self, prices: Sequence[float], viewport: Viewport = DEFAULT_VIEWPORT):
        if not prices:
            raise EmptySeries("Cannot scale an empty price series")
        self.viewport = viewport
        self.count = len(prices)
        self.min_price = min(prices)
        self.max_price = max(prices)
        # A flat series would otherwise divide by zero
        self.price_range = (self.max_price - self.min_price) or 1

    def scale_x(self, index: int) -> float:
        if self.count == 1:
            return self.viewport.plot_left
        return self.viewport.plot_left + index / (self.count - 1) * self.viewport.plot_width

    def scale_y(self, price: float) -> float:
        viewport = self.viewport
        return (
            viewport.plot_top
            + viewport.plot_height
            - (price - self.min_price) / self.price_range * viewport.plot_height
        )


def _fmt(value: float) -> str:
    return f"{value:.1f}"


def build_line_path(points: Sequence[tuple[float, float]]) -> str:
    """Move-to the first point, line-to every following point, in order."""
    return " ".join(
        f"{'M' if i == 0 else 'L'} {_fmt(x)},{_fmt(y)}" for i, (x, y) in enumerate(points)
    )


def build_area_path(
    line_path: str, points: Sequence[tuple[float, float]], viewport: Viewport
) -> str:
    """Close the line path along the bottom of the plot area for a gradient fill."""
    last_x = points[-1][0]
    bottom = _fmt(viewport.plot_bottom)
    return f"{line_path} L {_fmt(last_x)},{bottom} L {_fmt(viewport.plot_left)},{bottom} Z"


def price_direction(prices: Sequence[float]) -> str:
    """
    "up" when the last price is at or above the first, "down" otherwise.

    Raises:
        EmptySeries: If there are no prices
    """
    if not prices:
        raise EmptySeries("Cannot determine the direction of an empty series")
    return "up" if prices[-1] - prices[0] >= 0 else "down"


def build_y_ticks(scale: ChartScale, count: int = Y_TICK_COUNT) -> tuple[AxisTick, ...]:
    """
    Evenly spaced price ticks from the maximum (top) down to the minimum.

    A flat series is scaled over a range of 1, which can reach below zero for
    prices under $1; tick prices of a non-negative series are clamped at 0.
    """
    viewport = scale.viewport
    step = viewport.plot_height / (count - 1)
    lowest = 0.0 if scale.min_price >= 0 else -math.inf
    ticks = []
    for i in range(count):
        price = max(lowest, scale.max_price - i / (count - 1) * scale.price_range)
        ticks.append(
            AxisTick(value=price, position=viewport.plot_top + i * step, label=format_axis_price(price))
        )
    return tuple(ticks)


def x_tick_indices(sample_count: int, tick_count: int) -> list[int]:
    """
    Sample indices spread evenly over [0, sample_count - 1].

    Indices are rounded half up; repeats (more ticks than samples) are
    collapsed keeping their order.
    """
    if sample_count <= 0:
        raise EmptySeries("Cannot place ticks on an empty series")
    if sample_count == 1 or tick_count < 2:
        return [0]
    last = sample_count - 1
    indices = [math.floor(i * last / (tick_count - 1) + 0.5) for i in range(tick_count)]
    return list(dict.fromkeys(indices))


def build_x_ticks(series: Series, scale: ChartScale) -> tuple[AxisTick, ...]:
    tick_count = X_TICK_COUNTS.get(series.period_days, X_TICK_COUNTS[90])
    return tuple(
        AxisTick(
            value=index,
            position=scale.scale_x(index),
            label=format_axis_date(series.samples[index].timestamp),
        )
        for index in x_tick_indices(len(series), tick_count)
    )


def build_frame(series: Series, viewport: Viewport = DEFAULT_VIEWPORT) -> GeometryFrame:
    """
    Compute the full drawable frame for a series.

    Args:
        series: Price series with at least one sample
        viewport: Drawing surface dimensions

    Returns:
        GeometryFrame with paths, colour and axis ticks

    Raises:
        EmptySeries: If the series has no samples
    """
    if not series.samples:
        raise EmptySeries(f"No price samples for {series.instrument_id} ({series.period_days}d)")

    prices = series.prices
    scale = ChartScale(prices, viewport)
    points = tuple((scale.scale_x(i), scale.scale_y(price)) for i, price in enumerate(prices))
    line_path = build_line_path(points)
    direction = price_direction(prices)

    return GeometryFrame(
        viewport=viewport,
        line_path=line_path,
        area_path=build_area_path(line_path, points, viewport),
        direction=direction,
        line_color=UP_COLOR if direction == "up" else DOWN_COLOR,
        points=points,
        y_ticks=build_y_ticks(scale),
        x_ticks=build_x_ticks(series, scale),
        min_price=scale.min_price,
        max_price=scale.max_price,
    )


def hit_regions(frame: GeometryFrame) -> list[tuple[float, float]]:
    """
    Hover bands, one per sample, partitioning the plot width.

    Band i is the half-open interval [start, end) around sample i, split at
    the midpoints between neighbouring samples; the last band also includes
    the right plot edge. Adjacent bands share their boundary value, which
    belongs to the later band. A single sample owns the whole plot.
    """
    viewport = frame.viewport
    xs = [x for x, _ in frame.points]
    edges = [viewport.plot_left]
    edges += [(left + right) / 2 for left, right in zip(xs, xs[1:])]
    edges.append(viewport.plot_right)
    return list(zip(edges, edges[1:]))


def sample_index_at(frame: GeometryFrame, x: float) -> int:
    """Index of the hover band containing pixel x (clamped to the plot)."""
    starts = [start for start, _ in hit_regions(frame)]
    return min(max(bisect.bisect_right(starts, x) - 1, 0), len(starts) - 1)
