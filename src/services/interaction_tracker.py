"""Hover tracking over a rendered price chart."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from src.models.market_data import Series
from src.services.chart_geometry import GeometryFrame, sample_index_at
from src.services.formatter import format_hover_date, format_price


@dataclass(frozen=True)
class HoverState:
    """The hovered sample and where its marker is drawn."""

    sample_index: int
    pixel_x: float
    pixel_y: float


@dataclass(frozen=True)
class Tooltip:
    """Tooltip content for the hovered sample."""

    timestamp: datetime
    price: float
    date_label: str
    price_label: str


class InteractionTracker:
    """
    Two-state hover machine: Idle (hover is None) or Hovering(index).

    The tracker is bound to one series and its frame; binding a new pair
    through reset() always returns it to Idle.
    """

    def __init__(self, series: Optional[Series] = None, frame: Optional[GeometryFrame] = None):
        self._series = series
        self._frame = frame
        self._hover: Optional[HoverState] = None

    @property
    def hover(self) -> Optional[HoverState]:
        return self._hover

    @property
    def is_hovering(self) -> bool:
        return self._hover is not None

    def reset(self, series: Optional[Series] = None, frame: Optional[GeometryFrame] = None) -> None:
        """Bind a replacement series (or none) and go Idle."""
        self._series = series
        self._frame = frame
        self._hover = None

    def enter(self, index: int) -> Optional[HoverState]:
        """
        Pointer entered the hit region of sample `index`.

        Raises:
            IndexError: If index is not a sample of the bound series
        """
        if self._frame is None:
            return None
        if not 0 <= index < self._frame.sample_count:
            raise IndexError(f"Sample index {index} out of range")
        pixel_x, pixel_y = self._frame.points[index]
        self._hover = HoverState(sample_index=index, pixel_x=pixel_x, pixel_y=pixel_y)
        return self._hover

    def pointer_move(self, x: float, y: float) -> Optional[HoverState]:
        """Resolve a pointer position to a hit region, or go Idle outside the plot."""
        if self._frame is None or not self._frame.viewport.contains(x, y):
            self.leave()
            return None
        return self.enter(sample_index_at(self._frame, x))

    def leave(self) -> None:
        self._hover = None

    def tooltip(self) -> Optional[Tooltip]:
        if self._hover is None or self._series is None:
            return None
        sample = self._series.samples[self._hover.sample_index]
        return Tooltip(
            timestamp=sample.timestamp,
            price=sample.price,
            date_label=format_hover_date(sample.timestamp),
            price_label=format_price(sample.price),
        )
