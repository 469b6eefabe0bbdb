"""Market data models for instrument snapshots and historical price series."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal, Optional

PeriodDays = Literal[7, 30, 90]


@dataclass(frozen=True)
class Instrument:
    """One tracked asset as reported by the latest market snapshot."""

    id: str
    name: str
    symbol: str
    icon_url: str = ""
    current_price: Optional[float] = None
    change_24h_percent: Optional[float] = None
    market_cap: Optional[float] = None
    volume_24h: Optional[float] = None
    rank: Optional[int] = None
    high_24h: Optional[float] = None
    low_24h: Optional[float] = None


@dataclass(frozen=True)
class Sample:
    """A single price observation."""

    timestamp: datetime
    price: float


@dataclass(frozen=True)
class Series:
    """Historical price samples for one instrument over one period, oldest first."""

    instrument_id: str
    period_days: PeriodDays
    samples: tuple[Sample, ...] = field(default_factory=tuple)

    def __len__(self) -> int:
        return len(self.samples)

    @property
    def prices(self) -> list[float]:
        return [sample.price for sample in self.samples]

    @property
    def period_change_percent(self) -> Optional[float]:
        """
        Percentage change from the first to the last sample.

        Returns:
            The change in percent, or None when the series is empty or
            either end price is zero
        """
        if not self.samples:
            return None
        first, last = self.samples[0].price, self.samples[-1].price
        if not first or not last:
            return None
        return (last - first) / first * 100
