"""Display formatting for prices, magnitudes, percentages and chart labels."""

import math
from datetime import datetime, timezone
from typing import Optional

EMPTY_VALUE = "—"


def _check_finite(value: float) -> None:
    if not math.isfinite(value):
        raise ValueError(f"Cannot format non-finite value: {value!r}")


def format_price(price: Optional[float]) -> str:
    """
    Format a USD price with precision that suits its magnitude.

    Args:
        price: Price in USD; None and zero render as "$0.00"

    Returns:
        "$0.000053", "$0.4231" or "$64,123.45" style strings

    Raises:
        ValueError: If price is NaN or infinite
    """
    if not price:
        return "$0.00"
    _check_finite(price)
    if price < 0:
        return "-" + format_price(-price)
    if price < 0.01:
        return f"${price:.6f}"
    if price < 1:
        return f"${price:.4f}"
    return f"${price:,.2f}"


def format_compact_magnitude(value: Optional[float]) -> str:
    """Format a large dollar amount with a T/B/M/K suffix ("$1.23T")."""
    if not value:
        return EMPTY_VALUE
    _check_finite(value)
    for threshold, suffix in ((1e12, "T"), (1e9, "B"), (1e6, "M"), (1e3, "K")):
        if value >= threshold:
            return f"${value / threshold:.2f}{suffix}"
    return f"${value:.2f}"


def format_percent_change(change: Optional[float]) -> str:
    """Signed percentage with two decimals, e.g. "+2.35%"."""
    if not change:
        return EMPTY_VALUE
    _check_finite(change)
    sign = "+" if change > 0 else ""
    return f"{sign}{change:.2f}%"


def format_rank(rank: int) -> str:
    # Single digit ranks are zero padded so the list column lines up
    return f"0{rank}" if rank < 10 else str(rank)


def format_axis_price(price: float) -> str:
    """Y-axis tick label: "$64.1k", "$0.4231" or "$42"; negatives as "-$0.2500"."""
    if price < 0:
        return f"-{format_axis_price(-price)}"
    if price >= 1000:
        return f"${price / 1000:.1f}k"
    if price < 1:
        return f"${price:.4f}"
    return f"${price:.0f}"


def _as_utc(timestamp: datetime) -> datetime:
    if timestamp.tzinfo is None:
        return timestamp.replace(tzinfo=timezone.utc)
    return timestamp.astimezone(timezone.utc)


def format_axis_date(timestamp: datetime) -> str:
    """X-axis tick label, e.g. "Oct 5"."""
    timestamp = _as_utc(timestamp)
    return f"{timestamp:%b} {timestamp.day}"


def format_hover_date(timestamp: datetime) -> str:
    """Tooltip date, e.g. "Oct 05, 2026"."""
    return f"{_as_utc(timestamp):%b %d, %Y}"
