"""Search filtering over the instrument list."""

from typing import Sequence

from src.models.market_data import Instrument


def matches(instrument: Instrument, term: str) -> bool:
    term = term.lower()
    return term in instrument.name.lower() or term in instrument.symbol.lower()


def filter_instruments(instruments: Sequence[Instrument], term: str) -> tuple[Instrument, ...]:
    """
    Instruments whose name or symbol contains the search term, case-insensitively.

    Args:
        instruments: Instruments in store order (market cap descending)
        term: Free-text search; empty matches everything

    Returns:
        Matching instruments in their original order
    """
    if not term:
        return tuple(instruments)
    return tuple(instrument for instrument in instruments if matches(instrument, term))
