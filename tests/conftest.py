"""Pytest configuration and fixtures."""

import copy
from unittest.mock import Mock

import pytest

from src.services.coingecko_client import CoinGeckoClient
from tests.factories import MARKET_RECORDS, build_series


@pytest.fixture
def market_records():
    """Raw /coins/markets records as CoinGecko returns them."""
    return copy.deepcopy(MARKET_RECORDS)


@pytest.fixture
def instruments(market_records):
    """Parsed Instrument snapshots in market cap order."""
    return tuple(CoinGeckoClient._parse_instrument(record) for record in market_records)


@pytest.fixture
def mock_client(instruments):
    """Client double returning the fixture instruments and a 4-point series."""
    client = Mock(spec=CoinGeckoClient)
    client.fetch_markets.return_value = instruments
    client.fetch_market_chart.side_effect = lambda instrument_id, days: build_series(
        [100.0, 105.0, 103.0, 110.0], days=days, instrument_id=instrument_id
    )
    return client
