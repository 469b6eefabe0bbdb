"""HTTP client for the CoinGecko market data API."""

from datetime import datetime, timezone
from typing import Any

import requests

from src.models.market_data import Instrument, PeriodDays, Sample, Series
from src.utils.config import VALID_PERIODS, MarketAPIConfig, config
from src.utils.errors import BadResponse, NetworkFailure
from src.utils.logger import StructuredLogger


class CoinGeckoClient:
    """Fetches instrument snapshots and price history from CoinGecko."""

    def __init__(self, api_config: MarketAPIConfig | None = None):
        """
        Initialize the client.

        Args:
            api_config: Provider settings; defaults to the global config
        """
        self.api_config = api_config or config.market_api
        self.base_url = self.api_config.base_url
        self.logger = StructuredLogger("CoinGeckoClient")

    def fetch_markets(self) -> tuple[Instrument, ...]:
        """
        Fetch the top instruments by market cap.

        Returns:
            Instruments in market cap descending order

        Raises:
            NetworkFailure: If the request fails or the body is not JSON
            BadResponse: If the status is not 2xx or the payload is malformed
        """
        params = {
            "vs_currency": self.api_config.vs_currency,
            "order": "market_cap_desc",
            "per_page": self.api_config.per_page,
            "page": 1,
            "sparkline": "false",
            "price_change_percentage": "24h",
        }
        data = self._get_json("/coins/markets", params)
        if not isinstance(data, list):
            raise BadResponse("Expected a list of market records")
        instruments = tuple(self._parse_instrument(record) for record in data)

        self.logger.info(
            "Fetched market snapshot",
            context={"source": "CoinGecko", "result": "success", "count": len(instruments)},
        )
        return instruments

    def fetch_market_chart(self, instrument_id: str, days: PeriodDays) -> Series:
        """
        Fetch the price history of one instrument.

        Args:
            instrument_id: CoinGecko coin id (e.g. "bitcoin")
            days: Period length, one of 7, 30 or 90

        Returns:
            Series of samples in the order delivered (oldest first)

        Raises:
            ValueError: If days is not a supported period
            NetworkFailure: If the request fails or the body is not JSON
            BadResponse: If the status is not 2xx or the payload is malformed
        """
        if days not in VALID_PERIODS:
            raise ValueError(f"Unsupported period: {days}. Use one of {VALID_PERIODS}")

        params = {"vs_currency": self.api_config.vs_currency, "days": days}
        data = self._get_json(f"/coins/{instrument_id}/market_chart", params)
        try:
            samples = tuple(
                Sample(
                    timestamp=datetime.fromtimestamp(millis / 1000, tz=timezone.utc),
                    price=float(price),
                )
                for millis, price in data["prices"]
            )
        except (KeyError, TypeError, ValueError) as e:
            raise BadResponse(f"Malformed market chart payload for {instrument_id}") from e

        self.logger.info(
            "Fetched market chart",
            context={
                "source": "CoinGecko",
                "symbol": instrument_id,
                "days": days,
                "result": "success",
                "samples": len(samples),
            },
        )
        return Series(instrument_id=instrument_id, period_days=days, samples=samples)

    def _get_json(self, path: str, params: dict[str, Any]) -> Any:
        url = f"{self.base_url}{path}"
        try:
            response = requests.get(url, params=params, timeout=self.api_config.timeout)
        except requests.RequestException as e:
            raise NetworkFailure(f"Request to {path} failed: {e}") from e

        if not response.ok:
            raise BadResponse(
                f"{path} returned HTTP {response.status_code}", status_code=response.status_code
            )

        try:
            return response.json()
        except ValueError as e:
            raise NetworkFailure(f"Undecodable response body from {path}") from e

    @staticmethod
    def _parse_instrument(record: dict[str, Any]) -> Instrument:
        try:
            return Instrument(
                id=record["id"],
                name=record["name"],
                symbol=record["symbol"],
                icon_url=record.get("image") or "",
                current_price=record.get("current_price"),
                change_24h_percent=record.get("price_change_percentage_24h"),
                market_cap=record.get("market_cap"),
                volume_24h=record.get("total_volume"),
                rank=record.get("market_cap_rank"),
                high_24h=record.get("high_24h"),
                low_24h=record.get("low_24h"),
            )
        except (KeyError, TypeError, AttributeError) as e:
            raise BadResponse("Malformed instrument record") from e
