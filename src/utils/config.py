"""Configuration management for the application."""

import os
from dataclasses import dataclass

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

VALID_PERIODS = (7, 30, 90)
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class MarketAPIConfig:
    """Upstream market data provider configuration."""

    base_url: str = "https://api.coingecko.com/api/v3"
    vs_currency: str = "usd"
    per_page: int = 50
    timeout: float = 10.0  # Seconds per HTTP request


@dataclass
class RefreshConfig:
    """Instrument list polling configuration."""

    interval_seconds: int = 60


@dataclass
class ChartConfig:
    """Chart panel configuration."""

    default_period_days: int = 7
    width: int = 800
    height: int = 300


@dataclass
class LoggingConfig:
    """Structured logging configuration."""

    level: str = "INFO"
    file_path: str | None = None


class Config:
    """Main application configuration."""

    def __init__(self):
        self.market_api = MarketAPIConfig(
            base_url=os.getenv("COINGECKO_BASE_URL", "https://api.coingecko.com/api/v3").rstrip("/"),
            vs_currency=os.getenv("VS_CURRENCY", "usd"),
            per_page=int(os.getenv("MARKETS_PER_PAGE", "50")),
            timeout=float(os.getenv("REQUEST_TIMEOUT", "10")),
        )

        self.refresh = RefreshConfig(
            interval_seconds=int(os.getenv("REFRESH_INTERVAL_SECONDS", "60")),
        )

        self.chart = ChartConfig(
            default_period_days=int(os.getenv("DEFAULT_PERIOD_DAYS", "7")),
            width=int(os.getenv("CHART_WIDTH", "800")),
            height=int(os.getenv("CHART_HEIGHT", "300")),
        )

        self.logging = LoggingConfig(
            level=os.getenv("LOG_LEVEL", "INFO").upper(),
            file_path=os.getenv("LOG_FILE") or None,
        )

    def validate(self) -> bool:
        """
        Validate configuration.

        Returns:
            True if configuration is valid

        Raises:
            ValueError if configuration is invalid
        """
        if not self.market_api.base_url.startswith(("http://", "https://")):
            raise ValueError(f"Invalid COINGECKO_BASE_URL: {self.market_api.base_url}")
        if not 1 <= self.market_api.per_page <= 250:
            raise ValueError("MARKETS_PER_PAGE must be between 1 and 250")
        if self.market_api.timeout <= 0:
            raise ValueError("REQUEST_TIMEOUT must be positive")
        if self.refresh.interval_seconds <= 0:
            raise ValueError("REFRESH_INTERVAL_SECONDS must be positive")
        if self.chart.default_period_days not in VALID_PERIODS:
            raise ValueError(
                f"Invalid DEFAULT_PERIOD_DAYS: {self.chart.default_period_days}. "
                f"Use one of {VALID_PERIODS}"
            )
        if self.chart.width <= 0 or self.chart.height <= 0:
            raise ValueError("CHART_WIDTH and CHART_HEIGHT must be positive")
        if self.logging.level not in LOG_LEVELS:
            raise ValueError(f"Invalid LOG_LEVEL: {self.logging.level}")

        return True


# Global config instance
config = Config()
