"""
Configuration management for AirWatch.

Loads settings from environment variables with sensible defaults.
All configuration is centralized here to avoid magic strings scattered
throughout the codebase.
"""

import os
from dataclasses import dataclass, field
from typing import Tuple

from dotenv import load_dotenv

load_dotenv()

DEFAULT_LOCATIONS = 'bengaluru,delhi,mumbai,chennai,hyderabad'


def _parse_locations(value: str) -> Tuple[str, ...]:
    """Parse 'a,b,c' string into a tuple of stripped, non-empty names."""
    if not value:
        return ()
    return tuple(part.strip() for part in value.split(',') if part.strip())


def _parse_flag(value: str) -> bool:
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


@dataclass(frozen=True)
class OpenWeatherConfig:
    """OpenWeather API configuration."""
    api_key: str = os.getenv('OPENWEATHER_API_KEY') or ''
    base_url: str = 'https://api.openweathermap.org'
    timeout_seconds: float = float(os.getenv('PROVIDER_TIMEOUT_SECONDS', '10'))

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)


@dataclass(frozen=True)
class DatabaseConfig:
    """Database configuration."""
    url: str = os.getenv('DATABASE_URL', 'sqlite:///airwatch.db')

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith('sqlite')


@dataclass(frozen=True)
class CollectionConfig:
    """Periodic collection settings."""
    interval_seconds: int = int(os.getenv('COLLECTION_INTERVAL_SECONDS', '900'))
    locations: Tuple[str, ...] = field(
        default_factory=lambda: _parse_locations(
            os.getenv('TRACKED_LOCATIONS', DEFAULT_LOCATIONS)
        )
    )

    # Seconds to wait for the collector thread on stop
    join_timeout_seconds: float = 5.0


@dataclass(frozen=True)
class ForecastConfig:
    """Forecasting settings."""
    strategy: str = os.getenv('FORECAST_STRATEGY', 'ar').lower()
    ar_order: int = int(os.getenv('AR_ORDER', '3'))

    # Readings pulled from the store per forecast
    aqi_history_window: int = 48
    temperature_history_window: int = 72

    max_horizon_hours: int = 72
    max_days: int = 7


@dataclass(frozen=True)
class StreamConfig:
    """Live device stream settings."""
    echo_to_sender: bool = _parse_flag(os.getenv('STREAM_ECHO_TO_SENDER', '1'))

    # Longest wait for a subscriber still busy with an earlier write
    send_timeout_seconds: float = float(os.getenv('STREAM_SEND_TIMEOUT_SECONDS', '5'))


@dataclass(frozen=True)
class AppConfig:
    """Main application configuration."""
    openweather: OpenWeatherConfig
    database: DatabaseConfig
    collection: CollectionConfig
    forecast: ForecastConfig
    stream: StreamConfig

    # Flask settings
    secret_key: str
    debug: bool


def load_config() -> AppConfig:
    """Load and validate all configuration."""
    return AppConfig(
        openweather=OpenWeatherConfig(),
        database=DatabaseConfig(),
        collection=CollectionConfig(),
        forecast=ForecastConfig(),
        stream=StreamConfig(),
        secret_key=os.getenv('SECRET_KEY', 'dev-key-change-in-prod'),
        debug=os.getenv('FLASK_DEBUG', '0') == '1',
    )


# Singleton instance
config = load_config()
