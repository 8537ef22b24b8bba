"""
AQIReading model - per-location environmental time series.

Every collected observation is appended here, enabling:
- Latest-value lookups for the current conditions view
- Most-recent-N windows for forecasting
- Time-range queries for trends and export

Schema optimized for:
- Append-only inserts (readings are never updated)
- Efficient (location, timestamp) range scans
"""

import time
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import String, Float, Integer, DateTime, Index
from sqlalchemy.orm import Mapped, mapped_column

from airwatch.models.base import Base


class ReadingSource(str, Enum):
    """
    Where a reading came from.

    Cached-fallback logic only trusts LIVE_PROVIDER readings; device
    readings are never served as a substitute for provider data.
    """
    LIVE_PROVIDER = 'live-provider'
    CACHED = 'cached'
    DEVICE = 'device'


POLLUTANTS = ('pm25', 'pm10', 'co', 'o3', 'no2', 'so2')


def to_unix(value) -> int:
    """Normalize a datetime (naive treated as UTC) or number to a Unix timestamp."""
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return int(value.timestamp())
    return int(value)


def from_unix(value: int) -> datetime:
    return datetime.fromtimestamp(value, tz=timezone.utc)


class AQIReading(Base):
    """
    One air-quality and weather observation for a location.

    Pollutant concentrations are in µg/m³. Weather fields are optional
    because not every provider call returns them.
    """

    __tablename__ = 'aqi_readings'

    # Surrogate key; also breaks ties between equal timestamps
    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
    )

    location: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        index=True,
        comment='Location key (city name)'
    )

    # Unix timestamp - the time-series dimension
    timestamp: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=lambda: int(time.time()),
        comment='Unix timestamp of observation'
    )

    aqi: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment='Air quality index'
    )

    # Pollutant breakdown
    pm25: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    pm10: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    co: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    o3: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    no2: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    so2: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    # Weather
    temperature: Mapped[Optional[float]] = mapped_column(
        Float,
        nullable=True,
        comment='Temperature in Celsius'
    )

    humidity: Mapped[Optional[float]] = mapped_column(
        Float,
        nullable=True,
        comment='Relative humidity in percent'
    )

    wind_speed: Mapped[Optional[float]] = mapped_column(
        Float,
        nullable=True,
        comment='Wind speed in m/s'
    )

    source: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=ReadingSource.LIVE_PROVIDER.value,
        comment='live-provider | cached | device'
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        comment='Record creation time'
    )

    __table_args__ = (
        # Latest / recent-N / range queries all scan one location by time
        Index('ix_aqi_readings_location_time', 'location', 'timestamp', 'id'),
    )

    def __repr__(self) -> str:
        return f'<AQIReading {self.location} @ {self.timestamp} aqi={self.aqi}>'

    @property
    def observed_at(self) -> datetime:
        return from_unix(self.timestamp)

    @property
    def pollutants(self) -> dict:
        return {name: getattr(self, name) for name in POLLUTANTS}

    def to_dict(self) -> dict:
        """Convert to JSON-serializable dict for API responses."""
        return {
            'id': self.id,
            'location': self.location,
            'timestamp': self.observed_at.isoformat(),
            'aqi': self.aqi,
            'pollutants': self.pollutants,
            'weather': {
                'temperature': self.temperature,
                'humidity': self.humidity,
                'wind_speed': self.wind_speed,
            },
            'source': self.source,
        }
