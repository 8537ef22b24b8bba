"""
DeviceReading model - samples pushed by field sensors over the live stream.

Kept separate from AQIReading so provider history is never mixed with
device data. Same particulate/weather shape plus device identity.
"""

import time
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import String, Float, Integer, DateTime, Index
from sqlalchemy.orm import Mapped, mapped_column

from airwatch.models.base import Base
from airwatch.models.reading import from_unix


class DeviceReading(Base):
    """Telemetry sample reported by one IoT device."""

    __tablename__ = 'device_readings'

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
    )

    device_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        index=True,
        comment='Reporting device identifier'
    )

    location: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        index=True,
    )

    timestamp: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=lambda: int(time.time()),
        comment='Unix timestamp of receipt'
    )

    pm25: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    pm10: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    temperature: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    humidity: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    # Device health
    battery_level: Mapped[Optional[float]] = mapped_column(
        Float,
        nullable=True,
        comment='Battery charge in percent'
    )

    signal_strength: Mapped[Optional[float]] = mapped_column(
        Float,
        nullable=True,
        comment='Radio signal strength (dBm or percent, device-defined)'
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        Index('ix_device_readings_device_time', 'device_id', 'timestamp', 'id'),
    )

    def __repr__(self) -> str:
        return f'<DeviceReading {self.device_id} @ {self.timestamp}>'

    def to_dict(self) -> dict:
        return {
            'deviceId': self.device_id,
            'location': self.location,
            'timestamp': from_unix(self.timestamp).isoformat(),
            'pm25': self.pm25,
            'pm10': self.pm10,
            'temperature': self.temperature,
            'humidity': self.humidity,
            'batteryLevel': self.battery_level,
            'signalStrength': self.signal_strength,
        }
