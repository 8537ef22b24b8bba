"""
Database models for AirWatch.

Schema designed for time-series telemetry data with these priorities:
1. Append-only ingestion
2. Efficient per-location time-range queries
3. Cheap latest / most-recent-N lookups
"""

from airwatch.models.base import (
    Base,
    engine,
    SessionLocal,
    build_engine,
    build_session_factory,
    init_db,
)
from airwatch.models.reading import AQIReading, ReadingSource, POLLUTANTS, to_unix, from_unix
from airwatch.models.device_reading import DeviceReading

__all__ = [
    'Base',
    'engine',
    'SessionLocal',
    'build_engine',
    'build_session_factory',
    'init_db',
    'AQIReading',
    'ReadingSource',
    'POLLUTANTS',
    'to_unix',
    'from_unix',
    'DeviceReading',
]
