"""
Reading store - queryable history of readings per location and device.

Wraps the ORM tables with the access patterns the pipeline needs:
- append:  time-series insert, never an update
- latest:  most recent reading for a location (or None)
- recent:  most-recent-N window, newest first (forecast input)
- range:   inclusive time window, oldest first (trends, export)

Absence is always explicit: None for latest, an empty list otherwise.
Callers never receive a zero-filled series.

Concurrency: each operation uses its own short-lived session, so the
collector thread, the device stream and API requests can share one
store instance. Ordering within a location comes from the
(location, timestamp, id) index; equal timestamps fall back to insert order.
"""

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Generator, List, Optional, Union

from sqlalchemy import select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from airwatch.exceptions import StoreUnavailableError
from airwatch.models import AQIReading, DeviceReading, SessionLocal, to_unix

logger = logging.getLogger(__name__)

Instant = Union[datetime, int, float]


class ReadingStore:
    """
    Append-only telemetry store backed by SQLAlchemy.

    Any database failure is raised as StoreUnavailableError; there is
    no fallback for unavailable history.
    """

    def __init__(self, session_factory: Optional[sessionmaker] = None):
        self._session_factory = session_factory or SessionLocal

    @contextmanager
    def _session(self, commit: bool = False) -> Generator[Session, None, None]:
        session = self._session_factory()
        try:
            yield session
            if commit:
                session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f'Reading store failure: {e}')
            raise StoreUnavailableError(str(e)) from e
        finally:
            session.close()

    # -------------------------------------------------------------------------
    # Provider readings
    # -------------------------------------------------------------------------

    def append(self, reading: AQIReading) -> AQIReading:
        """
        Insert a new reading.

        Only presence of the required fields is checked. Duplicate
        timestamps are stored as distinct samples.
        """
        if not reading.location:
            raise ValueError('reading.location is required')
        if reading.aqi is None:
            raise ValueError('reading.aqi is required')

        with self._session(commit=True) as session:
            session.add(reading)

        logger.debug(f'Stored {reading!r}')
        return reading

    def latest(self, location: str, source: Optional[str] = None) -> Optional[AQIReading]:
        """
        Most recent reading for a location, or None if there is none.

        With `source`, only readings carrying that source tag are considered.
        """
        readings = self.recent(location, 1, source=source)
        return readings[0] if readings else None

    def recent(self, location: str, count: int, source: Optional[str] = None) -> List[AQIReading]:
        """Up to `count` most recent readings, most recent first."""
        if count <= 0:
            return []

        stmt = select(AQIReading).where(AQIReading.location == location)
        if source is not None:
            stmt = stmt.where(AQIReading.source == source)
        stmt = stmt.order_by(AQIReading.timestamp.desc(), AQIReading.id.desc()).limit(count)
        with self._session() as session:
            return list(session.execute(stmt).scalars().all())

    def range(self, location: str, start: Instant, end: Instant) -> List[AQIReading]:
        """Readings with start <= timestamp <= end, oldest first."""
        stmt = (
            select(AQIReading)
            .where(AQIReading.location == location)
            .where(AQIReading.timestamp >= to_unix(start))
            .where(AQIReading.timestamp <= to_unix(end))
            .order_by(AQIReading.timestamp.asc(), AQIReading.id.asc())
        )
        with self._session() as session:
            return list(session.execute(stmt).scalars().all())

    def locations(self) -> List[str]:
        """Distinct locations that have at least one reading."""
        stmt = select(AQIReading.location).distinct().order_by(AQIReading.location)
        with self._session() as session:
            return list(session.execute(stmt).scalars().all())

    # -------------------------------------------------------------------------
    # Device readings
    # -------------------------------------------------------------------------

    def append_device_reading(self, reading: DeviceReading) -> DeviceReading:
        """Insert a device-originated sample."""
        if not reading.device_id:
            raise ValueError('reading.device_id is required')
        if not reading.location:
            raise ValueError('reading.location is required')

        with self._session(commit=True) as session:
            session.add(reading)

        logger.debug(f'Stored {reading!r}')
        return reading

    def recent_device_readings(self, device_id: str, count: int) -> List[DeviceReading]:
        """Up to `count` most recent samples from one device, most recent first."""
        if count <= 0:
            return []

        stmt = (
            select(DeviceReading)
            .where(DeviceReading.device_id == device_id)
            .order_by(DeviceReading.timestamp.desc(), DeviceReading.id.desc())
            .limit(count)
        )
        with self._session() as session:
            return list(session.execute(stmt).scalars().all())

    def ping(self) -> bool:
        """Check database connectivity."""
        try:
            with self._session() as session:
                session.execute(text('SELECT 1'))
            return True
        except StoreUnavailableError:
            return False
