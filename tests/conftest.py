"""
Shared fixtures.

Every test gets its own in-memory SQLite database; nothing touches the
DATABASE_URL file or the network.
"""

import os
import time

os.environ['DATABASE_URL'] = 'sqlite://'
os.environ['OPENWEATHER_API_KEY'] = ''

import pytest

from airwatch.models import AQIReading, build_engine, build_session_factory, init_db
from airwatch.store import ReadingStore


@pytest.fixture
def engine():
    engine = build_engine('sqlite://')
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def store(engine):
    return ReadingStore(build_session_factory(engine))


@pytest.fixture
def make_reading():
    """Build an unsaved reading; timestamps default to now."""
    def _make(location='delhi', aqi=100, timestamp=None, **fields):
        return AQIReading(
            location=location,
            aqi=aqi,
            timestamp=int(time.time()) if timestamp is None else timestamp,
            **fields,
        )
    return _make


@pytest.fixture
def seed_series(store, make_reading):
    """
    Store a series given most-recent-first, one reading per hour ending now.

    seed_series('delhi', [62, 58, 60]) stores 60 two hours ago, 58 one hour
    ago and 62 now.
    """
    def _seed(location, values, **fields):
        now = int(time.time())
        for age, value in reversed(list(enumerate(values))):
            store.append(make_reading(location=location, aqi=value, timestamp=now - age * 3600, **fields))
    return _seed
