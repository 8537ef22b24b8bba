"""
OpenWeather API client - the live telemetry provider.

Handles communication with the OpenWeather REST APIs:
- Geocoding (city name -> lat/lon, cached per client)
- Air Pollution API for pollutant concentrations
- Current Weather API for temperature, humidity, and wind

The provider's own 1-5 index is not used. AQI is computed from PM2.5
with the US EPA breakpoint table (PM10 when PM2.5 is missing) so it is
on the same 0-500 scale as device and historical data.

Any failure is raised as ProviderError so the collector can skip the
location for this cycle.
"""

import logging
import math
import threading
import time
from abc import ABC, abstractmethod
from typing import Dict, Optional, Tuple

import requests

from airwatch.config import config
from airwatch.exceptions import ProviderError
from airwatch.models import AQIReading, ReadingSource

logger = logging.getLogger(__name__)


# US EPA breakpoints: (C_lo, C_hi, I_lo, I_hi)
PM25_BREAKPOINTS = [
    (0.0, 12.0, 0, 50),
    (12.1, 35.4, 51, 100),
    (35.5, 55.4, 101, 150),
    (55.5, 150.4, 151, 200),
    (150.5, 250.4, 201, 300),
    (250.5, 350.4, 301, 400),
    (350.5, 500.4, 401, 500),
]

PM10_BREAKPOINTS = [
    (0, 54, 0, 50),
    (55, 154, 51, 100),
    (155, 254, 101, 150),
    (255, 354, 151, 200),
    (355, 424, 201, 300),
    (425, 504, 301, 400),
    (505, 604, 401, 500),
]


def _sub_index(concentration: float, breakpoints) -> int:
    """Linear interpolation within the matching breakpoint band."""
    for c_lo, c_hi, i_lo, i_hi in breakpoints:
        if c_lo <= concentration <= c_hi:
            return int(math.floor((i_hi - i_lo) / (c_hi - c_lo) * (concentration - c_lo) + i_lo + 0.5))
    # Above the table
    return breakpoints[-1][3]


def calculate_aqi(pm25: Optional[float], pm10: Optional[float] = None) -> Optional[int]:
    """
    US EPA AQI from particulate concentrations (µg/m³).

    PM2.5 is truncated to 0.1 and PM10 to whole units, per EPA practice,
    which also closes the gaps between bands.
    """
    if pm25 is not None and pm25 >= 0:
        return _sub_index(math.floor(pm25 * 10) / 10, PM25_BREAKPOINTS)
    if pm10 is not None and pm10 >= 0:
        return _sub_index(math.floor(pm10), PM10_BREAKPOINTS)
    return None


def _section(payload, key: str) -> dict:
    """Nested JSON object at `key`, or {} when absent or not an object."""
    value = payload.get(key) if isinstance(payload, dict) else None
    return value if isinstance(value, dict) else {}


def _number(value) -> Optional[float]:
    """Numeric JSON value, or None for anything else."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return value


class TelemetryProvider(ABC):
    """Source of fresh readings for the collector."""

    @abstractmethod
    def fetch_reading(self, location: str) -> AQIReading:
        """
        Return one fresh, unsaved reading for a location.

        Raises:
            ProviderError on any network, auth, rate-limit or parse failure
        """
        raise NotImplementedError


class OpenWeatherClient(TelemetryProvider):
    """
    Client for the OpenWeather APIs.

    Handles:
    - Geocoding with an in-memory cache (coordinates never change)
    - Air pollution + current weather lookups
    - Request timeouts so a stuck call cannot stall the collector
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = 'https://api.openweathermap.org',
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()

        # location -> (lat, lon)
        self._coordinates: Dict[str, Tuple[float, float]] = {}
        self._lock = threading.Lock()

        if not api_key:
            logger.warning('OpenWeather API key not configured - live collection disabled')

    @classmethod
    def from_config(cls) -> 'OpenWeatherClient':
        """Create client from application configuration."""
        return cls(
            api_key=config.openweather.api_key,
            base_url=config.openweather.base_url,
            timeout=config.openweather.timeout_seconds,
        )

    def _get(self, location: str, path: str, params: dict):
        """GET a JSON document, mapping every failure to ProviderError."""
        url = f'{self.base_url}{path}'
        query = dict(params, appid=self.api_key)

        logger.debug(f'Fetching {url} params={params}')

        try:
            response = self.session.get(url, params=query, timeout=self.timeout)
            response.raise_for_status()
            return response.json()

        except requests.exceptions.Timeout as e:
            logger.error(f'OpenWeather timeout for {location}')
            raise ProviderError(location, 'request timed out') from e
        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            if status == 429:
                logger.warning('OpenWeather rate limit exceeded')
            elif status == 401:
                logger.error('OpenWeather rejected the API key')
            else:
                logger.error(f'OpenWeather API error: {status}')
            raise ProviderError(location, f'HTTP {status}') from e
        except requests.exceptions.RequestException as e:
            logger.error(f'OpenWeather request failed: {e}')
            raise ProviderError(location, str(e)) from e
        except ValueError as e:
            raise ProviderError(location, 'invalid JSON response') from e

    def geocode(self, location: str) -> Tuple[float, float]:
        """Resolve a city name to (lat, lon)."""
        with self._lock:
            cached = self._coordinates.get(location)
        if cached:
            return cached

        results = self._get(location, '/geo/1.0/direct', {'q': location, 'limit': 1})
        if not results:
            raise ProviderError(location, 'location not found')

        try:
            coords = (float(results[0]['lat']), float(results[0]['lon']))
        except (KeyError, TypeError, ValueError, IndexError) as e:
            raise ProviderError(location, 'malformed geocoding response') from e

        with self._lock:
            self._coordinates[location] = coords
        return coords

    def fetch_reading(self, location: str) -> AQIReading:
        """Fetch pollution and weather for a location as an unsaved reading."""
        if not self.api_key:
            raise ProviderError(location, 'OPENWEATHER_API_KEY is not set')

        lat, lon = self.geocode(location)
        coords = {'lat': lat, 'lon': lon}

        pollution = self._get(location, '/data/2.5/air_pollution', coords)
        try:
            components = pollution['list'][0]['components']
        except (KeyError, IndexError, TypeError) as e:
            raise ProviderError(location, 'malformed air pollution response') from e
        if not isinstance(components, dict):
            raise ProviderError(location, 'malformed air pollution response')

        pm25 = _number(components.get('pm2_5'))
        pm10 = _number(components.get('pm10'))
        aqi = calculate_aqi(pm25, pm10)
        if aqi is None:
            raise ProviderError(location, 'no particulate data in response')

        # Weather is optional; a failure here keeps the pollution reading
        temperature = humidity = wind_speed = None
        try:
            weather = self._get(location, '/data/2.5/weather', dict(coords, units='metric'))
            main = _section(weather, 'main')
            temperature = _number(main.get('temp'))
            humidity = _number(main.get('humidity'))
            wind_speed = _number(_section(weather, 'wind').get('speed'))
        except ProviderError as e:
            logger.warning(f'Weather unavailable, storing pollution only: {e}')

        return AQIReading(
            location=location,
            timestamp=int(time.time()),
            aqi=aqi,
            pm25=pm25,
            pm10=pm10,
            co=_number(components.get('co')),
            o3=_number(components.get('o3')),
            no2=_number(components.get('no2')),
            so2=_number(components.get('so2')),
            temperature=temperature,
            humidity=humidity,
            wind_speed=wind_speed,
            source=ReadingSource.LIVE_PROVIDER.value,
        )
