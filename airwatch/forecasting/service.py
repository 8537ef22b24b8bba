"""
Prediction service - turns stored history into time-stamped forecasts.

Reads a most-recent-first window from the ReadingStore, runs the
ForecastEngine over it, and attaches a timestamp to each projected
value. When a location has no usable history, NoDataError is raised
so consumers can report that no forecast is available.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

from airwatch.config import config
from airwatch.exceptions import NoDataError
from airwatch.forecasting.engine import ForecastEngine, HoltLinearForecaster, round_half_up
from airwatch.store import ReadingStore

logger = logging.getLogger(__name__)

WEEKDAYS = ('Mon', 'Tue', 'Wed', 'Thu', 'Fri', 'Sat', 'Sun')


@dataclass
class ForecastPoint:
    """One projected value at a future instant."""
    time: datetime
    predicted: int
    confidence: int

    def to_dict(self) -> dict:
        return {
            'time': self.time.isoformat(),
            'predicted': self.predicted,
            'confidence': self.confidence,
        }


@dataclass
class DailyForecast:
    """Per-day summary of an hourly forecast."""
    day: str
    date: str
    min: int
    avg: int
    max: int
    predicted: int

    def to_dict(self) -> dict:
        return {
            'day': self.day,
            'date': self.date,
            'min': self.min,
            'avg': self.avg,
            'max': self.max,
            'predicted': self.predicted,
        }


def build_engines(strategy: str, ar_order: int):
    """(aqi_engine, temperature_engine) for the configured strategy."""
    if strategy == HoltLinearForecaster.name:
        return (
            ForecastEngine(HoltLinearForecaster(confidence_slope=3.0)),
            ForecastEngine(HoltLinearForecaster(confidence_slope=2.0)),
        )
    engine = ForecastEngine.from_name(strategy, order=ar_order)
    return engine, engine


class PredictionService:
    """
    Forecast consumer over the reading store.

    Usage:
        service = PredictionService(store)
        points = service.predict_aqi_hourly('delhi', hours=24)
    """

    def __init__(
        self,
        store: ReadingStore,
        aqi_engine: Optional[ForecastEngine] = None,
        temperature_engine: Optional[ForecastEngine] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        default_aqi, default_temp = build_engines(
            config.forecast.strategy, config.forecast.ar_order
        )
        self.aqi_engine = aqi_engine or default_aqi
        self.temperature_engine = temperature_engine or default_temp
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def _hourly_points(self, forecast: List[int], confidence: int) -> List[ForecastPoint]:
        now = self._clock()
        return [
            ForecastPoint(
                time=now + timedelta(hours=i + 1),
                predicted=value,
                confidence=confidence,
            )
            for i, value in enumerate(forecast)
        ]

    def aqi_series(self, location: str, window: Optional[int] = None) -> List[int]:
        """Recent AQI values for a location, most recent first."""
        window = window or config.forecast.aqi_history_window
        readings = self.store.recent(location, window)
        if not readings:
            raise NoDataError(location)
        return [r.aqi for r in readings]

    def predict_aqi_hourly(self, location: str, hours: int = 24) -> List[ForecastPoint]:
        """Hourly AQI forecast; horizon is capped at the configured maximum."""
        horizon = max(1, min(hours, config.forecast.max_horizon_hours))
        series = self.aqi_series(location)

        result = self.aqi_engine.forecast(series, horizon)
        logger.debug(
            f'AQI forecast for {location}: {len(series)} points -> '
            f'{horizon}h, confidence {result.confidence}'
        )
        return self._hourly_points(result.forecast, result.confidence)

    def predict_aqi_daily(self, location: str, days: int = 7) -> List[DailyForecast]:
        """Daily min/avg/max summary of an hourly AQI forecast."""
        days = max(1, min(days, config.forecast.max_days))
        series = self.aqi_series(location)

        result = self.aqi_engine.forecast(series, days * 24)
        today = self._clock().date()

        daily = []
        for d in range(days):
            chunk = result.forecast[d * 24:(d + 1) * 24]
            avg = round_half_up(sum(chunk) / len(chunk))
            date = today + timedelta(days=d)
            daily.append(DailyForecast(
                day=WEEKDAYS[date.weekday()],
                date=date.isoformat(),
                min=min(chunk),
                avg=avg,
                max=max(chunk),
                predicted=avg,
            ))
        return daily

    def predict_temperature_hourly(self, location: str, hours: int = 24) -> List[ForecastPoint]:
        """
        Hourly temperature forecast.

        Readings without a temperature are skipped rather than imputed.
        """
        horizon = max(1, min(hours, config.forecast.max_horizon_hours))
        readings = self.store.recent(location, config.forecast.temperature_history_window)
        series = [r.temperature for r in readings if r.temperature is not None]
        if not series:
            raise NoDataError(location, f'No temperature history for {location!r}')

        result = self.temperature_engine.forecast(series, horizon)
        return self._hourly_points(result.forecast, result.confidence)
