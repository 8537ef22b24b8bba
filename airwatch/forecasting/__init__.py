"""
Forecasting module for AirWatch.

Provides short-horizon forecasts of AQI and temperature using NumPy:
- AR(p) with mean-reversion damping (default strategy)
- Holt's linear trend smoothing (alternative strategy)
- Time-stamped hourly and daily predictions over stored history
"""

from airwatch.forecasting.engine import (
    ARForecaster,
    ForecastEngine,
    Forecaster,
    ForecastResult,
    HoltLinearForecaster,
)
from airwatch.forecasting.service import DailyForecast, ForecastPoint, PredictionService

__all__ = [
    'ARForecaster',
    'ForecastEngine',
    'Forecaster',
    'ForecastResult',
    'HoltLinearForecaster',
    'DailyForecast',
    'ForecastPoint',
    'PredictionService',
]
