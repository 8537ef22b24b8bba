"""
Short-horizon forecasting using NumPy.

Two interchangeable strategies share one contract: given a numeric series
ordered most-recent-first and a horizon, return `horizon` integer point
forecasts and a single confidence figure for the whole horizon.

1. ARForecaster: AR(p) with a simplified Yule-Walker fit biased toward
   stability, plus mean-reversion damping on every projected step.
2. HoltLinearForecaster: double exponential smoothing (level + trend).

Both are pure functions of their input. No I/O happens here; callers
read the series from the store first.
"""

import logging
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import numpy as np

from airwatch.exceptions import InsufficientHistoryError, NoDataError

logger = logging.getLogger(__name__)


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives."""
    return int(math.floor(value + 0.5))


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


@dataclass
class ForecastResult:
    """Point forecasts plus one confidence score (percent) for the horizon."""
    forecast: List[int]
    confidence: int

    def to_dict(self) -> dict:
        return {'forecast': list(self.forecast), 'confidence': self.confidence}


@dataclass
class ARModel:
    """
    Fitted AR(p) parameters.

    `intercept` is the value predicted when every lagged deviation is zero:
    the series mean for a fitted model, the last observation for the
    degenerate one.
    """
    coefficients: np.ndarray
    intercept: float
    mean: float
    residual_std: float
    residuals: np.ndarray = field(default_factory=lambda: np.zeros(0))

    @property
    def is_degenerate(self) -> bool:
        return self.residuals.size == 0


class Forecaster(ABC):
    """Forecasting strategy interface."""

    name: str = 'base'

    def forecast(self, series: Sequence[float], horizon: int) -> ForecastResult:
        """
        Forecast `horizon` steps from a most-recent-first series.

        Raises:
            NoDataError: the series is empty
            ValueError: horizon < 1
        """
        if horizon < 1:
            raise ValueError(f'horizon must be >= 1, got {horizon}')

        values = np.asarray(series, dtype=np.float64)
        if values.size == 0:
            raise NoDataError(message='Cannot forecast from an empty series')
        if not np.all(np.isfinite(values)):
            raise ValueError('series contains non-finite values')

        # Chronological order (oldest first)
        return self._forecast(values[::-1], horizon)

    @abstractmethod
    def _forecast(self, data: np.ndarray, horizon: int) -> ForecastResult:
        raise NotImplementedError

    def confidence(self, residual_std: float) -> int:
        """Single score for the horizon, falling linearly with residual spread."""
        raw = round_half_up(self.confidence_base - self.confidence_slope * residual_std)
        return int(clamp(raw, self.confidence_min, self.confidence_max))


class ARForecaster(Forecaster):
    """
    Auto-regressive forecaster with mean-reversion damping.

    Coefficients come from autocorrelation ratios rather than a full
    Yule-Walker solve: coef[i] = 0.5 * acf[i+1] / acf[0], with an extra
    0.3 on the first lag. Each projected value is blended 70/30 with the
    historical mean so long horizons settle toward it.
    """

    name = 'ar'

    def __init__(
        self,
        order: int = 3,
        coefficient_scale: float = 0.5,
        first_lag_bias: float = 0.3,
        reversion_weight: float = 0.3,
        confidence_base: float = 85.0,
        confidence_slope: float = 2.0,
        confidence_min: int = 40,
        confidence_max: int = 90,
    ):
        if order < 1:
            raise ValueError(f'order must be >= 1, got {order}')
        self.order = order
        self.coefficient_scale = coefficient_scale
        self.first_lag_bias = first_lag_bias
        self.reversion_weight = reversion_weight
        self.confidence_base = confidence_base
        self.confidence_slope = confidence_slope
        self.confidence_min = confidence_min
        self.confidence_max = confidence_max

    @property
    def min_points(self) -> int:
        """Shortest series that gets a fitted (non-degenerate) model."""
        return self.order + 2

    def fit(self, data: np.ndarray, strict: bool = False) -> ARModel:
        """
        Fit on a chronological (oldest first) series.

        Short series get the degenerate last-value model unless `strict`,
        in which case InsufficientHistoryError is raised.
        """
        p = self.order
        n = data.size

        if n < self.min_points:
            if strict:
                raise InsufficientHistoryError(n, self.min_points)
            last = float(data[-1])
            logger.debug(f'Insufficient history ({n} < {self.min_points}), using last value')
            return ARModel(
                coefficients=np.zeros(p),
                intercept=last,
                mean=last,
                residual_std=0.0,
            )

        mean = float(np.mean(data))
        centered = data - mean

        # Empirical autocorrelation at lags 0..p
        acf = np.array([
            np.mean(centered[lag:] * centered[:n - lag])
            for lag in range(p + 1)
        ])

        coefficients = np.zeros(p)
        if acf[0] != 0:
            coefficients = (acf[1:] / acf[0]) * self.coefficient_scale
            coefficients[0] += self.first_lag_bias

        # One-step-ahead residuals: row t holds centered[t-1], ..., centered[t-p]
        lagged = np.column_stack([
            centered[p - j - 1:n - j - 1] for j in range(p)
        ])
        residuals = centered[p:] - lagged @ coefficients

        return ARModel(
            coefficients=coefficients,
            intercept=mean,
            mean=mean,
            residual_std=float(np.std(residuals)),
            residuals=residuals,
        )

    def _forecast(self, data: np.ndarray, horizon: int) -> ForecastResult:
        model = self.fit(data)
        p = self.order

        working = list(data)
        forecasts = []
        for _ in range(horizon):
            pred = model.intercept
            for j in range(min(p, len(working))):
                pred += model.coefficients[j] * (working[-j - 1] - model.mean)

            pred = pred * (1 - self.reversion_weight) + model.mean * self.reversion_weight

            forecasts.append(round_half_up(pred))
            # Later steps condition on the unrounded projection
            working.append(pred)

        return ForecastResult(forecast=forecasts, confidence=self.confidence(model.residual_std))


class HoltLinearForecaster(Forecaster):
    """
    Holt's linear trend (double exponential smoothing).

    level_t = alpha * y_t + (1 - alpha) * (level + trend)
    trend_t = beta * (level_t - level) + (1 - beta) * trend
    forecast(h) = level + trend * h
    """

    name = 'holt'

    def __init__(
        self,
        alpha: float = 0.6,
        beta: float = 0.2,
        confidence_base: float = 90.0,
        confidence_slope: float = 3.0,
        confidence_min: int = 30,
        confidence_max: int = 95,
    ):
        self.alpha = alpha
        self.beta = beta
        self.confidence_base = confidence_base
        self.confidence_slope = confidence_slope
        self.confidence_min = confidence_min
        self.confidence_max = confidence_max

    def smooth(self, data: np.ndarray):
        """Return (level, trend, fitted) after running over the series."""
        level = float(data[0])
        trend = float(data[1] - data[0]) if data.size > 1 else 0.0
        fitted = [level + trend]

        for value in data[1:]:
            prev_level = level
            level = self.alpha * value + (1 - self.alpha) * (level + trend)
            trend = self.beta * (level - prev_level) + (1 - self.beta) * trend
            fitted.append(level + trend)

        return level, trend, np.array(fitted)

    def _forecast(self, data: np.ndarray, horizon: int) -> ForecastResult:
        level, trend, fitted = self.smooth(data)

        forecasts = [round_half_up(level + trend * h) for h in range(1, horizon + 1)]
        residual_std = float(np.std(data - fitted))

        return ForecastResult(forecast=forecasts, confidence=self.confidence(residual_std))


STRATEGIES = {
    ARForecaster.name: ARForecaster,
    HoltLinearForecaster.name: HoltLinearForecaster,
}


class ForecastEngine:
    """
    Facade over a pluggable forecasting strategy.

    Usage:
        engine = ForecastEngine()               # AR(3)
        result = engine.forecast([62, 58, 60, 55, 50], horizon=3)
        result.forecast, result.confidence
    """

    def __init__(self, strategy: Optional[Forecaster] = None):
        self.strategy = strategy or ARForecaster()

    @classmethod
    def from_name(cls, name: str, **kwargs) -> 'ForecastEngine':
        """Build an engine from a strategy name ('ar' or 'holt')."""
        try:
            strategy_cls = STRATEGIES[name]
        except KeyError:
            raise ValueError(
                f'Unknown forecast strategy {name!r}; expected one of {sorted(STRATEGIES)}'
            ) from None
        return cls(strategy_cls(**kwargs))

    def forecast(self, series: Sequence[float], horizon: int) -> ForecastResult:
        return self.strategy.forecast(series, horizon)
