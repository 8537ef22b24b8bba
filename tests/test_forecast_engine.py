"""Tests for airwatch.forecasting.engine."""

import numpy as np
import pytest

from airwatch.exceptions import InsufficientHistoryError, NoDataError
from airwatch.forecasting import ARForecaster, ForecastEngine, HoltLinearForecaster


SERIES = [62, 58, 60, 55, 50]  # most recent first


class TestARForecaster:

    def test_worked_example(self):
        result = ForecastEngine().forecast(SERIES, horizon=3)

        assert result.forecast == [58, 57, 56]
        assert result.confidence == 79

    def test_fitted_coefficients(self):
        model = ARForecaster(order=3).fit(np.array(SERIES[::-1], dtype=float))

        assert model.mean == pytest.approx(57.0)
        np.testing.assert_allclose(
            model.coefficients, [0.413636, -0.0757576, -0.241477], atol=1e-5
        )
        assert model.residual_std == pytest.approx(3.2067, abs=1e-3)
        assert not model.is_degenerate

    def test_deterministic(self):
        engine = ForecastEngine()
        assert engine.forecast(SERIES, 12) == engine.forecast(SERIES, 12)

    def test_output_length_and_types(self):
        result = ForecastEngine().forecast(SERIES, horizon=24)

        assert len(result.forecast) == 24
        assert all(isinstance(v, int) for v in result.forecast)
        assert isinstance(result.confidence, int)

    def test_long_horizon_reverts_to_mean(self):
        result = ForecastEngine().forecast(SERIES, horizon=48)
        assert result.forecast[-1] == 57

    def test_short_series_repeats_last_value(self):
        result = ForecastEngine().forecast([70, 65], horizon=4)

        assert result.forecast == [70, 70, 70, 70]
        assert result.confidence == 85

    def test_single_value(self):
        assert ForecastEngine().forecast([42], horizon=3).forecast == [42, 42, 42]

    def test_constant_series(self):
        result = ForecastEngine().forecast([50] * 10, horizon=5)

        assert result.forecast == [50] * 5
        assert result.confidence == 85

    def test_confidence_floor(self):
        noisy = np.random.default_rng(3).integers(0, 500, size=40).tolist()
        result = ForecastEngine().forecast(noisy, horizon=3)
        assert result.confidence == 40

    def test_confidence_always_in_bounds(self):
        rng = np.random.default_rng(7)
        for _ in range(20):
            series = rng.integers(0, 500, size=30).tolist()
            result = ForecastEngine().forecast(series, horizon=6)
            assert 40 <= result.confidence <= 90

    def test_strict_fit_rejects_short_history(self):
        with pytest.raises(InsufficientHistoryError) as exc:
            ARForecaster(order=3).fit(np.array([1.0, 2.0]), strict=True)

        assert exc.value.available == 2
        assert exc.value.required == 5

    def test_invalid_order(self):
        with pytest.raises(ValueError):
            ARForecaster(order=0)


class TestHoltLinearForecaster:

    def test_linear_trend_is_extrapolated(self):
        engine = ForecastEngine(HoltLinearForecaster())
        result = engine.forecast([10, 8, 6, 4, 2], horizon=3)

        assert result.forecast == [12, 14, 16]
        assert result.confidence == 90

    def test_confidence_bounds(self):
        engine = ForecastEngine(HoltLinearForecaster())
        result = engine.forecast([0, 300] * 10, horizon=2)
        assert result.confidence == 30

    def test_single_value(self):
        result = ForecastEngine(HoltLinearForecaster()).forecast([33], horizon=2)
        assert result.forecast == [33, 33]


class TestForecastEngine:

    def test_default_strategy_is_ar(self):
        assert ForecastEngine().strategy.name == 'ar'

    def test_from_name(self):
        assert isinstance(ForecastEngine.from_name('holt').strategy, HoltLinearForecaster)
        assert ForecastEngine.from_name('ar', order=2).strategy.order == 2

    def test_unknown_strategy(self):
        with pytest.raises(ValueError):
            ForecastEngine.from_name('lstm')

    def test_empty_series(self):
        with pytest.raises(NoDataError):
            ForecastEngine().forecast([], horizon=3)

    def test_invalid_horizon(self):
        with pytest.raises(ValueError):
            ForecastEngine().forecast(SERIES, horizon=0)

    def test_non_finite_values(self):
        with pytest.raises(ValueError):
            ForecastEngine().forecast([50, float('nan'), 40], horizon=1)

    def test_result_to_dict(self):
        result = ForecastEngine().forecast(SERIES, horizon=3)
        assert result.to_dict() == {'forecast': [58, 57, 56], 'confidence': 79}
