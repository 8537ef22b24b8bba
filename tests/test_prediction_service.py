"""Tests for airwatch.forecasting.service.PredictionService."""

from datetime import datetime, timedelta, timezone

import pytest

from airwatch.exceptions import NoDataError
from airwatch.forecasting import ARForecaster, ForecastEngine, PredictionService
from airwatch.forecasting.service import build_engines

NOW = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)  # a Monday


@pytest.fixture
def service(store):
    engine = ForecastEngine(ARForecaster(order=3))
    return PredictionService(store, aqi_engine=engine, temperature_engine=engine, clock=lambda: NOW)


class TestHourly:

    def test_points_are_hourly_from_now(self, service, seed_series):
        seed_series('delhi', [62, 58, 60, 55, 50])

        points = service.predict_aqi_hourly('delhi', hours=3)

        assert [p.predicted for p in points] == [58, 57, 56]
        assert {p.confidence for p in points} == {79}
        assert [p.time for p in points] == [NOW + timedelta(hours=h) for h in (1, 2, 3)]

    def test_horizon_is_capped(self, service, seed_series):
        seed_series('delhi', [62, 58, 60, 55, 50])
        assert len(service.predict_aqi_hourly('delhi', hours=500)) == 72

    def test_no_history(self, service):
        with pytest.raises(NoDataError):
            service.predict_aqi_hourly('atlantis')

    def test_only_the_requested_location_is_used(self, service, seed_series):
        seed_series('delhi', [62, 58, 60, 55, 50])
        seed_series('mumbai', [20])

        points = service.predict_aqi_hourly('mumbai', hours=2)

        assert [p.predicted for p in points] == [20, 20]

    def test_to_dict(self, service, seed_series):
        seed_series('delhi', [62, 58, 60, 55, 50])

        data = service.predict_aqi_hourly('delhi', hours=1)[0].to_dict()

        assert data == {
            'time': (NOW + timedelta(hours=1)).isoformat(),
            'predicted': 58,
            'confidence': 79,
        }


class TestDaily:

    def test_daily_summary(self, service, seed_series):
        seed_series('delhi', [62, 58, 60, 55, 50])

        days = service.predict_aqi_daily('delhi', days=2)

        assert [d.day for d in days] == ['Mon', 'Tue']
        assert [d.date for d in days] == ['2024-01-01', '2024-01-02']
        for d in days:
            assert d.min <= d.avg <= d.max
            assert d.predicted == d.avg

    def test_days_are_capped(self, service, seed_series):
        seed_series('delhi', [62, 58, 60, 55, 50])
        assert len(service.predict_aqi_daily('delhi', days=30)) == 7

    def test_flat_history(self, service, seed_series):
        seed_series('delhi', [80])

        day = service.predict_aqi_daily('delhi', days=1)[0]

        assert (day.min, day.avg, day.max) == (80, 80, 80)


class TestTemperature:

    def test_skips_readings_without_temperature(self, service, store, make_reading):
        store.append(make_reading(aqi=50, timestamp=1000, temperature=24.0))
        store.append(make_reading(aqi=50, timestamp=2000))
        store.append(make_reading(aqi=50, timestamp=3000, temperature=26.0))

        points = service.predict_temperature_hourly('delhi', hours=2)

        # Two usable points is below the AR minimum, so the last value repeats
        assert [p.predicted for p in points] == [26, 26]

    def test_no_temperature_history(self, service, seed_series):
        seed_series('delhi', [62, 58, 60])
        with pytest.raises(NoDataError):
            service.predict_temperature_hourly('delhi')


class TestBuildEngines:

    def test_ar_shares_one_engine(self):
        aqi, temperature = build_engines('ar', 4)
        assert aqi is temperature
        assert aqi.strategy.order == 4

    def test_holt_uses_per_quantity_confidence(self):
        aqi, temperature = build_engines('holt', 3)
        assert aqi.strategy.confidence_slope == 3.0
        assert temperature.strategy.confidence_slope == 2.0
