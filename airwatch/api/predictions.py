"""
Forecast API endpoints.

Provides endpoints for:
- GET /api/ml/hourly - Hourly AQI forecast
- GET /api/ml/weekly - Daily min/avg/max AQI forecast
- GET /api/weather/predictions/<location> - Hourly temperature forecast

A location without stored history gets a 503 (see the NoDataError
handler in app.py); no synthetic series is ever served.
"""

import logging
import re
import time
from datetime import datetime, timezone

from flask import Blueprint, current_app, jsonify, request

from airwatch.config import config

logger = logging.getLogger(__name__)

predictions_bp = Blueprint('predictions', __name__, url_prefix='/api')

_TIMEFRAME_RE = re.compile(r'^(\d+)h$')


def _default_location() -> str:
    return config.collection.locations[0] if config.collection.locations else ''


def _parse_hours(timeframe: str) -> int:
    """'24h' -> 24. Raises ValueError for anything else."""
    match = _TIMEFRAME_RE.match(timeframe.strip().lower())
    if not match or int(match.group(1)) < 1:
        raise ValueError(f'invalid timeframe {timeframe!r}')
    return int(match.group(1))


@predictions_bp.route('/ml/hourly', methods=['GET'])
def hourly_forecast():
    """
    Hourly AQI forecast.

    Query parameters:
    - location: string (default: first tracked location)
    - timeframe: '<n>h', capped at the configured maximum (default 24h)
    """
    start_time = time.perf_counter()

    location = request.args.get('location') or _default_location()
    try:
        hours = _parse_hours(request.args.get('timeframe', '24h'))
    except ValueError as e:
        return jsonify({'error': str(e)}), 400

    service = current_app.config['PREDICTION_SERVICE']
    points = service.predict_aqi_hourly(location, hours)

    return jsonify({
        'location': location,
        'strategy': service.aqi_engine.strategy.name,
        'predictions': [p.to_dict() for p in points],
        'generated_at': datetime.now(timezone.utc).isoformat(),
        'query_time_ms': round((time.perf_counter() - start_time) * 1000, 2),
    })


@predictions_bp.route('/ml/weekly', methods=['GET'])
def weekly_forecast():
    """
    Daily AQI forecast, aggregated from the hourly projection.

    Query parameters:
    - location: string (default: first tracked location)
    - days: int, 1-7 (default 7)
    """
    location = request.args.get('location') or _default_location()
    try:
        days = int(request.args.get('days', 7))
    except ValueError:
        return jsonify({'error': 'days must be an integer'}), 400

    service = current_app.config['PREDICTION_SERVICE']
    daily = service.predict_aqi_daily(location, days)

    return jsonify({
        'location': location,
        'days': [d.to_dict() for d in daily],
        'generated_at': datetime.now(timezone.utc).isoformat(),
    })


@predictions_bp.route('/weather/predictions/<location>', methods=['GET'])
def weather_forecast(location: str):
    """Hourly temperature forecast for the next `hours` (default 24)."""
    try:
        hours = int(request.args.get('hours', 24))
    except ValueError:
        return jsonify({'error': 'hours must be an integer'}), 400

    service = current_app.config['PREDICTION_SERVICE']
    points = service.predict_temperature_hourly(location, hours)

    return jsonify({
        'location': location,
        'temperature': [p.to_dict() for p in points],
        'generated_at': datetime.now(timezone.utc).isoformat(),
    })
