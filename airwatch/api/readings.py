"""
Air-quality reading API endpoints.

Provides endpoints for:
- GET /api/aqi/<location> - Current reading (live, with cached fallback)
- GET /api/aqi/<location>/history - Most recent stored readings
- GET /api/aqi/<location>/trend - Readings over a time window
- POST /api/aqi/<location>/collect - Collect one reading on demand
"""

import logging
import time
from datetime import datetime, timezone

from flask import Blueprint, current_app, jsonify, request

from airwatch.exceptions import ProviderError
from airwatch.models import ReadingSource

logger = logging.getLogger(__name__)

readings_bp = Blueprint('readings', __name__, url_prefix='/api/aqi')

# Trend window name -> seconds
TIMEFRAMES = {
    '24h': 24 * 3600,
    '7d': 7 * 24 * 3600,
    '30d': 30 * 24 * 3600,
}


@readings_bp.route('/<location>', methods=['GET'])
def get_current_reading(location: str):
    """
    Get the current reading for a location.

    Fetches a fresh reading from the provider and stores it. If the
    provider fails, the latest stored provider reading is served with
    source "cached". Device readings are never used as a fallback.
    """
    scheduler = current_app.config['COLLECTION_SCHEDULER']
    store = current_app.config['READING_STORE']

    try:
        reading = scheduler.collect_location(location)
        return jsonify(reading.to_dict())
    except ProviderError as e:
        logger.warning(f'Live fetch failed, trying cache: {e}')

    cached = store.latest(location, source=ReadingSource.LIVE_PROVIDER.value)
    if cached is None:
        return jsonify({
            'error': 'Air quality data unavailable',
            'location': location,
        }), 503

    data = cached.to_dict()
    data['source'] = ReadingSource.CACHED.value
    return jsonify(data)


@readings_bp.route('/<location>/history', methods=['GET'])
def get_history(location: str):
    """
    Get stored readings, most recent first.

    Query parameters:
    - limit: int, max readings to return (default 24, max 500)
    """
    try:
        limit = min(int(request.args.get('limit', 24)), 500)
    except ValueError:
        return jsonify({'error': 'limit must be an integer'}), 400

    store = current_app.config['READING_STORE']
    readings = store.recent(location, limit)

    return jsonify({
        'location': location,
        'count': len(readings),
        'readings': [r.to_dict() for r in readings],
    })


@readings_bp.route('/<location>/trend', methods=['GET'])
def get_trend(location: str):
    """
    Get readings over a trailing window, oldest first, with a summary.

    Query parameters:
    - timeframe: 24h|7d|30d (default 24h)
    """
    timeframe = request.args.get('timeframe', '24h')
    window = TIMEFRAMES.get(timeframe)
    if window is None:
        return jsonify({
            'error': f'timeframe must be one of {", ".join(TIMEFRAMES)}',
        }), 400

    store = current_app.config['READING_STORE']
    end = int(time.time())
    readings = store.range(location, end - window, end)

    if not readings:
        return jsonify({
            'error': 'No data available for the requested timeframe',
            'location': location,
            'timeframe': timeframe,
        }), 503

    values = [r.aqi for r in readings]

    return jsonify({
        'location': location,
        'timeframe': timeframe,
        'count': len(readings),
        'summary': {
            'min': min(values),
            'max': max(values),
            'avg': round(sum(values) / len(values), 1),
        },
        'readings': [r.to_dict() for r in readings],
    })


@readings_bp.route('/<location>/collect', methods=['POST'])
def collect_now(location: str):
    """Collect and store one reading for a location immediately."""
    scheduler = current_app.config['COLLECTION_SCHEDULER']

    try:
        reading = scheduler.collect_location(location)
    except ProviderError as e:
        return jsonify({'error': str(e), 'location': location}), 502

    return jsonify({
        'status': 'collected',
        'reading': reading.to_dict(),
        'timestamp': datetime.now(timezone.utc).isoformat(),
    }), 201
