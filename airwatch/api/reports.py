"""
Reporting API endpoints over stored history.

Provides endpoints for:
- POST /api/export - Field-selected readings over a date range
- POST /api/cities/compare - Fresh readings for several cities at once
- GET /api/weather/trend - Temperature, humidity and wind over a window

Every response is built from stored or freshly collected readings; when
there is nothing to report the endpoint answers 503 rather than filling in
values.
"""

import logging
import time
from datetime import datetime, timezone

from flask import Blueprint, current_app, jsonify, request

from airwatch.api.readings import TIMEFRAMES
from airwatch.config import config
from airwatch.exceptions import ProviderError

logger = logging.getLogger(__name__)

reports_bp = Blueprint('reports', __name__, url_prefix='/api')

MAX_COMPARE_CITIES = 10
EXPORT_FORMATS = ('json', 'csv')


def _parse_instant(value) -> int:
    """ISO-8601 string (a trailing 'Z' is accepted) or Unix seconds -> Unix seconds."""
    if isinstance(value, bool):
        raise ValueError(f'invalid date {value!r}')
    if isinstance(value, (int, float)):
        return int(value)
    if not isinstance(value, str) or not value:
        raise ValueError(f'invalid date {value!r}')

    parsed = datetime.fromisoformat(value.strip().replace('Z', '+00:00'))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return int(parsed.timestamp())


def export_record(reading, data_types: dict, include_metadata: bool) -> dict:
    """Flatten one reading into an export row with only the selected fields."""
    record = {
        'timestamp': reading.observed_at.isoformat(),
        'location': reading.location,
    }
    if data_types.get('aqi'):
        record['aqi'] = reading.aqi
    if data_types.get('pollutants'):
        record.update(reading.pollutants)
    if data_types.get('weather'):
        record['temperature'] = reading.temperature
        record['humidity'] = reading.humidity
        record['windSpeed'] = reading.wind_speed
    if include_metadata:
        record['source'] = reading.source
        record['id'] = reading.id
    return record


@reports_bp.route('/export', methods=['POST'])
def export_readings():
    """
    Export stored readings.

    Body:
        {
            "format": "json" | "csv",
            "dateRange": {"from": <ISO or unix>, "to": <ISO or unix>},
            "dataTypes": {"aqi": bool, "pollutants": bool, "weather": bool},
            "locations": [str],            (default: tracked locations)
            "includeMetadata": bool
        }
    """
    body = request.get_json(silent=True) or {}

    export_format = body.get('format')
    date_range = body.get('dateRange')
    data_types = body.get('dataTypes')

    if not export_format or not isinstance(date_range, dict) or not isinstance(data_types, dict):
        return jsonify({'error': 'Missing required export parameters'}), 400
    if export_format not in EXPORT_FORMATS:
        return jsonify({'error': f'format must be one of {", ".join(EXPORT_FORMATS)}'}), 400

    try:
        start = _parse_instant(date_range.get('from'))
        end = _parse_instant(date_range.get('to'))
    except ValueError as e:
        return jsonify({'error': str(e)}), 400
    if start > end:
        return jsonify({'error': 'dateRange.from must not be after dateRange.to'}), 400

    locations = body.get('locations') or list(config.collection.locations)
    if not isinstance(locations, list) or not all(isinstance(loc, str) for loc in locations):
        return jsonify({'error': 'locations must be a list of strings'}), 400

    include_metadata = bool(body.get('includeMetadata'))
    selected = any(data_types.get(key) for key in ('aqi', 'pollutants', 'weather'))

    store = current_app.config['READING_STORE']
    records = []
    if selected:
        for location in locations:
            for reading in store.range(location, start, end):
                records.append(export_record(reading, data_types, include_metadata))

    if not records:
        return jsonify({
            'error': 'No data available for export',
            'totalRecords': 0,
        }), 503

    logger.info(f'Exported {len(records)} records for {len(locations)} locations')

    return jsonify({
        'data': records,
        'totalRecords': len(records),
        'format': export_format,
        'timestamp': datetime.now(timezone.utc).isoformat(),
    })


@reports_bp.route('/cities/compare', methods=['POST'])
def compare_cities():
    """
    Collect and store a fresh reading for each requested city.

    Body: {"cities": [str, ...]} with at most 10 entries. Cities whose
    provider call fails are listed under "failed" instead of aborting the
    whole comparison.
    """
    body = request.get_json(silent=True) or {}
    cities = body.get('cities')

    if not isinstance(cities, list) or not cities or not all(isinstance(c, str) and c for c in cities):
        return jsonify({'error': 'Cities array is required'}), 400
    if len(cities) > MAX_COMPARE_CITIES:
        return jsonify({'error': f'Maximum {MAX_COMPARE_CITIES} cities allowed'}), 400

    scheduler = current_app.config['COLLECTION_SCHEDULER']
    results = []
    failed = []

    for city in cities:
        try:
            results.append(scheduler.collect_location(city).to_dict())
        except ProviderError as e:
            logger.warning(f'Comparison skipped {city}: {e}')
            failed.append({'location': city, 'error': str(e)})

    if not results:
        return jsonify({'error': 'No city data available', 'failed': failed}), 503

    return jsonify({
        'cities': results,
        'failed': failed,
        'total': len(results),
        'timestamp': datetime.now(timezone.utc).isoformat(),
    })


@reports_bp.route('/weather/trend', methods=['GET'])
def weather_trend():
    """
    Stored weather observations over a trailing window, oldest first.

    Query parameters:
    - location: string (default: first tracked location)
    - timeframe: 24h|7d|30d (default 24h)
    """
    location = request.args.get('location') or (
        config.collection.locations[0] if config.collection.locations else ''
    )
    timeframe = request.args.get('timeframe', '24h')
    window = TIMEFRAMES.get(timeframe)
    if window is None:
        return jsonify({'error': f'timeframe must be one of {", ".join(TIMEFRAMES)}'}), 400

    store = current_app.config['READING_STORE']
    end = int(time.time())
    readings = store.range(location, end - window, end)

    if not readings:
        return jsonify({'error': 'No weather data available', 'location': location}), 503

    return jsonify({
        'location': location,
        'timeframe': timeframe,
        'trend': [
            {
                'time': r.observed_at.isoformat(),
                'temperature': r.temperature,
                'humidity': r.humidity,
                'windSpeed': r.wind_speed,
            }
            for r in readings
        ],
    })
