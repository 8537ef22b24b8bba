"""
Metrics API endpoints.

Provides endpoints for:
- GET /api/metrics/status - System status and health
"""

import logging
import time
from datetime import datetime, timezone

from flask import Blueprint, current_app, jsonify

from airwatch.config import config

logger = logging.getLogger(__name__)

metrics_bp = Blueprint('metrics', __name__, url_prefix='/api/metrics')


@metrics_bp.route('/status', methods=['GET'])
def get_system_status():
    """
    Get system health and status information.

    Returns:
    - Collection scheduler status
    - Stream subscriber statistics
    - Database connectivity
    - Configuration info
    """
    start_time = time.perf_counter()

    scheduler = current_app.config.get('COLLECTION_SCHEDULER')
    scheduler_stats = scheduler.stats if scheduler else {'running': False}

    broadcaster = current_app.config.get('BROADCASTER')
    stream_stats = broadcaster.stats if broadcaster else {}

    store = current_app.config['READING_STORE']
    db_ok = store.ping()
    if not db_ok:
        logger.error('Database health check failed')

    query_time_ms = (time.perf_counter() - start_time) * 1000

    return jsonify({
        'status': 'healthy' if (db_ok and scheduler_stats.get('running')) else 'degraded',
        'database': {
            'connected': db_ok,
            'type': 'sqlite' if config.database.is_sqlite else 'postgresql',
        },
        'collection': scheduler_stats,
        'stream': stream_stats,
        'config': {
            'forecast_strategy': config.forecast.strategy,
            'ar_order': config.forecast.ar_order,
            'openweather_configured': config.openweather.is_configured,
        },
        'timestamp': datetime.now(timezone.utc).isoformat(),
        'query_time_ms': round(query_time_ms, 2),
    })
