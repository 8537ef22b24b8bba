"""
API module for AirWatch.

Provides REST endpoints for:
- Current, historical and trend air-quality readings
- AQI and temperature forecasts
- Exports, multi-city comparison and weather trends
- System metrics and health

And the /ws WebSocket endpoint for the live device stream.
"""

from airwatch.api.readings import readings_bp
from airwatch.api.predictions import predictions_bp
from airwatch.api.metrics import metrics_bp
from airwatch.api.reports import reports_bp
from airwatch.api.stream import serve_connection, sock

__all__ = ['readings_bp', 'predictions_bp', 'metrics_bp', 'reports_bp', 'serve_connection', 'sock']
