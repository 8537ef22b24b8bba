"""
AirWatch Backend Package.

Environmental telemetry platform built with Flask, SQLAlchemy, and NumPy.

Modules:
    api/          REST endpoints for readings, forecasts, and system status
    models/       SQLAlchemy ORM models (AQIReading, DeviceReading)
    ingestion/    OpenWeather provider client and periodic collection scheduler
    forecasting/  NumPy-based AR / Holt forecasting and prediction service
    stream/       WebSocket fan-out of live device readings
    store.py      Per-location time-series store over the ORM models
    config.py     Centralized configuration from environment variables
"""

__version__ = '1.0.0'
