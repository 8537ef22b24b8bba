"""
Data ingestion module for AirWatch.

Handles polling the OpenWeather APIs on a fixed interval and appending
fresh readings to the per-location history.
"""

from airwatch.ingestion.openweather_client import OpenWeatherClient, TelemetryProvider, calculate_aqi
from airwatch.ingestion.scheduler import CollectionScheduler

__all__ = ['OpenWeatherClient', 'TelemetryProvider', 'calculate_aqi', 'CollectionScheduler']
