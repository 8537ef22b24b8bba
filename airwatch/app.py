"""
AirWatch Flask Application.

Main entry point for the web application. Initializes:
- Database schema
- Reading store, prediction service and stream broadcaster
- Collection scheduler
- API routes and the /ws device stream

Usage:
    python -m airwatch.app

Or with gunicorn:
    gunicorn 'airwatch.app:create_app()'
"""

import logging
import os
from typing import Optional

from flask import Flask
from flask_cors import CORS

from airwatch.config import config
from airwatch.exceptions import NoDataError, StoreUnavailableError
from airwatch.models import init_db
from airwatch.api import metrics_bp, predictions_bp, readings_bp, reports_bp, sock
from airwatch.forecasting import PredictionService
from airwatch.ingestion import CollectionScheduler, OpenWeatherClient, TelemetryProvider
from airwatch.store import ReadingStore
from airwatch.stream import StreamBroadcaster

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if config.debug else logging.INFO,
    format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S',
)
logger = logging.getLogger(__name__)


def create_app(
    start_collection: bool = True,
    store: Optional[ReadingStore] = None,
    provider: Optional[TelemetryProvider] = None,
) -> Flask:
    """
    Application factory for Flask.

    Args:
        start_collection: Whether to start the background collection scheduler.
                          Set to False for testing.
        store: Reading store to use. Defaults to one over DATABASE_URL,
               whose schema is created here.
        provider: Telemetry provider. Defaults to the OpenWeather client.

    Returns:
        Configured Flask application instance.
    """
    app = Flask(__name__)

    # Configuration
    app.config['SECRET_KEY'] = config.secret_key

    # Enable CORS for API endpoints
    CORS(app, resources={r'/api/*': {'origins': '*'}})

    if store is None:
        logger.info('Initializing database...')
        init_db()
        store = ReadingStore()

    if provider is None:
        provider = OpenWeatherClient.from_config()

    scheduler = CollectionScheduler(provider, store)
    broadcaster = StreamBroadcaster(store)

    app.config['READING_STORE'] = store
    app.config['PREDICTION_SERVICE'] = PredictionService(store)
    app.config['BROADCASTER'] = broadcaster
    app.config['COLLECTION_SCHEDULER'] = scheduler

    # Register API blueprints and the WebSocket route
    app.register_blueprint(readings_bp)
    app.register_blueprint(predictions_bp)
    app.register_blueprint(reports_bp)
    app.register_blueprint(metrics_bp)
    sock.init_app(app)

    if start_collection:
        if isinstance(provider, OpenWeatherClient) and not provider.api_key:
            logger.warning('No OPENWEATHER_API_KEY configured. Scheduled collection is disabled')
        else:
            scheduler.start()
            logger.info(
                f'Collection started for {", ".join(scheduler.locations)} '
                f'every {scheduler.interval_seconds}s'
            )

    @app.route('/health')
    def health():
        """Simple health check endpoint."""
        return {'status': 'ok'}

    # -------------------------------------------------------------------------
    # Error handlers
    # -------------------------------------------------------------------------

    @app.errorhandler(NoDataError)
    def no_data(e):
        return {'error': 'No forecast available', 'message': str(e)}, 503

    @app.errorhandler(StoreUnavailableError)
    def store_unavailable(e):
        logger.error(f'Store unavailable: {e}')
        return {'error': 'Storage unavailable'}, 500

    @app.errorhandler(404)
    def not_found(e):
        return {'error': 'Not found'}, 404

    @app.errorhandler(500)
    def server_error(e):
        logger.error(f'Server error: {e}')
        return {'error': 'Internal server error'}, 500

    return app


def run_development_server():
    """Run the development server."""
    app = create_app()

    port = int(os.environ.get('PORT', 5000))

    logger.info(f'Starting AirWatch on http://localhost:{port}')
    logger.info(f'Device stream: ws://localhost:{port}/ws')

    app.run(
        host='0.0.0.0',
        port=port,
        debug=config.debug,
        use_reloader=False,  # Disable reloader to prevent duplicate scheduler threads
    )


if __name__ == '__main__':
    run_development_server()
