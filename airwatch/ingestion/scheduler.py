"""
Collection scheduler - keeps the reading store populated.

Every interval, for each tracked location:
1. Fetch: ask the telemetry provider for one fresh reading
2. Append: commit it to the reading store

Locations are independent and best-effort. Any failure for one location,
including an unexpected exception from the provider, is logged and
counted; the rest of the cycle still runs and the next tick is the retry.
A store failure is treated the same way for the cycle, since the
collector has no caller to report it to.

Lifecycle: stopped -> start() -> running -> stop() -> stopped.
Starting a running scheduler is a no-op. Stopping wakes the sleeping
trigger immediately; a provider call already in flight may finish and
its reading is kept.
"""

import logging
import threading
import time
from typing import Callable, Iterable, List, Optional

from airwatch.config import config
from airwatch.exceptions import ProviderError, StoreUnavailableError
from airwatch.ingestion.openweather_client import TelemetryProvider
from airwatch.models import AQIReading
from airwatch.store import ReadingStore

logger = logging.getLogger(__name__)


class CollectionScheduler:
    """
    Runs periodic collection cycles on a background thread.

    Usage:
        scheduler = CollectionScheduler(provider, store)
        scheduler.start()                     # cycle now, then every interval
        scheduler.collect_location('delhi')   # on demand
        scheduler.stop()
    """

    def __init__(
        self,
        provider: TelemetryProvider,
        store: ReadingStore,
        locations: Optional[Iterable[str]] = None,
        interval_seconds: Optional[float] = None,
    ):
        self.provider = provider
        self.store = store
        self.locations: List[str] = list(
            locations if locations is not None else config.collection.locations
        )
        self.interval_seconds = interval_seconds or config.collection.interval_seconds

        # State tracking
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._cycle_count: int = 0
        self._success_count: int = 0
        self._error_count: int = 0
        self._last_cycle_time: float = 0

        # Callbacks for external integration
        self._on_cycle_callbacks: List[Callable[[int], None]] = []

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def add_cycle_callback(self, callback: Callable[[int], None]) -> None:
        """
        Register callback to be invoked after each collection cycle.

        Callback receives the count of readings committed in the cycle.
        """
        self._on_cycle_callbacks.append(callback)

    def collect_location(self, location: str) -> AQIReading:
        """
        Fetch and store one reading for a location, outside the cycle.

        Raises:
            ProviderError: the provider call failed
            StoreUnavailableError: the reading could not be stored
        """
        reading = self.provider.fetch_reading(location)
        stored = self.store.append(reading)
        logger.info(f'Collected {stored.location} (AQI: {stored.aqi})')
        return stored

    def collect_cycle(self, stop_event: Optional[threading.Event] = None) -> int:
        """
        Execute one collection cycle over all tracked locations.

        When `stop_event` is set mid-cycle, remaining locations are skipped.

        Returns count of readings committed.
        """
        logger.info(f'Collecting readings for {len(self.locations)} locations')
        committed = 0

        for location in self.locations:
            if stop_event is not None and stop_event.is_set():
                logger.info('Scheduler stopping, ending cycle early')
                break

            try:
                self.collect_location(location)
                committed += 1
            except (ProviderError, StoreUnavailableError) as e:
                with self._lock:
                    self._error_count += 1
                logger.error(f'Failed to collect data for {location}: {e}')
            except Exception:
                with self._lock:
                    self._error_count += 1
                logger.exception(f'Unexpected error collecting {location}')

        with self._lock:
            self._cycle_count += 1
            self._success_count += committed
            self._last_cycle_time = time.time()

        logger.info(f'Collection cycle completed: {committed}/{len(self.locations)} stored')

        for callback in self._on_cycle_callbacks:
            try:
                callback(committed)
            except Exception as e:
                logger.error(f'Cycle callback error: {e}')

        return committed

    def _run(self, stop_event: threading.Event) -> None:
        """Cycle immediately, then once per interval until stopped."""
        logger.info(f'Starting periodic collection (interval={self.interval_seconds}s)')

        while not stop_event.is_set():
            try:
                self.collect_cycle(stop_event)
            except Exception:
                # Keep the trigger alive; the next tick retries
                logger.exception('Unexpected error in collection cycle')
            if stop_event.wait(self.interval_seconds):
                break

        logger.info('Collection loop exited')

    def start(self) -> None:
        """Start periodic collection in a background thread."""
        if self.is_running:
            logger.warning('Collection scheduler already running')
            return

        # Fresh event per run so a slow, already-stopped thread stays stopped
        self._stop_event = threading.Event()
        self._thread = threading.Thread(
            target=self._run,
            args=(self._stop_event,),
            name='collection-scheduler',
            daemon=True,
        )
        self._thread.start()
        logger.info('Collection scheduler started')

    def stop(self) -> None:
        """Cancel the periodic trigger. Committed data is untouched."""
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=config.collection.join_timeout_seconds)
            if self._thread.is_alive():
                logger.warning('Collector thread still finishing an in-flight call')
        self._thread = None
        logger.info('Collection scheduler stopped')

    @property
    def stats(self) -> dict:
        """Get collection statistics."""
        with self._lock:
            return {
                'running': self.is_running,
                'locations': list(self.locations),
                'interval_seconds': self.interval_seconds,
                'cycle_count': self._cycle_count,
                'success_count': self._success_count,
                'error_count': self._error_count,
                'last_cycle_time': self._last_cycle_time,
            }
