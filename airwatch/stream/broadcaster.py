"""
Live device stream - fan-out of sensor events to connected clients.

Architecture:
    WebSocket endpoint  ->  StreamBroadcaster.on_message
                                  |
                     iot_reading: persist DeviceReading
                                  |
                              broadcast()
                                  |
                   JSON iot_update to every subscriber

Inbound messages are tagged JSON events:
    {"type": "iot_reading", "deviceId": ..., "location": ..., "pm25": ...}
    {"type": "subscribe", "subscription": ...}

Outbound events:
    connection, iot_update, subscription_confirmed, error

Subscriptions are acknowledged but do not filter delivery; every
subscriber receives every update.

Connections are duck-typed: anything with `send(str)` works, and an
optional `connected` attribute reports closed sockets (flask-sock's
server object has both).
"""

import json
import logging
import math
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from airwatch.config import config
from airwatch.exceptions import MalformedEventError, StoreUnavailableError
from airwatch.models import DeviceReading
from airwatch.store import ReadingStore

logger = logging.getLogger(__name__)


# Inbound field name -> DeviceReading attribute
NUMERIC_FIELDS = {
    'pm25': 'pm25',
    'pm10': 'pm10',
    'temperature': 'temperature',
    'humidity': 'humidity',
    'batteryLevel': 'battery_level',
    'signalStrength': 'signal_strength',
}


def _utc_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class StreamEvent:
    """A single tagged event pushed to clients."""

    type: str
    payload: dict = field(default_factory=dict)
    timestamp: str = field(default_factory=_utc_iso)

    def to_dict(self) -> dict:
        return {'type': self.type, **self.payload, 'timestamp': self.timestamp}

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)


def parse_message(payload: Any) -> dict:
    """Decode an inbound payload into a tagged message dict."""
    if isinstance(payload, (bytes, bytearray)):
        try:
            payload = payload.decode('utf-8')
        except UnicodeDecodeError as e:
            raise MalformedEventError('Payload is not valid UTF-8') from e

    try:
        message = json.loads(payload)
    except (TypeError, ValueError) as e:
        raise MalformedEventError('Invalid message format') from e

    if not isinstance(message, dict):
        raise MalformedEventError('Message must be a JSON object')
    if not isinstance(message.get('type'), str):
        raise MalformedEventError('Message is missing a "type" field')

    return message


def build_device_reading(message: dict) -> DeviceReading:
    """Validate an iot_reading message and build an unsaved DeviceReading."""
    device_id = message.get('deviceId')
    location = message.get('location')

    if not isinstance(device_id, str) or not device_id.strip():
        raise MalformedEventError('iot_reading requires a non-empty "deviceId"')
    if not isinstance(location, str) or not location.strip():
        raise MalformedEventError('iot_reading requires a non-empty "location"')

    values = {}
    for key, attr in NUMERIC_FIELDS.items():
        value = message.get(key)
        if value is None:
            continue
        if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
            raise MalformedEventError(f'"{key}" must be a finite number')
        values[attr] = float(value)

    return DeviceReading(device_id=device_id.strip(), location=location.strip(), **values)


class StreamBroadcaster:
    """
    Owns the live subscriber set and delivers events to it.

    Thread-safe: `_lock` guards the subscriber set. Each subscriber has
    its own write lock, so writes to one connection are single-writer
    and it sees events in the order broadcast() was called, while a slow
    subscriber never holds up writes to the others. A subscriber that is
    still busy with an earlier write after `send_timeout` seconds, whose
    write fails, or whose socket is closed, is dropped.
    """

    def __init__(
        self,
        store: ReadingStore,
        echo_to_sender: Optional[bool] = None,
        send_timeout: Optional[float] = None,
    ):
        self.store = store
        self.echo_to_sender = (
            config.stream.echo_to_sender if echo_to_sender is None else echo_to_sender
        )
        self.send_timeout = (
            config.stream.send_timeout_seconds if send_timeout is None else send_timeout
        )

        # subscriber -> its write lock
        self._subscribers: Dict[Any, threading.Lock] = {}
        self._lock = threading.Lock()

        self._stats = {
            'total_connections': 0,
            'total_events_broadcast': 0,
            'total_messages_sent': 0,
            'dropped_subscribers': 0,
            'malformed_messages': 0,
        }

    @property
    def active_connections(self) -> int:
        with self._lock:
            return len(self._subscribers)

    @property
    def stats(self) -> dict:
        with self._lock:
            return {**self._stats, 'active_connections': len(self._subscribers)}

    def is_subscribed(self, connection: Any) -> bool:
        with self._lock:
            return connection in self._subscribers

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    def on_connect(self, connection: Any) -> None:
        """Register a subscriber and acknowledge the connection."""
        with self._lock:
            self._subscribers.setdefault(connection, threading.Lock())
            self._stats['total_connections'] += 1
            active = len(self._subscribers)

        logger.info(f'Stream client connected. Active: {active}')

        self._send(connection, StreamEvent('connection', {
            'status': 'connected',
            'message': 'Connected to AirWatch IoT stream',
        }))

    def on_disconnect(self, connection: Any) -> None:
        """Deregister a subscriber; no further sends are attempted."""
        with self._lock:
            self._subscribers.pop(connection, None)
            active = len(self._subscribers)
        logger.info(f'Stream client disconnected. Active: {active}')

    def on_error(self, connection: Any, error: Optional[BaseException] = None) -> None:
        """Deregister a subscriber whose transport reported an error."""
        if error is not None:
            logger.warning(f'Stream client error: {error}')
        self.on_disconnect(connection)

    # ------------------------------------------------------------------
    # Inbound messages
    # ------------------------------------------------------------------

    def on_message(self, connection: Any, payload: Any) -> None:
        """
        Handle one inbound payload from a connection.

        Malformed input and store failures produce a single error event
        to the sender; nothing is stored or broadcast in that case.
        """
        try:
            message = parse_message(payload)
            msg_type = message['type']

            if msg_type == 'iot_reading':
                self._handle_iot_reading(connection, message)
            elif msg_type == 'subscribe':
                self._send(connection, StreamEvent('subscription_confirmed', {
                    'subscription': message.get('subscription'),
                }))
            else:
                raise MalformedEventError(f'Unsupported message type: {msg_type}')

        except MalformedEventError as e:
            with self._lock:
                self._stats['malformed_messages'] += 1
            logger.warning(f'Rejected stream message: {e}')
            self._send_error(connection, str(e))
        except StoreUnavailableError as e:
            logger.error(f'Could not persist device reading: {e}')
            self._send_error(connection, 'Reading could not be stored')

    def _handle_iot_reading(self, connection: Any, message: dict) -> None:
        reading = build_device_reading(message)
        stored = self.store.append_device_reading(reading)

        event = StreamEvent('iot_update', {
            'deviceId': stored.device_id,
            'location': stored.location,
            'data': stored.to_dict(),
        })
        self.broadcast(event, exclude=None if self.echo_to_sender else connection)

    def _send_error(self, connection: Any, message: str) -> None:
        self._send(connection, StreamEvent('error', {'message': message}))

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------

    @staticmethod
    def _is_open(connection: Any) -> bool:
        return bool(getattr(connection, 'connected', True))

    def _drop(self, connections: List[Any]) -> None:
        if not connections:
            return
        with self._lock:
            for connection in connections:
                if self._subscribers.pop(connection, None) is not None:
                    self._stats['dropped_subscribers'] += 1
        logger.warning(f'Dropped {len(connections)} unresponsive stream client(s)')

    def _write(self, connection: Any, message: str) -> bool:
        """
        Write one frame under the connection's own lock.

        Returns False when the connection is closed, the write fails, or
        another write to it is still in progress after `send_timeout`.
        """
        with self._lock:
            send_lock = self._subscribers.get(connection)
        if send_lock is None:
            # Not (or no longer) subscribed; nothing else writes to it
            send_lock = threading.Lock()

        if not send_lock.acquire(timeout=self.send_timeout):
            logger.warning(f'Stream client busy for more than {self.send_timeout}s')
            return False
        try:
            if not self._is_open(connection):
                return False
            connection.send(message)
            return True
        except Exception as e:
            logger.debug(f'Send failed: {e}')
            return False
        finally:
            send_lock.release()

    def _send(self, connection: Any, event: StreamEvent) -> bool:
        """Write one event to one connection; drop it on failure."""
        if not self._write(connection, event.to_json()):
            self._drop([connection])
            return False

        with self._lock:
            self._stats['total_messages_sent'] += 1
        return True

    def broadcast(self, event: StreamEvent, exclude: Any = None) -> int:
        """
        Serialize once and write to every open subscriber.

        Returns the number of subscribers that received the event.
        """
        message = event.to_json()

        with self._lock:
            targets = [c for c in self._subscribers if c is not exclude]
            self._stats['total_events_broadcast'] += 1

        sent = 0
        dead = []
        for connection in targets:
            if self._write(connection, message):
                sent += 1
            else:
                dead.append(connection)

        self._drop(dead)

        with self._lock:
            self._stats['total_messages_sent'] += sent

        logger.debug(f'Broadcast {event.type} to {sent}/{len(targets)} clients')
        return sent
