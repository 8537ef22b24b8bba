"""Tests for airwatch.stream.broadcaster.StreamBroadcaster."""

import json
import threading
from unittest.mock import MagicMock

import pytest

from airwatch.exceptions import MalformedEventError, StoreUnavailableError
from airwatch.stream import StreamBroadcaster, StreamEvent, build_device_reading, parse_message


class FakeConnection:
    """Records sent frames; optionally starts failing after `fail_after` sends."""

    def __init__(self, fail_after=None):
        self.sent = []
        self.connected = True
        self.fail_after = fail_after

    def send(self, data):
        if self.fail_after is not None and len(self.sent) >= self.fail_after:
            raise ConnectionResetError('peer went away')
        self.sent.append(data)

    @property
    def events(self):
        return [json.loads(frame) for frame in self.sent]

    def of_type(self, event_type):
        return [e for e in self.events if e['type'] == event_type]


def _reading(**overrides):
    message = {
        'type': 'iot_reading',
        'deviceId': 'node-7',
        'location': 'bengaluru',
        'pm25': 38.5,
        'pm10': 61.0,
        'temperature': 27.4,
        'humidity': 62,
        'batteryLevel': 88,
        'signalStrength': -71,
    }
    message.update(overrides)
    return json.dumps(message)


@pytest.fixture
def broadcaster(store):
    return StreamBroadcaster(store, echo_to_sender=True)


class TestConnectionLifecycle:

    def test_connect_sends_ack(self, broadcaster):
        conn = FakeConnection()

        broadcaster.on_connect(conn)

        assert broadcaster.active_connections == 1
        [ack] = conn.events
        assert ack['type'] == 'connection'
        assert ack['status'] == 'connected'
        assert 'timestamp' in ack

    def test_disconnect_stops_delivery(self, broadcaster):
        a, b = FakeConnection(), FakeConnection()
        broadcaster.on_connect(a)
        broadcaster.on_connect(b)
        broadcaster.on_disconnect(b)

        sent = broadcaster.broadcast(StreamEvent('iot_update', {'n': 1}))

        assert sent == 1
        assert len(b.sent) == 1  # ack only
        assert not broadcaster.is_subscribed(b)

    def test_error_deregisters(self, broadcaster):
        conn = FakeConnection()
        broadcaster.on_connect(conn)

        broadcaster.on_error(conn, RuntimeError('reset'))

        assert broadcaster.active_connections == 0


class TestIotReading:

    def test_fan_out_drops_only_the_failing_subscriber(self, broadcaster, store):
        sub1, sub2, sub3 = FakeConnection(), FakeConnection(fail_after=1), FakeConnection()
        for conn in (sub1, sub2, sub3):
            broadcaster.on_connect(conn)

        broadcaster.on_message(sub1, _reading())

        for conn in (sub1, sub3):
            [update] = conn.of_type('iot_update')
            assert update['deviceId'] == 'node-7'
            assert update['location'] == 'bengaluru'
            assert update['data']['pm25'] == 38.5
            assert update['data']['batteryLevel'] == 88
        assert not broadcaster.is_subscribed(sub2)
        assert broadcaster.active_connections == 2

        stored = store.recent_device_readings('node-7', 10)
        assert len(stored) == 1
        assert stored[0].signal_strength == -71

    def test_sender_excluded_when_echo_disabled(self, store):
        broadcaster = StreamBroadcaster(store, echo_to_sender=False)
        sender, other = FakeConnection(), FakeConnection()
        broadcaster.on_connect(sender)
        broadcaster.on_connect(other)

        broadcaster.on_message(sender, _reading())

        assert sender.of_type('iot_update') == []
        assert len(other.of_type('iot_update')) == 1

    def test_optional_measurements_may_be_omitted(self, broadcaster, store):
        conn = FakeConnection()
        broadcaster.on_connect(conn)

        broadcaster.on_message(conn, json.dumps({'type': 'iot_reading', 'deviceId': 'd1', 'location': 'delhi'}))

        [update] = conn.of_type('iot_update')
        assert update['data']['pm25'] is None

    def test_closed_connection_is_dropped(self, broadcaster):
        open_conn, closed_conn = FakeConnection(), FakeConnection()
        broadcaster.on_connect(open_conn)
        broadcaster.on_connect(closed_conn)
        closed_conn.connected = False

        broadcaster.on_message(open_conn, _reading())

        assert closed_conn.of_type('iot_update') == []
        assert not broadcaster.is_subscribed(closed_conn)

    def test_store_failure_reports_error_and_skips_broadcast(self):
        store = MagicMock()
        store.append_device_reading.side_effect = StoreUnavailableError('database is locked')
        broadcaster = StreamBroadcaster(store, echo_to_sender=True)
        sender, other = FakeConnection(), FakeConnection()
        broadcaster.on_connect(sender)
        broadcaster.on_connect(other)

        broadcaster.on_message(sender, _reading())

        assert len(sender.of_type('error')) == 1
        assert sender.of_type('iot_update') == []
        assert len(other.sent) == 1  # ack only


class TestMalformedInput:

    @pytest.mark.parametrize('payload', [
        'not json at all',
        '[1, 2, 3]',
        '{"deviceId": "d1"}',
        '{"type": "teleport"}',
        _reading(deviceId=''),
        _reading(location=None),
        _reading(pm25='high'),
        _reading(humidity=True),
    ])
    def test_single_error_to_sender_and_nothing_else(self, payload):
        store = MagicMock()
        broadcaster = StreamBroadcaster(store, echo_to_sender=True)
        sender, other = FakeConnection(), FakeConnection()
        broadcaster.on_connect(sender)
        broadcaster.on_connect(other)

        broadcaster.on_message(sender, payload)

        assert len(sender.of_type('error')) == 1
        assert len(sender.sent) == 2  # ack + error
        assert len(other.sent) == 1  # ack only
        store.append_device_reading.assert_not_called()
        assert broadcaster.stats['malformed_messages'] == 1

    def test_connection_survives_malformed_input(self, broadcaster):
        conn = FakeConnection()
        broadcaster.on_connect(conn)

        broadcaster.on_message(conn, '{oops')
        broadcaster.on_message(conn, _reading())

        assert broadcaster.is_subscribed(conn)
        assert len(conn.of_type('iot_update')) == 1


class TestSubscribe:

    def test_confirmation_goes_to_sender_only(self, broadcaster):
        sender, other = FakeConnection(), FakeConnection()
        broadcaster.on_connect(sender)
        broadcaster.on_connect(other)

        broadcaster.on_message(sender, json.dumps({'type': 'subscribe', 'subscription': {'location': 'delhi'}}))

        [confirmed] = sender.of_type('subscription_confirmed')
        assert confirmed['subscription'] == {'location': 'delhi'}
        assert len(other.sent) == 1


class TestOrdering:

    def test_each_subscriber_sees_each_publisher_in_order(self, broadcaster):
        subscribers = [FakeConnection() for _ in range(4)]
        for conn in subscribers:
            broadcaster.on_connect(conn)

        def publish(offset):
            for i in range(25):
                broadcaster.broadcast(StreamEvent('iot_update', {'seq': offset + i}))

        threads = [threading.Thread(target=publish, args=(n * 100,)) for n in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        for conn in subscribers:
            seqs = [e['seq'] for e in conn.of_type('iot_update')]
            assert len(seqs) == 100
            for n in range(4):
                mine = [s for s in seqs if n * 100 <= s < (n + 1) * 100]
                assert mine == list(range(n * 100, n * 100 + 25))

    def test_sequential_broadcasts_arrive_in_call_order(self, broadcaster):
        conn = FakeConnection()
        broadcaster.on_connect(conn)

        for seq in range(10):
            broadcaster.broadcast(StreamEvent('iot_update', {'seq': seq}))

        assert [e['seq'] for e in conn.of_type('iot_update')] == list(range(10))


class BlockingConnection(FakeConnection):
    """Accepts the connection ack, then blocks inside send() until released."""

    def __init__(self):
        super().__init__()
        self.writing = threading.Event()
        self.release = threading.Event()

    def send(self, data):
        if self.sent:
            self.writing.set()
            self.release.wait(timeout=5)
        super().send(data)


class TestSlowSubscribers:

    def test_slow_subscriber_does_not_delay_other_clients(self, store):
        broadcaster = StreamBroadcaster(store, echo_to_sender=True, send_timeout=5)
        slow = BlockingConnection()
        broadcaster.on_connect(slow)

        publisher = threading.Thread(target=broadcaster.broadcast, args=(StreamEvent('iot_update', {'seq': 1}),))
        publisher.start()
        assert slow.writing.wait(timeout=2)

        newcomer = FakeConnection()
        connecting = threading.Thread(target=broadcaster.on_connect, args=(newcomer,))
        connecting.start()
        connecting.join(timeout=1)
        try:
            assert not connecting.is_alive()
            assert [e['type'] for e in newcomer.events] == ['connection']
        finally:
            slow.release.set()
            publisher.join(timeout=5)
            connecting.join(timeout=5)

        assert len(slow.of_type('iot_update')) == 1

    def test_subscriber_stuck_past_timeout_is_dropped(self, store):
        broadcaster = StreamBroadcaster(store, echo_to_sender=True, send_timeout=0.1)
        slow, fast = BlockingConnection(), FakeConnection()
        broadcaster.on_connect(slow)
        broadcaster.on_connect(fast)

        stuck = threading.Thread(target=broadcaster._send, args=(slow, StreamEvent('iot_update', {'seq': 1})))
        stuck.start()
        assert slow.writing.wait(timeout=2)
        try:
            sent = broadcaster.broadcast(StreamEvent('iot_update', {'seq': 2}))

            assert sent == 1
            assert [e['seq'] for e in fast.of_type('iot_update')] == [2]
            assert not broadcaster.is_subscribed(slow)
            assert broadcaster.is_subscribed(fast)
        finally:
            slow.release.set()
            stuck.join(timeout=5)


class TestParsing:

    def test_parse_bytes(self):
        assert parse_message(b'{"type": "subscribe"}') == {'type': 'subscribe'}

    def test_parse_rejects_missing_type(self):
        with pytest.raises(MalformedEventError):
            parse_message('{}')

    def test_build_device_reading_maps_field_names(self):
        reading = build_device_reading(json.loads(_reading()))

        assert reading.device_id == 'node-7'
        assert reading.battery_level == 88.0
        assert reading.signal_strength == -71.0
