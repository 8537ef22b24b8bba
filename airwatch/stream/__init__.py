"""
Live stream module for AirWatch.

Fans out device readings received over WebSocket to every connected
subscriber, persisting each reading before it is broadcast.
"""

from airwatch.stream.broadcaster import StreamBroadcaster, StreamEvent, build_device_reading, parse_message

__all__ = ['StreamBroadcaster', 'StreamEvent', 'build_device_reading', 'parse_message']
