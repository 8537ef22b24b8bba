"""
WebSocket endpoint for the live device stream.

- WS /ws - IoT devices push readings; dashboards receive iot_update events

Each connection runs its own receive loop on the request thread. All
protocol handling lives in StreamBroadcaster; this module only adapts
flask-sock's connection lifecycle to it.
"""

import logging

from flask import current_app
from flask_sock import Sock
from simple_websocket import ConnectionClosed

from airwatch.stream import StreamBroadcaster

logger = logging.getLogger(__name__)

sock = Sock()


def serve_connection(ws, broadcaster: StreamBroadcaster) -> None:
    """Drive one connection until the peer goes away."""
    broadcaster.on_connect(ws)

    try:
        while True:
            payload = ws.receive()
            if payload is None:
                continue
            broadcaster.on_message(ws, payload)
    except ConnectionClosed:
        logger.debug('Stream client closed the connection')
    except Exception as e:
        broadcaster.on_error(ws, e)
    finally:
        broadcaster.on_disconnect(ws)


@sock.route('/ws')
def device_stream(ws):
    serve_connection(ws, current_app.config['BROADCASTER'])
