"""
Real-time broadcast channel for admin dashboards.

Services receive a Broadcaster at construction time; the production one fans
messages out to every connected Socket.IO client.
"""
from __future__ import annotations

from typing import Protocol

from flask import current_app
from flask_socketio import SocketIO, send


class Broadcaster(Protocol):
    def broadcast(self, message: dict, event: str = "message") -> None:
        ...

class SocketIOBroadcaster:
    def __init__(self, socketio: SocketIO):
        self.socketio = socketio

    def broadcast(self, message: dict, event: str = "message") -> None:
        # server-level emit goes to all clients, no room filtering
        try:
            self.socketio.emit(event, message)
        except Exception as e:
            current_app.logger.warning(f"[realtime] broadcast of {message.get('type')} failed: {e}")

def register_socket_handlers(socketio: SocketIO):
    @socketio.on("connect")
    def _on_connect(auth=None):
        current_app.logger.info("[realtime] client connected")

    @socketio.on("disconnect")
    def _on_disconnect(*args):
        current_app.logger.info("[realtime] client disconnected")

    @socketio.on("message")
    def _on_message(data):
        # clients may push dashboard events; relay them to everyone
        if not isinstance(data, dict):
            current_app.logger.warning(f"[realtime] ignoring non-JSON message: {data!r}")
            return
        current_app.logger.debug(f"[realtime] received {data.get('type')}")
        send(data, broadcast=True)
