"""WebSocket connection manager used by the /ws endpoint and realtime broadcast."""

from auditflow.api.websocket.manager import ConnectionManager

__all__ = ["ConnectionManager"]
