"""WebSocket connection manager.

Holds active connections per user. Use via app.state.ws_manager (set in
lifespan). Notifications pushed through Redis reach only the addressed user.
"""

from __future__ import annotations

import asyncio
from typing import Any

from fastapi import WebSocket


class ConnectionManager:
    """Manages WebSocket connections keyed by user id.

    A user may hold several connections (tabs, devices); all of them receive
    that user's messages. Dead connections are dropped on send failure.
    """

    def __init__(self) -> None:
        self._connections_by_user: dict[str, set[WebSocket]] = {}
        self._websocket_to_user: dict[WebSocket, str] = {}
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket, user_id: str) -> None:
        """Accept and register a new connection for user_id."""
        await websocket.accept()
        async with self._lock:
            self._connections_by_user.setdefault(user_id, set()).add(websocket)
            self._websocket_to_user[websocket] = user_id

    async def disconnect(self, websocket: WebSocket) -> None:
        async with self._lock:
            self._forget(websocket)

    async def send_to_user(self, user_id: str, message: str | dict[str, Any]) -> int:
        """Send message to every connection of user_id. Returns how many received it."""
        async with self._lock:
            snapshot = list(self._connections_by_user.get(user_id, set()))
        return await self._send_to_list(snapshot, message)

    async def broadcast(self, message: str | dict[str, Any]) -> int:
        """Send a message to every connected client."""
        async with self._lock:
            snapshot = [ws for conns in self._connections_by_user.values() for ws in conns]
        return await self._send_to_list(snapshot, message)

    async def get_connection_count(self) -> int:
        async with self._lock:
            return sum(len(c) for c in self._connections_by_user.values())

    async def _send_to_list(
        self, connections: list[WebSocket], message: str | dict[str, Any]
    ) -> int:
        dead: list[WebSocket] = []
        for ws in connections:
            try:
                if isinstance(message, dict):
                    await ws.send_json(message)
                else:
                    await ws.send_text(message)
            except Exception:
                dead.append(ws)
        if dead:
            async with self._lock:
                for ws in dead:
                    self._forget(ws)
        return len(connections) - len(dead)

    def _forget(self, websocket: WebSocket) -> None:
        user_id = self._websocket_to_user.pop(websocket, None)
        if user_id is None:
            return
        conns = self._connections_by_user.get(user_id)
        if conns is not None:
            conns.discard(websocket)
            if not conns:
                del self._connections_by_user[user_id]
