"""Real-time channel: registry of live client connections keyed by user id.

One RealtimeChannel is created with the app and lives for the process. It is
never persisted. Connections are plain message endpoints, so the channel
never touches socket handles directly and tests can register fakes.
"""

import logging
from typing import Protocol
from starlette.websockets import WebSocket, WebSocketState

logger = logging.getLogger(__name__)


class Connection(Protocol):
    @property
    def is_open(self) -> bool: ...

    async def send(self, payload: dict) -> None: ...


class WebSocketConnection:
    """Adapts a WebSocket to the channel's connection interface."""

    def __init__(self, websocket: WebSocket):
        self.websocket = websocket

    @property
    def is_open(self) -> bool:
        return (
            self.websocket.client_state == WebSocketState.CONNECTED
            and self.websocket.application_state == WebSocketState.CONNECTED
        )

    async def send(self, payload: dict) -> None:
        await self.websocket.send_json(payload)


class RealtimeChannel:
    def __init__(self):
        # user id -> live connections; a user may have several tabs open
        self._connections: dict[int, list[Connection]] = {}

    def register(self, user_id: int, connection: Connection) -> None:
        connections = self._connections.setdefault(user_id, [])
        if connection not in connections:
            connections.append(connection)
            logger.debug("Registered connection for user %s (%d open)", user_id, len(connections))

    def unregister(self, user_id: int, connection: Connection) -> bool:
        """Forget a connection. Returns False if it was not registered."""
        connections = self._connections.get(user_id)
        if not connections or connection not in connections:
            return False

        connections.remove(connection)
        if not connections:
            del self._connections[user_id]
        logger.debug("Unregistered connection for user %s", user_id)
        return True

    def connection_count(self, user_id: int) -> int:
        return len(self._connections.get(user_id, []))

    def connected_users(self) -> list[int]:
        return list(self._connections)

    async def broadcast(self, user_id: int, payload: dict) -> int:
        """
        Send payload to every open connection of a user.

        Connections that are not open are skipped; their own close event
        removes them. A connection whose send fails is dropped here and never
        retried. Delivery errors are never raised to the caller.

        Returns:
            Number of connections the payload was delivered to.
        """
        delivered = 0
        for connection in list(self._connections.get(user_id, [])):
            if not connection.is_open:
                continue
            try:
                await connection.send(payload)
            except Exception as e:
                logger.warning("Dropping connection for user %s after failed push: %s", user_id, e)
                self.unregister(user_id, connection)
                continue
            delivered += 1
        return delivered
