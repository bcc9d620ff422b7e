"""
Open realtime connections and best-effort delivery to them.

A Connection is anything that can send a JSON message and be closed; in
production it wraps a Starlette WebSocket. The ConnectionManager tracks every
open connection, logged in or not, because the presence broadcast goes to
all of them.

Delivery is best-effort: a connection that is closed, detached, or fails
mid-send is skipped and logged. Nothing is queued for later.
"""

import logging
import uuid
from typing import Protocol

from fastapi.websockets import WebSocket, WebSocketDisconnect, WebSocketState

from interface.protocol import Message

_log = logging.getLogger(__name__)


class Connection(Protocol):
    connection_id: str

    @property
    def is_open(self) -> bool: ...

    def detach(self) -> None: ...

    async def send(self, message: dict) -> bool: ...

    async def close(self) -> None: ...


class WebSocketConnection:
    """
    Connection backed by a Starlette/FastAPI WebSocket.

    A detached connection has been superseded (its user logged in elsewhere):
    it is no longer open for delivery even while the socket is still closing.
    """

    def __init__(self, websocket: WebSocket, connection_id: str | None = None) -> None:
        self.websocket = websocket
        self.connection_id = connection_id or uuid.uuid4().hex
        self._detached = False

    @property
    def is_open(self) -> bool:
        return (
            not self._detached
            and self.websocket.client_state == WebSocketState.CONNECTED
            and self.websocket.application_state == WebSocketState.CONNECTED
        )

    def detach(self) -> None:
        self._detached = True

    async def send(self, message: dict) -> bool:
        if not self.is_open:
            return False
        try:
            await self.websocket.send_json(message)
        except (RuntimeError, OSError, WebSocketDisconnect) as exc:
            _log.warning("Send to %s failed: %s", self.connection_id, exc)
            return False
        return True

    async def close(self) -> None:
        if self.websocket.application_state != WebSocketState.CONNECTED:
            return
        try:
            await self.websocket.close()
        except (RuntimeError, OSError) as exc:
            _log.warning("Close of %s failed: %s", self.connection_id, exc)


class ConnectionManager:
    """Registry of open connections, keyed by connection id."""

    def __init__(self) -> None:
        self._connections: dict[str, Connection] = {}

    def __len__(self) -> int:
        return len(self._connections)

    def __contains__(self, connection_id: str) -> bool:
        return connection_id in self._connections

    def register(self, connection: Connection) -> None:
        self._connections[connection.connection_id] = connection
        _log.info("Connection %s opened (%d open)", connection.connection_id, len(self._connections))

    def unregister(self, connection_id: str) -> Connection | None:
        connection = self._connections.pop(connection_id, None)
        if connection is not None:
            _log.info("Connection %s closed (%d open)", connection_id, len(self._connections))
        return connection

    def get(self, connection_id: str) -> Connection | None:
        return self._connections.get(connection_id)

    async def send_to(self, connection_id: str, message: Message) -> bool:
        """Deliver to one connection. False if it is unknown, closed, or the send failed."""
        connection = self._connections.get(connection_id)
        if connection is None or not connection.is_open:
            _log.info("Dropping %s for %s: connection not open", message.type, connection_id)
            return False
        return await connection.send(message.to_wire())

    async def broadcast(self, message: Message) -> int:
        """
        Send `message` to every open connection.

        Returns:
            Number of connections the message was delivered to.
        """
        payload = message.to_wire()
        delivered = 0
        # Snapshot: a send may suspend while another handler opens or closes
        # a connection.
        for connection in list(self._connections.values()):
            if not connection.is_open:
                continue
            if await connection.send(payload):
                delivered += 1
        return delivered
