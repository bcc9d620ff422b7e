"""
Realtime hub: connection lifecycle and per-message dispatch.

The WebSocket endpoint owns the socket loop and calls into the hub for the
three lifecycle events:

    connect(connection)       the socket was accepted
    handle(connection, raw)   one text frame arrived
    disconnect(connection)    the socket closed (the only cleanup trigger)

Frames are parsed into protocol models and routed through a table with one
handler per client message class. Adding a message type means adding a
model to the ClientMessage union and an entry to the table; the check in
__init__ fails fast if the two drift apart.
"""

import logging
import typing
from typing import Awaitable, Callable

from pydantic import ValidationError

from interface.challenges import ChallengeCoordinator
from interface.connections import Connection, ConnectionManager
from interface.presence import PresenceRegistry
from interface.protocol import (
    ChallengeMessage,
    ChallengeResponseMessage,
    ClientMessage,
    LoginMessage,
    LogoutMessage,
    parse_client_message,
)

_log = logging.getLogger(__name__)

Handler = Callable[[Connection, typing.Any], Awaitable[None]]


def _client_message_types() -> set[type]:
    union = typing.get_args(ClientMessage)[0]
    return set(typing.get_args(union))


class RealtimeHub:
    """
    Presence, challenges and delivery wired together for the WebSocket endpoint.

    Attributes:
        connections: Every open connection.
        presence:    Logged-in users.
        challenges:  Pending challenge handshakes.
    """

    def __init__(self) -> None:
        self.connections = ConnectionManager()
        self.presence = PresenceRegistry(self.connections)
        self.challenges = ChallengeCoordinator(self.presence, self.connections)
        self._handlers: dict[type, Handler] = {
            LoginMessage: self._on_login,
            LogoutMessage: self._on_logout,
            ChallengeMessage: self._on_challenge,
            ChallengeResponseMessage: self._on_challenge_response,
        }
        missing = _client_message_types() - set(self._handlers)
        if missing:
            raise TypeError(f"No realtime handler for {sorted(t.__name__ for t in missing)}")

    # -----------------------------------------------------------------------
    # Lifecycle
    # -----------------------------------------------------------------------

    def connect(self, connection: Connection) -> None:
        self.connections.register(connection)

    async def handle(self, connection: Connection, raw: str | bytes) -> None:
        """
        Parse one frame and run its handler. Bad frames are logged and ignored.

        Frames still queued on a superseded or closing connection are dropped:
        acting on them would let a dead socket reclaim its user's presence.
        """
        if connection.connection_id not in self.connections or not connection.is_open:
            _log.info("Ignoring frame from inactive connection %s", connection.connection_id)
            return
        try:
            message = parse_client_message(raw)
        except ValidationError as exc:
            _log.warning("Ignoring bad frame from %s: %s", connection.connection_id, exc.errors()[:1])
            return
        await self._handlers[type(message)](connection, message)

    async def disconnect(self, connection: Connection) -> None:
        self.connections.unregister(connection.connection_id)
        await self.presence.leave(connection.connection_id)

    # -----------------------------------------------------------------------
    # Handlers
    # -----------------------------------------------------------------------

    async def _on_login(self, connection: Connection, message: LoginMessage) -> None:
        await self.presence.join(connection, message.username)

    async def _on_logout(self, connection: Connection, message: LogoutMessage) -> None:
        await self.presence.leave(connection.connection_id)

    async def _on_challenge(self, connection: Connection, message: ChallengeMessage) -> None:
        await self.challenges.offer(connection.connection_id, message)

    async def _on_challenge_response(self, connection: Connection, message: ChallengeResponseMessage) -> None:
        await self.challenges.respond(connection.connection_id, message)
