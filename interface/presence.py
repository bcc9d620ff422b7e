"""
Presence registry: who is logged in, and on which connection.

Invariant: at most one entry per username and at most one username per
connection. A new login for a username that is already present supersedes the
old entry: the old connection is detached, forgotten, and closed, so the
broadcast never reaches a stale socket.

Ordering matters. `join` removes the stale entry and inserts the new one with
no suspension point in between; only then does it await the broadcast and the
close of the superseded connection. Reversing the two steps would let a
broadcast go out with the same username listed twice.
"""

import inspect
import logging
from dataclasses import dataclass
from typing import Callable

from interface.connections import Connection, ConnectionManager
from interface.protocol import OnlineUserEntry, OnlineUsersMessage

_log = logging.getLogger(__name__)

# Called with a username once that user has no presence entry left.
LeaveListener = Callable[[str], object]


@dataclass(frozen=True)
class OnlineUser:
    connection_id: str
    username: str


class PresenceRegistry:
    """
    Live set of logged-in users.

    Attributes:
        connections: Open connections; used for the broadcast and to detach
                     superseded connections.
    """

    def __init__(self, connections: ConnectionManager) -> None:
        self.connections = connections
        self._by_connection: dict[str, OnlineUser] = {}
        self._by_username: dict[str, str] = {}
        self._leave_listeners: list[LeaveListener] = []

    def __len__(self) -> int:
        return len(self._by_connection)

    def on_leave(self, listener: LeaveListener) -> None:
        """Register a callback run after a username drops out of the registry."""
        self._leave_listeners.append(listener)

    # -----------------------------------------------------------------------
    # Mutations
    # -----------------------------------------------------------------------

    async def join(self, connection: Connection, username: str) -> None:
        """
        Record `username` as online on `connection`, then broadcast.

        Any entry for the same username under another connection is evicted
        first; any other username this connection was logged in as is dropped.
        """
        connection_id = connection.connection_id
        if connection_id not in self.connections or not connection.is_open:
            _log.info("Refusing login %s on inactive connection %s", username, connection_id)
            return
        stale: Connection | None = None
        released: str | None = None

        # Evict, then insert. No await until the registry is consistent.
        stale_id = self._by_username.get(username)
        if stale_id is not None and stale_id != connection_id:
            self._by_connection.pop(stale_id, None)
            stale = self.connections.unregister(stale_id)
            if stale is not None:
                stale.detach()
            _log.info("User %s superseded connection %s with %s", username, stale_id, connection_id)

        previous = self._by_connection.get(connection_id)
        if previous is not None and previous.username != username:
            self._by_username.pop(previous.username, None)
            released = previous.username

        self._by_connection[connection_id] = OnlineUser(connection_id, username)
        self._by_username[username] = connection_id
        _log.info("User %s online on %s (%d online)", username, connection_id, len(self))

        await self.broadcast()
        if stale is not None:
            await stale.close()
        if released is not None:
            await self._notify_leave(released)

    async def leave(self, connection_id: str) -> bool:
        """
        Remove the entry for `connection_id`, broadcasting only if one existed.

        Returns:
            True if an entry was removed.
        """
        user = self._by_connection.pop(connection_id, None)
        if user is None:
            return False
        if self._by_username.get(user.username) == connection_id:
            del self._by_username[user.username]
        _log.info("User %s offline (%d online)", user.username, len(self))
        await self.broadcast()
        await self._notify_leave(user.username)
        return True

    # -----------------------------------------------------------------------
    # Queries
    # -----------------------------------------------------------------------

    def list(self) -> list[OnlineUser]:
        """Current online users in login order, one entry per username."""
        seen: set[str] = set()
        users = []
        for user in self._by_connection.values():
            if user.username in seen:
                continue
            seen.add(user.username)
            users.append(user)
        return users

    def connection_for(self, username: str) -> str | None:
        return self._by_username.get(username)

    def username_for(self, connection_id: str) -> str | None:
        user = self._by_connection.get(connection_id)
        return user.username if user else None

    def snapshot(self) -> OnlineUsersMessage:
        return OnlineUsersMessage(
            users=[OnlineUserEntry(id=u.connection_id, username=u.username) for u in self.list()]
        )

    async def broadcast(self) -> int:
        """Push the full presence list to every open connection."""
        return await self.connections.broadcast(self.snapshot())

    async def _notify_leave(self, username: str) -> None:
        if username in self._by_username:
            return
        for listener in self._leave_listeners:
            result = listener(username)
            if inspect.isawaitable(result):
                await result
