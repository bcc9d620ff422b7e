"""
Per-game session context.

Each game against a backend gets its own GameSession: the opponent it plays
and the depth the local engine searches at. Sessions are created when a game
starts and handed to every broker call, so two games running at once never
see each other's settings. They live in process memory only.
"""

import logging
import uuid
from dataclasses import dataclass, field

from opponents.outcome import OpponentKind, SearchConfig

_log = logging.getLogger(__name__)


@dataclass
class GameSession:
    """
    Attributes:
        session_id:    Opaque identifier handed to the client.
        opponent_kind: Selected backend. Kept as given when it is not a known
                       OpponentKind so the broker can report it; None when no
                       opponent has been selected.
        search:        Search settings for the local engine.
    """

    session_id: str
    opponent_kind: OpponentKind | str | None = None
    search: SearchConfig = field(default_factory=SearchConfig)

    def set_depth(self, value: object) -> bool:
        return self.search.set_depth(value)


class SessionStore:
    """In-memory map of live sessions."""

    def __init__(self) -> None:
        self._sessions: dict[str, GameSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def create(self, opponent_kind: str | None) -> GameSession:
        """Start a session for `opponent_kind` (normalized when recognized)."""
        kind: OpponentKind | str | None = opponent_kind
        if opponent_kind is not None:
            try:
                kind = OpponentKind(opponent_kind)
            except ValueError:
                kind = opponent_kind
        session = GameSession(session_id=uuid.uuid4().hex, opponent_kind=kind)
        self._sessions[session.session_id] = session
        _log.info("Session %s created, opponent=%s", session.session_id, opponent_kind)
        return session

    def get(self, session_id: str) -> GameSession | None:
        return self._sessions.get(session_id)

    def end(self, session_id: str) -> bool:
        """Drop a session. Returns False if it did not exist."""
        removed = self._sessions.pop(session_id, None)
        if removed is not None:
            _log.info("Session %s ended", session_id)
        return removed is not None
