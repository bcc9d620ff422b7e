"""
Move broker: one entry point for every opponent backend.

The web layer never talks to an adapter directly. It hands the broker a FEN
and the game's session, and gets back a MoveOutcome whatever backend is
behind it. Dispatch is a plain lookup by OpponentKind; human opponents are not
served here (their moves never pass through the server's move path).
"""

import logging

from opponents import rules
from opponents.constants import DEFAULT_SEARCH_DEPTH
from opponents.engine_process import EngineProcessAdapter
from opponents.outcome import Failure, FailureKind, Move, MoveOutcome, OpponentKind
from opponents.remote import RemoteOpponentAdapter
from opponents.session import GameSession

_log = logging.getLogger(__name__)


class MoveBroker:
    """
    Dispatches move requests to the adapter selected by the session.

    Attributes:
        engine: Local UCI engine adapter (also used for hints and scoring).
        remote: Remote move-service adapter.
    """

    def __init__(self, engine: EngineProcessAdapter, remote: RemoteOpponentAdapter) -> None:
        self.engine = engine
        self.remote = remote

    async def get_next_move(self, fen: str, session: GameSession) -> MoveOutcome:
        """
        Return the opponent's reply to `fen` for this session.

        Checks, in order: an opponent is selected, the opponent kind is known,
        the FEN is valid. Only then is a backend called.
        """
        if session.opponent_kind is None:
            return Failure(
                FailureKind.NO_OPPONENT_SELECTED,
                "No opponent selected. Please start a new game first.",
            )
        kind = _resolve_kind(session.opponent_kind)
        if kind is None:
            _log.warning("Session %s has unknown opponent %r", session.session_id, session.opponent_kind)
            return Failure(
                FailureKind.UNKNOWN_OPPONENT_KIND,
                f"Invalid opponent type: {session.opponent_kind}",
            )
        invalid = _check_position(fen)
        if invalid is not None:
            return invalid

        if kind is OpponentKind.LOCAL_ENGINE:
            return await self.engine.evaluate_position(fen, session.search.depth)
        return await self.remote.request_move(fen, session.search.depth)

    async def suggest_move(self, fen: str, depth: int = DEFAULT_SEARCH_DEPTH) -> MoveOutcome:
        """Hint for the player: the local engine's move, whatever the opponent."""
        invalid = _check_position(fen)
        if invalid is not None:
            return invalid
        return await self.engine.evaluate_position(fen, depth)

    async def evaluate_only(self, fen: str, depth: int = DEFAULT_SEARCH_DEPTH) -> float:
        """Score a position (pawns, positive favors White) without a move."""
        return await self.engine.evaluate_only(fen, depth)

    async def start_game(self, session: GameSession) -> Failure | None:
        """
        Reset backend state for a new game.

        The engine is told a new game begins; the remote service, which keeps
        its own board, is re-initialized when it is the opponent.
        """
        self.engine.new_game()
        if _resolve_kind(session.opponent_kind) is OpponentKind.REMOTE_SERVICE:
            return await self.remote.reset()
        return None

    async def relay_player_move(
        self,
        fen: str,
        move: Move,
        session: GameSession,
        san: str | None = None,
    ) -> Failure | None:
        """
        Forward the player's move to backends that track the game themselves.

        Only the remote service does. `fen` is the position before the move;
        it is used to derive SAN when the client did not send it.
        """
        if _resolve_kind(session.opponent_kind) is not OpponentKind.REMOTE_SERVICE:
            return None
        if san is None:
            try:
                san = rules.to_san(fen, move)
            except rules.RulesError as exc:
                return Failure(FailureKind.INVALID_POSITION, str(exc))
        return await self.remote.notify_move(san)


def _resolve_kind(kind: OpponentKind | str | None) -> OpponentKind | None:
    if kind is None:
        return None
    try:
        return OpponentKind(kind)
    except ValueError:
        return None


def _check_position(fen: str) -> Failure | None:
    try:
        rules.load_board(fen)
    except rules.InvalidPositionError as exc:
        return Failure(FailureKind.INVALID_POSITION, str(exc))
    return None
