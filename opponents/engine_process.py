"""
Engine process adapter: one long-lived UCI engine subprocess behind a queue.

The engine (Stockfish by default) is launched once with python-chess's asyncio
UCI driver and reused for every request. UCI is a strict request/response
protocol: a second "position"/"go" pair sent while a search is running
corrupts the conversation. This adapter therefore owns the handle exclusively
and serializes callers with an asyncio.Lock, so requests run one at a time in
the order they arrived.

Search protocol per request:
    (optional) setoption name Depth value <n>   only if the engine has it
    position fen <FEN>                           always resent
    go depth <n>
    ... info lines ...                           evaluation = last scored line
    bestmove <uci>

The engine keeps its own position/search history between calls, so the
position is always resent rather than assumed. python-chess does this for
every search.

Evaluation convention:
    Pawns, positive favors White, regardless of the side to move. Mate scores
    are clamped to +/- MATE_SCORE_CP centipawns. A missing score degrades to
    0.0 instead of failing the request; the move is what matters.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Iterable

import chess
import chess.engine

from opponents import rules
from opponents.constants import (
    CENTIPAWNS_PER_PAWN,
    DEFAULT_SEARCH_DEPTH,
    ENGINE_PATH,
    ENGINE_TIMEOUT_S,
    MATE_SCORE_CP,
)
from opponents.outcome import Failure, FailureKind, GameOver, MoveOutcome, Success

_log = logging.getLogger(__name__)


@dataclass(frozen=True)
class SearchResult:
    """
    Raw result of one fixed-depth search.

    Attributes:
        move:      Best move reported by the engine, or None ("bestmove (none)").
        centipawns: White-relative score of the last scored info line, or None
                    if the engine never reported a score.
    """

    move: chess.Move | None
    centipawns: int | None


def last_reported_score(infos: Iterable[dict[str, Any]]) -> int | None:
    """
    Return the White-relative centipawn score of the last info line with one.

    The engine refines its evaluation as the search deepens, so only the last
    scored line describes the completed search. Lines that carry no score
    ("info currmove ...", "info string ...") are not evaluation lines.

    Args:
        infos: Info dictionaries in the order the engine emitted them, as
               produced by python-chess (score under the "score" key as a
               PovScore).

    Returns:
        Centipawns from White's point of view, or None if no line had a
        usable score.
    """
    score = None
    for info in infos:
        pov_score = info.get("score")
        if pov_score is None:
            continue
        try:
            score = pov_score.white().score(mate_score=MATE_SCORE_CP)
        except AttributeError:
            _log.warning("Unparseable engine score: %r", pov_score)
            score = None
    return score


def to_pawns(centipawns: int | None) -> float:
    """Convert a centipawn score to pawns; a missing score is neutral (0.0)."""
    if centipawns is None:
        _log.info("EvaluationUnavailable: engine reported no score, using 0")
        return 0.0
    return centipawns / CENTIPAWNS_PER_PAWN


class EngineProcessAdapter:
    """
    Owner of the engine subprocess and its single request slot.

    Attributes:
        engine_path: Executable to launch (a bare name is looked up on PATH).
        timeout_s:   Upper bound for one search, queueing time excluded.
    """

    def __init__(
        self,
        engine_path: str = ENGINE_PATH,
        timeout_s: float = ENGINE_TIMEOUT_S,
        engine: chess.engine.Protocol | None = None,
    ) -> None:
        self.engine_path = engine_path
        self.timeout_s = timeout_s
        self._engine = engine
        self._lock = asyncio.Lock()
        self._game: object = object()
        self._configured_depth: int | None = None

    @property
    def available(self) -> bool:
        return self._engine is not None

    # -----------------------------------------------------------------------
    # Lifecycle
    # -----------------------------------------------------------------------

    async def start(self) -> None:
        """
        Launch the engine and complete the UCI handshake.

        python-chess sends "uci" and waits for "uciok" while opening the
        process; the extra ping is the "isready"/"readyok" round trip. A
        launch failure is logged and leaves the adapter unavailable: every
        request then fails with EngineUnavailable instead of crashing the
        server.
        """
        if self._engine is not None:
            return
        try:
            _transport, engine = await chess.engine.popen_uci(self.engine_path)
            await engine.ping()
        except (OSError, chess.engine.EngineError, chess.engine.EngineTerminatedError):
            _log.exception("Could not start engine at %s", self.engine_path)
            return
        self._engine = engine
        _log.info("Engine started: %s", engine.id.get("name", self.engine_path))

    async def close(self) -> None:
        """Quit the engine subprocess, if one is running."""
        engine, self._engine = self._engine, None
        if engine is None:
            return
        try:
            await engine.quit()
        except (chess.engine.EngineError, chess.engine.EngineTerminatedError):
            _log.warning("Engine did not quit cleanly")

    def new_game(self) -> None:
        """Mark the next search as the start of a new game ("ucinewgame")."""
        self._game = object()

    # -----------------------------------------------------------------------
    # Requests
    # -----------------------------------------------------------------------

    async def evaluate_position(self, fen: str, depth: int = DEFAULT_SEARCH_DEPTH) -> MoveOutcome:
        """
        Ask the engine for its best move in `fen` at fixed `depth`.

        Returns:
            Success with the move and the evaluation after the search,
            GameOver if the position is already finished, or Failure with
            InvalidPosition, EngineUnavailable, EngineTimeout or
            EngineSuggestedIllegalMove.
        """
        try:
            result = rules.game_result(fen)
        except rules.InvalidPositionError as exc:
            return Failure(FailureKind.INVALID_POSITION, str(exc))
        if result is not None:
            return GameOver(result)

        outcome = await self._run_search(fen, depth)
        if isinstance(outcome, Failure):
            return outcome

        if outcome.move is None:
            return Failure(
                FailureKind.ENGINE_SUGGESTED_ILLEGAL_MOVE,
                "Engine returned no move in a playable position",
            )
        try:
            move, _ = rules.apply_uci(fen, outcome.move.uci())
        except rules.IllegalMoveError:
            _log.error("Engine suggested illegal move %s for %s", outcome.move.uci(), fen)
            return Failure(
                FailureKind.ENGINE_SUGGESTED_ILLEGAL_MOVE,
                f"Invalid move suggested by engine: {outcome.move.uci()}",
            )

        evaluation = to_pawns(outcome.centipawns)
        _log.info("Engine move=%s eval=%.2f depth=%d fen=%s", move.uci(), evaluation, depth, fen[:40])
        return Success(move, evaluation)

    async def evaluate_only(self, fen: str, depth: int = DEFAULT_SEARCH_DEPTH) -> float:
        """
        Score a position without asking for a move.

        Evaluation is advisory: every failure (bad FEN, no engine, timeout,
        no score) degrades to a neutral 0.0. Terminal positions are scored
        without searching: mate as +/- MATE_SCORE_CP, draws as 0.
        """
        try:
            result = rules.game_result(fen)
        except rules.InvalidPositionError:
            _log.warning("EvaluationUnavailable: invalid FEN %s", fen)
            return 0.0
        if result is not None:
            return to_pawns({"1-0": MATE_SCORE_CP, "0-1": -MATE_SCORE_CP}.get(result, 0))

        outcome = await self._run_search(fen, depth)
        if isinstance(outcome, Failure):
            _log.warning("EvaluationUnavailable: %s", outcome.message)
            return 0.0
        return to_pawns(outcome.centipawns)

    # -----------------------------------------------------------------------
    # Internal helpers
    # -----------------------------------------------------------------------

    async def _run_search(self, fen: str, depth: int) -> SearchResult | Failure:
        """Run one search under the request lock and the configured timeout."""
        async with self._lock:
            if self._engine is None:
                return Failure(FailureKind.ENGINE_UNAVAILABLE, "Engine is not running")
            try:
                return await asyncio.wait_for(self._search(fen, depth), timeout=self.timeout_s)
            except asyncio.TimeoutError:
                _log.error("Engine search timed out after %.1fs for %s", self.timeout_s, fen)
                return Failure(
                    FailureKind.ENGINE_TIMEOUT,
                    f"Engine did not answer within {self.timeout_s:g}s",
                )
            except chess.engine.EngineTerminatedError as exc:
                _log.exception("Engine process terminated")
                self._engine = None
                return Failure(FailureKind.ENGINE_UNAVAILABLE, f"Engine terminated: {exc}")
            except chess.engine.EngineError as exc:
                _log.exception("Engine error for %s", fen)
                return Failure(FailureKind.ENGINE_UNAVAILABLE, f"Engine error: {exc}")

    async def _search(self, fen: str, depth: int) -> SearchResult:
        """
        Send the position, search to `depth`, and collect the info stream.

        Must only be called while holding self._lock.
        """
        engine = self._engine
        if depth != self._configured_depth and "Depth" in engine.options:
            await engine.configure({"Depth": depth})
        self._configured_depth = depth

        board = rules.load_board(fen)
        analysis = await engine.analysis(board, chess.engine.Limit(depth=depth), game=self._game)
        try:
            infos = [info async for info in analysis]
            best = await analysis.wait()
        finally:
            analysis.stop()
        return SearchResult(best.move, last_reported_score(infos))
