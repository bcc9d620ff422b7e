"""
Remote opponent adapter: moves from an external HTTP move-generation service.

The service keeps its own game state and speaks a small JSON protocol:

    GET  /get_move?fen=<FEN>  -> {"status": "ok", "move": <SAN>, "new_fen": ...}
                               | {"status": "game_over", "result": ...}
                               | {"status": "error", "message": ...}
    POST /move {"move": <SAN>}   tell the service about the player's move
    POST /init                   reset the service for a new game

It has no evaluation of its own, so successful moves are scored by the local
engine through an injected evaluator. Transport failures are reported at once;
there is no retry.
"""

import logging
from typing import Awaitable, Callable

import httpx

from opponents import rules
from opponents.constants import DEFAULT_SEARCH_DEPTH, REMOTE_SERVICE_URL, REMOTE_TIMEOUT_S
from opponents.outcome import Failure, FailureKind, GameOver, MoveOutcome, Success

_log = logging.getLogger(__name__)

# Scores a FEN in pawns at the given depth; expected to degrade to 0.0 itself.
Evaluator = Callable[[str, int], Awaitable[float]]


class RemoteOpponentAdapter:
    """
    Client for the remote move service.

    Attributes:
        client:    httpx.AsyncClient whose base_url points at the service.
        evaluator: Coroutine function used to score the position after the
                   remote move, e.g. EngineProcessAdapter.evaluate_only.
    """

    def __init__(self, client: httpx.AsyncClient, evaluator: Evaluator | None = None) -> None:
        self.client = client
        self.evaluator = evaluator

    @classmethod
    def from_url(
        cls,
        base_url: str = REMOTE_SERVICE_URL,
        evaluator: Evaluator | None = None,
        timeout_s: float = REMOTE_TIMEOUT_S,
    ) -> "RemoteOpponentAdapter":
        """Build an adapter with its own client and explicit timeout."""
        return cls(httpx.AsyncClient(base_url=base_url, timeout=timeout_s), evaluator)

    async def close(self) -> None:
        await self.client.aclose()

    # -----------------------------------------------------------------------
    # Move requests
    # -----------------------------------------------------------------------

    async def request_move(self, fen: str, depth: int = DEFAULT_SEARCH_DEPTH) -> MoveOutcome:
        """
        Ask the service for its reply in `fen`.

        Args:
            fen:   Position the service should move in.
            depth: Search depth for scoring the resulting position locally.

        Returns:
            Success (move converted to coordinate form, evaluation from the
            local engine), GameOver, or Failure with RemoteServiceUnavailable,
            RemoteServiceError or InvalidRemoteMove.
        """
        try:
            response = await self.client.get("/get_move", params={"fen": fen})
            response.raise_for_status()
        except httpx.HTTPError as exc:
            _log.error("Remote service unavailable: %s", exc)
            return Failure(FailureKind.REMOTE_SERVICE_UNAVAILABLE, f"Remote service unavailable: {exc}")

        try:
            data = response.json()
        except ValueError:
            _log.error("Remote service sent a non-JSON body: %r", response.text[:200])
            return Failure(FailureKind.REMOTE_SERVICE_ERROR, "Unexpected response from remote service")
        if not isinstance(data, dict):
            return Failure(FailureKind.REMOTE_SERVICE_ERROR, "Unexpected response from remote service")

        status = data.get("status")
        if status == "game_over":
            _log.info("Remote service reports game over: %s", data.get("result"))
            return GameOver(str(data.get("result") or "*"))
        if status == "error":
            message = data.get("message") or "Unknown error from remote service"
            _log.error("Remote service error: %s", message)
            return Failure(FailureKind.REMOTE_SERVICE_ERROR, message)
        if status != "ok":
            _log.error("Unexpected remote status %r", status)
            return Failure(FailureKind.REMOTE_SERVICE_ERROR, "Unexpected response from remote service")

        san = data.get("move")
        try:
            move, local_fen = rules.apply_san(fen, san)
        except rules.RulesError as exc:
            _log.error("Remote service sent invalid move %r for %s", san, fen)
            return Failure(FailureKind.INVALID_REMOTE_MOVE, f"Invalid move received from remote service: {exc}")

        new_fen = data.get("new_fen") or local_fen
        evaluation = await self._score(new_fen, depth)
        _log.info("Remote move=%s (%s) eval=%.2f", move.uci(), san, evaluation)
        return Success(move, evaluation)

    async def _score(self, fen: str, depth: int) -> float:
        if self.evaluator is None:
            return 0.0
        try:
            return await self.evaluator(fen, depth)
        except Exception:
            _log.exception("EvaluationUnavailable for remote move, using 0")
            return 0.0

    # -----------------------------------------------------------------------
    # Game bookkeeping
    # -----------------------------------------------------------------------

    async def notify_move(self, san: str) -> Failure | None:
        """Tell the service about a move played elsewhere. None on success."""
        return await self._post("/move", {"move": san})

    async def reset(self) -> Failure | None:
        """Reset the service's game state for a new game. None on success."""
        return await self._post("/init", None)

    async def _post(self, path: str, payload: dict | None) -> Failure | None:
        try:
            response = await self.client.post(path, json=payload)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            _log.error("Remote service POST %s failed: %s", path, exc)
            return Failure(FailureKind.REMOTE_SERVICE_UNAVAILABLE, f"Remote service unavailable: {exc}")
        return None
