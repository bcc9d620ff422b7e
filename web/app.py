"""
FastAPI web application for the chess arena backend.

Exposes the move endpoints used by the board client and the WebSocket used
for presence and challenges:

    POST /api/new_game       start a session against an opponent backend
    POST /api/end_game       drop a session
    POST /api/set-depth      change the session's engine search depth
    POST /api/get_move       opponent's reply for a FEN
    POST /api/suggest        hint from the local engine
    POST /api/evaluate       score a FEN
    POST /api/move           tell the opponent about the player's move
    GET  /api/online-users   who is online (bearer token required)
    WS   /ws                 realtime presence/challenge protocol

Architecture notes:
- Async endpoints: the engine and the remote service are awaited on the event
  loop. The engine adapter queues concurrent requests itself.
- Session per game: the client gets a session_id from /api/new_game and sends
  it with every move request. No state is shared between games.
- Outcomes, not exceptions: the broker returns Success/GameOver/Failure and
  `_outcome_response` maps them to JSON. GameOver is a 200, never an error.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Depends, FastAPI, HTTPException, Request, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, ConfigDict, Field

from interface.connections import WebSocketConnection
from opponents.constants import ALLOWED_ORIGINS, DEFAULT_SEARCH_DEPTH
from opponents.outcome import Failure, FailureKind, GameOver, Move, MoveOutcome, Success
from opponents.session import GameSession
from web.services import ArenaServices

# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------

logging.basicConfig(level=logging.INFO)
_log = logging.getLogger(__name__)

_FAILURE_STATUS: dict[FailureKind, int] = {
    FailureKind.NO_OPPONENT_SELECTED: 400,
    FailureKind.UNKNOWN_OPPONENT_KIND: 400,
    FailureKind.INVALID_POSITION: 400,
    FailureKind.ENGINE_SUGGESTED_ILLEGAL_MOVE: 502,
    FailureKind.INVALID_REMOTE_MOVE: 502,
    FailureKind.REMOTE_SERVICE_ERROR: 502,
    FailureKind.REMOTE_SERVICE_UNAVAILABLE: 503,
    FailureKind.ENGINE_UNAVAILABLE: 503,
    FailureKind.ENGINE_TIMEOUT: 504,
}

_bearer = HTTPBearer(auto_error=False)


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class NewGameRequest(BaseModel):
    """
    Fields:
        opponent: "localEngine" or "remoteService" ("stockfish"/"chess_tune"
                  are accepted too). Other values create a session the broker
                  will refuse with UnknownOpponentKind.
    """

    opponent: str | None = None


class SessionRequest(BaseModel):
    session_id: str


class SetDepthRequest(BaseModel):
    # Validated by SearchConfig so a bad value is a 400 "Invalid depth value",
    # not a schema error.
    session_id: str
    depth: Any = None


class GetMoveRequest(BaseModel):
    session_id: str
    board: str


class BoardRequest(BaseModel):
    """A FEN to analyse, optionally tied to a session for its search depth."""

    board: str | None = None
    session_id: str | None = None


class PlayerMoveRequest(BaseModel):
    """
    The player's own move, forwarded to backends that track the game.

    Fields:
        from/to/promotion: The move in coordinate form.
        san:   The same move in SAN, as the client's board reports it.
        board: FEN before the move; used to derive SAN when `san` is absent.
    """

    model_config = ConfigDict(populate_by_name=True)

    session_id: str
    from_square: str = Field(alias="from")
    to_square: str = Field(alias="to")
    promotion: str | None = None
    san: str | None = None
    board: str | None = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def get_services(request: Request) -> ArenaServices:
    return request.app.state.services


def _session_or_404(services: ArenaServices, session_id: str) -> GameSession:
    session = services.sessions.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"Unknown session: {session_id}")
    return session


def _search_depth(services: ArenaServices, session_id: str | None) -> int:
    if session_id is None:
        return DEFAULT_SEARCH_DEPTH
    return _session_or_404(services, session_id).search.depth


def _require_board(board: str | None) -> str:
    if not board:
        raise HTTPException(status_code=400, detail="Board position is required")
    return board


def _failure_response(failure: Failure) -> JSONResponse:
    return JSONResponse(
        status_code=_FAILURE_STATUS.get(failure.kind, 500),
        content={"error": failure.message, "kind": failure.kind.value},
    )


def _outcome_response(outcome: MoveOutcome) -> JSONResponse:
    """Map a broker outcome to the wire format shared by every move route."""
    if isinstance(outcome, Success):
        return JSONResponse({"move": outcome.move.to_dict(), "evaluation": outcome.evaluation})
    if isinstance(outcome, GameOver):
        return JSONResponse({"gameOver": {"result": outcome.result}})
    return _failure_response(outcome)


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------


def create_app(services: ArenaServices | None = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        services: Pre-built services (tests). Production services are built
                  from opponents.constants when omitted. Either way they are
                  started and closed with the application's lifespan.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await app.state.services.start()
        try:
            yield
        finally:
            await app.state.services.close()

    app = FastAPI(title="Chess Arena", version="1.0.0", lifespan=lifespan)
    app.state.services = services or ArenaServices.from_settings()
    app.add_middleware(
        CORSMiddleware,
        allow_origins=ALLOWED_ORIGINS,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
        allow_credentials=True,
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        _log.info("Received %s request to %s", request.method, request.url.path)
        return await call_next(request)

    # -----------------------------------------------------------------------
    # Game lifecycle
    # -----------------------------------------------------------------------

    @app.post("/api/new_game")
    async def api_new_game(
        body: NewGameRequest, services: ArenaServices = Depends(get_services)
    ) -> JSONResponse:
        """Create a session and reset the chosen backend for a new game."""
        session = services.sessions.create(body.opponent)
        failure = await services.broker.start_game(session)
        if failure is not None:
            services.sessions.end(session.session_id)
            _log.error("Failed to start new game with %s: %s", body.opponent, failure.message)
            return JSONResponse(
                status_code=_FAILURE_STATUS.get(failure.kind, 500),
                content={"success": False, "error": "Failed to start new game"},
            )
        return JSONResponse({
            "success": True,
            "message": f"New game started with {body.opponent}",
            "session_id": session.session_id,
        })

    @app.post("/api/end_game")
    async def api_end_game(
        body: SessionRequest, services: ArenaServices = Depends(get_services)
    ) -> dict:
        """Drop the session; its opponent and depth are forgotten."""
        services.sessions.end(body.session_id)
        return {"success": True, "message": "Game ended and opponent reset"}

    @app.post("/api/set-depth")
    async def api_set_depth(
        body: SetDepthRequest, services: ArenaServices = Depends(get_services)
    ) -> JSONResponse:
        """Change the search depth used by the session's engine searches."""
        session = _session_or_404(services, body.session_id)
        if not session.set_depth(body.depth):
            return JSONResponse(status_code=400, content={"success": False, "error": "Invalid depth value"})
        _log.info("Session %s search depth set to %d", session.session_id, session.search.depth)
        return JSONResponse({"success": True})

    # -----------------------------------------------------------------------
    # Moves
    # -----------------------------------------------------------------------

    @app.post("/api/get_move")
    async def api_get_move(
        body: GetMoveRequest, services: ArenaServices = Depends(get_services)
    ) -> JSONResponse:
        """Return the session opponent's reply to the given position."""
        session = _session_or_404(services, body.session_id)
        outcome = await services.broker.get_next_move(body.board, session)
        if isinstance(outcome, Failure):
            _log.error("get_move failed (%s): %s", outcome.kind.value, outcome.message)
        return _outcome_response(outcome)

    @app.post("/api/suggest")
    async def api_suggest(
        body: BoardRequest, services: ArenaServices = Depends(get_services)
    ) -> JSONResponse:
        """Suggest the best move for the player from the local engine."""
        board = _require_board(body.board)
        depth = _search_depth(services, body.session_id)
        return _outcome_response(await services.broker.suggest_move(board, depth))

    @app.post("/api/evaluate")
    async def api_evaluate(
        body: BoardRequest, services: ArenaServices = Depends(get_services)
    ) -> dict:
        """Evaluate a position in pawns, positive favoring White."""
        board = _require_board(body.board)
        depth = _search_depth(services, body.session_id)
        return {"evaluation": await services.broker.evaluate_only(board, depth)}

    @app.post("/api/move")
    async def api_move(
        body: PlayerMoveRequest, services: ArenaServices = Depends(get_services)
    ) -> JSONResponse:
        """Record the player's move with backends that keep their own board."""
        session = _session_or_404(services, body.session_id)
        try:
            move = Move(body.from_square, body.to_square, body.promotion)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        if body.san is None and body.board is None:
            raise HTTPException(status_code=400, detail="Either san or board is required")

        failure = await services.broker.relay_player_move(body.board or "", move, session, san=body.san)
        if failure is not None:
            _log.error("Failed to relay move %s: %s", move.uci(), failure.message)
            return JSONResponse(
                status_code=_FAILURE_STATUS.get(failure.kind, 500),
                content={"success": False, "error": "Failed to process the move"},
            )
        return JSONResponse({"success": True, "message": "Move received successfully"})

    # -----------------------------------------------------------------------
    # Presence
    # -----------------------------------------------------------------------

    @app.get("/api/online-users")
    async def api_online_users(
        credentials: HTTPAuthorizationCredentials | None = Depends(_bearer),
        services: ArenaServices = Depends(get_services),
    ) -> list[dict]:
        """List online users. Requires a bearer token accepted by the verifier."""
        if credentials is None:
            raise HTTPException(status_code=401, detail="Missing bearer token")
        username = services.verify_token(credentials.credentials)
        if username is None:
            raise HTTPException(status_code=403, detail="Invalid token")
        return [{"id": u.connection_id, "username": u.username} for u in services.hub.presence.list()]

    @app.websocket("/ws")
    async def ws_realtime(websocket: WebSocket) -> None:
        """Presence and challenge protocol; one connection per client."""
        hub = websocket.app.state.services.hub
        await websocket.accept()
        connection = WebSocketConnection(websocket)
        hub.connect(connection)
        try:
            while True:
                # receive() rather than receive_text(): a socket closed by the
                # server (superseded login) still drains to its disconnect.
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    break
                raw = message.get("text") or message.get("bytes")
                if raw:
                    await hub.handle(connection, raw)
        finally:
            await hub.disconnect(connection)

    @app.get("/", include_in_schema=False)
    def serve_root() -> str:
        return "Hello from Chess Arena backend!"

    return app


app = create_app()
