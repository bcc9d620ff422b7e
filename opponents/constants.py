"""
Configuration constants: engine, remote service, and web settings.

All tunables used across the backend are defined here so that no other module
introduces its own magic numbers. Each constant can be overridden by an
environment variable of the same purpose, read once at import time.

Evaluation follows the standard centipawn convention (1 pawn = 100 cp) and is
always reported from White's point of view.
"""

import os


def _env(name: str, default: str) -> str:
    """Return the environment variable `name`, or `default` when unset/blank."""
    value = os.environ.get(name, "").strip()
    return value or default


# ---------------------------------------------------------------------------
# Local engine (UCI subprocess)
# ---------------------------------------------------------------------------
# ENGINE_PATH is resolved by the OS (PATH lookup) when it is a bare name.
ENGINE_PATH: str = _env("CHESS_ENGINE_PATH", "stockfish")

# Depth used for new sessions and for hint/evaluation requests that do not
# name a session.
DEFAULT_SEARCH_DEPTH: int = int(_env("CHESS_SEARCH_DEPTH", "10"))

# Upper bound on one search. A stalled engine must not block the event loop's
# engine queue forever.
ENGINE_TIMEOUT_S: float = float(_env("CHESS_ENGINE_TIMEOUT_S", "30.0"))

# Mate scores have no centipawn value; they are reported as +/- this many
# centipawns (100 pawns) so the evaluation stays a finite number.
MATE_SCORE_CP: int = 10_000

CENTIPAWNS_PER_PAWN: float = 100.0

# ---------------------------------------------------------------------------
# Remote opponent service (HTTP)
# ---------------------------------------------------------------------------
REMOTE_SERVICE_URL: str = _env("CHESS_REMOTE_URL", "http://127.0.0.1:5000")
REMOTE_TIMEOUT_S: float = float(_env("CHESS_REMOTE_TIMEOUT_S", "10.0"))

# ---------------------------------------------------------------------------
# Web surface
# ---------------------------------------------------------------------------
ALLOWED_ORIGINS: list[str] = [
    origin.strip()
    for origin in _env("CHESS_ALLOWED_ORIGINS", "http://localhost:3000").split(",")
    if origin.strip()
]

# Bearer tokens accepted by authenticated routes, as "token:username" pairs
# separated by commas. Token issuance lives outside this service.
API_TOKENS: dict[str, str] = dict(
    pair.split(":", 1)
    for pair in _env("CHESS_API_TOKENS", "").split(",")
    if ":" in pair
)
