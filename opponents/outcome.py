"""
Value types shared by every opponent backend.

A move request can end in exactly one of three ways, and callers must be able
to tell them apart without inspecting error strings:

    Success   the backend produced a legal move, plus an evaluation in pawns
    GameOver  the position is finished; the caller ends the game
    Failure   something went wrong; `kind` says what, `message` says why

`MoveOutcome` is the union of the three. Adapters return these values rather
than raising, so the broker and the web layer handle every backend the same
way.
"""

import enum
import re
from dataclasses import dataclass, field
from typing import Union

from opponents.constants import DEFAULT_SEARCH_DEPTH

SQUARE_RE = re.compile(r"^[a-h][1-8]$")
PROMOTION_PIECES = frozenset({"q", "r", "b", "n"})


# ---------------------------------------------------------------------------
# Moves
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Move:
    """
    A move in coordinate form, as the client's board expects it.

    Attributes:
        from_square: Origin square name, e.g. "e2".
        to_square:   Destination square name, e.g. "e4".
        promotion:   Promotion piece letter ("q", "r", "b", "n") or None.

    Raises:
        ValueError: if a square name or the promotion piece is malformed.
    """

    from_square: str
    to_square: str
    promotion: str | None = None

    def __post_init__(self) -> None:
        for square in (self.from_square, self.to_square):
            if not isinstance(square, str) or not SQUARE_RE.match(square):
                raise ValueError(f"Malformed square: {square!r}")
        if self.promotion is not None and self.promotion not in PROMOTION_PIECES:
            raise ValueError(f"Malformed promotion piece: {self.promotion!r}")

    @classmethod
    def from_uci(cls, uci: str) -> "Move":
        """Build a Move from long algebraic notation ("e7e8q")."""
        return cls(uci[0:2], uci[2:4], uci[4:5] or None)

    def uci(self) -> str:
        return f"{self.from_square}{self.to_square}{self.promotion or ''}"

    def to_dict(self) -> dict[str, str]:
        """Wire form: {"from", "to"} plus "promotion" only when present."""
        data = {"from": self.from_square, "to": self.to_square}
        if self.promotion:
            data["promotion"] = self.promotion
        return data


# ---------------------------------------------------------------------------
# Opponent kinds
# ---------------------------------------------------------------------------


class OpponentKind(str, enum.Enum):
    """Backends a session can play against through the move broker."""

    LOCAL_ENGINE = "localEngine"
    REMOTE_SERVICE = "remoteService"

    @classmethod
    def _missing_(cls, value: object) -> "OpponentKind | None":
        # Older clients name the backends after the programs behind them.
        aliases = {"stockfish": cls.LOCAL_ENGINE, "chess_tune": cls.REMOTE_SERVICE}
        if isinstance(value, str):
            return aliases.get(value)
        return None


# ---------------------------------------------------------------------------
# Outcomes
# ---------------------------------------------------------------------------


class FailureKind(str, enum.Enum):
    """Why a move request failed."""

    NO_OPPONENT_SELECTED = "NoOpponentSelected"
    UNKNOWN_OPPONENT_KIND = "UnknownOpponentKind"
    INVALID_POSITION = "InvalidPosition"
    ENGINE_SUGGESTED_ILLEGAL_MOVE = "EngineSuggestedIllegalMove"
    INVALID_REMOTE_MOVE = "InvalidRemoteMove"
    REMOTE_SERVICE_UNAVAILABLE = "RemoteServiceUnavailable"
    REMOTE_SERVICE_ERROR = "RemoteServiceError"
    ENGINE_UNAVAILABLE = "EngineUnavailable"
    ENGINE_TIMEOUT = "EngineTimeout"


@dataclass(frozen=True)
class Success:
    """A legal move and the evaluation (pawns, positive favors White) after it."""

    move: Move
    evaluation: float


@dataclass(frozen=True)
class GameOver:
    """The game is finished. `result` is e.g. "1-0", "0-1", "1/2-1/2"."""

    result: str


@dataclass(frozen=True)
class Failure:
    kind: FailureKind
    message: str


MoveOutcome = Union[Success, GameOver, Failure]


# ---------------------------------------------------------------------------
# Search configuration
# ---------------------------------------------------------------------------


@dataclass
class SearchConfig:
    """
    Fixed-depth search settings for the local engine.

    Invariant: `depth` is always a positive integer. `set_depth` refuses
    anything else and leaves the current value untouched.
    """

    depth: int = field(default=DEFAULT_SEARCH_DEPTH)

    def set_depth(self, value: object) -> bool:
        """
        Update the search depth if `value` is a positive whole number.

        Integral floats (e.g. 12.0, as JSON clients sometimes send) are
        accepted; bools, fractions, zero, negatives and non-numbers are not.

        Returns:
            True if the depth was updated, False if the value was invalid.
        """
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return False
        if isinstance(value, float) and not value.is_integer():
            return False
        if value < 1:
            return False
        self.depth = int(value)
        return True
