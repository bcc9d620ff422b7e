"""
Rules adapter: legality, notation, and game-end detection via python-chess.

Every function takes a FEN string and returns new values; nothing here keeps
state between calls and no caller's board is ever mutated. Backends use this
module to verify that the moves they are handed are legal before those moves
reach a client, and to translate between SAN ("Nf3") and the coordinate form
({"from": "g1", "to": "f3"}) the client's board works with.
"""

import chess

from opponents.outcome import SQUARE_RE, Move

# Engines and people occasionally write castling with zeros.
_CASTLE_ZERO = {"0-0": "O-O", "0-0-0": "O-O-O", "0-0+": "O-O+", "0-0-0+": "O-O-O+"}


class RulesError(ValueError):
    """Base class for positions and moves the rules adapter rejects."""


class InvalidPositionError(RulesError):
    """The FEN string does not describe a valid position."""


class IllegalMoveError(RulesError):
    """The move is malformed or not legal in the given position."""


def is_square(name: str) -> bool:
    """Return True if `name` is a square name such as "e4"."""
    return isinstance(name, str) and bool(SQUARE_RE.match(name))


def load_board(fen: str) -> chess.Board:
    """
    Parse a FEN string into a fresh board.

    Raises:
        InvalidPositionError: if python-chess cannot parse the FEN, or the
            resulting position is not one that can arise in a game.
    """
    try:
        board = chess.Board(fen)
    except (ValueError, TypeError) as exc:
        raise InvalidPositionError(f"Invalid FEN: {exc}") from exc
    if not board.is_valid():
        raise InvalidPositionError(f"Invalid FEN: {board.status()!r}")
    return board


def _to_move(board: chess.Board, move: chess.Move) -> Move:
    promotion = chess.piece_symbol(move.promotion) if move.promotion else None
    return Move(
        chess.square_name(move.from_square),
        chess.square_name(move.to_square),
        promotion,
    )


def _push_checked(board: chess.Board, move: chess.Move) -> tuple[Move, str]:
    if move not in board.legal_moves:
        raise IllegalMoveError(f"Illegal move {move.uci()} in {board.fen()}")
    result = _to_move(board, move)
    board.push(move)
    return result, board.fen()


def apply_uci(fen: str, uci: str) -> tuple[Move, str]:
    """
    Apply a move in long algebraic notation ("e2e4", "e7e8q").

    Returns:
        (move, new_fen)

    Raises:
        InvalidPositionError: bad FEN.
        IllegalMoveError: unparseable or illegal move.
    """
    board = load_board(fen)
    try:
        move = chess.Move.from_uci(uci)
    except (ValueError, TypeError) as exc:
        raise IllegalMoveError(f"Unparseable move {uci!r}") from exc
    return _push_checked(board, move)


def apply_san(fen: str, san: str) -> tuple[Move, str]:
    """
    Apply a move in Standard Algebraic Notation ("Nf3", "O-O", "exd8=Q+").

    Returns:
        (move, new_fen)

    Raises:
        InvalidPositionError: bad FEN.
        IllegalMoveError: unparseable, ambiguous, or illegal move.
    """
    board = load_board(fen)
    token = _CASTLE_ZERO.get(san.strip(), san.strip()) if isinstance(san, str) else ""
    try:
        move = board.parse_san(token)
    except ValueError as exc:
        raise IllegalMoveError(f"Invalid SAN {san!r}: {exc}") from exc
    return _push_checked(board, move)


def apply_move(fen: str, move: Move) -> str:
    """Apply a coordinate move and return the new FEN."""
    return apply_uci(fen, move.uci())[1]


def to_san(fen: str, move: Move) -> str:
    """Render a coordinate move in SAN for the given position."""
    board = load_board(fen)
    chess_move = chess.Move.from_uci(move.uci())
    if chess_move not in board.legal_moves:
        raise IllegalMoveError(f"Illegal move {move.uci()} in {fen}")
    return board.san(chess_move)


def game_result(fen: str) -> str | None:
    """
    Return the result string if the position is terminal, else None.

    Only conditions that end the game without a claim count: checkmate,
    stalemate, insufficient material, the 75-move rule and fivefold
    repetition (the last cannot be seen from a lone FEN, but is harmless).
    """
    board = load_board(fen)
    outcome = board.outcome(claim_draw=False)
    if outcome is None:
        return None
    return outcome.result()
