"""Unit tests for opponents/rules.py"""

import chess
import pytest

from opponents import rules
from opponents.outcome import Move
from tests.fakes import AFTER_E4_FEN, FOOLS_MATE_FEN, START_FEN, STALEMATE_FEN

CASTLING_FEN = "r3k2r/8/8/8/8/8/8/R3K2R w KQkq - 0 1"
PROMOTION_FEN = "8/P7/8/8/8/8/k7/7K w - - 0 1"


class TestLoadBoard:
    """FEN parsing and validation."""

    def test_valid_fen(self):
        board = rules.load_board(START_FEN)
        assert board.fen() == START_FEN

    @pytest.mark.parametrize("fen", ["", "not a fen", "8/8/8/8/8/8/8/8 w - - 0 1"])
    def test_invalid_fen_raises(self, fen):
        with pytest.raises(rules.InvalidPositionError):
            rules.load_board(fen)

    def test_errors_are_value_errors(self):
        assert issubclass(rules.InvalidPositionError, ValueError)
        assert issubclass(rules.IllegalMoveError, ValueError)


class TestApplyMoves:
    """UCI and SAN moves applied to a copy of the position."""

    def test_apply_uci(self):
        move, new_fen = rules.apply_uci(START_FEN, "e2e4")

        assert move == Move("e2", "e4")
        assert chess.Board(new_fen).turn == chess.BLACK
        assert new_fen.split()[0] == AFTER_E4_FEN.split()[0]

    def test_apply_uci_does_not_touch_input(self):
        fen = START_FEN
        rules.apply_uci(fen, "g1f3")
        assert fen == START_FEN

    @pytest.mark.parametrize("uci", ["e2e5", "zz", "e7e5", ""])
    def test_apply_uci_rejects_illegal(self, uci):
        with pytest.raises(rules.IllegalMoveError):
            rules.apply_uci(START_FEN, uci)

    def test_apply_san(self):
        move, _ = rules.apply_san(START_FEN, "Nf3")
        assert move == Move("g1", "f3")

    def test_apply_san_castling_with_zeros(self):
        move, new_fen = rules.apply_san(CASTLING_FEN, "0-0")
        assert move == Move("e1", "g1")
        assert chess.Board(new_fen).piece_at(chess.F1) == chess.Piece(chess.ROOK, chess.WHITE)

    def test_apply_san_promotion(self):
        move, _ = rules.apply_san(PROMOTION_FEN, "a8=Q")
        assert move == Move("a7", "a8", "q")
        assert move.to_dict() == {"from": "a7", "to": "a8", "promotion": "q"}

    @pytest.mark.parametrize("san", ["Nf6", "e5", "Ke2", "", "hello"])
    def test_apply_san_rejects_illegal(self, san):
        with pytest.raises(rules.IllegalMoveError):
            rules.apply_san(START_FEN, san)

    def test_apply_move_and_to_san(self):
        move = Move("e2", "e4")
        assert rules.to_san(START_FEN, move) == "e4"
        assert rules.apply_move(START_FEN, move) == rules.apply_uci(START_FEN, "e2e4")[1]

    def test_to_san_illegal(self):
        with pytest.raises(rules.IllegalMoveError):
            rules.to_san(START_FEN, Move("e2", "e5"))


class TestGameResult:
    """Game-end detection without draw claims."""

    def test_ongoing(self):
        assert rules.game_result(START_FEN) is None

    def test_checkmate(self):
        assert rules.game_result(FOOLS_MATE_FEN) == "0-1", "Black delivered mate"

    def test_stalemate(self):
        assert rules.game_result(STALEMATE_FEN) == "1/2-1/2"

    def test_insufficient_material(self):
        assert rules.game_result("8/8/8/4k3/8/8/8/4K3 w - - 0 1") == "1/2-1/2"


class TestIsSquare:
    @pytest.mark.parametrize("name", ["a1", "h8", "e4"])
    def test_valid(self, name):
        assert rules.is_square(name)

    @pytest.mark.parametrize("name", ["i1", "a9", "a0", "e", "e44", "", None])
    def test_invalid(self, name):
        assert not rules.is_square(name)
