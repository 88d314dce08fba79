"""Tests for the move id codec and the chess-rules adapter."""

from __future__ import annotations

import chess
import pytest

from debutlab import rules
from debutlab.uci import (
    InvalidMoveIdError,
    is_pawn_promotion,
    is_valid_uci,
    moves_to_pgn,
    parse_uci,
    promotion_needed,
    san_to_uci,
    to_uci,
    uci_to_san,
    with_default_promotion,
)

_PROMO_FEN = "8/P7/8/8/8/8/8/k6K w - - 0 1"


class TestMoveIds:

    @pytest.mark.parametrize("move_id", ["e2e4", "g1f3", "e7e8q", "a2a1n", "h7h8r"])
    def test_valid(self, move_id):
        assert is_valid_uci(move_id)

    @pytest.mark.parametrize(
        "move_id", ["", "e2", "e2e9", "i2e4", "e7e8k", "e2e4qq", "Nf3", None]
    )
    def test_invalid(self, move_id):
        assert not is_valid_uci(move_id)

    def test_parse(self):
        assert parse_uci("e2e4") == ("e2", "e4", None)
        assert parse_uci("b7b8n") == ("b7", "b8", "n")

    def test_parse_invalid_raises(self):
        with pytest.raises(InvalidMoveIdError):
            parse_uci("e2-e4")

    def test_invalid_move_id_is_value_error(self):
        assert issubclass(InvalidMoveIdError, ValueError)


class TestPromotion:

    def test_promotion_needed_only_for_pawns(self):
        assert promotion_needed("a7", "a8", True)
        assert promotion_needed("h2", "h1", True)
        assert not promotion_needed("a7", "a8", False)
        assert not promotion_needed("e2", "e4", True)

    def test_rank_transition_guess(self):
        assert is_pawn_promotion("a7", "a8") is False
        assert is_pawn_promotion("e2", "e8") is True
        assert is_pawn_promotion("d7", "d1") is True

    def test_drag_gesture_adds_queen(self):
        assert to_uci("a7", "a8", "pawn") == "a7a8q"
        assert to_uci("a7", "a8", "rook") == "a7a8"
        assert to_uci("e2", "e4") == "e2e4"

    def test_with_default_promotion(self):
        assert with_default_promotion("a7a8", _PROMO_FEN) == "a7a8q"
        assert with_default_promotion("a7a8n", _PROMO_FEN) == "a7a8n"
        assert with_default_promotion("h1g1", _PROMO_FEN) == "h1g1"
        assert with_default_promotion("e2e4", chess.STARTING_FEN) == "e2e4"


class TestSan:

    def test_uci_to_san(self):
        assert uci_to_san("g1f3") == "Nf3"
        assert uci_to_san("a7a8", _PROMO_FEN) == "a8=Q+"

    def test_uci_to_san_falls_back_to_move_id(self):
        assert uci_to_san("e2e5") == "e2e5"
        assert uci_to_san("e2e4", "not a fen") == "e2e4"

    def test_san_to_uci(self):
        assert san_to_uci("Nf3", chess.STARTING_FEN) == "g1f3"
        assert san_to_uci("e4", chess.STARTING_FEN) == "e2e4"

    def test_san_to_uci_illegal(self):
        with pytest.raises(InvalidMoveIdError, match="Invalid SAN"):
            san_to_uci("Nf6", chess.STARTING_FEN)


class TestPgn:

    def test_white_first(self):
        assert moves_to_pgn(["e4", "e5", "Nf3"]) == "1.e4 e5 2.Nf3"

    def test_black_first(self):
        assert moves_to_pgn(["c6", "d4"], first_move_number=1, black_first=True) == "1...c6 2.d4"

    def test_empty(self):
        assert moves_to_pgn([]) == ""


# ---------------------------------------------------------------------------
# Rules adapter
# ---------------------------------------------------------------------------


class TestRules:

    def test_resolve_start_fen(self):
        assert rules.resolve_start_fen("startpos") == chess.STARTING_FEN
        assert rules.resolve_start_fen("") == chess.STARTING_FEN
        assert rules.resolve_start_fen(_PROMO_FEN) == _PROMO_FEN

    def test_apply_move(self):
        fen = rules.apply_move(chess.STARTING_FEN, "e2e4")
        board = chess.Board(fen)
        assert board.piece_at(chess.E4) == chess.Piece(chess.PAWN, chess.WHITE)
        assert rules.side_to_move(fen) == "black"

    def test_apply_move_refuses_illegal(self):
        assert rules.apply_move(chess.STARTING_FEN, "e2e5") is None
        assert rules.apply_move(chess.STARTING_FEN, "junk") is None
        assert rules.apply_move("not a fen", "e2e4") is None

    def test_apply_move_defaults_to_queen(self):
        fen = rules.apply_move(_PROMO_FEN, "a7a8")
        assert chess.Board(fen).piece_at(chess.A8) == chess.Piece(chess.QUEEN, chess.WHITE)
        assert rules.in_check(fen) is True

    def test_legal_destinations(self):
        dests = rules.legal_destinations(chess.STARTING_FEN)
        assert sorted(dests["g1"]) == ["f3", "h3"]
        assert sorted(dests["e2"]) == ["e3", "e4"]
        assert "e1" not in dests

    def test_promotion_destinations_are_not_duplicated(self):
        assert rules.legal_destinations(_PROMO_FEN)["a7"] == ["a8"]
