"""Move identifier codec.

A move id is origin square + destination square + optional promotion
letter, e.g. "e2e4" or "e7e8q". Promotions that are left unspecified
always default to a queen.
"""

from __future__ import annotations

import chess

_PROMOTION_LETTERS = "qrbn"
_BACK_RANKS = ("1", "8")
DEFAULT_PROMOTION = "q"


class InvalidMoveIdError(ValueError):
    """Raised for strings that are not 4/5-character move ids or valid SAN."""


def _is_square(text: str) -> bool:
    return len(text) == 2 and text[0] in "abcdefgh" and text[1] in "12345678"


def is_valid_uci(move_id: str) -> bool:
    """Return True if move_id is a well-formed 4- or 5-character move id."""
    if not isinstance(move_id, str) or len(move_id) not in (4, 5):
        return False
    if not (_is_square(move_id[:2]) and _is_square(move_id[2:4])):
        return False
    return len(move_id) == 4 or move_id[4] in _PROMOTION_LETTERS


def parse_uci(move_id: str) -> tuple[str, str, str | None]:
    """Split a move id into (origin, destination, promotion).

    Raises:
        InvalidMoveIdError: If move_id is not a well-formed move id.
    """
    if not is_valid_uci(move_id):
        raise InvalidMoveIdError(f"Invalid move id: {move_id!r}")
    promotion = move_id[4] if len(move_id) == 5 else None
    return move_id[:2], move_id[2:4], promotion


def promotion_needed(origin: str, destination: str, moving_piece_is_pawn: bool) -> bool:
    """True iff a pawn is moving onto either back rank."""
    return moving_piece_is_pawn and destination[1] in _BACK_RANKS


def is_pawn_promotion(origin: str, destination: str) -> bool:
    """Guess a promotion from the rank transition alone (2->8 or 7->1).

    Used when the moving piece is not known.
    """
    return (origin[1], destination[1]) in (("2", "8"), ("7", "1"))


def to_uci(origin: str, destination: str, piece_role: str | None = None) -> str:
    """Build a move id from a drag gesture, adding the queen default."""
    needs_promo = promotion_needed(origin, destination, piece_role == "pawn")
    return f"{origin}{destination}{DEFAULT_PROMOTION if needs_promo else ''}"


def with_default_promotion(move_id: str, fen: str) -> str:
    """Append the queen promotion when a pawn reaches the back rank unspecified.

    Args:
        move_id: Move id, possibly without a promotion letter.
        fen: Position the move is played from.

    Returns:
        The move id, with "q" appended when required.
    """
    origin, destination, promotion = parse_uci(move_id)
    if promotion is not None:
        return move_id
    try:
        board = chess.Board(fen)
    except ValueError:
        return move_id
    piece = board.piece_at(chess.parse_square(origin))
    is_pawn = piece is not None and piece.piece_type == chess.PAWN
    if promotion_needed(origin, destination, is_pawn):
        return move_id + DEFAULT_PROMOTION
    return move_id


def uci_to_san(move_id: str, fen: str = chess.STARTING_FEN) -> str:
    """Render a move id in SAN from the given position.

    Falls back to the raw move id when the move cannot be played there.
    """
    try:
        board = chess.Board(fen)
        move = chess.Move.from_uci(with_default_promotion(move_id, fen))
        if move not in board.legal_moves:
            return move_id
        return board.san(move)
    except ValueError:
        return move_id


def san_to_uci(san: str, fen: str) -> str:
    """Convert a SAN move to a move id for the given position.

    Raises:
        InvalidMoveIdError: If san is not a legal move at fen.
    """
    try:
        board = chess.Board(fen)
        return board.parse_san(san).uci()
    except ValueError as exc:
        raise InvalidMoveIdError(f"Invalid SAN: {san}") from exc


def moves_to_pgn(sans: list[str], first_move_number: int = 1, black_first: bool = False) -> str:
    """Render SAN moves as a PGN move string ("1.e4 e5 2.Nf3").

    Args:
        sans: SAN moves in order.
        first_move_number: Full-move number of the first move.
        black_first: True when the sequence starts with a black move.

    Returns:
        Space separated PGN movetext, or "" for no moves.
    """
    parts = []
    offset = 1 if black_first else 0
    for i, san in enumerate(sans):
        ply = i + offset
        move_num = first_move_number + ply // 2
        if ply % 2 == 0:
            parts.append(f"{move_num}.{san}")
        elif i == 0:
            parts.append(f"{move_num}...{san}")
        else:
            parts.append(san)
    return " ".join(parts)
