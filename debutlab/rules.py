"""Chess-rules adapter over python-chess.

The study engine only talks to the board through these functions:
positions go in and out as FEN strings, moves as move ids.
"""

from __future__ import annotations

import logging

import chess

from debutlab.uci import is_valid_uci, with_default_promotion

logger = logging.getLogger(__name__)

STARTPOS = "startpos"
STARTING_FEN = chess.STARTING_FEN


def resolve_start_fen(start_fen: str) -> str:
    """Map the "startpos" marker to the standard initial position."""
    if not start_fen or start_fen == STARTPOS:
        return STARTING_FEN
    return start_fen


def _board(fen: str) -> chess.Board | None:
    try:
        return chess.Board(fen)
    except ValueError:
        logger.warning("Unparseable FEN: %s", fen)
        return None


def apply_move(fen: str, move_id: str) -> str | None:
    """Play move_id at fen.

    An unspecified promotion defaults to a queen.

    Args:
        fen: Position before the move.
        move_id: Move id to play.

    Returns:
        The FEN after the move, or None if the move is malformed or illegal.
    """
    if not is_valid_uci(move_id):
        return None
    board = _board(fen)
    if board is None:
        return None
    move = chess.Move.from_uci(with_default_promotion(move_id, fen))
    if move not in board.legal_moves:
        return None
    board.push(move)
    return board.fen()


def legal_destinations(fen: str) -> dict[str, list[str]]:
    """Map each origin square to its legal destination squares."""
    board = _board(fen)
    if board is None:
        return {}
    dests: dict[str, list[str]] = {}
    for move in board.legal_moves:
        origin = chess.square_name(move.from_square)
        target = chess.square_name(move.to_square)
        targets = dests.setdefault(origin, [])
        if target not in targets:
            targets.append(target)
    return dests


def side_to_move(fen: str) -> str:
    """Return "white" or "black"."""
    board = _board(fen)
    if board is None or board.turn == chess.WHITE:
        return "white"
    return "black"


def in_check(fen: str) -> bool:
    board = _board(fen)
    return board is not None and board.is_check()
