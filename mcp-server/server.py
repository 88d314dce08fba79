"""MCP server for the DebutLab opening trainer.

Exposes study sessions to an agent or UI via FastMCP. Sessions are
stored in memory keyed by UUID, one StudyEngine each. Session state is
synced to data/current_study.json after every change for UI consumption.
"""

from __future__ import annotations

import json
import logging
import os
import sys
import uuid
from datetime import datetime, timezone
from pathlib import Path

# Add project root and mcp-server dir to path for imports
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_MCP_SERVER_DIR = Path(__file__).resolve().parent
sys.path.insert(0, str(_PROJECT_ROOT))
sys.path.insert(0, str(_MCP_SERVER_DIR))

from mcp.server.fastmcp import FastMCP

from debutlab import config
from debutlab.content import ContentError, ContentLoader, line_pgn
from debutlab.models import MODE_COMPLETE
from debutlab.progress import ProgressStore
from debutlab.srs import format_time_until_review
from debutlab.storage import JsonFileStorage
from debutlab.study import StudyEngine
from debutlab.uci import InvalidMoveIdError, is_valid_uci, san_to_uci, uci_to_san

from content_tools import register_content_tools  # noqa: E402
from response_schemas import minify_move_result, minify_study_state  # noqa: E402

logger = logging.getLogger(__name__)

mcp = FastMCP("debutlab")

# In-memory session store: session_id -> {engine, store, debut}
_sessions: dict[str, dict] = {}


def _get_loader() -> ContentLoader:
    return ContentLoader(config.content_dir())


def _get_store() -> ProgressStore:
    return ProgressStore(JsonFileStorage(config.progress_path()))


register_content_tools(mcp, _get_loader, _get_store)


def _build_study_state(session_id: str, session: dict) -> dict:
    """Build the full study state dict for a session.

    Args:
        session_id: UUID of the session.
        session: Internal session record with engine, store, debut.

    Returns:
        Dict with session, line, board projection and progress fields.
    """
    engine: StudyEngine = session["engine"]
    store: ProgressStore = session["store"]
    debut = session["debut"]
    state = engine.get_state()
    projection = engine.projection()

    hint = None
    if projection.hint_arrow is not None:
        hint = uci_to_san(engine.current_expected_uci(), state.current_fen)

    return {
        "session_id": session_id,
        "debut_id": debut.id,
        "debut_name": debut.name,
        "side": debut.side,
        "line_id": state.line.id if state.line else "",
        "line_name": state.line.name if state.line else "",
        "mode": state.mode,
        "fen": projection.fen,
        "turn": projection.turn,
        "in_check": projection.in_check,
        "student_index": state.student_index,
        "errors": state.errors,
        "stage": state.stage,
        "learning_mode": state.learning_mode,
        "show_hint": state.show_hint,
        "hint": hint,
        "hint_arrow": list(projection.hint_arrow) if projection.hint_arrow else None,
        "allowed_moves": projection.allowed_moves,
        "comment": state.current_comment,
        "line_finished": state.line_finished,
        "move_list": line_pgn(state.line, stop_at_fen=state.current_fen) if state.line else "",
        "learned_moves_count": len(state.learned_moves),
        "progress": store.get_overall_progress(debut.id, len(debut.lines)),
    }


def _sync_study_json(study_state: dict) -> None:
    """Write study state to data/current_study.json atomically.

    Uses temp file + os.replace() for atomic write.

    Args:
        study_state: Study state dict to persist.
    """
    data_dir = config.data_dir()
    data_dir.mkdir(parents=True, exist_ok=True)
    target = config.current_study_path()
    tmp = data_dir / "current_study.tmp"
    tmp.write_text(
        json.dumps(study_state, indent=2, default=str, ensure_ascii=False),
        encoding="utf-8",
    )
    os.replace(tmp, target)


def _respond(session_id: str, session: dict) -> dict:
    state = _build_study_state(session_id, session)
    _sync_study_json(state)
    return minify_study_state(state)


def _get_session(session_id: str) -> dict | None:
    """Look up a session by ID.

    Args:
        session_id: UUID string.

    Returns:
        Session record dict or None if not found.
    """
    return _sessions.get(session_id)


# ---------------------------------------------------------------------------
# Study tools
# ---------------------------------------------------------------------------


@mcp.tool()
def start_study(debut_id: str, line_id: str | None = None) -> dict:
    """Start studying a debut.

    Picks the line to study from saved progress unless line_id is given.

    Args:
        debut_id: Id of the debut from list_debuts.
        line_id: Optional line to start with.

    Returns:
        Study state dict for the new session.
    """
    try:
        debut = _get_loader().load_debut(debut_id)
    except ContentError as exc:
        return {"error": str(exc)}
    store = _get_store()
    engine = StudyEngine(store)
    if not engine.start(debut):
        return {"error": f"Debut has no lines: {debut_id}"}

    target = line_id or engine.next_line_id()
    if target and target != debut.lines[0].id:
        if not engine.load_line_by_id(target):
            return {"error": f"Line not found: {target}"}

    session_id = str(uuid.uuid4())
    session = {"engine": engine, "store": store, "debut": debut}
    _sessions[session_id] = session
    logger.info("Session %s studying %s", session_id, debut_id)

    return _respond(session_id, session)


@mcp.tool()
def get_study_state(session_id: str) -> dict:
    """Get the current state of a study session.

    Args:
        session_id: UUID of the session.

    Returns:
        Study state dict with position, mode, errors and hint.
    """
    session = _get_session(session_id)
    if session is None:
        return {"error": f"Session not found: {session_id}"}

    return minify_study_state(_build_study_state(session_id, session))


@mcp.tool()
def play_move(session_id: str, move: str) -> dict:
    """Play the student's move in the current line.

    Args:
        session_id: UUID of the session.
        move: Move id (e.g. 'e2e4', 'e7e8q') or SAN (e.g. 'Nf3').

    Returns:
        Dict with the move result and the updated study state.
    """
    session = _get_session(session_id)
    if session is None:
        return {"error": f"Session not found: {session_id}"}

    engine: StudyEngine = session["engine"]
    uci = move
    if not is_valid_uci(move):
        try:
            uci = san_to_uci(move, engine.current_fen)
        except InvalidMoveIdError:
            return {"error": f"Unreadable move: {move}"}

    result = engine.apply_user_move(uci)
    return {
        "result": minify_move_result(result.to_dict()),
        "state": _respond(session_id, session),
    }


@mcp.tool()
def next_line(session_id: str) -> dict:
    """Load the next line to study, or finish when nothing is left.

    Args:
        session_id: UUID of the session.

    Returns:
        Study state dict; mode is COMPLETE when every line is mastered
        and none is due for review.
    """
    session = _get_session(session_id)
    if session is None:
        return {"error": f"Session not found: {session_id}"}

    engine: StudyEngine = session["engine"]
    store: ProgressStore = session["store"]
    debut = session["debut"]

    if not store.has_pending_lines(debut.id, debut.lines, datetime.now(timezone.utc)):
        engine.finish()
    else:
        engine.load_line_by_id(engine.next_line_id())

    return _respond(session_id, session)


@mcp.tool()
def reset_debut(session_id: str) -> dict:
    """Forget all progress of the session's debut and restart it.

    Args:
        session_id: UUID of the session.

    Returns:
        Study state dict positioned at the debut's first line.
    """
    session = _get_session(session_id)
    if session is None:
        return {"error": f"Session not found: {session_id}"}

    session["engine"].reset_debut()
    return _respond(session_id, session)


@mcp.tool()
def get_debut_progress(session_id: str) -> dict:
    """Get mastery records for every line of the session's debut.

    Args:
        session_id: UUID of the session.

    Returns:
        Dict with debut_id, progress percent, complete flag and lines.
    """
    session = _get_session(session_id)
    if session is None:
        return {"error": f"Session not found: {session_id}"}

    store: ProgressStore = session["store"]
    debut = session["debut"]
    records = store.get_debut_progress(debut.id)

    lines = []
    for line in debut.lines:
        record = records.get(line.id)
        lines.append({
            "line_id": line.id,
            "status": record.status if record else "New",
            "errors": record.errors if record else 0,
            "stage": record.stage if record else 0,
            "next_review_at": (
                record.next_review_at.isoformat()
                if record and record.next_review_at else None
            ),
            "review_in": (
                format_time_until_review(record.next_review_at)
                if record and record.next_review_at else None
            ),
        })

    return {
        "debut_id": debut.id,
        "progress": store.get_overall_progress(debut.id, len(debut.lines)),
        "complete": session["engine"].get_state().mode == MODE_COMPLETE,
        "lines": lines,
    }


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    mcp.run()
