"""Response schemas and minification for MCP tool responses.

Minifies MCP tool return values to reduce LLM context token waste.
data/current_study.json (UI sync) is NOT affected; only MCP return values are.

The played part of the line is rendered as a PGN string
(1.e4 e5 2.Nf3 ...) which is natural for the LLM agent to read.
"""

from __future__ import annotations

from debutlab import config


# ---------------------------------------------------------------------------
# Minification functions
# ---------------------------------------------------------------------------


def minify_study_state(state: dict) -> dict:
    """Minify a study state dict for MCP response.

    Replaces the allowed_moves map with a count, drops learned-move
    bookkeeping and the board display fields only a UI needs.

    Args:
        state: Full study state dict (as produced by _build_study_state).

    Returns:
        Minified dict with reduced token footprint.
    """
    result = {}

    # Keep core fields as-is
    for key in (
        "session_id", "debut_id", "line_id", "mode", "fen", "turn",
        "student_index", "errors", "stage", "show_hint", "hint",
        "comment", "line_finished", "move_list", "progress",
    ):
        if key in state:
            result[key] = state[key]

    # Replace allowed_moves map with count of destinations
    allowed = state.get("allowed_moves", {})
    if isinstance(allowed, dict):
        result["allowed_moves_count"] = sum(len(v) for v in allowed.values())
    else:
        result["allowed_moves_count"] = 0

    # Removed fields: debut_name, line_name, side, learning_mode,
    # learned_moves_count, hint_arrow, in_check

    return result


def minify_move_result(result: dict) -> dict:
    """Minify an apply result dict for MCP response.

    Drops the intermediate FEN (the state carries the final one) and
    flattens uiMessage to its text.

    Args:
        result: Apply result dict (from Accepted/Rejected.to_dict()).

    Returns:
        Minified dict.
    """
    out = {"accepted": result.get("accepted", False)}

    if not out["accepted"]:
        out["errorMessage"] = result.get("errorMessage", "")
        return out

    for key in ("opponentUci", "lineFinished", "transition"):
        if key in result:
            out[key] = result[key]

    message = result.get("uiMessage")
    if isinstance(message, dict):
        out["message"] = message.get("text", "")

    # Removed fields: fenAfterUser, fenAfterBoth, uiMessage

    return out


# ---------------------------------------------------------------------------
# Validation schemas (dict-based)
# ---------------------------------------------------------------------------

STUDY_STATE_SCHEMA = {
    "session_id": str,
    "debut_id": str,
    "line_id": str,
    "mode": str,
    "fen": str,
    "turn": str,
    "student_index": int,
    "errors": int,
    "stage": int,
    "show_hint": bool,
    "hint": (str, type(None)),
    "comment": str,
    "line_finished": bool,
    "move_list": str,
    "progress": int,
    "allowed_moves_count": int,
}

ACCEPTED_SCHEMA = {
    "accepted": bool,
    "opponentUci": (str, type(None)),
    "lineFinished": bool,
}

REJECTED_SCHEMA = {
    "accepted": bool,
    "errorMessage": str,
}

ERROR_SCHEMA = {
    "error": str,
}


def validate_response(response: dict, schema: dict) -> list[str]:
    """Validate a response dict against a schema.

    Only runs when DEBUTLAB_VALIDATE=1 env var is set.

    Args:
        response: Response dict to validate.
        schema: Dict mapping key names to expected types (or tuple of types).

    Returns:
        List of validation error strings (empty = valid).
    """
    if not config.validation_enabled():
        return []

    errors = []

    if not isinstance(response, dict):
        errors.append(f"Response is not a dict: {type(response).__name__}")
        return errors

    for key, expected_types in schema.items():
        if key not in response:
            errors.append(f"Missing key: {key}")
            continue

        value = response[key]
        if isinstance(expected_types, tuple):
            if not isinstance(value, expected_types):
                type_names = ", ".join(t.__name__ for t in expected_types)
                errors.append(
                    f"Key '{key}': expected ({type_names}), "
                    f"got {type(value).__name__}"
                )
        else:
            if not isinstance(value, expected_types):
                errors.append(
                    f"Key '{key}': expected {expected_types.__name__}, "
                    f"got {type(value).__name__}"
                )

    return errors
