"""Content-related MCP tools for the DebutLab tutor.

Registers 3 tools on the provided FastMCP instance:
  - list_debuts
  - get_debut_details
  - get_opponent_reply

Called from server.py via register_content_tools().
"""

from __future__ import annotations

from collections.abc import Callable

from debutlab.content import ContentError, ContentLoader, build_reply_book, line_pgn
from debutlab.progress import ProgressStore
from debutlab.srs import format_time_until_review
from debutlab.uci import uci_to_san


def register_content_tools(
    mcp,
    get_loader: Callable[[], ContentLoader],
    get_store: Callable[[], ProgressStore],
) -> None:
    """Register all content-related MCP tools on the FastMCP instance.

    Args:
        mcp: FastMCP server instance.
        get_loader: Returns the content loader to read debuts with.
        get_store: Returns the progress store for status lookups.
    """

    @mcp.tool()
    def list_debuts() -> dict:
        """List the debuts available for study.

        Returns:
            Dict with debuts list (id, name, side, tags, lines) and total.
        """
        try:
            catalog = get_loader().load_catalog()
        except ContentError as exc:
            return {"error": str(exc)}

        debuts = [
            {
                "id": item.id,
                "name": item.name,
                "side": item.side,
                "tags": list(item.tags),
                "lines": item.lines,
            }
            for item in catalog.debuts
        ]
        return {"debuts": debuts, "total": len(debuts)}

    @mcp.tool()
    def get_debut_details(debut_id: str) -> dict:
        """Get a debut's lines with their PGN and mastery status.

        Args:
            debut_id: Id of the debut.

        Returns:
            Dict with id, name, side, progress percent and lines list.
        """
        try:
            debut = get_loader().load_debut(debut_id)
        except ContentError as exc:
            return {"error": str(exc)}

        store = get_store()
        lines = []
        for line in debut.lines:
            record = store.get_record(debut.id, line.id)
            lines.append({
                "id": line.id,
                "name": line.name,
                "type": line.type,
                "pgn": line_pgn(line),
                "status": record.status if record else "New",
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
            "id": debut.id,
            "name": debut.name,
            "side": debut.side,
            "progress": store.get_overall_progress(debut.id, len(debut.lines)),
            "lines": lines,
        }

    @mcp.tool()
    def get_opponent_reply(debut_id: str, fen: str) -> dict:
        """Look up the debut's prepared opponent reply for a position.

        Args:
            debut_id: Id of the debut.
            fen: Position with the opponent to move.

        Returns:
            Dict with fen, reply (move id or None) and reply_san.
        """
        try:
            debut = get_loader().load_debut(debut_id)
        except ContentError as exc:
            return {"error": str(exc)}

        book = build_reply_book(debut.lines, debut.side)
        reply = book.get(fen)
        return {
            "fen": fen,
            "reply": reply,
            "reply_san": uci_to_san(reply, fen) if reply else None,
        }
