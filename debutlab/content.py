"""Content loading for debut catalogs and debut documents.

Reads catalog.json and the debut files it references from a content
directory, checks their schema tags, and parses them into immutable
models. Loaded documents are cached per loader.

Usage:
    from debutlab.content import ContentLoader
    loader = ContentLoader("content")
    debut = loader.load_debut("ruy-lopez")
"""

import json
import logging
from pathlib import Path

from debutlab import config, rules
from debutlab.models import ALTERNATIVE, MAIN_LINE, Catalog, CatalogItem, Debut, Line
from debutlab.uci import is_valid_uci, moves_to_pgn, uci_to_san

logger = logging.getLogger(__name__)

CATALOG_SCHEMA = "debutlab.catalog.v1"
DEBUT_SCHEMA = "debutlab.debut.v1"

_SIDES = ("white", "black")
_LINE_TYPES = (MAIN_LINE, ALTERNATIVE)


class ContentError(Exception):
    """Raised when content is missing, unreadable or fails validation."""


def parse_line(data):
    """Parse one line dict into a Line.

    Raises:
        ContentError: On a missing field, unknown type or malformed move id.
    """
    if not isinstance(data, dict):
        raise ContentError(f"Invalid line: expected an object, got {type(data).__name__}")
    try:
        line_type = data["type"]
        ucis = tuple(data["ucis"])
        line = Line(
            id=data["id"],
            type=line_type,
            name=data.get("name", data["id"]),
            start_fen=data.get("startFen", rules.STARTPOS),
            ucis=ucis,
            min_ply=int(data.get("minPly", len(ucis))),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise ContentError(f"Invalid line: {exc}") from exc

    if line_type not in _LINE_TYPES:
        raise ContentError(f"Invalid line type in {line.id}: {line_type}")
    bad = [uci for uci in ucis if not is_valid_uci(uci)]
    if bad:
        raise ContentError(f"Invalid move ids in line {line.id}: {bad}")
    return line


def parse_debut(data):
    """Parse a debut document dict into a Debut.

    Raises:
        ContentError: On a wrong schema tag or malformed fields.
    """
    if not isinstance(data, dict):
        raise ContentError(f"Invalid debut: expected an object, got {type(data).__name__}")
    if data.get("schema") != DEBUT_SCHEMA:
        raise ContentError(f"Invalid debut schema: {data.get('schema')}")
    side = data.get("side")
    if side not in _SIDES:
        raise ContentError(f"Invalid side: {side}")
    try:
        return Debut(
            id=data["id"],
            name=data.get("name", data["id"]),
            side=side,
            tags=tuple(data.get("tags", [])),
            lines=tuple(
                parse_line(item)
                for item in data.get("lines", data.get("branches", []))
            ),
        )
    except KeyError as exc:
        raise ContentError(f"Invalid debut: missing {exc}") from exc
    except TypeError as exc:
        raise ContentError(f"Invalid debut: {exc}") from exc


def parse_catalog(data):
    if not isinstance(data, dict):
        raise ContentError(f"Invalid catalog: expected an object, got {type(data).__name__}")
    if data.get("schema") != CATALOG_SCHEMA:
        raise ContentError(f"Invalid catalog schema: {data.get('schema')}")
    try:
        items = tuple(
            CatalogItem(
                id=item["id"],
                name=item.get("name", item["id"]),
                side=item.get("side", "white"),
                file=item["file"],
                tags=tuple(item.get("tags", [])),
                hash=item.get("hash"),
                lines=int(item.get("lines", item.get("branches", 0))),
                approx_size_kb=int(item.get("approxSizeKB", 0)),
            )
            for item in data.get("debuts", [])
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise ContentError(f"Invalid catalog entry: {exc}") from exc
    return Catalog(updated_at=data.get("updatedAt", ""), debuts=items)


def build_reply_book(lines, side):
    """Map the FEN before each opponent half-move to that move.

    Later lines overwrite earlier ones when two lines reach the same
    position with different replies.

    Args:
        lines: Lines of a debut.
        side: The student's side ("white" or "black").

    Returns:
        Dict of FEN -> move id.
    """
    book = {}
    for line in lines:
        fen = rules.resolve_start_fen(line.start_fen)
        for uci in line.ucis:
            if rules.side_to_move(fen) != side:
                book[fen] = uci
            next_fen = rules.apply_move(fen, uci)
            if next_fen is None:
                logger.warning("Line %s stops at unplayable move %s", line.id, uci)
                break
            fen = next_fen
    return book


def line_pgn(line, stop_at_fen=None):
    """Render a line as PGN movetext from its start position.

    Args:
        line: Line to render.
        stop_at_fen: When given, stop once this position is reached, so
            only the moves already played in a session are rendered.

    Returns:
        PGN movetext such as "1.e4 e5 2.Nf3".
    """
    fen = rules.resolve_start_fen(line.start_fen)
    fields = fen.split()
    black_first = len(fields) > 1 and fields[1] == "b"
    first_number = int(fields[5]) if len(fields) > 5 else 1

    sans = []
    for uci in line.ucis:
        if fen == stop_at_fen:
            break
        sans.append(uci_to_san(uci, fen))
        next_fen = rules.apply_move(fen, uci)
        if next_fen is None:
            break
        fen = next_fen
    return moves_to_pgn(sans, first_move_number=first_number, black_first=black_first)


class ContentLoader:
    """Loads and caches catalog and debut documents from a directory."""

    def __init__(self, content_dir=None):
        self._content_dir = Path(content_dir) if content_dir else config.content_dir()
        self._cache = {}

    def _read_json(self, path, what):
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError as exc:
            raise ContentError(f"Failed to load {what}: {path} not found") from exc
        except (OSError, json.JSONDecodeError) as exc:
            raise ContentError(f"Failed to load {what}: {exc}") from exc

    def load_catalog(self):
        """Load and validate catalog.json.

        Returns:
            Catalog of available debuts.

        Raises:
            ContentError: If the file is missing, unreadable or invalid.
        """
        if "catalog" in self._cache:
            return self._cache["catalog"]

        data = self._read_json(self._content_dir / "catalog.json", "catalog")
        catalog = parse_catalog(data)
        self._cache["catalog"] = catalog
        return catalog

    def load_debut(self, debut_id):
        """Load a debut through its catalog entry.

        Args:
            debut_id: Id of the debut to load.

        Returns:
            The parsed Debut.

        Raises:
            ContentError: If the debut is not in the catalog, its file cannot
                be read, its schema is wrong or its id does not match.
        """
        cache_key = f"debut-{debut_id}"
        if cache_key in self._cache:
            return self._cache[cache_key]

        catalog = self.load_catalog()
        item = next((d for d in catalog.debuts if d.id == debut_id), None)
        if item is None:
            raise ContentError(f"Debut not found: {debut_id}")

        data = self._read_json(self._content_dir / item.file, f"debut {debut_id}")
        debut = parse_debut(data)
        if debut.id != debut_id:
            raise ContentError(
                f"Debut ID mismatch: expected {debut_id}, got {debut.id}"
            )

        logger.info("Loaded debut %s with %d lines", debut_id, len(debut.lines))
        self._cache[cache_key] = debut
        return debut

    def clear_cache(self):
        self._cache.clear()

    def clear_debut_cache(self, debut_id):
        self._cache.pop(f"debut-{debut_id}", None)
