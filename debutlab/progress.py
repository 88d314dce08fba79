"""Progress store for opening study.

Keeps one MasteryRecord per (debut, line) and a per-debut index of
learned moves, persisted as a single versioned blob through a storage
backend. Also decides which line to study next.

CLI interface outputs JSON to stdout.
"""

from __future__ import annotations

import argparse
import dataclasses
import json
import logging
import sys
from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime, timezone

from debutlab.models import (
    MAIN_LINE,
    ALTERNATIVE,
    STATUS_MASTERED,
    STATUS_NEW,
    STATUS_RELEARN,
    STATUS_REVIEW,
    STATUSES,
    Line,
    MasteryRecord,
)

logger = logging.getLogger(__name__)

SCHEMA_VERSION = "1.0.0"

# Statuses whose due time pre-empts new material
_SCHEDULED_STATUSES = (STATUS_REVIEW, STATUS_RELEARN, STATUS_MASTERED)

# Persisted key for each MasteryRecord field
_FIELD_KEYS = {
    "status": "status",
    "errors": "errors",
    "next_review_at": "nextReviewAt",
    "last_attempt_at": "lastAttemptAt",
    "stage": "stage",
    "completed_at": "completedAt",
}
_TIME_FIELDS = ("next_review_at", "last_attempt_at", "completed_at")
_UPDATABLE_FIELDS = frozenset(_FIELD_KEYS) - {"last_attempt_at"}


# ---------------------------------------------------------------------------
# Record transitions and serialization
# ---------------------------------------------------------------------------


def _to_millis(value: datetime | None) -> int | None:
    if value is None:
        return None
    return int(value.timestamp() * 1000)


def _from_millis(value) -> datetime | None:
    if value is None:
        return None
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)


def apply_update(
    old: MasteryRecord | None,
    update: Mapping[str, object],
    now: datetime,
) -> MasteryRecord:
    """Return the record that results from applying update to old.

    The previous record is never modified. last_attempt_at is always set
    to now, whatever the update says.

    Args:
        old: Existing record, or None for a line never attempted.
        update: Field name -> new value (MasteryRecord field names).
        now: Time of the attempt.

    Returns:
        A new MasteryRecord.

    Raises:
        ValueError: On unknown fields, unknown status or a bad stage.
    """
    unknown = set(update) - _UPDATABLE_FIELDS
    if unknown:
        raise ValueError(f"Unknown mastery fields: {sorted(unknown)}")
    status = update.get("status")
    if status is not None and status not in STATUSES:
        raise ValueError(f"Unknown status: {status}")
    stage = update.get("stage")
    if stage is not None and not 0 <= stage <= 3:
        raise ValueError(f"Stage must be between 0 and 3, got {stage}")

    base = old or MasteryRecord()
    return dataclasses.replace(base, **update, last_attempt_at=now)


def record_to_dict(record: MasteryRecord) -> dict:
    """Serialize a record to the persisted camelCase layout."""
    data = {}
    for name, key in _FIELD_KEYS.items():
        value = getattr(record, name)
        if name in _TIME_FIELDS:
            value = _to_millis(value)
            if value is None:
                continue
        data[key] = value
    return data


def record_from_dict(data: Mapping) -> MasteryRecord:
    """Parse a persisted record, filling defaults for missing fields."""
    values = {}
    for name, key in _FIELD_KEYS.items():
        if key not in data:
            continue
        value = data[key]
        if name in _TIME_FIELDS:
            value = _from_millis(value)
        values[name] = value
    if values.get("status") not in STATUSES:
        values["status"] = STATUS_NEW
    values["errors"] = int(values.get("errors") or 0)
    values["stage"] = int(values.get("stage") or 0)
    return MasteryRecord(**values)


def upgrade_layout(data: dict | None) -> dict:
    """Bring a stored blob up to the current layout in place.

    Missing sections are filled with defaults; nothing is discarded.

    Args:
        data: Blob read from storage, or None.

    Returns:
        The upgraded blob (the same dict when one was given).
    """
    if data is None:
        return {"version": SCHEMA_VERSION, "debuts": {}, "learnedMoves": {}}
    if not data.get("version"):
        data["version"] = SCHEMA_VERSION
    if not isinstance(data.get("debuts"), dict):
        data["debuts"] = {}
    if not isinstance(data.get("learnedMoves"), dict):
        data["learnedMoves"] = {}
    return data


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


class ProgressStore:
    """Durable mastery records and learned-move index."""

    def __init__(self, storage) -> None:
        """Bind the store to a storage backend shared with other stores.

        Args:
            storage: Object with get() -> dict | None and set(dict).
        """
        self._storage = storage
        logger.debug("Loaded progress version %s", self._load()["version"])

    def _load(self) -> dict:
        # Stores sharing one storage see each other's writes
        return upgrade_layout(self._storage.get())

    def _save(self, progress: dict) -> None:
        self._storage.set(progress)

    @property
    def version(self) -> str:
        return self._load()["version"]

    # ── Records ─────────────────────────────────────────────────────

    def get_record(self, debut_id: str, line_id: str) -> MasteryRecord | None:
        return self._record_in(self._load(), debut_id, line_id)

    @staticmethod
    def _record_in(progress: dict, debut_id: str, line_id: str) -> MasteryRecord | None:
        raw = progress["debuts"].get(debut_id, {}).get(line_id)
        if raw is None:
            return None
        return record_from_dict(raw)

    def update_record(
        self,
        debut_id: str,
        line_id: str,
        update: Mapping[str, object],
        now: datetime | None = None,
    ) -> MasteryRecord:
        """Apply a partial update to a line's record and persist it.

        Creates the record if absent and always stamps last_attempt_at.

        Args:
            debut_id: Debut the line belongs to.
            line_id: Line to update.
            update: MasteryRecord field name -> value.
            now: Attempt time. Defaults to the current UTC time.

        Returns:
            The new record.
        """
        now = now or datetime.now(timezone.utc)
        progress = self._load()
        record = apply_update(self._record_in(progress, debut_id, line_id), update, now)
        progress["debuts"].setdefault(debut_id, {})[line_id] = record_to_dict(record)
        self._save(progress)
        return record

    def get_debut_progress(self, debut_id: str) -> dict[str, MasteryRecord]:
        raw = self._load()["debuts"].get(debut_id, {})
        return {line_id: record_from_dict(data) for line_id, data in raw.items()}

    def get_status(self, debut_id: str, line_id: str) -> str:
        record = self.get_record(debut_id, line_id)
        return record.status if record else STATUS_NEW

    def get_errors(self, debut_id: str, line_id: str) -> int:
        record = self.get_record(debut_id, line_id)
        return record.errors if record else 0

    def is_mastered(self, debut_id: str, line_id: str) -> bool:
        return self.get_status(debut_id, line_id) == STATUS_MASTERED

    # ── Learned moves ───────────────────────────────────────────────

    def add_learned_moves(self, debut_id: str, keys: Iterable[str]) -> None:
        """Union keys into the debut's learned-move index, keeping order."""
        progress = self._load()
        learned = progress["learnedMoves"].setdefault(debut_id, [])
        seen = set(learned)
        for key in keys:
            if key not in seen:
                learned.append(key)
                seen.add(key)
        self._save(progress)

    def get_learned_moves(self, debut_id: str) -> list[str]:
        return list(self._load()["learnedMoves"].get(debut_id, []))

    # ── Reset ───────────────────────────────────────────────────────

    def reset_collection(self, debut_id: str) -> None:
        """Forget every record and learned move of one debut."""
        progress = self._load()
        progress["debuts"][debut_id] = {}
        progress["learnedMoves"].pop(debut_id, None)
        self._save(progress)
        logger.info("Reset progress for debut %s", debut_id)

    def clear_progress(self, debut_id: str | None = None) -> None:
        """Drop one debut's records, or everything when debut_id is None."""
        if debut_id is None:
            progress = upgrade_layout(None)
        else:
            progress = self._load()
            progress["debuts"].pop(debut_id, None)
        self._save(progress)

    # ── Queries ─────────────────────────────────────────────────────

    def get_due_lines(self, debut_id: str, now: datetime | None = None) -> list[str]:
        """Ids of recorded lines that are New or whose review is due."""
        now = now or datetime.now(timezone.utc)
        due = []
        for line_id, record in self.get_debut_progress(debut_id).items():
            if record.status == STATUS_NEW:
                due.append(line_id)
            elif record.status in (STATUS_REVIEW, STATUS_RELEARN):
                if record.next_review_at is not None and record.next_review_at <= now:
                    due.append(line_id)
        return due

    def get_overall_progress(self, debut_id: str, total_lines: int) -> int:
        """Percentage of the debut's lines that are Mastered."""
        if total_lines <= 0:
            return 0
        mastered = sum(
            1 for record in self.get_debut_progress(debut_id).values()
            if record.status == STATUS_MASTERED
        )
        return round(mastered / total_lines * 100)

    def select_next_line(
        self,
        debut_id: str,
        lines: Sequence[Line],
        now: datetime | None = None,
    ) -> str:
        """Pick the line to study next.

        Order of preference:
          1. First scheduled line (Review/Relearn/Mastered) that is due.
          2. First New main line.
          3. First New alternative line.
          4. The Review line with the earliest due time.
          5. The first line.

        Args:
            debut_id: Debut being studied.
            lines: The debut's lines in declaration order.
            now: Reference time. Defaults to the current UTC time.

        Returns:
            The chosen line id ("" when lines is empty).
        """
        now = now or datetime.now(timezone.utc)
        progress = self.get_debut_progress(debut_id)

        for line in lines:
            record = progress.get(line.id)
            if (
                record is not None
                and record.status in _SCHEDULED_STATUSES
                and record.next_review_at is not None
                and record.next_review_at <= now
            ):
                return line.id

        for line_type in (MAIN_LINE, ALTERNATIVE):
            for line in lines:
                record = progress.get(line.id)
                is_new = record is None or record.status == STATUS_NEW
                if is_new and line.type == line_type:
                    return line.id

        reviews = [
            (progress[line.id].next_review_at, index, line.id)
            for index, line in enumerate(lines)
            if line.id in progress
            and progress[line.id].status == STATUS_REVIEW
            and progress[line.id].next_review_at is not None
        ]
        if reviews:
            return min(reviews)[2]

        return lines[0].id if lines else ""

    def has_pending_lines(
        self,
        debut_id: str,
        lines: Sequence[Line],
        now: datetime | None = None,
    ) -> bool:
        """False once every line is Mastered and none of them is due yet."""
        now = now or datetime.now(timezone.utc)
        progress = self.get_debut_progress(debut_id)
        for line in lines:
            record = progress.get(line.id)
            if record is None or record.status != STATUS_MASTERED:
                return True
            if record.next_review_at is not None and record.next_review_at <= now:
                return True
        return False

    def to_dict(self) -> dict:
        return self._load()


# ---------------------------------------------------------------------------
# CLI interface
# ---------------------------------------------------------------------------


def _record_json(record: MasteryRecord) -> dict:
    data = dataclasses.asdict(record)
    for name in _TIME_FIELDS:
        if data[name] is not None:
            data[name] = data[name].isoformat()
    return data


def _cli_status(store: ProgressStore, debut_id: str) -> None:
    progress = store.get_debut_progress(debut_id)
    out = {line_id: _record_json(record) for line_id, record in progress.items()}
    print(json.dumps(out, indent=2, ensure_ascii=False))


def _cli_next(store: ProgressStore, debut_id: str) -> None:
    from debutlab.content import ContentError, ContentLoader

    try:
        debut = ContentLoader().load_debut(debut_id)
    except ContentError as exc:
        print(json.dumps({"error": str(exc)}))
        sys.exit(1)
    line_id = store.select_next_line(debut_id, debut.lines)
    print(json.dumps({"debut_id": debut_id, "line_id": line_id}))


def _cli_due(store: ProgressStore, debut_id: str) -> None:
    print(json.dumps({"debut_id": debut_id, "due": store.get_due_lines(debut_id)}))


def _cli_learned(store: ProgressStore, debut_id: str) -> None:
    print(json.dumps(store.get_learned_moves(debut_id), indent=2, ensure_ascii=False))


def _cli_reset(store: ProgressStore, debut_id: str) -> None:
    store.reset_collection(debut_id)
    print(json.dumps({"debut_id": debut_id, "reset": True}))


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for progress.py."""
    from debutlab import config
    from debutlab.storage import JsonFileStorage

    parser = argparse.ArgumentParser(
        description="DebutLab progress - mastery records for opening lines"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    for name, help_text in (
        ("status", "Show mastery records of a debut"),
        ("next", "Show the line to study next"),
        ("due", "List lines that are new or due for review"),
        ("learned", "List learned moves of a debut"),
        ("reset", "Forget all progress of a debut"),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("debut_id", type=str, help="Debut id")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    store = ProgressStore(JsonFileStorage(config.progress_path()))

    if args.command == "status":
        _cli_status(store, args.debut_id)
    elif args.command == "next":
        _cli_next(store, args.debut_id)
    elif args.command == "due":
        _cli_due(store, args.debut_id)
    elif args.command == "learned":
        _cli_learned(store, args.debut_id)
    elif args.command == "reset":
        _cli_reset(store, args.debut_id)


if __name__ == "__main__":
    main()
