"""Key-value blob storage backends for progress data.

Both backends hold a single JSON-compatible dict behind get()/set().
The file backend writes atomically and survives corrupted files by
backing them up and starting fresh.
"""

from __future__ import annotations

import copy
import json
import logging
import os
import shutil
from pathlib import Path

logger = logging.getLogger(__name__)


class MemoryStorage:
    """In-process storage, used by tests and ephemeral sessions."""

    def __init__(self, initial: dict | None = None) -> None:
        self._value = copy.deepcopy(initial) if initial is not None else None

    def get(self) -> dict | None:
        return copy.deepcopy(self._value)

    def set(self, value: dict) -> None:
        self._value = copy.deepcopy(value)


class JsonFileStorage:
    """Stores the blob as a JSON file."""

    def __init__(self, path: str | Path) -> None:
        """Bind storage to a file path; the file is created on first set().

        Args:
            path: Path to the JSON file.
        """
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def get(self) -> dict | None:
        """Read the stored blob.

        A file that is not valid JSON or does not hold an object is copied
        to a .bak file and treated as missing.

        Returns:
            The stored dict, or None if there is nothing usable.
        """
        if not self._path.exists():
            return None

        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
            if not isinstance(data, dict):
                raise ValueError("Progress file must contain a JSON object")
            return data
        except (json.JSONDecodeError, ValueError):
            backup_path = self._path.with_suffix(".bak")
            shutil.copy2(self._path, backup_path)
            logger.warning(
                "Corrupt progress file %s backed up to %s", self._path, backup_path
            )
            return None

    def set(self, value: dict) -> None:
        """Write the blob with temp file + os.replace()."""
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(".tmp")
        tmp_path.write_text(
            json.dumps(value, indent=2, ensure_ascii=False),
            encoding="utf-8",
        )
        os.replace(tmp_path, self._path)
