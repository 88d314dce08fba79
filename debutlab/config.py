"""Filesystem locations and feature flags.

Defaults live under the project root; each can be overridden with an
environment variable:

    DEBUTLAB_DATA_DIR     progress.json and current_study.json
    DEBUTLAB_CONTENT_DIR  catalog.json and debut documents
    DEBUTLAB_VALIDATE     "1" turns on tool response validation
"""

from __future__ import annotations

import os
from pathlib import Path

_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_DEFAULT_DATA_DIR = _PROJECT_ROOT / "data"
_DEFAULT_CONTENT_DIR = _PROJECT_ROOT / "content"

PROGRESS_FILENAME = "progress.json"
CURRENT_STUDY_FILENAME = "current_study.json"


def data_dir() -> Path:
    return Path(os.environ.get("DEBUTLAB_DATA_DIR") or _DEFAULT_DATA_DIR)


def content_dir() -> Path:
    return Path(os.environ.get("DEBUTLAB_CONTENT_DIR") or _DEFAULT_CONTENT_DIR)


def progress_path() -> Path:
    return data_dir() / PROGRESS_FILENAME


def current_study_path() -> Path:
    return data_dir() / CURRENT_STUDY_FILENAME


def validation_enabled() -> bool:
    return os.environ.get("DEBUTLAB_VALIDATE") == "1"
