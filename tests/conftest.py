"""Shared test fixtures for the DebutLab test suite.

Fixtures:
    white_line / white_debut  - Four-ply Ruy Lopez stub studied as White.
    black_debut               - Caro-Kann lines studied as Black.
    store                     - ProgressStore over in-memory storage.
    clock                     - Mutable fixed clock for the study engine.
    engine                    - StudyEngine wired to store and clock.
    study_dirs                - Points DEBUTLAB_DATA_DIR at tmp_path and
                                DEBUTLAB_CONTENT_DIR at the bundled content.
    enable_validation         - Sets DEBUTLAB_VALIDATE=1 for schema validation.
"""

from __future__ import annotations

import os
from datetime import datetime, timezone
from pathlib import Path

import pytest

from debutlab.models import ALTERNATIVE, MAIN_LINE, Debut, Line
from debutlab.progress import ProgressStore
from debutlab.storage import MemoryStorage
from debutlab.study import StudyEngine

_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_CONTENT_DIR = _PROJECT_ROOT / "content"

NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


class FixedClock:
    """Clock returning a settable instant."""

    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


def make_line(
    line_id: str,
    ucis: list[str],
    line_type: str = MAIN_LINE,
    start_fen: str = "startpos",
) -> Line:
    return Line(
        id=line_id,
        type=line_type,
        name=line_id.replace("-", " ").title(),
        start_fen=start_fen,
        ucis=tuple(ucis),
        min_ply=len(ucis),
    )


# ---------------------------------------------------------------------------
# Content fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def white_line() -> Line:
    return make_line("ruy-stub", ["e2e4", "e7e5", "g1f3", "b8c6"])


@pytest.fixture()
def white_debut(white_line) -> Debut:
    return Debut(
        id="ruy-lopez",
        name="Ruy Lopez",
        side="white",
        tags=("e4",),
        lines=(
            white_line,
            make_line("italian", ["e2e4", "e7e5", "g1f3", "b8c6", "f1c4"], ALTERNATIVE),
        ),
    )


@pytest.fixture()
def black_debut() -> Debut:
    return Debut(
        id="caro-kann",
        name="Caro-Kann Defence",
        side="black",
        lines=(
            make_line("advance", ["e2e4", "c7c6", "d2d4", "d7d5", "e4e5", "c8f5"]),
            make_line(
                "exchange",
                ["e2e4", "c7c6", "d2d4", "d7d5", "e4d5", "c6d5"],
                ALTERNATIVE,
            ),
        ),
    )


# ---------------------------------------------------------------------------
# Engine fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def store() -> ProgressStore:
    return ProgressStore(MemoryStorage())


@pytest.fixture()
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture()
def engine(store, clock) -> StudyEngine:
    return StudyEngine(store, clock=clock)


# ---------------------------------------------------------------------------
# Data directory fixture
# ---------------------------------------------------------------------------


@pytest.fixture()
def study_dirs(tmp_path, monkeypatch):
    """Isolate progress and sync files in tmp_path; use bundled content."""
    data_dir = tmp_path / "data"
    monkeypatch.setenv("DEBUTLAB_DATA_DIR", str(data_dir))
    monkeypatch.setenv("DEBUTLAB_CONTENT_DIR", str(_CONTENT_DIR))
    return data_dir


# ---------------------------------------------------------------------------
# Schema validation fixture
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def enable_validation():
    """Set DEBUTLAB_VALIDATE=1 for the test session.

    Restores the original env var value after the test.
    """
    original = os.environ.get("DEBUTLAB_VALIDATE")
    os.environ["DEBUTLAB_VALIDATE"] = "1"
    yield
    if original is None:
        os.environ.pop("DEBUTLAB_VALIDATE", None)
    else:
        os.environ["DEBUTLAB_VALIDATE"] = original
