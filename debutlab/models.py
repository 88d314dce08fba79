"""Shared data models for the DebutLab opening trainer.

Line, Debut and Catalog mirror the content documents. MasteryRecord is
the persisted per-line outcome, and Accepted/Rejected are the two shapes
a study move can produce.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

# Line types
MAIN_LINE = "main_line"
ALTERNATIVE = "alternative"

# Mastery statuses
STATUS_NEW = "New"
STATUS_GUIDED_DONE = "GuidedDone"
STATUS_REVIEW = "Review"
STATUS_RELEARN = "Relearn"
STATUS_MASTERED = "Mastered"

STATUSES = (
    STATUS_NEW,
    STATUS_GUIDED_DONE,
    STATUS_REVIEW,
    STATUS_RELEARN,
    STATUS_MASTERED,
)

# Study modes
MODE_GUIDED = "GUIDED"
MODE_TEST = "TEST"
MODE_COMPLETE = "COMPLETE"

# Mode transitions reported by an accepted move
GUIDED_TO_TEST = "GUIDED_TO_TEST"
COMPLETED = "COMPLETED"

# Rejection kinds
REJECT_MISMATCH = "mismatch"
REJECT_ILLEGAL = "illegal"
REJECT_EXHAUSTED = "exhausted"

MAX_STAGE = 3


@dataclass(frozen=True)
class Line:
    """One scripted branch of an opening."""

    id: str
    type: str
    name: str
    start_fen: str
    ucis: tuple[str, ...]
    min_ply: int = 0


@dataclass(frozen=True)
class Debut:
    """A collection of lines played from one side."""

    id: str
    name: str
    side: str
    lines: tuple[Line, ...]
    tags: tuple[str, ...] = ()

    def get_line(self, line_id: str) -> Line | None:
        for line in self.lines:
            if line.id == line_id:
                return line
        return None


@dataclass(frozen=True)
class CatalogItem:
    """Catalog entry pointing at a debut document."""

    id: str
    name: str
    side: str
    file: str
    tags: tuple[str, ...] = ()
    hash: str | None = None
    lines: int = 0
    approx_size_kb: int = 0


@dataclass(frozen=True)
class Catalog:
    """Index of all available debuts."""

    updated_at: str
    debuts: tuple[CatalogItem, ...] = ()


@dataclass(frozen=True)
class MasteryRecord:
    """Persisted outcome state for one line."""

    status: str = STATUS_NEW
    errors: int = 0
    next_review_at: datetime | None = None
    last_attempt_at: datetime | None = None
    stage: int = 0
    completed_at: datetime | None = None


@dataclass(frozen=True)
class UiMessage:
    """Transient message the host may show after a mode transition."""

    kind: str
    text: str
    ttl_ms: int | None = None


@dataclass(frozen=True)
class Accepted:
    """The student's move matched the line and was played."""

    fen_after_student: str
    fen_after_both: str
    opponent_uci: str | None = None
    finished: bool = False
    transition: str | None = None
    ui_message: UiMessage | None = None

    accepted = True

    def to_dict(self) -> dict:
        result: dict = {
            "accepted": True,
            "opponentUci": self.opponent_uci,
            "lineFinished": self.finished,
            "fenAfterUser": self.fen_after_student,
            "fenAfterBoth": self.fen_after_both,
        }
        if self.transition is not None:
            result["transition"] = self.transition
        if self.ui_message is not None:
            result["uiMessage"] = {
                "kind": self.ui_message.kind,
                "text": self.ui_message.text,
                "ttlMs": self.ui_message.ttl_ms,
            }
        return result


@dataclass(frozen=True)
class Rejected:
    """The move was refused; the session is exactly as it was before."""

    reason: str
    kind: str
    expected: str | None = None

    accepted = False

    def to_dict(self) -> dict:
        return {"accepted": False, "errorMessage": self.reason}


ApplyResult = Accepted | Rejected


@dataclass(frozen=True)
class BoardProjection:
    """What a board widget should show for the current session state."""

    fen: str
    turn: str
    orientation: str
    in_check: bool = False
    allowed_moves: dict[str, list[str]] = field(default_factory=dict)
    hint_arrow: tuple[str, str] | None = None
    show_hint: bool = False
