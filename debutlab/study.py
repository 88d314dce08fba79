"""Study engine: walks a debut line move by move against a scripted opponent.

Each line is played twice. The GUIDED pass shows hints for the expected
move; once the line is finished the engine restarts it in TEST mode with
hints off. Finishing the TEST pass records the outcome in the progress
store and schedules the next review.

Whose move it is never lives in a counter of its own: the student's
half-moves sit at indices parity, parity + 2, ... of the line, so the
expected move is always ucis[parity + step * 2].
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone

from debutlab import rules
from debutlab.models import (
    COMPLETED,
    GUIDED_TO_TEST,
    MODE_COMPLETE,
    MODE_GUIDED,
    MODE_TEST,
    REJECT_EXHAUSTED,
    REJECT_ILLEGAL,
    REJECT_MISMATCH,
    STATUS_MASTERED,
    Accepted,
    ApplyResult,
    BoardProjection,
    Debut,
    Line,
    Rejected,
    UiMessage,
)
from debutlab.progress import ProgressStore
from debutlab.srs import compute_next_review
from debutlab.uci import is_valid_uci, uci_to_san, with_default_promotion

logger = logging.getLogger(__name__)

WITH_HINTS = "with_hints"
NO_HINTS = "no_hints"

# Commentary for well-known moves, keyed by (half-move index, move id)
_KNOWN_COMMENTS = {
    (0, "e2e4"): "e4: White takes the centre and opens lines for the bishop and queen",
    (0, "d2d4"): "d4: White claims the centre and frees the c1 bishop",
    (2, "g1f3"): "Nf3: develops the knight and controls the central squares",
    (4, "f1b5"): "Bb5: the Spanish, attacking the knight on c6",
    (4, "f1c4"): "Bc4: the Italian, aiming at f7",
}

_TEST_MESSAGE = UiMessage(
    kind="info", text="Line complete. Now play it again without hints.", ttl_ms=900
)
_MASTERED_MESSAGE = UiMessage(
    kind="success", text="Line mastered! Moving on to the next one.", ttl_ms=1200
)


def build_move_key(fen: str, uci: str) -> str:
    """Learned-move key: the position before the move plus the move id."""
    return f"{fen}#{uci}"


@dataclass(frozen=True)
class StudyState:
    """Read-only snapshot of a study session."""

    mode: str
    debut: Debut | None
    line: Line | None
    student_index: int
    current_fen: str
    errors: int
    stage: int
    learning_mode: str
    current_comment: str
    show_hint: bool
    learned_moves: frozenset[str]
    line_finished: bool


class StudyEngine:
    """State machine for one student's study session."""

    def __init__(
        self,
        store: ProgressStore,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Create an idle engine.

        Args:
            store: Progress store holding mastery records.
            clock: Returns the current time. Defaults to UTC wall clock.
        """
        self._store = store
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._debut: Debut | None = None
        self._line: Line | None = None
        self._mode = MODE_GUIDED
        self._student_parity = 0
        self._student_index = 0
        self._fen = rules.STARTING_FEN
        self._errors = 0
        self._stage = 0
        self._learning_mode = WITH_HINTS
        self._comment = ""
        self._show_hint = False
        self._learned: frozenset[str] = frozenset()
        self._on_change: Callable[[StudyState], None] | None = None

    # ── Session lifecycle ───────────────────────────────────────────

    def set_state_change_callback(self, callback: Callable[[StudyState], None] | None) -> None:
        self._on_change = callback

    def start(self, debut: Debut) -> bool:
        """Begin studying a debut from its first line.

        Returns:
            False, leaving the session untouched, if the debut has no lines.
        """
        if not debut.lines:
            logger.warning("Debut %s has no lines", debut.id)
            return False
        self._debut = debut
        self.load_line(debut.lines[0])
        return True

    def load_line(self, line: Line) -> None:
        """Load a line of the current debut in GUIDED mode.

        Raises:
            ValueError: If no debut has been started.
        """
        if self._debut is None:
            raise ValueError("No debut started")

        self._line = line
        self._mode = MODE_GUIDED
        self._student_index = 0
        self._errors = 0

        start_fen = rules.resolve_start_fen(line.start_fen)
        first_mover = rules.side_to_move(start_fen)
        self._student_parity = 0 if first_mover == self._debut.side else 1

        record = self._store.get_record(self._debut.id, line.id)
        mastered = record is not None and record.status == STATUS_MASTERED
        self._learning_mode = NO_HINTS if mastered else WITH_HINTS
        self._stage = record.stage if record else 0
        self._refresh_learned()

        self._fen = start_fen
        self.preroll_to_student_turn()
        self._refresh_guidance()

        logger.info(
            "Loaded line %s of %s (%s, student parity %d)",
            line.id, self._debut.id, self._learning_mode, self._student_parity,
        )
        self._notify()

    def load_line_by_id(self, line_id: str) -> bool:
        """Load a line of the current debut by id; False if there is none."""
        if self._debut is None:
            return False
        line = self._debut.get_line(line_id)
        if line is None:
            return False
        self.load_line(line)
        return True

    def next_line_id(self) -> str | None:
        """Ask the progress store which line to study next."""
        if self._debut is None:
            return None
        return self._store.select_next_line(self._debut.id, self._debut.lines, self._clock())

    def reset_debut(self) -> None:
        """Forget all progress of the current debut and restart its first line."""
        if self._debut is None:
            return
        self._store.reset_collection(self._debut.id)
        self.load_line(self._debut.lines[0])

    def finish(self) -> None:
        """Mark the session complete; no further moves are accepted."""
        self._mode = MODE_COMPLETE
        self._show_hint = False
        self._comment = ""
        self._notify()

    def preroll_to_student_turn(self) -> list[str]:
        """Play the opponent's opening half-move if the student is not to move.

        Does nothing when it is already the student's turn, so calling it
        twice plays at most one move.

        Returns:
            The move ids that were played ([] or [first move]).
        """
        if self._line is None or self._debut is None:
            return []
        if rules.side_to_move(self._fen) == self._debut.side:
            return []
        if not self._line.ucis:
            return []
        # Only the opening half-move is ever prerolled
        if self._fen != rules.resolve_start_fen(self._line.start_fen):
            return []
        uci = self._line.ucis[0]
        next_fen = rules.apply_move(self._fen, uci)
        if next_fen is None:
            logger.warning("Preroll move %s refused in line %s", uci, self._line.id)
            return []
        self._fen = next_fen
        return [uci]

    # ── Moves ───────────────────────────────────────────────────────

    def _half_move(self, offset: int) -> str | None:
        if self._line is None:
            return None
        index = self._student_parity + self._student_index * 2 + offset
        if index < len(self._line.ucis):
            return self._line.ucis[index]
        return None

    def current_expected_uci(self) -> str | None:
        """The move the student must play now, or None when the line is over."""
        return self._half_move(0)

    def current_opponent_uci(self) -> str | None:
        return self._half_move(1)

    def is_line_finished(self) -> bool:
        if self._line is None:
            return False
        return self._student_parity + self._student_index * 2 >= len(self._line.ucis)

    def _matches(self, attempt: str, expected: str) -> bool:
        if attempt == expected:
            return True
        if not is_valid_uci(attempt) or not is_valid_uci(expected):
            return False
        return (
            with_default_promotion(attempt, self._fen)
            == with_default_promotion(expected, self._fen)
        )

    def apply_user_move(self, uci: str) -> ApplyResult:
        """Check the student's move against the line and play it.

        On success the scripted reply is played as well. A refused move
        leaves the session exactly as it was.

        Args:
            uci: The student's move id.

        Returns:
            Accepted with position snapshots and any mode transition, or
            Rejected with a reason.
        """
        if self._mode == MODE_COMPLETE:
            return Rejected(reason="Study complete", kind=REJECT_EXHAUSTED)

        expected = self.current_expected_uci()
        if expected is None:
            return Rejected(reason="Line finished", kind=REJECT_EXHAUSTED)

        if not self._matches(uci, expected):
            self._errors += 1
            logger.debug("Move %s rejected, expected %s", uci, expected)
            self._notify()
            return Rejected(
                reason=f"Expected {uci_to_san(expected, self._fen)}",
                kind=REJECT_MISMATCH,
                expected=expected,
            )

        fen_after_student = rules.apply_move(self._fen, expected)
        if fen_after_student is None:
            logger.warning("Oracle refused expected move %s at %s", expected, self._fen)
            return Rejected(reason="Illegal move", kind=REJECT_ILLEGAL, expected=expected)

        opponent = self.current_opponent_uci()
        fen_after_both = fen_after_student
        if opponent is not None:
            fen_after_both = rules.apply_move(fen_after_student, opponent)
            if fen_after_both is None:
                logger.warning(
                    "Malformed line %s: reply %s is not playable",
                    self._line.id, opponent,
                )
                return Rejected(reason="Illegal move", kind=REJECT_ILLEGAL, expected=expected)

        self._fen = fen_after_both
        self._student_index += 1
        finished = self.is_line_finished()

        transition = None
        ui_message = None
        if finished and self._mode == MODE_GUIDED:
            self._enter_test()
            transition = GUIDED_TO_TEST
            ui_message = _TEST_MESSAGE
        elif finished and self._mode == MODE_TEST:
            self._handle_line_completed()
            transition = COMPLETED
            ui_message = _MASTERED_MESSAGE

        self._refresh_guidance()
        self._notify()

        return Accepted(
            fen_after_student=fen_after_student,
            fen_after_both=fen_after_both,
            opponent_uci=opponent,
            finished=finished,
            transition=transition,
            ui_message=ui_message,
        )

    def _enter_test(self) -> None:
        self._mode = MODE_TEST
        self._student_index = 0
        self._errors = 0
        self._stage = 0
        self._fen = rules.resolve_start_fen(self._line.start_fen)
        self.preroll_to_student_turn()
        logger.info("Line %s: guided pass done, starting test", self._line.id)

    def _student_move_keys(self) -> list[str]:
        keys = []
        fen = rules.resolve_start_fen(self._line.start_fen)
        for index, uci in enumerate(self._line.ucis):
            if index % 2 == self._student_parity:
                keys.append(build_move_key(fen, uci))
            next_fen = rules.apply_move(fen, uci)
            if next_fen is None:
                break
            fen = next_fen
        return keys

    def _handle_line_completed(self) -> None:
        debut_id = self._debut.id
        line_id = self._line.id
        now = self._clock()

        record = self._store.get_record(debut_id, line_id)
        prior_stage = record.stage if record else 0
        schedule = compute_next_review(self._errors, prior_stage, now)

        if self._errors == 0:
            self._store.add_learned_moves(debut_id, self._student_move_keys())
            self._refresh_learned()

        self._store.update_record(
            debut_id,
            line_id,
            {
                "status": STATUS_MASTERED,
                "errors": self._errors,
                "completed_at": now,
                "next_review_at": schedule.due_at,
                "stage": schedule.next_stage,
            },
            now=now,
        )
        self._stage = schedule.next_stage

        logger.info(
            "Line %s completed with %d errors (%s band), next review %s, stage %d",
            line_id, self._errors, schedule.band,
            schedule.due_at.isoformat(), schedule.next_stage,
        )

    # ── Guidance and projection ─────────────────────────────────────

    def _refresh_learned(self) -> None:
        if self._debut is None:
            self._learned = frozenset()
        else:
            self._learned = frozenset(self._store.get_learned_moves(self._debut.id))

    def _refresh_guidance(self) -> None:
        self._comment = self.get_step_comment()
        self._show_hint = self._mode == MODE_GUIDED and self._learning_mode == WITH_HINTS

    def get_step_comment(self) -> str:
        expected = self.current_expected_uci()
        if expected is None:
            return ""
        index = self._student_parity + self._student_index * 2
        known = _KNOWN_COMMENTS.get((index, expected))
        if known:
            return known
        return f"{uci_to_san(expected, self._fen)}: next move in the line"

    def is_move_learned(self, uci: str) -> bool:
        """True if uci from the current position is in the learned index."""
        return build_move_key(self._fen, uci) in self._learned

    def allowed_moves(self) -> dict[str, list[str]]:
        """Drag map containing only the expected move."""
        expected = self.current_expected_uci()
        if expected is None:
            return {}
        return {expected[:2]: [expected[2:4]]}

    def projection(self) -> BoardProjection:
        """What the board should show, derived from the current state only."""
        expected = self.current_expected_uci()
        orientation = self._debut.side if self._debut else "white"

        hint_arrow = None
        if self._show_hint and expected and not self.is_move_learned(expected):
            hint_arrow = (expected[:2], expected[2:4])

        if expected is None or self._mode == MODE_COMPLETE:
            allowed = {}
        elif hint_arrow is not None:
            allowed = self.allowed_moves()
        else:
            allowed = rules.legal_destinations(self._fen)

        return BoardProjection(
            fen=self._fen,
            turn=rules.side_to_move(self._fen),
            orientation=orientation,
            in_check=rules.in_check(self._fen),
            allowed_moves=allowed,
            hint_arrow=hint_arrow,
            show_hint=self._show_hint,
        )

    # ── State access ────────────────────────────────────────────────

    @property
    def student_parity(self) -> int:
        return self._student_parity

    @property
    def current_fen(self) -> str:
        return self._fen

    def get_state(self) -> StudyState:
        return StudyState(
            mode=self._mode,
            debut=self._debut,
            line=self._line,
            student_index=self._student_index,
            current_fen=self._fen,
            errors=self._errors,
            stage=self._stage,
            learning_mode=self._learning_mode,
            current_comment=self._comment,
            show_hint=self._show_hint,
            learned_moves=self._learned,
            line_finished=self.is_line_finished(),
        )

    def _notify(self) -> None:
        if self._on_change is not None:
            self._on_change(self.get_state())
