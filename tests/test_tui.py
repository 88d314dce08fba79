"""Tests for the terminal study board rendering."""

from __future__ import annotations

import json

import pytest
from rich.console import Console

from debutlab import rules
from debutlab.tui import _hint_squares, load_study_state, main, render_study


def _state(**overrides) -> dict:
    state = {
        "debut_name": "Ruy Lopez",
        "line_name": "Morphy Defence",
        "side": "white",
        "mode": "GUIDED",
        "fen": rules.STARTING_FEN,
        "errors": 0,
        "stage": 0,
        "hint": "e4",
        "hint_arrow": ["e2", "e4"],
        "comment": "e4: White takes the centre",
        "line_finished": False,
        "move_list": "",
        "progress": 0,
        "learned_moves_count": 0,
        "in_check": False,
    }
    state.update(overrides)
    return state


def _render_text(state: dict) -> str:
    console = Console(record=True, width=120)
    console.print(render_study(state))
    return console.export_text()


class TestRenderStudy:

    def test_sidebar_contents(self):
        text = _render_text(_state(move_list="1.e4 e5", errors=2, progress=33))
        assert "Morphy Defence" in text
        assert "GUIDED" in text
        assert "Errors: 2" in text
        assert "1.e4 e5" in text
        assert "Hint: e4" in text
        assert "Debut mastered: 33%" in text

    def test_board_pieces(self):
        text = _render_text(_state())
        assert "♔" in text
        assert "♚" in text

    def test_check_in_title(self):
        assert "(check)" in _render_text(_state(in_check=True))

    def test_finished_line(self):
        text = _render_text(_state(mode="TEST", hint=None, hint_arrow=None, line_finished=True))
        assert "Line finished" in text
        assert "Hint:" not in text

    def test_hint_squares(self):
        assert _hint_squares(_state()) == {12, 28}
        assert _hint_squares(_state(hint_arrow=None)) == set()
        assert _hint_squares(_state(hint_arrow=["z9", "e4"])) == set()


class TestLoadStudyState:

    def test_missing(self, tmp_path):
        assert load_study_state(tmp_path / "current_study.json") is None

    def test_corrupt(self, tmp_path):
        path = tmp_path / "current_study.json"
        path.write_text("{", encoding="utf-8")
        assert load_study_state(path) is None

    def test_valid(self, tmp_path):
        path = tmp_path / "current_study.json"
        path.write_text(json.dumps(_state()), encoding="utf-8")
        assert load_study_state(path)["line_name"] == "Morphy Defence"


class TestMain:

    def test_once_renders_file(self, tmp_path, capsys):
        path = tmp_path / "current_study.json"
        path.write_text(json.dumps(_state(side="black")), encoding="utf-8")
        main(["--once", "--file", str(path)])
        assert "Playing as: black" in capsys.readouterr().out

    def test_once_without_file_exits(self, study_dirs):
        with pytest.raises(SystemExit):
            main(["--once"])
