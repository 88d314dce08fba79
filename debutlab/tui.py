"""Terminal study board for DebutLab.

Renders a Rich-based chess board that auto-updates by watching
data/current_study.json via watchdog at ~4Hz. The hint arrow of a guided
pass is shown by highlighting its origin and destination squares. The
--once flag renders the current file and exits.
"""

from __future__ import annotations

import argparse
import json
import sys
import time
from pathlib import Path

import chess
from rich.console import Console
from rich.layout import Layout
from rich.live import Live
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from debutlab import config

# Unicode piece symbols
_PIECE_SYMBOLS = {
    "K": "♔", "Q": "♕", "R": "♖", "B": "♗",
    "N": "♘", "P": "♙",
    "k": "♚", "q": "♛", "r": "♜", "b": "♝",
    "n": "♞", "p": "♟",
}

_LIGHT_SQ = "grey85"
_DARK_SQ = "grey50"
_HINT_SQ = "green3"

_MODE_STYLES = {
    "GUIDED": "cyan",
    "TEST": "yellow",
    "COMPLETE": "green",
}


def load_study_state(path: Path) -> dict | None:
    """Load a study state dict from a JSON file.

    Args:
        path: Path to the JSON file.

    Returns:
        Parsed dict or None if file missing/corrupt.
    """
    if not path.exists():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError):
        return None
    return data if isinstance(data, dict) else None


def render_study(state: dict) -> Layout:
    """Render the board and sidebar for a study state dict."""
    layout = Layout()
    layout.split_row(
        Layout(name="board", ratio=2),
        Layout(name="sidebar", ratio=1),
    )
    layout["board"].update(_render_board_panel(state))
    layout["sidebar"].update(_render_sidebar(state))
    return layout


def _hint_squares(state: dict) -> set[int]:
    arrow = state.get("hint_arrow")
    if not arrow or len(arrow) != 2:
        return set()
    try:
        return {chess.parse_square(arrow[0]), chess.parse_square(arrow[1])}
    except ValueError:
        return set()


def _render_board_panel(state: dict) -> Panel:
    fen = state.get("fen", chess.STARTING_FEN)
    is_flipped = state.get("side", "white") == "black"
    board = chess.Board(fen)
    highlight = _hint_squares(state)

    table = Table(show_header=False, show_edge=False, pad_edge=False,
                  box=None, padding=(0, 1))

    # Rank label + 8 squares
    table.add_column(width=2, justify="right")
    for _ in range(8):
        table.add_column(width=3, justify="center")

    ranks = range(8) if is_flipped else range(7, -1, -1)
    files = list(range(7, -1, -1)) if is_flipped else list(range(8))

    for rank in ranks:
        row: list[Text] = [Text(str(rank + 1), style="bold")]
        for file in files:
            sq = chess.square(file, rank)
            piece = board.piece_at(sq)

            is_light = (rank + file) % 2 == 1
            bg = _LIGHT_SQ if is_light else _DARK_SQ
            if sq in highlight:
                bg = _HINT_SQ

            symbol = _PIECE_SYMBOLS.get(piece.symbol(), "?") if piece else " "
            row.append(Text(f" {symbol} ", style=f"on {bg}"))
        table.add_row(*row)

    file_labels = [Text("  ")]
    for f in files:
        file_labels.append(Text(f" {chr(ord('a') + f)} ", style="bold"))
    table.add_row(*file_labels)

    title = state.get("debut_name") or "DebutLab"
    if state.get("in_check"):
        title = f"{title} (check)"
    return Panel(table, title=title, border_style="blue")


def _render_sidebar(state: dict) -> Panel:
    parts: list[str] = []

    mode = state.get("mode", "GUIDED")
    style = _MODE_STYLES.get(mode, "white")
    parts.append(f"[bold]{state.get('line_name', '')}[/bold]")
    parts.append(f"Mode: [{style}]{mode}[/{style}]")
    parts.append(f"Errors: {state.get('errors', 0)}  Stage: {state.get('stage', 0)}")
    parts.append("")

    move_list = state.get("move_list", "")
    if move_list:
        parts.append("[bold]Moves:[/bold]")
        parts.append(f"  {move_list}")
        parts.append("")

    if state.get("hint"):
        parts.append(f"[bold]Hint:[/bold] {state['hint']}")
    comment = state.get("comment")
    if comment:
        parts.append(f"[italic]{comment}[/italic]")
    if state.get("line_finished"):
        parts.append("[green]Line finished[/green]")

    parts.append("")
    parts.append(f"Playing as: {state.get('side', 'white')}")
    parts.append(f"Debut mastered: {state.get('progress', 0)}%")
    parts.append(f"Learned moves: {state.get('learned_moves_count', 0)}")

    return Panel("\n".join(parts), title="Study", border_style="green")


def _render_waiting() -> Panel:
    return Panel(
        Text("Waiting for a study session...\n\n"
             "Start one via the MCP server to see the board.",
             justify="center"),
        title="DebutLab",
        border_style="dim",
    )


def _watch_loop(console: Console, path: Path) -> None:
    """Watch the study file and redraw at ~4Hz when it changes."""
    from watchdog.events import FileSystemEventHandler
    from watchdog.observers import Observer

    last_state: dict | None = None
    state_changed = True

    class _Handler(FileSystemEventHandler):
        def on_any_event(self, event):
            nonlocal state_changed
            if str(event.src_path).endswith(path.name) or str(
                getattr(event, "dest_path", "")
            ).endswith(path.name):
                state_changed = True

    observer = Observer()
    path.parent.mkdir(parents=True, exist_ok=True)
    observer.schedule(_Handler(), str(path.parent), recursive=False)
    observer.start()

    try:
        with Live(console=console, refresh_per_second=4) as live:
            while True:
                if state_changed:
                    state = load_study_state(path)
                    if state is not None:
                        last_state = state
                        live.update(render_study(state))
                    elif last_state is None:
                        live.update(_render_waiting())
                    state_changed = False
                time.sleep(0.25)
    except KeyboardInterrupt:
        pass
    finally:
        observer.stop()
        observer.join()


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for tui.py."""
    parser = argparse.ArgumentParser(description="DebutLab terminal study board")
    parser.add_argument(
        "--once", action="store_true",
        help="Render the current study file and exit (no watch loop)",
    )
    parser.add_argument(
        "--file", type=Path, default=None,
        help="Study file to display (default: <data dir>/current_study.json)",
    )
    args = parser.parse_args(argv)

    console = Console()
    path = args.file or config.current_study_path()

    if args.once:
        state = load_study_state(path)
        if state is None:
            console.print(f"[red]No study state found at {path}[/red]")
            sys.exit(1)
        console.print(render_study(state))
        return

    _watch_loop(console, path)


if __name__ == "__main__":
    main()
