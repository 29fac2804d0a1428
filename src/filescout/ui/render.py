"""
Rich-based renderer for the interactive session.
"""

from typing import List, Optional

from rich.console import Console, Group
from rich.live import Live
from rich.table import Table
from rich.text import Text

from ..session.state import Mode, SessionView


MODE_STYLES = {
    Mode.INSERT: "bold green",
    Mode.SELECT: "bold cyan",
    Mode.COMMAND: "bold magenta",
    Mode.SLEEP: "dim",
    Mode.EXIT: "dim",
}

HELP = {
    Mode.INSERT: "enter/esc select  up/down history  ctrl+w delete word",
    Mode.SELECT: "i insert  : command  enter open  alt+enter open+stay  o folder  r regex  u all  d dirs  p parent  a relative  q quit",
    Mode.COMMAND: "tab complete  enter run  esc cancel",
    Mode.SLEEP: "press any key",
    Mode.EXIT: "",
}


def _flags(view: SessionView) -> List[str]:
    flags = []
    if view.use_regex:
        flags.append("regex!" if view.regex_invalid else "regex")
    if view.directory_only:
        flags.append("dirs")
    if view.unbounded:
        flags.append("all")
    if view.incognito:
        flags.append("incognito")
    if view.crawling:
        flags.append("crawling")
    if view.from_history:
        flags.append("history")
    return flags


def _prompt_line(view: SessionView) -> Text:
    if view.mode is Mode.COMMAND:
        line = Text(":", style="magenta")
        line.append(view.command_buffer)
        line.append(" ", style="reverse")
        return line

    line = Text("> ", style="bold")
    text = view.query_text
    style = "red" if view.regex_invalid else ""
    line.append(text[:view.cursor_position], style=style)
    if view.mode is Mode.INSERT:
        under = text[view.cursor_position:view.cursor_position + 1] or " "
        line.append(under, style="reverse")
        line.append(text[view.cursor_position + 1:], style=style)
    else:
        line.append(text[view.cursor_position:], style=style)
    return line


def build_frame(view: SessionView) -> Group:
    """Build the renderable for one session frame."""
    header = Text()
    header.append(f" {view.mode.value.upper()} ", style=f"reverse {MODE_STYLES[view.mode]}")
    header.append(f"  {view.root}", style="dim")
    flags = _flags(view)
    if flags:
        header.append(f"  [{' '.join(flags)}]", style="yellow")

    table = Table(show_header=False, box=None, expand=True, pad_edge=False)
    table.add_column("#", justify="right", style="dim", width=4)
    table.add_column("name", ratio=2, no_wrap=True)
    table.add_column("location", ratio=3, style="dim", no_wrap=True, overflow="ellipsis")
    table.add_column("score", justify="right", style="dim", width=7)

    for offset, row in enumerate(view.rows):
        name = row.name + ("/" if row.is_directory else "")
        style = "reverse" if row.selected and view.mode is not Mode.INSERT else None
        table.add_row(
            str(view.first_row_number + offset),
            Text(name, style="bold blue" if row.is_directory else ""),
            row.location,
            f"{row.score:.2f}",
            style=style,
        )

    if not view.index_loaded:
        summary = Text("No index yet, crawling..." if view.crawling else "No index", style="yellow")
    else:
        summary = Text(f"{view.result_count} results", style="dim")

    status = Text(view.status_message or HELP[view.mode], style="italic" if view.status_message else "dim")
    return Group(header, _prompt_line(view), table, summary, status)


class SessionRenderer:
    """
    Full-screen renderer; call with a SessionView to draw a frame.

    Use as a context manager to enter and leave the alternate screen.
    """

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()
        self._live: Optional[Live] = None

    def __enter__(self) -> 'SessionRenderer':
        self._live = Live(console=self.console, screen=True, auto_refresh=False, transient=True)
        self._live.__enter__()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self._live is not None:
            self._live.__exit__(exc_type, exc, tb)
            self._live = None

    def __call__(self, view: SessionView) -> None:
        frame = build_frame(view)
        if self._live is None:
            self.console.print(frame)
        else:
            self._live.update(frame, refresh=True)
