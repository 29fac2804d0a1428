"""
Session state for the interactive loop.

SessionState is owned by the control thread and never handed to background
jobs. SessionView is the immutable picture of it handed to the renderer.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

from ..models.search_query import Query
from ..models.search_results import ResultSet


class Mode(Enum):
    """Modes of the session state machine."""
    INSERT = "insert"
    SELECT = "select"
    COMMAND = "command"
    SLEEP = "sleep"
    EXIT = "exit"


@dataclass
class SessionState:
    """
    Mutable state of one interactive session.

    Attributes:
        mode: Current mode
        query: Live query buffer and match options
        results: Result set currently displayed
        command_buffer: Text typed in command mode
        history_cursor: Offset into history while navigating, None for the live buffer
        stashed_content: Live buffer saved while navigating history
        needs_refresh: The displayed results no longer answer the query
        regex_invalid: Regex mode is on and the query does not compile
        show_parent_name: Display the parent directory name beside results
        show_relative_path: Display paths relative to the search root
        last_key_press_time: Clock value of the last key press
        last_tick_time: Clock value of the last tick
        status_message: Transient message for the status line
        status_expires: Clock value when the status message disappears
    """
    mode: Mode = Mode.INSERT
    query: Query = field(default_factory=Query)
    results: ResultSet = field(default_factory=ResultSet)
    command_buffer: str = ""
    history_cursor: Optional[int] = None
    stashed_content: Optional[str] = None
    needs_refresh: bool = True
    regex_invalid: bool = False
    show_parent_name: bool = False
    show_relative_path: bool = False
    last_key_press_time: float = 0.0
    last_tick_time: float = 0.0
    status_message: Optional[str] = None
    status_expires: float = 0.0


@dataclass(frozen=True)
class ResultRow:
    """One visible result line."""
    name: str
    location: str
    is_directory: bool
    score: float
    selected: bool


@dataclass(frozen=True)
class SessionView:
    """Everything the renderer needs for one frame."""
    mode: Mode
    root: str
    query_text: str
    cursor_position: int
    command_buffer: str
    rows: Tuple[ResultRow, ...]
    result_count: int
    first_row_number: int
    use_regex: bool
    directory_only: bool
    unbounded: bool
    regex_invalid: bool
    incognito: bool
    crawling: bool
    index_loaded: bool
    from_history: bool
    status_message: Optional[str]
