"""
Interactive session controller.

The controller runs the state machine on a single control thread. Each tick
it consumes at most one key press, checks the idle timers, adopts a freshly
published index, asks for a query refresh when the results are out of date,
and adopts a finished query job if it is newer than what is displayed. All
crawling, matching and scoring happens in background jobs; the controller
only starts, cancels and polls them.
"""

import logging
import os
import threading
import time
from datetime import date
from pathlib import Path
from typing import Callable, Optional

from ..core.crawler import Crawler
from ..core.history import HistoryStore, LookupCounter
from ..core.jobs import JobHandle, JobRunner, JobState
from ..core.query_engine import QueryEngine, final_score
from ..errors import InvalidPathError, ItemNotFoundError, StorageError
from ..models.config import ScoutConfig
from ..models.items import IndexedItem
from ..models.search_query import Query
from ..models.search_results import ResultSet, ScoredItem
from . import keys
from .commands import Command, CommandName, autocomplete, parse_command
from .keys import KeyEvent, KeySource
from .state import Mode, ResultRow, SessionState, SessionView


logger = logging.getLogger(__name__)

Opener = Callable[[str, bool], None]
Renderer = Callable[[SessionView], None]


class SessionController:
    """
    Drives one interactive search session.

    Args:
        config: Session configuration
        crawler: Crawler holding the current index
        engine: Query engine for background searches
        runner: Job runner used for open actions
        history: History store (written only here)
        lookups: Lookup counter (written only here)
        keys: Source of key presses, polled without blocking
        opener: Performs the OS open of a path (path, open_parent)
        renderer: Called with a SessionView whenever the screen changed
        initial_query: Query text to start with; starts in select mode when given
        clock: Monotonic clock used for timers
        path_exists: Existence check for open actions and history hits
    """

    def __init__(self, config: ScoutConfig, crawler: Crawler, engine: QueryEngine, runner: JobRunner,
                 history: HistoryStore, lookups: LookupCounter, keys: KeySource,
                 opener: Opener, renderer: Optional[Renderer] = None,
                 initial_query: str = "",
                 clock: Callable[[], float] = time.monotonic,
                 path_exists: Callable[[str], bool] = os.path.exists):
        self.config = config
        self.crawler = crawler
        self.engine = engine
        self.runner = runner
        self.history = history
        self.lookups = lookups
        self.keys = keys
        self.opener = opener
        self.renderer = renderer
        self.clock = clock
        self.path_exists = path_exists

        now = clock()
        self.state = SessionState(
            mode=Mode.SELECT if initial_query else Mode.INSERT,
            query=Query.from_text(initial_query),
            last_key_press_time=now,
            last_tick_time=now,
        )
        self._generation = 0
        self._open_job: Optional[JobHandle] = None
        self._open_generation = 0
        self._reported_query_failure = 0
        self._reported_crawl_failure = 0
        self._reported_open_failure = 0
        self.dirty = True

    # Lifecycle

    @property
    def mode(self) -> Mode:
        return self.state.mode

    @property
    def tick_interval(self) -> float:
        if self.state.mode is Mode.SLEEP:
            return self.config.session.sleep_tick_interval
        return self.config.session.tick_interval

    def start(self, today: Optional[date] = None) -> None:
        """Trigger a crawl when the index is missing, stale or for another root."""
        if not self.config.session.auto_crawl:
            return
        today = today or date.today()
        index = self.crawler.index
        marker = self.crawler.crawl_marker
        root = str(self.config.get_root_path())

        if index is None:
            reason = "no index"
        elif index.root != root:
            reason = f"index is for {index.root}"
        elif marker is not None and not self._marker_current(today):
            reason = "index is from an earlier day"
        else:
            return

        logger.info(f"Crawling on start: {reason}")
        self.request_crawl()

    def _marker_current(self, today: date) -> bool:
        try:
            return self.crawler.crawl_marker.is_current(today)
        except StorageError as e:
            logger.warning(f"Treating crawl marker as stale: {e}")
            return False

    def run(self) -> None:
        """Tick until the session exits, then wait for any pending open action."""
        try:
            while self.state.mode is not Mode.EXIT:
                self.tick()
                if self.dirty and self.renderer is not None:
                    self.renderer(self.view())
                    self.dirty = False
                time.sleep(self.tick_interval)
        finally:
            self.shutdown()

    def shutdown(self) -> None:
        """Stop background searches and crawls; always finish the open action."""
        self.state.mode = Mode.EXIT
        self.engine.cancel()
        self.crawler.cancel()
        if self._open_job is not None:
            self._open_job.wait()
            self._report_open_failure()

    # Tick

    def tick(self, now: Optional[float] = None) -> None:
        """Run one iteration of the control loop."""
        now = self.clock() if now is None else now
        self.state.last_tick_time = now

        event = self.keys.read_key(0.0)
        if event is not None:
            self.handle_key(event, now)

        self._check_timers(now)
        if self.state.mode is Mode.EXIT:
            return

        self._poll_crawl()
        self._refresh_if_needed()
        self._adopt_query_result()
        self._report_open_failure()
        self._expire_status(now)

    def _check_timers(self, now: float) -> None:
        idle = now - self.state.last_key_press_time
        session = self.config.session
        if idle >= session.shutdown_after:
            if self.state.mode is not Mode.EXIT:
                logger.info(f"No input for {idle:.0f}s, shutting down")
                self._set_mode(Mode.EXIT)
        elif idle >= session.sleep_after and self.state.mode not in (Mode.SLEEP, Mode.EXIT):
            logger.info(f"No input for {idle:.0f}s, sleeping")
            self._set_mode(Mode.SLEEP)

    def _set_mode(self, mode: Mode) -> None:
        if mode is not self.state.mode:
            logger.debug(f"Mode {self.state.mode.value} -> {mode.value}")
            self.state.mode = mode
            self.dirty = True

    def _next_generation(self) -> int:
        self._generation += 1
        return self._generation

    # Input

    def handle_key(self, event: KeyEvent, now: Optional[float] = None) -> None:
        """Apply one key press to the state machine."""
        self.state.last_key_press_time = self.clock() if now is None else now
        self.dirty = True
        mode = self.state.mode

        if event.ctrl and event.key == 'c':
            self._set_mode(Mode.EXIT)
        elif mode is Mode.SLEEP:
            self._set_mode(Mode.SELECT)
        elif mode is Mode.INSERT:
            self._handle_insert(event)
        elif mode is Mode.SELECT:
            self._handle_select(event)
        elif mode is Mode.COMMAND:
            self._handle_command(event)

    def _handle_insert(self, event: KeyEvent) -> None:
        query = self.state.query
        key = event.key

        if key in (keys.ENTER, keys.ESCAPE):
            self._set_mode(Mode.SELECT)
        elif key == keys.BACKSPACE:
            self._edited(query.delete_word_back() if event.ctrl else query.backspace())
        elif key == 'w' and event.ctrl:
            self._edited(query.delete_word_back())
        elif key == keys.DELETE:
            self._edited(query.delete_word_forward() if event.ctrl else query.delete())
        elif key == keys.LEFT and event.ctrl:
            query.move_word_left()
        elif key == keys.LEFT:
            query.move_left()
        elif key == keys.RIGHT and event.ctrl:
            query.move_word_right()
        elif key == keys.RIGHT:
            query.move_right()
        elif key == keys.HOME:
            query.move_home()
        elif key == keys.END:
            query.move_end()
        elif key == keys.UP:
            self.history_previous()
        elif key == keys.DOWN:
            self.history_next()
        elif event.is_printable:
            self._edited(query.insert(key))

    def _edited(self, changed: bool) -> None:
        if not changed:
            return
        # Editing a recalled entry makes it the live buffer
        self.state.history_cursor = None
        self.state.stashed_content = None
        self._request_refresh()

    def _request_refresh(self) -> None:
        self.state.needs_refresh = True

    def history_previous(self) -> None:
        """Swap in the next older history query."""
        state = self.state
        if len(self.history) == 0:
            return
        if state.history_cursor is None:
            state.stashed_content = state.query.content
            cursor = 0
        elif state.history_cursor + 1 < len(self.history):
            cursor = state.history_cursor + 1
        else:
            return

        entry = self.history.entry_at(cursor)
        state.history_cursor = cursor
        if state.query.replace_content(entry.query_text):
            self._request_refresh()

    def history_next(self) -> None:
        """Swap in the next newer history query, or restore the live buffer."""
        state = self.state
        if state.history_cursor is None:
            return
        if state.history_cursor == 0:
            text = state.stashed_content or ""
            state.history_cursor = None
            state.stashed_content = None
        else:
            state.history_cursor -= 1
            text = self.history.entry_at(state.history_cursor).query_text

        if state.query.replace_content(text):
            self._request_refresh()

    def _handle_select(self, event: KeyEvent) -> None:
        state = self.state
        key = event.key
        rows = self.config.session.visible_rows
        letter = key.lower() if len(key) == 1 and not event.ctrl else None

        if letter == 'i':
            self._set_mode(Mode.INSERT)
        elif key == ':':
            state.command_buffer = ""
            self._set_mode(Mode.COMMAND)
        elif letter == 'q':
            self._set_mode(Mode.EXIT)
        elif letter == 'r':
            state.query.use_regex = not state.query.use_regex
            self._request_refresh()
        elif letter == 'u':
            state.query.unbounded = not state.query.unbounded
            self._request_refresh()
        elif letter == 'd':
            state.query.directory_only = not state.query.directory_only
            self._request_refresh()
        elif letter == 'p':
            state.show_parent_name = not state.show_parent_name
        elif letter == 'a':
            state.show_relative_path = not state.show_relative_path
        elif key == keys.UP or key == 'k':
            state.results.move_cursor(-1, rows)
        elif key == keys.DOWN or key == 'j':
            state.results.move_cursor(1, rows)
        elif key == keys.PAGE_UP:
            state.results.move_cursor(-rows, rows)
        elif key == keys.PAGE_DOWN:
            state.results.move_cursor(rows, rows)
        elif key == keys.ENTER:
            self.open_selected(keep_open=event.alt, open_parent=False)
        elif letter == 'o':
            self.open_selected(keep_open=False, open_parent=True)

    def _handle_command(self, event: KeyEvent) -> None:
        state = self.state
        key = event.key

        if key == keys.ENTER:
            text = state.command_buffer
            state.command_buffer = ""
            self._set_mode(Mode.SELECT)
            command = parse_command(text)
            if command is not None:
                self.execute(command)
            elif text.strip():
                self.set_status(f"Unknown command: {text.split()[0]}")
        elif key == keys.ESCAPE:
            state.command_buffer = ""
            self._set_mode(Mode.SELECT)
        elif key == keys.BACKSPACE:
            if not state.command_buffer:
                self._set_mode(Mode.SELECT)
            else:
                state.command_buffer = state.command_buffer[:-1]
        elif key == keys.TAB:
            state.command_buffer = autocomplete(state.command_buffer)
        elif event.is_printable:
            state.command_buffer += key

    # Commands

    def execute(self, command: Command) -> None:
        logger.info(f"Executing command {command.name.value} {command.args or ''}".rstrip())
        if command.name is CommandName.REBUILD_INDEX:
            self.request_crawl()
        elif command.name is CommandName.TOGGLE_INCOGNITO:
            incognito = self.history.toggle_incognito()
            self.set_status(f"Incognito {'on' if incognito else 'off'}")

    def request_crawl(self) -> Optional[JobHandle]:
        """Start a crawl of the configured root, superseding any running one."""
        try:
            job = self.crawler.start_crawl(self.config.search_root, self.lookups.snapshot())
        except InvalidPathError as e:
            logger.error(f"Crawl not started: {e}")
            self.set_status(str(e))
            return None
        self.set_status("Rebuilding index...")
        return job

    # Background results

    def _poll_crawl(self) -> None:
        index = self.crawler.poll()
        if index is not None:
            logger.info(f"Adopting new index: {index}")
            self.set_status(f"Index rebuilt: {index.get_item_count()} items")
            self._request_refresh()
            self.dirty = True

        job = self.crawler.current_job
        if job is not None and job.generation > self._reported_crawl_failure and job.state is JobState.FAILED:
            self._reported_crawl_failure = job.generation
            self.set_status(f"Crawl failed: {job.error}")

    def _refresh_if_needed(self) -> None:
        state = self.state
        if not state.needs_refresh:
            return

        if self._try_history_hit():
            return

        query = state.query
        if query.use_regex and not query.is_pattern_valid():
            # Keep showing the previous results until the text changes
            if not state.regex_invalid:
                logger.debug(f"Invalid regex '{query.content}', refresh suspended")
            state.regex_invalid = True
            state.needs_refresh = False
            self.engine.cancel()
            self.dirty = True
            return
        state.regex_invalid = False

        index = self.crawler.index
        if index is None:
            return

        generation = self._next_generation()
        self.engine.start(index, query, self.history.snapshot(), generation)
        state.needs_refresh = False

    def _try_history_hit(self) -> bool:
        """Answer instantly from history when this exact query was used before."""
        query = self.state.query
        text = query.content
        if not text:
            return False
        entry = self.history.find_exact(text)
        if entry is None or not self.path_exists(entry.selected_full_path):
            return False

        index = self.crawler.index
        item = index.find(entry.selected_full_path) if index is not None else None
        if item is None:
            item = IndexedItem(
                full_path=entry.selected_full_path,
                name=entry.selected_name,
                is_directory=os.path.isdir(entry.selected_full_path),
            )
        if query.directory_only and not item.is_directory:
            return False

        self.engine.cancel()
        generation = self._next_generation()
        score = final_score(item, text, entry.selected_full_path)
        self.state.results = ResultSet(
            results=[ScoredItem(item=item, final_score=score)],
            generation=generation,
            query_text=text,
            from_history=True,
        )
        self.state.needs_refresh = False
        self.state.regex_invalid = False
        self.dirty = True
        logger.debug(f"History hit for '{text}': {item.full_path}")
        return True

    def _adopt_query_result(self) -> None:
        job = self.engine.current_job
        if job is None or not job.done():
            return

        state = job.state
        if state is JobState.FAILED:
            if job.generation > self._reported_query_failure:
                self._reported_query_failure = job.generation
                self.set_status(f"Search failed: {job.error}")
            return

        results = job.result
        # Older generations are superseded; drop them silently
        if results is None or results.generation <= self.state.results.generation:
            return
        results.reset_cursor()
        self.state.results = results
        self.dirty = True

    # Open action

    def open_selected(self, keep_open: bool = False, open_parent: bool = False) -> bool:
        """
        Open the selected result.

        Records history (unless incognito), bumps the lookup count, starts the
        OS open in the background and exits unless keep_open is set.

        Returns:
            True when an open action was started
        """
        selected = self.state.results.selected()
        if selected is None:
            return False

        try:
            item = self._existing_item(selected)
        except ItemNotFoundError as e:
            logger.warning(str(e))
            self.set_status(str(e))
            return False

        self.history.record(self.state.query.content, item)
        count = self.lookups.increment(item.full_path)
        logger.info(f"Opening {item.full_path} (opened {count} times)")

        target = item.full_path
        opener = self.opener

        def worker(cancel_event: threading.Event) -> bool:
            opener(target, open_parent)
            return True

        self._open_generation += 1
        self._open_job = self.runner.submit("open", self._open_generation, worker)

        if keep_open:
            label = Path(target).parent.name if open_parent else item.name
            self.set_status(f"Opened {label}")
        else:
            self._set_mode(Mode.EXIT)
        return True

    def _existing_item(self, selected: ScoredItem) -> IndexedItem:
        """
        Raises:
            ItemNotFoundError: If the item was removed since the crawl
        """
        if not self.path_exists(selected.full_path):
            raise ItemNotFoundError(selected.full_path)
        return selected.item

    def _report_open_failure(self) -> None:
        job = self._open_job
        if job is None or job.generation <= self._reported_open_failure:
            return
        if job.done() and job.state is JobState.FAILED:
            self._reported_open_failure = job.generation
            self.set_status(f"Open failed: {job.error}")

    # Status and view

    def set_status(self, message: str) -> None:
        self.state.status_message = message
        self.state.status_expires = self.clock() + self.config.session.status_seconds
        self.dirty = True

    def _expire_status(self, now: float) -> None:
        if self.state.status_message is not None and now >= self.state.status_expires:
            self.state.status_message = None
            self.dirty = True

    def view(self) -> SessionView:
        """Snapshot of the state for rendering."""
        state = self.state
        rows_visible = self.config.session.visible_rows
        results = state.results
        root = str(self.config.get_root_path())

        rows = []
        for offset, scored in enumerate(results.visible_window(rows_visible)):
            item = scored.item
            if state.show_parent_name:
                location = item.get_parent_name()
            elif state.show_relative_path:
                location = str(Path(item.relative_to(root)).parent)
            else:
                location = item.get_parent()
            rows.append(ResultRow(
                name=item.name,
                location=location,
                is_directory=item.is_directory,
                score=scored.final_score,
                selected=results.scroll_offset + offset == results.cursor,
            ))

        return SessionView(
            mode=state.mode,
            root=root,
            query_text=state.query.content,
            cursor_position=state.query.cursor_position,
            command_buffer=state.command_buffer,
            rows=tuple(rows),
            result_count=results.get_match_count(),
            first_row_number=results.scroll_offset + 1,
            use_regex=state.query.use_regex,
            directory_only=state.query.directory_only,
            unbounded=state.query.unbounded,
            regex_invalid=state.regex_invalid,
            incognito=self.history.incognito,
            crawling=self.crawler.is_running(),
            index_loaded=self.crawler.index is not None,
            from_history=results.from_history,
            status_message=state.status_message,
        )
