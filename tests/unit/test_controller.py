"""
Unit tests for the session controller.

The controller is driven with scripted key presses and a fake clock; the
background jobs run on a real thread pool.
"""

import os
import shutil
import tempfile
import time
from datetime import date, timedelta
from pathlib import Path

from filescout.core.crawler import Crawler, build_index
from filescout.core.history import HistorySnapshot, HistoryStore, LookupCounter
from filescout.core.jobs import JobRunner
from filescout.core.query_engine import QueryEngine
from filescout.core.storage import DataDirectory
from filescout.models.config import ScoutConfig, SessionConfig
from filescout.models.search_query import Query
from filescout.models.search_results import ResultSet
from filescout.session.controller import SessionController
from filescout.session.keys import KeyEvent
from filescout.session.state import Mode

from conftest import FakeClock, ScriptedKeys, settle, wait_for


class RecordingOpener:
    """Opener that remembers what it was asked to open."""

    def __init__(self, delay=0.0):
        self.calls = []
        self.delay = delay

    def __call__(self, path, open_parent):
        if self.delay:
            time.sleep(self.delay)
        self.calls.append((path, open_parent))


class SessionTestBase:
    """Small tree, its index and a controller factory."""

    def setup_method(self):
        self.temp_dir = tempfile.mkdtemp()
        self.root = Path(self.temp_dir).resolve() / "root"
        for file_path in ["report.txt", "reply.txt", "notes.md", "docs/report-draft.txt", "docs/plan.txt"]:
            full_path = self.root / file_path
            full_path.parent.mkdir(parents=True, exist_ok=True)
            full_path.write_text(f"Content of {file_path}")

        self.data = DataDirectory(Path(self.temp_dir) / "data")
        self.index = build_index(self.root, {})
        self.runner = JobRunner(max_workers=4)
        self.keys = ScriptedKeys()
        self.clock = FakeClock()
        self.opener = RecordingOpener()
        self.history = HistoryStore()
        self.lookups = LookupCounter()

    def teardown_method(self):
        self.runner.shutdown(wait=True)
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def make_controller(self, index="default", auto_crawl=False, initial_query="", with_stores=False):
        config = ScoutConfig(
            search_root=str(self.root),
            data_dir=str(self.data.root),
            session=SessionConfig(auto_crawl=auto_crawl, visible_rows=3),
        )
        crawler = Crawler(
            self.runner,
            self.data.index if with_stores else None,
            self.data.crawl_marker if with_stores else None,
            index=self.index if index == "default" else index,
        )
        return SessionController(
            config, crawler, QueryEngine(self.runner), self.runner,
            self.history, self.lookups, self.keys,
            opener=self.opener,
            initial_query=initial_query,
            clock=self.clock,
        )

    def result_names(self, controller):
        return [entry.name for entry in controller.state.results.results]

    def type_and_select(self, controller, text):
        self.keys.type(text)
        self.keys.press("enter")
        settle(controller, self.keys)


class TestModes(SessionTestBase):

    def test_initial_mode(self):
        assert self.make_controller().mode is Mode.INSERT
        controller = self.make_controller(initial_query="rep")
        assert controller.mode is Mode.SELECT
        assert controller.state.query.content == "rep"

    def test_insert_to_select_and_back(self):
        controller = self.make_controller()
        self.keys.press("escape")
        controller.tick()
        assert controller.mode is Mode.SELECT

        self.keys.press("i")
        controller.tick()
        assert controller.mode is Mode.INSERT
        assert controller.state.query.content == ""

    def test_ctrl_c_exits_from_insert(self):
        controller = self.make_controller()
        self.keys.press(KeyEvent("c", ctrl=True))
        controller.tick()
        assert controller.mode is Mode.EXIT

    def test_q_exits_from_select(self):
        controller = self.make_controller(initial_query="rep")
        self.keys.press("q")
        controller.tick()
        assert controller.mode is Mode.EXIT

    def test_sleep_and_wake(self):
        controller = self.make_controller()
        self.clock.advance(59)
        controller.tick()
        assert controller.mode is Mode.INSERT

        self.clock.advance(1)
        controller.tick()
        assert controller.mode is Mode.SLEEP
        assert controller.tick_interval == controller.config.session.sleep_tick_interval

        self.keys.press("x")
        controller.tick()
        assert controller.mode is Mode.SELECT
        assert controller.state.query.content == ""

    def test_idle_shutdown(self):
        controller = self.make_controller()
        self.clock.advance(600)
        controller.tick()
        assert controller.mode is Mode.EXIT


class TestQueryRefresh(SessionTestBase):

    def test_typing_refreshes_results(self):
        controller = self.make_controller()
        self.keys.type("rep")
        settle(controller, self.keys)

        assert sorted(self.result_names(controller)) == ["reply.txt", "report-draft.txt", "report.txt"]
        assert controller.state.results.query_text == "rep"

    def test_no_index_waits(self):
        controller = self.make_controller(index=None)
        self.keys.type("rep")
        for _ in range(3):
            controller.tick()

        assert controller.state.needs_refresh
        assert controller.engine.current_job is None
        assert not controller.view().index_loaded

    def test_directory_toggle(self):
        controller = self.make_controller()
        self.type_and_select(controller, "o")
        assert "docs" in self.result_names(controller)

        self.keys.press("d")
        settle(controller, self.keys)
        assert self.result_names(controller) == ["docs"]

    def test_invalid_regex_keeps_stale_results(self):
        controller = self.make_controller()
        self.type_and_select(controller, "rep")
        self.keys.press("r")
        settle(controller, self.keys)
        shown = controller.state.results
        job = controller.engine.current_job

        self.keys.press("i")
        self.keys.type("(")
        controller.tick()
        controller.tick()

        assert controller.state.query.content == "rep("
        assert controller.state.regex_invalid
        assert not controller.state.needs_refresh
        assert controller.engine.current_job is job
        assert controller.state.results is shown
        assert controller.view().regex_invalid

        self.keys.press("backspace")
        settle(controller, self.keys)
        assert not controller.state.regex_invalid
        assert controller.engine.current_job is not job

    def test_toggling_regex_on_invalid_text(self):
        controller = self.make_controller()
        self.type_and_select(controller, "[")
        job = controller.engine.current_job

        self.keys.press("r")
        controller.tick()
        controller.tick()

        assert controller.state.query.use_regex
        assert controller.state.regex_invalid
        assert controller.engine.current_job is job

    def test_stale_generation_ignored(self):
        controller = self.make_controller()
        controller.state.needs_refresh = False
        controller.state.results = ResultSet(generation=5)

        stale = controller.engine.start(self.index, Query.from_text("rep"), HistorySnapshot(), 3)
        assert stale.wait(5)
        controller.tick()
        assert controller.state.results.generation == 5
        assert controller.state.results.get_match_count() == 0

        fresh = controller.engine.start(self.index, Query.from_text("rep"), HistorySnapshot(), 6)
        assert fresh.wait(5)
        controller.tick()
        assert controller.state.results.generation == 6
        assert controller.state.results.get_match_count() == 3


class TestSelection(SessionTestBase):

    def test_cursor_moves_and_clamps(self):
        controller = self.make_controller()
        self.type_and_select(controller, "rep")
        results = controller.state.results

        self.keys.press("k")
        controller.tick()
        assert results.cursor == 0

        self.keys.press("j", "down")
        controller.tick()
        controller.tick()
        assert results.cursor == 2

        self.keys.press("pagedown")
        controller.tick()
        assert results.cursor == 2

        self.keys.press("pageup")
        controller.tick()
        assert results.cursor == 0

    def test_view_rows_and_location_toggle(self):
        controller = self.make_controller()
        self.type_and_select(controller, "draft")
        view = controller.view()

        assert view.result_count == 1
        assert view.rows[0].selected
        assert view.rows[0].location == str(self.root / "docs")

        self.keys.press("p")
        controller.tick()
        assert controller.view().rows[0].location == "docs"

        self.keys.press("p", "a")
        controller.tick()
        controller.tick()
        assert controller.view().rows[0].location == "docs"


class TestOpen(SessionTestBase):

    def test_enter_opens_records_and_exits(self):
        controller = self.make_controller()
        self.type_and_select(controller, "draft")
        target = str(self.root / "docs" / "report-draft.txt")

        self.keys.press("enter")
        controller.tick()
        controller.shutdown()

        assert controller.mode is Mode.EXIT
        assert self.opener.calls == [(target, False)]
        assert self.history.find_exact("draft").selected_full_path == target
        assert self.lookups.get(target) == 1

    def test_alt_enter_keeps_session(self):
        controller = self.make_controller()
        self.type_and_select(controller, "draft")
        target = str(self.root / "docs" / "report-draft.txt")

        self.keys.press(KeyEvent("enter", alt=True))
        controller.tick()
        assert controller.mode is Mode.SELECT
        assert controller.state.status_message == "Opened report-draft.txt"

        self.keys.press(KeyEvent("enter", alt=True))
        controller.tick()
        assert wait_for(lambda: len(self.opener.calls) == 2)
        assert self.lookups.get(target) == 2
        assert len(self.history) == 2

    def test_o_opens_parent(self):
        controller = self.make_controller()
        self.type_and_select(controller, "draft")

        self.keys.press("o")
        controller.tick()
        controller.shutdown()

        assert self.opener.calls == [(str(self.root / "docs" / "report-draft.txt"), True)]

    def test_missing_item_sets_status(self):
        controller = self.make_controller()
        self.type_and_select(controller, "draft")
        target = controller.state.results.selected().full_path
        os.remove(target)

        self.keys.press("enter")
        controller.tick()

        assert controller.mode is Mode.SELECT
        assert controller.state.status_message == f"Item no longer exists: {target}"
        assert self.opener.calls == []
        assert self.lookups.get(target) == 0
        assert len(self.history) == 0

    def test_nothing_selected(self):
        controller = self.make_controller()
        self.type_and_select(controller, "zzz")
        assert controller.open_selected() is False
        assert controller.mode is Mode.SELECT

    def test_shutdown_waits_for_open(self):
        self.opener.delay = 0.2
        controller = self.make_controller()
        self.type_and_select(controller, "draft")

        self.keys.press("enter")
        controller.tick()
        controller.shutdown()

        assert len(self.opener.calls) == 1

    def test_open_failure_reported(self):
        def failing_opener(path, open_parent):
            raise OSError("no handler")

        controller = self.make_controller()
        controller.opener = failing_opener
        self.type_and_select(controller, "draft")

        self.keys.press(KeyEvent("enter", alt=True))
        controller.tick()
        assert controller._open_job.wait(5)
        controller.tick()

        assert controller.state.status_message == "Open failed: no handler"


class TestHistory(SessionTestBase):

    def test_history_hit_answers_instantly(self):
        target = str(self.root / "reply.txt")
        self.history.record("rep", self.index.find(target))

        controller = self.make_controller()
        self.keys.type("rep")
        settle(controller, self.keys)

        results = controller.state.results
        assert results.from_history
        assert [entry.full_path for entry in results.results] == [target]
        assert controller.view().from_history

    def test_history_hit_skipped_when_missing(self):
        target = str(self.root / "reply.txt")
        self.history.record("rep", self.index.find(target))
        os.remove(target)

        controller = self.make_controller()
        self.keys.type("rep")
        settle(controller, self.keys)

        assert not controller.state.results.from_history

    def test_up_down_navigation(self):
        for text in ("one", "two"):
            self.history.record(text, self.index.find(str(self.root / "notes.md")))

        controller = self.make_controller()
        self.keys.type("x")
        controller.tick()
        query = controller.state.query

        self.keys.press("up")
        controller.tick()
        assert query.content == "two"

        self.keys.press("up", "up")
        controller.tick()
        controller.tick()
        assert query.content == "one"

        self.keys.press("down")
        controller.tick()
        assert query.content == "two"

        self.keys.press("down")
        controller.tick()
        assert query.content == "x"
        assert controller.state.history_cursor is None


class TestCommands(SessionTestBase):

    def run_command(self, controller, text, submit="enter"):
        self.keys.press(":")
        self.keys.type(text)
        self.keys.press(submit)
        for _ in range(len(text) + 2):
            controller.tick()

    def test_toggle_incognito(self):
        controller = self.make_controller(initial_query="draft")
        self.run_command(controller, "ToggleIncognito")

        assert controller.mode is Mode.SELECT
        assert controller.state.status_message == "Incognito on"
        assert controller.view().incognito

        settle(controller, self.keys)
        controller.open_selected(keep_open=True)
        assert len(self.history) == 0
        assert self.lookups.get(str(self.root / "docs" / "report-draft.txt")) == 1

    def test_unknown_command(self):
        controller = self.make_controller(initial_query="rep")
        self.run_command(controller, "Explode now")

        assert controller.mode is Mode.SELECT
        assert controller.state.status_message == "Unknown command: Explode"

    def test_tab_completes(self):
        controller = self.make_controller(initial_query="rep")
        self.run_command(controller, "Tog", submit="tab")

        assert controller.mode is Mode.COMMAND
        assert controller.state.command_buffer == "ToggleIncognito"

    def test_escape_and_backspace_leave_command_mode(self):
        controller = self.make_controller(initial_query="rep")
        self.run_command(controller, "Reb", submit="escape")
        assert controller.mode is Mode.SELECT
        assert controller.state.command_buffer == ""

        self.keys.press(":", "backspace")
        controller.tick()
        controller.tick()
        assert controller.mode is Mode.SELECT

    def test_rebuild_index(self):
        controller = self.make_controller(index=None, initial_query="plan")
        self.run_command(controller, "RebuildIndex")

        job = controller.crawler.current_job
        assert job is not None
        assert job.wait(5)
        settle(controller, self.keys)

        assert controller.crawler.index.root == str(self.root)
        assert controller.state.status_message.startswith("Index rebuilt")


class TestStart(SessionTestBase):

    def test_crawls_without_index(self):
        controller = self.make_controller(index=None, auto_crawl=True)
        self.keys.type("plan")
        controller.start()

        assert controller.crawler.current_job.wait(5)
        settle(controller, self.keys)

        assert self.result_names(controller) == ["plan.txt"]
        assert self.data.index.load() is None

    def test_skips_crawl_when_marker_current(self):
        today = date(2024, 6, 1)
        self.data.crawl_marker.mark(today)
        controller = self.make_controller(auto_crawl=True, with_stores=True)

        controller.start(today)
        assert controller.crawler.current_job is None

    def test_crawls_when_marker_stale(self):
        today = date(2024, 6, 1)
        self.data.crawl_marker.mark(today - timedelta(days=1))
        controller = self.make_controller(auto_crawl=True, with_stores=True)

        controller.start(today)
        job = controller.crawler.current_job
        assert job is not None and job.wait(5)
        assert self.data.index.load().root == str(self.root)

    def test_auto_crawl_disabled(self):
        controller = self.make_controller(index=None, auto_crawl=False)
        controller.start()
        assert controller.crawler.current_job is None
