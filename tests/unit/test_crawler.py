"""
Unit tests for the crawler.

Tests tree walking, index building, publishing through the stores, and
supersession of in-flight crawls.
"""

import os
import shutil
import tempfile
import threading
import time
from datetime import datetime, timedelta
from pathlib import Path
from unittest.mock import patch

import pytest

from filescout.core import crawler as crawler_module
from filescout.core.crawler import Crawler, TreeWalker, build_index, validate_root
from filescout.core.history import HistorySnapshot
from filescout.core.jobs import JobState
from filescout.core.query_engine import search
from filescout.core.storage import DataDirectory, IndexFile
from filescout.errors import InvalidPathError
from filescout.models.search_query import Query


class TestCrawlerBase:
    """Creates a small tree under a temporary directory."""

    def setup_method(self):
        self.temp_dir = tempfile.mkdtemp()
        self.root = Path(self.temp_dir).resolve() / "root"
        self.root.mkdir()
        self.data = DataDirectory(Path(self.temp_dir) / "data")

        files = [
            "notes.txt",
            "a.txt",
            "b.bin",
            "docs/readme.md",
            "docs/2024-01-02_minutes.txt",
            "docs/deep/deeper/deepest/file.txt",
            ".git/config",
        ]
        for file_path in files:
            full_path = self.root / file_path
            full_path.parent.mkdir(parents=True, exist_ok=True)
            full_path.write_text(f"Content of {file_path}")

    def teardown_method(self):
        if os.path.exists(self.temp_dir):
            shutil.rmtree(self.temp_dir)


class TestValidateRoot(TestCrawlerBase):

    def test_missing_root(self):
        with pytest.raises(InvalidPathError, match="does not exist"):
            validate_root(str(self.root / "missing"))

    def test_file_root(self):
        with pytest.raises(InvalidPathError, match="not a directory"):
            validate_root(str(self.root / "notes.txt"))

    def test_valid_root_is_resolved(self):
        assert validate_root(str(self.root)) == self.root


class TestTreeWalker(TestCrawlerBase):

    def test_walk_includes_files_and_directories(self):
        walker = TreeWalker()
        names = {facts.name: facts for facts in walker.walk(self.root)}

        assert "docs" in names and names["docs"].is_directory
        assert "readme.md" in names and not names["readme.md"].is_directory
        assert "file.txt" in names
        assert str(self.root) not in {facts.path for facts in names.values()}

    def test_ignored_directories_are_pruned(self):
        walker = TreeWalker(should_ignore=lambda name: name == ".git")
        paths = [facts.path for facts in walker.walk(self.root)]

        assert not any(".git" in path for path in paths)
        assert walker.get_stats()['entries_ignored'] == 1

    def test_sibling_count_is_files_in_parent(self):
        walker = TreeWalker(should_ignore=lambda name: name == ".git")
        facts = {f.name: f for f in walker.walk(self.root)}

        # notes.txt, a.txt, b.bin live in the root
        assert facts["notes.txt"].sibling_count == 3
        assert facts["docs"].sibling_count == 3
        assert facts["readme.md"].sibling_count == 2

    def test_cancelled_walk_stops(self):
        cancel = threading.Event()
        cancel.set()
        assert list(TreeWalker().walk(self.root, cancel)) == []


class TestBuildIndex(TestCrawlerBase):

    def test_sorted_descending(self):
        index = build_index(self.root, {})
        scores = [item.relevance_score for item in index.items]

        assert scores == sorted(scores, reverse=True)
        assert index.root == str(self.root)
        assert index.find(str(self.root / "notes.txt")) is not None

    def test_txt_ranks_above_bin(self):
        old = time.time() - 100 * 86400
        os.utime(self.root / "b.bin", (old, old))
        index = build_index(self.root, {})
        order = [item.name for item in index.items]

        assert order.index("a.txt") < order.index("b.bin")

    def test_lookup_counts_raise_relevance(self):
        target = str(self.root / "docs" / "readme.md")
        now = datetime.now()
        before = build_index(self.root, {}, now=now).find(target).relevance_score
        after = build_index(self.root, {target: 3}, now=now).find(target).relevance_score

        assert after == pytest.approx(before + 3)

    def test_recrawl_unchanged_tree_is_identical(self):
        now = datetime.now()
        first = build_index(self.root, {}, now=now)
        second = build_index(self.root, {}, now=now)

        assert [item.model_dump() for item in first.items] == [item.model_dump() for item in second.items]

    def test_recrawl_changes_only_touched_item(self):
        now = datetime.now() + timedelta(minutes=1)
        first = build_index(self.root, {}, now=now)

        touched = self.root / "docs" / "readme.md"
        old = time.time() - 10 * 86400
        os.utime(touched, (old, old))
        second = build_index(self.root, {}, now=now)

        before = {item.full_path: item.relevance_score for item in first.items}
        after = {item.full_path: item.relevance_score for item in second.items}
        changed = {path for path in before if before[path] != after[path]}

        assert changed == {str(touched)}

    def test_cancelled_build_returns_none(self):
        cancel = threading.Event()
        cancel.set()
        assert build_index(self.root, {}, cancel_event=cancel) is None


class TestCrawler(TestCrawlerBase):

    def test_start_crawl_rejects_invalid_root(self, job_runner):
        crawler = Crawler(job_runner)
        with pytest.raises(InvalidPathError):
            crawler.start_crawl(str(self.root / "nope"), {})
        assert crawler.current_job is None

    def test_crawl_publishes_and_persists(self, job_runner):
        crawler = Crawler(job_runner, self.data.index, self.data.crawl_marker)
        job = crawler.start_crawl(str(self.root), {})

        assert job.wait(5)
        assert job.state is JobState.COMPLETED

        published = crawler.poll()
        assert published is not None
        assert published.root == str(self.root)
        assert crawler.poll() is None

        stored = self.data.index.load()
        assert [item.full_path for item in stored.items] == [item.full_path for item in published.items]
        assert self.data.crawl_marker.last_crawl_date() == published.crawled_at.date()

    def test_second_crawl_supersedes_first(self, job_runner):
        other_root = Path(self.temp_dir).resolve() / "other"
        (other_root / "sub").mkdir(parents=True)
        (other_root / "sub" / "x.txt").write_text("x")

        real_build = crawler_module.build_index
        gate = threading.Event()

        def slow_build(root, counts, should_ignore=None, cancel_event=None, now=None):
            if root == self.root:
                gate.wait(5)
            return real_build(root, counts, should_ignore, cancel_event, now)

        crawler = Crawler(job_runner, self.data.index, self.data.crawl_marker)
        with patch.object(crawler_module, 'build_index', side_effect=slow_build):
            first = crawler.start_crawl(str(self.root), {})
            second = crawler.start_crawl(str(other_root), {})
            assert second.wait(5)
            gate.set()
            assert first.wait(5)

        assert first.state is JobState.CANCELLED
        assert first.result is None
        assert second.state is JobState.COMPLETED

        published = crawler.poll()
        assert published.root == str(other_root)
        assert crawler.poll() is None
        assert crawler.index.root == str(other_root)
        assert self.data.index.load().root == str(other_root)

    def test_index_readable_while_saving(self, job_runner):
        save_started = threading.Event()
        release_save = threading.Event()

        class GatedIndexFile(IndexFile):
            def save(self, index):
                save_started.set()
                release_save.wait(5)
                super().save(index)

        crawler = Crawler(job_runner, GatedIndexFile(self.data.index.path), self.data.crawl_marker)
        job = crawler.start_crawl(str(self.root), {})
        try:
            assert save_started.wait(5)

            started = time.monotonic()
            current = crawler.index
            published = crawler.poll()
            elapsed = time.monotonic() - started

            assert elapsed < 0.5
            assert current is not None
            assert published is current
            assert not job.done()
        finally:
            release_save.set()

        assert job.wait(5)
        assert job.state is JobState.COMPLETED
        assert self.data.index.load().root == str(self.root)


class TestRankingExample:
    """A fresh text file beats an old binary in the same directory."""

    def setup_method(self):
        self.temp_dir = tempfile.mkdtemp()
        self.root = Path(self.temp_dir).resolve()
        for name in ["a.txt", "b.bin", "x1.md", "x2.md", "x3.md"]:
            (self.root / name).write_text(name)
        old = time.time() - 100 * 86400
        os.utime(self.root / "b.bin", (old, old))

    def teardown_method(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_a_txt_above_b_bin(self):
        index = build_index(self.root, {})
        order = [item.name for item in index.items]
        assert order.index("a.txt") < order.index("b.bin")

    def test_query_a_excludes_b_bin(self):
        index = build_index(self.root, {})
        results = search(index, Query.from_text("a"), HistorySnapshot(), 1)
        assert [entry.name for entry in results.results] == ["a.txt"]

        results = search(index, Query.from_text("."), HistorySnapshot(), 2)
        names = [entry.name for entry in results.results]
        assert names.index("a.txt") < names.index("b.bin")
