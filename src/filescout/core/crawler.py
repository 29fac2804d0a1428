"""
Crawler for filescout.

This module walks the search root, ranks every file and directory it finds
and publishes the result as a new SearchIndex. A crawl runs as a background
job; starting a new crawl cancels the one in flight, and only the latest
uncancelled crawl ever publishes.
"""

import os
import threading
import time
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, Iterator, List, Mapping, Optional
import logging

from ..errors import InvalidPathError, StorageError
from ..models.items import IndexedItem, SearchIndex
from .jobs import JobHandle, JobRunner, JobState
from .ranker import ItemFacts, path_depth, score_item
from .storage import CrawlMarker, IndexFile


logger = logging.getLogger(__name__)


def validate_root(root_path: str) -> Path:
    """
    Resolve a search root.

    Raises:
        InvalidPathError: If the path is missing or not a directory
    """
    root = Path(root_path).expanduser()
    if not root.exists():
        raise InvalidPathError(str(root), "does not exist")
    if not root.is_dir():
        raise InvalidPathError(str(root), "is not a directory")
    return root.resolve()


def _created_time(stat_result: os.stat_result) -> datetime:
    # st_birthtime on macOS/BSD; ctime elsewhere is the closest available
    if hasattr(stat_result, 'st_birthtime'):
        return datetime.fromtimestamp(stat_result.st_birthtime)
    return datetime.fromtimestamp(stat_result.st_ctime)


class TreeWalker:
    """
    Walks a directory tree and yields ranker facts for every entry.

    Args:
        should_ignore: Predicate on entry names; matching directories are pruned
    """

    def __init__(self, should_ignore: Optional[Callable[[str], bool]] = None):
        self.should_ignore = should_ignore or (lambda name: False)
        self._stats = {
            'directories_traversed': 0,
            'entries_found': 0,
            'entries_ignored': 0,
            'errors': 0,
        }

    def walk(self, root: Path, cancel_event: Optional[threading.Event] = None) -> Iterator[ItemFacts]:
        """
        Yield facts for every file and directory below root.

        Stops early, without raising, once cancel_event is set.
        """
        for current_dir, subdirs, files in os.walk(root, onerror=self._on_walk_error):
            if cancel_event is not None and cancel_event.is_set():
                return

            current_path = Path(current_dir)
            self._stats['directories_traversed'] += 1

            kept_dirs = []
            for name in subdirs:
                if self.should_ignore(name):
                    self._stats['entries_ignored'] += 1
                else:
                    kept_dirs.append(name)
            subdirs[:] = kept_dirs

            kept_files = []
            for name in files:
                if self.should_ignore(name):
                    self._stats['entries_ignored'] += 1
                else:
                    kept_files.append(name)

            # Siblings are the files sharing this parent
            sibling_count = len(kept_files)

            for name in kept_dirs:
                facts = self._collect(current_path / name, True, sibling_count)
                if facts:
                    yield facts
            for name in kept_files:
                facts = self._collect(current_path / name, False, sibling_count)
                if facts:
                    yield facts

    def _collect(self, path: Path, is_directory: bool, sibling_count: int) -> Optional[ItemFacts]:
        try:
            stat_result = path.stat()
        except OSError as e:
            logger.warning(f"Cannot stat {path}: {e}")
            self._stats['errors'] += 1
            return None

        self._stats['entries_found'] += 1
        return ItemFacts(
            path=str(path),
            name=path.name,
            is_directory=is_directory,
            modified_time=datetime.fromtimestamp(stat_result.st_mtime),
            created_time=_created_time(stat_result),
            sibling_count=sibling_count,
        )

    def _on_walk_error(self, error: OSError) -> None:
        logger.warning(f"Error walking {getattr(error, 'filename', '?')}: {error}")
        self._stats['errors'] += 1

    def get_stats(self) -> Dict[str, int]:
        return self._stats.copy()


def build_index(root: Path, lookup_counts: Mapping[str, int],
                should_ignore: Optional[Callable[[str], bool]] = None,
                cancel_event: Optional[threading.Event] = None,
                now: Optional[datetime] = None) -> Optional[SearchIndex]:
    """
    Crawl root and rank everything under it.

    Args:
        root: Resolved search root
        lookup_counts: Snapshot of open counts taken when the crawl started
        should_ignore: Name predicate for pruning
        cancel_event: Cooperative stop signal
        now: Reference time for recency scoring

    Returns:
        The sorted index, or None when cancelled
    """
    now = now or datetime.now()
    root_depth = path_depth(str(root))
    walker = TreeWalker(should_ignore)
    started = time.monotonic()

    items: List[IndexedItem] = []
    for facts in walker.walk(root, cancel_event):
        items.append(IndexedItem(
            full_path=facts.path,
            name=facts.name,
            is_directory=facts.is_directory,
            relevance_score=score_item(facts, root_depth, now, lookup_counts.get(facts.path, 0)),
        ))

    if cancel_event is not None and cancel_event.is_set():
        logger.info(f"Crawl of {root} cancelled after {len(items)} entries")
        return None

    # Path breaks ties so an unchanged tree always yields the same order
    items.sort(key=lambda item: (-item.relevance_score, item.full_path))

    stats = walker.get_stats()
    logger.info(
        f"Crawled {root}: {len(items)} entries, {stats['directories_traversed']} directories, "
        f"{stats['entries_ignored']} ignored, {stats['errors']} errors "
        f"in {time.monotonic() - started:.2f}s"
    )
    return SearchIndex(root=str(root), items=items, crawled_at=datetime.now())


class Crawler:
    """
    Runs crawls in the background and publishes their indexes.

    At most one crawl is alive at a time. The published index is swapped in
    under a lock and only by the latest crawl, so a superseded crawl can never
    overwrite a newer result.

    Args:
        runner: Job runner shared with the session
        index_file: Store the published index is written to
        crawl_marker: Marker updated with the crawl date
        should_ignore: Name predicate for pruning
    """

    def __init__(self, runner: JobRunner, index_file: Optional[IndexFile] = None,
                 crawl_marker: Optional[CrawlMarker] = None,
                 should_ignore: Optional[Callable[[str], bool]] = None,
                 index: Optional[SearchIndex] = None):
        self.runner = runner
        self.index_file = index_file
        self.crawl_marker = crawl_marker
        self.should_ignore = should_ignore
        self._lock = threading.Lock()
        self._persist_lock = threading.Lock()
        self._generation = 0
        self._job: Optional[JobHandle] = None
        self._index = index
        self._published_generation = 0
        self._observed_generation = 0

    @property
    def index(self) -> Optional[SearchIndex]:
        with self._lock:
            return self._index

    @property
    def current_job(self) -> Optional[JobHandle]:
        return self._job

    def is_running(self) -> bool:
        return self._job is not None and self._job.state is JobState.RUNNING

    def start_crawl(self, root_path: str, lookup_counts: Mapping[str, int]) -> JobHandle:
        """
        Start a fresh crawl of root_path, cancelling any crawl in flight.

        Args:
            root_path: Directory to crawl
            lookup_counts: Snapshot of open counts

        Returns:
            Handle of the new crawl job

        Raises:
            InvalidPathError: If root_path is missing or not a directory
        """
        root = validate_root(root_path)
        counts = dict(lookup_counts)

        with self._lock:
            if self._job is not None and not self._job.done():
                logger.info(f"Superseding crawl generation {self._job.generation}")
                self._job.cancel()
            self._generation += 1
            generation = self._generation

        def worker(cancel_event: threading.Event) -> Optional[SearchIndex]:
            index = build_index(root, counts, self.should_ignore, cancel_event)
            if index is None:
                return None
            if not self._publish(index, generation, cancel_event):
                return None
            return index

        self._job = self.runner.submit("crawl", generation, worker)
        logger.info(f"Started crawl generation {generation} of {root}")
        return self._job

    def _publish(self, index: SearchIndex, generation: int, cancel_event: threading.Event) -> bool:
        # Held across swap and write so files land in the same order as memory
        with self._persist_lock:
            with self._lock:
                if cancel_event.is_set() or generation != self._generation:
                    logger.info(f"Dropping superseded crawl generation {generation}")
                    return False
                self._index = index
                self._published_generation = generation

            try:
                if self.index_file is not None:
                    self.index_file.save(index)
                if self.crawl_marker is not None:
                    self.crawl_marker.mark(index.crawled_at.date())
            except StorageError as e:
                logger.error(f"Index published in memory only: {e}")
        return True

    def poll(self) -> Optional[SearchIndex]:
        """
        Return a newly published index once, or None if nothing new.

        Called from the control thread every tick.
        """
        with self._lock:
            if self._published_generation > self._observed_generation:
                self._observed_generation = self._published_generation
                return self._index
        return None

    def cancel(self) -> None:
        if self._job is not None:
            self._job.cancel()
