"""
Query engine for filescout.

Filters the current index by the query, scores the survivors and returns a
ranked ResultSet. Matching is lazy: with a result cap in force the index is
consumed only until the cap is reached.
"""

import itertools
import os
import threading
from typing import Callable, Iterable, Iterator, List, Optional
import logging

from ..models.items import IndexedItem, SearchIndex
from ..models.search_query import Query
from ..models.search_results import ResultSet, ScoredItem
from .history import HistorySnapshot
from .jobs import JobHandle, JobRunner


logger = logging.getLogger(__name__)

DEFAULT_RESULT_CAP = 50
HISTORY_BONUS_WEIGHT = 4.0

# How often the matcher checks for cancellation
_CANCEL_CHECK_EVERY = 512


def iter_matches(items: Iterable[IndexedItem], matches: Callable[[str], bool],
                 directory_only: bool = False,
                 cancel_event: Optional[threading.Event] = None) -> Iterator[IndexedItem]:
    """
    Lazily yield the items whose name satisfies the predicate.

    Stops without raising once cancel_event is set.
    """
    for position, item in enumerate(items):
        if cancel_event is not None and position % _CANCEL_CHECK_EVERY == 0 and cancel_event.is_set():
            return
        if directory_only and not item.is_directory:
            continue
        if matches(item.name):
            yield item


def bounded_matches(items: Iterable[IndexedItem], query: Query, cap: Optional[int],
                    cancel_event: Optional[threading.Event] = None) -> Iterator[IndexedItem]:
    """Matching items, stopping after cap of them unless cap is None."""
    matching = iter_matches(items, query.build_matcher(), query.directory_only, cancel_event)
    if cap is None:
        return matching
    return itertools.islice(matching, cap)


def final_score(item: IndexedItem, query_text: str, history_path: Optional[str]) -> float:
    """
    Per-query score: match strength, history bonus and static relevance.

    Match strength is the share of the name covered by the query text.
    """
    match_strength = len(query_text) / len(item.name)
    bonus = 1.0 if history_path is not None and history_path == item.full_path else 0.0
    return match_strength + HISTORY_BONUS_WEIGHT * bonus + item.relevance_score


def search(index: SearchIndex, query: Query, history: HistorySnapshot, generation: int,
           cancel_event: Optional[threading.Event] = None,
           result_cap: int = DEFAULT_RESULT_CAP,
           path_exists: Callable[[str], bool] = os.path.exists) -> Optional[ResultSet]:
    """
    Run one query against an index.

    Args:
        index: Published index to search
        query: Copy of the query taken at job start
        history: History snapshot taken at job start
        generation: Generation tag for the result
        cancel_event: Cooperative stop signal
        result_cap: Maximum results when the query is bounded
        path_exists: Existence check for bounded queries

    Returns:
        Ranked results, or None when cancelled

    Raises:
        InvalidQueryPatternError: If regex mode is on and the pattern is invalid
    """
    cap = None if query.unbounded else result_cap
    candidates = list(bounded_matches(index.items, query, cap, cancel_event))

    if cancel_event is not None and cancel_event.is_set():
        return None

    # Skipped when unbounded: a stat per item over the whole index is too slow
    if not query.unbounded:
        candidates = [item for item in candidates if path_exists(item.full_path)]

    remembered = history.find_exact(query.content)
    history_path = remembered.selected_full_path if remembered is not None else None

    scored: List[ScoredItem] = [
        ScoredItem(item=item, final_score=final_score(item, query.content, history_path))
        for item in candidates
    ]
    # sort() is stable, so index order breaks ties
    scored.sort(key=lambda entry: entry.final_score, reverse=True)

    if cancel_event is not None and cancel_event.is_set():
        return None

    return ResultSet(results=scored, generation=generation, query_text=query.content)


class QueryEngine:
    """
    Runs searches in the background, one live job at a time.

    Args:
        runner: Job runner shared with the session
        result_cap: Maximum results when the query is bounded
    """

    def __init__(self, runner: JobRunner, result_cap: int = DEFAULT_RESULT_CAP,
                 path_exists: Callable[[str], bool] = os.path.exists):
        self.runner = runner
        self.result_cap = result_cap
        self.path_exists = path_exists
        self._job: Optional[JobHandle] = None

    @property
    def current_job(self) -> Optional[JobHandle]:
        return self._job

    def start(self, index: SearchIndex, query: Query, history: HistorySnapshot, generation: int) -> JobHandle:
        """
        Cancel the job in flight and start a search for the given snapshots.

        The query is copied so later edits cannot reach the running job.
        """
        self.cancel()
        query_copy = query.model_copy()

        def worker(cancel_event: threading.Event) -> Optional[ResultSet]:
            return search(index, query_copy, history, generation, cancel_event,
                          self.result_cap, self.path_exists)

        self._job = self.runner.submit("query", generation, worker)
        logger.debug(f"Query generation {generation}: '{query_copy.content}'",
                     extra={"query": query_copy.content, "generation": generation})
        return self._job

    def cancel(self) -> None:
        if self._job is not None and not self._job.done():
            self._job.cancel()
