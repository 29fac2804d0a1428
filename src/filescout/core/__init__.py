"""
Indexing, ranking and search engine for filescout.

This package holds the components that run off the control thread: the
crawler and its ranker, the query engine, and the job handles they run on,
together with the history and lookup stores they read.
"""

from .crawler import Crawler, build_index, validate_root
from .history import HistoryStore, HistorySnapshot, LookupCounter
from .jobs import JobHandle, JobRunner, JobState
from .query_engine import QueryEngine, search
from .ranker import ItemFacts, score_item
from .storage import DataDirectory

__all__ = [
    'Crawler',
    'build_index',
    'validate_root',
    'HistoryStore',
    'HistorySnapshot',
    'LookupCounter',
    'JobHandle',
    'JobRunner',
    'JobState',
    'QueryEngine',
    'search',
    'ItemFacts',
    'score_item',
    'DataDirectory',
]
