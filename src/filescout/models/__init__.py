"""
Data models for filescout.

This module contains the core data structures shared by the crawler, the
query engine and the interactive session.
"""

from .items import IndexedItem, SearchIndex, HistoryEntry
from .search_query import Query
from .search_results import ScoredItem, ResultSet

__all__ = ['IndexedItem', 'SearchIndex', 'HistoryEntry', 'Query', 'ScoredItem', 'ResultSet']
