"""
Index data models for filescout.

This module defines the records produced by a crawl (IndexedItem and the
SearchIndex that holds them) and the history records written when the user
opens an item.
"""

from typing import Dict, List, Optional, Any
from datetime import datetime
from pathlib import Path
from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, field_validator


def entry_extension(name: str, is_directory: bool) -> Optional[str]:
    """Lowercase extension of an entry name, or None for directories and bare names."""
    if is_directory:
        return None
    suffix = Path(name).suffix
    return suffix.lower() if suffix else None


class IndexedItem(BaseModel):
    """
    One filesystem entry with its crawl-time relevance.
    
    Attributes:
        full_path: Absolute path of the entry, unique within an index
        name: Final path component
        is_directory: Whether the entry is a directory
        relevance_score: Static score computed at crawl time
        final_score: Per-query score placeholder, kept at 0.0 in the index
    """
    
    model_config = ConfigDict(frozen=True)
    
    full_path: str = Field(..., min_length=1, description="Absolute path of the entry")
    name: str = Field(..., min_length=1, description="Final path component")
    is_directory: bool = Field(False, description="Whether the entry is a directory")
    relevance_score: float = Field(0.0, description="Static crawl-time relevance")
    final_score: float = Field(0.0, description="Per-query score placeholder")
    
    def get_parent(self) -> str:
        """Get the directory containing this item."""
        return str(Path(self.full_path).parent)
    
    def get_parent_name(self) -> str:
        """Get the name of the directory containing this item."""
        return Path(self.full_path).parent.name
    
    def get_extension(self) -> Optional[str]:
        """Get the lowercase extension, or None for directories and bare names."""
        return entry_extension(self.name, self.is_directory)
    
    def relative_to(self, root: str) -> str:
        """Get the path relative to a search root, or the full path if outside it."""
        try:
            return str(Path(self.full_path).relative_to(root))
        except ValueError:
            return self.full_path


class SearchIndex(BaseModel):
    """
    Ordered collection of items produced by one crawl.
    
    Items are sorted descending by relevance. An index is never mutated after
    it is published; a new crawl replaces it wholesale.
    
    Attributes:
        root: Search root the crawl started from
        items: Indexed entries, most relevant first
        crawled_at: When the crawl completed
    """
    
    root: str = Field(..., min_length=1, description="Search root of the crawl")
    items: List[IndexedItem] = Field(default_factory=list, description="Indexed entries")
    crawled_at: datetime = Field(default_factory=datetime.now, description="Crawl completion time")
    
    _by_path: Dict[str, IndexedItem] = PrivateAttr(default_factory=dict)
    
    def model_post_init(self, __context) -> None:
        """Build the path lookup table."""
        self._by_path = {item.full_path: item for item in self.items}
    
    def find(self, full_path: str) -> Optional[IndexedItem]:
        """Look up an item by its full path."""
        return self._by_path.get(full_path)
    
    def get_item_count(self) -> int:
        """Get the number of indexed items."""
        return len(self.items)
    
    def __str__(self) -> str:
        return f"{self.get_item_count()} items under {self.root} (crawled {self.crawled_at:%Y-%m-%d %H:%M})"


class HistoryEntry(BaseModel):
    """
    One (query, opened item) pair recorded by the session.
    
    Attributes:
        timestamp: When the item was opened
        query_text: Query text at the time of the open
        selected_full_path: Full path of the opened item
        selected_name: Name of the opened item
    """
    
    model_config = ConfigDict(frozen=True)
    
    timestamp: datetime = Field(default_factory=datetime.now, description="When the item was opened")
    query_text: str = Field("", description="Query text at open time")
    selected_full_path: str = Field(..., min_length=1, description="Full path of the opened item")
    selected_name: str = Field(..., min_length=1, description="Name of the opened item")
    
    @field_validator('query_text')
    @classmethod
    def validate_query_text(cls, v: str) -> str:
        """History is keyed on the exact text, only strip line breaks."""
        return v.replace('\n', ' ').replace('\r', ' ')
    
    def to_dict(self) -> Dict[str, Any]:
        """Convert entry to dictionary representation."""
        data = self.model_dump()
        data['timestamp'] = self.timestamp.isoformat()
        return data
