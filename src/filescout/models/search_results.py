"""
Search results data models for filescout.

This module defines the ranked, bounded result set produced by one query
engine run, along with the selection cursor and the scroll window the
session keeps on top of it.
"""

from typing import Dict, List, Optional, Any
from pydantic import BaseModel, Field, model_validator

from .items import IndexedItem


class ScoredItem(BaseModel):
    """
    An indexed item paired with its per-query final score.

    Attributes:
        item: The matched index entry
        final_score: Match strength + history bonus + relevance
    """

    item: IndexedItem = Field(..., description="Matched index entry")
    final_score: float = Field(..., description="Per-query score")

    @property
    def full_path(self) -> str:
        return self.item.full_path

    @property
    def name(self) -> str:
        return self.item.name

    def __str__(self) -> str:
        return f"{self.item.name} (score: {self.final_score:.3f})"


class ResultSet(BaseModel):
    """
    Output of one query engine run.

    The cursor is always within [0, len(results) - 1] when there are results
    and 0 otherwise. The generation is assigned by the session when the job
    is started and is used to discard superseded results.

    Attributes:
        results: Scored items, best first
        cursor: Index of the selected result
        scroll_offset: Index of the first visible result
        generation: Monotonic job generation
        query_text: Query text these results answer
        from_history: Whether the set came from a history cache hit
    """

    results: List[ScoredItem] = Field(default_factory=list, description="Scored items, best first")
    cursor: int = Field(0, ge=0, description="Index of the selected result")
    scroll_offset: int = Field(0, ge=0, description="Index of the first visible result")
    generation: int = Field(0, ge=0, description="Monotonic job generation")
    query_text: str = Field("", description="Query text these results answer")
    from_history: bool = Field(False, description="Whether the set came from a history cache hit")

    @model_validator(mode='after')
    def validate_cursor(self):
        """Clamp cursor and scroll offset to the result bounds."""
        self.cursor = self._clamp(self.cursor)
        self.scroll_offset = min(self.scroll_offset, self.cursor)
        return self

    def _clamp(self, index: int) -> int:
        if not self.results:
            return 0
        return max(0, min(index, len(self.results) - 1))

    def get_match_count(self) -> int:
        """Get the number of results."""
        return len(self.results)

    def selected(self) -> Optional[ScoredItem]:
        """Get the result under the cursor, or None when empty."""
        if not self.results:
            return None
        return self.results[self.cursor]

    def reset_cursor(self) -> None:
        """Select the first result and scroll back to the top."""
        self.cursor = 0
        self.scroll_offset = 0

    def move_cursor(self, delta: int, visible_rows: int) -> None:
        """
        Move the cursor by delta, clamped to bounds, scrolling the window so
        the cursor stays visible.

        Args:
            delta: Number of rows to move (negative moves up)
            visible_rows: Height of the visible window
        """
        self.cursor = self._clamp(self.cursor + delta)
        rows = max(visible_rows, 1)
        if self.cursor < self.scroll_offset:
            self.scroll_offset = self.cursor
        elif self.cursor >= self.scroll_offset + rows:
            self.scroll_offset = self.cursor - rows + 1

    def visible_window(self, visible_rows: int) -> List[ScoredItem]:
        """Get the results currently scrolled into view."""
        rows = max(visible_rows, 1)
        return self.results[self.scroll_offset:self.scroll_offset + rows]

    def to_dict(self) -> Dict[str, Any]:
        """Convert results to dictionary representation."""
        data = self.model_dump()
        data['match_count'] = self.get_match_count()
        return data

    def __str__(self) -> str:
        parts = [f"Found {self.get_match_count()} matches"]
        parts.append(f"Generation {self.generation}")
        if self.from_history:
            parts.append("from history")
        return " | ".join(parts)
