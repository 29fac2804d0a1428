"""
Live query model for filescout.

This module defines the editable query buffer owned by the interactive
session: the text, the insertion point, and the match options that decide
how the query engine filters the index.
"""

import re
from typing import Callable, Dict, Any
from pydantic import BaseModel, Field, model_validator

from ..errors import InvalidQueryPatternError


_WORD_CHAR = re.compile(r'\w')


class Query(BaseModel):
    """
    Represents the live search state edited by the user.

    Attributes:
        content: Query text
        cursor_position: Insertion point within content (0..len(content))
        use_regex: Match names against content as a regular expression
        directory_only: Only match directories
        unbounded: Disable the result cap (and the existence re-check)
    """

    content: str = Field("", description="Query text")
    cursor_position: int = Field(0, ge=0, description="Insertion point within the content")
    use_regex: bool = Field(False, description="Treat content as a regular expression")
    directory_only: bool = Field(False, description="Only match directories")
    unbounded: bool = Field(False, description="Disable the result cap")

    @model_validator(mode='after')
    def validate_cursor(self):
        """Keep the cursor inside the content."""
        if self.cursor_position > len(self.content):
            self.cursor_position = len(self.content)
        return self

    @classmethod
    def from_text(cls, text: str, **options) -> 'Query':
        """Create a query with the cursor placed after the text."""
        return cls(content=text, cursor_position=len(text), **options)

    # Editing. Every method returns True when the content changed.

    def insert(self, text: str) -> bool:
        """Insert text at the cursor."""
        if not text:
            return False
        pos = self.cursor_position
        self.content = self.content[:pos] + text + self.content[pos:]
        self.cursor_position = pos + len(text)
        return True

    def backspace(self) -> bool:
        """Delete the character before the cursor."""
        pos = self.cursor_position
        if pos == 0:
            return False
        self.content = self.content[:pos - 1] + self.content[pos:]
        self.cursor_position = pos - 1
        return True

    def delete(self) -> bool:
        """Delete the character under the cursor."""
        pos = self.cursor_position
        if pos >= len(self.content):
            return False
        self.content = self.content[:pos] + self.content[pos + 1:]
        return True

    def delete_word_back(self) -> bool:
        """Delete from the start of the previous word up to the cursor."""
        start = self._word_start_left(self.cursor_position)
        if start == self.cursor_position:
            return False
        self.content = self.content[:start] + self.content[self.cursor_position:]
        self.cursor_position = start
        return True

    def delete_word_forward(self) -> bool:
        """Delete from the cursor to the end of the next word."""
        end = self._word_end_right(self.cursor_position)
        if end == self.cursor_position:
            return False
        self.content = self.content[:self.cursor_position] + self.content[end:]
        return True

    def move_left(self) -> None:
        self.cursor_position = max(self.cursor_position - 1, 0)

    def move_right(self) -> None:
        self.cursor_position = min(self.cursor_position + 1, len(self.content))

    def move_home(self) -> None:
        self.cursor_position = 0

    def move_end(self) -> None:
        self.cursor_position = len(self.content)

    def move_word_left(self) -> None:
        self.cursor_position = self._word_start_left(self.cursor_position)

    def move_word_right(self) -> None:
        self.cursor_position = self._word_end_right(self.cursor_position)

    def replace_content(self, text: str) -> bool:
        """Swap in new text (history navigation) and move the cursor to its end."""
        changed = text != self.content
        self.content = text
        self.cursor_position = len(text)
        return changed

    def _word_start_left(self, pos: int) -> int:
        # Skip separators, then the word itself
        while pos > 0 and not _WORD_CHAR.match(self.content[pos - 1]):
            pos -= 1
        while pos > 0 and _WORD_CHAR.match(self.content[pos - 1]):
            pos -= 1
        return pos

    def _word_end_right(self, pos: int) -> int:
        length = len(self.content)
        while pos < length and not _WORD_CHAR.match(self.content[pos]):
            pos += 1
        while pos < length and _WORD_CHAR.match(self.content[pos]):
            pos += 1
        return pos

    # Matching

    def compile_pattern(self) -> re.Pattern:
        """
        Compile the content as a case-insensitive regular expression.

        Raises:
            InvalidQueryPatternError: If the content is not a valid pattern
        """
        try:
            return re.compile(self.content, re.IGNORECASE)
        except re.error as e:
            raise InvalidQueryPatternError(self.content, str(e)) from e

    def is_pattern_valid(self) -> bool:
        """Check whether the content compiles when regex mode is on."""
        if not self.use_regex:
            return True
        try:
            self.compile_pattern()
        except InvalidQueryPatternError:
            return False
        return True

    def build_matcher(self) -> Callable[[str], bool]:
        """
        Build the name predicate for this query.

        Regex mode uses a case-insensitive search; otherwise the name must
        contain the content, ignoring case.
        """
        if self.use_regex:
            pattern = self.compile_pattern()
            return lambda name: pattern.search(name) is not None

        needle = self.content.casefold()
        return lambda name: needle in name.casefold()

    def to_dict(self) -> Dict[str, Any]:
        """Convert the query to a dictionary representation."""
        return self.model_dump()

    def __str__(self) -> str:
        flags = []
        if self.use_regex:
            flags.append("regex")
        if self.directory_only:
            flags.append("dirs")
        if self.unbounded:
            flags.append("all")
        suffix = f" [{', '.join(flags)}]" if flags else ""
        return f"Query: '{self.content}'{suffix}"
