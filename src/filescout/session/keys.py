"""
Keyboard events consumed by the session controller.

Special keys use lowercase names ("enter", "escape", "backspace", "up", ...);
printable input uses the character itself.
"""

from dataclasses import dataclass
from typing import Optional, Protocol


ENTER = "enter"
ESCAPE = "escape"
BACKSPACE = "backspace"
DELETE = "delete"
TAB = "tab"
UP = "up"
DOWN = "down"
LEFT = "left"
RIGHT = "right"
HOME = "home"
END = "end"
PAGE_UP = "pageup"
PAGE_DOWN = "pagedown"

SPECIAL_KEYS = {
    ENTER, ESCAPE, BACKSPACE, DELETE, TAB,
    UP, DOWN, LEFT, RIGHT, HOME, END, PAGE_UP, PAGE_DOWN,
}


@dataclass(frozen=True)
class KeyEvent:
    """
    One key press.

    Attributes:
        key: Special key name or the typed character
        ctrl: Control modifier
        alt: Alt/meta modifier
    """
    key: str
    ctrl: bool = False
    alt: bool = False

    @property
    def is_printable(self) -> bool:
        """A plain character that should be inserted into a text buffer."""
        return (
            len(self.key) == 1
            and not self.ctrl
            and not self.alt
            and self.key.isprintable()
        )

    def __str__(self) -> str:
        prefix = ("ctrl+" if self.ctrl else "") + ("alt+" if self.alt else "")
        return prefix + self.key


class KeySource(Protocol):
    """Anything the controller can poll for key presses."""

    def read_key(self, timeout: float = 0.0) -> Optional[KeyEvent]:
        """Return the next key press, or None if none arrived within timeout."""
        ...
