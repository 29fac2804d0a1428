"""
Non-blocking keyboard reader for the interactive session.

On POSIX terminals the reader switches stdin to cbreak mode and decodes
escape sequences; on Windows it uses msvcrt. Input arriving in one read is
queued, since the controller consumes one key per tick.
"""

import os
import select
import sys
from collections import deque
from typing import Deque, List, Optional
import logging

try:
    import termios
    import tty
except ImportError:
    # Windows has no termios
    termios = None
    tty = None

try:
    import msvcrt
except ImportError:
    msvcrt = None

from ..session import keys
from ..session.keys import KeyEvent


logger = logging.getLogger(__name__)


ESCAPE_SEQUENCES = {
    '[A': KeyEvent(keys.UP),
    '[B': KeyEvent(keys.DOWN),
    '[C': KeyEvent(keys.RIGHT),
    '[D': KeyEvent(keys.LEFT),
    '[H': KeyEvent(keys.HOME),
    '[F': KeyEvent(keys.END),
    'OA': KeyEvent(keys.UP),
    'OB': KeyEvent(keys.DOWN),
    'OC': KeyEvent(keys.RIGHT),
    'OD': KeyEvent(keys.LEFT),
    'OH': KeyEvent(keys.HOME),
    'OF': KeyEvent(keys.END),
    '[1~': KeyEvent(keys.HOME),
    '[4~': KeyEvent(keys.END),
    '[3~': KeyEvent(keys.DELETE),
    '[5~': KeyEvent(keys.PAGE_UP),
    '[6~': KeyEvent(keys.PAGE_DOWN),
    '[1;5C': KeyEvent(keys.RIGHT, ctrl=True),
    '[1;5D': KeyEvent(keys.LEFT, ctrl=True),
    '[3;5~': KeyEvent(keys.DELETE, ctrl=True),
}

WINDOWS_SCAN_CODES = {
    'H': KeyEvent(keys.UP),
    'P': KeyEvent(keys.DOWN),
    'K': KeyEvent(keys.LEFT),
    'M': KeyEvent(keys.RIGHT),
    'G': KeyEvent(keys.HOME),
    'O': KeyEvent(keys.END),
    'S': KeyEvent(keys.DELETE),
    'I': KeyEvent(keys.PAGE_UP),
    'Q': KeyEvent(keys.PAGE_DOWN),
    's': KeyEvent(keys.LEFT, ctrl=True),
    't': KeyEvent(keys.RIGHT, ctrl=True),
    '\x93': KeyEvent(keys.DELETE, ctrl=True),
}


def _control_key(char: str) -> Optional[KeyEvent]:
    if char in ('\r', '\n'):
        return KeyEvent(keys.ENTER)
    if char == '\t':
        return KeyEvent(keys.TAB)
    if char == '\x7f':
        return KeyEvent(keys.BACKSPACE)
    if char == '\x08':
        # Most terminals send ^H for ctrl+backspace
        return KeyEvent(keys.BACKSPACE, ctrl=True)
    code = ord(char)
    if 1 <= code <= 26:
        return KeyEvent(chr(code + 96), ctrl=True)
    return None


def decode_keys(data: str) -> List[KeyEvent]:
    """Split raw terminal input into key events."""
    events = []
    i = 0
    while i < len(data):
        char = data[i]
        if char != '\x1b':
            control = _control_key(char)
            if control is not None:
                events.append(control)
            elif char.isprintable():
                events.append(KeyEvent(char))
            i += 1
            continue

        rest = data[i + 1:]
        if not rest:
            events.append(KeyEvent(keys.ESCAPE))
            break

        matched = None
        for sequence, event in ESCAPE_SEQUENCES.items():
            if rest.startswith(sequence) and (matched is None or len(sequence) > len(matched[0])):
                matched = (sequence, event)
        if matched is not None:
            events.append(matched[1])
            i += 1 + len(matched[0])
            continue

        if rest[0] == '\x1b':
            events.append(KeyEvent(keys.ESCAPE))
            i += 1
            continue

        # ESC followed by a key is alt+key
        follower = _control_key(rest[0]) or KeyEvent(rest[0])
        events.append(KeyEvent(follower.key, ctrl=follower.ctrl, alt=True))
        i += 2
    return events


class TerminalKeys:
    """
    Key source reading from the controlling terminal.

    Use as a context manager so the terminal mode is always restored.
    """

    def __init__(self, stream=None):
        self.stream = stream or sys.stdin
        self._pending: Deque[KeyEvent] = deque()
        self._saved_attrs = None

    def __enter__(self) -> 'TerminalKeys':
        if termios is not None and self.stream.isatty():
            fd = self.stream.fileno()
            self._saved_attrs = termios.tcgetattr(fd)
            tty.setcbreak(fd)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self._saved_attrs is not None:
            termios.tcsetattr(self.stream.fileno(), termios.TCSADRAIN, self._saved_attrs)
            self._saved_attrs = None

    def read_key(self, timeout: float = 0.0) -> Optional[KeyEvent]:
        if not self._pending:
            self._pending.extend(self._read_available(timeout))
        return self._pending.popleft() if self._pending else None

    def _read_available(self, timeout: float) -> List[KeyEvent]:
        if msvcrt is not None:
            return self._read_windows()

        fd = self.stream.fileno()
        ready, _, _ = select.select([fd], [], [], timeout)
        if not ready:
            return []
        data = os.read(fd, 1024)
        if not data:
            return []
        return decode_keys(data.decode('utf-8', errors='ignore'))

    def _read_windows(self) -> List[KeyEvent]:
        events = []
        while msvcrt.kbhit():
            char = msvcrt.getwch()
            if char in ('\x00', '\xe0'):
                event = WINDOWS_SCAN_CODES.get(msvcrt.getwch())
                if event is not None:
                    events.append(event)
            elif char == '\x1b':
                events.append(KeyEvent(keys.ESCAPE))
            elif char == '\x08':
                events.append(KeyEvent(keys.BACKSPACE))
            elif char == '\x7f':
                events.append(KeyEvent(keys.BACKSPACE, ctrl=True))
            else:
                events.extend(decode_keys(char))
        return events
