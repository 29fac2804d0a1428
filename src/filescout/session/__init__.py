"""
Interactive session: state machine, key handling and commands.
"""

from .commands import Command, CommandName, parse_command, autocomplete
from .controller import SessionController
from .keys import KeyEvent
from .state import Mode, SessionState, SessionView

__all__ = [
    'Command',
    'CommandName',
    'parse_command',
    'autocomplete',
    'SessionController',
    'KeyEvent',
    'Mode',
    'SessionState',
    'SessionView',
]
