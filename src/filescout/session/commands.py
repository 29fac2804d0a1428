"""
Command-mode vocabulary and parser.

Command text has the form ``<CommandName> [<key>=<value> ...]``. Names are
matched case-insensitively against a closed set; anything else is logged
and ignored.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from ..errors import UnknownCommandError


logger = logging.getLogger(__name__)


class CommandName(Enum):
    """Commands accepted in command mode."""
    REBUILD_INDEX = "RebuildIndex"
    TOGGLE_INCOGNITO = "ToggleIncognito"


@dataclass(frozen=True)
class Command:
    """A parsed command with its key=value arguments."""
    name: CommandName
    args: Dict[str, str] = field(default_factory=dict)


def command_names() -> List[str]:
    return [name.value for name in CommandName]


def lookup_command_name(text: str) -> CommandName:
    """
    Map a command word to its variant.

    Raises:
        UnknownCommandError: If the word names no command
    """
    folded = text.casefold()
    for name in CommandName:
        if name.value.casefold() == folded:
            return name
    raise UnknownCommandError(text)


def parse_command(text: str) -> Optional[Command]:
    """
    Parse command text, failing soft.

    Returns:
        The command, or None for empty text or an unknown command name
    """
    tokens = text.split()
    if not tokens:
        return None

    try:
        name = lookup_command_name(tokens[0])
    except UnknownCommandError as e:
        logger.warning(f"{e}; known commands: {', '.join(command_names())}")
        return None

    args = {}
    for token in tokens[1:]:
        key, sep, value = token.partition('=')
        if not sep or not key:
            logger.warning(f"Ignoring malformed argument '{token}' for {name.value}")
            continue
        args[key] = value

    return Command(name=name, args=args)


def autocomplete(text: str) -> str:
    """
    Complete the command word from the vocabulary.

    The first command whose name starts with the typed word wins; text that
    already has arguments, or matches nothing, is returned unchanged.
    """
    if not text or ' ' in text.strip():
        return text
    prefix = text.strip().casefold()
    for name in command_names():
        if name.casefold().startswith(prefix):
            return name
    return text
