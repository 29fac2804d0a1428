"""
Exception types shared across filescout.

Only StorageError raised while loading the stores at startup is fatal; every
other error is reported as a transient status and the session continues.
"""


class FilescoutError(Exception):
    """Base class for all filescout errors."""
    pass


class InvalidPathError(FilescoutError):
    """Raised when a search root is missing or is not a directory."""

    def __init__(self, path: str, reason: str = "does not exist"):
        self.path = path
        self.reason = reason
        super().__init__(f"Search root {reason}: {path}")


class InvalidQueryPatternError(FilescoutError):
    """Raised when the query text is not a valid regular expression."""

    def __init__(self, pattern: str, message: str):
        self.pattern = pattern
        super().__init__(f"Invalid regex '{pattern}': {message}")


class ItemNotFoundError(FilescoutError):
    """Raised when the selected item no longer exists at open time."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Item no longer exists: {path}")


class UnknownCommandError(FilescoutError):
    """Raised by the command parser for names outside the command vocabulary."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Unknown command: {name}")


class OpenActionError(FilescoutError):
    """Raised when the operating system refuses to open a path."""
    pass


class StorageError(FilescoutError):
    """Raised when an index, history or lookup-count file cannot be read or written."""
    pass
