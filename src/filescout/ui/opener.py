"""
Open a file or folder with the operating system's default handler.
"""

import logging
import os
import subprocess
import sys
from pathlib import Path

from ..errors import OpenActionError


logger = logging.getLogger(__name__)


def open_command(target: str, platform: str = sys.platform) -> list:
    """Command line that opens target on the given platform (not Windows)."""
    if platform == "darwin":
        return ["open", target]
    return ["xdg-open", target]


def open_path(path: str, open_parent: bool = False) -> None:
    """
    Open a path, or the folder containing it.

    Args:
        path: File or directory to open
        open_parent: Open the containing folder instead

    Raises:
        OpenActionError: If the platform handler fails
    """
    target = str(Path(path).parent) if open_parent else path
    logger.info(f"Opening {target}")

    try:
        if sys.platform == "win32":
            os.startfile(target)
            return
        subprocess.run(
            open_command(target),
            check=True,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
        )
    except (OSError, subprocess.CalledProcessError) as e:
        raise OpenActionError(f"Cannot open {target}: {e}") from e
