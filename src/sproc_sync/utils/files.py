"""
File helpers.

Generated artifacts are written in two phases: the new content goes to a
temporary file in the target directory which then replaces the target, so a
crash never leaves a half-written file behind. Unchanged content is not
written at all.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Union

logger = logging.getLogger(__name__)


def write_if_changed(path: Union[str, Path], content: str, encoding: str = "utf-8") -> bool:
    """
    Write content to a file unless the file already holds exactly that content.

    Args:
        path: Target file
        content: New content
        encoding: Text encoding of the file

    Returns:
        True if the file was written, False if it was left untouched
    """
    path = Path(path)

    if path.exists():
        with open(path, "r", encoding=encoding, newline="") as f:
            if f.read() == content:
                logger.debug(f"File {path} is up to date")
                return False

    path.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding=encoding, newline="") as f:
            f.write(content)
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise

    logger.info(f"Wrote {path}")
    return True
