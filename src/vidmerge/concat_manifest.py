"""Concat manifest writer -- the list file read by ffmpeg's concat demuxer.

Manifest format, one line per input, in merge order:
  file '/abs/path/to/first.mp4'
  file '/abs/path/to/second.mp4'

ffmpeg reads each path literally between the single quotes, so a path
containing a quote (or a line break) would silently corrupt the list.
Such paths are rejected instead of written.
"""

import logging
import os
from pathlib import Path
from typing import Sequence

from .errors import InvalidPathError
from .staging import UploadedFile

logger = logging.getLogger(__name__)

_FORBIDDEN_CHARS = {"'": "single quote", "\n": "line feed", "\r": "carriage return"}


def manifest_line(path: str | Path) -> str:
    """Format one `file '<path>'` directive for an absolute, forward-slash path.

    Raises:
        InvalidPathError: The path contains a character the format cannot carry.
    """
    normalized = os.path.abspath(path).replace(os.sep, "/")
    for char, label in _FORBIDDEN_CHARS.items():
        if char in normalized:
            raise InvalidPathError(
                f"Path contains a {label} and cannot be listed in a concat manifest: "
                f"{normalized!r}"
            )
    return f"file '{normalized}'"


def build_manifest(input_files: Sequence[UploadedFile], dest_path: str | Path) -> None:
    """Write the concat manifest for `input_files` to `dest_path`.

    All lines are validated before the file is opened, so a rejected
    manifest never exists on disk.

    Raises:
        InvalidPathError: Any staged path is unsafe for the manifest.
        OSError: The manifest could not be written.
    """
    lines = [manifest_line(f.stored_path) for f in input_files]

    with open(dest_path, "w", encoding="utf-8") as f:
        f.write("\n".join(lines) + "\n")

    logger.debug("Concat manifest %s:\n%s", dest_path, "\n".join(lines))
