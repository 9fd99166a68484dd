"""Staging area -- persists uploaded streams into the working directory.

Every stored file is named `<token>_<sanitized original name>`, where the
token comes from a name source that must never repeat within the process
lifetime. The default source is uuid4, so concurrent jobs sharing the
directory never collide and no locking is needed.
"""

import logging
import re
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Callable

from .errors import PayloadTooLargeError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")


@dataclass(frozen=True)
class UploadedFile:
    """A stream fully written to the staging area."""

    stored_path: Path
    original_name: str
    size_bytes: int


def sanitize_filename(name: str) -> str:
    """Replace every character outside [A-Za-z0-9._-] with '_'.

    Only the final path component is kept, so client-supplied directory
    parts never reach the filesystem. An empty result becomes 'upload'.
    """
    base = re.split(r"[\\/]", name or "")[-1]
    return _UNSAFE_CHARS.sub("_", base) or "upload"


def ensure_work_dir(path: str | Path) -> Path:
    """Create the working directory if needed and return its absolute path."""
    work_dir = Path(path).resolve()
    work_dir.mkdir(parents=True, exist_ok=True)
    return work_dir


def _uuid_token() -> str:
    return uuid.uuid4().hex


class StagingArea:
    """Working directory that hands out collision-free paths.

    Args:
        work_dir: Directory for staged inputs, manifests and outputs.
            Must already exist (see ensure_work_dir).
        max_file_bytes: Per-file size cap, or None for unbounded.
        name_source: Zero-argument callable returning a fresh token per
            call. Precondition: it never returns the same token twice in
            the process lifetime. Defaults to uuid4 hex.
    """

    def __init__(
        self,
        work_dir: str | Path,
        max_file_bytes: int | None = None,
        name_source: Callable[[], str] | None = None,
    ):
        self.work_dir = Path(work_dir)
        self.max_file_bytes = max_file_bytes
        self._next_token = name_source or _uuid_token

    def new_path(self, prefix: str, suffix: str) -> Path:
        """Return a fresh path `<prefix>_<token><suffix>` in the work dir."""
        return self.work_dir / f"{prefix}_{self._next_token()}{suffix}"

    def stage(self, stream: BinaryIO, original_name: str) -> UploadedFile:
        """Copy `stream` into the work dir and describe the stored file.

        The data goes to a `.partial` file first and is renamed once
        complete, so a half-written upload never carries its final name.

        Raises:
            PayloadTooLargeError: The stream exceeds max_file_bytes.
            OSError: The write or rename failed (disk full, permissions).
        """
        dest = self.work_dir / f"{self._next_token()}_{sanitize_filename(original_name)}"
        partial = dest.with_name(dest.name + ".partial")

        total = 0
        try:
            with open(partial, "wb") as out:
                while True:
                    chunk = stream.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    total += len(chunk)
                    if self.max_file_bytes is not None and total > self.max_file_bytes:
                        raise PayloadTooLargeError(
                            f"{original_name!r} exceeds the per-file limit of "
                            f"{self.max_file_bytes} bytes"
                        )
                    out.write(chunk)
            partial.replace(dest)
        except BaseException:
            try:
                partial.unlink(missing_ok=True)
            except OSError as exc:
                logger.warning("Failed removing incomplete upload %s: %s", partial, exc)
            raise

        logger.info("Staged %r as %s (%d bytes)", original_name, dest.name, total)
        return UploadedFile(stored_path=dest, original_name=original_name, size_bytes=total)
