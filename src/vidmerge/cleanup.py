"""Cleanup sweeper -- removes a job's transient files."""

import logging
from pathlib import Path
from typing import Iterable

from .staging import UploadedFile

logger = logging.getLogger(__name__)


def cleanup(
    input_files: Iterable[UploadedFile],
    manifest_path: str | Path | None = None,
    output_path: str | Path | None = None,
) -> list[Path]:
    """Remove staged inputs, the manifest and the output, best effort.

    Each artifact is attempted on its own; one failure never stops the
    rest. Paths that are already gone count as removed. Failures are
    logged and returned, never raised.

    Returns:
        Paths that could not be removed.
    """
    targets = [f.stored_path for f in input_files]
    targets += [Path(p) for p in (manifest_path, output_path) if p is not None]

    leftovers = []
    for path in targets:
        try:
            Path(path).unlink(missing_ok=True)
        except OSError as exc:
            logger.warning("Cleanup could not remove %s: %s", path, exc)
            leftovers.append(Path(path))
    return leftovers
