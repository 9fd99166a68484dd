"""Merge executor -- runs ffmpeg's concat demuxer against a manifest.

The command mirrors what the service has always sent to ffmpeg:

    ffmpeg -y -f concat -safe 0 -i list.txt -preset fast merged.mp4

`-safe 0` makes the demuxer accept the absolute paths written by
concat_manifest. ffmpeg runs as an asyncio subprocess, one per job, so a
long merge never blocks the event loop or other requests.

Each invocation is tracked by a MergeRun:
  NOT_STARTED -> RUNNING -> SUCCEEDED | FAILED
There are no retries here. A failed run's output file is never reused;
the owning job removes it during cleanup.
"""

import asyncio
import enum
import logging
import os
import shutil
import time
from pathlib import Path

import imageio_ffmpeg

from .errors import MergeError

logger = logging.getLogger(__name__)

# Lines of ffmpeg stderr kept in MergeError details.
STDERR_TAIL_LINES = 20


def resolve_ffmpeg(configured: str | None = None) -> str | None:
    """Locate the ffmpeg binary, or return None if there is none.

    A configured value may be a path or a command name on PATH. Without
    one, the binary bundled with imageio-ffmpeg is used (it falls back to
    a system ffmpeg on its own).
    """
    if configured:
        found = shutil.which(configured)
        if found:
            return found
        if os.path.isfile(configured) and os.access(configured, os.X_OK):
            return configured
        return None
    try:
        return imageio_ffmpeg.get_ffmpeg_exe()
    except RuntimeError:
        return None


class MergeState(enum.Enum):
    NOT_STARTED = "not_started"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


_NEXT_STATES = {
    MergeState.NOT_STARTED: {MergeState.RUNNING, MergeState.FAILED},
    MergeState.RUNNING: {MergeState.SUCCEEDED, MergeState.FAILED},
    MergeState.SUCCEEDED: set(),
    MergeState.FAILED: set(),
}


class MergeRun:
    """Record of a single ffmpeg invocation."""

    def __init__(self, cmd: list[str]):
        self.cmd = cmd
        self.state = MergeState.NOT_STARTED
        self.returncode: int | None = None
        self.stderr = ""
        self.elapsed_s: float | None = None

    def advance(self, state: MergeState) -> None:
        if state not in _NEXT_STATES[self.state]:
            raise RuntimeError(f"Illegal merge transition {self.state.name} -> {state.name}")
        self.state = state


def build_concat_command(ffmpeg: str, manifest_path: str | Path, output_path: str | Path) -> list[str]:
    """Return the ffmpeg argv for concatenating the manifest into output_path."""
    return [
        ffmpeg, "-hide_banner", "-nostdin", "-loglevel", "error", "-y",
        "-f", "concat", "-safe", "0",
        "-i", str(manifest_path),
        "-preset", "fast",
        str(output_path),
    ]


def _stderr_tail(raw: bytes) -> str:
    lines = raw.decode("utf-8", errors="replace").strip().splitlines()
    return "\n".join(lines[-STDERR_TAIL_LINES:])


async def _kill(proc: asyncio.subprocess.Process) -> None:
    if proc.returncode is None:
        proc.kill()
        await proc.wait()


class MergeExecutor:
    """Runs ffmpeg concat jobs.

    Args:
        ffmpeg: Path of the ffmpeg binary. None means it could not be
            resolved; every run then fails with MergeError.
        timeout: Seconds before ffmpeg is killed, or None for no limit.
    """

    def __init__(self, ffmpeg: str | None, timeout: float | None = None):
        self.ffmpeg = ffmpeg
        self.timeout = timeout

    async def run(self, manifest_path: str | Path, output_path: str | Path) -> MergeRun:
        """Concatenate the manifest's inputs into output_path.

        Returns the SUCCEEDED MergeRun.

        Raises:
            MergeError: ffmpeg is unavailable, exited non-zero, timed out,
                or produced no output. The failed MergeRun is attached as
                `exc.run` when ffmpeg was started.
            asyncio.CancelledError: The awaiting task was cancelled; the
                ffmpeg process is killed first.
        """
        if self.ffmpeg is None:
            raise MergeError("ffmpeg binary is not available on this host")

        run = MergeRun(build_concat_command(self.ffmpeg, manifest_path, output_path))
        started = time.monotonic()

        try:
            proc = await asyncio.create_subprocess_exec(
                *run.cmd,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            run.advance(MergeState.FAILED)
            raise _failed(run, f"Could not start ffmpeg: {exc}") from exc

        run.advance(MergeState.RUNNING)
        logger.info("ffmpeg started (pid %s) for %s", proc.pid, Path(output_path).name)

        try:
            _, stderr = await asyncio.wait_for(proc.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            await _kill(proc)
            run.advance(MergeState.FAILED)
            raise _failed(run, f"ffmpeg timed out after {self.timeout:g} seconds")
        except asyncio.CancelledError:
            logger.warning("Merge cancelled, killing ffmpeg (pid %s)", proc.pid)
            await _kill(proc)
            run.advance(MergeState.FAILED)
            raise
        finally:
            run.elapsed_s = time.monotonic() - started

        run.returncode = proc.returncode
        run.stderr = _stderr_tail(stderr)

        if proc.returncode != 0:
            run.advance(MergeState.FAILED)
            raise _failed(
                run,
                f"ffmpeg exited with code {proc.returncode}: {run.stderr or 'no diagnostic output'}",
            )

        out = Path(output_path)
        if not out.is_file() or out.stat().st_size == 0:
            run.advance(MergeState.FAILED)
            raise _failed(run, "ffmpeg reported success but wrote no output")

        run.advance(MergeState.SUCCEEDED)
        logger.info("ffmpeg finished %s in %.1fs", out.name, run.elapsed_s)
        return run


def _failed(run: MergeRun, message: str) -> MergeError:
    logger.error("Merge failed: %s", message)
    exc = MergeError(message)
    exc.run = run
    return exc
