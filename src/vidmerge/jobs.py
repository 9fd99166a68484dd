"""Job orchestration -- staging -> manifest -> ffmpeg -> delivery -> cleanup.

A MergeJob lives for exactly one request. It owns every file it creates
(staged inputs, manifest, output) and releases them through the cleanup
sweeper exactly once, whichever way the request ends:

  - failures inside MergePipeline.run release the job before raising;
  - on success the caller delivers job.output_path and then calls
    job.release(), also when delivery fails or the client goes away.

Job states only move forward:
  STAGING -> MANIFEST_READY -> MERGING -> SUCCEEDED
  and any non-terminal state -> FAILED.
"""

import asyncio
import enum
import logging
import shutil
import tempfile
import time
import uuid
from contextlib import ExitStack
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO, Sequence

from .cleanup import cleanup
from .concat_manifest import build_manifest
from .errors import (
    PayloadTooLargeError,
    ServerError,
    UploadError,
    ValidationError,
    VidmergeError,
)
from .merge import MergeExecutor, resolve_ffmpeg
from .staging import StagingArea, UploadedFile

logger = logging.getLogger(__name__)

MIN_FILES = 2


class JobState(enum.Enum):
    STAGING = "staging"
    MANIFEST_READY = "manifest_ready"
    MERGING = "merging"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


_NEXT_STATES = {
    JobState.STAGING: {JobState.MANIFEST_READY, JobState.FAILED},
    JobState.MANIFEST_READY: {JobState.MERGING, JobState.FAILED},
    JobState.MERGING: {JobState.SUCCEEDED, JobState.FAILED},
    JobState.SUCCEEDED: set(),
    JobState.FAILED: set(),
}


def new_job_id() -> str:
    """Submission-time token with a random suffix, e.g. '17a3f0c2e91b4d00-9c1e04ab'."""
    return f"{time.time_ns():x}-{uuid.uuid4().hex[:8]}"


async def _to_thread_settled(func, *args, settled=None):
    """Run `func(*args)` in a worker thread, waiting it out even on cancel.

    A worker thread cannot be interrupted. When the awaiting task is
    cancelled, the cancel is held until the thread returns, so whatever
    it wrote is on disk before the job is swept. A result that arrives
    that way is handed to `settled` before CancelledError propagates.
    """
    task = asyncio.ensure_future(asyncio.to_thread(func, *args))
    try:
        return await asyncio.shield(task)
    except asyncio.CancelledError:
        await asyncio.wait({task})
        exc = task.exception()
        if exc is not None:
            logger.warning("%s failed after cancellation: %s", func.__name__, exc)
        elif settled is not None:
            settled(task.result())
        raise


@dataclass
class MergeJob:
    id: str
    input_files: list[UploadedFile] = field(default_factory=list)
    manifest_path: Path | None = None
    output_path: Path | None = None
    state: JobState = JobState.STAGING
    _released: bool = field(default=False, repr=False)

    @property
    def released(self) -> bool:
        return self._released

    def advance(self, state: JobState) -> None:
        """Move to `state`, refusing backward or skipped transitions."""
        if state not in _NEXT_STATES[self.state]:
            raise RuntimeError(f"Job {self.id}: illegal transition {self.state.name} -> {state.name}")
        if state is JobState.MERGING and len(self.input_files) < MIN_FILES:
            raise RuntimeError(f"Job {self.id}: cannot merge fewer than {MIN_FILES} files")
        self.state = state

    def release(self) -> list[Path]:
        """Remove every artifact the job created. Only the first call acts.

        `state` keeps describing how the merge ended, not what is still on
        disk: a released SUCCEEDED job no longer has its output file.

        Returns:
            Paths the sweeper could not remove (already logged).
        """
        if self._released:
            return []
        self._released = True
        leftovers = cleanup(self.input_files, self.manifest_path, self.output_path)
        logger.info("Job %s released (%s)", self.id, self.state.value)
        return leftovers

    def fail(self) -> None:
        """Release the job's files and mark it FAILED."""
        self.release()
        if self.state not in (JobState.SUCCEEDED, JobState.FAILED):
            self.advance(JobState.FAILED)


class MergePipeline:
    """Runs one merge job per call to run().

    Args:
        staging: Staging area for inputs, manifests and outputs.
        executor: ffmpeg merge executor.
        max_files: Maximum number of uploads per job, or None.
        max_total_bytes: Cap on the summed size of a job's uploads, or None.
    """

    def __init__(
        self,
        staging: StagingArea,
        executor: MergeExecutor,
        max_files: int | None = 5,
        max_total_bytes: int | None = None,
    ):
        self.staging = staging
        self.executor = executor
        self.max_files = max_files
        self.max_total_bytes = max_total_bytes

    async def run(self, uploads: Sequence[tuple[str, BinaryIO]]) -> MergeJob:
        """Stage `uploads` (name, stream) in order and merge them.

        Returns a SUCCEEDED job whose output_path holds the merged video.
        The caller owns it from here and must call job.release() once
        the output has been delivered.

        Raises:
            UploadError: Too many uploads, or a stream could not be stored.
            PayloadTooLargeError: A size limit was exceeded.
            ValidationError: Fewer than two files.
            InvalidPathError: A staged path cannot go into the manifest.
            MergeError: ffmpeg failed.
            ServerError: Anything unexpected.
        Every error path has already released the job.
        """
        job = MergeJob(id=new_job_id())
        logger.info("Job %s: %d upload(s)", job.id, len(uploads))

        if self.max_files is not None and len(uploads) > self.max_files:
            job.fail()
            raise UploadError(
                f"Too many files: at most {self.max_files} allowed, got {len(uploads)}"
            )

        try:
            await self._stage_all(job, uploads)

            if len(job.input_files) < MIN_FILES:
                raise ValidationError(f"at least {MIN_FILES} files required")

            job.manifest_path = self.staging.new_path("concat", ".txt")
            await _to_thread_settled(build_manifest, job.input_files, job.manifest_path)
            job.advance(JobState.MANIFEST_READY)

            job.output_path = self.staging.new_path("merged", ".mp4")
            job.advance(JobState.MERGING)
            await self.executor.run(job.manifest_path, job.output_path)
            job.advance(JobState.SUCCEEDED)
        except VidmergeError as exc:
            logger.warning("Job %s failed: %s: %s", job.id, type(exc).__name__, exc)
            job.fail()
            raise
        except asyncio.CancelledError:
            logger.warning("Job %s cancelled", job.id)
            job.fail()
            raise
        except Exception as exc:
            logger.exception("Job %s failed unexpectedly", job.id)
            job.fail()
            raise ServerError(str(exc) or type(exc).__name__) from exc

        logger.info("Job %s merged %d files into %s", job.id, len(job.input_files), job.output_path.name)
        return job

    async def _stage_all(self, job: MergeJob, uploads: Sequence[tuple[str, BinaryIO]]) -> None:
        total = 0
        for name, stream in uploads:
            try:
                uploaded = await _to_thread_settled(
                    self.staging.stage, stream, name, settled=job.input_files.append
                )
            except OSError as exc:
                raise UploadError(f"Could not store {name!r}: {exc}") from exc
            job.input_files.append(uploaded)

            total += uploaded.size_bytes
            if self.max_total_bytes is not None and total > self.max_total_bytes:
                raise PayloadTooLargeError(
                    f"Uploads exceed the total limit of {self.max_total_bytes} bytes"
                )


def merge_files(
    paths: Sequence[str | Path],
    output: str | Path,
    ffmpeg: str | None = None,
    timeout: float | None = None,
) -> Path:
    """Merge local video files in order into `output`.

    Runs the same pipeline as the HTTP service inside a temporary
    working directory.

    Returns:
        The output path.

    Raises:
        VidmergeError: Any pipeline failure (see MergePipeline.run).
        FileNotFoundError: An input file does not exist.
    """
    output = Path(output)
    with tempfile.TemporaryDirectory(prefix="vidmerge-") as work_dir, ExitStack() as stack:
        uploads = [(Path(p).name, stack.enter_context(open(p, "rb"))) for p in paths]
        pipeline = MergePipeline(
            StagingArea(work_dir),
            MergeExecutor(resolve_ffmpeg(ffmpeg), timeout=timeout),
            max_files=None,
        )
        job = asyncio.run(pipeline.run(uploads))
        try:
            output.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(job.output_path, output)
        finally:
            job.release()
    return output
