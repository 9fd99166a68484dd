"""HTTP service -- FastAPI app exposing the merge pipeline.

Routes:
  GET  /       plain-text greeting
  POST /merge  multipart, up to `max_files` parts under the field `videos`;
               responds with the merged mp4 as `merged.mp4`, or with
               {"error": ..., "details": ...} and a 4xx/5xx status.

Upload limits are applied while the request body is read, before
anything reaches the working directory: the body is capped at
`max_total_bytes` (plus room for multipart framing) and the multipart
parser stops at `max_files` file parts. `max_file_bytes` and the exact
`max_total_bytes` sum are checked again while staging.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse, PlainTextResponse
from starlette.datastructures import FormData, UploadFile
from starlette.exceptions import HTTPException

from .errors import DeliveryError, PayloadTooLargeError, UploadError, VidmergeError
from .jobs import MergeJob, MergePipeline
from .merge import MergeExecutor, resolve_ffmpeg
from .settings import Settings, load_settings
from .staging import StagingArea, ensure_work_dir

logger = logging.getLogger(__name__)

UPLOAD_FIELD = "videos"
DOWNLOAD_NAME = "merged.mp4"

# Boundaries and part headers on top of the file bytes themselves.
MULTIPART_OVERHEAD = 16 * 1024


class MergedVideoResponse(FileResponse):
    """Streams a job's output, then releases the job.

    The release runs after the last byte is sent, and also when sending
    fails or the client disconnects. A failure before the response has
    started surfaces as DeliveryError so it still gets a JSON body; once
    headers are out the failure can only be logged.
    """

    def __init__(self, job: MergeJob):
        super().__init__(job.output_path, media_type="video/mp4", filename=DOWNLOAD_NAME)
        self.job = job

    async def __call__(self, scope, receive, send):
        started = False

        async def tracking_send(message):
            nonlocal started
            if message["type"] == "http.response.start":
                started = True
            await send(message)

        try:
            await super().__call__(scope, receive, tracking_send)
        except Exception as exc:
            logger.warning("Job %s: delivery failed: %s", self.job.id, exc)
            if started:
                raise
            raise DeliveryError(f"Failed sending merged video: {exc}") from exc
        finally:
            self.job.release()


def limit_body(request: Request, max_bytes: int | None) -> Request:
    """Return a view of `request` whose body may not exceed `max_bytes`.

    A declared Content-Length over the cap is refused before any byte is
    read. Chunked bodies are counted as they arrive.

    Raises:
        PayloadTooLargeError: The body is, or becomes, larger than the cap.
    """
    if max_bytes is None:
        return request

    declared = request.headers.get("content-length", "")
    if declared.isdigit() and int(declared) > max_bytes:
        raise PayloadTooLargeError(
            f"Request body of {declared} bytes exceeds the limit of {max_bytes} bytes"
        )

    received = 0

    async def counting_receive():
        nonlocal received
        message = await request.receive()
        if message["type"] == "http.request":
            received += len(message.get("body", b""))
            if received > max_bytes:
                raise PayloadTooLargeError(f"Request body exceeds the limit of {max_bytes} bytes")
        return message

    return Request(request.scope, counting_receive)


async def read_upload_form(request: Request, max_files: int) -> FormData:
    """Parse the multipart body, stopping at `max_files` file parts.

    Raises:
        UploadError: Too many files, or the body is not valid multipart.
    """
    try:
        return await request.form(max_files=max_files)
    except HTTPException as exc:
        raise UploadError(f"Could not read upload: {exc.detail}") from exc


def build_pipeline(settings: Settings) -> MergePipeline:
    """Create the working directory and wire staging, ffmpeg and limits."""
    work_dir = ensure_work_dir(settings.work_dir)
    ffmpeg = resolve_ffmpeg(settings.ffmpeg_binary)
    if ffmpeg is None:
        logger.warning(
            "ffmpeg not found (configured: %r); merges will fail until it is installed",
            settings.ffmpeg_binary,
        )
    else:
        logger.info("Using ffmpeg at %s", ffmpeg)
    logger.info("Working directory: %s", work_dir)

    return MergePipeline(
        StagingArea(work_dir, max_file_bytes=settings.max_file_bytes),
        MergeExecutor(ffmpeg, timeout=settings.merge_timeout),
        max_files=settings.max_files,
        max_total_bytes=settings.max_total_bytes,
    )


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or load_settings()
    pipeline = build_pipeline(settings)
    body_limit = (
        None if settings.max_total_bytes is None
        else settings.max_total_bytes + MULTIPART_OVERHEAD
    )

    app = FastAPI(title="vidmerge")
    app.state.settings = settings
    app.state.pipeline = pipeline

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(VidmergeError)
    async def vidmerge_error_handler(request: Request, exc: VidmergeError):
        return JSONResponse(exc.to_dict(), status_code=exc.status_code)

    @app.get("/", response_class=PlainTextResponse)
    def home():
        return "Welcome to the Video Merge Service"

    @app.post("/merge")
    async def merge(request: Request):
        form = await read_upload_form(limit_body(request, body_limit), settings.max_files)
        try:
            videos = [v for v in form.getlist(UPLOAD_FIELD) if isinstance(v, UploadFile)]
            logger.info("/merge called with %d file(s)", len(videos))
            uploads = [(v.filename or "upload", v.file) for v in videos]
            job = await app.state.pipeline.run(uploads)
        finally:
            await form.close()

        try:
            return MergedVideoResponse(job)
        except BaseException:
            job.release()
            raise

    return app
