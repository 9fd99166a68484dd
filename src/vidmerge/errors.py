"""Error taxonomy for the merge pipeline.

Every failure a request can hit is a VidmergeError subclass. Each class
carries the HTTP status and the short `error` title used in the JSON
body; the exception message becomes the `details` field.
"""


class VidmergeError(Exception):
    """Base class for pipeline failures reported to the caller."""

    status_code = 500
    title = "Server error"

    def to_dict(self) -> dict:
        return {"error": self.title, "details": str(self)}


class UploadError(VidmergeError):
    """An uploaded stream could not be persisted to the working directory."""

    title = "Upload failed"


class PayloadTooLargeError(UploadError):
    """An upload exceeded the per-file or total size limit."""

    status_code = 413
    title = "Upload too large"


class ValidationError(VidmergeError):
    """The request does not carry enough files to merge."""

    status_code = 400
    title = "Please upload at least 2 videos to merge"


class InvalidPathError(VidmergeError):
    """A staged path cannot be written into a concat manifest safely."""


class MergeError(VidmergeError):
    """ffmpeg failed, timed out, or is not available."""

    title = "Video merge failed"
    run = None


class DeliveryError(VidmergeError):
    """The merged file could not be streamed to the client."""


class ServerError(VidmergeError):
    """Unexpected failure inside the pipeline."""
