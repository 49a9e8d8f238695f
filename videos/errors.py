"""Pipeline exception types."""


class PipelineError(Exception):
    """Base class for failures raised by the transcode pipeline and stream proxy."""


class StorageError(PipelineError):
    """Object store rejected the request (missing object/bucket, bad credentials).

    Not retried within the same job attempt.
    """


class ObjectNotFound(StorageError):
    def __init__(self, bucket: str, key: str) -> None:
        self.bucket = bucket
        self.key = key
        super().__init__(f"object not found: {bucket}/{key}")


class StorageUnavailable(PipelineError):
    """Object store endpoint could not be reached."""


class QueueUnavailable(PipelineError):
    """Broker could not be reached or the channel was lost."""


class TranscodeError(PipelineError):
    """External encoder exited non-zero, was missing, or timed out."""

    def __init__(self, message: str, *, returncode: int | None = None, output: str = "") -> None:
        self.returncode = returncode
        self.output = output
        super().__init__(message)

    def __str__(self) -> str:
        base = super().__str__()
        if self.output:
            return f"{base}: {self.output}"
        return base


class MalformedJobMessage(PipelineError):
    """Queue message body could not be decoded into a transcode job."""


class SourceNotUploaded(PipelineError):
    """Upload completion was reported before the raw file reached the source bucket."""


class VideoNotFound(PipelineError):
    def __init__(self, video_id) -> None:
        self.video_id = video_id
        super().__init__(f"video not found: {video_id}")


class InvalidStatusTransition(PipelineError):
    def __init__(self, current: str, attempted: str) -> None:
        self.current = current
        self.attempted = attempted
        super().__init__(f"invalid status transition {current} -> {attempted}")


__all__ = [
    "PipelineError",
    "StorageError",
    "ObjectNotFound",
    "StorageUnavailable",
    "QueueUnavailable",
    "TranscodeError",
    "MalformedJobMessage",
    "SourceNotUploaded",
    "VideoNotFound",
    "InvalidStatusTransition",
]
