"""Explicit component configuration built from Django settings.

Components receive one of these in their constructor and never read
``django.conf.settings`` themselves.
"""

from dataclasses import dataclass

from django.conf import settings


@dataclass(frozen=True)
class StorageConfig:
    endpoint_url: str
    public_endpoint: str
    region: str
    access_key: str | None
    secret_key: str | None
    source_bucket: str
    output_bucket: str
    presign_expire_seconds: int = 900
    upload_expire_seconds: int = 36000

    @classmethod
    def from_settings(cls) -> "StorageConfig":
        return cls(
            endpoint_url=settings.S3_ENDPOINT_URL,
            public_endpoint=settings.S3_PUBLIC_ENDPOINT,
            region=settings.S3_REGION,
            access_key=settings.S3_ACCESS_KEY,
            secret_key=settings.S3_SECRET_KEY,
            source_bucket=settings.S3_SOURCE_BUCKET,
            output_bucket=settings.S3_OUTPUT_BUCKET,
            presign_expire_seconds=settings.S3_PRESIGN_EXPIRE_SECONDS,
            upload_expire_seconds=settings.S3_UPLOAD_EXPIRE_SECONDS,
        )


@dataclass(frozen=True)
class QueueConfig:
    broker_url: str
    queue_name: str = "video_encoding_queue"
    poll_seconds: float = 1.0

    @classmethod
    def from_settings(cls) -> "QueueConfig":
        return cls(
            broker_url=settings.TRANSCODE_BROKER_URL,
            queue_name=settings.TRANSCODE_QUEUE,
            poll_seconds=settings.TRANSCODE_POLL_SECONDS,
        )


@dataclass(frozen=True)
class TranscoderConfig:
    ffmpeg_path: str = "ffmpeg"
    segment_seconds: int = 10
    video_codec: str = "libx264"
    audio_codec: str = "aac"
    preset: str = "veryfast"
    crf: int = 23
    timeout_seconds: int = 3600

    @classmethod
    def from_settings(cls) -> "TranscoderConfig":
        return cls(
            ffmpeg_path=settings.FFMPEG_PATH,
            segment_seconds=settings.HLS_SEGMENT_SECONDS,
            video_codec=settings.TRANSCODE_VIDEO_CODEC,
            audio_codec=settings.TRANSCODE_AUDIO_CODEC,
            preset=settings.TRANSCODE_PRESET,
            crf=settings.TRANSCODE_CRF,
            timeout_seconds=settings.TRANSCODE_TIMEOUT_SECONDS,
        )


@dataclass(frozen=True)
class WorkerConfig:
    work_root: str | None = None

    @classmethod
    def from_settings(cls) -> "WorkerConfig":
        return cls(work_root=settings.TRANSCODE_WORK_ROOT)


@dataclass(frozen=True)
class StreamConfig:
    proxy_base: str = "/stream"
    segment_max_age: int = 3600
    chunk_size: int = 64 * 1024

    @classmethod
    def from_settings(cls) -> "StreamConfig":
        return cls(
            proxy_base=settings.STREAM_PROXY_BASE,
            segment_max_age=settings.STREAM_SEGMENT_MAX_AGE,
            chunk_size=settings.STREAM_CHUNK_SIZE,
        )
