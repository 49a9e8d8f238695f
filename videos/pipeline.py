"""Transcode job consumer.

Drives one job attempt per queue message::

    RECEIVED -> DOWNLOADING -> TRANSCODING -> UPLOADING -> ACKED-READY | ACKED-FAILED

Status becomes READY only after every artifact is stored, then the message is
acked. A redelivered message re-runs the job: uploads overwrite the same keys
and a repeated READY write is a no-op.
"""

import enum
import logging
import tempfile
import threading
from dataclasses import dataclass
from pathlib import Path

from .config import WorkerConfig
from .errors import InvalidStatusTransition, MalformedJobMessage, StorageError, TranscodeError, VideoNotFound
from .models import VideoStatus
from .queue import Delivery, JobQueue, TranscodeJobMessage, decode_job_message
from .repository import VideoRepository
from .storage import ObjectStore
from .transcoder import Transcoder
from .utils import MANIFEST_SUFFIX, content_type_for, output_key

logger = logging.getLogger(__name__)


class JobStage(str, enum.Enum):
    RECEIVED = "RECEIVED"
    DOWNLOADING = "DOWNLOADING"
    TRANSCODING = "TRANSCODING"
    UPLOADING = "UPLOADING"
    ACKED_READY = "ACKED-READY"
    ACKED_FAILED = "ACKED-FAILED"


class JobOutcome(str, enum.Enum):
    READY = "ready"
    FAILED = "failed"
    DROPPED = "dropped"      # poison or orphaned message
    SKIPPED = "skipped"      # video already FAILED, never retried


@dataclass
class WorkingArtifactSet:
    """Private scratch directory of one job attempt."""

    root: Path
    source_path: Path

    @classmethod
    def for_job(cls, root, job: TranscodeJobMessage) -> "WorkingArtifactSet":
        root = Path(root)
        suffix = Path(job.source_path).suffix or ".mp4"
        return cls(root=root, source_path=root / f"input{suffix}")

    def outputs(self) -> list[Path]:
        """Encoder output, segments first and the manifest last."""
        files = [p for p in self.root.iterdir() if p.is_file() and p != self.source_path]
        return sorted(files, key=lambda p: (p.name.endswith(MANIFEST_SUFFIX), p.name))


class TranscodeJobConsumer:
    def __init__(
        self,
        *,
        queue: JobQueue,
        source_store: ObjectStore,
        output_store: ObjectStore,
        transcoder: Transcoder,
        videos: VideoRepository | None = None,
        config: WorkerConfig | None = None,
    ) -> None:
        self.queue = queue
        self.source_store = source_store
        self.output_store = output_store
        self.transcoder = transcoder
        self.videos = videos or VideoRepository()
        self.config = config or WorkerConfig()

    def run(self, stop: threading.Event | None = None, *, max_jobs: int | None = None) -> int:
        """Process messages one at a time until ``stop`` is set.

        Returns the number of messages handled. Transport errors propagate.
        """
        handled = 0
        deliveries = self.queue.consume(stop)
        try:
            for delivery in deliveries:
                self.handle(delivery)
                handled += 1
                if max_jobs is not None and handled >= max_jobs:
                    break
        finally:
            deliveries.close()
        return handled

    def handle(self, delivery: Delivery) -> JobOutcome:
        try:
            job = decode_job_message(delivery.body)
        except MalformedJobMessage as exc:
            logger.warning("dropping malformed message: %s", exc)
            delivery.nack(requeue=False)
            return JobOutcome.DROPPED

        self._stage(job, JobStage.RECEIVED)
        try:
            video = self.videos.find_by_id(job.video_id)
        except VideoNotFound:
            logger.error("dropping job for unknown video %s", job.video_id)
            delivery.nack(requeue=False)
            return JobOutcome.DROPPED

        if video.status == VideoStatus.FAILED:
            logger.warning("video %s already FAILED; job is not retried", job.video_id)
            delivery.nack(requeue=False)
            return JobOutcome.SKIPPED
        if video.status == VideoStatus.PENDING:
            self.videos.update_status(job.video_id, VideoStatus.PROCESSING)

        try:
            self.process(job)
        except (StorageError, TranscodeError) as exc:
            logger.error("job for video %s failed: %s", job.video_id, exc)
            self._mark_failed(job.video_id)
            delivery.nack(requeue=False)
            self._stage(job, JobStage.ACKED_FAILED)
            return JobOutcome.FAILED

        self.videos.update_status(job.video_id, VideoStatus.READY)
        delivery.ack()
        self._stage(job, JobStage.ACKED_READY)
        return JobOutcome.READY

    def process(self, job: TranscodeJobMessage) -> list[str]:
        """Download, transcode and upload. Returns the uploaded object keys.

        The working directory is removed on every exit path.
        """
        with tempfile.TemporaryDirectory(prefix=f"transcode-{job.video_id}-", dir=self.config.work_root) as tmp:
            work = WorkingArtifactSet.for_job(tmp, job)

            self._stage(job, JobStage.DOWNLOADING)
            self.source_store.fetch_to_local(job.source_path, work.source_path)

            self._stage(job, JobStage.TRANSCODING)
            self.transcoder.transcode(work.source_path, work.root)

            self._stage(job, JobStage.UPLOADING)
            return self._upload(job, work)

    def _upload(self, job: TranscodeJobMessage, work: WorkingArtifactSet) -> list[str]:
        self.output_store.ensure_bucket()
        keys = []
        for path in work.outputs():
            key = output_key(job.video_id, path.name)
            self.output_store.put_local(path, key, content_type_for(path.name))
            keys.append(key)
        return keys

    def _mark_failed(self, video_id) -> None:
        try:
            self.videos.update_status(video_id, VideoStatus.FAILED)
        except InvalidStatusTransition as exc:
            # A failed re-run of an already READY video keeps serving the old output.
            logger.warning("not marking video %s FAILED: %s", video_id, exc)

    @staticmethod
    def _stage(job: TranscodeJobMessage, stage: JobStage) -> None:
        logger.info("job %s: %s", job.video_id, stage.value)
