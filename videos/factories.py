"""Build pipeline components from Django settings."""

from .config import QueueConfig, StorageConfig, TranscoderConfig, WorkerConfig
from .pipeline import TranscodeJobConsumer
from .queue import JobQueue
from .repository import VideoRepository
from .storage import ObjectStore
from .transcoder import Transcoder


def build_source_store() -> ObjectStore:
    return ObjectStore.source(StorageConfig.from_settings())


def build_output_store() -> ObjectStore:
    return ObjectStore.output(StorageConfig.from_settings())


def build_job_queue() -> JobQueue:
    return JobQueue(QueueConfig.from_settings())


def build_consumer() -> TranscodeJobConsumer:
    storage = StorageConfig.from_settings()
    return TranscodeJobConsumer(
        queue=build_job_queue(),
        source_store=ObjectStore.source(storage),
        output_store=ObjectStore.output(storage),
        transcoder=Transcoder(TranscoderConfig.from_settings()),
        videos=VideoRepository(),
        config=WorkerConfig.from_settings(),
    )
