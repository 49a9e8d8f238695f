"""Shared fixtures: in-memory object stores, a fake encoder, queue deliveries."""

import io
import uuid
from pathlib import Path

import pytest

from videos.config import QueueConfig, WorkerConfig
from videos.errors import ObjectNotFound, StorageError, TranscodeError
from videos.models import Video, VideoStatus
from videos.pipeline import TranscodeJobConsumer
from videos.queue import Delivery, JobQueue
from videos.storage import StoredObject

SAMPLE_MANIFEST = (
    "#EXTM3U\n"
    "#EXT-X-VERSION:3\n"
    "#EXT-X-TARGETDURATION:10\n"
    "#EXT-X-MEDIA-SEQUENCE:0\n"
    "#EXT-X-PLAYLIST-TYPE:VOD\n"
    "#EXTINF:10.000000,\n"
    "segment_000.ts\n"
    "#EXTINF:10.000000,\n"
    "segment_001.ts\n"
    "#EXTINF:10.000000,\n"
    "segment_002.ts\n"
    "#EXT-X-ENDLIST\n"
)


class FakeObjectStore:
    """Dict-backed stand-in for ObjectStore with the same surface."""

    def __init__(self, bucket, objects=None, *, fail_put_on=None):
        self.bucket = bucket
        self.objects = dict(objects or {})
        self.content_types = {}
        self.ensure_calls = 0
        self.fail_put_on = fail_put_on

    def fetch_to_local(self, key, local_path):
        if key not in self.objects:
            raise ObjectNotFound(self.bucket, key)
        Path(local_path).write_bytes(self.objects[key])
        return Path(local_path)

    def put_local(self, local_path, key, content_type=None):
        if self.fail_put_on and key.endswith(self.fail_put_on):
            raise StorageError(f"{self.bucket}: upload of {key} rejected")
        self.objects[key] = Path(local_path).read_bytes()
        self.content_types[key] = content_type

    def ensure_bucket(self):
        self.ensure_calls += 1

    def open_stream(self, key):
        if key not in self.objects:
            raise ObjectNotFound(self.bucket, key)
        data = self.objects[key]
        return StoredObject(body=io.BytesIO(data), size=len(data), content_type=self.content_types.get(key))

    def stat_object(self, key):
        return key in self.objects

    def presigned_put(self, key, content_type=None, expires=None):
        return {"url": f"http://minio.test/{self.bucket}/{key}?X-Amz-Signature=abc", "headers": {}}


class FakeTranscoder:
    """Writes a three-segment playlist like a 30 second ffmpeg run would."""

    def __init__(self, *, fail=False, segments=3):
        self.fail = fail
        self.segments = segments
        self.calls = []

    def transcode(self, source_path, output_dir):
        self.calls.append((Path(source_path), Path(output_dir)))
        assert Path(source_path).exists()
        if self.fail:
            raise TranscodeError("ffmpeg exited with status 1", returncode=1, output="moov atom not found")
        out = Path(output_dir)
        lines = ["#EXTM3U", "#EXT-X-VERSION:3", "#EXT-X-TARGETDURATION:10", "#EXT-X-PLAYLIST-TYPE:VOD"]
        for i in range(self.segments):
            name = f"segment_{i:03d}.ts"
            (out / name).write_bytes(b"\x47" + bytes([i]) * 187)
            lines += ["#EXTINF:10.000000,", name]
        lines.append("#EXT-X-ENDLIST")
        manifest = out / "index.m3u8"
        manifest.write_text("\n".join(lines) + "\n")
        return manifest


def make_delivery(body):
    """Delivery whose settlement is recorded in ``delivery.result``."""
    result = []
    delivery = Delivery(
        body=body,
        _ack=lambda: result.append("ack"),
        _nack=lambda requeue: result.append("requeue" if requeue else "reject"),
    )
    delivery.result = result
    return delivery


@pytest.fixture
def user(django_user_model):
    return django_user_model.objects.create_user(username="alice", password="pw-alice")


@pytest.fixture
def other_user(django_user_model):
    return django_user_model.objects.create_user(username="bob", password="pw-bob")


@pytest.fixture
def make_video(user):
    def _make(status=VideoStatus.PENDING, **kwargs):
        video_id = kwargs.pop("id", uuid.uuid4())
        defaults = {
            "owner": user,
            "title": "Test clip",
            "description": "thirty seconds of test pattern",
            "file_name": f"{video_id}.mp4",
            "status": status,
        }
        defaults.update(kwargs)
        return Video.objects.create(id=video_id, **defaults)
    return _make


@pytest.fixture
def source_store():
    return FakeObjectStore("gostream")


@pytest.fixture
def output_store():
    return FakeObjectStore("hls-videos")


@pytest.fixture
def transcoder():
    return FakeTranscoder()


@pytest.fixture
def work_root(tmp_path):
    root = tmp_path / "work"
    root.mkdir()
    return root


@pytest.fixture
def memory_queue():
    queue = JobQueue(QueueConfig(broker_url="memory://", queue_name=f"test-{uuid.uuid4().hex}", poll_seconds=0.05))
    yield queue
    queue.close()


@pytest.fixture
def consumer(memory_queue, source_store, output_store, transcoder, work_root):
    return TranscodeJobConsumer(
        queue=memory_queue,
        source_store=source_store,
        output_store=output_store,
        transcoder=transcoder,
        config=WorkerConfig(work_root=str(work_root)),
    )
