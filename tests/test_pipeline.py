"""Job consumer state machine: success, failure paths, redelivery, cleanup."""

import json
import threading

import pytest

from videos.config import TranscoderConfig
from videos.errors import StorageUnavailable
from videos.models import Video, VideoStatus
from videos.pipeline import JobOutcome, WorkingArtifactSet
from videos.queue import TranscodeJobMessage
from videos.transcoder import Transcoder
from videos.utils import MANIFEST_CONTENT_TYPE, SEGMENT_CONTENT_TYPE

from tests.conftest import FakeTranscoder, make_delivery

pytestmark = pytest.mark.django_db


def job_body(video, file_path=None) -> bytes:
    return json.dumps({"video_id": str(video.id), "file_path": file_path or video.file_name}).encode()


def expected_keys(video, segments=3):
    return {f"{video.id}/index.m3u8"} | {f"{video.id}/segment_{i:03d}.ts" for i in range(segments)}


class TestSuccessfulJob:
    def test_marks_ready_uploads_artifacts_and_acks(self, consumer, make_video, source_store, output_store):
        video = make_video()
        source_store.objects[video.file_name] = b"raw video bytes"
        delivery = make_delivery(job_body(video))

        outcome = consumer.handle(delivery)

        assert outcome is JobOutcome.READY
        assert delivery.result == ["ack"]
        video.refresh_from_db()
        assert video.status == VideoStatus.READY
        assert set(output_store.objects) == expected_keys(video)

    def test_uploaded_content_types_follow_file_role(self, consumer, make_video, source_store, output_store):
        video = make_video()
        source_store.objects[video.file_name] = b"raw"
        consumer.handle(make_delivery(job_body(video)))

        assert output_store.content_types[f"{video.id}/index.m3u8"] == MANIFEST_CONTENT_TYPE
        assert output_store.content_types[f"{video.id}/segment_000.ts"] == SEGMENT_CONTENT_TYPE

    def test_source_file_is_never_uploaded(self, consumer, make_video, source_store, output_store):
        video = make_video()
        source_store.objects[video.file_name] = b"raw"
        consumer.handle(make_delivery(job_body(video)))

        assert not any("input" in key for key in output_store.objects)
        assert b"raw" not in output_store.objects.values()

    def test_output_bucket_is_ensured_before_upload(self, consumer, make_video, source_store, output_store):
        video = make_video()
        source_store.objects[video.file_name] = b"raw"
        consumer.handle(make_delivery(job_body(video)))
        assert output_store.ensure_calls == 1

    def test_working_directory_is_removed(self, consumer, make_video, source_store, transcoder, work_root):
        video = make_video()
        source_store.objects[video.file_name] = b"raw"
        consumer.handle(make_delivery(job_body(video)))

        (_, output_dir), = transcoder.calls
        assert not output_dir.exists()
        assert list(work_root.iterdir()) == []


class TestFailedJob:
    def test_missing_source_marks_failed_and_writes_nothing(self, consumer, make_video, output_store):
        video = make_video()
        delivery = make_delivery(job_body(video, file_path="raw/does-not-exist.mp4"))

        outcome = consumer.handle(delivery)

        assert outcome is JobOutcome.FAILED
        assert delivery.result == ["reject"]
        video.refresh_from_db()
        assert video.status == VideoStatus.FAILED
        assert output_store.objects == {}
        assert output_store.ensure_calls == 0

    def test_encoder_failure_marks_failed_and_logs_tool_output(
        self, consumer, make_video, source_store, output_store, work_root, caplog
    ):
        consumer.transcoder = FakeTranscoder(fail=True)
        video = make_video()
        source_store.objects[video.file_name] = b"not really a video"
        delivery = make_delivery(job_body(video))

        with caplog.at_level("ERROR", logger="videos"):
            outcome = consumer.handle(delivery)

        assert outcome is JobOutcome.FAILED
        assert delivery.result == ["reject"]
        video.refresh_from_db()
        assert video.status == VideoStatus.FAILED
        assert output_store.objects == {}
        assert "moov atom not found" in caplog.text
        assert list(work_root.iterdir()) == []

    def test_encoder_that_cannot_be_launched_marks_failed(
        self, consumer, make_video, source_store, output_store, tmp_path
    ):
        ffmpeg = tmp_path / "ffmpeg"
        ffmpeg.write_text("#!/bin/sh\nexit 0\n")
        ffmpeg.chmod(0o644)
        consumer.transcoder = Transcoder(TranscoderConfig(ffmpeg_path=str(ffmpeg), timeout_seconds=5))
        video = make_video()
        source_store.objects[video.file_name] = b"raw"
        delivery = make_delivery(job_body(video))

        outcome = consumer.handle(delivery)

        assert outcome is JobOutcome.FAILED
        assert delivery.result == ["reject"]
        video.refresh_from_db()
        assert video.status == VideoStatus.FAILED
        assert output_store.objects == {}

    def test_upload_failure_marks_failed_without_rollback(self, consumer, make_video, source_store, output_store):
        output_store.fail_put_on = "index.m3u8"
        video = make_video()
        source_store.objects[video.file_name] = b"raw"
        delivery = make_delivery(job_body(video))

        outcome = consumer.handle(delivery)

        assert outcome is JobOutcome.FAILED
        assert delivery.result == ["reject"]
        video.refresh_from_db()
        assert video.status == VideoStatus.FAILED
        # segments uploaded before the failure stay; a re-run overwrites them
        assert f"{video.id}/segment_000.ts" in output_store.objects

    def test_transport_error_propagates_without_settling(self, consumer, make_video, source_store, work_root):
        def unreachable(key, local_path):
            raise StorageUnavailable("object store unreachable")

        source_store.fetch_to_local = unreachable
        video = make_video()
        delivery = make_delivery(job_body(video))

        with pytest.raises(StorageUnavailable):
            consumer.handle(delivery)

        assert delivery.result == []
        assert not delivery.settled
        video.refresh_from_db()
        assert video.status == VideoStatus.PROCESSING
        assert list(work_root.iterdir()) == []


class TestPoisonAndOrphanMessages:
    @pytest.mark.parametrize("body", [
        b"not json",
        b"\xff\xfe",
        b"",
        b"[]",
        b'{"video_id": "v1"}',
        b'{"video_id": "not-a-uuid", "file_path": "raw/v1.mp4"}',
    ])
    def test_malformed_body_is_dropped(self, consumer, body, transcoder):
        delivery = make_delivery(body)
        assert consumer.handle(delivery) is JobOutcome.DROPPED
        assert delivery.result == ["reject"]
        assert transcoder.calls == []

    def test_unknown_video_is_dropped(self, consumer, transcoder):
        body = json.dumps({"video_id": "0b7e8a4c-8a51-4a34-9d6c-3c1e2c1b9f00", "file_path": "x.mp4"})
        delivery = make_delivery(body)
        assert consumer.handle(delivery) is JobOutcome.DROPPED
        assert delivery.result == ["reject"]
        assert transcoder.calls == []

    def test_failed_video_is_not_retried(self, consumer, make_video, source_store, transcoder):
        video = make_video(status=VideoStatus.FAILED)
        source_store.objects[video.file_name] = b"raw"
        delivery = make_delivery(job_body(video))

        assert consumer.handle(delivery) is JobOutcome.SKIPPED
        assert delivery.result == ["reject"]
        assert transcoder.calls == []
        video.refresh_from_db()
        assert video.status == VideoStatus.FAILED


class TestRedelivery:
    def test_reprocessing_ready_video_overwrites_same_artifacts(self, consumer, make_video, source_store, output_store):
        video = make_video()
        source_store.objects[video.file_name] = b"raw"

        consumer.handle(make_delivery(job_body(video)))
        first = dict(output_store.objects)
        updated_at = Video.objects.get(pk=video.pk).updated_at

        second = make_delivery(job_body(video))
        assert consumer.handle(second) is JobOutcome.READY
        assert second.result == ["ack"]
        assert output_store.objects == first

        video.refresh_from_db()
        assert video.status == VideoStatus.READY
        # the repeated READY write was a no-op
        assert video.updated_at == updated_at

    def test_crash_redelivery_while_processing_completes(self, consumer, make_video, source_store):
        video = make_video(status=VideoStatus.PROCESSING)
        source_store.objects[video.file_name] = b"raw"
        assert consumer.handle(make_delivery(job_body(video))) is JobOutcome.READY
        video.refresh_from_db()
        assert video.status == VideoStatus.READY

    def test_failed_rerun_of_ready_video_keeps_it_ready(self, consumer, make_video, source_store, caplog):
        video = make_video(status=VideoStatus.READY)
        source_store.objects[video.file_name] = b"raw"
        consumer.transcoder = FakeTranscoder(fail=True)

        with caplog.at_level("WARNING", logger="videos"):
            assert consumer.handle(make_delivery(job_body(video))) is JobOutcome.FAILED

        video.refresh_from_db()
        assert video.status == VideoStatus.READY
        assert "not marking video" in caplog.text


class TestWorkingArtifactSet:
    def test_outputs_exclude_source_and_put_manifest_last(self, tmp_path):
        job = TranscodeJobMessage(video_id="v1", source_path="raw/v1.mov")
        work = WorkingArtifactSet.for_job(tmp_path, job)
        work.source_path.write_bytes(b"raw")
        for name in ("index.m3u8", "segment_001.ts", "segment_000.ts"):
            (tmp_path / name).write_bytes(b"x")

        assert work.source_path.name == "input.mov"
        assert [p.name for p in work.outputs()] == ["segment_000.ts", "segment_001.ts", "index.m3u8"]


class TestConsumeLoop:
    def test_run_processes_published_job_end_to_end(self, consumer, memory_queue, make_video, source_store, output_store):
        video = make_video()
        source_store.objects[video.file_name] = b"raw"
        memory_queue.publish(TranscodeJobMessage(video_id=str(video.id), source_path=video.file_name))

        handled = consumer.run(threading.Event(), max_jobs=1)

        assert handled == 1
        video.refresh_from_db()
        assert video.status == VideoStatus.READY
        assert set(output_store.objects) == expected_keys(video)

    def test_run_returns_when_stop_is_set(self, consumer):
        stop = threading.Event()
        stop.set()
        assert consumer.run(stop) == 0
