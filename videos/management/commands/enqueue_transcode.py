from django.core.management.base import BaseCommand, CommandError

from videos import factories
from videos.errors import QueueUnavailable
from videos.queue import TranscodeJobMessage


class Command(BaseCommand):
    help = "Publish a transcode job by hand, e.g. to re-drive a video whose message was lost."

    def add_arguments(self, parser):
        parser.add_argument("video_id")
        parser.add_argument("file_path", help="Source object key in the source bucket.")

    def handle(self, *args, video_id, file_path, **options):
        queue = factories.build_job_queue()
        try:
            queue.publish(TranscodeJobMessage(video_id=video_id, source_path=file_path))
        except QueueUnavailable as exc:
            raise CommandError(str(exc))
        finally:
            queue.close()
        self.stdout.write(f"queued transcode of {file_path} for video {video_id}")
