"""Upload hand-off use cases: register a video, then queue it once uploaded."""

import logging

from .errors import SourceNotUploaded, VideoNotFound
from .models import Video
from .queue import JobQueue, TranscodeJobMessage
from .repository import VideoRepository
from .storage import ObjectStore

logger = logging.getLogger(__name__)


def create_video(*, owner, title: str, description: str, file_extension: str,
                 source_store: ObjectStore, videos: VideoRepository | None = None) -> tuple[Video, dict]:
    """Create a PENDING video and a presigned PUT link for its raw upload."""
    videos = videos or VideoRepository()
    video = videos.create(owner=owner, title=title, description=description, file_extension=file_extension)
    signed = source_store.presigned_put(video.file_name)
    return video, signed


def get_owned_video(user, video_id, *, videos: VideoRepository | None = None) -> Video:
    """Videos owned by someone else are reported exactly like unknown ones."""
    videos = videos or VideoRepository()
    video = videos.find_by_id(video_id)
    if video.owner_id != user.pk:
        raise VideoNotFound(video_id)
    return video


def complete_upload(user, video_id, *, source_store: ObjectStore, queue: JobQueue,
                    videos: VideoRepository | None = None) -> Video:
    """Hand a finished upload to the transcode queue.

    Status is left PENDING; only the job consumer moves it forward.
    """
    video = get_owned_video(user, video_id, videos=videos)
    if not source_store.stat_object(video.file_name):
        raise SourceNotUploaded(f"video file not found in storage: {video.file_name}")
    queue.publish(TranscodeJobMessage(video_id=str(video.id), source_path=video.file_name))
    logger.info("upload of video %s complete, transcode queued", video.id)
    return video
