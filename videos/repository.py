"""Metadata store adapter for video records."""

import logging
import uuid

from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import F

from .errors import VideoNotFound
from .lifecycle import ensure_transition, is_noop
from .models import Video, VideoStatus

logger = logging.getLogger(__name__)


def _parse_id(video_id) -> uuid.UUID:
    if isinstance(video_id, uuid.UUID):
        return video_id
    try:
        return uuid.UUID(str(video_id))
    except (TypeError, ValueError):
        raise VideoNotFound(video_id)


class VideoRepository:
    """FindByID / Create / Update(status) over the Django ORM.

    ``update_status`` is the only write path for ``Video.status`` and validates
    every transition under a row lock.
    """

    def find_by_id(self, video_id) -> Video:
        pk = _parse_id(video_id)
        try:
            return Video.objects.get(pk=pk)
        except (Video.DoesNotExist, ValidationError):
            raise VideoNotFound(video_id)

    def create(self, *, owner, title: str, description: str = "", file_extension: str) -> Video:
        video_id = uuid.uuid4()
        ext = file_extension.lstrip(".").lower()
        return Video.objects.create(
            id=video_id,
            owner=owner,
            title=title,
            description=description,
            file_name=f"{video_id}.{ext}",
            status=VideoStatus.PENDING,
        )

    @transaction.atomic
    def update_status(self, video_id, status: VideoStatus) -> bool:
        """Move a video to ``status``. Returns False when it already had it."""
        pk = _parse_id(video_id)
        try:
            video = Video.objects.select_for_update().get(pk=pk)
        except Video.DoesNotExist:
            raise VideoNotFound(video_id)

        if is_noop(video.status, status):
            return False
        ensure_transition(video.status, status)

        logger.info("video %s status %s -> %s", pk, video.status, status)
        video.status = status
        video.save(update_fields=["status", "updated_at"])
        return True

    def increment_views(self, video_id) -> None:
        Video.objects.filter(pk=_parse_id(video_id)).update(views=F("views") + 1)
