import uuid
from django.conf import settings
from django.db import models


class VideoStatus(models.TextChoices):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    READY = "READY"
    FAILED = "FAILED"


class Video(models.Model):
    Status = VideoStatus

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    owner = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="videos")
    title = models.CharField(max_length=200)
    description = models.TextField(max_length=2000, blank=True, default="")
    file_name = models.CharField(max_length=512)      # source object key: <id>.<ext>
    status = models.CharField(max_length=16, choices=VideoStatus.choices, default=VideoStatus.PENDING)
    views = models.PositiveBigIntegerField(default=0)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [models.Index(fields=["owner", "status"], name="video_owner_status_idx")]

    def __str__(self) -> str:
        return f"{self.title} ({self.status})"

    @property
    def is_ready(self) -> bool:
        return self.status == VideoStatus.READY
