from rest_framework import serializers

from .models import Video
from .utils import guess_kind


class VideoSerializer(serializers.ModelSerializer):
    class Meta:
        model = Video
        fields = [
            "id",
            "title",
            "description",
            "status",
            "views",
            "created_at",
            "updated_at",
        ]


class CreateVideoSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=200)
    description = serializers.CharField(max_length=2000, required=False, allow_blank=True, default="")
    file_extension = serializers.RegexField(r"^\.?[A-Za-z0-9]{1,10}$")

    def validate_file_extension(self, value):
        """Only video containers are accepted as transcode sources."""
        ext = value.lstrip(".").lower()
        if guess_kind(f"upload.{ext}") != "video":
            raise serializers.ValidationError(f"Unsupported video file extension: {ext}")
        return ext


class UploadSessionSerializer(serializers.Serializer):
    video_id = serializers.UUIDField()
    upload_url = serializers.URLField()
    headers = serializers.DictField(child=serializers.CharField(), required=False)


class TranscodeJobMessageSerializer(serializers.Serializer):
    """Wire format of a queued transcode job."""

    video_id = serializers.UUIDField()
    file_path = serializers.CharField(max_length=512)


class StreamInfoSerializer(serializers.Serializer):
    video_id = serializers.UUIDField()
    title = serializers.CharField()
    description = serializers.CharField(allow_blank=True)
    status = serializers.CharField()
    hls_url = serializers.CharField()
    playlist = serializers.CharField(allow_blank=True, trim_whitespace=False)
