import logging

from django.http import HttpResponse, StreamingHttpResponse
from django.utils.cache import patch_cache_control
from rest_framework import status, views
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response

from . import factories, services
from .config import StreamConfig
from .errors import (
    ObjectNotFound,
    QueueUnavailable,
    SourceNotUploaded,
    StorageError,
    StorageUnavailable,
    VideoNotFound,
)
from .manifest import rewrite_manifest
from .repository import VideoRepository
from .serializers import (
    CreateVideoSerializer,
    StreamInfoSerializer,
    UploadSessionSerializer,
    VideoSerializer,
)
from .utils import (
    MANIFEST_CONTENT_TYPE,
    MANIFEST_NAME,
    MANIFEST_SUFFIX,
    SEGMENT_SUFFIX,
    content_type_for,
    output_key,
)

logger = logging.getLogger(__name__)


def _detail(message: str, code: int) -> Response:
    return Response({"detail": message}, status=code)


class StreamView(views.APIView):
    """
    Read path for transcoded videos:
      GET /stream/<id>                 -> rewritten manifest
      GET /stream/<id>?info=true       -> metadata + rewritten manifest as JSON
      GET /stream/<id>/<file>          -> manifest (rewritten) or raw segment bytes
    Only READY videos are ever served.
    """
    permission_classes = [AllowAny]
    authentication_classes = []

    def get(self, request, video_id="", file_name=""):
        if not video_id or "/" in file_name or file_name.startswith("."):
            return _detail("Invalid path", status.HTTP_400_BAD_REQUEST)

        videos = VideoRepository()
        try:
            video = videos.find_by_id(video_id)
        except VideoNotFound:
            return _detail("Video not found", status.HTTP_404_NOT_FOUND)
        if not video.is_ready:
            return _detail("Video not ready", status.HTTP_503_SERVICE_UNAVAILABLE)

        cfg = StreamConfig.from_settings()
        want_info = not file_name and request.query_params.get("info") == "true"
        name = file_name or MANIFEST_NAME
        key = output_key(video.id, MANIFEST_NAME if want_info else name)

        try:
            obj = factories.build_output_store().open_stream(key)
            text = obj.read_text() if want_info or name.endswith(MANIFEST_SUFFIX) else None
        except ObjectNotFound:
            # Status store says READY but the artifact is gone; needs an operator.
            logger.error("video %s is READY but object %s is missing from the output bucket", video.id, key)
            return _detail("Video not found", status.HTTP_404_NOT_FOUND)
        except StorageUnavailable as exc:
            logger.error("object store unavailable while serving %s: %s", key, exc)
            return _detail("Video not ready", status.HTTP_503_SERVICE_UNAVAILABLE)
        except StorageError as exc:
            logger.error("object store rejected read of %s: %s", key, exc)
            return _detail("Video not found", status.HTTP_404_NOT_FOUND)

        if want_info:
            return self._info(video, text, cfg)
        if text is not None:
            videos.increment_views(video.id)
            return self._manifest(video, text, cfg)
        return self._file(name, obj, cfg)

    def _info(self, video, text: str, cfg: StreamConfig) -> Response:
        data = StreamInfoSerializer({
            "video_id": video.id,
            "title": video.title,
            "description": video.description,
            "status": video.status,
            "hls_url": f"{cfg.proxy_base}/{video.id}",
            "playlist": rewrite_manifest(text, video.id, cfg.proxy_base),
        }).data
        return Response(data)

    def _manifest(self, video, text: str, cfg: StreamConfig) -> HttpResponse:
        body = rewrite_manifest(text, video.id, cfg.proxy_base).encode("utf-8")
        resp = HttpResponse(body, content_type=MANIFEST_CONTENT_TYPE)
        resp["Cache-Control"] = "no-cache"
        resp["Content-Length"] = str(len(body))
        return resp

    def _file(self, name: str, obj, cfg: StreamConfig) -> StreamingHttpResponse:
        resp = StreamingHttpResponse(obj.iter_chunks(cfg.chunk_size), content_type=content_type_for(name))
        resp["Content-Length"] = str(obj.size)
        if name.endswith(SEGMENT_SUFFIX):
            patch_cache_control(resp, public=True, max_age=cfg.segment_max_age)
        return resp


class VideoCreateView(views.APIView):
    """
    Registers a video and returns a presigned PUT URL so the client can upload
    the raw file directly to the source bucket.
    """
    permission_classes = [IsAuthenticated]

    def post(self, request):
        ser = CreateVideoSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        video, signed = services.create_video(
            owner=request.user,
            source_store=factories.build_source_store(),
            **ser.validated_data,
        )
        resp = {"video_id": video.id, "upload_url": signed["url"], "headers": signed.get("headers", {})}
        return Response(UploadSessionSerializer(resp).data, status=status.HTTP_201_CREATED)


class VideoDetailView(views.APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request, video_id):
        try:
            video = services.get_owned_video(request.user, video_id)
        except VideoNotFound:
            return _detail("Not found", status.HTTP_404_NOT_FOUND)
        return Response(VideoSerializer(video).data)


class CompleteUploadView(views.APIView):
    """Queues the transcode once the client reports its upload finished."""
    permission_classes = [IsAuthenticated]

    def post(self, request, video_id):
        queue = factories.build_job_queue()
        try:
            video = services.complete_upload(
                request.user,
                video_id,
                source_store=factories.build_source_store(),
                queue=queue,
            )
        except VideoNotFound:
            return _detail("Not found", status.HTTP_404_NOT_FOUND)
        except SourceNotUploaded:
            return _detail("Video file not found in storage; upload it first", status.HTTP_409_CONFLICT)
        except (QueueUnavailable, StorageUnavailable) as exc:
            logger.error("cannot queue video %s: %s", video_id, exc)
            return _detail("Service unavailable", status.HTTP_503_SERVICE_UNAVAILABLE)
        finally:
            queue.close()
        return Response({"video_id": str(video.id), "status": video.status}, status=status.HTTP_202_ACCEPTED)
