from django.urls import path
from .views import CompleteUploadView, StreamView, VideoCreateView, VideoDetailView

urlpatterns = [
    path("videos/", VideoCreateView.as_view(), name="video_create"),
    path("videos/<uuid:video_id>/", VideoDetailView.as_view(), name="video_detail"),
    path("videos/<uuid:video_id>/complete-upload/", CompleteUploadView.as_view(), name="video_complete_upload"),
    path("stream/", StreamView.as_view(), name="stream_root"),
    path("stream/<str:video_id>", StreamView.as_view(), name="stream_manifest"),
    path("stream/<str:video_id>/", StreamView.as_view()),
    path("stream/<str:video_id>/<path:file_name>", StreamView.as_view(), name="stream_file"),
]
