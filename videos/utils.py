import mimetypes

MANIFEST_NAME = "index.m3u8"
MANIFEST_SUFFIX = ".m3u8"
SEGMENT_SUFFIX = ".ts"
SEGMENT_PATTERN = "segment_%03d.ts"

MANIFEST_CONTENT_TYPE = "application/x-mpegURL"
SEGMENT_CONTENT_TYPE = "video/MP2T"
BINARY_CONTENT_TYPE = "application/octet-stream"


def content_type_for(file_name: str) -> str:
    """Content-Type from the file's role in the HLS output, never from its bytes."""
    name = file_name.lower()
    if name.endswith(MANIFEST_SUFFIX):
        return MANIFEST_CONTENT_TYPE
    if name.endswith(SEGMENT_SUFFIX):
        return SEGMENT_CONTENT_TYPE
    return BINARY_CONTENT_TYPE


def output_key(video_id, file_name: str) -> str:
    return f"{video_id}/{file_name}"


def guess_kind(path: str) -> str:
    """Return 'image' | 'video' | 'other' based on mimetype/extension."""
    mime, _ = mimetypes.guess_type(path)
    if not mime:
        return "other"
    if mime.startswith("image/"):
        return "image"
    if mime.startswith("video/"):
        return "video"
    return "other"
