"""Video status transition rules."""

from .errors import InvalidStatusTransition
from .models import VideoStatus

TERMINAL_STATUSES: frozenset[VideoStatus] = frozenset({VideoStatus.READY, VideoStatus.FAILED})

_ALLOWED_TRANSITIONS: dict[VideoStatus, frozenset[VideoStatus]] = {
    VideoStatus.PENDING: frozenset({VideoStatus.PROCESSING}),
    VideoStatus.PROCESSING: frozenset({VideoStatus.READY, VideoStatus.FAILED}),
    VideoStatus.READY: frozenset(),
    VideoStatus.FAILED: frozenset(),
}


def allowed_next_statuses(status: VideoStatus) -> list[VideoStatus]:
    """Return deterministically ordered allowed successors for a status."""
    return sorted(_ALLOWED_TRANSITIONS.get(VideoStatus(status), frozenset()), key=lambda s: s.value)


def is_noop(current: str, new: str) -> bool:
    return VideoStatus(current) == VideoStatus(new)


def ensure_transition(current: str, new: str) -> None:
    """Raise InvalidStatusTransition unless ``current -> new`` is a lifecycle edge.

    Writing the current status again is accepted; callers treat it as a no-op.
    """
    current, new = VideoStatus(current), VideoStatus(new)
    if current == new:
        return
    if new not in _ALLOWED_TRANSITIONS[current]:
        raise InvalidStatusTransition(current.value, new.value)
