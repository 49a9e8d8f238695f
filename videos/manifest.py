"""HLS manifest rewriting for the streaming proxy.

Segment references in a stored playlist are relative file names. Every one of
them is rewritten to ``{proxy_base}/{video_id}/{segment_name}`` so players fetch
segments through the proxy instead of the output bucket. Directive lines (``#``)
and anything that is not a segment reference pass through untouched.
"""

from typing import Iterable, Iterator

from .utils import SEGMENT_SUFFIX

DIRECTIVE_PREFIX = "#"


def segment_url(proxy_base: str, video_id, segment_name: str) -> str:
    return f"{proxy_base.rstrip('/')}/{video_id}/{segment_name}"


def rewrite_line(line: str, video_id, proxy_base: str = "") -> str:
    if not line.startswith(DIRECTIVE_PREFIX) and line.endswith(SEGMENT_SUFFIX):
        return segment_url(proxy_base, video_id, line)
    return line


def _strip_eol(line: str) -> str:
    if line.endswith("\n"):
        line = line[:-1]
    if line.endswith("\r"):
        line = line[:-1]
    return line


def rewrite_lines(lines: Iterable[str], video_id, proxy_base: str = "") -> Iterator[str]:
    for line in lines:
        yield rewrite_line(_strip_eol(line), video_id, proxy_base)


def rewrite_manifest(text: str, video_id, proxy_base: str = "") -> str:
    """Rewrite a whole playlist; every output line is newline terminated."""
    lines = text.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    return "".join(f"{line}\n" for line in rewrite_lines(lines, video_id, proxy_base))
