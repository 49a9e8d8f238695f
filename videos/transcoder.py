"""ffmpeg HLS segmenter."""

import logging
import subprocess
from pathlib import Path

from .config import TranscoderConfig
from .errors import TranscodeError
from .utils import MANIFEST_NAME, SEGMENT_PATTERN

logger = logging.getLogger(__name__)

# Tool output can be megabytes for long inputs; keep the tail, which holds the error.
MAX_DIAGNOSTIC_CHARS = 4000


class Transcoder:
    """Re-encode a local file into a single-rendition VOD HLS playlist.

    Produces ``index.m3u8`` plus ``segment_000.ts``, ``segment_001.ts``, ... in
    the output directory. Any non-zero exit is a hard failure; nothing is
    salvaged from a failed run.
    """

    def __init__(self, config: TranscoderConfig) -> None:
        self.config = config

    def build_command(self, source_path, output_dir) -> list[str]:
        output_dir = Path(output_dir)
        cfg = self.config
        return [
            cfg.ffmpeg_path,
            "-y",
            "-i", str(source_path),
            "-codec:v", cfg.video_codec,
            "-preset", cfg.preset,
            "-crf", str(cfg.crf),
            "-codec:a", cfg.audio_codec,
            "-hls_time", str(cfg.segment_seconds),
            "-hls_playlist_type", "vod",
            "-hls_segment_filename", str(output_dir / SEGMENT_PATTERN),
            "-start_number", "0",
            str(output_dir / MANIFEST_NAME),
        ]

    def transcode(self, source_path, output_dir) -> Path:
        """Run the encoder; return the manifest path or raise TranscodeError."""
        cmd = self.build_command(source_path, output_dir)
        logger.info("transcoding %s", source_path)
        try:
            subprocess.run(
                cmd,
                check=True,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                timeout=self.config.timeout_seconds,
            )
        except subprocess.CalledProcessError as e:
            out = e.output.decode("utf-8", errors="ignore") if e.output else ""
            raise TranscodeError(
                f"ffmpeg exited with status {e.returncode}",
                returncode=e.returncode,
                output=out[-MAX_DIAGNOSTIC_CHARS:],
            ) from e
        except subprocess.TimeoutExpired as e:
            out = e.output.decode("utf-8", errors="ignore") if e.output else ""
            raise TranscodeError(
                f"ffmpeg timed out after {self.config.timeout_seconds}s",
                output=out[-MAX_DIAGNOSTIC_CHARS:],
            ) from e
        except FileNotFoundError as e:
            raise TranscodeError(f"encoder not found: {self.config.ffmpeg_path}") from e
        except OSError as e:
            raise TranscodeError(
                f"cannot launch encoder {self.config.ffmpeg_path}: [Errno {e.errno}] {e.strerror}"
            ) from e

        manifest = Path(output_dir) / MANIFEST_NAME
        if not manifest.exists():
            raise TranscodeError("ffmpeg exited cleanly but wrote no manifest", returncode=0)
        return manifest
