from __future__ import annotations

import subprocess
from pathlib import Path

from tubely.core.errors import TransformError
from tubely.core.logging import get_logger

PROCESSED_SUFFIX = ".processed"


class MediaTransformer:
    """Rewrites MP4 files so the moov atom sits at the front (fast start)."""

    def __init__(self, ffmpeg_bin: str = "ffmpeg", timeout_s: float | None = None):
        self.ffmpeg_bin = ffmpeg_bin
        self.timeout_s = timeout_s
        self.logger = get_logger(component="media_transformer")

    @staticmethod
    def output_path_for(input_path: Path) -> Path:
        return input_path.with_name(input_path.name + PROCESSED_SUFFIX)

    def command(self, input_path: Path, output_path: Path) -> list[str]:
        return [
            self.ffmpeg_bin,
            "-nostdin",
            "-v",
            "error",
            "-i",
            str(input_path),
            "-movflags",
            "faststart",
            "-map_metadata",
            "0",
            "-codec",
            "copy",
            "-f",
            "mp4",
            str(output_path),
        ]

    def fast_start_rewrite(self, input_path: Path) -> Path:
        """Write the fast-start copy to ``output_path_for(input_path)``.

        The caller owns the output path, including any partial file ffmpeg
        leaves behind when this raises.
        """
        output_path = self.output_path_for(input_path)
        self.logger.info("fast_start_rewrite_started", input=str(input_path), output=str(output_path))
        try:
            proc = subprocess.run(
                self.command(input_path, output_path),
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                errors="replace",
                timeout=self.timeout_s,
            )
        except OSError as exc:
            raise TransformError(f"{self.ffmpeg_bin} is not available") from exc
        except subprocess.TimeoutExpired as exc:
            self.logger.error("ffmpeg_timeout", input=str(input_path), timeout_s=self.timeout_s)
            raise TransformError("Timed out processing video for fast start") from exc

        if proc.returncode != 0:
            self.logger.error("ffmpeg_failed", input=str(input_path), returncode=proc.returncode, stderr=proc.stderr.strip())
            raise TransformError("Could not process video for fast start")
        return output_path


__all__ = ["MediaTransformer", "PROCESSED_SUFFIX"]
