from __future__ import annotations

import enum
import math
import re
import subprocess
from pathlib import Path

from tubely.core.errors import ProbeError
from tubely.core.logging import get_logger

_WIDTH_RE = re.compile(r'"width": (\d+)')
_HEIGHT_RE = re.compile(r'"height": (\d+)')

LANDSCAPE_RATIO = math.floor(16 / 9)
PORTRAIT_RATIO = math.floor(9 / 16)


class OrientationClass(str, enum.Enum):
    landscape = "landscape"
    portrait = "portrait"
    other = "other"


def classify_dimensions(width: int, height: int) -> OrientationClass:
    """Bucket a frame size by its floored width/height ratio.

    Only the integer part of the ratio is compared, so square and 4:3 frames
    land in ``landscape`` alongside 16:9.
    """
    if height == 0:
        return OrientationClass.other
    ratio = width // height
    if ratio == LANDSCAPE_RATIO:
        return OrientationClass.landscape
    if ratio == PORTRAIT_RATIO:
        return OrientationClass.portrait
    return OrientationClass.other


def parse_dimensions(output: str) -> tuple[int, int]:
    match_w = _WIDTH_RE.search(output)
    match_h = _HEIGHT_RE.search(output)
    if not match_w or not match_h:
        raise ProbeError("Could not extract video metadata.")
    return int(match_w.group(1)), int(match_h.group(1))


class MediaProbe:
    """Reads the first video stream's frame size with ffprobe."""

    def __init__(self, ffprobe_bin: str = "ffprobe", timeout_s: float | None = None):
        self.ffprobe_bin = ffprobe_bin
        self.timeout_s = timeout_s
        self.logger = get_logger(component="media_probe")

    def command(self, path: Path) -> list[str]:
        return [
            self.ffprobe_bin,
            "-v",
            "error",
            "-select_streams",
            "v:0",
            "-show_entries",
            "stream=width,height",
            "-of",
            "json",
            str(path),
        ]

    def dimensions(self, path: Path) -> tuple[int, int]:
        command = self.command(path)
        try:
            proc = subprocess.run(
                command,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                errors="replace",
                timeout=self.timeout_s,
            )
        except OSError as exc:
            raise ProbeError(f"{self.ffprobe_bin} is not available") from exc
        except subprocess.TimeoutExpired as exc:
            self.logger.error("ffprobe_timeout", path=str(path), timeout_s=self.timeout_s)
            raise ProbeError(f"Timed out probing file: {path.name}") from exc

        if proc.returncode != 0:
            self.logger.error("ffprobe_failed", path=str(path), returncode=proc.returncode, stderr=proc.stderr.strip())
            raise ProbeError(f"Could not parse file: {path.name}")

        self.logger.debug("ffprobe_output", path=str(path), stdout=proc.stdout)
        return parse_dimensions(proc.stdout)

    def classify(self, path: Path) -> OrientationClass:
        width, height = self.dimensions(path)
        orientation = classify_dimensions(width, height)
        self.logger.info("media_classified", path=str(path), width=width, height=height, orientation=orientation.value)
        return orientation


__all__ = ["MediaProbe", "OrientationClass", "classify_dimensions", "parse_dimensions"]
