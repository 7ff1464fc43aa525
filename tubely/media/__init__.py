"""Local media handling: scratch files, ffprobe classification and ffmpeg rewrites."""

from tubely.media.probe import MediaProbe, OrientationClass, classify_dimensions
from tubely.media.temp_files import TempFileManager, random_token
from tubely.media.transform import MediaTransformer

__all__ = [
    "MediaProbe",
    "MediaTransformer",
    "OrientationClass",
    "TempFileManager",
    "classify_dimensions",
    "random_token",
]
