"""Pipelines and record services used by the API."""

from tubely.services.ingestion import IngestionPipeline, PipelineState, UploadRequest
from tubely.services.thumbnails import ThumbnailPipeline
from tubely.services.video_service import VideoService

__all__ = [
    "IngestionPipeline",
    "PipelineState",
    "ThumbnailPipeline",
    "UploadRequest",
    "VideoService",
]
