from __future__ import annotations

import base64

from tubely.core.config import Settings
from tubely.core.errors import ValidationError
from tubely.core.logging import get_logger
from tubely.media.temp_files import TempFileManager, random_token
from tubely.storage.object_store import ObjectStore

from .ingestion import UploadRequest, extension_for

THUMBNAIL_MEDIA_TYPES = frozenset({"image/jpeg", "image/png"})
MAX_THUMBNAIL_UPLOAD_BYTES = 10 << 20


def data_url(media_type: str, data: bytes) -> str:
    return f"data:{media_type};base64,{base64.b64encode(data).decode('ascii')}"


class ThumbnailPipeline:
    """Store a thumbnail either inline as a data URL or in the object store."""

    def __init__(
        self,
        settings: Settings,
        object_store: ObjectStore,
        *,
        temp_files: TempFileManager | None = None,
        max_upload_bytes: int = MAX_THUMBNAIL_UPLOAD_BYTES,
    ):
        self.mode = settings.thumbnail_mode
        self.object_store = object_store
        self.temp_files = temp_files or TempFileManager(settings.assets_root)
        self.max_upload_bytes = max_upload_bytes
        self.logger = get_logger(component="thumbnail_pipeline")

    def validate(self, request: UploadRequest) -> None:
        if request.media_type not in THUMBNAIL_MEDIA_TYPES:
            raise ValidationError("Invalid file type")
        if len(request.data) > self.max_upload_bytes:
            raise ValidationError(f"Thumbnail exceeds {self.max_upload_bytes} bytes")

    def ingest(self, request: UploadRequest) -> str:
        self.validate(request)
        logger = self.logger.bind(video_id=request.video_id, user_id=request.user_id, mode=self.mode)
        if self.mode == "inline":
            logger.info("thumbnail_inlined", size_bytes=len(request.data))
            return data_url(request.media_type, request.data)

        extension = extension_for(request.media_type)
        key = f"thumbnails/{random_token()}.{extension}"
        with self.temp_files.staged(extension, request.data) as staged_path:
            reference = self.object_store.upload(staged_path, key, request.media_type)
        logger.info("thumbnail_stored", key=key)
        return reference


__all__ = ["ThumbnailPipeline", "THUMBNAIL_MEDIA_TYPES", "MAX_THUMBNAIL_UPLOAD_BYTES", "data_url"]
