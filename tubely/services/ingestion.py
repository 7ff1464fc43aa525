from __future__ import annotations

import enum
from contextlib import ExitStack
from dataclasses import dataclass

from tubely.core.config import Settings
from tubely.core.errors import ValidationError
from tubely.core.logging import get_logger
from tubely.media.probe import MediaProbe, OrientationClass
from tubely.media.temp_files import TempFileManager, random_token
from tubely.media.transform import MediaTransformer
from tubely.storage.object_store import ObjectStore

VIDEO_MEDIA_TYPE = "video/mp4"
MAX_VIDEO_UPLOAD_BYTES = 1 << 30


class PipelineState(str, enum.Enum):
    received = "received"
    validated = "validated"
    staged = "staged"
    probed = "probed"
    transformed = "transformed"
    uploaded = "uploaded"
    finalized = "finalized"
    failed = "failed"


@dataclass(slots=True)
class UploadRequest:
    """A single upload handed over by the HTTP layer; never persisted."""

    video_id: str
    user_id: str
    data: bytes
    media_type: str


def extension_for(media_type: str) -> str:
    """Return the subtype of ``media_type`` (``video/mp4`` -> ``mp4``)."""
    _, _, subtype = media_type.partition("/")
    if not subtype:
        raise ValidationError(f"Invalid media type: {media_type!r}")
    return subtype


def compose_storage_key(orientation: OrientationClass, extension: str, token: str | None = None) -> str:
    return f"{orientation.value}/{token or random_token()}.{extension}"


class IngestionPipeline:
    """Validate, stage, probe, fast-start and upload one video.

    Scratch files are held in scopes that delete them on every exit path, so a
    failure at any step leaves nothing behind under the assets root.
    """

    def __init__(
        self,
        settings: Settings,
        object_store: ObjectStore,
        *,
        temp_files: TempFileManager | None = None,
        probe: MediaProbe | None = None,
        transformer: MediaTransformer | None = None,
        max_upload_bytes: int = MAX_VIDEO_UPLOAD_BYTES,
    ):
        self.settings = settings
        self.object_store = object_store
        self.temp_files = temp_files or TempFileManager(settings.assets_root)
        self.probe = probe or MediaProbe(settings.ffprobe_bin, timeout_s=settings.subprocess_timeout_s)
        self.transformer = transformer or MediaTransformer(settings.ffmpeg_bin, timeout_s=settings.subprocess_timeout_s)
        self.max_upload_bytes = max_upload_bytes
        self.logger = get_logger(component="ingestion_pipeline")

    def validate(self, request: UploadRequest) -> None:
        if request.media_type != VIDEO_MEDIA_TYPE:
            raise ValidationError("Invalid file type")
        if len(request.data) > self.max_upload_bytes:
            raise ValidationError(f"Video exceeds {self.max_upload_bytes} bytes")

    def ingest(self, request: UploadRequest) -> str:
        """Run the pipeline and return the durable URL of the processed video."""
        logger = self.logger.bind(video_id=request.video_id, user_id=request.user_id)
        state = PipelineState.received
        try:
            self.validate(request)
            state = self._advance(logger, PipelineState.validated, size_bytes=len(request.data))
            extension = extension_for(request.media_type)

            with ExitStack() as stack:
                with self.temp_files.staged(extension, request.data) as staged_path:
                    state = self._advance(logger, PipelineState.staged, path=str(staged_path))
                    orientation = self.probe.classify(staged_path)
                    state = self._advance(logger, PipelineState.probed, orientation=orientation.value)
                    processed_path = stack.enter_context(
                        self.temp_files.owned(self.transformer.output_path_for(staged_path))
                    )
                    self.transformer.fast_start_rewrite(staged_path)
                state = self._advance(logger, PipelineState.transformed, path=str(processed_path))

                key = compose_storage_key(orientation, extension)
                reference = self.object_store.upload(processed_path, key, request.media_type)
                state = self._advance(logger, PipelineState.uploaded, key=key)

            self._advance(logger, PipelineState.finalized, url=reference)
            return reference
        except Exception as exc:
            logger.warning(
                "video_ingest_failed",
                state=PipelineState.failed.value,
                failed_after=state.value,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            raise

    @staticmethod
    def _advance(logger, state: PipelineState, **context) -> PipelineState:
        logger.info("video_ingest_state", state=state.value, **context)
        return state


__all__ = [
    "IngestionPipeline",
    "PipelineState",
    "UploadRequest",
    "compose_storage_key",
    "extension_for",
    "VIDEO_MEDIA_TYPE",
    "MAX_VIDEO_UPLOAD_BYTES",
]
