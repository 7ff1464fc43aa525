"""Error taxonomy shared by the pipelines and the HTTP layer."""

from __future__ import annotations


class TubelyError(Exception):
    """Base class for every error surfaced to API callers."""

    code = "tubely_error"
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(TubelyError):
    """Missing file, disallowed media type or oversize payload."""

    code = "validation_failed"


class ForbiddenError(TubelyError):
    code = "forbidden"
    status_code = 403


class AuthError(TubelyError):
    code = "unauthorized"
    status_code = 401


class NotFoundError(TubelyError):
    code = "not_found"
    status_code = 404


class ProbeError(TubelyError):
    """ffprobe failed or produced no usable width/height."""

    code = "probe_failed"


class TransformError(TubelyError):
    """ffmpeg could not produce the fast-start rewrite."""

    code = "transform_failed"


class StorageError(TubelyError):
    """The object store rejected or failed the upload."""

    code = "storage_failed"


__all__ = [
    "TubelyError",
    "ValidationError",
    "ForbiddenError",
    "AuthError",
    "NotFoundError",
    "ProbeError",
    "TransformError",
    "StorageError",
]
