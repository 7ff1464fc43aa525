from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, File, UploadFile, status

from tubely.api import deps
from tubely.core.errors import ValidationError
from tubely.services.ingestion import UploadRequest

from . import schemas


router = APIRouter(prefix="/videos", tags=["videos"])


async def _read_upload(
    upload: Optional[UploadFile], *, video_id: str, user_id: str, label: str, max_bytes: int
) -> UploadRequest:
    if upload is None:
        raise ValidationError(f"{label} file missing")
    # The multipart parser has already spooled the part to disk; reject it
    # before pulling it into memory.
    if upload.size is not None and upload.size > max_bytes:
        await upload.close()
        raise ValidationError(f"{label} exceeds {max_bytes} bytes")
    try:
        data = await upload.read()
    finally:
        await upload.close()
    return UploadRequest(
        video_id=video_id,
        user_id=user_id,
        data=data,
        media_type=upload.content_type or "",
    )


@router.post("", response_model=schemas.VideoResponse, status_code=status.HTTP_201_CREATED)
async def create_video(
    payload: schemas.VideoCreateRequest,
    service: deps.VideoServiceDependency,
    context: deps.AuthDependency,
) -> schemas.VideoResponse:
    video = await service.create_video(user_id=context.user_id, title=payload.title, description=payload.description)
    return schemas.VideoResponse.model_validate(video)


@router.get("", response_model=List[schemas.VideoResponse])
async def list_videos(
    service: deps.VideoServiceDependency,
    context: deps.AuthDependency,
) -> List[schemas.VideoResponse]:
    videos = await service.list_videos(context.user_id)
    return [schemas.VideoResponse.model_validate(video) for video in videos]


@router.get("/{video_id}", response_model=schemas.VideoResponse)
async def get_video(
    video_id: str,
    service: deps.VideoServiceDependency,
    context: deps.AuthDependency,
) -> schemas.VideoResponse:
    video = await service.get_video(video_id)
    return schemas.VideoResponse.model_validate(video)


@router.post("/{video_id}/video", response_model=schemas.VideoResponse)
async def upload_video(
    video_id: str,
    service: deps.VideoServiceDependency,
    context: deps.AuthDependency,
    pipeline: deps.VideoPipelineDependency,
    video: Optional[UploadFile] = File(default=None),
) -> schemas.VideoResponse:
    request = await _read_upload(
        video, video_id=video_id, user_id=context.user_id, label="Video", max_bytes=pipeline.max_upload_bytes
    )
    record = await service.upload_video(pipeline, request)
    return schemas.VideoResponse.model_validate(record)


@router.post("/{video_id}/thumbnail", response_model=schemas.VideoResponse)
async def upload_thumbnail(
    video_id: str,
    service: deps.VideoServiceDependency,
    context: deps.AuthDependency,
    pipeline: deps.ThumbnailPipelineDependency,
    thumbnail: Optional[UploadFile] = File(default=None),
) -> schemas.VideoResponse:
    request = await _read_upload(
        thumbnail, video_id=video_id, user_id=context.user_id, label="Thumbnail", max_bytes=pipeline.max_upload_bytes
    )
    record = await service.upload_thumbnail(pipeline, request)
    return schemas.VideoResponse.model_validate(record)


__all__ = ["router"]
