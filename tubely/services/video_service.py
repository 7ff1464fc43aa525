from __future__ import annotations

import asyncio
from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tubely.core.errors import ForbiddenError, NotFoundError
from tubely.core.logging import get_logger
from tubely.db.models import Video

from .ingestion import IngestionPipeline, UploadRequest
from .thumbnails import ThumbnailPipeline


class VideoService:
    """Video record CRUD plus the glue that runs the upload pipelines."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.logger = get_logger(component="video_service")

    async def create_video(self, *, user_id: str, title: str, description: str | None) -> Video:
        video = Video(id=uuid4().hex, user_id=user_id, title=title, description=description)
        self.session.add(video)
        await self.session.commit()
        await self.session.refresh(video)
        return video

    async def get_video(self, video_id: str) -> Video:
        video = await self.session.get(Video, video_id)
        if video is None:
            raise NotFoundError("Video not found")
        return video

    async def list_videos(self, user_id: str) -> list[Video]:
        stmt = select(Video).where(Video.user_id == user_id).order_by(Video.created_at.desc())
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_owned_video(self, video_id: str, user_id: str) -> Video:
        # Unknown and foreign videos are indistinguishable to the caller.
        video = await self.session.get(Video, video_id)
        if video is None or video.user_id != user_id:
            raise ForbiddenError("Forbidden to user")
        return video

    async def attach_video_url(self, video: Video, url: str) -> Video:
        video.video_url = url
        await self.session.commit()
        await self.session.refresh(video)
        return video

    async def attach_thumbnail_url(self, video: Video, url: str) -> Video:
        video.thumbnail_url = url
        await self.session.commit()
        await self.session.refresh(video)
        return video

    async def upload_video(self, pipeline: IngestionPipeline, request: UploadRequest) -> Video:
        """Validate, check ownership, then ingest and persist the video URL.

        Validation runs first, so a malformed upload is a 400 even when the
        video belongs to someone else.
        """
        pipeline.validate(request)
        video = await self.get_owned_video(request.video_id, request.user_id)
        self.logger.info("uploading_video", video_id=request.video_id, user_id=request.user_id)
        url = await asyncio.to_thread(pipeline.ingest, request)
        return await self.attach_video_url(video, url)

    async def upload_thumbnail(self, pipeline: ThumbnailPipeline, request: UploadRequest) -> Video:
        pipeline.validate(request)
        video = await self.get_owned_video(request.video_id, request.user_id)
        self.logger.info("uploading_thumbnail", video_id=request.video_id, user_id=request.user_id)
        url = await asyncio.to_thread(pipeline.ingest, request)
        return await self.attach_thumbnail_url(video, url)


__all__ = ["VideoService"]
