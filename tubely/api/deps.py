from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tubely.core.auth import AuthContext, get_auth_context
from tubely.services.ingestion import IngestionPipeline
from tubely.services.thumbnails import ThumbnailPipeline
from tubely.services.video_service import VideoService


async def get_session(request: Request) -> AsyncIterator[AsyncSession]:
    session_factory = request.app.state.session_factory
    if not isinstance(session_factory, async_sessionmaker):  # pragma: no cover - misconfigured app
        raise RuntimeError("session_factory_not_configured")
    async with session_factory() as session:
        yield session


async def get_video_service(session: AsyncSession = Depends(get_session)) -> VideoService:
    return VideoService(session)


def get_video_pipeline(request: Request) -> IngestionPipeline:
    return request.app.state.video_pipeline


def get_thumbnail_pipeline(request: Request) -> ThumbnailPipeline:
    return request.app.state.thumbnail_pipeline


VideoServiceDependency = Annotated[VideoService, Depends(get_video_service)]
AuthDependency = Annotated[AuthContext, Depends(get_auth_context)]
VideoPipelineDependency = Annotated[IngestionPipeline, Depends(get_video_pipeline)]
ThumbnailPipelineDependency = Annotated[ThumbnailPipeline, Depends(get_thumbnail_pipeline)]


__all__ = [
    "get_session",
    "get_video_service",
    "get_video_pipeline",
    "get_thumbnail_pipeline",
    "VideoServiceDependency",
    "AuthDependency",
    "VideoPipelineDependency",
    "ThumbnailPipelineDependency",
]
