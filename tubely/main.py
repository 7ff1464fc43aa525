from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from tubely.api.v1 import get_api_router
from tubely.core.config import get_settings
from tubely.core.db import create_engine, create_schema, create_session_factory
from tubely.core.errors import TubelyError
from tubely.core.logging import configure_logging, get_logger, level_from_name
from tubely.services.ingestion import IngestionPipeline
from tubely.services.thumbnails import ThumbnailPipeline
from tubely.storage.object_store import get_object_store


async def handle_tubely_error(request: Request, exc: TubelyError) -> JSONResponse:
    logger = get_logger(component="api")
    logger.info("request_failed", path=request.url.path, code=exc.code, status_code=exc.status_code, error=exc.message)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message, "code": exc.code})


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(level=level_from_name(settings.log_level))
    object_store = get_object_store(settings)
    engine = create_engine(settings)
    session_factory = create_session_factory(engine)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        settings.assets_root.mkdir(parents=True, exist_ok=True)
        await create_schema(engine)
        app.state.settings = settings
        app.state.object_store = object_store
        app.state.session_factory = session_factory
        app.state.video_pipeline = IngestionPipeline(settings, object_store)
        app.state.thumbnail_pipeline = ThumbnailPipeline(settings, object_store)
        try:
            yield
        finally:
            await engine.dispose()

    app = FastAPI(
        title=settings.app_name,
        version=settings.version,
        lifespan=lifespan,
        openapi_url="/openapi.json",
        docs_url="/docs",
    )
    app.add_exception_handler(TubelyError, handle_tubely_error)
    app.include_router(get_api_router())
    return app


__all__ = ["create_app"]
