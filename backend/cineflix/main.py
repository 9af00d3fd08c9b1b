from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from cineflix.api import collections
from cineflix.core.config import Settings, settings as default_settings
from cineflix.services.collections_service import CollectionsService
from cineflix.utils.logger import configure_logging


def create_app(settings: Settings = default_settings, service: Optional[CollectionsService] = None) -> FastAPI:
    configure_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.collections_service = service or CollectionsService.from_settings(settings)
        try:
            yield
        finally:
            await app.state.collections_service.aclose()

    app = FastAPI(title="Cineflix Collections API", version="1.0.0", lifespan=lifespan)

    # Add GZip compression middleware for collection payloads
    app.add_middleware(GZipMiddleware, minimum_size=1000)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(collections.router, prefix="/api/collections", tags=["Collections"])

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app


app = create_app()
