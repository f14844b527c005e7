from __future__ import annotations

import logging
from typing import Optional, Sequence

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from stagevn import __version__
from stagevn.config.feature_flags import is_enabled
from stagevn.server.core.errors import register_exception_handlers

LOGGER = logging.getLogger(__name__)


def create_app(
    *, enable_cors: bool = False, allowed_origins: Optional[Sequence[str]] = None
) -> FastAPI:
    """Application factory for the scene engine HTTP surface."""
    app = FastAPI(title="stagevn", version=__version__)
    app.state.version = __version__

    if enable_cors:
        origins = list(allowed_origins or ["*"])
        app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_methods=["*"],
            allow_headers=["*"],
        )
        LOGGER.info("CORS enabled", extra={"origins": origins})

    register_exception_handlers(app)

    if is_enabled("enable_scene_engine_api"):
        from stagevn.server.modules.scene_engine_api import router

        app.include_router(router)
    else:
        LOGGER.info("Scene engine API disabled by feature flag")

    @app.get("/health", tags=["System"], summary="Simple health probe")
    async def core_health():
        return {"status": "ok", "version": __version__}

    return app
