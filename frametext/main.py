from __future__ import annotations

import logging

from fastapi import FastAPI

from frametext.api.routes import router
from frametext.core.config import settings
from frametext.core.logging import configure_logging
from frametext.ocr.registry import load_provider_config


def create_app() -> FastAPI:
    configure_logging(settings.log_level)
    if settings.provider_config_path:
        # Fail at startup rather than on the first request
        load_provider_config(settings.provider_config_path)
    app = FastAPI(title="Frame Text Extractor", version="0.1.0")
    app.include_router(router)

    @app.get("/")
    async def root():
        return {
            "message": "Frame Text Extractor: OCR for captured video frames",
            "docs": "/docs",
            "health": "/health",
        }

    logging.getLogger(__name__).info("startup", extra={"app_env": settings.app_env})
    return app


app = create_app()
