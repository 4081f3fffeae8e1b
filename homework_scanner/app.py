from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from homework_scanner.bootstrap import ScannerServices, build_services, configure_logging
from homework_scanner.core.config import Settings
from homework_scanner.routes import blobs, ocr, scans

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None, *, services: ScannerServices | None = None) -> FastAPI:
    settings = settings or (services.settings if services else Settings.from_env())
    configure_logging(settings.log_level)
    services = services or build_services(settings)

    if not services.extractor.configured:
        logger.warning("OCRSPACE_API_KEY is missing; every scan will fail as misconfigured")

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        logger.info("Homework scanner API starting up")
        yield
        await services.aclose()
        logger.info("Homework scanner API shut down")

    app = FastAPI(title="Homework Scanner API", version="0.1.0", lifespan=lifespan)
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(scans.router, prefix="/api")
    app.include_router(ocr.router, prefix="/api")
    app.include_router(blobs.router, prefix="/api")

    @app.get("/", include_in_schema=False)
    async def root() -> JSONResponse:
        """Provide a lightweight landing page for container checks."""
        return JSONResponse(
            {
                "message": "Homework Scanner API",
                "docs": "/docs",
                "ocr_configured": services.extractor.configured,
            }
        )

    return app


app = create_app()
