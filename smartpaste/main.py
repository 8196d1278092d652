from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from smartpaste.api.router import router as smart_paste_router
from smartpaste.api.router import set_engine
from smartpaste.core.config import get_settings
from smartpaste.core.logging import configure_logging, request_id_middleware
from smartpaste.engine.engine import SmartPasteEngine
from smartpaste.storage.sql import sanitize_db_url

logger = logging.getLogger(__name__)

settings = get_settings()
configure_logging(settings.ENV, settings.DEBUG)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan events."""
    # Startup
    logger.info("=" * 70)
    logger.info("🚀 Starting Smart-Paste Template Engine...")
    logger.info(f"Environment: {settings.ENV}")
    logger.info(f"Store: {sanitize_db_url(settings.database_url)}")
    logger.info("=" * 70)

    engine = SmartPasteEngine.from_settings(settings)
    set_engine(engine)
    if engine.cloud is not None:
        logger.info("☁ Cloud classifier enabled for low-confidence fallbacks")
    else:
        logger.info("⚠ Cloud classifier not configured, local parsing only")

    logger.info("✓ Smart-Paste startup complete - Ready to process requests")

    yield

    # Shutdown
    logger.info("🛑 Shutting down Smart-Paste Template Engine...")
    set_engine(None)
    engine.kv.dispose()
    logger.info("✓ Smart-Paste shutdown complete")


app = FastAPI(title="Smart-Paste Template Engine", version="0.1.0", lifespan=lifespan)
app.middleware("http")(request_id_middleware)
app.include_router(smart_paste_router)


@app.get("/")
def health_check():
    logger.debug("Health check endpoint called")
    return {"status": "ok"}


@app.get("/healthz")
def healthz():
    logger.debug(f"Healthz endpoint called (env: {settings.ENV})")
    return {"status": "healthy", "env": settings.ENV}
