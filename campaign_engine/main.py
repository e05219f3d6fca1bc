"""
App FastAPI do campaign_engine.

uvicorn campaign_engine.main:app
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from campaign_engine import __version__
from campaign_engine.api.deps import get_task_supervisor
from campaign_engine.api.error_handlers import register_exception_handlers
from campaign_engine.api.routes import campaigns, health, webhooks
from campaign_engine.core.config import settings
from campaign_engine.core.logging import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    logger.info(
        f"{settings.APP_NAME} {__version__} no ar "
        f"(env={settings.ENVIRONMENT}, storage={settings.STORAGE_BACKEND})"
    )
    yield
    # Loops e resultados de vendor pendentes morrem com o processo
    supervisor = get_task_supervisor()
    logger.info(f"Cancelando {supervisor.active_count} background tasks")
    await supervisor.shutdown()


app = FastAPI(
    title=settings.APP_NAME,
    description="Segmentacao de audiencia e entrega de campanhas",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
register_exception_handlers(app)

for router in (health.router, campaigns.router, webhooks.router):
    app.include_router(router)


@app.get("/")
async def root():
    return {"app": settings.APP_NAME, "version": __version__, "docs": "/docs"}
