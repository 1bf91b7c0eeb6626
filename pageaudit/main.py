import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from pageaudit import __version__
from pageaudit.api_routers.v1 import api_router
from pageaudit.features.health.routes.health import router as health_router
from pageaudit.platform.cache.manager import get_cache_manager
from pageaudit.platform.config import settings
from pageaudit.platform.exceptions import add_exception_handlers

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    cache = get_cache_manager()
    cache.start()
    try:
        yield
    finally:
        cache.stop()


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.APP_NAME,
        description="Accessibility and SEO analysis of web pages",
        version=__version__,
        debug=settings.DEBUG,
        lifespan=lifespan,
    )

    @app.get("/", tags=["Info"])
    def root():
        return {
            "app_name": settings.APP_NAME,
            "description": "Accessibility and SEO analysis with scored, tiered reports.",
            "version": __version__,
            "docs_url": "/docs",
            "api_base": "/api/v1",
        }

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    add_exception_handlers(app)

    app.include_router(health_router)
    app.include_router(api_router, prefix="/api/v1")

    return app


app = create_app()
