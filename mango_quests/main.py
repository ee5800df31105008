"""
Mango Quests - quest lifecycle and generation service.

FastAPI application factory.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api.errors import register_exception_handlers
from .api.router import api_router
from .config import get_settings
from .infra.db.session import close_db, init_db
from .utils.logging_utils import configure_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    settings = get_settings()
    logger.info(f"Starting {settings.app_name} API server ({settings.environment})...")
    
    await init_db()
    logger.info("Database tables initialized")
    if settings.debug_routes_allowed:
        logger.warning("Debug quest routes are enabled")
    if not settings.gemini_api_key:
        logger.warning("GEMINI_API_KEY is not set; quest generation will fail until it is configured")
    
    yield
    
    await close_db()
    logger.info(f"Shutting down {settings.app_name} API server...")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()
    configure_logging(settings.log_level, settings.log_file)
    
    app = FastAPI(
        title=settings.app_name,
        description="Quest lifecycle, generation and progress tracking",
        version=settings.app_version,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    
    register_exception_handlers(app)
    app.include_router(api_router)
    
    @app.get("/", include_in_schema=False)
    async def root():
        return {
            "name": settings.app_name,
            "version": settings.app_version,
            "docs": "/docs",
            "api": "/api/v1",
        }
    
    return app


app = create_app()
