"""FastAPI application for ID card template resolution and rendering."""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, status
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

from src.core.config import settings
from src.core.database import check_database, init_db
from src.models.enums import TemplateType
from src.api import dependencies
from src.api.router import api_router
from src.middleware.error_handler import add_error_handlers
from src.utils.logging import setup_logging

# Setup logging first
setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    logger.info(f"Starting {settings.PROJECT_NAME}...")

    # Initialize database
    try:
        await init_db()
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        raise

    # Log configuration
    logger.info("Configuration loaded:")
    logger.info(f"   - Environment: {'Development' if settings.DEBUG else 'Production'}")
    logger.info(f"   - Records service: {settings.RECORDS_SERVICE_URL}")
    logger.info(f"   - Default card size: {settings.CARD_DEFAULT_WIDTH_MM} x {settings.CARD_DEFAULT_HEIGHT_MM} mm")
    logger.info(f"   - Batch limit: {settings.CARD_BATCH_MAX_ENTITIES} entities")

    logger.info(f"{settings.PROJECT_NAME} started successfully")

    yield

    # Shutdown
    logger.info(f"Shutting down {settings.PROJECT_NAME}...")
    audit_sink = dependencies.get_audit_sink()
    await audit_sink.flush()
    logger.info("Shutdown completed")


def create_application() -> FastAPI:
    """Create and configure FastAPI application."""
    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.VERSION,
        description="""
        **ID Card Service**

        Template resolution and document rendering for school ID cards:

        * **Templates** scoped to a school, academic session or class, versioned,
          with one active template per scope
        * **Waterfall resolution**: class template, then session default, then school default
        * **Cards** rendered to PDF from declarative layouts and whitelisted data tags
        * **Bulk generation** as one combined PDF or a ZIP of per-entity PDFs

        ## Identity

        Authentication happens at the gateway, which forwards the caller as
        `X-User-Id` and `X-User-Role` headers for the audit log.
        """,
        debug=settings.DEBUG,
        lifespan=lifespan,
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
        openapi_url="/openapi.json" if settings.DEBUG else None,
    )

    # Browsers need the batch headers exposed to read the cards' counts
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS_LIST,
        allow_credentials=True,
        allow_methods=settings.CORS_METHODS_LIST,
        allow_headers=settings.CORS_HEADERS_LIST,
        expose_headers=["Content-Disposition", "X-Cards-Included", "X-Cards-Failed"],
    )

    # Add error handlers
    add_error_handlers(app)

    # Include API router
    app.include_router(api_router, prefix=settings.API_V1_STR)

    @app.get("/", tags=["System"])
    async def root():
        return {
            "service": settings.PROJECT_NAME,
            "version": settings.VERSION,
            "card_types": TemplateType.get_all_values(),
            "docs": "/docs" if settings.DEBUG else None,
        }

    # Health check endpoint
    @app.get("/health", tags=["System"])
    async def health_check():
        """Health check for monitoring; 503 when the database is unreachable."""
        database_ok = await check_database()
        return JSONResponse(
            status_code=status.HTTP_200_OK if database_ok else status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "status": "healthy" if database_ok else "degraded",
                "service": settings.PROJECT_NAME,
                "version": settings.VERSION,
                "database": "ok" if database_ok else "unavailable",
            },
        )

    return app


# Create application instance
app = create_application()


if __name__ == "__main__":
    import uvicorn

    # Run with uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level="info" if not settings.DEBUG else "debug",
        access_log=True
    )
