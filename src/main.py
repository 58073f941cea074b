"""
FastAPI application entry point.

This module creates and configures the FastAPI application.
Using an application factory pattern (create_app function) because:
- Easier to test with different configurations
- Explicit about initialization order
- Can create multiple app instances if needed (e.g., for testing)

For local development:
    uvicorn src.main:app --reload --port 5050

For production:
    gunicorn src.main:app -w 4 -k uvicorn.workers.UvicornWorker
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api.dependencies import build_scan_service
from .api.routes import health, scan
from .config.settings import ConfigurationError, Settings, get_settings
from .core.scan.service import ScanService

# Configure logging
logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=logging.INFO,
)

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    scan_service: Optional[ScanService] = None,
) -> FastAPI:
    """
    Application factory.

    Pass settings and/or a prebuilt scan_service to run the app against
    test doubles; otherwise both come from the environment at startup.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Application lifespan manager.

        Validates configuration (missing values abort startup with
        ConfigurationError) and builds the one ScanService the process
        uses for every request.
        """
        logging.getLogger().setLevel(settings.log_level.upper())

        logger.info(
            "Scanner API starting",
            extra={
                "version": settings.api_version,
                "mock_mode": {"storage": settings.storage_mock_mode},
            }
        )

        try:
            settings.ensure_valid()
        except ConfigurationError as e:
            logger.error("Missing required configuration", extra={"error": str(e)})
            raise

        app.state.scan_service = scan_service or build_scan_service(settings)

        yield

        # Shutdown
        app.state.scan_service = None
        logger.info("Scanner API shutting down")

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        description="""
        Physiognomy scanner.

        Post a base64 photo to `POST /api/scan` and receive a classical
        face reading, the id of the stored photo and its URL.
        """,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # Routes read settings through get_settings; serve the ones this app was built with
    app.dependency_overrides[get_settings] = lambda: settings

    # CORS middleware
    # Configure allowed origins via CORS_ORIGINS environment variable
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=settings.cors_origins_list != ["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(
        health.router,
        prefix="/health",
        tags=["Health"],
    )

    app.include_router(
        scan.router,
        prefix="/api/scan",
        tags=["Scan"],
    )

    # Root endpoint
    @app.get("/", include_in_schema=False)
    async def root():
        """Root endpoint - service banner."""
        return {"status": "ok", "service": "scanner-api"}

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request, exc):
        """
        Malformed bodies are client errors.

        The scan contract promises 400 for bad input, so FastAPI's
        default 422 is folded into it.
        """
        errors = exc.errors()
        logger.warning(
            "Rejected malformed request",
            extra={"path": request.url.path, "errors": str(errors)}
        )
        if any(error.get("type") == "json_invalid" for error in errors):
            detail = "Request body must be valid JSON."
        else:
            detail = "Missing base64 image data."
        return JSONResponse(
            status_code=400,
            content={"detail": detail},
        )

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request, exc):
        """
        Catch-all exception handler.

        This prevents stack traces from leaking to clients.
        We log the full error server-side but return a generic message.
        """
        logger.error(
            "Unhandled exception",
            extra={
                "path": request.url.path,
                "method": request.method,
                "error": str(exc),
            },
            exc_info=exc,
        )

        return JSONResponse(
            status_code=500,
            content={
                "detail": "Unable to process the request."
            }
        )

    logger.info(
        "FastAPI application created",
        extra={
            "title": settings.api_title,
            "version": settings.api_version,
        }
    )

    return app


# Create the application instance
# This is what uvicorn/gunicorn will import
app = create_app()


# For debugging/development
if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "src.main:app",
        host="0.0.0.0",
        port=settings.api_port,
        reload=True,
        log_level=settings.log_level.lower(),
    )
