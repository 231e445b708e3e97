"""Main application entry point."""

import os
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from src.application.api import router
from src.application.di import get_container, close_container


# Configure logging
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    # Startup
    logger.info("🚀 Starting application...")
    try:
        container = get_container()
        container.get_config_loader().load()
        await container.init_user_directory()
        logger.info("✅ Application started successfully")
    except Exception as e:
        logger.error(f"❌ Error during startup: {e}")
        raise

    yield

    # Shutdown
    logger.info("🛑 Shutting down application...")
    try:
        await close_container()
        logger.info("✅ Application shut down successfully")
    except Exception as e:
        logger.error(f"❌ Error during shutdown: {e}")


# Create FastAPI application
app = FastAPI(
    title="Remote User Authenticator",
    description="Trusted-header authentication with attribute-to-group mapping",
    version="1.0.0",
    lifespan=lifespan,
)

app.include_router(router, prefix="/api/v1")


@app.get("/health")
async def health():
    """Health check."""
    loader = get_container().get_config_loader()
    return {
        "status": "healthy" if loader.is_loaded else "starting",
        "version": "1.0.0",
        "config": {
            "source": loader.source.location,
            "loaded": loader.is_loaded,
            "last_error": str(loader.last_error) if loader.last_error else None,
        },
        "endpoints": {
            "auth_me": "/api/v1/auth/me",
            "auth_status": "/api/v1/auth/status",
            "auth_logout": "/api/v1/auth/logout",
            "mappings": "/api/v1/mappings",
            "mappings_reload": "/api/v1/mappings/reload",
            "mappings_resolve": "/api/v1/mappings/resolve",
        }
    }


if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", "8080"))
    host = os.getenv("HOST", "0.0.0.0")

    logger.info(f"🚀 Starting server on {host}:{port}")

    uvicorn.run(
        "src.main:app",
        host=host,
        port=port,
        reload=os.getenv("ENVIRONMENT") == "development",
        log_level="info",
    )
