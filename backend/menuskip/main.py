"""FastAPI application entry point."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from menuskip import __version__
from menuskip.config import settings
from menuskip.api.routes import router
from menuskip.pipeline.media import ReferenceImageLoader
from menuskip.workers.job_runner import JobRunner

# Configure logging
logging.basicConfig(
    level=logging.INFO if not settings.debug else logging.DEBUG,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup
    logger.info("Starting MenuSkip...")

    app.state.job_runner = JobRunner(
        reference_loader=ReferenceImageLoader(timeout=settings.reference_download_timeout_sec),
        max_finished_jobs=settings.max_finished_jobs,
    )
    logger.info("Job runner ready")

    yield

    # Shutdown
    logger.info("Shutting down MenuSkip...")
    await app.state.job_runner.shutdown()
    logger.info("Shutdown complete")


# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    description="Detects menus and loading screens in long-form video",
    version=__version__,
    lifespan=lifespan
)

# Include API routes
app.include_router(router, prefix="/api")


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "app": settings.app_name,
        "version": __version__,
        "api": "/api",
        "docs": "/docs"
    }


def run():
    import uvicorn
    uvicorn.run(
        "menuskip.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug
    )


if __name__ == "__main__":
    run()
