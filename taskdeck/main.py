"""Main FastAPI application for the taskdeck backend."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from taskdeck import __version__, config
from taskdeck.db.init import init_db
from taskdeck.middleware.cors import add_cors_middleware
from taskdeck.routers import tasks
from taskdeck.utils.metrics import metrics_collector

logging.basicConfig(
    level=config.LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize database on startup."""
    try:
        init_db()
    except Exception as e:
        logger.warning(f"Database initialization failed: {e}")
        logger.warning("Server will continue but database operations may fail.")
    logger.info("Application startup complete.")
    yield


# Create FastAPI application
app = FastAPI(
    title="taskdeck API",
    description="REST API for tasks with recurring schedules",
    version=__version__,
    lifespan=lifespan,
)

# Add CORS middleware
add_cors_middleware(app)

app.include_router(tasks.router, prefix="/api")  # Task endpoints: /api/tasks


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": __version__}


@app.get("/")
async def root():
    """Root endpoint - API welcome message."""
    return {
        "message": "Welcome to the taskdeck API",
        "version": __version__,
        "docs": "/docs",
        "health": "/health",
    }


@app.get("/metrics")
async def metrics():
    """Recurrence processing counters and timers."""
    return metrics_collector.get_metrics()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "taskdeck.main:app",
        host="0.0.0.0",
        port=8000,
        reload=config.ENVIRONMENT == "development",
    )
