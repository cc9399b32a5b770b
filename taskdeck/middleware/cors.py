"""CORS configuration for the task UI."""
from fastapi.middleware.cors import CORSMiddleware
import logging

from taskdeck import config

logger = logging.getLogger(__name__)

# Base allowed origins for development
ALLOWED_ORIGINS = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]

# Add production frontend URL if provided
if config.FRONTEND_URL and config.FRONTEND_URL not in ALLOWED_ORIGINS:
    ALLOWED_ORIGINS.append(config.FRONTEND_URL)


def add_cors_middleware(app):
    """Add CORS middleware to the FastAPI application."""
    if config.ENVIRONMENT == "production":
        logger.info(f"Using production CORS for {config.FRONTEND_URL}")
        app.add_middleware(
            CORSMiddleware,
            allow_origins=[config.FRONTEND_URL],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )
    else:
        logger.info(f"Using development CORS with origins: {ALLOWED_ORIGINS}")
        app.add_middleware(
            CORSMiddleware,
            allow_origins=ALLOWED_ORIGINS,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )
