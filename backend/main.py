"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api import returns, snapshots
from config import settings
from database import init_db
from logging_config import setup_logging

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create missing tables on startup."""
    init_db()
    logger.info(
        "Returns service started (environment=%s, market timezone=%s, cache %s)",
        settings.ENVIRONMENT,
        settings.MARKET_TIMEZONE,
        "enabled" if settings.RETURNS_CACHE_ENABLED else "disabled",
    )
    yield


app = FastAPI(
    title="Portfolio Returns",
    description="Time-weighted and personal returns across accounts and currencies",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS configuration for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routers
app.include_router(returns.router)
app.include_router(snapshots.router)


@app.get("/health")
def health_check():
    """Health check endpoint."""
    return {"status": "ok"}
