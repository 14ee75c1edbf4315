"""FastAPI application for the fleet fare service."""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from fleetfare.api.endpoints import router
from fleetfare.config import settings

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(
    title=settings.API_TITLE,
    version=settings.API_VERSION,
    description=settings.API_DESCRIPTION,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router)


@app.get("/")
def root():
    """Service banner."""
    return {
        "message": "Fleet fare configuration and estimation service",
        "version": settings.API_VERSION,
        "docs": "/docs",
    }
