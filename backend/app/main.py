# backend/app/main.py
from __future__ import annotations

"""
FastAPI application setup.

This module depends on:
- app.config.get_settings for configuration
- app.db.session.Base and engine for DB initialization (run history)
- app.api.api_router for route registration
"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api import api_router
from app.config import get_settings
from app.db.session import Base, engine
from app.services.statsig_client import shutdown_statsig

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(
    title=settings.app_name,
    version="0.1.0",
)


# ---- CORS ----

app.add_middleware(
    CORSMiddleware,
    allow_origins=[str(o).rstrip("/") for o in settings.allowed_origins],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---- Routes ----

app.include_router(api_router, prefix="/api")


# ---- Lifecycle ----


@app.on_event("startup")
def on_startup() -> None:
    """
    Create the run-history table on startup.

    Run history is a single append-only table, so `create_all` is enough;
    there is no migration tooling.
    """
    Base.metadata.create_all(bind=engine)


@app.on_event("shutdown")
def on_shutdown() -> None:
    shutdown_statsig()


# ---- Healthcheck ----


@app.get("/health", tags=["health"])
def health() -> dict:
    return {"status": "ok"}
