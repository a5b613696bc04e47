"""
MODULE OVERVIEW:
The FastAPI application for the local database emulator.

WHAT IS HAPPENING HERE:
The emulator speaks the same REST + event-stream protocol as the hosted database,
backed by the in-memory store. The ops endpoints are registered before the
database router because the database routes match every path.
"""

from fastapi import FastAPI
from contextlib import asynccontextmanager
from loguru import logger

from server.store import store
from server.routes import database
from shared.models import EmulatorStats

@asynccontextmanager
async def lifespan(app: FastAPI):
    # STARTUP
    logger.info("Database emulator starting up...")

    yield

    # SHUTDOWN
    logger.info(f"Emulator shutting down with {len(store.streams)} open streams.")
    store.streams.clear()
    logger.info("Shutdown complete.")


app = FastAPI(
    title="Realtime Database Emulator",
    description="In-memory REST and event-stream endpoint for the database listener",
    version="1.0.0",
    lifespan=lifespan
)

@app.get("/healthz", tags=["Ops"])
async def health_check():
    return {"status": "ok"}

@app.get("/stats", tags=["Ops"], response_model=EmulatorStats)
async def get_stats():
    return store.get_stats()

app.include_router(database.router, tags=["Database"])
