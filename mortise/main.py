"""FastAPI application -- entry point for the mortise template service.

Lifespan configures storage, prepares the render scratch directory, removes
scratch left over from earlier runs and starts the periodic cleanup task.

MORTISE_MODE environment variable controls storage behaviour:
  local (default) -- LocalStorage writes JSON files to MORTISE_DATA_DIR
  cloud           -- MemoryStorage keeps templates in memory (stateless)
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import anyio
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from mortise import __version__
from mortise.cleanup import cleanup_scratch, periodic_cleanup
from mortise.export.openscad import SCRATCH_DIR
from mortise.routes.generate import router as generate_router
from mortise.routes.info import router as info_router
from mortise.routes.stl import router as stl_router
from mortise.routes.templates import router as templates_router, set_storage
from mortise.storage import create_storage_backend, get_mortise_mode

logger = logging.getLogger("mortise")

MORTISE_MODE = get_mortise_mode()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup tasks:
    1. Configure the storage backend for MORTISE_MODE
    2. Ensure the render scratch directory exists
    3. Remove scratch left behind by killed renders
    4. Run periodic cleanup until shutdown
    """
    storage = create_storage_backend()
    logger.info("MORTISE_MODE=%s, using %s", MORTISE_MODE, type(storage).__name__)
    set_storage(storage)

    try:
        SCRATCH_DIR.mkdir(parents=True, exist_ok=True)
        logger.info("Render scratch directory ready: %s", SCRATCH_DIR)
    except OSError:
        logger.warning("Cannot create %s; renders will fail until it exists", SCRATCH_DIR)

    try:
        deleted = cleanup_scratch(SCRATCH_DIR)
        if deleted:
            logger.info("Startup cleanup: removed %d orphaned scratch entr(ies)", deleted)
    except OSError:
        logger.warning("Startup scratch cleanup failed", exc_info=True)

    async with anyio.create_task_group() as tg:
        tg.start_soon(periodic_cleanup, SCRATCH_DIR)
        yield
        tg.cancel_scope.cancel()


app = FastAPI(title="Mortise Template Generator", version=__version__, lifespan=lifespan)

# ---------------------------------------------------------------------------
# CORS middleware for development (Vite dev server at localhost:5173)
# ---------------------------------------------------------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ---------------------------------------------------------------------------
# API route registration
# ---------------------------------------------------------------------------
app.include_router(generate_router)
app.include_router(templates_router)
app.include_router(stl_router)
app.include_router(info_router)


@app.get("/health")
async def health() -> dict:
    """Health check endpoint."""
    return {"status": "ok", "version": __version__, "mode": MORTISE_MODE}
