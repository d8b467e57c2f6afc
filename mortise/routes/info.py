"""Info route -- exposes runtime configuration to the frontend.

GET /api/info returns the deployment mode, the active storage backend and
whether the OpenSCAD renderer can be found, so the UI can disable the
download button when rendering is impossible.
"""

from __future__ import annotations

from fastapi import APIRouter, Request

from mortise.export.openscad import (
    CIRCLE_SEGMENTS,
    RENDER_TIMEOUT_SECONDS,
    RendererNotFoundError,
    resolve_openscad,
)
from mortise.storage import get_data_dir, get_mortise_mode

router = APIRouter(prefix="/api", tags=["info"])


@router.get("/info")
async def get_info(request: Request) -> dict:
    """Return runtime information about the current deployment.

    Response fields
    ---------------
    mode : str
        ``"local"`` (file-backed, default) or ``"cloud"`` (stateless).
    version : str
        Application version from the FastAPI app metadata.
    storage : str
        Human-readable description of the active storage backend.
    renderer : dict
        ``available``, ``path`` (or null), ``timeoutSeconds``, ``circleSegments``.
    """
    mode = get_mortise_mode()
    storage_desc = (
        f"LocalStorage (file-based, {get_data_dir()})"
        if mode == "local"
        else "MemoryStorage (in-memory, ephemeral)"
    )
    try:
        renderer_path: str | None = resolve_openscad()
    except RendererNotFoundError:
        renderer_path = None
    return {
        "mode": mode,
        "version": request.app.version,
        "storage": storage_desc,
        "renderer": {
            "available": renderer_path is not None,
            "path": renderer_path,
            "timeoutSeconds": RENDER_TIMEOUT_SECONDS,
            "circleSegments": CIRCLE_SEGMENTS,
        },
    }
