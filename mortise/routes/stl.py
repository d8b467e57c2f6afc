"""STL utility routes -- inspect and convert uploaded meshes.

  POST /api/stl/inspect           -- format, counts and bounding box
  POST /api/stl/convert?format=   -- re-encode as binary or ASCII STL
"""

from __future__ import annotations

import logging
import re
from pathlib import PurePath

import anyio
from fastapi import APIRouter, HTTPException, Query, Response, UploadFile

from mortise.mesh.normalize import bounding_box
from mortise.mesh.stl import Mesh, MeshError, decode, detect_format, encode
from mortise.models import MeshInfo, StlForm

logger = logging.getLogger("mortise.stl")

router = APIRouter(prefix="/api/stl", tags=["stl"])

MAX_UPLOAD_BYTES = 64 * 1024 * 1024  # 64 MB


async def _read_upload(file: UploadFile) -> bytes:
    raw = await file.read(MAX_UPLOAD_BYTES + 1)
    if len(raw) > MAX_UPLOAD_BYTES:
        raise HTTPException(
            status_code=413,
            detail=f"Uploaded file is too large (max {MAX_UPLOAD_BYTES // (1024 * 1024)} MB).",
        )
    return raw


async def _decode_upload(raw: bytes) -> Mesh:
    """Decode in a worker thread; malformed input is the client's fault (400)."""
    try:
        return await anyio.to_thread.run_sync(decode, raw)
    except MeshError as exc:
        raise HTTPException(
            status_code=400,
            detail={"error": exc.kind, "message": str(exc)},
        ) from exc


def _solid_name(filename: str | None) -> str:
    stem = PurePath(filename or "").stem
    safe = re.sub(r"[^A-Za-z0-9_\-]", "_", stem).strip("_")
    return safe or "mesh"


@router.post("/inspect", response_model=MeshInfo)
async def inspect_stl(file: UploadFile) -> MeshInfo:
    """Decode an uploaded STL and summarize it."""
    raw = await _read_upload(file)
    mesh = await _decode_upload(raw)
    lo, hi = bounding_box(mesh)
    return MeshInfo(
        format=detect_format(raw),
        triangle_count=mesh.triangle_count,
        vertex_count=mesh.vertex_count,
        bbox_min=tuple(float(v) for v in lo),
        bbox_max=tuple(float(v) for v in hi),
        size_bytes=len(raw),
    )


@router.post("/convert")
async def convert_stl(
    file: UploadFile,
    stl_format: StlForm = Query(default="binary", alias="format"),
) -> Response:
    """Re-encode an uploaded STL in the requested form."""
    raw = await _read_upload(file)
    mesh = await _decode_upload(raw)
    name = _solid_name(file.filename)
    content = encode(mesh, stl_format, name=name)
    logger.info(
        "Converted %s: %d triangles -> %s (%d bytes)",
        file.filename,
        mesh.triangle_count,
        stl_format,
        len(content),
    )
    return Response(
        content=content,
        media_type="model/stl",
        headers={"Content-Disposition": f'attachment; filename="{name}.stl"'},
    )
