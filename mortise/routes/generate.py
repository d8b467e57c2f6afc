"""Template generation routes.

  POST /api/generate  -- render a template and return it as an STL attachment
  POST /api/derive    -- derived measurements and warnings, no rendering
  POST /api/preview   -- normalized mesh frame + JSON trailer for the 3D viewer
"""

from __future__ import annotations

import json
import logging
from typing import Any

from fastapi import APIRouter, HTTPException, Query, Response

from mortise.export.openscad import RenderError
from mortise.geometry.derive import GeometryError
from mortise.geometry.engine import (
    RenderedTemplate,
    compute_derived_values,
    describe_template,
    generate_template_safe,
)
from mortise.mesh.normalize import normalize
from mortise.mesh.stl import MeshError, detect_format, encode
from mortise.models import (
    DerivedValues,
    GenerationResult,
    StlForm,
    TemplateParameters,
    ValidationWarning,
)
from mortise.validation import compute_warnings

logger = logging.getLogger("mortise.generate")

router = APIRouter(prefix="/api", tags=["generate"])

STL_FILENAME = "mortise_template.stl"


# ---------------------------------------------------------------------------
# Error translation
# ---------------------------------------------------------------------------


def _geometry_error(exc: GeometryError) -> HTTPException:
    return HTTPException(
        status_code=422,
        detail={"error": exc.kind, "message": str(exc)},
    )


async def _render(params: TemplateParameters) -> RenderedTemplate:
    """Run the render pipeline, mapping failures onto HTTP status codes."""
    try:
        return await generate_template_safe(params)
    except GeometryError as exc:
        raise _geometry_error(exc) from exc
    except RenderError as exc:
        logger.error("Renderer unavailable: %s", exc)
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    except MeshError as exc:
        logger.error("Renderer produced an unusable STL: %s", exc)
        raise HTTPException(
            status_code=502,
            detail=f"Renderer produced an invalid STL ({exc.kind}): {exc}",
        ) from exc
    except Exception as exc:
        logger.exception("Template generation failed")
        raise HTTPException(status_code=500, detail=str(exc)) from exc


def _build_mesh_response(
    mesh_binary: bytes,
    derived: DerivedValues,
    warnings: list[ValidationWarning],
) -> bytes:
    """Append a camelCase JSON trailer to the mesh binary frame."""
    trailer_dict: dict[str, Any] = {
        "derived": derived.model_dump(by_alias=True),
        "validation": [w.model_dump(by_alias=True) for w in warnings],
    }
    return mesh_binary + json.dumps(trailer_dict).encode("utf-8")


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@router.post("/generate")
async def generate(
    params: TemplateParameters,
    stl_format: StlForm = Query(default="binary", alias="format"),
) -> Response:
    """Render a template and return it as a downloadable STL file.

    The renderer output is decoded before anything is sent, so a corrupt
    render results in a 502 instead of a broken download.  When the
    requested form differs from what the renderer wrote, the mesh is
    re-encoded.
    """
    rendered = await _render(params)

    if detect_format(rendered.stl) == stl_format:
        content = rendered.stl
    else:
        content = encode(rendered.mesh, stl_format)

    logger.info(
        "Generated template: %d triangles, %d bytes (%s)",
        rendered.mesh.triangle_count,
        len(content),
        stl_format,
    )
    return Response(
        content=content,
        media_type="model/stl",
        headers={"Content-Disposition": f'attachment; filename="{STL_FILENAME}"'},
    )


@router.post("/derive", response_model=GenerationResult)
async def derive_template(params: TemplateParameters) -> GenerationResult:
    """Compute derived measurements and validation warnings without rendering."""
    try:
        return describe_template(params)
    except GeometryError as exc:
        raise _geometry_error(exc) from exc


@router.post("/preview")
async def preview(params: TemplateParameters) -> Response:
    """Render a template and return the normalized mesh for the 3D viewer.

    Body layout: binary mesh frame (see ``Mesh.to_binary_frame``) followed
    by a UTF-8 JSON trailer ``{"derived": ..., "validation": [...]}``.
    """
    rendered = await _render(params)
    geometry = rendered.build.geometry
    display_mesh = normalize(rendered.mesh)

    body = _build_mesh_response(
        display_mesh.to_binary_frame(),
        compute_derived_values(geometry),
        compute_warnings(params, geometry),
    )
    return Response(content=body, media_type="application/octet-stream")
