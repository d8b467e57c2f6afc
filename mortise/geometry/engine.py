"""Geometry engine -- derived values and the async generation entry point.

This module ties the pure geometry code to the renderer boundary and
provides the entry points used by the REST handlers.

- ``build_template()``        -- derive + OpenSCAD script, no I/O
- ``compute_derived_values()`` -- DerivedGeometry -> API model
- ``generate_template()``     -- blocking: build -> render -> decode
- ``generate_template_safe()`` -- async, runs the above under CapacityLimiter(2)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import anyio

from mortise.export.openscad import CIRCLE_SEGMENTS, render_stl, scratch_space
from mortise.geometry.derive import DerivedGeometry, derive
from mortise.geometry.solid import SolidNode, to_scad
from mortise.mesh.stl import Mesh, decode
from mortise.models import DerivedValues, GenerationResult, LabelInfo, TemplateParameters
from mortise.units import format_measurement, to_inches
from mortise.validation import compute_warnings

logger = logging.getLogger("mortise.engine")

# The renderer is CPU-heavy; at most two run at once.  Created on first use,
# since anyio needs a running event loop to build a CapacityLimiter.
RENDER_CONCURRENCY = 2
_render_limiter: anyio.CapacityLimiter | None = None


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class TemplateBuild:
    """Everything derived from a parameter set before rendering."""

    params: TemplateParameters
    geometry: DerivedGeometry
    solid: SolidNode
    script: str


@dataclass(frozen=True, slots=True)
class RenderedTemplate:
    """A rendered template: STL bytes exactly as produced plus the decoded mesh."""

    build: TemplateBuild
    stl: bytes
    mesh: Mesh


# ---------------------------------------------------------------------------
# Pure steps
# ---------------------------------------------------------------------------


def _script_header(params: TemplateParameters) -> str:
    lines = ["Mortise template (units: mm)"]
    for name, value in params.model_dump().items():
        lines.append(f"{name} = {value}")
    return "\n".join(lines)


def build_template(
    params: TemplateParameters, segments: int = CIRCLE_SEGMENTS
) -> TemplateBuild:
    """Derive geometry and serialize it to an OpenSCAD script.

    Raises:
        GeometryError: propagated from ``derive()``.
    """
    geometry, solid = derive(params)
    script = to_scad(solid, segments=segments, header=_script_header(params))
    return TemplateBuild(params=params, geometry=geometry, solid=solid, script=script)


def compute_derived_values(geom: DerivedGeometry) -> DerivedValues:
    """Convert a DerivedGeometry into the API response model."""

    def fmt(mm: float) -> str:
        return format_measurement(to_inches(mm), geom.unit_system)

    return DerivedValues(
        offset_mm=geom.offset,
        cutout_length_mm=geom.cutout_length,
        cutout_width_mm=geom.cutout_width,
        corner_radius_mm=geom.corner_radius,
        plate_length_mm=geom.plate_length,
        plate_width_mm=geom.plate_width,
        overall_height_mm=geom.overall_height,
        cutout_x_mm=geom.cutout_x,
        cutout_y_mm=geom.cutout_y,
        edge_stop_y_mm=geom.edge_stop_y,
        mortise_edge_distance_mm=geom.mortise_edge_distance,
        offset_display=fmt(geom.offset),
        cutout_display=f"{fmt(geom.cutout_length)} x {fmt(geom.cutout_width)}",
        plate_display=f"{fmt(geom.plate_length)} x {fmt(geom.plate_width)}",
        labels=[LabelInfo(text=r.text, x_mm=r.x, y_mm=r.y) for r in geom.labels],
    )


def describe_template(params: TemplateParameters) -> GenerationResult:
    """Derived values and warnings for a parameter set, without rendering."""
    geometry, _solid = derive(params)
    return GenerationResult(
        derived=compute_derived_values(geometry),
        warnings=compute_warnings(params, geometry),
    )


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


def generate_template(
    params: TemplateParameters,
    scratch_dir: Path,
    *,
    openscad_bin: str | None = None,
    timeout: float | None = None,
) -> RenderedTemplate:
    """Build, render and decode a template.  Blocking.

    The rendered bytes are decoded before returning, so a corrupt or
    truncated render surfaces as a MeshError instead of reaching a client.

    Raises:
        GeometryError: invalid measurements.
        RenderError:   the renderer failed.
        MeshError:     the renderer produced an unusable STL.
    """
    build = build_template(params)
    logger.info(
        "Rendering template %.1f x %.1f mm (%s edge)",
        build.geometry.plate_length,
        build.geometry.plate_width,
        params.edge_position,
    )
    stl = render_stl(build.script, scratch_dir, openscad_bin=openscad_bin, timeout=timeout)
    mesh = decode(stl)
    return RenderedTemplate(build=build, stl=stl, mesh=mesh)


def _generate_blocking(params: TemplateParameters) -> RenderedTemplate:
    """Worker-thread body: one private scratch directory per render."""
    with scratch_space() as scratch_dir:
        return generate_template(params, scratch_dir)


async def generate_template_safe(params: TemplateParameters) -> RenderedTemplate:
    """Render a template with concurrency control.

    Primary entry point for the HTTP handlers.  Runs the blocking pipeline
    in a worker thread, at most RENDER_CONCURRENCY at a time.
    """
    global _render_limiter  # noqa: PLW0603
    if _render_limiter is None:
        _render_limiter = anyio.CapacityLimiter(RENDER_CONCURRENCY)

    return await anyio.to_thread.run_sync(
        _generate_blocking,
        params,
        limiter=_render_limiter,
    )
