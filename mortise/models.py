"""Pydantic models -- shared contract between all mortise modules.

API Naming Contract:
  - Models use snake_case field names (Python convention).
  - The frontend form sends snake_case (``bushing_od_in``) while JSON
    responses are camelCase (``bushingOdIn``).  Every model inherits
    CamelModel, so ``model_dump(by_alias=True)`` produces camelCase and
    ``populate_by_name=True`` accepts either spelling on input.
  - All template lengths are stored in inches regardless of the display
    unit system; the geometry layer converts to millimetres.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from mortise.units import UnitSystem


# ---------------------------------------------------------------------------
# Enum / Literal Types
# ---------------------------------------------------------------------------

EdgePosition = Literal["left", "right"]
StlForm = Literal["binary", "ascii"]


# ---------------------------------------------------------------------------
# Base model for camelCase serialization
# ---------------------------------------------------------------------------

class CamelModel(BaseModel):
    """Base for models serialized to the frontend with camelCase keys."""

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)


# ---------------------------------------------------------------------------
# TemplateParameters -- the user's measurements
# ---------------------------------------------------------------------------

class TemplateParameters(CamelModel):
    """Measurements for one mortise template.  Immutable once validated.

    Bounds mirror the ingestion schema of the web form.  The only
    cross-field rule enforced here is that all lengths are positive; derived
    invariants (bushing vs. bit, footprint, cutout containment) are checked
    by the geometry layer so that callers get a typed GeometryError.
    """

    model_config = ConfigDict(
        populate_by_name=True, alias_generator=to_camel, frozen=True
    )

    unit_system: UnitSystem = "imperial"
    bushing_od_in: float = Field(default=0.3125, ge=0.1, le=50)
    bit_diameter_in: float = Field(default=0.25, ge=0.1, le=50)
    mortise_length_in: float = Field(default=1.75, ge=0.1, le=250)
    mortise_width_in: float = Field(default=0.375, ge=0.1, le=250)
    edge_distance_in: float = Field(default=0.25, ge=0.1, le=125)
    edge_position: EdgePosition = "left"
    extension_length_in: float = Field(default=3.0, ge=0.1, le=250)
    extension_width_in: float = Field(default=3.0, ge=0.1, le=250)
    template_thickness_in: float = Field(default=0.25, ge=0.1, le=2)


class SavedTemplate(CamelModel):
    """A named, persisted parameter set (GET/POST /api/templates).

    ``created_at`` and ``modified_at`` are ISO-8601 UTC stamps owned by the
    store; values sent by a client are ignored on save.
    """

    id: str = ""
    name: str = Field(default="Untitled Template", max_length=200)
    parameters: TemplateParameters = Field(default_factory=TemplateParameters)
    created_at: str = ""
    modified_at: str = ""


# ---------------------------------------------------------------------------
# Derived values -- computed by the geometry engine, read-only
# ---------------------------------------------------------------------------

class LabelInfo(CamelModel):
    """One engraved label row and its baseline position (mm)."""

    text: str
    x_mm: float
    y_mm: float


class DerivedValues(CamelModel):
    """Derived template geometry returned by POST /api/derive (millimetres)."""

    offset_mm: float
    cutout_length_mm: float
    cutout_width_mm: float
    corner_radius_mm: float
    plate_length_mm: float
    plate_width_mm: float
    overall_height_mm: float
    cutout_x_mm: float
    cutout_y_mm: float
    edge_stop_y_mm: float
    mortise_edge_distance_mm: float
    # Human-readable measurements in the requested unit system
    offset_display: str
    cutout_display: str
    plate_display: str
    labels: list[LabelInfo] = Field(default_factory=list)


class ValidationWarning(CamelModel):
    """Non-blocking validation warning."""

    id: str  # W01-W06
    level: Literal["warn"] = "warn"
    message: str
    fields: list[str] = Field(default_factory=list)


class GenerationResult(CamelModel):
    """Response from POST /api/derive."""

    derived: DerivedValues
    warnings: list[ValidationWarning] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# STL inspection
# ---------------------------------------------------------------------------

class MeshInfo(CamelModel):
    """Summary of a decoded STL file (POST /api/stl/inspect)."""

    format: StlForm
    triangle_count: int
    vertex_count: int
    bbox_min: tuple[float, float, float]
    bbox_max: tuple[float, float, float]
    size_bytes: int


class TemplateSummary(CamelModel):
    """One row of the template listing (GET /api/templates)."""

    id: str
    name: str
    unit_system: UnitSystem
    edge_position: EdgePosition
    mortise_size: str
    modified_at: str
