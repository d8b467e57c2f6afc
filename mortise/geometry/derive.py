"""Geometry derivation -- measurements in, template geometry out.

``derive()`` is a pure function: it converts a TemplateParameters (inches)
into a DerivedGeometry record (millimetres) and the CSG tree handed to the
renderer.  Every invariant violation raises a GeometryError subclass; no
partially-built geometry is ever returned.

Coordinate system (millimetres):
  - X runs along the plate length, Y across its width, Z up.
  - The plate occupies ``[0, plate_length] x [0, plate_width] x [0, thickness]``.
  - The edge stop runs the full plate length on the Y=0 edge for a left
    fence, or on the Y=plate_width edge for a right fence.

Edge-distance convention:
  ``edge_distance`` is measured from the inner face of the edge stop to the
  near wall of the *cutout*, i.e. after bushing-offset compensation.  The
  wall the router bit actually cuts lies ``offset`` further from the fence;
  that value is reported as ``mortise_edge_distance``.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from mortise.geometry.solid import (
    Cube,
    Difference,
    LinearExtrude,
    SolidNode,
    Text,
    Translate,
    Union,
    rounded_rect,
)
from mortise.models import EdgePosition, TemplateParameters
from mortise.units import UnitSystem, format_measurement, to_inches, to_millimeters

# ---------------------------------------------------------------------------
# Fixed template constants (mm)
# ---------------------------------------------------------------------------

EDGE_STOP_THICKNESS = 9.525  # 3/8"
EDGE_STOP_HEIGHT = 12.7  # 1/2" above the plate
TEXT_DEPTH = 1.0
MAX_BUILD_DIMENSION = 256.0

LABEL_TEXT_SIZE = 4.0
LABEL_ROW_PITCH = 6.0
LABEL_GAP = 3.0  # clearance between cutout wall and nearest label row
LABEL_MARGIN = 2.0  # clearance between outermost label row and plate edge

# Through-cut overshoot so the cutout leaves no skin on either face.
_CUT_OVERSHOOT = 0.1


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class GeometryError(ValueError):
    """Base class: the measurements cannot produce a valid template."""

    kind = "geometry_error"


class InvalidOffsetError(GeometryError):
    """Guide bushing is smaller than the router bit."""

    kind = "invalid_offset"


class FootprintTooLargeError(GeometryError):
    """Derived template exceeds the renderer's build volume."""

    kind = "footprint_too_large"


class CutoutOutsidePlateError(GeometryError):
    """Cutout would break through the plate edge or collide with the edge stop."""

    kind = "cutout_outside_plate"


# ---------------------------------------------------------------------------
# Derived geometry record
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class LabelRow:
    """An engraved measurement label with its baseline-left position."""

    text: str
    x: float
    y: float


@dataclass(frozen=True, slots=True)
class DerivedGeometry:
    """All template dimensions in millimetres.  Never mutated after creation."""

    unit_system: UnitSystem
    edge_position: EdgePosition
    offset: float
    cutout_length: float
    cutout_width: float
    corner_radius: float
    plate_length: float
    plate_width: float
    thickness: float
    cutout_x: float
    cutout_y: float
    edge_stop_y: float
    mortise_edge_distance: float
    corner_radius_clamped: bool
    labels: tuple[LabelRow, ...]
    labels_dropped: int
    edge_stop_thickness: float = EDGE_STOP_THICKNESS
    edge_stop_height: float = EDGE_STOP_HEIGHT

    @property
    def overall_height(self) -> float:
        """Plate thickness plus the edge stop rising above it."""
        return self.thickness + self.edge_stop_height

    @property
    def offset_in(self) -> float:
        return to_inches(self.offset)

    @property
    def cutout_size_in(self) -> tuple[float, float]:
        return to_inches(self.cutout_length), to_inches(self.cutout_width)

    @property
    def plate_size_in(self) -> tuple[float, float]:
        return to_inches(self.plate_length), to_inches(self.plate_width)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _label_texts(params: TemplateParameters, offset_in: float) -> list[str]:
    def fmt(value_in: float) -> str:
        return format_measurement(value_in, params.unit_system)

    return [
        f"Bushing OD: {fmt(params.bushing_od_in)}",
        f"Bit Dia: {fmt(params.bit_diameter_in)}",
        f"Length: {fmt(params.mortise_length_in)}",
        f"Width: {fmt(params.mortise_width_in)}",
        f"Edge Dist: {fmt(params.edge_distance_in)}",
        f"Offset: {fmt(offset_in)}",
    ]


def _layout_labels(
    texts: list[str],
    edge_position: EdgePosition,
    cutout_x: float,
    cutout_y: float,
    cutout_width: float,
    plate_width: float,
) -> tuple[tuple[LabelRow, ...], int]:
    """Stack label rows in the free band on the far side of the cutout.

    For a left fence the band runs from the cutout's far wall up to the plate
    edge; for a right fence it runs from the plate edge up to the cutout's
    near wall.  Rows are ordered top-down in reading order and any row that
    would not fit inside the band is dropped.

    Returns:
        (rows, number_of_dropped_rows)
    """
    if edge_position == "left":
        band_low = cutout_y + cutout_width + LABEL_GAP
        band_high = plate_width - LABEL_MARGIN
    else:
        band_low = LABEL_MARGIN
        band_high = cutout_y - LABEL_GAP

    available = band_high - band_low
    if available < LABEL_TEXT_SIZE:
        fit = 0
    else:
        fit = 1 + int(math.floor((available - LABEL_TEXT_SIZE) / LABEL_ROW_PITCH))
    kept = texts[: min(fit, len(texts))]

    rows: list[LabelRow] = []
    if edge_position == "left":
        # Block sits against the cutout; first row is the highest.
        for i, text in enumerate(kept):
            y = band_low + (len(kept) - 1 - i) * LABEL_ROW_PITCH
            rows.append(LabelRow(text, cutout_x, y))
    else:
        # Block hangs below the cutout; first row is nearest to it.
        for i, text in enumerate(kept):
            y = band_high - LABEL_TEXT_SIZE - i * LABEL_ROW_PITCH
            rows.append(LabelRow(text, cutout_x, y))

    return tuple(rows), len(texts) - len(kept)


def _build_solid(geom: DerivedGeometry) -> SolidNode:
    """Assemble ``(plate ∪ edge_stop) − (cutout ∪ engraved_text)``."""
    plate = Cube((geom.plate_length, geom.plate_width, geom.thickness))
    edge_stop = Translate(
        (0.0, geom.edge_stop_y, 0.0),
        Cube((geom.plate_length, geom.edge_stop_thickness, geom.overall_height)),
    )
    cutout = Translate(
        (geom.cutout_x, geom.cutout_y, -_CUT_OVERSHOOT),
        rounded_rect(
            geom.cutout_length,
            geom.cutout_width,
            geom.thickness + 2 * _CUT_OVERSHOOT,
            geom.corner_radius,
        ),
    )

    subtract: list[SolidNode] = [cutout]
    if geom.labels:
        depth = min(TEXT_DEPTH, geom.thickness / 2)
        rows = tuple(
            Translate((row.x, row.y, 0.0), Text(row.text, LABEL_TEXT_SIZE))
            for row in geom.labels
        )
        subtract.append(
            Translate(
                (0.0, 0.0, geom.thickness - depth),
                LinearExtrude(depth + _CUT_OVERSHOOT, Union(rows)),
            )
        )

    return Difference(Union((plate, edge_stop)), tuple(subtract))


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def derive(params: TemplateParameters) -> tuple[DerivedGeometry, SolidNode]:
    """Derive template geometry and its solid-model description.

    Raises:
        InvalidOffsetError:      bushing OD smaller than the bit diameter.
        CutoutOutsidePlateError: the cutout would not lie strictly inside
                                 the plate, clear of the edge stop.
        FootprintTooLargeError:  any template dimension exceeds
                                 MAX_BUILD_DIMENSION.
    """
    # 1. Everything to millimetres
    bushing = to_millimeters(params.bushing_od_in)
    bit = to_millimeters(params.bit_diameter_in)
    mortise_length = to_millimeters(params.mortise_length_in)
    mortise_width = to_millimeters(params.mortise_width_in)
    edge_distance = to_millimeters(params.edge_distance_in)
    extension_length = to_millimeters(params.extension_length_in)
    extension_width = to_millimeters(params.extension_width_in)
    thickness = to_millimeters(params.template_thickness_in)

    # 2. Bushing offset
    offset = (bushing - bit) / 2
    if offset < 0:
        raise InvalidOffsetError(
            f"Bushing OD ({params.bushing_od_in:g} in) is smaller than the bit "
            f"diameter ({params.bit_diameter_in:g} in)"
        )

    # 3. Cutout and plate
    cutout_length = mortise_length + 2 * offset
    cutout_width = mortise_width + 2 * offset
    corner_radius = bushing / 2
    max_radius = min(cutout_length, cutout_width) / 2
    clamped = corner_radius > max_radius
    if clamped:
        corner_radius = max_radius

    plate_length = cutout_length + 2 * extension_length
    plate_width = cutout_width + EDGE_STOP_THICKNESS + extension_width

    # 4. Cutout Y depends on which edge carries the stop
    if params.edge_position == "left":
        edge_stop_y = 0.0
        cutout_y = EDGE_STOP_THICKNESS + edge_distance
    else:
        edge_stop_y = plate_width - EDGE_STOP_THICKNESS
        cutout_y = plate_width - edge_distance - cutout_width - EDGE_STOP_THICKNESS

    # 5. Centred lengthwise
    cutout_x = (plate_length - cutout_length) / 2

    # 6. Build volume, then containment
    overall_height = thickness + EDGE_STOP_HEIGHT
    largest = max(plate_length, plate_width, overall_height)
    if largest > MAX_BUILD_DIMENSION:
        raise FootprintTooLargeError(
            f"Template is {plate_length:.1f} x {plate_width:.1f} x "
            f"{overall_height:.1f} mm; maximum is {MAX_BUILD_DIMENSION:.0f} mm per side"
        )

    stop_low, stop_high = edge_stop_y, edge_stop_y + EDGE_STOP_THICKNESS
    cut_low, cut_high = cutout_y, cutout_y + cutout_width
    if cut_low <= 0 or cut_high >= plate_width or cutout_x <= 0:
        raise CutoutOutsidePlateError(
            f"Edge distance ({params.edge_distance_in:g} in) must be smaller than "
            f"the extension width ({params.extension_width_in:g} in)"
        )
    if cut_low < stop_high and cut_high > stop_low:
        raise CutoutOutsidePlateError("Cutout overlaps the edge stop")

    # 7. Labels and solid tree
    labels, dropped = _layout_labels(
        _label_texts(params, to_inches(offset)),
        params.edge_position,
        cutout_x,
        cutout_y,
        cutout_width,
        plate_width,
    )

    geom = DerivedGeometry(
        unit_system=params.unit_system,
        edge_position=params.edge_position,
        offset=offset,
        cutout_length=cutout_length,
        cutout_width=cutout_width,
        corner_radius=corner_radius,
        plate_length=plate_length,
        plate_width=plate_width,
        thickness=thickness,
        cutout_x=cutout_x,
        cutout_y=cutout_y,
        edge_stop_y=edge_stop_y,
        mortise_edge_distance=edge_distance + offset,
        corner_radius_clamped=clamped,
        labels=labels,
        labels_dropped=dropped,
    )
    return geom, _build_solid(geom)
