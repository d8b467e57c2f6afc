"""Validation rules; compute non-blocking warnings for a template.

Implements:
  - W01-W02  measurement sanity (bit vs. mortise, bit vs. bushing)
  - W03-W05  derived-geometry compromises (clamped radius, bed size, labels)
  - W06      printability (thin plate)

All warnings are level="warn" and never block generation.  Hard errors
(bushing smaller than bit, oversized footprint, cutout outside the plate) are
raised by ``mortise.geometry.derive`` instead.
"""

from __future__ import annotations

from mortise.geometry.derive import DerivedGeometry
from mortise.models import TemplateParameters, ValidationWarning
from mortise.units import to_millimeters

# Typical hobby printer bed edge (mm); larger templates need a big printer.
TYPICAL_BED_SIZE = 220.0

# Below 1/8" the plate is fragile and shorter than most bushing collars.
MIN_COMFORTABLE_THICKNESS_IN = 0.125


# ---------------------------------------------------------------------------
# Measurement sanity (W01 - W02)
# ---------------------------------------------------------------------------


def _check_w01(params: TemplateParameters, out: list[ValidationWarning]) -> None:
    """W01: bit wider than the mortise; the bit cannot cut it."""
    if params.bit_diameter_in > params.mortise_width_in:
        out.append(
            ValidationWarning(
                id="W01",
                message="Bit is wider than the mortise; the mortise cannot be cut with this bit",
                fields=["bit_diameter_in", "mortise_width_in"],
            )
        )


def _check_w02(params: TemplateParameters, out: list[ValidationWarning]) -> None:
    """W02: bushing equals bit; zero offset usually means a measurement mix-up."""
    if params.bushing_od_in == params.bit_diameter_in:
        out.append(
            ValidationWarning(
                id="W02",
                message="Bushing OD equals bit diameter; check you measured the bushing, not its bore",
                fields=["bushing_od_in", "bit_diameter_in"],
            )
        )


# ---------------------------------------------------------------------------
# Derived geometry (W03 - W05)
# ---------------------------------------------------------------------------


def _check_w03(geom: DerivedGeometry, out: list[ValidationWarning]) -> None:
    """W03: corner radius reduced to fit the cutout."""
    if geom.corner_radius_clamped:
        out.append(
            ValidationWarning(
                id="W03",
                message="Cutout corners were tightened; the bushing will not reach them",
                fields=["bushing_od_in", "mortise_width_in"],
            )
        )


def _check_w04(geom: DerivedGeometry, out: list[ValidationWarning]) -> None:
    """W04: footprint larger than a typical printer bed."""
    if max(geom.plate_length, geom.plate_width) > TYPICAL_BED_SIZE:
        out.append(
            ValidationWarning(
                id="W04",
                message=(
                    f"Template is larger than a typical {TYPICAL_BED_SIZE:.0f} mm print bed"
                ),
                fields=["extension_length_in", "extension_width_in"],
            )
        )


def _check_w05(geom: DerivedGeometry, out: list[ValidationWarning]) -> None:
    """W05: not every measurement label fits beside the cutout."""
    if geom.labels_dropped:
        out.append(
            ValidationWarning(
                id="W05",
                message=(
                    f"{geom.labels_dropped} measurement label(s) omitted; "
                    "increase the extension width to engrave all of them"
                ),
                fields=["extension_width_in", "edge_distance_in"],
            )
        )


# ---------------------------------------------------------------------------
# Printability (W06)
# ---------------------------------------------------------------------------


def _check_w06(params: TemplateParameters, out: list[ValidationWarning]) -> None:
    """W06: thin template plate."""
    if params.template_thickness_in < MIN_COMFORTABLE_THICKNESS_IN:
        out.append(
            ValidationWarning(
                id="W06",
                message=(
                    f"Template is only {to_millimeters(params.template_thickness_in):.1f} mm "
                    "thick; fragile, and the bushing collar may protrude"
                ),
                fields=["template_thickness_in"],
            )
        )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def compute_warnings(
    params: TemplateParameters, geom: DerivedGeometry | None = None
) -> list[ValidationWarning]:
    """Return all applicable warnings.

    Geometry-based checks (W03-W05) run only when *geom* is supplied.
    """
    out: list[ValidationWarning] = []
    _check_w01(params, out)
    _check_w02(params, out)
    if geom is not None:
        _check_w03(geom, out)
        _check_w04(geom, out)
        _check_w05(geom, out)
    _check_w06(params, out)
    return out
