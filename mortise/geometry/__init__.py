"""Geometry engine -- public API re-exports.

Usage::

    from mortise.geometry import derive, build_template, generate_template_safe
"""

from __future__ import annotations

from mortise.geometry.derive import (
    CutoutOutsidePlateError,
    DerivedGeometry,
    FootprintTooLargeError,
    GeometryError,
    InvalidOffsetError,
    derive,
)
from mortise.geometry.engine import (
    build_template,
    compute_derived_values,
    generate_template_safe,
)

__all__ = [
    "CutoutOutsidePlateError",
    "DerivedGeometry",
    "FootprintTooLargeError",
    "GeometryError",
    "InvalidOffsetError",
    "build_template",
    "compute_derived_values",
    "derive",
    "generate_template_safe",
]
