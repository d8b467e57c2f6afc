"""Shared fixtures for mortise tests."""

from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest

from mortise.mesh.stl import Mesh, encode
from mortise.models import SavedTemplate, TemplateParameters
from mortise.storage import LocalStorage


# ---------------------------------------------------------------------------
# Parameter fixtures (used by geometry & validation tests)
# ---------------------------------------------------------------------------


@pytest.fixture
def default_params() -> TemplateParameters:
    """A TemplateParameters with all default values (5/16" bushing, 1/4" bit, left fence)."""
    return TemplateParameters()


@pytest.fixture
def right_params() -> TemplateParameters:
    """The 5/16" bushing / 1/4" bit case with the fence on the right."""
    return TemplateParameters(
        unit_system="imperial",
        bushing_od_in=0.3125,
        bit_diameter_in=0.25,
        mortise_length_in=1.75,
        mortise_width_in=0.375,
        edge_distance_in=0.25,
        edge_position="right",
        extension_length_in=3.0,
        extension_width_in=3.0,
        template_thickness_in=0.25,
    )


@pytest.fixture
def metric_params() -> TemplateParameters:
    """Default measurements displayed in millimetres."""
    return TemplateParameters(unit_system="metric")


# ---------------------------------------------------------------------------
# Mesh fixtures
# ---------------------------------------------------------------------------


def _box_triangles(lx: float, ly: float, lz: float) -> np.ndarray:
    """12 outward-wound triangles of an axis-aligned box at the origin."""
    p = np.array(
        [
            [0, 0, 0], [lx, 0, 0], [lx, ly, 0], [0, ly, 0],
            [0, 0, lz], [lx, 0, lz], [lx, ly, lz], [0, ly, lz],
        ],
        dtype=np.float64,
    )
    faces = [
        (0, 2, 1), (0, 3, 2),  # bottom
        (4, 5, 6), (4, 6, 7),  # top
        (0, 1, 5), (0, 5, 4),  # front
        (2, 3, 7), (2, 7, 6),  # back
        (1, 2, 6), (1, 6, 5),  # right
        (3, 0, 4), (3, 4, 7),  # left
    ]
    return p[np.array(faces)]


@pytest.fixture
def box_mesh() -> Mesh:
    """A 200 x 100 x 20 box, roughly the size of a rendered template."""
    return Mesh.from_triangles(_box_triangles(200.0, 100.0, 20.0))


@pytest.fixture
def box_stl_ascii(box_mesh: Mesh) -> bytes:
    """The box mesh as ASCII STL, the form OpenSCAD writes by default."""
    return encode(box_mesh, "ascii", name="OpenSCAD_Model")


@pytest.fixture
def random_mesh() -> Mesh:
    """A reproducible mesh of arbitrary (finite) float32 triangles."""
    rng = np.random.default_rng(1234)
    vertices = rng.uniform(-500.0, 500.0, size=(2000, 3, 3)).astype(np.float32)
    normals = rng.uniform(-1.0, 1.0, size=(2000, 3)).astype(np.float32)
    return Mesh(normals=normals, vertices=vertices)


# ---------------------------------------------------------------------------
# Storage fixtures (used by route/storage tests)
# ---------------------------------------------------------------------------


@pytest.fixture
def tmp_storage(tmp_path: Path) -> LocalStorage:
    """Return a LocalStorage instance backed by a temporary directory."""
    return LocalStorage(base_path=str(tmp_path))


@pytest.fixture
def populated_storage(tmp_storage: LocalStorage) -> LocalStorage:
    """Return a LocalStorage holding one default template, id "test-001"."""
    tmp_storage.put(SavedTemplate(id="test-001", name="Test Template"))
    return tmp_storage
