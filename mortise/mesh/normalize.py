"""Mesh normalization for on-screen preview.

Centres a mesh on its bounding-box centre and scales it uniformly so the
largest extent equals a fixed display size.  Uniform positive scaling and
translation leave face normals unchanged, so only vertices are rewritten.
"""

from __future__ import annotations

import logging

import numpy as np
from numpy.typing import NDArray

from mortise.mesh.stl import DegenerateMeshError, EmptyMeshError, Mesh

logger = logging.getLogger("mortise.normalize")

# Largest bounding-box dimension after normalization (display units).
DISPLAY_TARGET_SIZE = 2.0


def bounding_box(mesh: Mesh) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
    """Return ``(min_xyz, max_xyz)`` of all vertices.

    Raises:
        EmptyMeshError: the mesh has no triangles.
    """
    if mesh.triangle_count == 0:
        raise EmptyMeshError("Cannot compute the bounding box of an empty mesh")
    positions = mesh.positions.astype(np.float64)
    return positions.min(axis=0), positions.max(axis=0)


def normalize(
    mesh: Mesh,
    target_size: float = DISPLAY_TARGET_SIZE,
    *,
    strict: bool = False,
) -> Mesh:
    """Centre *mesh* at the origin and scale its largest extent to *target_size*.

    Empty meshes and meshes whose bounding box has zero or non-finite size
    cannot be scaled; they are returned unchanged, or with ``strict=True``
    raise EmptyMeshError / DegenerateMeshError.
    """
    if target_size <= 0:
        raise ValueError(f"target_size must be positive, got {target_size}")

    if mesh.triangle_count == 0:
        if strict:
            raise EmptyMeshError("Cannot normalize an empty mesh")
        logger.warning("normalize: empty mesh returned unchanged")
        return mesh

    lo, hi = bounding_box(mesh)
    max_dim = float(np.max(hi - lo))
    if not np.isfinite(max_dim) or max_dim <= 0.0:
        if strict:
            raise DegenerateMeshError(
                f"Bounding box has zero or non-finite size ({max_dim})"
            )
        logger.warning("normalize: degenerate bounding box, mesh returned unchanged")
        return mesh

    center = (lo + hi) / 2.0
    scale = target_size / max_dim
    vertices = (mesh.vertices.astype(np.float64) - center) * scale

    return Mesh(normals=mesh.normals.copy(), vertices=vertices.astype(np.float32))
