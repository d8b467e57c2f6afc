"""Mesh interchange -- STL codec and display normalization.

Usage::

    from mortise.mesh import decode, encode, normalize
"""

from __future__ import annotations

from mortise.mesh.normalize import bounding_box, normalize
from mortise.mesh.stl import (
    DegenerateMeshError,
    EmptyMeshError,
    Mesh,
    MeshError,
    TruncatedMeshError,
    UnrecognizedFormatError,
    decode,
    detect_format,
    encode,
)

__all__ = [
    "DegenerateMeshError",
    "EmptyMeshError",
    "Mesh",
    "MeshError",
    "TruncatedMeshError",
    "UnrecognizedFormatError",
    "bounding_box",
    "decode",
    "detect_format",
    "encode",
    "normalize",
]
