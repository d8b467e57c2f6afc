"""STL mesh codec -- binary and ASCII, with format detection.

Mesh is a flat, non-indexed triangle list: every triangle stores its own
three vertices plus one face normal, exactly as STL does.  Arrays are
float32 so that ``decode(encode(mesh)) == mesh`` holds bit-for-bit.

Binary STL layout (little-endian):
  - 80-byte header (arbitrary; ours never starts with ``solid``)
  - uint32 triangle count
  - per triangle, 50 bytes: normal (3 x float32), 3 vertices (9 x float32),
    uint16 attribute byte count (written as 0, ignored on read)

ASCII STL layout::

    solid <name>
      facet normal nx ny nz
        outer loop
          vertex x y z
          vertex x y z
          vertex x y z
        endloop
      endfacet
    endsolid <name>

Detection: a buffer is binary if and only if its length is exactly
``84 + 50 * n`` for the declared count ``n`` (and ``n`` is plausible).
Anything else must be text containing the ``solid`` token.
"""

from __future__ import annotations

import logging
import re
import struct
from dataclasses import dataclass, field
from typing import Literal

import numpy as np
from numpy.typing import NDArray

logger = logging.getLogger("mortise.stl")

StlForm = Literal["binary", "ascii"]

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

HEADER_SIZE = 80
COUNT_SIZE = 4
MAX_TRIANGLES = 5_000_000

BINARY_HEADER = b"mortise template generator - binary STL".ljust(HEADER_SIZE, b"\x00")
DEFAULT_SOLID_NAME = "mortise_template"

# Structured record matching the 50-byte binary triangle (no padding).
STL_RECORD = np.dtype(
    [
        ("normal", "<f4", (3,)),
        ("vertices", "<f4", (3, 3)),
        ("attribute", "<u2"),
    ]
)
RECORD_SIZE = STL_RECORD.itemsize  # 50

_SOLID_TOKEN = re.compile(r"\bsolid\b")
_NAME_LINES = frozenset({"solid", "endsolid"})


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class MeshError(ValueError):
    """Base class: the bytes do not describe a usable triangle mesh."""

    kind = "mesh_error"


class UnrecognizedFormatError(MeshError):
    """Neither a well-formed binary nor an ASCII STL."""

    kind = "unrecognized_format"


class TruncatedMeshError(MeshError):
    """The data ends before the declared or opened content is complete."""

    kind = "truncated"


class EmptyMeshError(MeshError):
    """Valid container with no triangles in it."""

    kind = "empty_mesh"


class DegenerateMeshError(MeshError):
    """Bounding box has zero size, so the mesh cannot be scaled."""

    kind = "degenerate_mesh"


# ---------------------------------------------------------------------------
# Mesh
# ---------------------------------------------------------------------------


@dataclass(frozen=True, eq=False)
class Mesh:
    """Non-indexed triangle mesh.

    Attributes:
        normals:  Shape (M, 3), dtype float32.  One face normal per triangle.
        vertices: Shape (M, 3, 3), dtype float32.  Three (x, y, z) corners
                  per triangle.
    """

    normals: NDArray[np.float32] = field(
        default_factory=lambda: np.zeros((0, 3), dtype=np.float32)
    )
    vertices: NDArray[np.float32] = field(
        default_factory=lambda: np.zeros((0, 3, 3), dtype=np.float32)
    )

    def __post_init__(self) -> None:
        normals = np.ascontiguousarray(self.normals, dtype=np.float32)
        vertices = np.ascontiguousarray(self.vertices, dtype=np.float32)
        if normals.ndim != 2 or normals.shape[1] != 3:
            raise ValueError(f"normals must have shape (M, 3), got {normals.shape}")
        if vertices.shape != (normals.shape[0], 3, 3):
            raise ValueError(
                f"vertices must have shape ({normals.shape[0]}, 3, 3), got {vertices.shape}"
            )
        object.__setattr__(self, "normals", normals)
        object.__setattr__(self, "vertices", vertices)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Mesh):
            return NotImplemented
        return bool(
            np.array_equal(self.normals, other.normals)
            and np.array_equal(self.vertices, other.vertices)
        )

    __hash__ = None  # type: ignore[assignment]

    @classmethod
    def from_triangles(cls, vertices: NDArray[np.floating]) -> "Mesh":
        """Build a mesh from (M, 3, 3) corners, computing unit face normals.

        Normals follow the right-hand rule (counter-clockwise winding faces
        outward).  Zero-area triangles get a zero normal.
        """
        v = np.asarray(vertices, dtype=np.float64).reshape(-1, 3, 3)
        n = np.cross(v[:, 1] - v[:, 0], v[:, 2] - v[:, 0])
        lengths = np.linalg.norm(n, axis=1, keepdims=True)
        n = np.divide(n, lengths, out=np.zeros_like(n), where=lengths > 1e-12)
        return cls(normals=n.astype(np.float32), vertices=v.astype(np.float32))

    def __len__(self) -> int:
        return self.triangle_count

    @property
    def triangle_count(self) -> int:
        """Number of triangles."""
        return self.normals.shape[0]

    @property
    def vertex_count(self) -> int:
        """Number of vertices; always three per triangle."""
        return self.triangle_count * 3

    @property
    def positions(self) -> NDArray[np.float32]:
        """Shape (3M, 3) view of all vertex positions in triangle order."""
        return self.vertices.reshape(-1, 3)

    @property
    def vertex_normals(self) -> NDArray[np.float32]:
        """Shape (3M, 3): each face normal repeated for its three vertices."""
        return np.repeat(self.normals, 3, axis=0)

    def to_binary_frame(self) -> bytes:
        """Pack into the preview transport frame.

        Layout:
          [msg_type: uint32 = 0x01][vertex_count: uint32][triangle_count: uint32]
          [positions: 3M*12 bytes][vertex normals: 3M*12 bytes]

        Normals are flat: each triangle's face normal is copied to its three
        vertices, never interpolated.
        """
        header = struct.pack("<III", 0x01, self.vertex_count, self.triangle_count)
        return (
            header
            + self.positions.astype("<f4").tobytes()
            + self.vertex_normals.astype("<f4").tobytes()
        )


# ---------------------------------------------------------------------------
# Detection
# ---------------------------------------------------------------------------


def _declared_count(data: bytes) -> int | None:
    if len(data) < HEADER_SIZE + COUNT_SIZE:
        return None
    (count,) = struct.unpack_from("<I", data, HEADER_SIZE)
    return count


def _as_text(data: bytes) -> str | None:
    """Return *data* as text if it plausibly is an ASCII STL, else None."""
    # Solid names are free text in any encoding; only keywords and numbers matter.
    text = data.decode("utf-8", errors="replace")
    if "\x00" in text or _SOLID_TOKEN.search(text) is None:
        return None
    return text


def _is_binary(data: bytes) -> bool:
    count = _declared_count(data)
    return (
        count is not None
        and count <= MAX_TRIANGLES
        and len(data) == HEADER_SIZE + COUNT_SIZE + RECORD_SIZE * count
    )


def detect_format(data: bytes) -> StlForm:
    """Classify *data* as ``"binary"`` or ``"ascii"`` STL.

    Raises:
        EmptyMeshError:          zero-length buffer.
        TruncatedMeshError:      binary header declares more triangles than
                                 the buffer holds.
        UnrecognizedFormatError: anything else that is neither form.
    """
    if not data:
        raise EmptyMeshError("STL data is empty")
    if _is_binary(data):
        return "binary"
    if _as_text(data) is not None:
        return "ascii"

    count = _declared_count(data)
    if count is None:
        raise UnrecognizedFormatError(
            f"STL data is too small to be valid ({len(data)} bytes) and is not ASCII"
        )
    if count > MAX_TRIANGLES:
        raise UnrecognizedFormatError(
            f"Implausible triangle count {count} (max {MAX_TRIANGLES})"
        )
    expected = HEADER_SIZE + COUNT_SIZE + RECORD_SIZE * count
    if len(data) < expected:
        raise TruncatedMeshError(
            f"STL data appears to be truncated: header declares {count} triangles "
            f"({expected} bytes) but only {len(data)} bytes are present"
        )
    raise UnrecognizedFormatError(
        f"STL data has {len(data) - expected} unexpected trailing bytes"
    )


# ---------------------------------------------------------------------------
# Decode
# ---------------------------------------------------------------------------


def _decode_binary(data: bytes) -> Mesh:
    count = _declared_count(data)
    if count is None:
        raise TruncatedMeshError(f"STL data is too short for a binary header ({len(data)} bytes)")
    if count == 0:
        raise EmptyMeshError("STL file contains no triangles")
    expected = HEADER_SIZE + COUNT_SIZE + RECORD_SIZE * count
    if len(data) < expected:
        raise TruncatedMeshError(
            f"STL data appears to be truncated: need {expected} bytes, have {len(data)}"
        )
    records = np.frombuffer(
        data, dtype=STL_RECORD, count=count, offset=HEADER_SIZE + COUNT_SIZE
    )
    return Mesh(
        normals=records["normal"].astype(np.float32),
        vertices=records["vertices"].astype(np.float32),
    )


def _parse_float(token: str, what: str) -> float:
    try:
        return float(token)
    except ValueError:
        raise UnrecognizedFormatError(f"Invalid number {token!r} in {what}") from None


def _ascii_tokens(text: str) -> list[str]:
    """Whitespace tokens of *text*, minus the free-text ``solid`` / ``endsolid`` lines."""
    tokens: list[str] = []
    for line in text.splitlines():
        words = line.split()
        if words and words[0] in _NAME_LINES:
            continue
        tokens.extend(words)
    return tokens


def _decode_ascii(text: str) -> Mesh:
    tokens = _ascii_tokens(text)
    n = len(tokens)
    normals: list[tuple[float, float, float]] = []
    vertices: list[list[tuple[float, float, float]]] = []

    def take3(i: int, what: str) -> tuple[tuple[float, float, float], int]:
        if i + 3 > n:
            raise TruncatedMeshError(f"ASCII STL ends inside {what}")
        return (
            (
                _parse_float(tokens[i], what),
                _parse_float(tokens[i + 1], what),
                _parse_float(tokens[i + 2], what),
            ),
            i + 3,
        )

    i = 0
    facet_index = 0
    while i < n:
        if tokens[i] != "facet":
            i += 1
            continue

        facet_index += 1
        i += 1
        if i < n and tokens[i] == "normal":
            normal, i = take3(i + 1, f"facet {facet_index} normal")
        else:
            normal = (0.0, 0.0, 0.0)

        corners: list[tuple[float, float, float]] = []
        while True:
            if i >= n:
                raise TruncatedMeshError(
                    f"ASCII STL ends before 'endfacet' of facet {facet_index}"
                )
            token = tokens[i]
            if token == "endfacet":
                i += 1
                break
            if token == "facet":
                raise UnrecognizedFormatError(
                    f"Facet {facet_index} is missing 'endfacet'"
                )
            if token == "vertex":
                vertex, i = take3(i + 1, f"facet {facet_index} vertex")
                corners.append(vertex)
            else:
                i += 1  # 'outer', 'loop', 'endloop'

        if not corners:
            logger.debug("Skipping facet %d with no vertices", facet_index)
            continue
        if len(corners) != 3:
            raise UnrecognizedFormatError(
                f"Facet {facet_index} has {len(corners)} vertices, expected 3"
            )
        normals.append(normal)
        vertices.append(corners)

    if not normals:
        raise EmptyMeshError("ASCII STL contains no facets")

    return Mesh(
        normals=np.array(normals, dtype=np.float32),
        vertices=np.array(vertices, dtype=np.float32),
    )


def decode(data: bytes) -> Mesh:
    """Decode binary or ASCII STL bytes into a Mesh.

    Raises:
        EmptyMeshError, TruncatedMeshError, UnrecognizedFormatError
    """
    data = bytes(data)
    form = detect_format(data)
    if form == "binary":
        mesh = _decode_binary(data)
    else:
        mesh = _decode_ascii(data.decode("utf-8", errors="replace"))
    logger.debug("Decoded %s STL: %d triangles", form, mesh.triangle_count)
    return mesh


# ---------------------------------------------------------------------------
# Encode
# ---------------------------------------------------------------------------


def _encode_binary(mesh: Mesh) -> bytes:
    records = np.zeros(mesh.triangle_count, dtype=STL_RECORD)
    records["normal"] = mesh.normals
    records["vertices"] = mesh.vertices
    return BINARY_HEADER + struct.pack("<I", mesh.triangle_count) + records.tobytes()


def _f(value: np.float32) -> str:
    # 9 significant digits round-trip any float32 exactly.
    return f"{float(value):.8e}"


def _encode_ascii(mesh: Mesh, name: str) -> bytes:
    lines = [f"solid {name}"]
    for normal, corners in zip(mesh.normals, mesh.vertices):
        lines.append(f"  facet normal {_f(normal[0])} {_f(normal[1])} {_f(normal[2])}")
        lines.append("    outer loop")
        for v in corners:
            lines.append(f"      vertex {_f(v[0])} {_f(v[1])} {_f(v[2])}")
        lines.append("    endloop")
        lines.append("  endfacet")
    lines.append(f"endsolid {name}")
    return ("\n".join(lines) + "\n").encode("ascii")


def encode(mesh: Mesh, form: StlForm = "binary", name: str = DEFAULT_SOLID_NAME) -> bytes:
    """Encode a Mesh as binary or ASCII STL bytes.

    ``name`` is used only by the ASCII form and must be a single token.
    """
    if form == "binary":
        return _encode_binary(mesh)
    if form == "ascii":
        if not name or any(c.isspace() for c in name):
            raise ValueError(f"ASCII STL solid name must be one token, got {name!r}")
        return _encode_ascii(mesh, name)
    raise ValueError(f"Unknown STL form: {form!r}")
