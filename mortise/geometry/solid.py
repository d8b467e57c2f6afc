"""Solid-model description -- a small CSG tree and its OpenSCAD serialization.

The geometry layer builds a tree of immutable nodes; ``to_scad()`` turns it
into the declarative script consumed by the external OpenSCAD renderer.
Nodes carry millimetre dimensions and no behaviour beyond serialization, so
tests can inspect the tree directly without invoking the renderer.

Supported nodes::

    Cube, Cylinder, Text                    -- primitives
    Translate, LinearExtrude                -- transforms
    Hull, Union, Difference                 -- boolean / hull operations
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator

Vec3 = tuple[float, float, float]

# Default polygon segments per circle ($fn) for cylinders.
DEFAULT_SEGMENTS = 50


# ---------------------------------------------------------------------------
# Nodes
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Cube:
    """Axis-aligned box with one corner at the origin."""

    size: Vec3


@dataclass(frozen=True, slots=True)
class Cylinder:
    """Z-axis cylinder with its base centred on the origin."""

    height: float
    radius: float


@dataclass(frozen=True, slots=True)
class Text:
    """2D text outline; only meaningful inside a LinearExtrude."""

    text: str
    size: float
    halign: str = "left"


@dataclass(frozen=True, slots=True)
class Translate:
    offset: Vec3
    child: "SolidNode"


@dataclass(frozen=True, slots=True)
class LinearExtrude:
    height: float
    child: "SolidNode"


@dataclass(frozen=True, slots=True)
class Hull:
    children: tuple["SolidNode", ...]


@dataclass(frozen=True, slots=True)
class Union:
    children: tuple["SolidNode", ...]


@dataclass(frozen=True, slots=True)
class Difference:
    """``base`` minus every node in ``subtract``."""

    base: "SolidNode"
    subtract: tuple["SolidNode", ...] = field(default_factory=tuple)


SolidNode = Cube | Cylinder | Text | Translate | LinearExtrude | Hull | Union | Difference


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def rounded_rect(length: float, width: float, height: float, radius: float) -> Hull:
    """Rounded rectangle as the convex hull of four corner cylinders.

    The footprint spans ``[0, length] x [0, width]``; ``radius`` must not
    exceed half of the smaller side.
    """
    if radius <= 0:
        raise ValueError(f"radius must be positive, got {radius}")
    if 2 * radius > min(length, width) + 1e-9:
        raise ValueError(
            f"radius {radius} too large for {length} x {width} rectangle"
        )
    corners = (
        (radius, radius),
        (length - radius, radius),
        (radius, width - radius),
        (length - radius, width - radius),
    )
    return Hull(
        tuple(
            Translate((x, y, 0.0), Cylinder(height=height, radius=radius))
            for x, y in corners
        )
    )


def walk(node: SolidNode) -> Iterator[SolidNode]:
    """Yield every node of the tree in depth-first pre-order."""
    yield node
    if isinstance(node, (Translate, LinearExtrude)):
        yield from walk(node.child)
    elif isinstance(node, (Hull, Union)):
        for child in node.children:
            yield from walk(child)
    elif isinstance(node, Difference):
        yield from walk(node.base)
        for child in node.subtract:
            yield from walk(child)


# ---------------------------------------------------------------------------
# OpenSCAD serialization
# ---------------------------------------------------------------------------


def _num(value: float) -> str:
    """Format a float compactly with 0.1 micron resolution."""
    text = f"{value:.4f}".rstrip("0").rstrip(".")
    if text in ("-0", ""):
        return "0"
    return text


def _vec(v: Vec3) -> str:
    return "[" + ", ".join(_num(c) for c in v) + "]"


def _string(text: str) -> str:
    """Quote a string literal for the OpenSCAD language."""
    escaped = text.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def _emit(node: SolidNode, segments: int, depth: int, out: list[str]) -> None:
    pad = "    " * depth

    def block(header: str, children: tuple[SolidNode, ...]) -> None:
        out.append(f"{pad}{header} {{")
        for child in children:
            _emit(child, segments, depth + 1, out)
        out.append(f"{pad}}}")

    if isinstance(node, Cube):
        out.append(f"{pad}cube({_vec(node.size)});")
    elif isinstance(node, Cylinder):
        out.append(
            f"{pad}cylinder(h={_num(node.height)}, r={_num(node.radius)}, $fn={segments});"
        )
    elif isinstance(node, Text):
        out.append(
            f"{pad}text({_string(node.text)}, size={_num(node.size)}, "
            f"halign={_string(node.halign)});"
        )
    elif isinstance(node, Translate):
        block(f"translate({_vec(node.offset)})", (node.child,))
    elif isinstance(node, LinearExtrude):
        block(f"linear_extrude(height={_num(node.height)})", (node.child,))
    elif isinstance(node, Hull):
        block("hull()", node.children)
    elif isinstance(node, Union):
        block("union()", node.children)
    elif isinstance(node, Difference):
        block("difference()", (node.base, *node.subtract))
    else:
        raise TypeError(f"Unsupported solid node: {type(node).__name__}")


def to_scad(node: SolidNode, segments: int = DEFAULT_SEGMENTS, header: str = "") -> str:
    """Serialize a solid tree into an OpenSCAD script.

    Args:
        node:     Root of the tree.
        segments: Polygon segments per circle, emitted as ``$fn``.
        header:   Optional comment text placed at the top of the script.

    Returns:
        The script text, newline terminated.
    """
    if segments < 3:
        raise ValueError(f"segments must be >= 3, got {segments}")
    out: list[str] = []
    for line in header.splitlines():
        out.append(f"// {line}" if line else "//")
    _emit(node, segments, 0, out)
    return "\n".join(out) + "\n"
