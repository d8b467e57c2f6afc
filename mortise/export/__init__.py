"""Export pipeline -- the OpenSCAD renderer boundary.

Usage::

    from mortise.export.openscad import render_stl, scratch_space
"""

from __future__ import annotations
