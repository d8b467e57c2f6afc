"""Router mortise template generator.

Turns router bushing and bit measurements into a printable STL template:
unit conversion, template geometry, OpenSCAD rendering, STL encode/decode
and preview normalization, served over a FastAPI app (``mortise.main:app``).
"""

__version__ = "0.1.0"
