"""OpenSCAD renderer boundary -- script in, STL bytes out.

The renderer is an external command-line tool treated as a black box.  Each
invocation works inside a scratch directory supplied by the caller (see
``scratch_space()``), so concurrent requests never share file names and the
pure geometry code never touches the filesystem.

Configuration (environment variables):
  OPENSCAD_BIN             -- renderer executable (default ``openscad``)
  MORTISE_RENDER_TIMEOUT   -- seconds before a render is abandoned (default 120)
  MORTISE_CIRCLE_SEGMENTS  -- ``$fn`` used for cylinders (default 50)
  MORTISE_DATA_DIR         -- parent of the ``scratch`` directory
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

logger = logging.getLogger("mortise.render")

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

OPENSCAD_BIN: str = os.environ.get("OPENSCAD_BIN", "openscad")
RENDER_TIMEOUT_SECONDS: float = float(os.environ.get("MORTISE_RENDER_TIMEOUT", "120"))
CIRCLE_SEGMENTS: int = int(os.environ.get("MORTISE_CIRCLE_SEGMENTS", "50"))
SCRATCH_DIR: Path = Path(os.environ.get("MORTISE_DATA_DIR", tempfile.gettempdir())) / "scratch"

SCAD_FILENAME = "template.scad"
STL_FILENAME = "template.stl"

# Characters of renderer stderr kept in error messages.
_STDERR_TAIL = 500


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class RenderError(RuntimeError):
    """The external renderer failed or produced no output."""


class RendererNotFoundError(RenderError):
    """The renderer executable could not be located."""


class RenderTimeoutError(RenderError):
    """The renderer did not finish within the configured timeout."""


# ---------------------------------------------------------------------------
# Scratch space
# ---------------------------------------------------------------------------


@contextmanager
def scratch_space(base_dir: Path | None = None) -> Iterator[Path]:
    """Yield a private, empty directory that is removed on exit.

    ``base_dir`` defaults to SCRATCH_DIR, which the periodic cleanup task
    also sweeps in case a process dies mid-render.
    """
    base = SCRATCH_DIR if base_dir is None else base_dir
    base.mkdir(parents=True, exist_ok=True)
    with tempfile.TemporaryDirectory(dir=str(base), prefix="render_") as tmp:
        yield Path(tmp)


def resolve_openscad(openscad_bin: str | None = None) -> str:
    """Return the full path of the renderer executable.

    Raises:
        RendererNotFoundError: if neither the given path nor PATH lookup finds it.
    """
    candidate = openscad_bin or OPENSCAD_BIN
    if Path(candidate).is_file():
        return candidate
    found = shutil.which(candidate)
    if found is None:
        raise RendererNotFoundError(
            f"OpenSCAD executable not found: {candidate!r}. "
            "Install OpenSCAD or set OPENSCAD_BIN."
        )
    return found


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


def render_stl(
    script: str,
    scratch_dir: Path,
    *,
    openscad_bin: str | None = None,
    timeout: float | None = None,
) -> bytes:
    """Render an OpenSCAD script to STL bytes.

    Writes ``template.scad`` into *scratch_dir*, runs the renderer, and reads
    back ``template.stl``.  The caller owns *scratch_dir* and its lifetime.

    Raises:
        RendererNotFoundError: executable missing.
        RenderTimeoutError:    renderer exceeded *timeout* seconds.
        RenderError:           non-zero exit or no output file.
    """
    executable = resolve_openscad(openscad_bin)
    limit = RENDER_TIMEOUT_SECONDS if timeout is None else timeout

    scad_path = scratch_dir / SCAD_FILENAME
    stl_path = scratch_dir / STL_FILENAME
    scad_path.write_text(script, encoding="utf-8")

    logger.debug("Rendering %s (%d bytes of script)", scad_path, len(script))
    try:
        result = subprocess.run(
            [executable, "-o", str(stl_path), str(scad_path)],
            capture_output=True,
            text=True,
            timeout=limit,
            check=False,
        )
    except FileNotFoundError as exc:
        raise RendererNotFoundError(f"OpenSCAD executable vanished: {executable}") from exc
    except subprocess.TimeoutExpired as exc:
        raise RenderTimeoutError(f"OpenSCAD render timed out after {limit:.0f} s") from exc

    if result.stderr:
        logger.debug("OpenSCAD stderr: %s", result.stderr[-_STDERR_TAIL:])

    if result.returncode != 0:
        raise RenderError(
            f"OpenSCAD exited with status {result.returncode}: "
            f"{result.stderr[-_STDERR_TAIL:].strip()}"
        )

    if not stl_path.is_file():
        raise RenderError("OpenSCAD finished without writing an STL file")

    data = stl_path.read_bytes()
    logger.info("Rendered STL: %d bytes", len(data))
    return data
