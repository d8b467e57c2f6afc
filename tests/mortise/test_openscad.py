"""Tests for the OpenSCAD renderer boundary (subprocess mocked)."""

from __future__ import annotations

import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest

from mortise.export.openscad import (
    SCAD_FILENAME,
    RenderError,
    RendererNotFoundError,
    RenderTimeoutError,
    render_stl,
    resolve_openscad,
    scratch_space,
)

FAKE_BIN = "/opt/fake/openscad"


def _fake_run(stl: bytes, returncode: int = 0, stderr: str = ""):
    """Build a subprocess.run replacement that writes *stl* to the -o path."""

    def run(cmd, **kwargs):
        if returncode == 0 and stl:
            Path(cmd[2]).write_bytes(stl)
        return subprocess.CompletedProcess(cmd, returncode, stdout="", stderr=stderr)

    return run


@pytest.fixture
def fake_which():
    with patch("mortise.export.openscad.shutil.which", return_value=FAKE_BIN) as m:
        yield m


class TestResolve:
    def test_found_on_path(self, fake_which) -> None:
        assert resolve_openscad("openscad-nightly") == FAKE_BIN
        fake_which.assert_called_once_with("openscad-nightly")

    def test_explicit_file(self, tmp_path: Path) -> None:
        exe = tmp_path / "openscad"
        exe.write_text("#!/bin/sh\n")
        assert resolve_openscad(str(exe)) == str(exe)

    def test_missing(self) -> None:
        with patch("mortise.export.openscad.shutil.which", return_value=None):
            with pytest.raises(RendererNotFoundError, match="OPENSCAD_BIN"):
                resolve_openscad("no-such-openscad")


class TestScratchSpace:
    def test_private_directory_removed_on_exit(self, tmp_path: Path) -> None:
        with scratch_space(tmp_path) as scratch:
            assert scratch.is_dir()
            assert scratch.parent == tmp_path
            assert scratch.name.startswith("render_")
            (scratch / "template.scad").write_text("cube(1);")
        assert not scratch.exists()

    def test_concurrent_scopes_do_not_collide(self, tmp_path: Path) -> None:
        with scratch_space(tmp_path) as a, scratch_space(tmp_path) as b:
            assert a != b


class TestRenderStl:
    def test_success(self, tmp_path: Path, fake_which) -> None:
        with patch(
            "mortise.export.openscad.subprocess.run", side_effect=_fake_run(b"solid x\nendsolid x\n")
        ) as run:
            data = render_stl("cube([1, 1, 1]);\n", tmp_path, timeout=5)

        assert data == b"solid x\nendsolid x\n"
        assert (tmp_path / SCAD_FILENAME).read_text() == "cube([1, 1, 1]);\n"
        cmd = run.call_args.args[0]
        assert cmd[0] == FAKE_BIN
        assert cmd[1] == "-o"
        assert cmd[3] == str(tmp_path / SCAD_FILENAME)
        assert run.call_args.kwargs["timeout"] == 5

    def test_nonzero_exit(self, tmp_path: Path, fake_which) -> None:
        with patch(
            "mortise.export.openscad.subprocess.run",
            side_effect=_fake_run(b"", returncode=1, stderr="ERROR: Parser error in line 3"),
        ):
            with pytest.raises(RenderError, match="Parser error"):
                render_stl("cube(", tmp_path)

    def test_no_output_file(self, tmp_path: Path, fake_which) -> None:
        with patch("mortise.export.openscad.subprocess.run", side_effect=_fake_run(b"")):
            with pytest.raises(RenderError, match="without writing"):
                render_stl("cube(1);", tmp_path)

    def test_timeout(self, tmp_path: Path, fake_which) -> None:
        with patch(
            "mortise.export.openscad.subprocess.run",
            side_effect=subprocess.TimeoutExpired(cmd="openscad", timeout=1),
        ):
            with pytest.raises(RenderTimeoutError):
                render_stl("cube(1);", tmp_path, timeout=1)

    def test_executable_vanished(self, tmp_path: Path, fake_which) -> None:
        with patch("mortise.export.openscad.subprocess.run", side_effect=FileNotFoundError()):
            with pytest.raises(RendererNotFoundError):
                render_stl("cube(1);", tmp_path)

    def test_timeout_is_a_render_error(self) -> None:
        assert issubclass(RenderTimeoutError, RenderError)
        assert issubclass(RendererNotFoundError, RenderError)
