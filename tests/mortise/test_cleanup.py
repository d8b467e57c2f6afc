"""Tests for orphaned render scratch cleanup."""

from __future__ import annotations

import os
import time
from pathlib import Path

import anyio
import pytest

from mortise.cleanup import cleanup_scratch, periodic_cleanup


def _age(path: Path, seconds: float) -> None:
    old = time.time() - seconds
    os.utime(path, (old, old))


def test_missing_directory(tmp_path: Path) -> None:
    assert cleanup_scratch(tmp_path / "does-not-exist") == 0


def test_removes_old_files_and_render_dirs(tmp_path: Path) -> None:
    stale_file = tmp_path / "template.stl"
    stale_file.write_bytes(b"solid x")
    stale_dir = tmp_path / "render_abc123"
    stale_dir.mkdir()
    (stale_dir / "template.scad").write_text("cube(1);")
    fresh_dir = tmp_path / "render_fresh"
    fresh_dir.mkdir()

    _age(stale_file, 7200)
    _age(stale_dir, 7200)

    assert cleanup_scratch(tmp_path, max_age_seconds=3600) == 2
    assert not stale_file.exists()
    assert not stale_dir.exists()
    assert fresh_dir.exists()


def test_nothing_to_do(tmp_path: Path) -> None:
    (tmp_path / "render_new").mkdir()
    assert cleanup_scratch(tmp_path) == 0


@pytest.mark.asyncio
async def test_periodic_cleanup_runs_until_cancelled(tmp_path: Path) -> None:
    stale = tmp_path / "render_old"
    stale.mkdir()
    _age(stale, 7200)

    with anyio.move_on_after(1.0):
        await periodic_cleanup(tmp_path, interval=0.01, max_age_seconds=60)

    assert not stale.exists()
