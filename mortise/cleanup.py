"""Orphaned render scratch cleanup.

Each render works in its own ``render_*`` directory under SCRATCH_DIR and
removes it on exit.  A process killed mid-render leaves it behind; this
module deletes such leftovers at startup and periodically afterwards.
"""

from __future__ import annotations

import logging
import shutil
import time
from pathlib import Path

import anyio

from mortise.export.openscad import SCRATCH_DIR as DEFAULT_SCRATCH_DIR

logger = logging.getLogger("mortise.cleanup")

# Entries older than this (seconds) are considered orphaned.
MAX_AGE_SECONDS = 3600  # 1 hour

# Periodic cleanup interval (seconds).
CLEANUP_INTERVAL_SECONDS = 1800  # 30 minutes


def cleanup_scratch(
    scratch_dir: Path = DEFAULT_SCRATCH_DIR,
    max_age_seconds: float = MAX_AGE_SECONDS,
) -> int:
    """Delete files and render directories in scratch_dir older than max_age_seconds.

    Returns the number of entries deleted.  Entries that cannot be deleted
    (e.g. permission errors) are skipped.
    """
    if not scratch_dir.is_dir():
        return 0

    now = time.time()
    deleted = 0

    for p in scratch_dir.iterdir():
        try:
            age = now - p.stat().st_mtime
            if age <= max_age_seconds:
                continue
            if p.is_dir():
                shutil.rmtree(p)
            else:
                p.unlink()
            deleted += 1
            logger.debug("Deleted orphaned scratch entry: %s (age=%.0fs)", p.name, age)
        except OSError as exc:
            logger.debug("Could not delete scratch entry %s: %s", p.name, exc)

    if deleted:
        logger.info("Cleaned up %d orphaned scratch entr(ies) from %s", deleted, scratch_dir)

    return deleted


async def periodic_cleanup(
    scratch_dir: Path = DEFAULT_SCRATCH_DIR,
    interval: float = CLEANUP_INTERVAL_SECONDS,
    max_age_seconds: float = MAX_AGE_SECONDS,
) -> None:
    """Run cleanup_scratch every *interval* seconds until cancelled."""
    while True:
        await anyio.sleep(interval)
        try:
            await anyio.to_thread.run_sync(cleanup_scratch, scratch_dir, max_age_seconds)
        except Exception:
            logger.exception("Periodic scratch cleanup failed")
