"""Saved template store -- named parameter sets, on disk or in memory.

Every template goes in and comes out as a validated ``SavedTemplate``; the
store stamps ``created_at`` / ``modified_at`` and builds the listing rows
(``TemplateSummary``) from the parameters themselves, so a listing shows
the unit system, fence side and mortise size without loading each file in
the client.

- ``LocalStorage``  -- one ``<id>.template.json`` per template under
  ``MORTISE_DATA_DIR``; survives restarts.
- ``MemoryStorage`` -- process-local dict; used in ``cloud`` mode.

``create_storage_backend()`` picks one from ``MORTISE_MODE``.
"""

from __future__ import annotations

import logging
import os
import re
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Literal, Protocol

from pydantic import ValidationError

from mortise.models import SavedTemplate, TemplateSummary
from mortise.units import format_measurement

logger = logging.getLogger("mortise.storage")

TEMPLATE_SUFFIX = ".template.json"
DEFAULT_DATA_DIR = "/data/templates"

# Ids become file names: no separators, no leading dot.
_TEMPLATE_ID = re.compile(r"[A-Za-z0-9][A-Za-z0-9_.\-]{0,127}")


class TemplateNotFoundError(LookupError):
    """No template is stored under the requested id."""


class InvalidTemplateIdError(ValueError):
    """The id cannot name a stored template."""


class CorruptTemplateError(ValueError):
    """A stored template no longer parses as a SavedTemplate."""


# ---------------------------------------------------------------------------
# MORTISE_MODE helpers
# ---------------------------------------------------------------------------

MortiseMode = Literal["local", "cloud"]
_VALID_MODES: frozenset[str] = frozenset({"local", "cloud"})


def get_mortise_mode() -> MortiseMode:
    """Return the current MORTISE_MODE value, defaulting to ``'local'``.

    Unrecognised values fall back to ``'local'`` with a warning.
    """
    raw = os.environ.get("MORTISE_MODE", "local").strip().lower()
    if raw not in _VALID_MODES:
        logger.warning(
            "Unknown MORTISE_MODE=%r, falling back to 'local'. Valid values are: %s",
            raw,
            ", ".join(sorted(_VALID_MODES)),
        )
        return "local"
    return raw  # type: ignore[return-value]


def get_data_dir() -> Path:
    """Directory holding saved templates in local mode (``MORTISE_DATA_DIR``)."""
    return Path(os.environ.get("MORTISE_DATA_DIR", DEFAULT_DATA_DIR))


def create_storage_backend() -> "LocalStorage | MemoryStorage":
    """Return the template store for the current MORTISE_MODE."""
    if get_mortise_mode() == "cloud":
        return MemoryStorage()
    return LocalStorage(get_data_dir())


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------


def check_template_id(template_id: str) -> str:
    """Return *template_id* unchanged, or raise InvalidTemplateIdError."""
    if not _TEMPLATE_ID.fullmatch(template_id):
        raise InvalidTemplateIdError(f"Invalid template id: {template_id!r}")
    return template_id


def summarize(template: SavedTemplate) -> TemplateSummary:
    """Listing row for *template*; sizes use the template's own unit system."""
    p = template.parameters
    size = (
        f"{format_measurement(p.mortise_length_in, p.unit_system)} x "
        f"{format_measurement(p.mortise_width_in, p.unit_system)}"
    )
    return TemplateSummary(
        id=template.id,
        name=template.name,
        unit_system=p.unit_system,
        edge_position=p.edge_position,
        mortise_size=size,
        modified_at=template.modified_at,
    )


def _stamp(template: SavedTemplate, template_id: str, created_at: str | None) -> SavedTemplate:
    now = datetime.now(tz=timezone.utc).isoformat()
    return template.model_copy(
        update={"id": template_id, "created_at": created_at or now, "modified_at": now},
        deep=True,
    )


def _newest_first(summaries: list[TemplateSummary]) -> list[TemplateSummary]:
    return sorted(summaries, key=lambda s: (s.modified_at, s.id), reverse=True)


class StorageBackend(Protocol):
    """What the template routes need from a store."""

    def put(self, template: SavedTemplate) -> SavedTemplate: ...
    def get(self, template_id: str) -> SavedTemplate: ...
    def summaries(self) -> list[TemplateSummary]: ...
    def remove(self, template_id: str) -> None: ...


# ---------------------------------------------------------------------------
# LocalStorage
# ---------------------------------------------------------------------------


class LocalStorage:
    """JSON files, one per template, in ``base_path``."""

    def __init__(self, base_path: str | Path = DEFAULT_DATA_DIR) -> None:
        self.base_path = Path(base_path)
        self.base_path.mkdir(parents=True, exist_ok=True)

    def path_for(self, template_id: str) -> Path:
        return self.base_path / f"{check_template_id(template_id)}{TEMPLATE_SUFFIX}"

    def _read(self, path: Path) -> SavedTemplate:
        try:
            template = SavedTemplate.model_validate_json(path.read_bytes())
        except ValidationError as exc:
            raise CorruptTemplateError(
                f"{path.name} is not a valid template ({exc.error_count()} error(s))"
            ) from exc
        # The file name is authoritative for the id.
        return template.model_copy(update={"id": path.name.removesuffix(TEMPLATE_SUFFIX)})

    def put(self, template: SavedTemplate) -> SavedTemplate:
        """Validate, stamp and write *template*; returns what was stored.

        The JSON goes to a hidden sibling first and is moved over the target
        with ``os.replace``.
        """
        target = self.path_for(template.id)
        created_at = None
        if target.exists():
            try:
                created_at = self._read(target).created_at
            except CorruptTemplateError:
                logger.warning("Overwriting unreadable template file %s", target.name)
        stored = _stamp(template, template.id, created_at)

        with tempfile.NamedTemporaryFile(
            "w", encoding="utf-8", dir=self.base_path, prefix=".", suffix=".tmp", delete=False
        ) as f:
            tmp = Path(f.name)
        try:
            tmp.write_text(stored.model_dump_json(indent=2), encoding="utf-8")
            os.replace(tmp, target)
        except BaseException:
            tmp.unlink(missing_ok=True)
            raise
        logger.info("Saved template %s (%s)", stored.id, stored.name)
        return stored

    def get(self, template_id: str) -> SavedTemplate:
        path = self.path_for(template_id)
        if not path.is_file():
            raise TemplateNotFoundError(f"Template not found: {template_id}")
        return self._read(path)

    def summaries(self) -> list[TemplateSummary]:
        """Listing rows, newest first.  Unreadable files are logged and left out."""
        rows: list[TemplateSummary] = []
        for path in self.base_path.glob(f"*{TEMPLATE_SUFFIX}"):
            try:
                rows.append(summarize(self._read(path)))
            except (CorruptTemplateError, OSError) as exc:
                logger.warning("Skipping template file %s: %s", path.name, exc)
        return _newest_first(rows)

    def remove(self, template_id: str) -> None:
        path = self.path_for(template_id)
        try:
            path.unlink()
        except FileNotFoundError as exc:
            raise TemplateNotFoundError(f"Template not found: {template_id}") from exc
        logger.info("Deleted template %s", template_id)


# ---------------------------------------------------------------------------
# MemoryStorage
# ---------------------------------------------------------------------------


class MemoryStorage:
    """Templates held in memory; lost on restart.  Callers get copies."""

    def __init__(self) -> None:
        self._templates: dict[str, SavedTemplate] = {}

    def put(self, template: SavedTemplate) -> SavedTemplate:
        check_template_id(template.id)
        previous = self._templates.get(template.id)
        stored = _stamp(template, template.id, previous.created_at if previous else None)
        self._templates[stored.id] = stored
        return stored.model_copy(deep=True)

    def get(self, template_id: str) -> SavedTemplate:
        try:
            return self._templates[template_id].model_copy(deep=True)
        except KeyError:
            raise TemplateNotFoundError(f"Template not found: {template_id}") from None

    def summaries(self) -> list[TemplateSummary]:
        return _newest_first([summarize(t) for t in self._templates.values()])

    def remove(self, template_id: str) -> None:
        if self._templates.pop(template_id, None) is None:
            raise TemplateNotFoundError(f"Template not found: {template_id}")
