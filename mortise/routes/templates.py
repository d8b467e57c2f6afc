"""Saved template routes.

  GET    /api/templates              -- listing rows, newest first
  POST   /api/templates              -- create or overwrite (201, stored copy)
  GET    /api/templates/{id}         -- one saved template
  GET    /api/templates/{id}/derive  -- derived geometry for a saved template
  DELETE /api/templates/{id}         -- remove (204)

The store is a FastAPI dependency; ``set_storage()`` swaps it (lifespan, tests).
"""

from __future__ import annotations

import logging
from uuid import uuid4

from fastapi import APIRouter, Depends, HTTPException, Response

from mortise.geometry.derive import GeometryError
from mortise.geometry.engine import describe_template
from mortise.models import GenerationResult, SavedTemplate, TemplateSummary
from mortise.routes.generate import _geometry_error
from mortise.storage import (
    CorruptTemplateError,
    InvalidTemplateIdError,
    StorageBackend,
    TemplateNotFoundError,
    create_storage_backend,
)

logger = logging.getLogger("mortise.templates")

router = APIRouter(prefix="/api/templates", tags=["templates"])

_default_storage: StorageBackend | None = None


def _get_storage() -> StorageBackend:
    global _default_storage  # noqa: PLW0603
    if _default_storage is None:
        _default_storage = create_storage_backend()
    return _default_storage


def set_storage(storage: StorageBackend | None) -> None:
    """Install *storage* as the template store; ``None`` resets to the default."""
    global _default_storage  # noqa: PLW0603
    _default_storage = storage


def _fetch(storage: StorageBackend, template_id: str) -> SavedTemplate:
    try:
        return storage.get(template_id)
    except (TemplateNotFoundError, InvalidTemplateIdError) as exc:
        raise HTTPException(status_code=404, detail=f"Template not found: {template_id}") from exc
    except CorruptTemplateError as exc:
        logger.error("Stored template %s is unreadable: %s", template_id, exc)
        raise HTTPException(status_code=500, detail=str(exc)) from exc


@router.get("", response_model=list[TemplateSummary])
async def list_templates(
    storage: StorageBackend = Depends(_get_storage),
) -> list[TemplateSummary]:
    return storage.summaries()


@router.post("", status_code=201, response_model=SavedTemplate)
async def save_template(
    template: SavedTemplate,
    storage: StorageBackend = Depends(_get_storage),
) -> SavedTemplate:
    """Store a parameter set.  An empty id gets a fresh one; an existing id
    is overwritten and keeps its ``createdAt``."""
    if not template.id:
        template = template.model_copy(update={"id": uuid4().hex})
    try:
        return storage.put(template)
    except InvalidTemplateIdError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.get("/{template_id}", response_model=SavedTemplate)
async def load_template(
    template_id: str,
    storage: StorageBackend = Depends(_get_storage),
) -> SavedTemplate:
    return _fetch(storage, template_id)


@router.get("/{template_id}/derive", response_model=GenerationResult)
async def derive_saved_template(
    template_id: str,
    storage: StorageBackend = Depends(_get_storage),
) -> GenerationResult:
    """Derived measurements and warnings for a saved parameter set."""
    template = _fetch(storage, template_id)
    try:
        return describe_template(template.parameters)
    except GeometryError as exc:
        raise _geometry_error(exc) from exc


@router.delete("/{template_id}", status_code=204)
async def delete_template(
    template_id: str,
    storage: StorageBackend = Depends(_get_storage),
) -> Response:
    try:
        storage.remove(template_id)
    except (TemplateNotFoundError, InvalidTemplateIdError) as exc:
        raise HTTPException(status_code=404, detail=f"Template not found: {template_id}") from exc
    return Response(status_code=204)
