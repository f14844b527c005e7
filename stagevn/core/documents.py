"""Loading of project documents for the HTTP and CLI surfaces."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Mapping, NamedTuple

from pydantic import ValidationError

from stagevn.commands.models import Project, Scene
from stagevn.runtime.assets import AssetCatalog

LOGGER = logging.getLogger(__name__)

__all__ = ["ProjectBundle", "SceneEngineError", "load_bundle", "read_bundle", "scene_from"]


class SceneEngineError(RuntimeError):
    """Raised for input the engine cannot read (never by the core itself)."""

    def __init__(self, message: str, *, code: str = "scene_engine_error", details: Any = None):
        super().__init__(message)
        self.code = code
        self.details = details


class ProjectBundle(NamedTuple):
    project: Project
    assets: AssetCatalog


def load_bundle(raw: Any) -> ProjectBundle:
    """Accept ``{"project": ..., "assets": ...}`` or a bare project mapping."""
    if not isinstance(raw, Mapping):
        raise SceneEngineError("project document must be a JSON object", code="invalid_document")
    project_doc = raw.get("project", raw)
    assets_doc = raw.get("assets") or {}
    try:
        project = Project.model_validate(project_doc)
        assets = AssetCatalog.model_validate(assets_doc)
    except ValidationError as exc:
        raise SceneEngineError(
            "project document failed validation",
            code="invalid_document",
            details=exc.errors(include_url=False, include_context=False),
        ) from exc
    return ProjectBundle(project, assets)


def read_bundle(path: str | Path) -> ProjectBundle:
    source = Path(path)
    try:
        raw = json.loads(source.read_text(encoding="utf-8"))
    except OSError as exc:
        raise SceneEngineError(f"cannot read {source}: {exc}", code="unreadable") from exc
    except ValueError as exc:
        raise SceneEngineError(f"{source} is not valid JSON: {exc}", code="invalid_json") from exc
    LOGGER.debug("Loaded project document from %s", source)
    return load_bundle(raw)


def scene_from(project: Project, scene_id: str | None) -> Scene:
    """Scene by id, or the start scene when ``scene_id`` is omitted."""
    key = scene_id or project.start_scene_id
    scene = project.scenes.get(key) if key else None
    if scene is None:
        raise SceneEngineError(f"unknown scene '{key}'", code="unknown_scene")
    return scene
