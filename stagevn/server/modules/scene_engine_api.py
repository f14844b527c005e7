from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Query
from pydantic import BaseModel, Field

from stagevn.commands import Command, Project, Scene, validate_scene
from stagevn.core.documents import scene_from
from stagevn.core.warning_bus import warning_bus
from stagevn.editor import (
    SceneAction,
    can_stack_commands,
    group_commands_into_stacks,
    scene_reducer,
    visible_commands,
)
from stagevn.editor.stacking import async_warning
from stagevn.runtime import AssetCatalog, CatalogAssetResolver, compute_stage_state

router = APIRouter(prefix="/scene-engine", tags=["Scene Engine"])


class DispatchRequest(BaseModel):
    project: Project
    action: SceneAction


class StageStateRequest(BaseModel):
    project: Project
    assets: AssetCatalog = Field(default_factory=AssetCatalog)
    scene_id: Optional[str] = None
    target_index: Optional[int] = None


class VisibleRequest(BaseModel):
    scene: Scene
    collapsed: Optional[List[str]] = None


class StacksRequest(BaseModel):
    scene: Scene


class CanStackRequest(BaseModel):
    commands: List[Command]


@router.post("/dispatch")
def scene_dispatch(body: DispatchRequest) -> Dict[str, Any]:
    before = {item.id for item in warning_bus.list(0)}
    project = scene_reducer(body.project, body.action)
    raised = [item.as_dict() for item in warning_bus.list(0) if item.id not in before]
    return {
        "ok": True,
        "changed": project is not body.project,
        "project": project.model_dump(mode="json"),
        "warnings": raised,
    }


@router.post("/stage-state")
def scene_stage_state(body: StageStateRequest) -> Dict[str, Any]:
    scene = scene_from(body.project, body.scene_id)
    snapshot = compute_stage_state(
        scene,
        body.project.variables,
        body.target_index,
        assets=CatalogAssetResolver(body.assets),
    )
    return {"ok": True, "snapshot": snapshot.model_dump(mode="json")}


@router.post("/visible")
def scene_visible(body: VisibleRequest) -> Dict[str, Any]:
    collapsed = set(body.collapsed) if body.collapsed is not None else None
    rows = [
        {"index": row.index, "depth": row.depth, "command": row.command.model_dump(mode="json")}
        for row in visible_commands(body.scene.commands, collapsed)
    ]
    return {"ok": True, "rows": rows}


@router.post("/stacks")
def scene_stacks(body: StacksRequest) -> Dict[str, Any]:
    views = group_commands_into_stacks(body.scene.commands)
    return {"ok": True, "views": [view.model_dump(mode="json") for view in views]}


@router.post("/can-stack")
def scene_can_stack(body: CanStackRequest) -> Dict[str, Any]:
    check = can_stack_commands(body.commands)
    cautions: Dict[str, str] = {}
    for command in body.commands:
        message = async_warning(command.type)
        if message is not None:
            cautions[command.id] = message
    return {"ok": True, **check.model_dump(), "cautions": cautions}


@router.post("/validate")
def scene_validate(body: Dict[str, Any] = Body(...)) -> Dict[str, Any]:
    scene_doc = body.get("scene") if isinstance(body.get("scene"), dict) else body
    variable_ids = body.get("variable_ids")
    return validate_scene(scene_doc, variable_ids=variable_ids)


@router.get("/warnings")
def scene_warnings(
    limit: int = Query(20, ge=0, le=500),
    scene_id: Optional[str] = Query(None),
) -> Dict[str, Any]:
    items = warning_bus.list(limit, scene_id=scene_id)
    return {"ok": True, "items": [item.as_dict() for item in items]}
