from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import typer

from stagevn.commands import CommandBase, validate_scene
from stagevn.core.documents import ProjectBundle, SceneEngineError, read_bundle, scene_from
from stagevn.editor import group_commands_into_stacks, visible_commands
from stagevn.logging_config import init_logging
from stagevn.runtime import CatalogAssetResolver, compute_stage_state

app = typer.Typer(add_completion=False, help="stagevn scene engine utilities.")
logger = logging.getLogger(__name__)


def _load(path: Path) -> ProjectBundle:
    try:
        return read_bundle(path)
    except SceneEngineError as exc:
        typer.echo(f"error: {exc}", err=True)
        if exc.details:
            typer.echo(json.dumps(exc.details, indent=2, default=str), err=True)
        raise typer.Exit(code=2) from exc


def _scene(bundle: ProjectBundle, scene_id: Optional[str]):
    try:
        return scene_from(bundle.project, scene_id)
    except SceneEngineError as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=2) from exc


def _label(command: CommandBase) -> str:
    name = getattr(command, "name", None)
    text = getattr(command, "text", None)
    if command.type == "branch_start":
        suffix = f" {name!r} ({command.branch_id})"  # type: ignore[attr-defined]
    elif command.type == "branch_end":
        suffix = f" ({command.branch_id})"  # type: ignore[attr-defined]
    elif text:
        suffix = f" {text!r}"
    elif name:
        suffix = f" {name!r}"
    else:
        suffix = ""
    return f"{command.type}{suffix}"


@app.command()
def validate(
    file: Path = typer.Argument(..., help="Project JSON document."),
) -> None:
    """Check every scene for structural problems."""
    init_logging()
    bundle = _load(file)
    variable_ids = list(bundle.project.variables)
    results: Dict[str, Any] = {}
    for scene_id, scene in bundle.project.scenes.items():
        results[scene_id] = validate_scene(scene, variable_ids=variable_ids)
    ok = all(result["ok"] for result in results.values())
    logger.info("Validated %d scene(s) from %s", len(results), file)
    typer.echo(json.dumps({"ok": ok, "scenes": results}, indent=2, default=str))
    raise typer.Exit(code=0 if ok else 1)


@app.command()
def replay(
    file: Path = typer.Argument(..., help="Project JSON document."),
    scene: Optional[str] = typer.Option(None, "--scene", help="Scene id (defaults to the start scene)."),
    target: Optional[int] = typer.Option(None, "--target", help="Command index to preview."),
) -> None:
    """Print the staged state at a command index."""
    init_logging()
    bundle = _load(file)
    current = _scene(bundle, scene)
    snapshot = compute_stage_state(
        current,
        bundle.project.variables,
        target,
        assets=CatalogAssetResolver(bundle.assets),
    )
    typer.echo(json.dumps(snapshot.model_dump(mode="json"), indent=2))


@app.command()
def outline(
    file: Path = typer.Argument(..., help="Project JSON document."),
    scene: Optional[str] = typer.Option(None, "--scene", help="Scene id (defaults to the start scene)."),
    collapse: Optional[List[str]] = typer.Option(None, "--collapse", help="Branch id to fold; repeatable."),
) -> None:
    """Print the command list as an indented outline."""
    init_logging()
    bundle = _load(file)
    current = _scene(bundle, scene)
    collapsed = set(collapse) if collapse else None
    for row in visible_commands(current.commands, collapsed):
        typer.echo(f"{'  ' * row.depth}[{row.index}] {_label(row.command)}")


@app.command()
def stacks(
    file: Path = typer.Argument(..., help="Project JSON document."),
    scene: Optional[str] = typer.Option(None, "--scene", help="Scene id (defaults to the start scene)."),
) -> None:
    """Print the command list folded into parallel stacks."""
    init_logging()
    bundle = _load(file)
    current = _scene(bundle, scene)
    views = group_commands_into_stacks(current.commands)
    typer.echo(json.dumps([view.model_dump(mode="json") for view in views], indent=2))


def main() -> None:
    app()


if __name__ == "__main__":
    main()
