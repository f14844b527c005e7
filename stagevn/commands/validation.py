from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional

from pydantic import ValidationError

from stagevn.commands.models import (
    BLOCKING_KINDS,
    CommandBase,
    GroupCommand,
    HideButtonCommand,
    HideImageCommand,
    HideTextCommand,
    Scene,
    ShowButtonCommand,
    ShowImageCommand,
    ShowTextCommand,
)
from stagevn.commands.structure import scan_branches
from stagevn.config.feature_flags import is_enabled

__all__ = ["validate_scene"]

_HIDE_TARGETS: Dict[type, type] = {
    HideTextCommand: ShowTextCommand,
    HideImageCommand: ShowImageCommand,
    HideButtonCommand: ShowButtonCommand,
}


def _condition_refs(command: CommandBase) -> Iterable[str]:
    for condition in command.conditions:
        yield condition.variable_id
    for option in getattr(command, "options", None) or []:
        for condition in option.conditions:
            yield condition.variable_id
    for condition in getattr(command, "show_conditions", None) or []:
        yield condition.variable_id


def validate_scene(
    doc: Scene | Mapping[str, Any],
    *,
    variable_ids: Optional[Iterable[str]] = None,
) -> Dict[str, Any]:
    """Check a scene document for structural problems.

    Hard errors break the editing invariants (duplicate ids, crossing or
    unbalanced branch markers, blocking commands marked async or stacked).
    Everything the replay tolerates by degrading to a no-op is reported as a
    warning instead.
    """
    if isinstance(doc, Scene):
        scene = doc
    else:
        try:
            scene = Scene.model_validate(doc)
        except ValidationError as exc:
            return {
                "ok": False,
                "errors": exc.errors(include_url=False, include_context=False),
                "warnings": [],
            }

    errors: List[Dict[str, Any]] = []
    warnings: List[Dict[str, Any]] = []
    commands = scene.commands

    errors.extend(scan_branches(commands).issues)

    show_ids: Dict[str, type] = {cmd.id: type(cmd) for cmd in commands}
    known_vars = set(variable_ids) if variable_ids is not None else None
    group_owner: Dict[str, str] = {}
    stack_positions: Dict[str, List[int]] = {}

    for index, command in enumerate(commands):
        modifiers = command.modifiers
        if command.type in BLOCKING_KINDS and modifiers is not None:
            if modifiers.run_async or modifiers.stack_id:
                errors.append(
                    {
                        "msg": f"blocking command '{command.id}' ({command.type}) cannot run async or be stacked",
                        "index": index,
                        "command": command.id,
                    }
                )
        if modifiers is not None and modifiers.stack_id:
            stack_positions.setdefault(modifiers.stack_id, []).append(index)

        expected = _HIDE_TARGETS.get(type(command))
        if expected is not None:
            target = command.target_command_id  # type: ignore[attr-defined]
            if show_ids.get(target) is not expected:
                warnings.append(
                    {
                        "msg": f"command '{command.id}' hides '{target}', which is not a {expected.model_fields['type'].default} command",
                        "index": index,
                        "command": command.id,
                    }
                )

        if isinstance(command, GroupCommand):
            for member in command.command_ids:
                if member not in show_ids:
                    warnings.append(
                        {
                            "msg": f"group '{command.id}' lists unknown command '{member}'",
                            "index": index,
                            "command": command.id,
                        }
                    )
                owner = group_owner.setdefault(member, command.id)
                if owner != command.id:
                    errors.append(
                        {
                            "msg": f"command '{member}' belongs to groups '{owner}' and '{command.id}'",
                            "index": index,
                            "command": member,
                        }
                    )

        if known_vars is not None:
            for variable_id in _condition_refs(command):
                if variable_id not in known_vars:
                    warnings.append(
                        {
                            "msg": f"command '{command.id}' tests unknown variable '{variable_id}'",
                            "index": index,
                            "command": command.id,
                        }
                    )

    strict = is_enabled("strict_stack_contiguity")
    for stack_id, positions in stack_positions.items():
        if positions[-1] - positions[0] + 1 != len(positions):
            entry = {
                "msg": f"stack '{stack_id}' is split across non-adjacent commands",
                "stack_id": stack_id,
                "indices": positions,
            }
            (errors if strict else warnings).append(entry)

    return {"ok": not errors, "errors": errors, "warnings": warnings}
