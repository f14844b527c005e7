"""
Structural edits over scenes and the project-level action dispatcher.

Every function here is pure: it returns a new ``Scene``/``Project`` or the
unchanged input.  Requests that would break the branch pairing, or that point
at stale ids/indices, are dropped as no-ops and flagged on the warning bus so
the authoring surface never sees an exception.
"""

from __future__ import annotations

import logging
from typing import (
    Any,
    Callable,
    Dict,
    Iterable,
    List,
    Mapping,
    Optional,
    Sequence,
    Union,
)

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from stagevn.commands.ids import (
    new_branch_id,
    new_command_id,
    new_group_id,
    new_scene_id,
    new_stack_id,
)
from stagevn.commands.models import (
    BLOCKING_KINDS,
    BranchEndCommand,
    BranchStartCommand,
    ChoiceCommand,
    CommandBase,
    Condition,
    GroupCommand,
    JumpCommand,
    JumpToSceneAction,
    Project,
    Scene,
    ShowButtonCommand,
    parse_command,
)
from stagevn.commands.structure import scan_branches
from stagevn.core.warning_bus import flag_structural
from stagevn.editor.branches import branch_region, find_branch_end
from stagevn.editor.stacking import can_stack_commands, stack_commands, unstack_command

LOGGER = logging.getLogger(__name__)

CommandRef = Union[int, str]
CommandInput = Union[CommandBase, Mapping[str, Any]]

__all__ = [
    "SceneAction",
    "add_branch",
    "add_command",
    "add_command_to_branch",
    "add_command_to_group",
    "add_group",
    "clone_commands",
    "copy_selection",
    "delete_command",
    "insert_commands",
    "move_command",
    "paste_commands",
    "remove_command_from_group",
    "rename_branch",
    "rename_group",
    "reorder_commands_in_group",
    "scene_reducer",
    "set_branch_collapsed",
    "stack_scene_commands",
    "toggle_branch_collapse",
    "toggle_group_collapse",
    "unstack_scene_command",
    "update_command",
]


# ---------------------------------------------------------------------------
# helpers
# ---------------------------------------------------------------------------
def _with_commands(scene: Scene, commands: List[CommandBase]) -> Scene:
    return scene.model_copy(update={"commands": commands})


def _resolve_index(scene: Scene, ref: CommandRef) -> Optional[int]:
    if isinstance(ref, bool):
        return None
    if isinstance(ref, int):
        return ref if 0 <= ref < len(scene.commands) else None
    return scene.index_of(ref)


def _stale(scene: Scene, ref: Any, action: str) -> Scene:
    flag_structural(
        "stale_reference",
        f"{action}: no command at {ref!r}",
        scene_id=scene.id,
        ref=ref if isinstance(ref, (int, str)) else repr(ref),
    )
    return scene


def _strip_blocking_modifiers(command: CommandBase, scene_id: str) -> CommandBase:
    modifiers = command.modifiers
    if command.type not in BLOCKING_KINDS or modifiers is None:
        return command
    if not (modifiers.run_async or modifiers.stack_id):
        return command
    flag_structural(
        "blocking_modifiers",
        f"'{command.type}' command '{command.id}' cannot run async or be stacked; modifiers dropped",
        scene_id=scene_id,
        command=command.id,
    )
    return unstack_command(command)


def _replace_at(scene: Scene, index: int, command: CommandBase) -> Scene:
    commands = list(scene.commands)
    commands[index] = command
    return _with_commands(scene, commands)


def _parse_or_flag(
    scene: Scene, commands: Sequence[CommandInput], action: str
) -> Optional[List[CommandBase]]:
    try:
        return [parse_command(cmd) for cmd in commands]
    except ValidationError as exc:
        flag_structural(
            "invalid_payload",
            f"{action}: {exc.error_count()} validation error(s)",
            scene_id=scene.id,
            errors=exc.errors(include_url=False, include_context=False),
        )
        return None


# ---------------------------------------------------------------------------
# adding
# ---------------------------------------------------------------------------
def add_branch(scene: Scene, name: str = "Branch", color: Optional[str] = None) -> Scene:
    """Append an empty branch: a start/end marker pair with a fresh branch id."""
    branch_id = new_branch_id()
    start_fields: Dict[str, Any] = {"id": new_command_id(), "branch_id": branch_id, "name": name}
    if color:
        start_fields["color"] = color
    start = BranchStartCommand(**start_fields)
    end = BranchEndCommand(id=new_command_id(), branch_id=branch_id)
    return _with_commands(scene, [*scene.commands, start, end])


def add_command(scene: Scene, command: CommandInput) -> Scene:
    """Append ``command`` under a fresh id.

    A ``branch_start`` is expanded into a complete pair; a lone ``branch_end``
    is rejected.
    """
    parsed = _parse_or_flag(scene, [command], "add_command")
    if parsed is None:
        return scene
    (command,) = parsed
    if isinstance(command, BranchStartCommand):
        return add_branch(scene, command.name, command.color)
    if isinstance(command, BranchEndCommand):
        flag_structural(
            "branch_end_locked",
            "add_command: a branch end cannot be added on its own",
            scene_id=scene.id,
        )
        return scene
    fresh = command.model_copy(update={"id": new_command_id()})
    fresh = _strip_blocking_modifiers(fresh, scene.id)
    return _with_commands(scene, [*scene.commands, fresh])


def insert_commands(
    scene: Scene, commands: Sequence[CommandInput], index: Optional[int] = None
) -> Scene:
    """Insert a balanced run of commands before ``index`` (append when ``None``)."""
    parsed = _parse_or_flag(scene, commands, "insert_commands")
    if not parsed:
        return scene
    if not scan_branches(parsed).well_formed:
        flag_structural(
            "unbalanced_insert",
            "insert_commands: inserted commands contain unpaired branch markers",
            scene_id=scene.id,
        )
        return scene
    existing = {cmd.id for cmd in scene.commands}
    incoming = [cmd.id for cmd in parsed]
    if existing.intersection(incoming) or len(set(incoming)) != len(incoming):
        flag_structural(
            "duplicate_id",
            "insert_commands: inserted command ids collide with the scene",
            scene_id=scene.id,
        )
        return scene
    existing_branches = {
        cmd.branch_id for cmd in scene.commands if isinstance(cmd, BranchStartCommand)
    }
    reused = sorted(
        {cmd.branch_id for cmd in parsed if isinstance(cmd, BranchStartCommand)} & existing_branches
    )
    if reused:
        flag_structural(
            "duplicate_branch",
            "insert_commands: inserted branches reuse branch ids already in the scene",
            scene_id=scene.id,
            branch_ids=reused,
        )
        return scene
    position = len(scene.commands) if index is None else max(0, min(index, len(scene.commands)))
    parsed = [_strip_blocking_modifiers(cmd, scene.id) for cmd in parsed]
    commands_out = list(scene.commands)
    commands_out[position:position] = parsed
    return _with_commands(scene, commands_out)


def add_command_to_branch(scene: Scene, branch_id: str, command: CommandInput) -> Scene:
    """Insert ``command`` as the last entry inside ``branch_id``."""
    region = branch_region(scene.commands, branch_id)
    if region is None:
        flag_structural(
            "unmatched_branch",
            f"add_command_to_branch: branch '{branch_id}' has no matching markers",
            scene_id=scene.id,
            branch_id=branch_id,
        )
        return scene
    parsed = _parse_or_flag(scene, [command], "add_command_to_branch")
    if parsed is None:
        return scene
    (command,) = parsed
    if isinstance(command, BranchEndCommand):
        flag_structural(
            "branch_end_locked",
            "add_command_to_branch: a branch end cannot be added on its own",
            scene_id=scene.id,
        )
        return scene
    if isinstance(command, BranchStartCommand):
        nested = new_branch_id()
        block: List[CommandBase] = [
            command.model_copy(update={"id": new_command_id(), "branch_id": nested}),
            BranchEndCommand(id=new_command_id(), branch_id=nested),
        ]
    else:
        block = [command.model_copy(update={"id": new_command_id()})]
    return insert_commands(scene, block, region[1])


# ---------------------------------------------------------------------------
# updating / deleting / moving
# ---------------------------------------------------------------------------
def update_command(scene: Scene, ref: CommandRef, value: CommandInput) -> Scene:
    """Replace the command at ``ref`` in place.

    ``value`` may be a complete command or a dict of field changes.  The
    existing id is kept unless a dict patch names a new one.
    """
    index = _resolve_index(scene, ref)
    if index is None:
        return _stale(scene, ref, "update_command")
    current = scene.commands[index]

    try:
        if isinstance(value, CommandBase):
            updated = value.model_copy(update={"id": current.id})
        elif "type" in value and value["type"] != current.type:
            data = dict(value)
            data.setdefault("id", current.id)
            updated = parse_command(data)
        else:
            data = current.model_dump()
            data.update(value)
            updated = parse_command(data)
    except ValidationError as exc:
        flag_structural(
            "invalid_payload",
            f"update_command: {exc.error_count()} validation error(s)",
            scene_id=scene.id,
            errors=exc.errors(include_url=False, include_context=False),
        )
        return scene

    if updated.id != current.id and scene.index_of(updated.id) is not None:
        flag_structural(
            "duplicate_id",
            f"update_command: id '{updated.id}' already exists",
            scene_id=scene.id,
        )
        return scene

    marker_types = (BranchStartCommand, BranchEndCommand)
    if isinstance(current, marker_types) or isinstance(updated, marker_types):
        same_marker = type(current) is type(updated) and getattr(
            current, "branch_id", None
        ) == getattr(updated, "branch_id", None)
        if not same_marker:
            flag_structural(
                "marker_mismatch",
                "update_command: branch markers can only be edited in place",
                scene_id=scene.id,
                command=current.id,
            )
            return scene

    return _replace_at(scene, index, _strip_blocking_modifiers(updated, scene.id))


def delete_command(scene: Scene, ref: CommandRef) -> Scene:
    """Delete one command; deleting a branch start removes only its two markers."""
    index = _resolve_index(scene, ref)
    if index is None:
        return _stale(scene, ref, "delete_command")
    target = scene.commands[index]

    if isinstance(target, BranchEndCommand):
        flag_structural(
            "branch_end_locked",
            "delete_command: branch ends are removed together with their start",
            scene_id=scene.id,
            index=index,
        )
        return scene

    if isinstance(target, BranchStartCommand):
        end = find_branch_end(scene.commands, index)
        if end is None:
            flag_structural(
                "unmatched_branch",
                f"delete_command: branch '{target.branch_id}' has no end marker",
                scene_id=scene.id,
                branch_id=target.branch_id,
            )
            return scene
        removed = {index, end}
    else:
        removed = {index}

    dropped_ids = {scene.commands[pos].id for pos in removed}
    remaining: List[CommandBase] = []
    for pos, command in enumerate(scene.commands):
        if pos in removed:
            continue
        if isinstance(command, GroupCommand) and dropped_ids.intersection(command.command_ids):
            command = command.model_copy(
                update={"command_ids": [cid for cid in command.command_ids if cid not in dropped_ids]}
            )
        remaining.append(command)
    return _with_commands(scene, remaining)


def move_command(scene: Scene, ref: CommandRef, to_index: int) -> Scene:
    """Move a command, or a whole branch when ``ref`` names a branch start.

    ``to_index`` is a position in the list as it is before the move, clamped
    to the list.  Moving backward, the moved unit starts at ``to_index``;
    moving forward, it ends at ``to_index``.  Targets inside the unit itself
    leave the scene unchanged.
    """
    from_index = _resolve_index(scene, ref)
    if from_index is None:
        return _stale(scene, ref, "move_command")
    source = scene.commands[from_index]

    if isinstance(source, BranchEndCommand):
        flag_structural(
            "branch_end_locked",
            "move_command: move the branch start to move a branch",
            scene_id=scene.id,
            index=from_index,
        )
        return scene

    start = end = from_index
    if isinstance(source, BranchStartCommand):
        found = find_branch_end(scene.commands, from_index)
        if found is None:
            flag_structural(
                "unmatched_branch",
                f"move_command: branch '{source.branch_id}' has no end marker",
                scene_id=scene.id,
                branch_id=source.branch_id,
            )
            return scene
        end = found

    to_index = max(0, min(to_index, len(scene.commands) - 1))
    if start <= to_index <= end:
        return scene

    block = list(scene.commands[start : end + 1])
    rest = list(scene.commands[:start]) + list(scene.commands[end + 1 :])
    insert_at = to_index if to_index < start else to_index - len(block) + 1
    rest[insert_at:insert_at] = block
    return _with_commands(scene, rest)


# ---------------------------------------------------------------------------
# stacks
# ---------------------------------------------------------------------------
def stack_scene_commands(
    scene: Scene,
    command_ids: Sequence[str],
    existing_stack_id: Optional[str] = None,
) -> Scene:
    command_ids = list(dict.fromkeys(command_ids))
    indices = [scene.index_of(cid) for cid in command_ids]
    if any(index is None for index in indices):
        return _stale(scene, list(command_ids), "stack_commands")
    members = [scene.commands[index] for index in indices]  # type: ignore[index]
    check = can_stack_commands(members)
    if not check.can_stack:
        flag_structural(
            "invalid_stack",
            f"stack_commands: {check.reason}",
            scene_id=scene.id,
            commands=list(command_ids),
        )
        return scene
    commands = list(scene.commands)
    for index, stacked in zip(indices, stack_commands(members, existing_stack_id)):
        commands[index] = stacked  # type: ignore[index]
    return _with_commands(scene, commands)


def unstack_scene_command(scene: Scene, ref: CommandRef) -> Scene:
    index = _resolve_index(scene, ref)
    if index is None:
        return _stale(scene, ref, "unstack_command")
    return _replace_at(scene, index, unstack_command(scene.commands[index]))


# ---------------------------------------------------------------------------
# branch properties
# ---------------------------------------------------------------------------
def _edit_branch_start(
    scene: Scene, branch_id: str, action: str, edit: Callable[[BranchStartCommand], BranchStartCommand]
) -> Scene:
    for index, command in enumerate(scene.commands):
        if isinstance(command, BranchStartCommand) and command.branch_id == branch_id:
            return _replace_at(scene, index, edit(command))
    return _stale(scene, branch_id, action)


def set_branch_collapsed(scene: Scene, branch_id: str, collapsed: bool) -> Scene:
    return _edit_branch_start(
        scene,
        branch_id,
        "set_branch_collapsed",
        lambda cmd: cmd.model_copy(update={"is_collapsed": bool(collapsed)}),
    )


def toggle_branch_collapse(scene: Scene, branch_id: str) -> Scene:
    return _edit_branch_start(
        scene,
        branch_id,
        "toggle_branch_collapse",
        lambda cmd: cmd.model_copy(update={"is_collapsed": not cmd.is_collapsed}),
    )


def rename_branch(
    scene: Scene, branch_id: str, name: Optional[str] = None, color: Optional[str] = None
) -> Scene:
    changes: Dict[str, Any] = {}
    if name is not None:
        changes["name"] = name
    if color is not None:
        changes["color"] = color
    return _edit_branch_start(
        scene, branch_id, "rename_branch", lambda cmd: cmd.model_copy(update=changes)
    )


# ---------------------------------------------------------------------------
# visual groups
# ---------------------------------------------------------------------------
def _edit_group(
    scene: Scene, group_id: str, action: str, edit: Callable[[GroupCommand], Optional[GroupCommand]]
) -> Scene:
    index = scene.index_of(group_id)
    if index is None or not isinstance(scene.commands[index], GroupCommand):
        return _stale(scene, group_id, action)
    updated = edit(scene.commands[index])  # type: ignore[arg-type]
    if updated is None:
        return scene
    return _replace_at(scene, index, updated)


def _release_members(scene: Scene, member_ids: Iterable[str], keep: Optional[str] = None) -> Scene:
    members = set(member_ids)
    commands: List[CommandBase] = []
    for command in scene.commands:
        if isinstance(command, GroupCommand) and command.id != keep and members.intersection(command.command_ids):
            command = command.model_copy(
                update={"command_ids": [cid for cid in command.command_ids if cid not in members]}
            )
        commands.append(command)
    return _with_commands(scene, commands)


def add_group(scene: Scene, name: str = "Group", command_ids: Sequence[str] = ()) -> Scene:
    """Append a visual group; listed commands leave any group they were in."""
    known = [cid for cid in command_ids if scene.index_of(cid) is not None]
    if len(known) != len(command_ids):
        return _stale(scene, list(command_ids), "add_group")
    scene = _release_members(scene, known)
    group = GroupCommand(id=new_group_id(), name=name, command_ids=list(known))
    return _with_commands(scene, [*scene.commands, group])


def rename_group(scene: Scene, group_id: str, name: str) -> Scene:
    return _edit_group(scene, group_id, "rename_group", lambda grp: grp.model_copy(update={"name": name}))


def toggle_group_collapse(scene: Scene, group_id: str) -> Scene:
    return _edit_group(
        scene,
        group_id,
        "toggle_group_collapse",
        lambda grp: grp.model_copy(update={"collapsed": not grp.collapsed}),
    )


def add_command_to_group(
    scene: Scene, group_id: str, command_id: str, position: Optional[int] = None
) -> Scene:
    if scene.index_of(command_id) is None or command_id == group_id:
        return _stale(scene, command_id, "add_command_to_group")
    if scene.index_of(group_id) is None:
        return _stale(scene, group_id, "add_command_to_group")
    scene = _release_members(scene, [command_id], keep=group_id)

    def _add(group: GroupCommand) -> GroupCommand:
        members = [cid for cid in group.command_ids if cid != command_id]
        slot = len(members) if position is None else max(0, min(position, len(members)))
        members.insert(slot, command_id)
        return group.model_copy(update={"command_ids": members})

    return _edit_group(scene, group_id, "add_command_to_group", _add)


def remove_command_from_group(scene: Scene, group_id: str, command_id: str) -> Scene:
    def _remove(group: GroupCommand) -> Optional[GroupCommand]:
        if command_id not in group.command_ids:
            _stale(scene, command_id, "remove_command_from_group")
            return None
        return group.model_copy(
            update={"command_ids": [cid for cid in group.command_ids if cid != command_id]}
        )

    return _edit_group(scene, group_id, "remove_command_from_group", _remove)


def reorder_commands_in_group(scene: Scene, group_id: str, command_ids: Sequence[str]) -> Scene:
    def _reorder(group: GroupCommand) -> Optional[GroupCommand]:
        if sorted(command_ids) != sorted(group.command_ids):
            flag_structural(
                "invalid_payload",
                "reorder_commands_in_group: ids must be a permutation of the group members",
                scene_id=scene.id,
                group_id=group_id,
            )
            return None
        return group.model_copy(update={"command_ids": list(command_ids)})

    return _edit_group(scene, group_id, "reorder_commands_in_group", _reorder)


# ---------------------------------------------------------------------------
# clipboard
# ---------------------------------------------------------------------------
def copy_selection(scene: Scene, command_ids: Iterable[str]) -> List[CommandBase]:
    """Collect selected commands in scene order; a selected branch start brings its region."""
    selected = set(command_ids)
    copied: List[CommandBase] = []
    index = 0
    while index < len(scene.commands):
        command = scene.commands[index]
        if command.id not in selected:
            index += 1
            continue
        if isinstance(command, BranchStartCommand):
            end = find_branch_end(scene.commands, index)
            if end is not None:
                copied.extend(scene.commands[index : end + 1])
                index = end + 1
                continue
        elif isinstance(command, BranchEndCommand):
            index += 1
            continue
        copied.append(command)
        index += 1
    return copied


def clone_commands(commands: Sequence[CommandInput]) -> List[CommandBase]:
    """Copy commands under fresh ids, remapping branch, stack and id references."""
    parsed = [parse_command(cmd) for cmd in commands]
    id_map = {cmd.id: new_command_id() for cmd in parsed}
    branch_map: Dict[str, str] = {}
    stack_map: Dict[str, str] = {}

    cloned: List[CommandBase] = []
    for command in parsed:
        changes: Dict[str, Any] = {"id": id_map[command.id]}
        if isinstance(command, (BranchStartCommand, BranchEndCommand)):
            changes["branch_id"] = branch_map.setdefault(command.branch_id, new_branch_id())
        if command.modifiers is not None and command.modifiers.stack_id:
            changes["modifiers"] = command.modifiers.model_copy(
                update={"stack_id": stack_map.setdefault(command.modifiers.stack_id, new_stack_id())}
            )
        target = getattr(command, "target_command_id", None)
        if target in id_map:
            changes["target_command_id"] = id_map[target]
        if isinstance(command, GroupCommand):
            changes["command_ids"] = [id_map.get(cid, cid) for cid in command.command_ids]
        cloned.append(command.model_copy(update=changes))
    return cloned


def paste_commands(
    scene: Scene, commands: Sequence[CommandInput], index: Optional[int] = None
) -> Scene:
    parsed = _parse_or_flag(scene, commands, "paste_commands")
    if parsed is None:
        return scene
    return insert_commands(scene, clone_commands(parsed), index)


# ---------------------------------------------------------------------------
# project-level dispatch
# ---------------------------------------------------------------------------
class SceneAction(BaseModel):
    type: str = Field(..., min_length=1)
    payload: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)


ActionHandler = Callable[[Project, Mapping[str, Any]], Project]
_ACTIONS: Dict[str, ActionHandler] = {}


def _action(name: str) -> Callable[[ActionHandler], ActionHandler]:
    def _register(fn: ActionHandler) -> ActionHandler:
        _ACTIONS[name] = fn
        return fn

    return _register


def _scene_action(name: str, edit: Callable[[Scene, Mapping[str, Any]], Scene]) -> None:
    def _handler(project: Project, payload: Mapping[str, Any]) -> Project:
        scene_id = payload.get("scene_id")
        scene = project.scenes.get(scene_id) if isinstance(scene_id, str) else None
        if scene is None:
            flag_structural("stale_reference", f"{name}: unknown scene {scene_id!r}")
            return project
        updated = edit(scene, payload)
        if updated is scene:
            return project
        scenes = dict(project.scenes)
        scenes[scene.id] = updated
        return project.model_copy(update={"scenes": scenes})

    _ACTIONS[name] = _handler


def _ref(payload: Mapping[str, Any]) -> CommandRef:
    if "command_id" in payload:
        return payload["command_id"]
    return payload["command_index"]


_scene_action("add_command", lambda s, p: add_command(s, p["command"]))
_scene_action("add_branch", lambda s, p: add_branch(s, p.get("name", "Branch"), p.get("color")))
_scene_action("update_command", lambda s, p: update_command(s, _ref(p), p["command"]))
_scene_action("delete_command", lambda s, p: delete_command(s, _ref(p)))
_scene_action("move_command", lambda s, p: move_command(s, p.get("command_id", p.get("from_index")), p["to_index"]))
_scene_action("insert_commands", lambda s, p: insert_commands(s, p["commands"], p.get("index")))
_scene_action(
    "add_command_to_branch", lambda s, p: add_command_to_branch(s, p["branch_id"], p["command"])
)
_scene_action("paste_commands", lambda s, p: paste_commands(s, p["commands"], p.get("index")))
_scene_action(
    "stack_commands",
    lambda s, p: stack_scene_commands(s, p["command_ids"], p.get("stack_id")),
)
_scene_action("unstack_command", lambda s, p: unstack_scene_command(s, _ref(p)))
_scene_action("toggle_branch_collapse", lambda s, p: toggle_branch_collapse(s, p["branch_id"]))
_scene_action(
    "set_branch_collapsed",
    lambda s, p: set_branch_collapsed(s, p["branch_id"], p.get("collapsed", True)),
)
_scene_action(
    "rename_branch", lambda s, p: rename_branch(s, p["branch_id"], p.get("name"), p.get("color"))
)
_scene_action("add_group", lambda s, p: add_group(s, p.get("name", "Group"), p.get("command_ids", ())))
_scene_action("rename_group", lambda s, p: rename_group(s, p["group_id"], p["name"]))
_scene_action("toggle_group_collapse", lambda s, p: toggle_group_collapse(s, p["group_id"]))
_scene_action(
    "add_command_to_group",
    lambda s, p: add_command_to_group(s, p["group_id"], p["command_id"], p.get("position")),
)
_scene_action(
    "remove_command_from_group",
    lambda s, p: remove_command_from_group(s, p["group_id"], p["command_id"]),
)
_scene_action(
    "reorder_commands_in_group",
    lambda s, p: reorder_commands_in_group(s, p["group_id"], p["command_ids"]),
)


def _replace_scene_commands(scene: Scene, payload: Mapping[str, Any]) -> Scene:
    commands = [parse_command(cmd) for cmd in payload["commands"]]
    ids = [cmd.id for cmd in commands]
    if len(set(ids)) != len(ids) or not scan_branches(commands).well_formed:
        flag_structural(
            "unbalanced_insert",
            "update_scene_commands: replacement list is not well formed",
            scene_id=scene.id,
        )
        return scene
    return _with_commands(scene, [_strip_blocking_modifiers(cmd, scene.id) for cmd in commands])


_scene_action("update_scene_commands", _replace_scene_commands)


@_action("add_scene")
def _add_scene(project: Project, payload: Mapping[str, Any]) -> Project:
    scene = Scene(id=new_scene_id(), name=payload.get("name") or "Untitled Scene")
    scenes = {**project.scenes, scene.id: scene}
    start = project.start_scene_id or scene.id
    return project.model_copy(update={"scenes": scenes, "start_scene_id": start})


@_action("update_scene")
def _update_scene(project: Project, payload: Mapping[str, Any]) -> Project:
    scene = project.scenes.get(payload.get("scene_id", ""))
    if scene is None:
        flag_structural("stale_reference", f"update_scene: unknown scene {payload.get('scene_id')!r}")
        return project
    renamed = scene.model_copy(update={"name": payload["name"]})
    return project.model_copy(update={"scenes": {**project.scenes, scene.id: renamed}})


@_action("update_scene_config")
def _update_scene_config(project: Project, payload: Mapping[str, Any]) -> Project:
    scene = project.scenes.get(payload.get("scene_id", ""))
    if scene is None:
        flag_structural(
            "stale_reference", f"update_scene_config: unknown scene {payload.get('scene_id')!r}"
        )
        return project
    changes: Dict[str, Any] = {}
    if "conditions" in payload:
        changes["conditions"] = [Condition.model_validate(c) for c in payload["conditions"] or []]
    if "fallback_scene_id" in payload:
        fallback = payload["fallback_scene_id"]
        if fallback is not None and fallback not in project.scenes:
            flag_structural(
                "stale_reference",
                f"update_scene_config: fallback scene {fallback!r} does not exist",
                scene_id=scene.id,
            )
            return project
        changes["fallback_scene_id"] = fallback
    updated = scene.model_copy(update=changes)
    return project.model_copy(update={"scenes": {**project.scenes, scene.id: updated}})


def _retarget_actions(actions: Sequence[Any], old: str, new: str) -> List[Any]:
    return [
        action.model_copy(update={"target_scene_id": new})
        if isinstance(action, JumpToSceneAction) and action.target_scene_id == old
        else action
        for action in actions
    ]


def _retarget_command(command: CommandBase, old: str, new: str) -> CommandBase:
    if isinstance(command, JumpCommand) and command.target_scene_id == old:
        return command.model_copy(update={"target_scene_id": new})
    if isinstance(command, ChoiceCommand):
        options = [
            option.model_copy(update={"actions": _retarget_actions(option.actions, old, new)})
            for option in command.options
        ]
        return command.model_copy(update={"options": options})
    if isinstance(command, ShowButtonCommand):
        return command.model_copy(
            update={
                "on_click": _retarget_actions([command.on_click], old, new)[0],
                "actions": _retarget_actions(command.actions, old, new),
            }
        )
    return command


@_action("delete_scene")
def _delete_scene(project: Project, payload: Mapping[str, Any]) -> Project:
    scene_id = payload.get("scene_id")
    if scene_id not in project.scenes:
        flag_structural("stale_reference", f"delete_scene: unknown scene {scene_id!r}")
        return project
    if len(project.scenes) <= 1:
        flag_structural("last_scene", "delete_scene: a project keeps at least one scene", scene_id=scene_id)
        return project

    remaining = {sid: scene for sid, scene in project.scenes.items() if sid != scene_id}
    start = project.start_scene_id
    if start == scene_id or start not in remaining:
        start = next(iter(remaining))

    scenes: Dict[str, Scene] = {}
    for sid, scene in remaining.items():
        changes: Dict[str, Any] = {
            "commands": [_retarget_command(cmd, scene_id, start) for cmd in scene.commands]
        }
        if scene.fallback_scene_id == scene_id:
            changes["fallback_scene_id"] = start
        scenes[sid] = scene.model_copy(update=changes)
    return project.model_copy(update={"scenes": scenes, "start_scene_id": start})


@_action("duplicate_scene")
def _duplicate_scene(project: Project, payload: Mapping[str, Any]) -> Project:
    original = project.scenes.get(payload.get("scene_id", ""))
    if original is None:
        flag_structural("stale_reference", f"duplicate_scene: unknown scene {payload.get('scene_id')!r}")
        return project
    copy = original.model_copy(
        update={
            "id": new_scene_id(),
            "name": f"{original.name} (Copy)",
            "commands": clone_commands(original.commands),
        }
    )
    return project.model_copy(update={"scenes": {**project.scenes, copy.id: copy}})


@_action("reorder_scenes")
def _reorder_scenes(project: Project, payload: Mapping[str, Any]) -> Project:
    order = [sid for sid in payload.get("scene_ids", []) if sid in project.scenes]
    order.extend(sid for sid in project.scenes if sid not in order)
    return project.model_copy(update={"scenes": {sid: project.scenes[sid] for sid in order}})


@_action("set_start_scene")
def _set_start_scene(project: Project, payload: Mapping[str, Any]) -> Project:
    scene_id = payload.get("scene_id")
    if scene_id not in project.scenes:
        flag_structural("stale_reference", f"set_start_scene: unknown scene {scene_id!r}")
        return project
    return project.model_copy(update={"start_scene_id": scene_id})


def scene_reducer(project: Project, action: SceneAction | Mapping[str, Any]) -> Project:
    """Apply a named action to ``project`` and return the resulting project.

    Unknown action names return ``project`` itself so callers can chain
    reducers the way a root reducer does.
    """
    if not isinstance(action, SceneAction):
        try:
            action = SceneAction.model_validate(action)
        except ValidationError:
            flag_structural("invalid_payload", "scene_reducer: malformed action")
            return project
    handler = _ACTIONS.get(action.type)
    if handler is None:
        LOGGER.debug("scene_reducer ignoring action '%s'", action.type)
        return project
    LOGGER.debug("scene_reducer applying '%s'", action.type)
    try:
        return handler(project, action.payload)
    except (KeyError, TypeError, ValidationError) as exc:
        flag_structural(
            "invalid_payload",
            f"{action.type}: {exc.__class__.__name__}: {exc}",
            scene_id=action.payload.get("scene_id"),
        )
        return project


def registered_actions() -> List[str]:
    return sorted(_ACTIONS)
