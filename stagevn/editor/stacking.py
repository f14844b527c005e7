from __future__ import annotations

from typing import Dict, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field

from stagevn.commands.ids import new_stack_id
from stagevn.commands.models import (
    BLOCKING_KINDS,
    UNPREDICTABLE_ASYNC_KINDS,
    Command,
    CommandBase,
    CommandModifiers,
)

__all__ = [
    "StackCheck",
    "StackView",
    "async_warning",
    "can_run_async",
    "can_stack_commands",
    "group_commands_into_stacks",
    "is_command_stacked",
    "stack_commands",
    "unstack_command",
]


class StackCheck(BaseModel):
    can_stack: bool
    reason: Optional[str] = None

    model_config = ConfigDict(frozen=True)


class StackView(BaseModel):
    """One row of the stacked outline: a stack group or a lone command."""

    stack_id: Optional[str] = None
    commands: List[Command] = Field(default_factory=list)
    indices: List[int] = Field(default_factory=list)
    is_stacked: bool = False

    model_config = ConfigDict(frozen=True)


def can_run_async(kind: str) -> bool:
    return kind not in BLOCKING_KINDS


def async_warning(kind: str) -> Optional[str]:
    if kind in BLOCKING_KINDS:
        return "This command cannot run asynchronously as it blocks execution by design."
    if kind in UNPREDICTABLE_ASYNC_KINDS:
        return "Running this command asynchronously may produce unpredictable results."
    return None


def can_stack_commands(commands: Sequence[CommandBase]) -> StackCheck:
    if len(commands) < 2:
        return StackCheck(can_stack=False, reason="Need at least 2 commands to stack")
    for command in commands:
        if not can_run_async(command.type):
            return StackCheck(
                can_stack=False,
                reason=f"'{command.type}' command '{command.id}' blocks execution and cannot run in parallel",
            )
    return StackCheck(can_stack=True)


def stack_commands(
    commands: Sequence[CommandBase], existing_stack_id: Optional[str] = None
) -> List[CommandBase]:
    """Give ``commands`` a shared stack id, ordered by argument position."""
    stack_id = existing_stack_id or new_stack_id()
    stacked: List[CommandBase] = []
    for order, command in enumerate(commands):
        modifiers = command.modifiers or CommandModifiers()
        stacked.append(
            command.model_copy(
                update={
                    "modifiers": modifiers.model_copy(
                        update={"run_async": True, "stack_id": stack_id, "stack_order": order}
                    )
                }
            )
        )
    return stacked


def unstack_command(command: CommandBase) -> CommandBase:
    if command.modifiers is None:
        return command
    return command.model_copy(update={"modifiers": None})


def is_command_stacked(command: CommandBase) -> bool:
    return bool(command.modifiers and command.modifiers.stack_id)


def group_commands_into_stacks(commands: Sequence[CommandBase]) -> List[StackView]:
    """Fold stack members into one view at the position of their first member.

    Members are sorted by ``stack_order`` (stable, missing order sorts as 0)
    no matter how they are interleaved with other commands.
    """
    members: Dict[str, List[int]] = {}
    for index, command in enumerate(commands):
        stack_id = command.stack_id
        if stack_id:
            members.setdefault(stack_id, []).append(index)

    views: List[StackView] = []
    for index, command in enumerate(commands):
        stack_id = command.stack_id
        if not stack_id:
            views.append(StackView(commands=[command], indices=[index]))
            continue
        positions = members[stack_id]
        if positions[0] != index:
            continue
        ordered = sorted(
            positions, key=lambda pos: commands[pos].modifiers.stack_order or 0
        )
        views.append(
            StackView(
                stack_id=stack_id,
                commands=[commands[pos] for pos in ordered],
                indices=ordered,
                is_stacked=True,
            )
        )
    return views
