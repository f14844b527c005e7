from __future__ import annotations

from stagevn.editor.branches import (
    VisibleCommand,
    branch_region,
    find_branch_end,
    find_branch_start,
    is_well_formed,
    visible_commands,
)
from stagevn.editor.reducer import (
    SceneAction,
    add_branch,
    add_command,
    copy_selection,
    delete_command,
    move_command,
    paste_commands,
    scene_reducer,
    update_command,
)
from stagevn.editor.stacking import (
    StackCheck,
    StackView,
    can_stack_commands,
    group_commands_into_stacks,
    stack_commands,
    unstack_command,
)
from stagevn.editor.view_state import ViewState

__all__ = [
    "SceneAction",
    "StackCheck",
    "StackView",
    "ViewState",
    "VisibleCommand",
    "add_branch",
    "add_command",
    "branch_region",
    "can_stack_commands",
    "copy_selection",
    "delete_command",
    "find_branch_end",
    "find_branch_start",
    "group_commands_into_stacks",
    "is_well_formed",
    "move_command",
    "paste_commands",
    "scene_reducer",
    "stack_commands",
    "unstack_command",
    "update_command",
    "visible_commands",
]
