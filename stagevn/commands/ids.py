from __future__ import annotations

import uuid

__all__ = [
    "new_branch_id",
    "new_command_id",
    "new_group_id",
    "new_scene_id",
    "new_stack_id",
]


def _short(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:8]}"


def new_command_id() -> str:
    return _short("cmd")


def new_branch_id() -> str:
    return _short("branch")


def new_stack_id() -> str:
    return _short("stack")


def new_group_id() -> str:
    return _short("group")


def new_scene_id() -> str:
    return _short("scene")
