"""
Branch marker lookups and the collapsed-outline projection of a command list.

Branches are stored as paired ``branch_start``/``branch_end`` markers in the
flat command list.  ``visible_commands`` walks that list once and returns the
rows an outline view should draw, with their nesting depth.
"""

from __future__ import annotations

import logging
from typing import AbstractSet, Iterable, List, NamedTuple, Optional, Sequence, Tuple

from stagevn.commands.models import BranchEndCommand, BranchStartCommand, CommandBase
from stagevn.commands.structure import scan_branches

LOGGER = logging.getLogger(__name__)

__all__ = [
    "VisibleCommand",
    "branch_region",
    "collapsed_from_markers",
    "find_branch_end",
    "find_branch_start",
    "is_well_formed",
    "visible_commands",
]


class VisibleCommand(NamedTuple):
    command: CommandBase
    index: int
    depth: int


def find_branch_end(commands: Sequence[CommandBase], start_index: int) -> Optional[int]:
    """Index of the nearest ``branch_end`` after ``start_index`` sharing its branch id."""
    if not 0 <= start_index < len(commands):
        return None
    start = commands[start_index]
    if not isinstance(start, BranchStartCommand):
        return None
    for index in range(start_index + 1, len(commands)):
        candidate = commands[index]
        if isinstance(candidate, BranchEndCommand) and candidate.branch_id == start.branch_id:
            return index
    return None


def find_branch_start(commands: Sequence[CommandBase], branch_id: str) -> Optional[int]:
    for index, command in enumerate(commands):
        if isinstance(command, BranchStartCommand) and command.branch_id == branch_id:
            return index
    return None


def branch_region(
    commands: Sequence[CommandBase], branch_id: str
) -> Optional[Tuple[int, int]]:
    """Inclusive ``(start, end)`` indices of a branch, or ``None`` if unmatched."""
    start = find_branch_start(commands, branch_id)
    if start is None:
        return None
    end = find_branch_end(commands, start)
    if end is None:
        return None
    return (start, end)


def is_well_formed(commands: Sequence[CommandBase]) -> bool:
    return scan_branches(commands).well_formed


def collapsed_from_markers(commands: Iterable[CommandBase]) -> frozenset[str]:
    return frozenset(
        cmd.branch_id
        for cmd in commands
        if isinstance(cmd, BranchStartCommand) and cmd.is_collapsed
    )


def visible_commands(
    commands: Sequence[CommandBase],
    collapsed: Optional[AbstractSet[str]] = None,
) -> List[VisibleCommand]:
    """Project ``commands`` onto the rows visible with ``collapsed`` branches folded.

    When ``collapsed`` is ``None`` the markers' own ``is_collapsed`` flags are
    used.  A collapsed branch keeps both of its marker rows and hides
    everything between them except the start markers of nested branches,
    which stay visible at the collapsed depth.
    """
    if collapsed is None:
        collapsed = collapsed_from_markers(commands)

    visible: List[VisibleCommand] = []
    stack: List[Tuple[str, bool]] = []
    depth = 0

    def _hidden() -> bool:
        return any(is_collapsed for _, is_collapsed in stack)

    for index, command in enumerate(commands):
        if isinstance(command, BranchStartCommand):
            visible.append(VisibleCommand(command, index, depth))
            is_collapsed = command.branch_id in collapsed
            stack.append((command.branch_id, is_collapsed))
            if not is_collapsed:
                depth += 1
        elif isinstance(command, BranchEndCommand):
            match = next(
                (
                    pos
                    for pos in range(len(stack) - 1, -1, -1)
                    if stack[pos][0] == command.branch_id
                ),
                None,
            )
            if match is None:
                LOGGER.debug(
                    "Unmatched branch end '%s' at %d", command.branch_id, index
                )
                if not _hidden():
                    visible.append(VisibleCommand(command, index, depth))
                continue
            _, was_collapsed = stack.pop(match)
            if not was_collapsed:
                depth = max(depth - 1, 0)
            if not _hidden():
                visible.append(VisibleCommand(command, index, depth))
        elif not _hidden():
            visible.append(VisibleCommand(command, index, depth))
    return visible
