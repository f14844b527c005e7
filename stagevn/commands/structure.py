from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Tuple

from stagevn.commands.models import BranchEndCommand, BranchStartCommand, CommandBase

__all__ = ["BranchScan", "scan_branches"]


@dataclass(frozen=True)
class BranchScan:
    """Result of walking the branch markers of a command list."""

    pairs: Dict[str, Tuple[int, int]] = field(default_factory=dict)
    issues: List[Dict[str, object]] = field(default_factory=list)

    @property
    def well_formed(self) -> bool:
        return not self.issues


def scan_branches(commands: Sequence[CommandBase]) -> BranchScan:
    """Pair branch markers as balanced brackets and report every violation."""
    pairs: Dict[str, Tuple[int, int]] = {}
    issues: List[Dict[str, object]] = []
    open_stack: List[Tuple[str, int]] = []
    seen_starts: set[str] = set()

    for index, command in enumerate(commands):
        if isinstance(command, BranchStartCommand):
            if command.branch_id in seen_starts:
                issues.append(
                    {
                        "msg": f"branch '{command.branch_id}' is opened more than once",
                        "index": index,
                        "branch_id": command.branch_id,
                    }
                )
            seen_starts.add(command.branch_id)
            open_stack.append((command.branch_id, index))
        elif isinstance(command, BranchEndCommand):
            if not open_stack:
                issues.append(
                    {
                        "msg": f"branch end '{command.branch_id}' has no open branch",
                        "index": index,
                        "branch_id": command.branch_id,
                    }
                )
                continue
            branch_id, start = open_stack[-1]
            if branch_id != command.branch_id:
                issues.append(
                    {
                        "msg": (
                            f"branch end '{command.branch_id}' closes across "
                            f"open branch '{branch_id}'"
                        ),
                        "index": index,
                        "branch_id": command.branch_id,
                    }
                )
                continue
            open_stack.pop()
            pairs[branch_id] = (start, index)

    for branch_id, start in open_stack:
        issues.append(
            {
                "msg": f"branch '{branch_id}' is never closed",
                "index": start,
                "branch_id": branch_id,
            }
        )
    return BranchScan(pairs=pairs, issues=issues)
