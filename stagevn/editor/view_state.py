from __future__ import annotations

from typing import FrozenSet, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field

from stagevn.commands.models import CommandBase
from stagevn.editor.branches import VisibleCommand, visible_commands

__all__ = ["ViewState"]


class ViewState(BaseModel):
    """Per-view browsing state; never stored on the scene itself."""

    collapsed_branches: FrozenSet[str] = Field(default_factory=frozenset)
    collapsed_groups: FrozenSet[str] = Field(default_factory=frozenset)
    selected_index: Optional[int] = None

    model_config = ConfigDict(frozen=True)

    def toggle_branch(self, branch_id: str) -> "ViewState":
        return self.model_copy(
            update={"collapsed_branches": self.collapsed_branches ^ {branch_id}}
        )

    def toggle_group(self, group_id: str) -> "ViewState":
        return self.model_copy(
            update={"collapsed_groups": self.collapsed_groups ^ {group_id}}
        )

    def select(self, index: Optional[int]) -> "ViewState":
        return self.model_copy(update={"selected_index": index})

    def outline(self, commands: Sequence[CommandBase]) -> List[VisibleCommand]:
        return visible_commands(commands, self.collapsed_branches)
