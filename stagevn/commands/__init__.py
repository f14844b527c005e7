from __future__ import annotations

from stagevn.commands.conditions import compare, conditions_met
from stagevn.commands.models import (
    BLOCKING_KINDS,
    COMMAND_TYPES,
    UNPREDICTABLE_ASYNC_KINDS,
    BranchEndCommand,
    BranchStartCommand,
    ChoiceCommand,
    ChoiceOption,
    Command,
    CommandBase,
    CommandModifiers,
    Condition,
    DialogueCommand,
    GroupCommand,
    Project,
    Scene,
    Variable,
    parse_command,
)
from stagevn.commands.validation import validate_scene

__all__ = [
    "BLOCKING_KINDS",
    "COMMAND_TYPES",
    "UNPREDICTABLE_ASYNC_KINDS",
    "BranchEndCommand",
    "BranchStartCommand",
    "ChoiceCommand",
    "ChoiceOption",
    "Command",
    "CommandBase",
    "CommandModifiers",
    "Condition",
    "DialogueCommand",
    "GroupCommand",
    "Project",
    "Scene",
    "Variable",
    "compare",
    "conditions_met",
    "parse_command",
    "validate_scene",
]
