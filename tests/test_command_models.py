from __future__ import annotations

import pytest
from pydantic import ValidationError

from stagevn.commands import (
    COMMAND_TYPES,
    DialogueCommand,
    Project,
    Scene,
    parse_command,
)
from stagevn.commands.models import (
    JumpToSceneAction,
    NoAction,
    ShowButtonCommand,
    ShowCharacterCommand,
)


def test_parse_command_uses_type_tag():
    command = parse_command({"type": "dialogue", "text": "Hello"})
    assert isinstance(command, DialogueCommand)
    assert command.id.startswith("cmd-")
    assert command.is_blocking is True
    assert command.stack_id is None


def test_parse_command_rejects_unknown_fields_and_kinds():
    with pytest.raises(ValidationError):
        parse_command({"type": "dialogue", "text": "x", "speaker": "bob"})
    with pytest.raises(ValidationError):
        parse_command({"type": "teleport"})


def test_every_kind_has_a_model():
    kinds = {cls.model_fields["type"].default for cls in COMMAND_TYPES}
    assert len(kinds) == len(COMMAND_TYPES) == 31
    assert {"branch_start", "branch_end", "group", "show_button"} <= kinds


def test_show_character_accepts_custom_position():
    command = parse_command(
        {
            "type": "show_character",
            "character_id": "alice",
            "position": {"x": 30, "y": 10},
        }
    )
    assert isinstance(command, ShowCharacterCommand)
    assert command.position.x == 30


def test_button_actions_are_tagged():
    command = parse_command(
        {
            "type": "show_button",
            "on_click": {"type": "jump_to_scene", "target_scene_id": "s2"},
        }
    )
    assert isinstance(command, ShowButtonCommand)
    assert isinstance(command.on_click, JumpToSceneAction)
    assert isinstance(parse_command({"type": "show_button"}).on_click, NoAction)


def test_commands_are_frozen():
    command = parse_command({"type": "dialogue", "text": "x"})
    with pytest.raises(ValidationError):
        command.text = "y"


def test_scene_rejects_duplicate_command_ids():
    with pytest.raises(ValidationError):
        Scene(
            commands=[
                {"type": "dialogue", "id": "a"},
                {"type": "wait", "id": "a"},
            ]
        )


def test_scene_index_of():
    scene = Scene(commands=[{"type": "dialogue", "id": "a"}, {"type": "wait", "id": "b"}])
    assert scene.index_of("b") == 1
    assert scene.index_of("zzz") is None


def test_project_start_scene_must_exist():
    with pytest.raises(ValidationError):
        Project(scenes={}, start_scene_id="missing")
    project = Project(scenes={"s1": Scene(id="s1")}, start_scene_id="s1")
    assert project.start_scene_id == "s1"
