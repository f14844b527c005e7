from __future__ import annotations

from stagevn.commands import parse_command
from stagevn.editor import (
    can_stack_commands,
    group_commands_into_stacks,
    stack_commands,
    unstack_command,
)
from stagevn.editor.stacking import async_warning, is_command_stacked

from tests.scene_helpers import make_scene, music, say, sfx


def test_stack_music_and_sound_effect():
    commands = [parse_command(music("m1")), parse_command(sfx("fx"))]
    assert can_stack_commands(commands).can_stack is True

    stacked = stack_commands(commands)
    stack_ids = {command.modifiers.stack_id for command in stacked}
    assert len(stack_ids) == 1
    assert [command.modifiers.stack_order for command in stacked] == [0, 1]
    assert all(command.modifiers.run_async for command in stacked)
    assert [command.id for command in stacked] == ["m1", "fx"]


def test_blocking_command_cannot_stack():
    commands = [parse_command(say("d1")), parse_command(sfx("fx"))]
    check = can_stack_commands(commands)
    assert check.can_stack is False
    assert "dialogue" in check.reason
    assert "d1" in check.reason


def test_single_command_cannot_stack():
    check = can_stack_commands([parse_command(music("m1"))])
    assert check == check.__class__(can_stack=False, reason="Need at least 2 commands to stack")


def test_existing_stack_id_is_reused():
    stacked = stack_commands([parse_command(music("m1")), parse_command(sfx("fx"))], "stack-keep")
    assert {command.stack_id for command in stacked} == {"stack-keep"}


def test_unstack_clears_only_one_command():
    first, second = stack_commands([parse_command(music("m1")), parse_command(sfx("fx"))])
    cleared = unstack_command(first)
    assert cleared.modifiers is None
    assert is_command_stacked(cleared) is False
    assert is_command_stacked(second) is True


def test_async_warnings():
    assert async_warning("dialogue").startswith("This command cannot run")
    assert "unpredictable" in async_warning("wait")
    assert async_warning("play_music") is None


def test_grouping_folds_interleaved_members_in_stack_order():
    scene = make_scene(
        sfx("fx", modifiers={"run_async": True, "stack_id": "s1", "stack_order": 1}),
        say("d1"),
        music("m1", modifiers={"run_async": True, "stack_id": "s1", "stack_order": 0}),
        music("m2"),
    )
    views = group_commands_into_stacks(scene.commands)
    assert len(views) == 3
    stack = views[0]
    assert stack.is_stacked is True
    assert stack.stack_id == "s1"
    assert [command.id for command in stack.commands] == ["m1", "fx"]
    assert stack.indices == [2, 0]
    assert [view.commands[0].id for view in views[1:]] == ["d1", "m2"]
    assert views[1].is_stacked is False


def test_missing_stack_order_sorts_first_and_stays_stable():
    scene = make_scene(
        music("a", modifiers={"stack_id": "s1", "stack_order": 1}),
        music("b", modifiers={"stack_id": "s1"}),
        music("c", modifiers={"stack_id": "s1"}),
    )
    (view,) = group_commands_into_stacks(scene.commands)
    assert [command.id for command in view.commands] == ["b", "c", "a"]


def test_stack_view_serialises_full_commands():
    scene = make_scene(music("m1"))
    (view,) = group_commands_into_stacks(scene.commands)
    dumped = view.model_dump(mode="json")
    assert dumped["commands"][0]["audio_id"] == "theme"
