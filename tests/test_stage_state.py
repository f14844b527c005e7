from __future__ import annotations

import pytest

from stagevn.commands import Variable
from stagevn.editor import delete_command
from stagevn.runtime import AssetCatalog, CatalogAssetResolver, compute_stage_state
from stagevn.runtime.stage_state import (
    ChoiceFocus,
    CommandIndicator,
    DialogueFocus,
    FlashFocus,
    MovieFocus,
)
from stagevn.runtime.variables import apply_set_variable, coerce_assignment, seed_environment

from tests.scene_helpers import make_scene, music, say


@pytest.fixture
def catalog() -> AssetCatalog:
    return AssetCatalog.model_validate(
        {
            "backgrounds": {"bg1": {"id": "bg1", "name": "Park", "url": "/bg/park.png"}},
            "images": {"logo": {"id": "logo", "url": "/img/logo.png"}},
            "videos": {"op": {"id": "op", "name": "Opening", "url": "/vid/op.mp4"}},
            "characters": {
                "alice": {
                    "id": "alice",
                    "name": "Alice",
                    "color": "#ff88aa",
                    "base_image_url": "/char/alice/base.png",
                    "layers": {
                        "eyes": {
                            "id": "eyes",
                            "assets": {
                                "open": {"id": "open", "image_url": "/char/alice/eyes-open.png"},
                                "shut": {"id": "shut", "image_url": "/char/alice/eyes-shut.png"},
                            },
                        },
                        "mouth": {
                            "id": "mouth",
                            "assets": {"smile": {"id": "smile", "image_url": "/char/alice/smile.png"}},
                        },
                        "hat": {"id": "hat", "assets": {}},
                    },
                    "expressions": {
                        "happy": {
                            "id": "happy",
                            "layer_configuration": {"eyes": "open", "mouth": "smile", "hat": None},
                        }
                    },
                }
            },
        }
    )


def _gold(default=0) -> dict:
    return {"gold": Variable(id="gold", name="Gold", type="number", default=default)}


def test_background_character_and_dialogue_focus():
    scene = make_scene(
        {"type": "set_background", "id": "c0", "background_id": "bg1"},
        {"type": "show_character", "id": "c1", "character_id": "alice", "expression_id": "happy", "position": "center"},
        say("c2", "Hi", character_id="alice"),
    )
    snapshot = compute_stage_state(scene, {}, 2)
    assert snapshot.background_id == "bg1"
    assert list(snapshot.characters) == ["alice"]
    assert snapshot.characters["alice"].position == "center"
    assert snapshot.focus == DialogueFocus(character_id="alice", speaker="alice", text="Hi")


def test_catalog_resolves_urls_and_layers(catalog):
    scene = make_scene(
        {"type": "set_background", "id": "c0", "background_id": "bg1"},
        {"type": "show_character", "id": "c1", "character_id": "alice", "expression_id": "happy"},
        say("c2", "Hi", character_id="alice"),
    )
    snapshot = compute_stage_state(scene, {}, 2, assets=CatalogAssetResolver(catalog))
    assert snapshot.background_url == "/bg/park.png"
    assert snapshot.characters["alice"].image_layers == [
        "/char/alice/base.png",
        "/char/alice/eyes-open.png",
        "/char/alice/smile.png",
    ]
    assert snapshot.focus.speaker == "Alice"
    assert snapshot.focus.color == "#ff88aa"


def test_set_variable_accumulates():
    scene = make_scene(
        {"type": "set_variable", "id": "v0", "variable_id": "gold", "operator": "set", "value": 10},
        {"type": "set_variable", "id": "v1", "variable_id": "gold", "operator": "add", "value": 5},
        say("d"),
    )
    snapshot = compute_stage_state(scene, _gold(), 2)
    assert snapshot.variables["gold"] == 15
    assert compute_stage_state(scene, _gold(), 1).variables["gold"] == 10


def test_variable_coercion_rules():
    number = Variable(id="n", type="number", default=0)
    flag = Variable(id="f", type="boolean", default=False)
    text = Variable(id="t", type="string", default="")
    assert coerce_assignment(number, "abc") == 0
    assert coerce_assignment(number, "2.5") == 2.5
    assert coerce_assignment(flag, "TRUE") is True
    assert coerce_assignment(flag, "yes") is False
    assert coerce_assignment(text, 3.0) == "3"

    table = {"n": number}
    env = seed_environment(table)
    assert apply_set_variable(env, table, "n", "subtract", "x") is True
    assert env["n"] == 0
    assert apply_set_variable(env, table, "missing", "set", 1) is False
    assert "missing" not in env


def test_none_target_equals_last_index_plus_its_effect():
    scene = make_scene(
        {"type": "set_background", "id": "c0", "background_id": "bg1"},
        say("c1", "Hi"),
        {"type": "tint_screen", "id": "c2", "color": "#112233"},
    )
    full = compute_stage_state(scene, {}, None)
    last = compute_stage_state(scene, {}, 2)
    assert full.focus is None
    assert last.screen.tint == "transparent"
    assert full.screen.tint == "#112233"
    assert full.model_dump(exclude={"screen", "focus", "target_index"}) == last.model_dump(
        exclude={"screen", "focus", "target_index"}
    )


def test_replay_is_deterministic(catalog):
    scene = make_scene(
        {"type": "show_character", "id": "c1", "character_id": "alice", "expression_id": "happy"},
        {"type": "show_text", "id": "t1", "text": "Day 1"},
        {"type": "pan_zoom_screen", "id": "pz", "zoom": 1.5, "pan_x": 10},
        say("d1", "Hi"),
    )
    resolver = CatalogAssetResolver(catalog)
    assert compute_stage_state(scene, {}, 3, assets=resolver) == compute_stage_state(
        scene, {}, 3, assets=resolver
    )


def test_false_conditions_have_no_effect():
    gate = [{"variable_id": "gold", "operator": ">", "value": 100}]
    base = [say("d0", "start")]
    gated = [
        {"type": "set_background", "id": "g0", "background_id": "bg2", "conditions": gate},
        {"type": "set_variable", "id": "g1", "variable_id": "gold", "value": 999, "conditions": gate},
        {"type": "show_text", "id": "g2", "text": "secret", "conditions": gate},
    ]
    with_gated = compute_stage_state(make_scene(*base, *gated), _gold())
    without = compute_stage_state(make_scene(*base), _gold())
    assert with_gated == without

    target = compute_stage_state(make_scene(say("d", conditions=gate)), _gold(), 0)
    assert target.focus is None


def test_unknown_variable_condition_is_false():
    scene = make_scene(
        {"type": "set_background", "id": "b", "background_id": "bg1", "conditions": [{"variable_id": "nope", "operator": "is_false"}]},
    )
    assert compute_stage_state(scene, {}).background_id is None


def test_overlays_keyed_by_command_id_and_hidden_by_target():
    scene = make_scene(
        {"type": "show_text", "id": "t1", "text": "A"},
        {"type": "show_text", "id": "t2", "text": "B"},
        {"type": "show_image", "id": "i1", "image_id": "logo"},
        {"type": "hide_text", "id": "h1", "target_command_id": "t1"},
        {"type": "hide_image", "id": "h2", "target_command_id": "i1"},
    )
    snapshot = compute_stage_state(scene, {})
    assert list(snapshot.text_overlays) == ["t2"]
    assert snapshot.image_overlays == {}

    partial = compute_stage_state(scene, {}, 3)
    assert partial.image_overlays["i1"].image_url is None
    assert partial.image_overlays["i1"].scale_x == 1.0


def test_hide_after_show_deleted_is_noop():
    scene = make_scene(
        {"type": "show_text", "id": "t1", "text": "A"},
        {"type": "hide_text", "id": "h1", "target_command_id": "t1"},
        {"type": "show_text", "id": "t2", "text": "B"},
    )
    trimmed = delete_command(scene, 0)
    snapshot = compute_stage_state(trimmed, {})
    assert list(snapshot.text_overlays) == ["t2"]


def test_button_show_conditions(catalog):
    scene = make_scene(
        {
            "type": "show_button",
            "id": "b1",
            "text": "Shop",
            "image": {"type": "image", "id": "logo"},
            "hover_image": {"type": "video", "id": "op"},
        },
        {
            "type": "show_button",
            "id": "b2",
            "text": "Vault",
            "show_conditions": [{"variable_id": "gold", "operator": ">=", "value": 50}],
        },
        {"type": "hide_button", "id": "hb", "target_command_id": "zzz"},
    )
    snapshot = compute_stage_state(scene, _gold(10), assets=CatalogAssetResolver(catalog))
    assert list(snapshot.button_overlays) == ["b1"]
    assert snapshot.button_overlays["b1"].image_url == "/img/logo.png"
    assert snapshot.button_overlays["b1"].hover_image_url == "/vid/op.mp4"
    assert list(compute_stage_state(scene, _gold(60)).button_overlays) == ["b1", "b2"]


def test_screen_effects_and_reset():
    scene = make_scene(
        {"type": "tint_screen", "id": "t", "color": "#000000"},
        {"type": "pan_zoom_screen", "id": "p", "zoom": 2, "pan_x": 5, "pan_y": -5},
        {"type": "reset_screen_effects", "id": "r"},
    )
    before_reset = compute_stage_state(scene, {}, 2).screen
    assert (before_reset.tint, before_reset.zoom, before_reset.pan_x, before_reset.pan_y) == ("#000000", 2, 5, -5)
    after = compute_stage_state(scene, {}).screen
    assert (after.tint, after.zoom, after.pan_x, after.pan_y) == ("transparent", 1, 0, 0)


def test_hide_character_removes_entry():
    scene = make_scene(
        {"type": "show_character", "id": "s", "character_id": "bob"},
        {"type": "hide_character", "id": "h", "character_id": "bob"},
    )
    assert compute_stage_state(scene, {}).characters == {}
    assert compute_stage_state(scene, {}, 1).characters["bob"].image_layers == []


def test_choice_focus_filters_options():
    scene = make_scene(
        {
            "type": "choice",
            "id": "c",
            "options": [
                {"id": "free", "text": "Leave"},
                {"id": "rich", "text": "Buy", "conditions": [{"variable_id": "gold", "operator": ">", "value": 5}]},
            ],
        }
    )
    poor = compute_stage_state(scene, _gold(1), 0).focus
    rich = compute_stage_state(scene, _gold(9), 0).focus
    assert isinstance(poor, ChoiceFocus)
    assert [option.id for option in poor.options] == ["free"]
    assert [option.id for option in rich.options] == ["free", "rich"]


def test_movie_flash_and_indicator_focus(catalog):
    resolver = CatalogAssetResolver(catalog)
    scene = make_scene(
        {"type": "play_movie", "id": "m", "video_id": "op"},
        {"type": "play_movie", "id": "m2", "video_id": "missing"},
        {"type": "flash_screen", "id": "f", "color": "#ff0000"},
        music("mu", "theme"),
        {"type": "shake_screen", "id": "sh", "intensity": 0.8},
        {"type": "set_background", "id": "bg", "background_id": "bg1"},
        {"type": "label", "id": "lb", "label_id": "start"},
    )
    movie = compute_stage_state(scene, {}, 0, assets=resolver).focus
    assert movie == MovieFocus(video_id="op", video_name="Opening", video_url="/vid/op.mp4")
    assert compute_stage_state(scene, {}, 1).focus.video_name == "N/A"
    assert compute_stage_state(scene, {}, 2).focus == FlashFocus(color="#ff0000", duration=0.3)
    assert compute_stage_state(scene, {}, 3).focus == CommandIndicator(kind="play_music", details="theme")

    shake = compute_stage_state(scene, {}, 4)
    assert shake.focus.kind == "shake_screen"
    assert shake.screen.shake.active is True
    assert shake.screen.shake.intensity == 0.8
    assert compute_stage_state(scene, {}).screen.shake.active is False

    assert compute_stage_state(scene, {}, 5).focus is None
    assert compute_stage_state(scene, {}, 6).focus is None


def test_indicators_can_be_disabled(write_flags):
    write_flags(enable_focus_indicators=False)
    scene = make_scene(music("mu"))
    assert compute_stage_state(scene, {}, 0).focus is None


@pytest.mark.parametrize("target", [-1, 10])
def test_out_of_range_targets(target):
    scene = make_scene({"type": "set_background", "id": "b", "background_id": "bg1"}, say("d"))
    snapshot = compute_stage_state(scene, {}, target)
    assert snapshot.focus is None
    assert snapshot.background_id == (None if target < 0 else "bg1")


def test_narrator_when_no_speaker():
    snapshot = compute_stage_state(make_scene(say("d", "Rain falls.")), {}, 0)
    assert snapshot.focus == DialogueFocus(text="Rain falls.")
    assert snapshot.focus.speaker == "Narrator"


def test_variables_accept_a_list():
    scene = make_scene({"type": "set_variable", "id": "v", "variable_id": "gold", "operator": "add", "value": "2"})
    snapshot = compute_stage_state(scene, [{"id": "gold", "type": "number", "default": 3}])
    assert snapshot.variables == {"gold": 5}
