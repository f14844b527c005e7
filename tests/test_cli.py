from __future__ import annotations

import json

import pytest
from typer.testing import CliRunner

from stagevn.cli import app

from tests.scene_helpers import branch, end, music, say, sfx

runner = CliRunner()


@pytest.fixture(autouse=True)
def _quiet_logs(monkeypatch):
    monkeypatch.setenv("STAGEVN_LOG_LEVEL", "WARNING")


@pytest.fixture
def project_file(tmp_path):
    doc = {
        "project": {
            "start_scene_id": "s1",
            "variables": {"gold": {"id": "gold", "type": "number", "default": 0}},
            "scenes": {
                "s1": {
                    "id": "s1",
                    "commands": [
                        {"type": "set_background", "id": "bg", "background_id": "park"},
                        {"type": "set_variable", "id": "v", "variable_id": "gold", "operator": "add", "value": 3},
                        branch("B", name="Shop"),
                        say("d", "Welcome"),
                        end("B"),
                        music("m", modifiers={"run_async": True, "stack_id": "st", "stack_order": 0}),
                        sfx("fx", modifiers={"run_async": True, "stack_id": "st", "stack_order": 1}),
                    ],
                }
            },
        },
        "assets": {"backgrounds": {"park": {"id": "park", "url": "/park.png"}}},
    }
    path = tmp_path / "project.json"
    path.write_text(json.dumps(doc), encoding="utf-8")
    return path


def test_validate_command(project_file):
    result = runner.invoke(app, ["validate", str(project_file)])
    assert result.exit_code == 0, result.output
    assert '"ok": true' in result.stdout


def test_replay_command(project_file):
    result = runner.invoke(app, ["replay", str(project_file), "--target", "3"])
    assert result.exit_code == 0, result.output
    snapshot = json.loads(result.stdout)
    assert snapshot["background_url"] == "/park.png"
    assert snapshot["variables"]["gold"] == 3
    assert snapshot["focus"]["text"] == "Welcome"


def test_outline_command(project_file):
    result = runner.invoke(app, ["outline", str(project_file), "--scene", "s1", "--collapse", "B"])
    assert result.exit_code == 0, result.output
    lines = result.stdout.splitlines()
    assert lines[2] == "[2] branch_start 'Shop' (B)"
    assert lines[3] == "[4] branch_end (B)"
    assert len(lines) == 6


def test_stacks_command(project_file):
    result = runner.invoke(app, ["stacks", str(project_file)])
    assert result.exit_code == 0, result.output
    views = json.loads(result.stdout)
    assert views[-1]["stack_id"] == "st"
    assert views[-1]["indices"] == [5, 6]


def test_unreadable_input_exits_with_error(tmp_path):
    broken = tmp_path / "broken.json"
    broken.write_text("{not json", encoding="utf-8")
    result = runner.invoke(app, ["validate", str(broken)])
    assert result.exit_code == 2

    result = runner.invoke(app, ["replay", str(tmp_path / "missing.json")])
    assert result.exit_code == 2


def test_unknown_scene_exits_with_error(project_file):
    result = runner.invoke(app, ["replay", str(project_file), "--scene", "nope"])
    assert result.exit_code == 2
