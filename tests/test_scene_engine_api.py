from __future__ import annotations

from typing import Any, Dict

import pytest

pytest.importorskip("httpx")

from fastapi.testclient import TestClient

from stagevn.server.app import create_app

from tests.scene_helpers import branch, end, music, say, sfx


@pytest.fixture
def client() -> TestClient:
    return TestClient(create_app())


@pytest.fixture
def project_doc() -> Dict[str, Any]:
    return {
        "start_scene_id": "s1",
        "variables": {"gold": {"id": "gold", "type": "number", "default": 5}},
        "scenes": {
            "s1": {
                "id": "s1",
                "name": "Intro",
                "commands": [
                    {"type": "set_background", "id": "c0", "background_id": "bg1"},
                    branch("B"),
                    say("c1", "Hello", character_id="alice"),
                    end("B"),
                ],
            }
        },
    }


def test_health(client):
    assert client.get("/health").json()["status"] == "ok"


def test_stage_state_route(client, project_doc):
    resp = client.post(
        "/scene-engine/stage-state",
        json={
            "project": project_doc,
            "assets": {"backgrounds": {"bg1": {"id": "bg1", "url": "/bg1.png"}}},
            "target_index": 2,
        },
    )
    assert resp.status_code == 200
    snapshot = resp.json()["snapshot"]
    assert snapshot["background_url"] == "/bg1.png"
    assert snapshot["focus"]["type"] == "dialogue"
    assert snapshot["focus"]["text"] == "Hello"
    assert snapshot["variables"] == {"gold": 5}


def test_stage_state_unknown_scene_uses_error_envelope(client, project_doc):
    resp = client.post("/scene-engine/stage-state", json={"project": project_doc, "scene_id": "nope"})
    assert resp.status_code == 404
    body = resp.json()
    assert body["ok"] is False
    assert body["code"] == "unknown_scene"


def test_dispatch_reports_changes_and_warnings(client, project_doc):
    resp = client.post(
        "/scene-engine/dispatch",
        json={"project": project_doc, "action": {"type": "delete_command", "payload": {"scene_id": "s1", "command_index": 1}}},
    )
    body = resp.json()
    assert body["changed"] is True
    assert [cmd["id"] for cmd in body["project"]["scenes"]["s1"]["commands"]] == ["c0", "c1"]

    resp = client.post(
        "/scene-engine/dispatch",
        json={"project": project_doc, "action": {"type": "delete_command", "payload": {"scene_id": "s1", "command_index": 3}}},
    )
    body = resp.json()
    assert body["changed"] is False
    assert body["warnings"][0]["code"] == "branch_end_locked"

    warnings = client.get("/scene-engine/warnings", params={"scene_id": "s1"}).json()["items"]
    assert warnings[-1]["code"] == "branch_end_locked"


def test_dispatch_rejects_malformed_project(client):
    resp = client.post(
        "/scene-engine/dispatch",
        json={"project": {"scenes": {}, "start_scene_id": "ghost"}, "action": {"type": "add_scene"}},
    )
    assert resp.status_code == 422
    assert resp.json()["code"] == "validation_error"


def test_visible_and_stacks_routes(client):
    scene = {
        "id": "s",
        "commands": [
            branch("B"),
            say("x"),
            end("B"),
            music("m", modifiers={"run_async": True, "stack_id": "st", "stack_order": 0}),
            sfx("fx", modifiers={"run_async": True, "stack_id": "st", "stack_order": 1}),
        ],
    }
    rows = client.post("/scene-engine/visible", json={"scene": scene, "collapsed": ["B"]}).json()["rows"]
    assert [row["index"] for row in rows] == [0, 2, 3, 4]

    views = client.post("/scene-engine/stacks", json={"scene": scene}).json()["views"]
    assert len(views) == 4
    assert [cmd["id"] for cmd in views[-1]["commands"]] == ["m", "fx"]


def test_can_stack_route(client):
    body = client.post("/scene-engine/can-stack", json={"commands": [say("d"), sfx("fx")]}).json()
    assert body["can_stack"] is False
    assert "d" in body["reason"]

    body = client.post(
        "/scene-engine/can-stack",
        json={"commands": [music("m"), {"type": "wait", "id": "w"}]},
    ).json()
    assert body["can_stack"] is True
    assert list(body["cautions"]) == ["w"]


def test_validate_route(client):
    body = client.post(
        "/scene-engine/validate",
        json={"scene": {"id": "s", "commands": [branch("B")]}},
    ).json()
    assert body["ok"] is False
    assert "never closed" in body["errors"][0]["msg"]


def test_router_can_be_disabled(write_flags):
    write_flags(enable_scene_engine_api=False)
    client = TestClient(create_app())
    resp = client.post("/scene-engine/validate", json={})
    assert resp.status_code == 404
    assert resp.json()["code"] == "http_404"
