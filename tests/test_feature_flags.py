from __future__ import annotations

import json

from stagevn.config import feature_flags


def test_defaults_without_config():
    flags = feature_flags.load_feature_flags(refresh=True)
    assert flags == feature_flags.FEATURE_DEFAULTS
    assert feature_flags.is_enabled("enable_scene_engine_api") is True
    assert feature_flags.is_enabled("strict_stack_contiguity") is False
    assert feature_flags.is_enabled("not_a_flag") is False
    assert feature_flags.is_enabled("not_a_flag", default=True) is True


def test_overrides_are_read_and_cached(tmp_path):
    config = tmp_path / "stagevn.json"
    config.write_text(
        json.dumps({"features": {"strict_stack_contiguity": True, "ignored": "yes"}}),
        encoding="utf-8",
    )
    flags = feature_flags.refresh_cache()
    assert flags["strict_stack_contiguity"] is True
    assert "ignored" not in flags
    assert feature_flags.is_enabled("strict_stack_contiguity") is True


def test_malformed_config_falls_back_to_defaults(tmp_path):
    (tmp_path / "stagevn.json").write_text("{oops", encoding="utf-8")
    assert feature_flags.refresh_cache() == feature_flags.FEATURE_DEFAULTS
