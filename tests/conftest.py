from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from stagevn.config import feature_flags
from stagevn.core.warning_bus import warning_bus


@pytest.fixture(autouse=True)
def _isolated_engine(tmp_path, monkeypatch):
    """Default feature flags, an empty warning bus and untouched root logging."""
    monkeypatch.setenv("STAGEVN_CONFIG", str(tmp_path / "stagevn.json"))
    monkeypatch.setenv("STAGEVN_LOG_DIR", str(tmp_path / "logs"))
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    feature_flags.refresh_cache()
    warning_bus.clear()
    yield
    warning_bus.clear()
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)
    monkeypatch.delenv("STAGEVN_CONFIG", raising=False)
    feature_flags.refresh_cache()


@pytest.fixture
def write_flags(tmp_path):
    """Write feature overrides to the isolated config file."""

    def _write(**features: bool) -> None:
        (tmp_path / "stagevn.json").write_text(
            json.dumps({"features": features}), encoding="utf-8"
        )
        feature_flags.refresh_cache()

    return _write
