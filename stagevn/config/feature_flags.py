from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Dict

FEATURE_DEFAULTS: Dict[str, bool] = {
    "enable_scene_engine_api": True,
    "enable_focus_indicators": True,
    "record_structural_warnings": True,
    "strict_stack_contiguity": False,
}

_CACHE: Dict[str, bool] | None = None
_CACHE_SIGNATURE: tuple[str, float, float] | None = None


def _candidate_paths() -> tuple[Path, Path]:
    override = os.getenv("STAGEVN_CONFIG")
    if override:
        path = Path(override).expanduser()
        return (path, path)
    return (Path("stagevn.json"), Path("config/stagevn.json"))


def _signature() -> tuple[str, float, float]:
    paths = _candidate_paths()
    values: list[float] = []
    for path in paths:
        try:
            values.append(path.stat().st_mtime)
        except FileNotFoundError:
            values.append(0.0)
    return (str(paths[0]), values[0], values[1])


def _read_features(path: Path) -> Dict[str, bool]:
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return {}
    data = raw.get("features") if isinstance(raw, dict) else None
    if not isinstance(data, dict):
        return {}
    return {key: value for key, value in data.items() if isinstance(value, bool)}


def load_feature_flags(*, refresh: bool = False) -> Dict[str, bool]:
    global _CACHE, _CACHE_SIGNATURE
    signature = _signature()
    if not refresh and _CACHE is not None and signature == _CACHE_SIGNATURE:
        return dict(_CACHE)

    flags: Dict[str, bool] = dict(FEATURE_DEFAULTS)
    for path in dict.fromkeys(_candidate_paths()):
        if path.exists():
            flags.update(_read_features(path))

    _CACHE = flags
    _CACHE_SIGNATURE = signature
    return dict(flags)


def is_enabled(
    name: str, *, default: bool | None = None, refresh: bool = False
) -> bool:
    flags = load_feature_flags(refresh=refresh)
    if name in flags:
        return bool(flags[name])
    if default is not None:
        return bool(default)
    return False


def refresh_cache() -> Dict[str, bool]:
    return load_feature_flags(refresh=True)


__all__ = ["FEATURE_DEFAULTS", "is_enabled", "load_feature_flags", "refresh_cache"]
