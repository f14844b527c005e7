from __future__ import annotations

import json
import logging
import os
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Iterator

DEFAULT_LOG_FILE = "stagevn.log"
_SCENE_ID_VAR: ContextVar[str | None] = ContextVar("stagevn_scene_id", default=None)

# Attributes every LogRecord carries; anything else came in through ``extra``.
_STANDARD_ATTRS: frozenset[str] = frozenset(logging.makeLogRecord({}).__dict__) | {
    "message",
    "scene_id",
}


def _jsonable(value: Any) -> Any:
    try:
        json.dumps(value)
    except (TypeError, ValueError):
        return repr(value)
    return value


class StructuredJsonFormatter(logging.Formatter):
    """One JSON object per line, with the active scene id and any extras."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        scene_id = getattr(record, "scene_id", None)
        if scene_id:
            payload["scene_id"] = scene_id
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)

        extra = {
            key: _jsonable(value)
            for key, value in record.__dict__.items()
            if key not in _STANDARD_ATTRS
        }
        if extra:
            payload["extra"] = extra
        return json.dumps(payload, ensure_ascii=True)


class SceneContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "scene_id", None) is None:
            record.scene_id = get_scene_id()
        return True


def get_scene_id() -> str | None:
    return _SCENE_ID_VAR.get()


@contextmanager
def scene_context(scene_id: str | None) -> Iterator[None]:
    """Attach ``scene_id`` to every record logged inside the block."""
    token = _SCENE_ID_VAR.set(scene_id)
    try:
        yield
    finally:
        _SCENE_ID_VAR.reset(token)


def default_log_dir() -> Path:
    return Path(os.getenv("STAGEVN_LOG_DIR") or "logs").expanduser().resolve()


def init_logging(
    log_dir: str | os.PathLike[str] | None = None,
    *,
    level: str | None = None,
    filename: str = DEFAULT_LOG_FILE,
) -> Path:
    """Route root logging to a rotating JSON file and stderr; return the file path.

    ``level`` falls back to ``STAGEVN_LOG_LEVEL`` and then ``INFO``; an unknown
    level name also means ``INFO``.
    """
    base = Path(log_dir).expanduser().resolve() if log_dir else default_log_dir()
    base.mkdir(parents=True, exist_ok=True)
    log_path = base / filename

    level_name = (level or os.getenv("STAGEVN_LOG_LEVEL") or "INFO").upper()
    resolved = logging.getLevelName(level_name)
    root = logging.getLogger()
    root.setLevel(resolved if isinstance(resolved, int) else logging.INFO)

    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    formatter = StructuredJsonFormatter()
    handlers = [
        RotatingFileHandler(
            str(log_path), maxBytes=5 * 1024 * 1024, backupCount=5, encoding="utf-8"
        ),
        logging.StreamHandler(),
    ]
    for handler in handlers:
        handler.setFormatter(formatter)
        handler.addFilter(SceneContextFilter())
        root.addHandler(handler)
    return log_path
