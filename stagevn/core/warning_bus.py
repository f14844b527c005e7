"""Bounded store of structural warnings raised by the editor and replay."""

from __future__ import annotations

import logging
import threading
import time
import uuid
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

from stagevn.config.feature_flags import is_enabled

LOGGER = logging.getLogger(__name__)


@dataclass
class StructuralWarning:
    """A recovered integrity problem: the edit became a no-op."""

    id: str
    code: str
    message: str
    scene_id: Optional[str] = None
    level: str = "warning"
    details: Dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


class WarningBus:
    """Thread-safe ring of recent warnings for the editing surface to poll."""

    def __init__(self, *, max_items: int = 200) -> None:
        self._max_items = max_items
        self._records: List[StructuralWarning] = []
        self._lock = threading.Lock()
        self._handler_attached = False

    def record(
        self,
        code: str,
        message: str,
        *,
        scene_id: Optional[str] = None,
        level: str = "warning",
        details: Optional[Dict[str, Any]] = None,
    ) -> StructuralWarning:
        record = StructuralWarning(
            id=str(uuid.uuid4()),
            code=code,
            message=message,
            scene_id=scene_id,
            level=level.lower(),
            details=dict(details or {}),
        )
        with self._lock:
            self._records.append(record)
            if len(self._records) > self._max_items:
                self._records = self._records[-self._max_items :]
        return record

    def list(
        self, limit: int = 20, *, scene_id: Optional[str] = None
    ) -> List[StructuralWarning]:
        with self._lock:
            records = list(self._records)
        if scene_id is not None:
            records = [rec for rec in records if rec.scene_id == scene_id]
        return records[-limit:] if limit else records

    def clear(self) -> None:
        with self._lock:
            self._records.clear()

    def attach_logging_handler(self, logger: Optional[logging.Logger] = None) -> None:
        """Mirror WARNING+ records from ``logger`` (default: ``stagevn``) onto the bus."""
        with self._lock:
            if self._handler_attached:
                return
            self._handler_attached = True
        target = logger or logging.getLogger("stagevn")
        target.addHandler(_WarningLoggingHandler(self))


class _WarningLoggingHandler(logging.Handler):
    def __init__(self, bus: WarningBus) -> None:
        super().__init__(level=logging.WARNING)
        self._bus = bus

    def emit(self, record: logging.LogRecord) -> None:
        # flag_structural already records its own entries
        if getattr(record, "structural_code", None):
            return
        self._bus.record(
            "log",
            record.getMessage(),
            scene_id=getattr(record, "scene_id", None),
            level=record.levelname,
            details={"logger": record.name, "lineno": record.lineno},
        )


warning_bus = WarningBus()


def flag_structural(
    code: str,
    message: str,
    *,
    scene_id: Optional[str] = None,
    **details: Any,
) -> None:
    """Log a recovered integrity violation and put it on the warning bus."""
    LOGGER.warning(
        "%s (scene=%s)",
        message,
        scene_id,
        extra={"structural_code": code, "details": details},
    )
    if is_enabled("record_structural_warnings"):
        warning_bus.record(code, message, scene_id=scene_id, details=details)


__all__ = ["StructuralWarning", "WarningBus", "flag_structural", "warning_bus"]
