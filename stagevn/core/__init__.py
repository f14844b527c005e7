from __future__ import annotations

from stagevn.core.warning_bus import (
    StructuralWarning,
    WarningBus,
    flag_structural,
    warning_bus,
)

__all__ = ["StructuralWarning", "WarningBus", "flag_structural", "warning_bus"]
