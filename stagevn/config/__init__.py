from __future__ import annotations

from stagevn.config.feature_flags import (
    FEATURE_DEFAULTS,
    is_enabled,
    load_feature_flags,
    refresh_cache,
)

__all__ = ["FEATURE_DEFAULTS", "is_enabled", "load_feature_flags", "refresh_cache"]
