from __future__ import annotations

from stagevn.runtime.assets import (
    AssetCatalog,
    AssetResolver,
    CatalogAssetResolver,
    CharacterDefinition,
    NullAssetResolver,
)
from stagevn.runtime.stage_state import StageSnapshot, compute_stage_state
from stagevn.runtime.variables import apply_set_variable, seed_environment

__all__ = [
    "AssetCatalog",
    "AssetResolver",
    "CatalogAssetResolver",
    "CharacterDefinition",
    "NullAssetResolver",
    "StageSnapshot",
    "apply_set_variable",
    "compute_stage_state",
    "seed_environment",
]
