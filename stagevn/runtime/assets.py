"""
Asset lookup boundary used by the replay.

The interpreter never loads media; it only asks an ``AssetResolver`` for the
display URL of an id and passes the answer through.  ``CatalogAssetResolver``
answers from an in-memory ``AssetCatalog`` (what the CLI and HTTP surfaces
read from the request), ``NullAssetResolver`` resolves nothing.
"""

from __future__ import annotations

from typing import Dict, List, Optional, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field

__all__ = [
    "AssetCatalog",
    "AssetEntry",
    "AssetResolver",
    "CatalogAssetResolver",
    "CharacterDefinition",
    "CharacterExpression",
    "CharacterLayer",
    "LayerAsset",
    "NullAssetResolver",
]

_CATALOG = ConfigDict(extra="ignore", frozen=True)


class LayerAsset(BaseModel):
    id: str
    name: str = ""
    image_url: Optional[str] = None

    model_config = _CATALOG


class CharacterLayer(BaseModel):
    id: str
    name: str = ""
    assets: Dict[str, LayerAsset] = Field(default_factory=dict)

    model_config = _CATALOG


class CharacterExpression(BaseModel):
    id: str
    name: str = ""
    layer_configuration: Dict[str, Optional[str]] = Field(default_factory=dict)

    model_config = _CATALOG


class CharacterDefinition(BaseModel):
    id: str
    name: str = ""
    color: str = "#FFFFFF"
    base_image_url: Optional[str] = None
    layers: Dict[str, CharacterLayer] = Field(default_factory=dict)
    expressions: Dict[str, CharacterExpression] = Field(default_factory=dict)

    model_config = _CATALOG

    def image_layers(self, expression_id: str) -> List[str]:
        """Base image followed by each configured layer's asset, in layer order."""
        urls: List[str] = []
        if self.base_image_url:
            urls.append(self.base_image_url)
        expression = self.expressions.get(expression_id)
        if expression is None:
            return urls
        for layer in self.layers.values():
            asset_id = expression.layer_configuration.get(layer.id)
            if not asset_id:
                continue
            asset = layer.assets.get(asset_id)
            if asset is not None and asset.image_url:
                urls.append(asset.image_url)
        return urls


class AssetEntry(BaseModel):
    id: str
    name: str = ""
    url: Optional[str] = None

    model_config = _CATALOG


class AssetCatalog(BaseModel):
    backgrounds: Dict[str, AssetEntry] = Field(default_factory=dict)
    images: Dict[str, AssetEntry] = Field(default_factory=dict)
    videos: Dict[str, AssetEntry] = Field(default_factory=dict)
    characters: Dict[str, CharacterDefinition] = Field(default_factory=dict)

    model_config = _CATALOG


@runtime_checkable
class AssetResolver(Protocol):
    def background_url(self, background_id: str) -> Optional[str]: ...

    def image_url(self, image_id: str) -> Optional[str]: ...

    def video_url(self, video_id: str) -> Optional[str]: ...

    def video_name(self, video_id: str) -> Optional[str]: ...

    def character(self, character_id: str) -> Optional[CharacterDefinition]: ...


class NullAssetResolver:
    def background_url(self, background_id: str) -> Optional[str]:
        return None

    def image_url(self, image_id: str) -> Optional[str]:
        return None

    def video_url(self, video_id: str) -> Optional[str]:
        return None

    def video_name(self, video_id: str) -> Optional[str]:
        return None

    def character(self, character_id: str) -> Optional[CharacterDefinition]:
        return None


class CatalogAssetResolver:
    def __init__(self, catalog: AssetCatalog | None = None) -> None:
        self.catalog = catalog or AssetCatalog()

    def background_url(self, background_id: str) -> Optional[str]:
        entry = self.catalog.backgrounds.get(background_id)
        return entry.url if entry else None

    def image_url(self, image_id: str) -> Optional[str]:
        # backgrounds double as free-floating images
        entry = self.catalog.images.get(image_id) or self.catalog.backgrounds.get(image_id)
        return entry.url if entry else None

    def video_url(self, video_id: str) -> Optional[str]:
        entry = self.catalog.videos.get(video_id)
        return entry.url if entry else None

    def video_name(self, video_id: str) -> Optional[str]:
        entry = self.catalog.videos.get(video_id)
        return (entry.name or None) if entry else None

    def character(self, character_id: str) -> Optional[CharacterDefinition]:
        return self.catalog.characters.get(character_id)
