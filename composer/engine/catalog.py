#!/usr/bin/env python3
"""
Asset & Schema Catalog

Static, read-only registry of asset definitions and their declarative property schemas.
Built once at startup from composer/data/catalog.yaml and injected wherever it is needed.
"""

import copy
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from composer.core import get_logger, load_yaml

from .errors import SchemaViolation, UnknownAssetType
from .sdk import AssetCategory, AssetDefinition, ComponentSchema, Paths

log = get_logger("catalog")


class AssetCatalog:
    """Immutable lookup of asset definitions by asset-type key."""

    def __init__(self, definitions: Iterable[AssetDefinition]):
        table: Dict[str, AssetDefinition] = {}
        for definition in definitions:
            if definition.id in table:
                raise ValueError(f"Duplicate asset definition: {definition.id}")
            table[definition.id] = definition
        self._definitions: Mapping[str, AssetDefinition] = MappingProxyType(table)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "AssetCatalog":
        """
        Build a catalog from the parsed YAML structure ``{"assets": {id: {...}}}``.

        Definitions without explicit default properties take them from their schema.
        """
        assets = data.get("assets") or {}
        definitions = []
        for asset_id, raw in assets.items():
            raw = dict(raw or {})
            raw.setdefault("id", asset_id)
            schema = raw.get("property_schema")
            if schema is not None:
                schema = ComponentSchema(**schema)
                raw["property_schema"] = schema
                if "default_properties" not in raw:
                    raw["default_properties"] = {p.id: p.default for p in schema.properties}
            definitions.append(AssetDefinition(**raw))
        return cls(definitions)

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "AssetCatalog":
        catalog = cls.from_mapping(load_yaml(str(path)))
        log.info(f"Loaded {len(catalog)} asset definitions from {path}")
        return catalog

    def __len__(self) -> int:
        return len(self._definitions)

    def __contains__(self, asset_type: str) -> bool:
        return asset_type in self._definitions

    def keys(self) -> List[str]:
        return list(self._definitions.keys())

    def lookup(self, asset_type: str) -> Optional[AssetDefinition]:
        """Return the definition, or None for an unknown key (a recoverable condition)."""
        return self._definitions.get(asset_type)

    def schema(self, asset_type: str) -> Optional[ComponentSchema]:
        definition = self.lookup(asset_type)
        return definition.property_schema if definition else None

    def default_properties(self, asset_type: str) -> Dict[str, Any]:
        """A fresh copy of the default property map, empty for unknown keys."""
        definition = self.lookup(asset_type)
        if definition is None:
            return {}
        return copy.deepcopy(dict(definition.default_properties))

    def by_category(self, category: Union[str, AssetCategory]) -> List[AssetDefinition]:
        category = AssetCategory(category)
        return [d for d in self._definitions.values() if d.category == category]

    def by_group(self, group: str) -> List[AssetDefinition]:
        return [d for d in self._definitions.values() if d.group == group]

    def validate(self, asset_type: str, properties: Mapping[str, Any]) -> None:
        """
        Check that every required field is present and non-null.

        Presence only: ranges and select options are checked where input is collected.

        Raises:
            UnknownAssetType: If asset_type is not in the catalog
            SchemaViolation: On the first missing required field
        """
        definition = self.lookup(asset_type)
        if definition is None:
            raise UnknownAssetType(asset_type)
        if definition.property_schema is None:
            return
        for field in definition.property_schema.required_fields():
            if properties.get(field) is None:
                raise SchemaViolation(asset_type, field)


def load_default_catalog(path: Optional[Union[str, Path]] = None) -> AssetCatalog:
    """Load the packaged catalog (or the one at ``path``)."""
    return AssetCatalog.from_yaml(path or Paths.catalog())
