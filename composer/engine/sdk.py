#!/usr/bin/env python3
"""
Core SDK for the Timeline Composition Engine

This module provides the single source of truth for types, constants, paths, and naming.
All engine modules import their record types from this file to avoid drift.
"""

import json
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from composer.core import DATA_DIR


# ============================================================================
# CONSTANTS
# ============================================================================

VIDEO_W = 1920
VIDEO_H = 1080
FPS = 30
DEFAULT_ITEM_DURATION = 5.0
DEFAULT_BACKGROUND = "#184cb4"
TRANSPARENT = "transparent"
MAIN_TAB_ID = "main"
MAIN_TAB_NAME = "Main Video"


class AssetCategory(str, Enum):
    COMPONENT = "component"
    MEDIA = "media"
    EFFECT = "effect"
    TEXT = "text"
    AUDIO = "audio"


class RendererTech(str, Enum):
    VECTOR_CANVAS = "vector-canvas"
    DOM_OVERLAY = "dom-overlay"
    RASTER_CANVAS = "raster-canvas"
    HYBRID = "hybrid"


class PerformanceClass(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class PropertyType(str, Enum):
    TEXT = "text"
    NUMBER = "number"
    RANGE = "range"
    COLOR = "color"
    FILE = "file"
    SELECT = "select"
    TEXTAREA = "textarea"
    BOOLEAN = "boolean"
    ARRAY = "array"
    OBJECT = "object"


class LayerKind(str, Enum):
    VIDEO = "video"
    AUDIO = "audio"
    EFFECTS = "effects"
    TEXT = "text"


class TabKind(str, Enum):
    MAIN = "main"
    GROUP = "group"


# ============================================================================
# PATH HELPERS
# ============================================================================

class Paths:
    """Centralized path management for packaged engine data."""

    @staticmethod
    def data_dir() -> Path:
        return Path(DATA_DIR)

    @staticmethod
    def catalog() -> Path:
        """Asset definitions and component schemas."""
        return Path(DATA_DIR) / "catalog.yaml"

    @staticmethod
    def renderers() -> Path:
        """Renderer descriptors keyed by asset type."""
        return Path(DATA_DIR) / "renderers.yaml"


# ============================================================================
# CATALOG MODELS
# ============================================================================

class RendererRef(BaseModel):
    """Renderer reference carried by asset definitions and timeline items."""

    model_config = ConfigDict(frozen=True)

    technology: RendererTech = Field(..., description="Rendering technology tag")
    component_ref: Optional[str] = Field(None, description="Widget or document reference")


class AssetMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    accepted_file_types: List[str] = Field(default_factory=list)
    supports_layers: bool = False
    animation_source: Optional[str] = Field(None, description="Vector animation document path or URI")
    family: Optional[str] = Field(None, description="Procedural export family")
    min_duration: Optional[float] = None
    max_duration: Optional[float] = None


class SelectOption(BaseModel):
    model_config = ConfigDict(frozen=True)

    value: Any
    label: str


class ComponentProperty(BaseModel):
    """One configurable field of a component schema."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    label: str = ""
    semantic_type: PropertyType = Field(..., alias="type")
    description: Optional[str] = None
    required: bool = False
    default: Any = None
    min: Optional[float] = None
    max: Optional[float] = None
    step: Optional[float] = None
    options: List[SelectOption] = Field(default_factory=list)
    accept: Optional[str] = None
    placeholder: Optional[str] = None
    item_schema: Optional["ComponentProperty"] = None
    properties: List["ComponentProperty"] = Field(default_factory=list)


ComponentProperty.model_rebuild()


class ComponentSchema(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    properties: List[ComponentProperty] = Field(default_factory=list)

    def required_fields(self) -> List[str]:
        return [p.id for p in self.properties if p.required]

    def defaults(self) -> Dict[str, Any]:
        return {p.id: p.default for p in self.properties if p.default is not None}


class AssetDefinition(BaseModel):
    """Immutable catalog entry."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    category: AssetCategory
    group: str = Field("", description="Display grouping, e.g. 'Motion Graphics'")
    description: str = ""
    duration: float = Field(..., ge=0, description="Nominal duration in seconds, 0 = dynamic")
    default_properties: Dict[str, Any] = Field(default_factory=dict)
    renderer: RendererRef
    metadata: AssetMetadata = Field(default_factory=AssetMetadata)
    property_schema: Optional[ComponentSchema] = None


class RendererDescriptor(BaseModel):
    """Dispatch record describing how a type renders and the limits it renders under."""

    model_config = ConfigDict(frozen=True)

    asset_type: str
    technology: RendererTech
    performance: PerformanceClass = PerformanceClass.MEDIUM
    debounce_ms: int = Field(100, ge=0)
    max_instances: int = Field(10, ge=1)
    pause_offscreen: bool = False


# ============================================================================
# TIMELINE MODELS
# ============================================================================

class TimelineItem(BaseModel):
    """A placed instance of a catalog asset."""

    model_config = ConfigDict(validate_assignment=True)

    id: str
    asset_type: str
    name: str = ""
    category: AssetCategory
    layer_id: str
    start_time: float = Field(..., ge=0)
    duration: float = Field(..., gt=0)
    properties: Dict[str, Any] = Field(default_factory=dict)
    renderer: RendererRef
    locked: bool = False
    visible: bool = True
    muted: bool = False
    group_id: Optional[str] = None

    @property
    def end_time(self) -> float:
        return self.start_time + self.duration

    def is_active_at(self, t: float) -> bool:
        return self.start_time <= t < self.end_time


class TimelineLayer(BaseModel):
    model_config = ConfigDict(validate_assignment=True)

    id: str
    name: str
    kind: LayerKind = LayerKind.VIDEO
    order: int = Field(..., ge=0, description="z-index, unique per timeline")
    visible: bool = True
    locked: bool = False
    opacity: float = Field(1.0, ge=0.0, le=1.0)
    items: List[TimelineItem] = Field(default_factory=list)


class TimelineGroup(BaseModel):
    model_config = ConfigDict(validate_assignment=True)

    id: str
    name: str
    item_ids: List[str] = Field(default_factory=list)
    start_time: float = 0.0
    end_time: float = 0.0
    color: str = "#888888"
    collapsed: bool = True
    tab_id: Optional[str] = None


class TimelineTab(BaseModel):
    model_config = ConfigDict(validate_assignment=True)

    id: str
    name: str
    kind: TabKind
    group_id: Optional[str] = None
    is_active: bool = False

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError("Tab name must be non-empty")
        return v.strip()


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def save_records(records: Dict[str, Any], path: Union[str, Path]) -> None:
    """Save timeline records to a JSON file."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(records, f, indent=2)


def load_records(path: Union[str, Path]) -> Dict[str, Any]:
    """Load timeline records from a JSON file."""
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"Timeline records at {path} must be a JSON object")
    return data


__all__ = [
    # Constants
    "VIDEO_W", "VIDEO_H", "FPS", "DEFAULT_ITEM_DURATION", "DEFAULT_BACKGROUND",
    "TRANSPARENT", "MAIN_TAB_ID", "MAIN_TAB_NAME",

    # Enums
    "AssetCategory", "RendererTech", "PerformanceClass", "PropertyType", "LayerKind", "TabKind",

    # Path helpers
    "Paths",

    # Models
    "RendererRef", "AssetMetadata", "SelectOption", "ComponentProperty", "ComponentSchema",
    "AssetDefinition", "RendererDescriptor", "TimelineItem", "TimelineLayer", "TimelineGroup",
    "TimelineTab",

    # Helper functions
    "save_records", "load_records",
]
