"""
Template Composer - Engine Package

This package provides the timeline model, the vector animation property injector, renderer
dispatch and the export renderer. The interactive preview (composer.engine.preview) is not
imported here so that export never loads the preview rasterizer.
"""

from .catalog import AssetCatalog, load_default_catalog
from .compositor import FrameCompositor, phase_params
from .dispatch import InstancePool, RendererRegistry, load_default_registry
from .documents import AnimationDocumentCache, DocumentStatus
from .errors import (
    AnimationLoadFailure,
    ComposerError,
    PatchSkipped,
    SchemaViolation,
    TimelineError,
    UnknownAssetType,
)
from .export import TimelineExporter
from .frames import frame_for
from .injector import AnimationPropertyInjector, InjectionResult, PropertySet, property_set_from_item
from .sdk import (  # Constants; Enums; Models
    FPS,
    MAIN_TAB_ID,
    VIDEO_H,
    VIDEO_W,
    AssetCategory,
    AssetDefinition,
    RendererDescriptor,
    RendererTech,
    TimelineGroup,
    TimelineItem,
    TimelineLayer,
    TimelineTab,
)
from .timeline import Timeline

__version__ = "0.1.0"
__all__ = [
    "VIDEO_W",
    "VIDEO_H",
    "FPS",
    "MAIN_TAB_ID",
    "AssetCategory",
    "RendererTech",
    "AssetDefinition",
    "RendererDescriptor",
    "TimelineItem",
    "TimelineLayer",
    "TimelineGroup",
    "TimelineTab",
    "AssetCatalog",
    "load_default_catalog",
    "Timeline",
    "AnimationPropertyInjector",
    "InjectionResult",
    "PropertySet",
    "property_set_from_item",
    "frame_for",
    "RendererRegistry",
    "InstancePool",
    "load_default_registry",
    "AnimationDocumentCache",
    "DocumentStatus",
    "FrameCompositor",
    "phase_params",
    "TimelineExporter",
    "ComposerError",
    "UnknownAssetType",
    "SchemaViolation",
    "AnimationLoadFailure",
    "TimelineError",
    "PatchSkipped",
]
