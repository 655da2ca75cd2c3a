#!/usr/bin/env python3
"""
Technology Handlers

One handler per rendering technology, all sharing the render / default_properties /
validate interface. Handlers are bound to technologies once, at registration, and
resolution is total: a missing descriptor or an unregistered technology resolves to the
unsupported handler, which draws a labeled placeholder.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from PIL import Image

from composer.core import get_logger

from .catalog import AssetCatalog
from .compositor import FrameCompositor
from .documents import AnimationDocumentCache, DocumentStatus
from .errors import UnknownAssetType
from .frames import frame_count, frame_for, frame_rate
from .injector import AnimationPropertyInjector, property_set_from_item
from .instances import InstanceState, RendererInstance
from .placeholders import ERRORED, LOADING, UNSUPPORTED, placeholder
from .sdk import AssetDefinition, RendererDescriptor, RendererTech, TimelineItem
from .vector_raster import VectorRasterizer

log = get_logger("handlers")


@dataclass
class RenderRequest:
    item: TimelineItem
    definition: Optional[AssetDefinition]
    instance: Optional[RendererInstance]
    local_time: float
    size: Tuple[int, int]
    refresh: bool = False


class TechnologyHandler:
    """Base capability interface."""

    technology: Optional[RendererTech] = None

    def __init__(self, catalog: AssetCatalog):
        self.catalog = catalog

    def default_properties(self, asset_type: str) -> Dict[str, Any]:
        return self.catalog.default_properties(asset_type)

    def validate(self, asset_type: str, properties: Mapping[str, Any]) -> None:
        self.catalog.validate(asset_type, properties)

    def render(self, request: RenderRequest) -> Optional[Image.Image]:
        raise NotImplementedError


class VectorCanvasHandler(TechnologyHandler):
    """Vector documents: fetch (async) -> inject per instance -> rasterize the mapped frame."""

    technology = RendererTech.VECTOR_CANVAS

    def __init__(
        self,
        catalog: AssetCatalog,
        documents: AnimationDocumentCache,
        injector: AnimationPropertyInjector,
        rasterizer: VectorRasterizer,
        default_background: Optional[str] = None,
    ):
        super().__init__(catalog)
        self.documents = documents
        self.injector = injector
        self.rasterizer = rasterizer
        self.default_background = default_background

    def render(self, request: RenderRequest) -> Optional[Image.Image]:
        item, instance = request.item, request.instance
        source = request.definition.metadata.animation_source if request.definition else None
        if not source:
            raise ValueError(f"{item.asset_type} has no animation source")

        status = self.documents.status(source)
        if status == DocumentStatus.MISSING:
            self.documents.request(source)
            status = self.documents.status(source)
        if status == DocumentStatus.LOADING:
            return placeholder(request.size, LOADING, item.asset_type)
        if status == DocumentStatus.FAILED:
            failure = self.documents.error(source)
            reason = failure.reason if failure else "load failed"
            if instance.state != InstanceState.ERRORED:
                instance.fail(reason)
            return placeholder(request.size, ERRORED, item.asset_type, reason)

        if instance.document is None or request.refresh or instance.injected_from != item.properties:
            props = property_set_from_item(item.properties, self.default_background)
            result = self.injector.inject(self.documents.peek(source), props)
            instance.attach(result.document, item.properties)

        document = instance.document
        total = frame_count(document)
        index = frame_for(request.local_time, item.duration, frame_rate(document), total)
        if instance.suspended:
            index = instance.paused_frame or 0
        else:
            instance.seek(index)
        ip = float(document.get("ip", 0) or 0)
        image = self.rasterizer.render(document, ip + index, request.size)
        instance.recover()
        return image


class ProceduralHandler(TechnologyHandler):
    """Widgets drawn by the procedural compositor (DOM overlays, raster canvases)."""

    def __init__(self, catalog: AssetCatalog, compositor: FrameCompositor):
        super().__init__(catalog)
        self.compositor = compositor

    def render(self, request: RenderRequest) -> Optional[Image.Image]:
        instance = request.instance
        if instance.state == InstanceState.LOADING:
            instance.attach()
        frame, _, _ = self.compositor.item_progress(request.item, request.local_time)
        if instance.suspended:
            frame = instance.paused_frame or 0
            local_time = frame / float(self.compositor.fps)
        else:
            instance.seek(frame)
            local_time = request.local_time
        image = self.compositor.render_item(request.item, request.definition, local_time, request.size)
        instance.recover()
        return image


class DomOverlayHandler(ProceduralHandler):
    technology = RendererTech.DOM_OVERLAY


class RasterCanvasHandler(ProceduralHandler):
    technology = RendererTech.RASTER_CANVAS


class HybridHandler(ProceduralHandler):
    """Audio and other mixed assets: tracked as live instances, nothing drawn."""

    technology = RendererTech.HYBRID

    def render(self, request: RenderRequest) -> Optional[Image.Image]:
        super().render(request)
        return None


class UnsupportedHandler(TechnologyHandler):
    def default_properties(self, asset_type: str) -> Dict[str, Any]:
        return {}

    def validate(self, asset_type: str, properties: Mapping[str, Any]) -> None:
        raise UnknownAssetType(asset_type)

    def render(self, request: RenderRequest) -> Optional[Image.Image]:
        return placeholder(request.size, UNSUPPORTED, request.item.asset_type, "no renderer registered")


class HandlerRegistry:
    def __init__(self, handlers: Iterable[TechnologyHandler], fallback: TechnologyHandler):
        self._handlers = {h.technology: h for h in handlers if h.technology is not None}
        self.fallback = fallback

    def resolve(self, descriptor: Optional[RendererDescriptor]) -> TechnologyHandler:
        if descriptor is None:
            return self.fallback
        return self._handlers.get(descriptor.technology, self.fallback)


def build_handlers(
    catalog: AssetCatalog,
    documents: AnimationDocumentCache,
    injector: AnimationPropertyInjector,
    rasterizer: VectorRasterizer,
    compositor: FrameCompositor,
    default_background: Optional[str] = None,
) -> HandlerRegistry:
    return HandlerRegistry(
        [
            VectorCanvasHandler(catalog, documents, injector, rasterizer, default_background),
            DomOverlayHandler(catalog, compositor),
            RasterCanvasHandler(catalog, compositor),
            HybridHandler(catalog, compositor),
        ],
        fallback=UnsupportedHandler(catalog),
    )
