#!/usr/bin/env python3
"""
Preview Engine

Cooperative, single-threaded preview loop: the playback clock advances current time,
debounced property edits are applied, renderer instances are acquired (with per-type
caps), suspended or resumed according to the viewport, and the active tab's items are
composited bottom-to-top. Each item renders inside its own error boundary: a failing
item becomes a labeled placeholder and the rest of the frame still renders.
"""

import time
from typing import Callable, Dict, List, Mapping, Optional, Set, Tuple

from PIL import Image

from composer.core import GlobalCfg, get_logger

from .catalog import AssetCatalog
from .color import hex_to_rgb, normalize_hex
from .compositor import FrameCompositor, with_opacity
from .debounce import PropertyDebouncer
from .dispatch import InstancePool, RendererRegistry
from .documents import AnimationDocumentCache
from .errors import ComposerError
from .frames import local_time
from .handlers import HandlerRegistry, RenderRequest, build_handlers
from .injector import AnimationPropertyInjector
from .placeholders import ERRORED, placeholder
from .playback import PlaybackClock
from .timeline import Timeline
from .vector_raster import VectorRasterizer

log = get_logger("preview")


class PreviewEngine:
    """Ties the timeline, dispatch, instance pool, debouncer and clock together."""

    def __init__(
        self,
        timeline: Timeline,
        registry: RendererRegistry,
        documents: AnimationDocumentCache,
        cfg: Optional[GlobalCfg] = None,
        handlers: Optional[HandlerRegistry] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.cfg = cfg or GlobalCfg()
        self.timeline = timeline
        self.catalog: AssetCatalog = timeline.catalog
        self.registry = registry
        self.documents = documents
        self.pool = InstancePool(registry)
        self.debouncer = PropertyDebouncer(clock or time.monotonic)
        self.playback = PlaybackClock(timeline.total_duration, self.cfg.playback.tick_seconds)
        self.handlers = handlers or build_handlers(
            self.catalog,
            documents,
            AnimationPropertyInjector.from_config(self.cfg.injector),
            VectorRasterizer(self.cfg.storage.data_dir, self.cfg.injector.max_depth),
            FrameCompositor.from_config(self.cfg),
            self.cfg.injector.default_background,
        )
        scale = self.cfg.render.preview_scale
        self.size: Tuple[int, int] = (
            max(1, int(self.cfg.render.width * scale)),
            max(1, int(self.cfg.render.height * scale)),
        )
        self.viewport: Optional[Tuple[float, float]] = None
        self._stale: Set[str] = set()

    # ---------------------------------------------------------------- edits

    def edit_properties(self, item_id: str, changes: Mapping[str, object], now: Optional[float] = None) -> None:
        """Queue a property edit; it is applied after the type's debounce interval."""
        item = self.timeline.get_item(item_id)
        self.debouncer.submit(item_id, changes, self.registry.debounce_ms(item.asset_type), now)

    def apply_pending(self, now: Optional[float] = None, flush: bool = False) -> List[str]:
        released = self.debouncer.flush() if flush else self.debouncer.due(now)
        applied = []
        for item_id, changes in released:
            if self.timeline.find_item(item_id) is None:
                continue
            try:
                self.timeline.update_properties(item_id, changes)
            except ComposerError as e:
                log.warning(f"[{item_id}] edit rejected: {e}")
                continue
            self._stale.add(item_id)
            applied.append(item_id)
        return applied

    # ------------------------------------------------------------ visibility

    def set_viewport(self, start: Optional[float], end: Optional[float] = None) -> None:
        """Visible time window of the active tab; None shows everything."""
        if start is None:
            self.viewport = None
        else:
            self.viewport = (float(start), float(end if end is not None else start))

    def visible_item_ids(self) -> Set[str]:
        items = self.timeline.tab_items()
        if self.viewport is None:
            return {i.id for i in items}
        start, end = self.viewport
        return {i.id for i in items if i.start_time < end and i.end_time > start}

    def sync_instances(self) -> Tuple[List[str], List[str]]:
        """Release instances of deleted items, then suspend/resume by visibility."""
        self.pool.release_missing({i.id for i in self.timeline.items()})
        return self.pool.update_visibility(self.visible_item_ids())

    # ------------------------------------------------------------- rendering

    def render_item(self, item, t: float) -> Optional[Image.Image]:
        """Render one item inside its error boundary."""
        definition = self.catalog.lookup(item.asset_type)
        descriptor = self.registry.dispatch(item.asset_type)
        handler = self.handlers.resolve(descriptor)
        instance = None
        try:
            if descriptor is not None:
                instance, _ = self.pool.acquire(item)
            refresh = item.id in self._stale
            self._stale.discard(item.id)
            request = RenderRequest(item, definition, instance, local_time(item, t), self.size, refresh)
            return handler.render(request)
        except Exception as e:
            log.warning(f"[{item.id}] {item.asset_type} render failed: {e}")
            if instance is not None:
                instance.fail(str(e))
            return placeholder(self.size, ERRORED, item.asset_type, str(e))

    def render_frame(self, t: Optional[float] = None) -> Image.Image:
        """Composite the active tab at time t (default: the clock's current time)."""
        t = self.playback.current_time if t is None else t
        self.apply_pending()
        self.sync_instances()

        background = normalize_hex(self.cfg.render.background) or "#000000"
        canvas = Image.new("RGBA", self.size, hex_to_rgb(background) + (255,))
        layers = {l.id: l for l in self.timeline.layers()}
        for item in self.timeline.items_at(t):
            img = self.render_item(item, t)
            if img is None:
                continue
            if img.size != self.size:
                img = img.resize(self.size, Image.Resampling.BILINEAR)
            canvas.alpha_composite(with_opacity(img.convert("RGBA"), layers[item.layer_id].opacity))
        return canvas

    def tick(self) -> Image.Image:
        """One playback tick: advance the clock and render the new frame."""
        self.playback.tick()
        return self.render_frame()

    def remove_item(self, item_id: str) -> None:
        """Delete an item and synchronously tear down its renderer instance."""
        self.debouncer.cancel(item_id)
        self.timeline.remove_item(item_id)
        self.pool.release(item_id)

    def stats(self) -> Dict[str, int]:
        return {
            "live_instances": len(self.pool.live_instances()),
            "evictions": self.pool.evictions,
            "pending_edits": len(self.debouncer),
            "documents": len(self.documents.sources()),
        }

    def close(self) -> None:
        self.pool.clear()
        self.documents.shutdown(wait=False)
