#!/usr/bin/env python3
"""
Timeline Model

In-memory structure of layers, items, tabs and groups. Items are instantiated from the
asset catalog (defaults merged with overrides, required fields validated); move/resize
clamp rather than reject because drag gestures transiently violate bounds.
"""

import math
import uuid
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from composer.core import PlaybackCfg, RenderCfg, get_logger

from .catalog import AssetCatalog
from .color import stable_hue_color
from .errors import TimelineError, UnknownAssetType
from .sdk import (
    MAIN_TAB_ID,
    MAIN_TAB_NAME,
    LayerKind,
    TabKind,
    TimelineGroup,
    TimelineItem,
    TimelineLayer,
    TimelineTab,
)

log = get_logger("timeline")


def _default_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


def _clean_name(name: str, what: str) -> str:
    if name is None or not str(name).strip():
        raise TimelineError(f"{what} name must be non-empty")
    return str(name).strip()


def _finite(value: float, fallback: float) -> float:
    try:
        value = float(value)
    except (TypeError, ValueError):
        return fallback
    return value if math.isfinite(value) else fallback


class Timeline:
    """Layers, items, groups and tabs of one composition."""

    def __init__(
        self,
        catalog: AssetCatalog,
        render_cfg: Optional[RenderCfg] = None,
        playback_cfg: Optional[PlaybackCfg] = None,
        id_factory: Optional[Callable[[str], str]] = None,
    ):
        self.catalog = catalog
        self.render_cfg = render_cfg or RenderCfg()
        self.playback_cfg = playback_cfg or PlaybackCfg()
        self._new_id = id_factory or _default_id

        self._layers: Dict[str, TimelineLayer] = {}
        self._items: Dict[str, TimelineItem] = {}
        self._groups: Dict[str, TimelineGroup] = {}
        self._tabs: Dict[str, TimelineTab] = {
            MAIN_TAB_ID: TimelineTab(id=MAIN_TAB_ID, name=MAIN_TAB_NAME, kind=TabKind.MAIN, is_active=True)
        }
        self._active_tab_id = MAIN_TAB_ID

    # ------------------------------------------------------------------ layers

    def add_layer(self, name: str, kind: LayerKind = LayerKind.VIDEO) -> TimelineLayer:
        order = max((l.order for l in self._layers.values()), default=-1) + 1
        layer = TimelineLayer(id=self._new_id("layer"), name=_clean_name(name, "Layer"), kind=kind, order=order)
        self._layers[layer.id] = layer
        return layer

    def get_layer(self, layer_id: str) -> TimelineLayer:
        layer = self._layers.get(layer_id)
        if layer is None:
            raise TimelineError(f"Unknown layer: {layer_id}")
        return layer

    def layers(self) -> List[TimelineLayer]:
        """Layers bottom-to-top (ascending order index)."""
        return sorted(self._layers.values(), key=lambda l: l.order)

    def reorder_layer(self, layer_id: str, new_order: int) -> TimelineLayer:
        """Move a layer to a z-index. The layer holding that index takes the old one."""
        layer = self.get_layer(layer_id)
        new_order = max(0, int(new_order))
        if new_order == layer.order:
            return layer
        displaced = next((l for l in self._layers.values() if l.order == new_order), None)
        old_order = layer.order
        layer.order = new_order
        if displaced is not None:
            displaced.order = old_order
        return layer

    def remove_layer(self, layer_id: str) -> TimelineLayer:
        layer = self.get_layer(layer_id)
        for item in list(layer.items):
            self.remove_item(item.id)
        del self._layers[layer_id]
        return layer

    def set_layer_flags(
        self,
        layer_id: str,
        visible: Optional[bool] = None,
        locked: Optional[bool] = None,
        opacity: Optional[float] = None,
    ) -> TimelineLayer:
        layer = self.get_layer(layer_id)
        if visible is not None:
            layer.visible = visible
        if locked is not None:
            layer.locked = locked
        if opacity is not None:
            layer.opacity = max(0.0, min(1.0, float(opacity)))
        return layer

    # ------------------------------------------------------------------- items

    def create_item(
        self,
        asset_type: str,
        start_time: float,
        layer_id: str,
        overrides: Optional[Mapping[str, Any]] = None,
        duration: Optional[float] = None,
    ) -> TimelineItem:
        """
        Instantiate a catalog asset on a layer.

        Args:
            asset_type: Catalog key
            start_time: Start in seconds (negative values clamp to 0)
            layer_id: Owning layer
            overrides: Properties merged over the catalog defaults
            duration: Optional explicit duration, else the nominal or default duration

        Returns:
            The new TimelineItem (already appended to the layer)

        Raises:
            UnknownAssetType: If the catalog has no such asset type
            SchemaViolation: If a required property is missing after merging
            TimelineError: If the layer does not exist
        """
        definition = self.catalog.lookup(asset_type)
        if definition is None:
            log.warning(f"Rejected item: unknown asset type {asset_type}")
            raise UnknownAssetType(asset_type)
        layer = self.get_layer(layer_id)

        properties = self.catalog.default_properties(asset_type)
        properties.update(dict(overrides or {}))
        self.catalog.validate(asset_type, properties)

        nominal = duration if duration is not None else (definition.duration or self.render_cfg.default_item_duration)
        item = TimelineItem(
            id=self._new_id("item"),
            asset_type=asset_type,
            name=definition.name,
            category=definition.category,
            layer_id=layer.id,
            start_time=max(0.0, _finite(start_time, 0.0)),
            duration=self._clamp_duration(nominal),
            properties=properties,
            renderer=definition.renderer.model_copy(),
        )
        layer.items.append(item)
        self._items[item.id] = item
        log.info(f"Created {asset_type} item {item.id} on layer {layer.id} at {item.start_time:.3f}s")
        return item

    def get_item(self, item_id: str) -> TimelineItem:
        item = self._items.get(item_id)
        if item is None:
            raise TimelineError(f"Unknown item: {item_id}")
        return item

    def find_item(self, item_id: str) -> Optional[TimelineItem]:
        return self._items.get(item_id)

    def items(self) -> List[TimelineItem]:
        return [item for layer in self.layers() for item in layer.items]

    def remove_item(self, item_id: str) -> TimelineItem:
        item = self.get_item(item_id)
        layer = self._layers.get(item.layer_id)
        if layer is not None:
            layer.items = [i for i in layer.items if i.id != item_id]
        del self._items[item_id]
        if item.group_id:
            group = self._groups.get(item.group_id)
            if group is not None:
                group.item_ids = [i for i in group.item_ids if i != item_id]
                self._refresh_group(group.id)
        return item

    def _is_locked(self, item: TimelineItem) -> bool:
        layer = self._layers.get(item.layer_id)
        return item.locked or (layer is not None and layer.locked)

    def _clamp_duration(self, duration: float) -> float:
        return max(self.playback_cfg.min_item_duration, _finite(duration, self.playback_cfg.min_item_duration))

    def move_item(self, item_id: str, start_time: float, layer_id: Optional[str] = None) -> TimelineItem:
        """Move an item in time (and optionally to another layer). Start clamps to >= 0."""
        item = self.get_item(item_id)
        if self._is_locked(item):
            log.info(f"Ignored move of locked item {item_id}")
            return item
        item.start_time = max(0.0, _finite(start_time, item.start_time))
        if layer_id is not None and layer_id != item.layer_id:
            target = self.get_layer(layer_id)
            if target.locked:
                log.info(f"Ignored layer change of {item_id}: layer {layer_id} is locked")
            else:
                source = self._layers[item.layer_id]
                source.items = [i for i in source.items if i.id != item_id]
                target.items.append(item)
                item.layer_id = target.id
        if item.group_id:
            self._refresh_group(item.group_id)
        return item

    def resize_item(self, item_id: str, duration: float, start_time: Optional[float] = None) -> TimelineItem:
        """Resize an item; duration clamps to the minimum item duration, start to >= 0."""
        item = self.get_item(item_id)
        if self._is_locked(item):
            log.info(f"Ignored resize of locked item {item_id}")
            return item
        if start_time is not None:
            item.start_time = max(0.0, _finite(start_time, item.start_time))
        item.duration = self._clamp_duration(duration)
        if item.group_id:
            self._refresh_group(item.group_id)
        return item

    def update_properties(self, item_id: str, overrides: Mapping[str, Any]) -> TimelineItem:
        """Merge property overrides into an item, keeping required fields satisfied."""
        item = self.get_item(item_id)
        merged = dict(item.properties)
        merged.update(dict(overrides))
        self.catalog.validate(item.asset_type, merged)
        item.properties = merged
        return item

    def set_item_flags(
        self,
        item_id: str,
        locked: Optional[bool] = None,
        visible: Optional[bool] = None,
        muted: Optional[bool] = None,
    ) -> TimelineItem:
        item = self.get_item(item_id)
        if locked is not None:
            item.locked = locked
        if visible is not None:
            item.visible = visible
        if muted is not None:
            item.muted = muted
        return item

    def items_at(self, t: float, tab_id: Optional[str] = None) -> List[TimelineItem]:
        """Visible items active at time t, bottom-to-top by layer order then start time."""
        order = {l.id: l.order for l in self._layers.values()}
        active = [
            item for item in self.tab_items(tab_id or self._active_tab_id)
            if item.visible and self._layers[item.layer_id].visible and item.is_active_at(t)
        ]
        return sorted(active, key=lambda i: (order[i.layer_id], i.start_time))

    def total_duration(self) -> float:
        return max((item.end_time for item in self._items.values()), default=0.0)

    # ------------------------------------------------------------------ groups

    def create_group(self, item_ids: Iterable[str], name: str) -> TimelineGroup:
        """
        Group existing, ungrouped items. Unknown or already-grouped ids are dropped.

        Raises:
            TimelineError: If nothing remains of the selection
        """
        selected: List[TimelineItem] = []
        for item_id in item_ids:
            item = self._items.get(item_id)
            if item is None:
                continue
            if item.group_id is not None:
                log.info(f"Item {item_id} already belongs to group {item.group_id}")
                continue
            if item not in selected:
                selected.append(item)
        if not selected:
            raise TimelineError("Cannot create a group from an empty selection")

        group_id = self._new_id("group")
        group = TimelineGroup(
            id=group_id,
            name=_clean_name(name, "Group"),
            item_ids=[i.id for i in selected],
            start_time=min(i.start_time for i in selected),
            end_time=max(i.end_time for i in selected),
            color=stable_hue_color(group_id),
        )
        for item in selected:
            item.group_id = group_id
        self._groups[group_id] = group
        return group

    def get_group(self, group_id: str) -> TimelineGroup:
        group = self._groups.get(group_id)
        if group is None:
            raise TimelineError(f"Unknown group: {group_id}")
        return group

    def groups(self) -> List[TimelineGroup]:
        return list(self._groups.values())

    def _refresh_group(self, group_id: str) -> None:
        group = self._groups.get(group_id)
        if group is None:
            return
        members = [self._items[i] for i in group.item_ids if i in self._items]
        if not members:
            log.info(f"Group {group_id} is empty, dissolving")
            self.ungroup(group_id)
            return
        group.start_time = min(i.start_time for i in members)
        group.end_time = max(i.end_time for i in members)

    def ungroup(self, group_id: str) -> TimelineGroup:
        group = self.get_group(group_id)
        for item_id in group.item_ids:
            item = self._items.get(item_id)
            if item is not None and item.group_id == group_id:
                item.group_id = None
        if group.tab_id:
            self.close_tab(group.tab_id)
        del self._groups[group_id]
        return group

    def rename_group(self, group_id: str, name: str) -> TimelineGroup:
        group = self.get_group(group_id)
        group.name = _clean_name(name, "Group")
        return group

    # -------------------------------------------------------------------- tabs

    @property
    def active_tab_id(self) -> str:
        return self._active_tab_id

    @property
    def active_tab(self) -> TimelineTab:
        return self._tabs[self._active_tab_id]

    def tabs(self) -> List[TimelineTab]:
        return list(self._tabs.values())

    def get_tab(self, tab_id: str) -> TimelineTab:
        tab = self._tabs.get(tab_id)
        if tab is None:
            raise TimelineError(f"Unknown tab: {tab_id}")
        return tab

    def switch_tab(self, tab_id: str) -> TimelineTab:
        target = self.get_tab(tab_id)
        for tab in self._tabs.values():
            tab.is_active = tab.id == tab_id
        self._active_tab_id = tab_id
        return target

    def open_group_tab(self, group_id: str) -> TimelineTab:
        """Open (or re-focus) the tab of a group. Never creates a duplicate."""
        group = self.get_group(group_id)
        if group.tab_id and group.tab_id in self._tabs:
            return self.switch_tab(group.tab_id)
        tab_id = f"group-{group_id}"
        if tab_id not in self._tabs:
            self._tabs[tab_id] = TimelineTab(id=tab_id, name=group.name, kind=TabKind.GROUP, group_id=group_id)
        group.tab_id = tab_id
        return self.switch_tab(tab_id)

    def close_tab(self, tab_id: str) -> bool:
        """
        Close a group tab. The main tab cannot be closed (no-op, returns False).

        Closing the active tab activates the main tab; the group keeps existing.
        """
        tab = self._tabs.get(tab_id)
        if tab is None or tab.kind != TabKind.GROUP:
            log.info(f"Ignored close of tab {tab_id}")
            return False
        del self._tabs[tab_id]
        if tab.group_id and tab.group_id in self._groups:
            self._groups[tab.group_id].tab_id = None
        if self._active_tab_id == tab_id:
            self.switch_tab(MAIN_TAB_ID)
        return True

    def rename_tab(self, tab_id: str, name: str) -> TimelineTab:
        tab = self.get_tab(tab_id)
        tab.name = _clean_name(name, "Tab")
        return tab

    def tab_items(self, tab_id: Optional[str] = None) -> List[TimelineItem]:
        tab = self.get_tab(tab_id or self._active_tab_id)
        if tab.kind == TabKind.MAIN:
            return self.items()
        group = self._groups.get(tab.group_id)
        if group is None:
            return []
        members = set(group.item_ids)
        return [item for item in self.items() if item.id in members]

    def tab_layers(self, tab_id: Optional[str] = None) -> List[TimelineLayer]:
        tab = self.get_tab(tab_id or self._active_tab_id)
        if tab.kind == TabKind.MAIN:
            return self.layers()
        layer_ids = {item.layer_id for item in self.tab_items(tab.id)}
        return [l for l in self.layers() if l.id in layer_ids]

    # ----------------------------------------------------------------- records

    def to_records(self) -> Dict[str, Any]:
        """Plain records for the persistence collaborator."""
        return {
            "layers": [l.model_dump(mode="json") for l in self.layers()],
            "groups": [g.model_dump(mode="json") for g in self._groups.values()],
            "tabs": [t.model_dump(mode="json") for t in self._tabs.values()],
            "active_tab_id": self._active_tab_id,
        }

    @classmethod
    def from_records(cls, catalog: AssetCatalog, records: Mapping[str, Any], **kwargs) -> "Timeline":
        """
        Rebuild a timeline from plain records.

        Raises:
            UnknownAssetType: If an item references an asset type missing from the catalog
            TimelineError: If two layers share an order index
        """
        timeline = cls(catalog, **kwargs)
        orders: Dict[int, str] = {}
        for raw_layer in records.get("layers") or []:
            layer = TimelineLayer(**raw_layer)
            if layer.order in orders:
                raise TimelineError(f"Layers {orders[layer.order]} and {layer.id} share order {layer.order}")
            orders[layer.order] = layer.id
            for item in layer.items:
                if catalog.lookup(item.asset_type) is None:
                    raise UnknownAssetType(item.asset_type)
                item.layer_id = layer.id
                timeline._items[item.id] = item
            timeline._layers[layer.id] = layer
        for raw_group in records.get("groups") or []:
            group = TimelineGroup(**raw_group)
            group.item_ids = [i for i in group.item_ids if i in timeline._items]
            timeline._groups[group.id] = group
        for raw_tab in records.get("tabs") or []:
            tab = TimelineTab(**raw_tab)
            if tab.kind == TabKind.GROUP and tab.group_id in timeline._groups:
                timeline._tabs[tab.id] = tab
        active = records.get("active_tab_id") or MAIN_TAB_ID
        timeline.switch_tab(active if active in timeline._tabs else MAIN_TAB_ID)
        return timeline
