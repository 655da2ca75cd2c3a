#!/usr/bin/env python3
"""
Renderer Dispatch

Static asset-type -> renderer descriptor map, plus the live-instance pool that enforces
the per-type instance caps (least-recently-active eviction) and offscreen suspension.

A dispatch miss is a normal outcome: the caller renders the unsupported-type placeholder.
"""

from pathlib import Path
from threading import Lock
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set, Tuple, Union

from composer.core import DispatchCfg, get_logger, load_yaml

from .instances import RendererInstance
from .sdk import PerformanceClass, Paths, RendererDescriptor, TimelineItem

log = get_logger("dispatch")


class RendererRegistry:
    """Immutable asset-type -> RendererDescriptor map with per-field defaults."""

    def __init__(self, descriptors: Iterable[RendererDescriptor], defaults: Optional[DispatchCfg] = None):
        table: Dict[str, RendererDescriptor] = {}
        for descriptor in descriptors:
            table[descriptor.asset_type] = descriptor
        self._descriptors: Mapping[str, RendererDescriptor] = MappingProxyType(table)
        self.defaults = defaults or DispatchCfg()

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], defaults: Optional[DispatchCfg] = None) -> "RendererRegistry":
        descriptors = []
        for asset_type, raw in (data.get("renderers") or {}).items():
            raw = dict(raw or {})
            raw.setdefault("asset_type", asset_type)
            descriptors.append(RendererDescriptor(**raw))
        return cls(descriptors, defaults)

    @classmethod
    def from_yaml(cls, path: Union[str, Path], defaults: Optional[DispatchCfg] = None) -> "RendererRegistry":
        registry = cls.from_mapping(load_yaml(str(path)), defaults)
        log.info(f"Loaded {len(registry)} renderer descriptors from {path}")
        return registry

    def __len__(self) -> int:
        return len(self._descriptors)

    def __contains__(self, asset_type: str) -> bool:
        return asset_type in self._descriptors

    def keys(self) -> List[str]:
        return list(self._descriptors.keys())

    def dispatch(self, asset_type: str) -> Optional[RendererDescriptor]:
        """Descriptor for asset_type, or None (render the unsupported-type placeholder)."""
        return self._descriptors.get(asset_type)

    def performance(self, asset_type: str) -> PerformanceClass:
        descriptor = self.dispatch(asset_type)
        return descriptor.performance if descriptor else PerformanceClass(self.defaults.default_performance)

    def debounce_ms(self, asset_type: str) -> int:
        descriptor = self.dispatch(asset_type)
        return descriptor.debounce_ms if descriptor else self.defaults.default_debounce_ms

    def max_instances(self, asset_type: str) -> int:
        descriptor = self.dispatch(asset_type)
        return descriptor.max_instances if descriptor else self.defaults.default_max_instances

    def should_pause_offscreen(self, asset_type: str) -> bool:
        descriptor = self.dispatch(asset_type)
        return descriptor.pause_offscreen if descriptor else False


def load_default_registry(path: Optional[Union[str, Path]] = None, defaults: Optional[DispatchCfg] = None) -> RendererRegistry:
    return RendererRegistry.from_yaml(path or Paths.renderers(), defaults)


class InstancePool:
    """
    Live renderer instances keyed by item id.

    Every acquire/touch stamps the instance with a monotonically increasing sequence
    number; at a type's cap the instance with the lowest stamp is stopped and released
    before the new one is created.
    """

    def __init__(self, registry: RendererRegistry):
        self.registry = registry
        self.instances: Dict[str, RendererInstance] = {}
        self.evictions = 0
        self._sequence = 0
        self.lock = Lock()

    def _next(self) -> int:
        self._sequence += 1
        return self._sequence

    def get(self, item_id: str) -> Optional[RendererInstance]:
        return self.instances.get(item_id)

    def live_instances(self, asset_type: Optional[str] = None) -> List[RendererInstance]:
        return [
            inst for inst in self.instances.values()
            if inst.is_live and (asset_type is None or inst.asset_type == asset_type)
        ]

    def acquire(self, item: TimelineItem) -> Tuple[RendererInstance, bool]:
        """
        Return the live instance for item, creating it if needed.

        Returns:
            (instance, created)
        """
        with self.lock:
            existing = self.instances.get(item.id)
            if existing is not None and existing.is_live and existing.asset_type == item.asset_type:
                existing.touch(self._next())
                return existing, False
            if existing is not None:
                existing.stop()
                del self.instances[item.id]

            cap = self.registry.max_instances(item.asset_type)
            same_type = [i for i in self.instances.values() if i.asset_type == item.asset_type]
            while len(same_type) >= cap:
                victim = min(same_type, key=lambda i: i.last_active)
                victim.stop()
                del self.instances[victim.item_id]
                same_type.remove(victim)
                self.evictions += 1
                log.info(f"Evicted {victim.asset_type} instance {victim.item_id} (cap {cap})")

            instance = RendererInstance(
                item.id, item.asset_type, self.registry.dispatch(item.asset_type), sequence=self._next()
            )
            self.instances[item.id] = instance
            return instance, True

    def touch(self, item_id: str) -> None:
        with self.lock:
            instance = self.instances.get(item_id)
            if instance is not None:
                instance.touch(self._next())

    def release(self, item_id: str) -> bool:
        """Stop and drop the instance of a deleted or unmounted item."""
        with self.lock:
            instance = self.instances.pop(item_id, None)
        if instance is None:
            return False
        instance.stop()
        return True

    def release_missing(self, item_ids: Set[str]) -> List[str]:
        """Release every instance whose item is not in item_ids."""
        gone = [item_id for item_id in list(self.instances) if item_id not in item_ids]
        for item_id in gone:
            self.release(item_id)
        return gone

    def update_visibility(self, visible_ids: Set[str]) -> Tuple[List[str], List[str]]:
        """
        Suspend offscreen instances of pausing types; resume those back in view.

        Returns:
            (suspended item ids, resumed item ids)
        """
        suspended, resumed = [], []
        for instance in self.live_instances():
            if not self.registry.should_pause_offscreen(instance.asset_type):
                continue
            if instance.item_id in visible_ids:
                if instance.resume():
                    resumed.append(instance.item_id)
            elif instance.suspend():
                suspended.append(instance.item_id)
        return suspended, resumed

    def clear(self) -> None:
        with self.lock:
            instances = list(self.instances.values())
            self.instances.clear()
        for instance in instances:
            instance.stop()
