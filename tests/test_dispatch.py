import pytest

from composer.core import DispatchCfg
from composer.engine.dispatch import InstancePool, RendererRegistry
from composer.engine.instances import InstanceState
from composer.engine.sdk import PerformanceClass, RendererTech

LOGO = {"customerLogo": "data:image/png;base64,AA=="}


@pytest.fixture
def layer(timeline):
    return timeline.add_layer("Video 1")


@pytest.fixture
def pool(registry):
    return InstancePool(registry)


def make_logos(timeline, layer, count):
    return [timeline.create_item("customer_logo_split", i, layer.id, LOGO) for i in range(count)]


class TestRegistry:
    def test_known_type(self, registry):
        descriptor = registry.dispatch("customer_logo_split")
        assert descriptor.technology == RendererTech.VECTOR_CANVAS
        assert registry.max_instances("customer_logo_split") == 5
        assert registry.debounce_ms("customer_logo_split") == 50
        assert registry.should_pause_offscreen("customer_logo_split") is True

    def test_unknown_type_falls_back_to_defaults(self, registry):
        assert registry.dispatch("hologram") is None
        assert registry.performance("hologram") == PerformanceClass.MEDIUM
        assert registry.debounce_ms("hologram") == 100
        assert registry.max_instances("hologram") == 10
        assert registry.should_pause_offscreen("hologram") is False

    def test_defaults_come_from_config(self):
        registry = RendererRegistry([], DispatchCfg(default_debounce_ms=250, default_max_instances=2))
        assert registry.debounce_ms("x") == 250
        assert registry.max_instances("x") == 2

    def test_from_mapping_uses_keys_as_asset_types(self):
        registry = RendererRegistry.from_mapping(
            {"renderers": {"clock": {"technology": "raster-canvas", "max_instances": 1}}}
        )
        assert "clock" in registry
        assert registry.dispatch("clock").asset_type == "clock"
        assert registry.max_instances("clock") == 1

    def test_every_catalog_type_is_dispatchable(self, registry, catalog):
        for asset_type in catalog.keys():
            assert registry.dispatch(asset_type) is not None, asset_type


class TestInstancePool:
    def test_acquire_reuses_live_instance(self, pool, timeline, layer):
        item = timeline.create_item("text", 0, layer.id)
        first, created = pool.acquire(item)
        again, created_again = pool.acquire(item)
        assert created and not created_again
        assert first is again

    def test_cap_evicts_least_recently_active(self, pool, timeline, layer):
        items = make_logos(timeline, layer, 6)
        instances = [pool.acquire(item)[0] for item in items[:5]]
        pool.acquire(items[0])  # item 0 becomes most recently active

        pool.acquire(items[5])
        assert pool.evictions == 1
        assert pool.get(items[1].id) is None
        assert instances[1].state == InstanceState.STOPPED
        assert instances[1].playhead.released
        assert len(pool.live_instances("customer_logo_split")) == 5
        assert pool.get(items[0].id) is instances[0]

    def test_touch_protects_from_eviction(self, pool, timeline, layer):
        items = make_logos(timeline, layer, 6)
        for item in items[:5]:
            pool.acquire(item)
        pool.touch(items[0].id)
        pool.touch(items[1].id)
        pool.acquire(items[5])
        assert pool.get(items[2].id) is None
        assert pool.get(items[0].id) is not None

    def test_caps_are_per_type(self, pool, timeline, layer):
        for item in make_logos(timeline, layer, 5):
            pool.acquire(item)
        pool.acquire(timeline.create_item("text", 0, layer.id))
        assert pool.evictions == 0

    def test_release_stops_instance(self, pool, timeline, layer):
        item = timeline.create_item("text", 0, layer.id)
        instance, _ = pool.acquire(item)
        assert pool.release(item.id) is True
        assert instance.state == InstanceState.STOPPED
        assert pool.release(item.id) is False

    def test_release_missing(self, pool, timeline, layer):
        keep = timeline.create_item("text", 0, layer.id)
        drop = timeline.create_item("text", 1, layer.id)
        pool.acquire(keep)
        pool.acquire(drop)
        assert pool.release_missing({keep.id}) == [drop.id]
        assert pool.get(drop.id) is None

    def test_visibility_only_pauses_pausing_types(self, pool, timeline, layer):
        logo = make_logos(timeline, layer, 1)[0]
        text = timeline.create_item("text", 0, layer.id)
        logo_instance, _ = pool.acquire(logo)
        text_instance, _ = pool.acquire(text)
        logo_instance.seek(12)

        suspended, resumed = pool.update_visibility(set())
        assert suspended == [logo.id] and resumed == []
        assert logo_instance.suspended and not text_instance.suspended

        suspended, resumed = pool.update_visibility({logo.id, text.id})
        assert suspended == [] and resumed == [logo.id]
        assert logo_instance.playhead.frame == 12

    def test_clear_stops_everything(self, pool, timeline, layer):
        instances = [pool.acquire(item)[0] for item in make_logos(timeline, layer, 3)]
        pool.clear()
        assert pool.live_instances() == []
        assert all(i.state == InstanceState.STOPPED for i in instances)
