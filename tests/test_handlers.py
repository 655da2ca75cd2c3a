import pytest

from composer.engine.compositor import FrameCompositor
from composer.engine.errors import UnknownAssetType
from composer.engine.handlers import (
    DomOverlayHandler,
    HybridHandler,
    RasterCanvasHandler,
    RenderRequest,
    UnsupportedHandler,
    VectorCanvasHandler,
    build_handlers,
)
from composer.engine.injector import AnimationPropertyInjector
from composer.engine.instances import RendererInstance
from composer.engine.sdk import RendererDescriptor, RendererTech
from composer.engine.vector_raster import VectorRasterizer


@pytest.fixture
def handlers(catalog, document_cache, tmp_path):
    return build_handlers(
        catalog,
        document_cache,
        AnimationPropertyInjector(),
        VectorRasterizer(tmp_path),
        FrameCompositor(64, 36, base_dir=tmp_path),
    )


@pytest.mark.parametrize(
    "technology,expected",
    [
        (RendererTech.VECTOR_CANVAS, VectorCanvasHandler),
        (RendererTech.DOM_OVERLAY, DomOverlayHandler),
        (RendererTech.RASTER_CANVAS, RasterCanvasHandler),
        (RendererTech.HYBRID, HybridHandler),
    ],
)
def test_each_technology_has_a_handler(handlers, technology, expected):
    descriptor = RendererDescriptor(asset_type="x", technology=technology)
    assert isinstance(handlers.resolve(descriptor), expected)


def test_missing_descriptor_resolves_to_unsupported(handlers):
    assert isinstance(handlers.resolve(None), UnsupportedHandler)


def test_shared_interface(handlers, registry):
    handler = handlers.resolve(registry.dispatch("customer_logo_split"))
    assert handler.default_properties("customer_logo_split")["backgroundColor"] == "#184cb4"
    with pytest.raises(UnknownAssetType):
        handlers.fallback.validate("hologram", {})
    assert handlers.fallback.default_properties("hologram") == {}


def test_hybrid_draws_nothing(handlers, registry, catalog, timeline):
    layer = timeline.add_layer("Audio 1")
    item = timeline.create_item("audio", 0, layer.id)
    instance = RendererInstance(item.id, item.asset_type, registry.dispatch("audio"))
    request = RenderRequest(item, catalog.lookup("audio"), instance, 0.0, (64, 36))
    assert handlers.resolve(registry.dispatch("audio")).render(request) is None
    assert instance.playhead.frame == 0


def test_vector_handler_maps_item_time_to_frames(handlers, registry, catalog, timeline, logo_uri):
    layer = timeline.add_layer("Video 1")
    item = timeline.create_item("customer_logo_split", 0, layer.id, {"customerLogo": logo_uri})
    instance = RendererInstance(item.id, item.asset_type, registry.dispatch(item.asset_type))
    request = RenderRequest(item, catalog.lookup(item.asset_type), instance, 2.5, (64, 36))
    img = handlers.resolve(registry.dispatch(item.asset_type)).render(request)
    assert img.size == (64, 36)
    assert instance.playhead.frame == 150
    # the derived document carries the merge fields, the cached source does not
    assert instance.document["assets"][0]["p"] == logo_uri
    assert handlers.resolve(registry.dispatch(item.asset_type)).documents.peek(
        "animations/CustomerLogoSplit.json"
    )["assets"][0]["p"] == "logo.png"
