import pytest
from PIL import Image

from composer.engine.compositor import EXIT, ENTER, HOLD, FrameCompositor, logo_motion, phase_params, with_opacity

SIZE = (200, 100)
BLUE = (24, 76, 180, 255)
WHITE = (255, 255, 255, 255)


@pytest.fixture
def compositor(tmp_path):
    return FrameCompositor(SIZE[0], SIZE[1], fps=30, base_dir=tmp_path)


class TestPhaseParams:
    def test_start_of_enter(self):
        params = phase_params(0)
        assert (params.phase, params.radius, params.offset_x, params.opacity) == (ENTER, 0.0, 0.0, 1.0)

    def test_middle_of_enter(self):
        params = phase_params(1 / 6)
        assert params.phase == ENTER
        assert params.radius == pytest.approx(0.5)

    def test_hold_is_static(self):
        assert phase_params(0.5) == phase_params(0.6)
        assert phase_params(0.5).phase == HOLD
        assert phase_params(0.5).radius == 1.0

    def test_exit_slides_and_fades(self):
        params = phase_params(5 / 6)
        assert params.phase == EXIT
        assert params.offset_x == pytest.approx(0.5)
        assert params.opacity == pytest.approx(0.5)
        end = phase_params(1)
        assert (end.offset_x, end.opacity) == (1.0, 0.0)

    def test_out_of_range_clamps(self):
        assert phase_params(-1) == phase_params(0)
        assert phase_params(3) == phase_params(1)


def test_logo_motion_variants():
    assert logo_motion("fadeIn", 0.25, 100).alpha == 0.25
    assert logo_motion("slideInLeft", 0.5, 100).offset_x == -50
    assert logo_motion("slideInLeft", 0.5, 100, delayed=True).offset_x == 0
    assert logo_motion("scaleIn", 0.4, 100).scale == 0.4
    assert logo_motion("bounceIn", 0.25, 100).scale == 0.5
    assert logo_motion("unknown", 0.1, 100) == logo_motion("unknown", 0.9, 100)


def test_with_opacity_scales_alpha():
    img = with_opacity(Image.new("RGBA", (2, 2), (255, 0, 0, 200)), 0.5)
    assert img.getpixel((0, 0))[3] == 100


class TestLogoSplit:
    def test_first_frame_is_background_only(self, compositor):
        img = compositor.render_family("logo_split", {}, 0, 150)
        assert img.getpixel((50, 50)) == BLUE
        assert img.getpixel((150, 50)) == BLUE

    def test_hold_shows_both_circles(self, compositor):
        img = compositor.render_family("logo_split", {"backgroundColor": "#ff0000"}, 75, 150)
        assert img.getpixel((50, 50)) == WHITE
        assert img.getpixel((150, 50)) == WHITE
        assert img.getpixel((100, 5)) == (255, 0, 0, 255)

    def test_transparent_background(self, compositor):
        img = compositor.render_family("logo_split", {"backgroundColor": "transparent"}, 0, 150)
        assert img.getpixel((10, 10))[3] == 0

    def test_last_frame_has_left_the_frame(self, compositor):
        img = compositor.render_family("logo_split", {}, 149, 150)
        assert img.getpixel((50, 50)) == BLUE

    def test_unloadable_logo_is_skipped(self, compositor):
        img = compositor.render_family("logo_split", {"customerLogo": "missing.png"}, 75, 150)
        assert img.getpixel((50, 50)) == WHITE


def test_fade_families(compositor):
    assert compositor.render_family("fade_in", {}, 0, 10).getpixel((0, 0)) == (0, 0, 0, 255)
    assert compositor.render_family("fade_in", {}, 10, 10).getpixel((0, 0))[3] == 0
    assert compositor.render_family("fade_out", {}, 0, 10).getpixel((0, 0))[3] == 0
    assert compositor.render_family("fade_out", {}, 5, 10).getpixel((0, 0))[3] == 128


def test_unknown_family_raises(compositor):
    with pytest.raises(KeyError):
        compositor.render_family("hologram", {}, 0, 10)


def test_animated_logo_fades_in(compositor):
    props = {"animationType": "fadeIn", "backgroundColor": "#ffffff"}
    assert compositor.render_family("animated_logo", props, 0, 10).getpixel((40, 50)) == WHITE
    assert compositor.render_family("animated_logo", props, 10, 10).getpixel((40, 50)) == BLUE


def test_sms_thread_reveals_messages(compositor):
    assert compositor.render_family("sms_thread", {"messages": []}, 0, 10).getbbox() is None
    props = {"messages": [{"sender": "customer", "text": "Hi"}, {"sender": "agent", "text": "Hello!"}]}
    first = compositor.render_family("sms_thread", props, 0, 10)
    last = compositor.render_family("sms_thread", props, 9, 10)
    assert first.getbbox() is not None
    assert last.getbbox()[3] > first.getbbox()[3]


def test_item_progress(compositor, timeline):
    layer = timeline.add_layer("Video 1")
    item = timeline.create_item("fade_in", 0, layer.id, duration=5)
    assert compositor.item_progress(item, 2.5) == (75, 150, 0.5)
    assert compositor.item_progress(item, 99)[0] == 149
    assert compositor.item_progress(item, -1)[0] == 0


def test_media_image_is_contain_fit_and_centered(compositor, tmp_path, timeline, catalog):
    Image.new("RGBA", (10, 10), (255, 0, 0, 255)).save(tmp_path / "red.png")
    layer = timeline.add_layer("Video 1")
    item = timeline.create_item("image", 0, layer.id, {"src": "red.png"})
    img = compositor.render_item(item, catalog.lookup("image"), 0.0)
    assert img.getpixel((100, 50)) == (255, 0, 0, 255)
    assert img.getpixel((10, 50))[3] == 0


def test_media_without_source_raises(compositor, timeline, catalog):
    layer = timeline.add_layer("Video 1")
    item = timeline.create_item("image", 0, layer.id, {"src": ""})
    with pytest.raises(ValueError):
        compositor.render_item(item, catalog.lookup("image"), 0.0)


def test_text_and_audio(compositor, timeline, catalog):
    layer = timeline.add_layer("Video 1")
    text = timeline.create_item("text", 0, layer.id, {"text": "Hello"})
    assert compositor.render_item(text, catalog.lookup("text"), 0.0).getbbox() is not None
    audio = timeline.create_item("audio", 0, layer.id)
    assert compositor.render_item(audio, catalog.lookup("audio"), 0.0) is None
