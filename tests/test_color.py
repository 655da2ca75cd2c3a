import pytest

from composer.engine.color import (
    hex_to_rgb,
    hex_to_rgba,
    hex_to_unit_rgba,
    hsl_to_hex,
    normalize_hex,
    rgb_to_hex,
    stable_hue_color,
    unit_rgba_to_rgba,
)


@pytest.mark.parametrize(
    "raw,expected",
    [("#184cb4", "#184cb4"), ("#184CB4", "#184cb4"), ("184cb4", "#184cb4"), ("#fff", "#ffffff")],
)
def test_normalize_hex(raw, expected):
    assert normalize_hex(raw) == expected


@pytest.mark.parametrize("raw", ["", "blue", "#12345", "#gggggg", None])
def test_normalize_hex_rejects_garbage(raw):
    assert normalize_hex(raw) is None


def test_unit_rgba_has_full_alpha_and_six_decimals():
    assert hex_to_unit_rgba("#184cb4") == [0.094118, 0.298039, 0.705882, 1.0]
    assert hex_to_unit_rgba("#000000") == [0.0, 0.0, 0.0, 1.0]


def test_rgb_round_trip_and_alpha():
    assert hex_to_rgb("#184cb4") == (24, 76, 180)
    assert rgb_to_hex(24, 76, 180) == "#184cb4"
    assert hex_to_rgba("#184cb4") == (24, 76, 180, 255)
    assert hex_to_rgba("#184cb4", 0.0)[3] == 0
    assert unit_rgba_to_rgba([0.094118, 0.298039, 0.705882, 1.0]) == (24, 76, 180, 255)


def test_hsl_primaries():
    assert hsl_to_hex(0, 1.0, 0.5) == "#ff0000"
    assert hsl_to_hex(0, 0.0, 1.0) == "#ffffff"


def test_stable_hue_color_is_deterministic():
    assert stable_hue_color("customer_logo_split") == stable_hue_color("customer_logo_split")
    assert normalize_hex(stable_hue_color("text")) is not None
